"""Pytest configuration and fixtures for unlocker-mcp tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from unlocker_mcp import metrics
from unlocker_mcp.admin.service import DEFAULT_TARGET_DOMAINS, DEFAULT_TIMER_DOMAINS
from unlocker_mcp.core.chain import ResolverChain
from unlocker_mcp.core.pipeline import LinkPipeline
from unlocker_mcp.core.stages import build_stage_table
from unlocker_mcp.models import Link, Task
from unlocker_mcp.resolvers import Resolver, StageResult
from unlocker_mcp.store import DiskTaskStore

RESOLVER_NAMES = ("hubcdn", "timer", "gadgetsweb", "hblinks", "hubdrive", "hubcloud")


def ok(url: str, **metadata: Any) -> StageResult:
    """Successful stage result pointing at url."""
    return StageResult(success=True, url=url, metadata=metadata)


class ScriptedResolver(Resolver):
    """Resolver answering from a per-URL script and recording every call.

    Script values may be a StageResult, an exception instance to raise, or a
    callable taking (url, call_number) and returning either of those.
    """

    def __init__(
        self,
        name: str,
        script: dict[str, Any] | None = None,
        default: Any = None,
        delays: list[float] | None = None,
    ) -> None:
        self.name = name
        self.script = dict(script or {})
        self.default = default
        self.delays = list(delays or [])
        self.calls: list[str] = []

    def supports_url(self, url: str) -> bool:
        return True

    async def resolve(self, url: str, **kwargs: Any) -> StageResult:
        self.calls.append(url)
        if self.delays:
            delay = self.delays.pop(0)
            if delay:
                await asyncio.sleep(delay)

        outcome = self.script.get(url, self.default)
        if callable(outcome):
            outcome = outcome(url, len(self.calls))
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return StageResult.failure(f"{self.name} cannot unlock {url}")
        return outcome


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point data directories at tmp_path and reset global metrics."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(metrics, "_metrics", metrics.ServerMetrics())


@pytest.fixture
def store(tmp_path: Path) -> Iterator[DiskTaskStore]:
    """Disk task store in a temporary directory."""
    task_store = DiskTaskStore(tmp_path / "tasks")
    yield task_store
    task_store.close()


@pytest.fixture
def resolvers() -> dict[str, ScriptedResolver]:
    """One scripted resolver per stage, failing everything by default."""
    return {name: ScriptedResolver(name) for name in RESOLVER_NAMES}


@pytest.fixture
def make_chain(resolvers: dict[str, ScriptedResolver]) -> Callable[..., ResolverChain]:
    """Build a resolver chain over the scripted resolvers."""

    def _make_chain(
        timer_domains: list[str] | None = None,
        target_domains: list[str] | None = None,
    ) -> ResolverChain:
        return ResolverChain(
            build_stage_table(
                fast_path=resolvers["hubcdn"],
                timer_bypass=resolvers["timer"],
                gadgetsweb=resolvers["gadgetsweb"],
                hblinks=resolvers["hblinks"],
                hubdrive=resolvers["hubdrive"],
                hubcloud=resolvers["hubcloud"],
                timer_domains=timer_domains or DEFAULT_TIMER_DOMAINS,
                target_domains=target_domains or DEFAULT_TARGET_DOMAINS,
            )
        )

    return _make_chain


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at zero."""
    return FakeClock()


@pytest.fixture
def make_pipeline(
    make_chain: Callable[..., ResolverChain],
    store: DiskTaskStore,
    clock: FakeClock,
) -> Callable[..., LinkPipeline]:
    """Build a link pipeline over the scripted chain, the tmp store and the fake clock."""

    def _make_pipeline(
        link_timeout: float = 5.0,
        time_budget: float = 45.0,
    ) -> LinkPipeline:
        return LinkPipeline(
            make_chain(),
            store,
            timer_domains=DEFAULT_TIMER_DOMAINS,
            link_timeout=link_timeout,
            time_budget=time_budget,
            clock=clock,
        )

    return _make_pipeline


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Build a task from (lid, url) pairs."""

    def _make_task(task_id: str, urls: list[tuple[int, str]], status: str = "pending") -> Task:
        return Task(
            id=task_id,
            status=status,
            links=[Link(id=lid, name=f"Link {lid}", link=url) for lid, url in urls],
        )

    return _make_task
