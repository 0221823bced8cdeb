"""Resolver chain: drives one link through the stage table to a terminal outcome."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from unlocker_mcp.core.stages import Stage, StageKind
from unlocker_mcp.models import LogEntry
from unlocker_mcp.resolvers import Resolver, StageResult

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No solver matched for this URL"

EventSink = Callable[[dict[str, Any]], None]


class LinkLog:
    """Structured log for one link that also forwards entries to an event sink.

    Sink failures (a closed stream, a gone consumer) never reach the caller.
    """

    def __init__(self, lid: int | str, sink: EventSink | None = None) -> None:
        self.lid = lid
        self.sink = sink
        self.entries: list[LogEntry] = []

    def add(self, msg: str, type: str = "info") -> None:
        self.entries.append(LogEntry(msg=msg, type=type))
        self.emit({"id": self.lid, "msg": msg, "type": type})

    def emit(self, event: dict[str, Any]) -> None:
        if self.sink is None:
            return
        try:
            self.sink(event)
        except Exception as e:
            logger.debug(f"Dropped event for link {self.lid}: {e}")


@dataclass
class ChainResult:
    """Terminal outcome of one chain execution."""

    status: str
    final_link: str | None = None
    error: str | None = None
    best_button_name: str | None = None
    all_available_buttons: list[Any] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "done"

    @classmethod
    def done(cls, final_link: str, **metadata: Any) -> ChainResult:
        return cls(status="done", final_link=final_link, **metadata)

    @classmethod
    def failed(cls, error: str | None) -> ChainResult:
        return cls(status="error", error=error or "Unknown error")


class ResolverChain:
    """Evaluates the stage table in order against the current link value."""

    def __init__(self, stages: Sequence[Stage]) -> None:
        self.stages = list(stages)

    async def run(self, url: str, log: LinkLog) -> ChainResult:
        """Resolve a URL through every matching stage.

        Args:
            url: Original link URL
            log: Log collecting stage transitions

        Returns:
            ChainResult; stage errors are reported as failures, never raised
        """
        current = url

        for stage in self.stages:
            if stage.kind is StageKind.BYPASS_LOOP:
                current = await self._run_bypass_loop(stage, current, log)
                continue

            if not stage.matches(current):
                continue

            if stage.kind is StageKind.PASS_THROUGH:
                log.add(f"{stage.label}: {current}", "success")
                return ChainResult.done(current)

            log.add(f"{stage.label}...")
            result = await self._call(stage.resolver, current)

            if stage.kind is StageKind.REWRITE:
                if not result.success:
                    log.add(f"{stage.name} failed: {result.message}", "error")
                    return ChainResult.failed(result.message)
                current = result.url
                continue

            if not result.success:
                log.add(f"{stage.name} failed: {result.message}", "error")
                return ChainResult.failed(result.message)

            log.add(f"{stage.name} done: {result.url}", "success")
            if stage.kind is StageKind.FINAL:
                return ChainResult.done(
                    result.url,
                    best_button_name=result.metadata.get("best_button_name"),
                    all_available_buttons=result.metadata.get("all_available_buttons") or [],
                )
            return ChainResult.done(result.url)

        log.add(NO_MATCH_MESSAGE, "error")
        return ChainResult.failed(NO_MATCH_MESSAGE)

    async def _run_bypass_loop(self, stage: Stage, current: str, log: LinkLog) -> str:
        """Chase intermediate links; a failed iteration ends the loop, not the chain."""
        iteration = 0
        while iteration < stage.max_iterations:
            if stage.stop_on is not None and stage.stop_on(current):
                break
            if iteration == 0 and not stage.matches(current):
                break

            resolver_name = stage.route_name(current)
            log.add(f"{stage.label} via {resolver_name} (loop {iteration + 1})")
            result = await self._call(stage.pick_resolver(current), current)
            if not result.success:
                log.add(f"{resolver_name} failed: {result.message}", "error")
                break

            current = result.url
            iteration += 1

        return current

    async def _call(self, resolver: Resolver | None, url: str) -> StageResult:
        if resolver is None:
            return StageResult.failure("No resolver configured for stage")
        try:
            result = await resolver.resolve(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Resolver {getattr(resolver, 'name', resolver)} raised for {url}: {e}")
            return StageResult.failure(f"{type(e).__name__}: {e}")

        if result.success and not result.url:
            return StageResult.failure("Resolver returned no link")
        return result
