"""Link pipeline: router, both executors and deferral wired together."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from unlocker_mcp.core.chain import EventSink, LinkLog, ResolverChain
from unlocker_mcp.core.dispatcher import RoutedLinks, route_links
from unlocker_mcp.core.executors import SequentialBypassExecutor, run_direct
from unlocker_mcp.core.persistence import PersistenceAdapter
from unlocker_mcp.core.supervisor import RetrySupervisor
from unlocker_mcp.metrics import get_metrics
from unlocker_mcp.models import DEFERRED, Link, LinkOutcome, ResultRecord
from unlocker_mcp.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "Browser/Live"


@dataclass
class PipelineRun:
    """Everything one invocation of the pipeline did."""

    routed: RoutedLinks
    direct_outcomes: list[LinkOutcome] = field(default_factory=list)
    timer_outcomes: list[LinkOutcome] = field(default_factory=list)
    deferred: list[Link] = field(default_factory=list)

    @property
    def outcomes(self) -> list[LinkOutcome]:
        return self.direct_outcomes + self.timer_outcomes

    @property
    def done(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_success)


class LinkPipeline:
    """Resolves a batch of links, persisting each outcome into its task."""

    def __init__(
        self,
        chain: ResolverChain,
        store: TaskStore,
        *,
        timer_domains: Sequence[str],
        link_timeout: float,
        time_budget: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.persistence = PersistenceAdapter(store)
        self.supervisor = RetrySupervisor(chain, self.persistence, link_timeout)
        self.timer_domains = list(timer_domains)
        self.time_budget = time_budget
        self.clock = clock

    async def defer_links(
        self,
        links: Sequence[Link],
        task_id: str | None,
        extracted_by: str | None,
        sink: EventSink | None = None,
    ) -> None:
        """Mark links as deferred in one concurrent batch of writes."""
        message = f"Time budget exceeded ({self.time_budget:g}s), deferred to next run"

        async def defer_one(link: Link) -> None:
            log = LinkLog(link.id, sink)
            log.add(message, "warn")
            if task_id is not None:
                await self.persistence.write_result(
                    task_id,
                    link.id,
                    ResultRecord(
                        lid=link.id,
                        link_url=link.link,
                        status=DEFERRED,
                        logs=log.entries,
                        extracted_by=extracted_by,
                    ),
                )
            log.emit({"id": link.id, "status": DEFERRED})
            log.emit({"id": link.id, "status": "finished"})

        await asyncio.gather(*(defer_one(link) for link in links))
        get_metrics().record_deferred(len(links))

    async def run(
        self,
        links: Sequence[Link],
        task_id: str | None = None,
        extracted_by: str | None = DEFAULT_ACTOR,
        sink: EventSink | None = None,
        started_at: float | None = None,
    ) -> PipelineRun:
        """Route the pending links and run both classes concurrently.

        Args:
            links: Links to consider; terminal links are skipped by the router
            task_id: Task to persist into, or None to only resolve
            extracted_by: Actor tag stored with each result
            sink: Optional event sink for the streaming variant
            started_at: Clock reading the time budget is measured from

        Returns:
            PipelineRun with per-class outcomes and deferred links
        """
        if started_at is None:
            started_at = self.clock()

        routed = route_links(links, self.timer_domains)
        logger.info(
            f"Resolving {routed.total} link(s) for task {task_id}: "
            f"{len(routed.direct_class)} direct, {len(routed.timer_class)} sequential"
        )

        async def process(link: Link) -> LinkOutcome:
            return await self.supervisor.process(link, task_id, extracted_by, sink)

        async def defer(remaining: Sequence[Link]) -> None:
            await self.defer_links(remaining, task_id, extracted_by, sink)

        sequential = SequentialBypassExecutor(process, defer, self.time_budget, self.clock)

        direct_outcomes, sequential_run = await asyncio.gather(
            run_direct(routed.direct_class, process),
            sequential.run(routed.timer_class, started_at),
        )

        return PipelineRun(
            routed=routed,
            direct_outcomes=direct_outcomes,
            timer_outcomes=sequential_run.outcomes,
            deferred=sequential_run.deferred,
        )
