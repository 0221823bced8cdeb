"""Executors for the two routing classes."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from unlocker_mcp.models import Link, LinkOutcome

logger = logging.getLogger(__name__)

ProcessFn = Callable[[Link], Awaitable[LinkOutcome]]
DeferFn = Callable[[Sequence[Link]], Awaitable[None]]


async def run_direct(links: Sequence[Link], process: ProcessFn) -> list[LinkOutcome]:
    """Process every link concurrently and wait for all of them.

    One link raising never cancels or blocks the others; its exception is
    reported as an error outcome.

    Args:
        links: Direct-class links
        process: Coroutine function resolving one link

    Returns:
        Outcomes in the same order as ``links``
    """
    results = await asyncio.gather(*(process(link) for link in links), return_exceptions=True)

    outcomes = []
    for link, result in zip(links, results):
        if isinstance(result, BaseException):
            error_msg = f"{type(result).__name__}: {result}"
            logger.error(f"Direct link {link.id} raised: {error_msg}")
            outcomes.append(LinkOutcome(lid=link.id, status="error", error=error_msg))
        else:
            outcomes.append(result)
    return outcomes


@dataclass
class SequentialRun:
    """What the sequential executor did in one invocation."""

    outcomes: list[LinkOutcome] = field(default_factory=list)
    deferred: list[Link] = field(default_factory=list)


class SequentialBypassExecutor:
    """Processes timer-class links one at a time within a wall-clock budget.

    The budget is checked before each link starts. Once it is exceeded, every
    link not yet started is handed to ``defer`` in one batch and the run stops.
    """

    def __init__(
        self,
        process: ProcessFn,
        defer: DeferFn,
        time_budget: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.process = process
        self.defer = defer
        self.time_budget = time_budget
        self.clock = clock

    async def run(self, links: Sequence[Link], started_at: float | None = None) -> SequentialRun:
        """Run the links in order.

        Args:
            links: Timer-class links in original order
            started_at: Clock reading at the start of the invocation (default: now)

        Returns:
            SequentialRun with the outcomes of started links and the deferred links
        """
        if started_at is None:
            started_at = self.clock()

        run = SequentialRun()
        for index, link in enumerate(links):
            elapsed = self.clock() - started_at
            if elapsed > self.time_budget:
                run.deferred = list(links[index:])
                logger.info(
                    f"Time budget of {self.time_budget:g}s exceeded after {elapsed:.1f}s, "
                    f"deferring {len(run.deferred)} link(s)"
                )
                await self.defer(run.deferred)
                break

            try:
                run.outcomes.append(await self.process(link))
            except Exception as e:
                error_msg = f"{type(e).__name__}: {e}"
                logger.error(f"Timer link {link.id} raised: {error_msg}")
                run.outcomes.append(LinkOutcome(lid=link.id, status="error", error=error_msg))

        return run
