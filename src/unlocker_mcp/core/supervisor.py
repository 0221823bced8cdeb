"""Retry supervisor: per-link timeout race plus a single retry from the original URL."""

from __future__ import annotations

import asyncio
import logging
import time

from unlocker_mcp.core.chain import ChainResult, EventSink, LinkLog, ResolverChain
from unlocker_mcp.core.persistence import PersistenceAdapter
from unlocker_mcp.metrics import record_resolution
from unlocker_mcp.models import Link, LinkOutcome, ResultRecord

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class RetrySupervisor:
    """Runs the resolver chain for one link and persists the final outcome once."""

    def __init__(
        self,
        chain: ResolverChain,
        persistence: PersistenceAdapter,
        link_timeout: float,
    ) -> None:
        self.chain = chain
        self.persistence = persistence
        self.link_timeout = link_timeout

    async def run_attempt(self, url: str, log: LinkLog) -> ChainResult:
        """Race one chain execution against the per-link timeout.

        On timeout the wait is abandoned; a blocking solver call may keep running
        in its worker thread but its result is discarded and never persisted.
        """
        try:
            return await asyncio.wait_for(self.chain.run(url, log), timeout=self.link_timeout)
        except asyncio.TimeoutError:
            message = f"Timed out after {self.link_timeout:g}s"
            log.add(message, "error")
            return ChainResult.failed(message)

    async def process(
        self,
        link: Link,
        task_id: str | None = None,
        extracted_by: str | None = None,
        sink: EventSink | None = None,
    ) -> LinkOutcome:
        """Resolve a link with at most two attempts and persist the result.

        Args:
            link: Link to resolve
            task_id: Task to persist into; nothing is persisted when None
            extracted_by: Actor tag stored with the result
            sink: Optional event sink receiving log and status events

        Returns:
            LinkOutcome of the final attempt
        """
        log = LinkLog(link.id, sink)
        started = time.monotonic()

        result = ChainResult.failed("Not attempted")
        attempts = 0
        for attempt in range(1, MAX_ATTEMPTS + 1):
            if attempt > 1:
                log.add(f"Auto-retrying (attempt {attempt}/{MAX_ATTEMPTS})...", "warn")
            attempts = attempt
            # Every attempt restarts from the original URL
            result = await self.run_attempt(link.link, log)
            if result.success:
                break

        elapsed_ms = (time.monotonic() - started) * 1000
        record_resolution(
            lid=link.id,
            url=link.link,
            success=result.success,
            elapsed_ms=round(elapsed_ms, 2),
            attempts=attempts,
            error=result.error,
        )
        if not result.success:
            logger.info(f"Link {link.id} failed after {attempts} attempt(s): {result.error}")

        log.emit(
            {
                "id": link.id,
                "status": result.status,
                "final": result.final_link,
                "best_button_name": result.best_button_name,
            }
        )

        if task_id is not None:
            await self.persistence.write_result(
                task_id,
                link.id,
                ResultRecord(
                    lid=link.id,
                    link_url=link.link,
                    final_link=result.final_link,
                    status=result.status,
                    error=result.error,
                    logs=log.entries,
                    best_button_name=result.best_button_name,
                    all_available_buttons=result.all_available_buttons,
                    extracted_by=extracted_by,
                ),
            )

        log.emit({"id": link.id, "status": "finished"})

        return LinkOutcome(
            lid=link.id,
            status=result.status,
            final_link=result.final_link,
            error=result.error,
            attempts=attempts,
            best_button_name=result.best_button_name,
            all_available_buttons=result.all_available_buttons,
        )
