"""Streaming variant of the pipeline: progress events as an ordered channel."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

from unlocker_mcp.core.pipeline import DEFAULT_ACTOR, LinkPipeline
from unlocker_mcp.models import Link

logger = logging.getLogger(__name__)

# Keeps producers alive after their consumer goes away
_background_tasks: set[asyncio.Task[Any]] = set()


class ChannelClosedError(RuntimeError):
    """Raised when emitting into a channel whose consumer has gone away."""


class EventChannel:
    """Append-only, ordered channel of event dicts."""

    _END = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._detached = False

    def emit(self, event: dict[str, Any]) -> None:
        if self._detached:
            raise ChannelClosedError("Event consumer disconnected")
        self._queue.put_nowait(event)

    def close(self) -> None:
        self._queue.put_nowait(self._END)

    def detach(self) -> None:
        """Stop accepting events; later emits raise ChannelClosedError."""
        self._detached = True

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item


def encode_event(event: dict[str, Any]) -> bytes:
    """Serialize one event as a newline-delimited JSON line."""
    return (json.dumps(event, default=str) + "\n").encode()


async def stream_solve(
    pipeline: LinkPipeline,
    links: Sequence[Link],
    task_id: str | None = None,
    extracted_by: str | None = DEFAULT_ACTOR,
    observer: Callable[[dict[str, Any]], None] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Resolve links and yield progress events as they happen.

    The pipeline runs in its own task. If the consumer stops iterating, the
    channel is detached and the pipeline keeps running so persistence completes.

    Args:
        pipeline: Configured link pipeline
        links: Links to resolve
        task_id: Optional task to persist results into
        extracted_by: Actor tag stored with each result
        observer: Optional callback seeing every event (e.g. the task view cache)

    Yields:
        Event dicts: log lines, link status, deferred and finished markers
    """
    channel = EventChannel()

    def sink(event: dict[str, Any]) -> None:
        if observer is not None:
            try:
                observer(event)
            except Exception as e:
                logger.debug(f"Event observer failed: {e}")
        channel.emit(event)

    async def produce() -> None:
        try:
            await pipeline.run(links, task_id, extracted_by, sink=sink)
        except Exception as e:
            logger.error(f"Stream pipeline failed for task {task_id}: {e}")
        finally:
            channel.close()

    producer = asyncio.create_task(produce())
    _background_tasks.add(producer)
    producer.add_done_callback(_background_tasks.discard)

    try:
        async for event in channel:
            yield event
    finally:
        if not producer.done():
            logger.info(f"Stream consumer for task {task_id} left early; finishing in background")
            channel.detach()
