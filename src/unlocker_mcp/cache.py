"""Read-through task view cache overlaying in-flight stream state on store reads."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from unlocker_mcp.core.dispatcher import merge_link_states
from unlocker_mcp.models import LogEntry, Task
from unlocker_mcp.store import TaskNotFoundError, TaskStore

logger = logging.getLogger(__name__)

# How long stream state keeps overriding the store after the stream ends
DEFAULT_GRACE_SECONDS = 15.0

TERMINAL_LINK_STATUSES = ("done", "error")


@dataclass
class LiveLinkState:
    """Link state observed on a live stream."""

    status: str = "processing"
    final_link: str | None = None
    best_button_name: str | None = None
    logs: list[LogEntry] = field(default_factory=list)


@dataclass
class TaskView:
    """In-flight state for one task."""

    links: dict[str, LiveLinkState] = field(default_factory=dict)
    streaming: bool = True
    ended_at: float | None = None


class TaskViewCache:
    """Task views keyed by task id.

    Entries are created when a stream starts, updated from its events, and
    evicted when the task is deleted or ``grace_seconds`` after the stream ends.
    """

    def __init__(
        self,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.grace_seconds = grace_seconds
        self.clock = clock
        self._views: dict[str, TaskView] = {}

    def __contains__(self, task_id: str) -> bool:
        self._evict_expired()
        return task_id in self._views

    def start_stream(self, task_id: str) -> None:
        self._evict_expired()
        view = self._views.setdefault(task_id, TaskView())
        view.streaming = True
        view.ended_at = None

    def end_stream(self, task_id: str) -> None:
        self._evict_expired()
        view = self._views.get(task_id)
        if view is not None:
            view.streaming = False
            view.ended_at = self.clock()

    def observe(self, task_id: str, event: dict[str, Any]) -> None:
        """Apply one stream event to the task's view."""
        view = self._views.get(task_id)
        if view is None or "id" not in event:
            return

        state = view.links.setdefault(str(event["id"]), LiveLinkState())
        if "msg" in event:
            state.logs.append(LogEntry(msg=event["msg"], type=event.get("type", "info")))
        status = event.get("status")
        if status in TERMINAL_LINK_STATUSES:
            state.status = status
            state.final_link = event.get("final") or state.final_link
            state.best_button_name = event.get("best_button_name")
        elif status == "finished" and state.status not in TERMINAL_LINK_STATUSES:
            # A link that finishes without a terminal status did not resolve
            state.status = "pending" if state.status == "deferred" else "error"
        elif status == "deferred":
            state.status = "deferred"

    def evict(self, task_id: str) -> None:
        if self._views.pop(task_id, None) is not None:
            logger.debug(f"Evicted task view {task_id}")

    def _evict_expired(self) -> None:
        now = self.clock()
        expired = [
            task_id
            for task_id, view in self._views.items()
            if not view.streaming
            and view.ended_at is not None
            and now - view.ended_at >= self.grace_seconds
        ]
        for task_id in expired:
            self.evict(task_id)

    async def get_task(self, store: TaskStore, task_id: str) -> Task:
        """Read a task through the cache.

        Stored result records are merged into the task's links, then live
        stream state overrides links the store still shows as pending.

        Raises:
            TaskNotFoundError: If the task no longer exists (its view is evicted)
        """
        self._evict_expired()
        try:
            task = await store.get_task(task_id)
        except TaskNotFoundError:
            self.evict(task_id)
            raise

        links = merge_link_states(task.links, await store.list_results(task_id))

        view = self._views.get(task_id)
        if view is not None:
            merged = []
            for link in links:
                live = view.links.get(str(link.id))
                stored_pending = (link.status or "pending") in ("pending", "processing")
                if live is not None and (stored_pending or not view.streaming):
                    link = link.model_copy(
                        update={
                            "status": live.status,
                            "final_link": live.final_link or link.final_link,
                            "logs": live.logs or link.logs,
                        }
                    )
                merged.append(link)
            links = merged

        update: dict[str, Any] = {"links": links}
        if view is not None and view.streaming and task.status not in ("completed", "failed"):
            update["status"] = "processing"
        return task.model_copy(update=update)


# Global task view cache instance
_task_views = TaskViewCache()


def get_task_views() -> TaskViewCache:
    """Get the global task view cache."""
    return _task_views
