"""Persistence adapter: result writes, the completion counter and completion consensus."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from unlocker_mcp.models import ResultRecord, TaskStatus
from unlocker_mcp.store import TaskStore

logger = logging.getLogger(__name__)

COUNTER_FIELD = "completed_links_count"

TERMINAL_TASK_STATUSES = ("completed", "failed")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PersistenceAdapter:
    """Writes per-link results and promotes the task once every link is counted.

    The counter goes up once per link, the first time a counted (non-deferred)
    record lands for it. The store never lets a deferral replace a counted
    record, so a link cannot be counted twice across invocations.

    Finalization is guarded by ``count >= total`` and may run more than once
    near the boundary; every run reaches the same status. A task that is
    already completed or failed is never rewritten.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store

    async def write_result(self, task_id: str, lid: int | str, result: ResultRecord) -> bool:
        """Upsert the result for (task_id, lid) and update completion state.

        Store failures are logged and swallowed so sibling links keep going.

        Args:
            task_id: Task the link belongs to
            lid: Link id
            result: Outcome to persist

        Returns:
            True if the result record was written
        """
        if result.solved_at is None:
            result = result.model_copy(update={"solved_at": utc_now()})

        try:
            previous = await self.store.upsert_result(task_id, lid, result)
        except Exception as e:
            logger.error(f"[write_result] Failed to save result {task_id}/{lid}: {e}")
            return False

        if not result.is_counted:
            return True

        try:
            if previous is None or not previous.is_counted:
                await self.store.increment_field(task_id, COUNTER_FIELD, 1)
            await self.check_completion(task_id)
        except Exception as e:
            logger.error(f"[write_result] Task status update failed for {task_id}: {e}")

        return True

    async def check_completion(self, task_id: str) -> TaskStatus | None:
        """Set the task to completed or failed once every link is counted.

        Returns:
            The terminal status if the task is complete, otherwise None
        """
        task = await self.store.get_task(task_id)
        total_links = task.total_links
        if total_links == 0 or task.completed_links_count < total_links:
            return None

        # Status only moves forward; a finalized task keeps its outcome
        if task.status in TERMINAL_TASK_STATUSES:
            return task.status

        results = await self.store.list_results(task_id)
        any_success = any(record.is_success for record in results)
        status: TaskStatus = "completed" if any_success else "failed"

        await self.store.update_task_fields(
            task_id, {"status": status, "completed_at": utc_now()}
        )
        logger.info(
            f"Task {task_id} {status} ({task.completed_links_count}/{total_links} links counted)"
        )
        return status
