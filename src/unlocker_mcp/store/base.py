"""Task store interface consumed by the resolution pipeline."""

from __future__ import annotations

from typing import Any, Protocol

from unlocker_mcp.models import ResultRecord, Task


class TaskNotFoundError(LookupError):
    """Raised when a task id has no document in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskStore(Protocol):
    """Document store capabilities the pipeline depends on."""

    async def get_task(self, task_id: str) -> Task:
        """Fetch a task, raising TaskNotFoundError if it does not exist."""
        ...

    async def update_task_fields(self, task_id: str, fields: dict[str, Any]) -> None:
        """Merge top-level fields into the task document."""
        ...

    async def upsert_result(
        self, task_id: str, lid: int | str, record: ResultRecord
    ) -> ResultRecord | None:
        """Write the result record for (task_id, lid) and return the one it replaced.

        A deferred record does not replace a counted one; the counted record
        is kept and returned.
        """
        ...

    async def increment_field(self, task_id: str, field: str, delta: int = 1) -> int:
        """Atomically add delta to a numeric task field and return the new value."""
        ...

    async def list_results(self, task_id: str) -> list[ResultRecord]:
        """List every result record stored for a task."""
        ...
