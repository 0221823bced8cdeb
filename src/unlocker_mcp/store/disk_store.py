"""Task store backed by diskcache.

Documents live in a single ``diskcache.Cache``:

- ``task:<id>`` holds the task document (without its counters)
- ``task:<id>:<field>`` holds each counter, updated with ``Cache.incr``
- ``result:<id>:<lid>`` holds one result record, tagged with the task id
- ``task:<id>:results`` lists the lids that have a result record

``Cache.incr`` is atomic across threads and processes, so concurrent
resolutions for the same task never lose an increment.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import diskcache

from unlocker_mcp.cache_manager import get_data_directory
from unlocker_mcp.models import ResultRecord, Task
from unlocker_mcp.store.base import TaskNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COUNTER_FIELDS = frozenset({"completed_links_count"})


def _task_key(task_id: str) -> str:
    return f"task:{task_id}"


def _counter_key(task_id: str, field: str) -> str:
    return f"task:{task_id}:{field}"


def _result_key(task_id: str, lid: int | str) -> str:
    return f"result:{task_id}:{lid}"


def _result_index_key(task_id: str) -> str:
    return f"task:{task_id}:results"


class DiskTaskStore:
    """TaskStore implementation persisting documents with diskcache."""

    def __init__(self, directory: str | Path | None = None) -> None:
        """Open (or create) the store.

        Args:
            directory: Store directory (default: $DATA_DIR/tasks)
        """
        if directory is None:
            directory = get_data_directory("tasks")

        self.directory = Path(directory)
        # No size limit: evicting task documents would lose progress
        self.cache = diskcache.Cache(
            directory=str(directory),
            size_limit=2**40,
            eviction_policy="none",
        )
        logger.info(f"DiskTaskStore opened at {self.directory}")

    async def _run(self, func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    # ------------------------------------------------------------------
    # Capabilities used by the pipeline
    # ------------------------------------------------------------------

    def _get_task_sync(self, task_id: str) -> Task:
        doc = self.cache.get(_task_key(task_id))
        if doc is None:
            raise TaskNotFoundError(task_id)
        counters = {
            field: self.cache.get(_counter_key(task_id, field), 0)
            for field in COUNTER_FIELDS
        }
        return Task.model_validate({**doc, **counters})

    async def get_task(self, task_id: str) -> Task:
        return await self._run(lambda: self._get_task_sync(task_id))

    def _update_task_fields_sync(self, task_id: str, fields: dict[str, Any]) -> None:
        key = _task_key(task_id)
        with self.cache.transact():
            doc = self.cache.get(key)
            if doc is None:
                raise TaskNotFoundError(task_id)
            for field in COUNTER_FIELDS & fields.keys():
                self.cache.set(_counter_key(task_id, field), int(fields[field]))
            doc.update({k: v for k, v in fields.items() if k not in COUNTER_FIELDS})
            self.cache.set(key, doc)

    async def update_task_fields(self, task_id: str, fields: dict[str, Any]) -> None:
        await self._run(lambda: self._update_task_fields_sync(task_id, fields))

    def _upsert_result_sync(
        self, task_id: str, lid: int | str, record: ResultRecord
    ) -> ResultRecord | None:
        key = _result_key(task_id, lid)
        index_key = _result_index_key(task_id)
        with self.cache.transact():
            if _task_key(task_id) not in self.cache:
                raise TaskNotFoundError(task_id)
            value = self.cache.get(key)
            previous = ResultRecord.model_validate(value) if value is not None else None
            # A deferral never replaces a counted outcome
            if previous is not None and previous.is_counted and not record.is_counted:
                return previous
            self.cache.set(key, record.model_dump(mode="json"), tag=task_id)
            lids = self.cache.get(index_key, [])
            if str(lid) not in lids:
                self.cache.set(index_key, [*lids, str(lid)], tag=task_id)
        return previous

    async def upsert_result(
        self, task_id: str, lid: int | str, record: ResultRecord
    ) -> ResultRecord | None:
        return await self._run(lambda: self._upsert_result_sync(task_id, lid, record))

    def _increment_field_sync(self, task_id: str, field: str, delta: int) -> int:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"Field is not a counter: {field}")
        if _task_key(task_id) not in self.cache:
            raise TaskNotFoundError(task_id)
        return self.cache.incr(_counter_key(task_id, field), delta, default=0, retry=True)

    async def increment_field(self, task_id: str, field: str, delta: int = 1) -> int:
        return await self._run(lambda: self._increment_field_sync(task_id, field, delta))

    def _list_results_sync(self, task_id: str) -> list[ResultRecord]:
        records = []
        for lid in self.cache.get(_result_index_key(task_id), []):
            value = self.cache.get(_result_key(task_id, lid))
            if value is not None:
                records.append(ResultRecord.model_validate(value))
        return records

    async def list_results(self, task_id: str) -> list[ResultRecord]:
        return await self._run(lambda: self._list_results_sync(task_id))

    # ------------------------------------------------------------------
    # Seeding and operator actions
    # ------------------------------------------------------------------

    def _create_task_sync(self, task: Task) -> None:
        doc = task.model_dump(mode="json", exclude=set(COUNTER_FIELDS))
        if not doc.get("created_at"):
            doc["created_at"] = datetime.now(timezone.utc).isoformat()
        with self.cache.transact():
            self.cache.set(_task_key(task.id), doc)
            for field in COUNTER_FIELDS:
                self.cache.set(_counter_key(task.id, field), getattr(task, field))

    async def create_task(self, task: Task) -> None:
        await self._run(lambda: self._create_task_sync(task))

    def _delete_task_sync(self, task_id: str) -> bool:
        existed = self.cache.delete(_task_key(task_id))
        for field in COUNTER_FIELDS:
            self.cache.delete(_counter_key(task_id, field))
        removed = self.cache.evict(task_id)
        logger.info(f"Deleted task {task_id} ({removed} result records)")
        return existed

    async def delete_task(self, task_id: str) -> bool:
        return await self._run(lambda: self._delete_task_sync(task_id))

    def close(self) -> None:
        self.cache.close()


# Global store instance
_store: DiskTaskStore | None = None


def get_store() -> DiskTaskStore:
    """Get or create the global task store instance."""
    global _store

    if _store is None:
        _store = DiskTaskStore()

    return _store
