"""Tests for the diskcache task store."""

from __future__ import annotations

import pytest

from unlocker_mcp.models import ResultRecord
from unlocker_mcp.store import TaskNotFoundError


class TestDiskTaskStore:
    """Tests for DiskTaskStore."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store, make_task) -> None:
        """Test that a created task reads back with a creation timestamp."""
        await store.create_task(make_task("t1", [(1, "https://hubcloud.example/1")]))

        task = await store.get_task("t1")

        assert task.id == "t1"
        assert task.links[0].link == "https://hubcloud.example/1"
        assert task.completed_links_count == 0
        assert task.created_at is not None

    @pytest.mark.asyncio
    async def test_missing_task(self, store) -> None:
        """Test that unknown tasks raise TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError) as exc_info:
            await store.get_task("nope")
        assert exc_info.value.task_id == "nope"

        with pytest.raises(TaskNotFoundError):
            await store.update_task_fields("nope", {"status": "processing"})
        with pytest.raises(TaskNotFoundError):
            await store.increment_field("nope", "completed_links_count")

    @pytest.mark.asyncio
    async def test_update_fields_merges(self, store, make_task) -> None:
        """Test that updates merge into the stored document."""
        await store.create_task(make_task("t1", [(1, "a")]))

        await store.update_task_fields("t1", {"status": "processing", "extracted_by": "Cron"})

        task = await store.get_task("t1")
        assert task.status == "processing"
        assert task.extracted_by == "Cron"
        assert len(task.links) == 1

    @pytest.mark.asyncio
    async def test_increment_is_cumulative(self, store, make_task) -> None:
        """Test that increments accumulate and return the new value."""
        await store.create_task(make_task("t1", [(1, "a")]))

        assert await store.increment_field("t1", "completed_links_count") == 1
        assert await store.increment_field("t1", "completed_links_count", 2) == 3
        assert (await store.get_task("t1")).completed_links_count == 3

    @pytest.mark.asyncio
    async def test_increment_rejects_non_counter(self, store, make_task) -> None:
        """Test that only counter fields can be incremented."""
        await store.create_task(make_task("t1", [(1, "a")]))
        with pytest.raises(ValueError):
            await store.increment_field("t1", "status")

    @pytest.mark.asyncio
    async def test_upsert_returns_previous(self, store, make_task) -> None:
        """Test that upserts replace the record and hand back the old one."""
        await store.create_task(make_task("t1", [(1, "a")]))
        first = ResultRecord(lid=1, link_url="a", status="error")
        second = ResultRecord(lid=1, link_url="a", status="done", final_link="b")

        assert await store.upsert_result("t1", 1, first) is None
        previous = await store.upsert_result("t1", 1, second)

        assert previous.status == "error"
        results = await store.list_results("t1")
        assert [r.status for r in results] == ["done"]

    @pytest.mark.asyncio
    async def test_deferred_upsert_keeps_counted_record(self, store, make_task) -> None:
        """Test that a deferred record is not written over a counted one."""
        await store.create_task(make_task("t1", [(1, "a")]))
        await store.upsert_result("t1", 1, ResultRecord(lid=1, link_url="a", status="done"))

        previous = await store.upsert_result(
            "t1", 1, ResultRecord(lid=1, link_url="a", status="deferred")
        )

        assert previous.status == "done"
        assert [r.status for r in await store.list_results("t1")] == ["done"]

    @pytest.mark.asyncio
    async def test_upsert_unknown_task_writes_nothing(self, store, make_task) -> None:
        """Test that results for a missing task are rejected and never inherited."""
        with pytest.raises(TaskNotFoundError):
            await store.upsert_result("ghost", 1, ResultRecord(lid=1, link_url="a"))

        await store.create_task(make_task("ghost", [(1, "a")]))

        assert await store.list_results("ghost") == []

    @pytest.mark.asyncio
    async def test_results_scoped_to_task(self, store, make_task) -> None:
        """Test that listing results only returns the task's own records."""
        await store.create_task(make_task("t1", [(1, "a")]))
        await store.create_task(make_task("t10", [(1, "a")]))
        await store.upsert_result("t1", 1, ResultRecord(lid=1, link_url="a"))
        await store.upsert_result("t10", 1, ResultRecord(lid=1, link_url="a"))

        assert len(await store.list_results("t1")) == 1

    @pytest.mark.asyncio
    async def test_delete_task_removes_results(self, store, make_task) -> None:
        """Test that deleting a task removes its document and results."""
        await store.create_task(make_task("t1", [(1, "a")]))
        await store.upsert_result("t1", 1, ResultRecord(lid=1, link_url="a"))

        assert await store.delete_task("t1")

        with pytest.raises(TaskNotFoundError):
            await store.get_task("t1")
        assert await store.list_results("t1") == []
