"""Tests for the task view cache and the resolution cache manager."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import FakeClock

from unlocker_mcp.cache import DEFAULT_GRACE_SECONDS, TaskViewCache
from unlocker_mcp.cache_manager import (
    DEFAULT_TTL,
    STABLE_LINK_TTL,
    TIMER_LINK_TTL,
    CacheManager,
    get_data_directory,
)
from unlocker_mcp.models import ResultRecord
from unlocker_mcp.resolvers import StageResult
from unlocker_mcp.store import TaskNotFoundError


class TestTaskViewCache:
    """Tests for TaskViewCache."""

    def test_observe_requires_started_stream(self) -> None:
        """Test that events for unknown tasks are ignored."""
        views = TaskViewCache(clock=FakeClock())
        views.observe("t1", {"id": 1, "msg": "hello", "type": "info"})
        assert "t1" not in views

    def test_evicted_after_grace_window(self) -> None:
        """Test that a view lives for the grace window after its stream ends."""
        clock = FakeClock()
        views = TaskViewCache(clock=clock)
        views.start_stream("t1")
        views.end_stream("t1")

        clock.advance(DEFAULT_GRACE_SECONDS - 1)
        assert "t1" in views
        clock.advance(1)
        assert "t1" not in views

    def test_ended_streams_evicted_without_reads(self) -> None:
        """Test that starting and ending streams alone keeps the view map bounded."""
        clock = FakeClock()
        views = TaskViewCache(clock=clock)

        for n in range(50):
            views.start_stream(f"t{n}")
            views.end_stream(f"t{n}")
            clock.advance(DEFAULT_GRACE_SECONDS)

        assert len(views._views) <= 2

    def test_streaming_view_never_expires(self) -> None:
        """Test that a live stream keeps its view regardless of time."""
        clock = FakeClock()
        views = TaskViewCache(clock=clock)
        views.start_stream("t1")

        clock.advance(3600)

        assert "t1" in views

    @pytest.mark.asyncio
    async def test_live_state_overrides_pending_links(self, store, make_task) -> None:
        """Test that in-flight progress shows on links the store has not written yet."""
        await store.create_task(make_task("t1", [(1, "https://hubcloud.example/1")]))
        views = TaskViewCache(clock=FakeClock())
        views.start_stream("t1")
        views.observe("t1", {"id": 1, "msg": "HubCloud solving...", "type": "info"})

        task = await views.get_task(store, "t1")

        assert task.status == "processing"
        assert task.links[0].status == "processing"
        assert task.links[0].logs[0].msg == "HubCloud solving..."

    @pytest.mark.asyncio
    async def test_finished_without_status_is_error(self, store, make_task) -> None:
        """Test that a link finishing with no terminal status reads as error."""
        await store.create_task(make_task("t1", [(1, "https://hubcloud.example/1")]))
        views = TaskViewCache(clock=FakeClock())
        views.start_stream("t1")
        views.observe("t1", {"id": 1, "status": "finished"})
        views.end_stream("t1")

        task = await views.get_task(store, "t1")

        assert task.links[0].status == "error"

    @pytest.mark.asyncio
    async def test_deferred_link_reads_pending(self, store, make_task) -> None:
        """Test that a deferred link finishes as pending."""
        await store.create_task(make_task("t1", [(1, "https://ngwin.example/1")]))
        views = TaskViewCache(clock=FakeClock())
        views.start_stream("t1")
        views.observe("t1", {"id": 1, "status": "deferred"})
        views.observe("t1", {"id": 1, "status": "finished"})

        task = await views.get_task(store, "t1")

        assert task.links[0].status == "pending"

    @pytest.mark.asyncio
    async def test_stored_terminal_result_wins_while_streaming(self, store, make_task) -> None:
        """Test that a stored result is not overridden by a stale live state."""
        await store.create_task(make_task("t1", [(1, "https://hubcloud.example/1")]))
        await store.upsert_result(
            "t1",
            1,
            ResultRecord(
                lid=1,
                link_url="https://hubcloud.example/1",
                final_link="https://files.example/1",
                status="done",
            ),
        )
        views = TaskViewCache(clock=FakeClock())
        views.start_stream("t1")
        views.observe("t1", {"id": 1, "msg": "HubCloud solving...", "type": "info"})

        task = await views.get_task(store, "t1")

        assert task.links[0].status == "done"
        assert task.links[0].final_link == "https://files.example/1"

    @pytest.mark.asyncio
    async def test_deleted_task_evicts_view(self, store, make_task) -> None:
        """Test that reading a deleted task drops its view."""
        await store.create_task(make_task("t1", [(1, "https://hubcloud.example/1")]))
        views = TaskViewCache(clock=FakeClock())
        views.start_stream("t1")
        await store.delete_task("t1")

        with pytest.raises(TaskNotFoundError):
            await views.get_task(store, "t1")
        assert "t1" not in views


class TestCacheManager:
    """Tests for the resolution cache."""

    def test_data_directory_from_env(self, tmp_path: Path) -> None:
        """Test that DATA_DIR selects the data directory."""
        with patch.dict("os.environ", {"DATA_DIR": str(tmp_path / "custom")}):
            path = get_data_directory("resolutions")
        assert path == tmp_path / "custom" / "resolutions"
        assert path.is_dir()

    def test_ttl_by_link_family(self, tmp_path: Path) -> None:
        """Test that stable and timer links get their own TTLs."""
        with CacheManager(cache_dir=tmp_path / "c") as cache:
            assert cache.get_ttl_for_url("https://new.gdflix.example/f") == STABLE_LINK_TTL
            assert cache.get_ttl_for_url("https://ngwin.example/f") == TIMER_LINK_TTL
            assert cache.get_ttl_for_url("https://hubcloud.example/f") == DEFAULT_TTL

    def test_cache_key_depends_on_resolver(self, tmp_path: Path) -> None:
        """Test that keys differ per resolver for the same URL."""
        with CacheManager(cache_dir=tmp_path / "c") as cache:
            a = cache.generate_cache_key(url="https://x.example", resolver="hubcloud")
            b = cache.generate_cache_key(url="https://x.example", resolver="hblinks")
            assert a != b
            assert a == cache.generate_cache_key(url="https://x.example", resolver="hubcloud")

    def test_put_get_clear(self, tmp_path: Path) -> None:
        """Test storing a stage result per resolver and clearing it."""
        url = "https://hubcloud.example/1"
        with CacheManager(cache_dir=tmp_path / "c") as cache:
            result = StageResult(success=True, url="https://files.example/1")
            assert cache.put_result("hubcloud", url, result)
            assert cache.get_result("hubcloud", url) == result
            assert cache.get_result("hblinks", url) is None

            assert cache.clear() == 1

            assert cache.get_result("hubcloud", url) is None
            assert cache.get_stats()["entry_count"] == 0

    def test_failures_not_stored(self, tmp_path: Path) -> None:
        """Test that failed results are never cached."""
        with CacheManager(cache_dir=tmp_path / "c") as cache:
            assert not cache.put_result("hubcloud", "https://x.example", StageResult.failure("no"))
            assert cache.get_stats()["entry_count"] == 0
