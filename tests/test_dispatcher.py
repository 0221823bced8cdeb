"""Tests for link routing and stored state merging."""

from __future__ import annotations

from unlocker_mcp.admin.service import DEFAULT_TIMER_DOMAINS
from unlocker_mcp.core.dispatcher import is_pending, merge_link_states, route_links
from unlocker_mcp.models import DEFERRED, Link, LogEntry, ResultRecord


class TestRouteLinks:
    """Tests for route_links."""

    def test_partitions_by_timer_domain(self) -> None:
        """Test that timer domains go sequential and everything else direct."""
        links = [
            Link(id=1, link="https://gadgetsweb.example/a"),
            Link(id=2, link="https://hubcloud.example/b"),
            Link(id=3, link="https://Review-Tech.example/c"),
            Link(id=4, link="https://gdflix.example/d"),
        ]

        routed = route_links(links, DEFAULT_TIMER_DOMAINS)

        assert [link.id for link in routed.timer_class] == [1, 3]
        assert [link.id for link in routed.direct_class] == [2, 4]
        assert routed.total == 4

    def test_terminal_links_excluded(self) -> None:
        """Test that done and error links are not routed."""
        links = [
            Link(id=1, link="https://hubcloud.example/a", status="done"),
            Link(id=2, link="https://hubcloud.example/b", status="error"),
            Link(id=3, link="https://hubcloud.example/c", status="processing"),
            Link(id=4, link="https://hubcloud.example/d"),
        ]

        routed = route_links(links, DEFAULT_TIMER_DOMAINS)

        assert [link.id for link in routed.direct_class] == [3, 4]
        assert routed.timer_class == []

    def test_deferred_link_is_not_pending(self) -> None:
        """Test that a raw deferred status is not itself routable."""
        assert not is_pending(Link(id=1, link="x", status="deferred"))
        assert is_pending(Link(id=1, link="x"))


class TestMergeLinkStates:
    """Tests for merge_link_states."""

    def test_records_overlay_links(self) -> None:
        """Test that result records set status, final link and variant data."""
        links = [
            Link(id=1, link="https://hubcloud.example/a"),
            Link(id=2, link="https://hubcloud.example/b"),
            Link(id=3, link="https://hubcloud.example/c"),
        ]
        records = [
            ResultRecord(
                lid=1,
                link_url="https://hubcloud.example/a",
                final_link="https://files.example/a",
                status="done",
                best_button_name="FSL Server",
            ),
            ResultRecord(lid="2", link_url="https://hubcloud.example/b", status="error"),
        ]

        merged = merge_link_states(links, records)

        assert merged[0].status == "done"
        assert merged[0].final_link == "https://files.example/a"
        assert merged[0].best_button_name == "FSL Server"
        assert merged[1].status == "error"
        assert merged[2].status is None

    def test_deferred_record_resumes_as_pending(self) -> None:
        """Test that deferred links come back as pending with their logs."""
        links = [Link(id=1, link="https://ngwin.example/a")]
        records = [
            ResultRecord(
                lid=1,
                link_url="https://ngwin.example/a",
                status=DEFERRED,
                logs=[LogEntry(msg="deferred", type="warn")],
            )
        ]

        merged = merge_link_states(links, records)

        assert merged[0].status == "pending"
        assert merged[0].logs[0].msg == "deferred"
        assert is_pending(merged[0])
