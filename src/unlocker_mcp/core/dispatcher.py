"""Routing of a task's pending links into the sequential and direct classes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from unlocker_mcp.core.stages import DomainMatcher
from unlocker_mcp.models import DEFERRED, Link, ResultRecord

PENDING_STATUSES = frozenset({"", "pending", "processing"})


@dataclass
class RoutedLinks:
    """Pending links split by routing class, each in original order."""

    timer_class: list[Link] = field(default_factory=list)
    direct_class: list[Link] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.timer_class) + len(self.direct_class)


def is_pending(link: Link) -> bool:
    return (link.status or "") in PENDING_STATUSES


def route_links(links: Iterable[Link], timer_domains: Sequence[str]) -> RoutedLinks:
    """Split pending links into the timer (sequential) and direct classes.

    Links whose status is already terminal are left out.

    Args:
        links: Task links in original order
        timer_domains: Domain substrings that require the timer bypass

    Returns:
        RoutedLinks with disjoint timer and direct classes
    """
    needs_bypass = DomainMatcher.of(timer_domains)
    routed = RoutedLinks()
    for link in links:
        if not is_pending(link):
            continue
        if needs_bypass(link.link):
            routed.timer_class.append(link)
        else:
            routed.direct_class.append(link)
    return routed


def merge_link_states(links: Sequence[Link], records: Iterable[ResultRecord]) -> list[Link]:
    """Overlay stored result records onto a task's links.

    A deferred record puts its link back to pending so the next run resumes it.
    """
    by_lid = {str(record.lid): record for record in records}
    merged = []
    for link in links:
        record = by_lid.get(str(link.id))
        if record is None:
            merged.append(link)
        elif record.status == DEFERRED:
            merged.append(link.model_copy(update={"status": "pending", "logs": record.logs}))
        else:
            merged.append(
                link.model_copy(
                    update={
                        "status": "done" if record.is_success else "error",
                        "final_link": record.final_link or link.final_link,
                        "logs": record.logs,
                        "best_button_name": record.best_button_name,
                        "all_available_buttons": record.all_available_buttons,
                    }
                )
            )
    return merged
