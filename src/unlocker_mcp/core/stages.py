"""Resolver stage table.

The chain walks an ordered list of stages. Each stage pairs a domain
predicate with the resolver that unlocks matching links, plus a kind that
tells the chain what to do with the resolver's answer:

- ``FAST_PATH``: one call, terminal either way
- ``BYPASS_LOOP``: repeated calls chasing intermediate links (bounded)
- ``REWRITE``: success replaces the current link, failure is terminal
- ``FINAL``: terminal, carries the chosen variant metadata
- ``PASS_THROUGH``: no call, the current link is already final
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from unlocker_mcp.resolvers import Resolver

FAST_PATH_DOMAINS = ("hubcdn.fans",)
GADGETSWEB_DOMAINS = ("gadgetsweb",)
HBLINKS_DOMAINS = ("hblinks",)
HUBDRIVE_DOMAINS = ("hubdrive",)
FINAL_DOMAINS = ("hubcloud", "hubcdn")
PASS_THROUGH_DOMAINS = ("gdflix", "drivehub")

MAX_BYPASS_ITERATIONS = 3


class StageKind(str, Enum):
    FAST_PATH = "fast_path"
    BYPASS_LOOP = "bypass_loop"
    REWRITE = "rewrite"
    FINAL = "final"
    PASS_THROUGH = "pass_through"


@dataclass(frozen=True)
class DomainMatcher:
    """Predicate matching URLs that contain any of the given domain substrings."""

    domains: tuple[str, ...]

    @classmethod
    def of(cls, domains: Iterable[str]) -> DomainMatcher:
        return cls(tuple(d.lower() for d in domains if d))

    def __call__(self, url: str | None) -> bool:
        if not url:
            return False
        url_lower = url.lower()
        return any(domain in url_lower for domain in self.domains)


@dataclass(frozen=True)
class Stage:
    """One entry of the stage table."""

    name: str
    kind: StageKind
    matches: DomainMatcher
    resolver: Resolver | None = None
    label: str = ""
    # Bypass loop only: per-domain resolver overrides, checked in order
    routes: tuple[tuple[DomainMatcher, Resolver], ...] = field(default=())
    # Bypass loop only: stop iterating once the link matches
    stop_on: DomainMatcher | None = None
    max_iterations: int = 1

    def pick_resolver(self, url: str) -> Resolver | None:
        """Return the resolver this stage should call for a URL."""
        for matcher, resolver in self.routes:
            if matcher(url):
                return resolver
        return self.resolver

    def route_name(self, url: str) -> str:
        resolver = self.pick_resolver(url)
        return getattr(resolver, "name", self.name) if resolver else self.name


def build_stage_table(
    *,
    fast_path: Resolver,
    timer_bypass: Resolver,
    gadgetsweb: Resolver,
    hblinks: Resolver,
    hubdrive: Resolver,
    hubcloud: Resolver,
    timer_domains: Sequence[str],
    target_domains: Sequence[str],
) -> list[Stage]:
    """Build the ordered stage table from its resolvers and domain sets.

    Args:
        fast_path: Resolver turning hubcdn.fans links directly into final links
        timer_bypass: Remote timer bypass used by the bypass loop
        gadgetsweb: Native gadgetsweb resolver used by the bypass loop
        hblinks: Secondary stage A resolver
        hubdrive: Secondary stage B resolver
        hubcloud: Final stage resolver returning the best variant
        timer_domains: Domains eligible for the bypass loop
        target_domains: Domains that end the bypass loop

    Returns:
        Stages in evaluation order
    """
    return [
        Stage(
            name="fast_path",
            kind=StageKind.FAST_PATH,
            matches=DomainMatcher.of(FAST_PATH_DOMAINS),
            resolver=fast_path,
            label="HubCDN.fans detected, direct solve",
        ),
        Stage(
            name="bypass_loop",
            kind=StageKind.BYPASS_LOOP,
            matches=DomainMatcher.of(timer_domains),
            resolver=timer_bypass,
            label="Timer bypass",
            routes=((DomainMatcher.of(GADGETSWEB_DOMAINS), gadgetsweb),),
            stop_on=DomainMatcher.of(target_domains),
            max_iterations=MAX_BYPASS_ITERATIONS,
        ),
        Stage(
            name="hblinks",
            kind=StageKind.REWRITE,
            matches=DomainMatcher.of(HBLINKS_DOMAINS),
            resolver=hblinks,
            label="HBLinks solving",
        ),
        Stage(
            name="hubdrive",
            kind=StageKind.REWRITE,
            matches=DomainMatcher.of(HUBDRIVE_DOMAINS),
            resolver=hubdrive,
            label="HubDrive solving",
        ),
        Stage(
            name="hubcloud",
            kind=StageKind.FINAL,
            matches=DomainMatcher.of(FINAL_DOMAINS),
            resolver=hubcloud,
            label="HubCloud solving",
        ),
        Stage(
            name="pass_through",
            kind=StageKind.PASS_THROUGH,
            matches=DomainMatcher.of(PASS_THROUGH_DOMAINS),
            label="GDflix/DriveHub resolved",
        ),
    ]
