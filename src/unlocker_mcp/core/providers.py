"""Resolver, chain and pipeline initialization for the unlocker server."""

from __future__ import annotations

from unlocker_mcp.admin.service import SOLVER_API, TIMER_API, get_config
from unlocker_mcp.core.chain import ResolverChain
from unlocker_mcp.core.pipeline import LinkPipeline
from unlocker_mcp.core.stages import Stage, build_stage_table
from unlocker_mcp.resolvers import HttpResolver, Resolver
from unlocker_mcp.store import TaskStore, get_store

# Solver paths under SOLVER_API, by resolver name
SOLVER_PATHS = {
    "hubcdn": "/hubcdn",
    "gadgetsweb": "/gadgetsweb",
    "hblinks": "/hblinks",
    "hubdrive": "/hubdrive",
    "hubcloud": "/hubcloud",
}

_resolvers: dict[str, Resolver] | None = None
_resolver_settings: tuple | None = None


def _current_settings() -> tuple:
    return (
        get_config("stage_timeout"),
        get_config("stage_max_retries"),
        get_config("cache_enabled"),
    )


def get_resolvers() -> dict[str, Resolver]:
    """Get the HTTP resolvers, rebuilding them when their config changed.

    Returns:
        Resolvers keyed by name
    """
    global _resolvers, _resolver_settings

    settings = _current_settings()
    if _resolvers is None or settings != _resolver_settings:
        timeout, max_retries, cache_enabled = settings
        options = {"timeout": timeout, "max_retries": max_retries, "cache_enabled": cache_enabled}
        resolvers: dict[str, Resolver] = {
            name: HttpResolver(name, f"{SOLVER_API.rstrip('/')}{path}", **options)
            for name, path in SOLVER_PATHS.items()
        }
        resolvers["timer"] = HttpResolver("timer", f"{TIMER_API.rstrip('/')}/solve", **options)
        _resolvers = resolvers
        _resolver_settings = settings

    return _resolvers


def get_stage_table() -> list[Stage]:
    """Build the stage table from the current resolvers and domain config."""
    resolvers = get_resolvers()
    return build_stage_table(
        fast_path=resolvers["hubcdn"],
        timer_bypass=resolvers["timer"],
        gadgetsweb=resolvers["gadgetsweb"],
        hblinks=resolvers["hblinks"],
        hubdrive=resolvers["hubdrive"],
        hubcloud=resolvers["hubcloud"],
        timer_domains=get_config("timer_domains"),
        target_domains=get_config("target_domains"),
    )


def get_pipeline(store: TaskStore | None = None) -> LinkPipeline:
    """Create a pipeline wired to the default resolvers and store.

    Args:
        store: Task store to use (default: the global disk store)

    Returns:
        LinkPipeline using the current runtime configuration
    """
    return LinkPipeline(
        ResolverChain(get_stage_table()),
        store if store is not None else get_store(),
        timer_domains=get_config("timer_domains"),
        link_timeout=get_config("link_timeout"),
        time_budget=get_config("time_budget"),
    )
