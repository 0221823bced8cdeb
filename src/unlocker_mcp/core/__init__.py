"""Core link-resolution pipeline.

This module provides the resolution machinery used by the entry points:
- Stage table and resolver chain (the per-link state machine)
- Retry supervisor with the per-link timeout race
- Persistence adapter with completion consensus
- Dispatcher plus the direct and sequential bypass executors
- Streaming variant emitting ordered progress events

The core module is imported by the tools module and provides the single
source of truth for the resolvers and pipeline configuration.
"""

from unlocker_mcp.core.chain import NO_MATCH_MESSAGE, ChainResult, LinkLog, ResolverChain
from unlocker_mcp.core.dispatcher import RoutedLinks, merge_link_states, route_links
from unlocker_mcp.core.executors import SequentialBypassExecutor, SequentialRun, run_direct
from unlocker_mcp.core.persistence import PersistenceAdapter
from unlocker_mcp.core.pipeline import DEFAULT_ACTOR, LinkPipeline, PipelineRun
from unlocker_mcp.core.providers import get_pipeline, get_resolvers, get_stage_table
from unlocker_mcp.core.stages import DomainMatcher, Stage, StageKind, build_stage_table
from unlocker_mcp.core.streaming import EventChannel, encode_event, stream_solve
from unlocker_mcp.core.supervisor import MAX_ATTEMPTS, RetrySupervisor

__all__ = [
    # Stage table and chain
    "DomainMatcher",
    "Stage",
    "StageKind",
    "build_stage_table",
    "ResolverChain",
    "ChainResult",
    "LinkLog",
    "NO_MATCH_MESSAGE",
    # Supervision and persistence
    "RetrySupervisor",
    "MAX_ATTEMPTS",
    "PersistenceAdapter",
    # Routing and execution
    "RoutedLinks",
    "route_links",
    "merge_link_states",
    "run_direct",
    "SequentialBypassExecutor",
    "SequentialRun",
    "LinkPipeline",
    "PipelineRun",
    "DEFAULT_ACTOR",
    # Streaming
    "EventChannel",
    "encode_event",
    "stream_solve",
    # Defaults
    "get_pipeline",
    "get_resolvers",
    "get_stage_table",
]
