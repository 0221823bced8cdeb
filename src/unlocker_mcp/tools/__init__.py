"""MCP solve tools and entry point business logic.

This module provides the link-resolution entry points:
- solve_task: batch resolution of a stored task, returning aggregate counts
- stream_solve: streaming resolution emitting NDJSON progress events
- get_task: read-through view of a task's progress

The tools module follows a router -> service pattern:
- router.py: MCP tool definitions and HTTP route handlers
- service.py: Business logic for solving, streaming and task views
"""

from unlocker_mcp.tools.router import (
    api_solve_task,
    api_stream_solve,
    api_task_get,
    get_task_tool,
    register_solve_tools,
    solve_task_tool,
)
from unlocker_mcp.tools.service import (
    get_task_view,
    parse_links,
    solve_task,
    stream_solve_events,
)

__all__ = [
    # MCP tool functions
    "solve_task_tool",
    "get_task_tool",
    # Registration functions
    "register_solve_tools",
    # HTTP route handlers
    "api_solve_task",
    "api_stream_solve",
    "api_task_get",
    # Service functions
    "solve_task",
    "stream_solve_events",
    "get_task_view",
    "parse_links",
]
