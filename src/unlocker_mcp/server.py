"""MCP server exposing the link unlocking pipeline."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from unlocker_mcp.admin import (
    api_cache_clear,
    api_config_get,
    api_config_update,
    api_stats,
    health_check,
)
from unlocker_mcp.tools import (
    api_solve_task,
    api_stream_solve,
    api_task_get,
    register_solve_tools,
)

# Stateless mode auto-creates sessions for unknown session IDs, so periodic
# triggers can call the server without an initialize handshake
mcp = FastMCP(
    "Unlocker MCP",
    instructions=(
        "Resolves a task's hosting links into final download links by driving "
        "each link through domain-specific unlocking stages. Progress is stored "
        "per link, so a task cut short by its time budget resumes on the next call."
    ),
    stateless_http=True,
)

register_solve_tools(mcp)

mcp.custom_route("/healthz", methods=["GET"])(health_check)
mcp.custom_route("/api/stats", methods=["GET"])(api_stats)
mcp.custom_route("/api/config", methods=["GET"])(api_config_get)
mcp.custom_route("/api/config", methods=["POST"])(api_config_update)
mcp.custom_route("/api/cache/clear", methods=["POST"])(api_cache_clear)
mcp.custom_route("/api/solve_task", methods=["POST"])(api_solve_task)
mcp.custom_route("/api/stream_solve", methods=["POST"])(api_stream_solve)
mcp.custom_route("/api/tasks/{task_id}", methods=["GET"])(api_task_get)


def run_server(transport: str = "streamable-http", host: str = "0.0.0.0", port: int = 8000) -> None:
    """Run the MCP server.

    Args:
        transport: Transport type ('streamable-http' or 'sse')
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
    """
    mcp.settings.host = host
    mcp.settings.port = port

    mcp.run(transport=transport)


if __name__ == "__main__":
    run_server()
