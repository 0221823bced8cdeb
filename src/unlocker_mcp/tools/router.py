"""MCP tool and HTTP route definitions for solving tasks."""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse

from unlocker_mcp.core.streaming import encode_event
from unlocker_mcp.models import SolveTaskResponse, Task
from unlocker_mcp.store import TaskNotFoundError
from unlocker_mcp.tools.service import (
    ensure_task,
    get_task_view,
    parse_links,
    solve_task,
    stream_solve_events,
)

logger = logging.getLogger(__name__)


async def solve_task_tool(
    task_id: str,
    links: list[dict[str, Any]] | None = None,
    extracted_by: str | None = None,
) -> SolveTaskResponse:
    """Resolve every pending link of a stored task into final download links.

    Args:
        task_id: Id of the task to process
        links: Optional explicit links, each with "id", "name" and "link";
               defaults to the task's stored links
        extracted_by: Actor tag recorded with the results (default: "Browser/Live")

    Returns:
        SolveTaskResponse with processed, done and error counts
    """
    parsed = parse_links(links) if links else None
    return await solve_task(task_id, parsed, extracted_by)


async def get_task_tool(task_id: str) -> Task:
    """Get a task with its per-link results and any live progress merged in.

    Args:
        task_id: Id of the task to read

    Returns:
        The task document
    """
    return await get_task_view(task_id)


def register_solve_tools(mcp: FastMCP) -> None:
    """Register solve tools on the MCP server.

    Args:
        mcp: FastMCP server instance to register tools on
    """
    mcp.tool(name="solve_task")(solve_task_tool)
    mcp.tool(name="get_task")(get_task_tool)


async def _read_json(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except Exception:
        return None
    return body if isinstance(body, dict) else None


async def api_solve_task(request: Request) -> JSONResponse:
    """Resolve a task's pending links and return aggregate counts.

    Body: {"taskId": str, "links"?: [...], "extractedBy"?: str}
    """
    body = await _read_json(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON in request body"}, status_code=400)

    task_id = body.get("taskId") or body.get("task_id")
    if not task_id:
        return JSONResponse({"error": "taskId is required"}, status_code=400)

    try:
        links = parse_links(body.get("links") or [])
    except ValueError as e:
        return JSONResponse({"error": f"Invalid links: {e}"}, status_code=400)

    try:
        result = await solve_task(str(task_id), links or None, body.get("extractedBy"))
    except TaskNotFoundError:
        return JSONResponse({"error": "Task not found"}, status_code=404)
    except Exception as e:
        logger.exception(f"solve_task failed for {task_id}")
        return JSONResponse({"error": str(e)}, status_code=500)

    return JSONResponse(result.model_dump())


async def api_stream_solve(request: Request) -> StreamingResponse | JSONResponse:
    """Resolve links and stream progress as newline-delimited JSON.

    Body: {"links": [...], "taskId"?: str, "extractedBy"?: str}
    """
    body = await _read_json(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON in request body"}, status_code=400)

    try:
        links = parse_links(body.get("links") or [])
    except ValueError as e:
        return JSONResponse({"error": f"Invalid links: {e}"}, status_code=400)
    if not links:
        return JSONResponse({"error": "No links provided"}, status_code=400)

    task_id = body.get("taskId") or body.get("task_id")
    if task_id:
        try:
            await ensure_task(str(task_id))
        except TaskNotFoundError:
            return JSONResponse({"error": "Task not found"}, status_code=404)

    events = stream_solve_events(
        links,
        str(task_id) if task_id else None,
        body.get("extractedBy"),
    )

    async def ndjson():
        async for event in events:
            yield encode_event(event)

    return StreamingResponse(
        ndjson(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def api_task_get(request: Request) -> JSONResponse:
    """Get a task through the read-through task view cache."""
    task_id = request.path_params["task_id"]
    try:
        task = await get_task_view(task_id)
    except TaskNotFoundError:
        return JSONResponse({"error": "Task not found"}, status_code=404)
    return JSONResponse(task.model_dump(mode="json"))
