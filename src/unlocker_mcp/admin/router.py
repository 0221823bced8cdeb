"""Admin HTTP routes: health, stats, runtime config and the resolution cache."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from unlocker_mcp.admin.service import (
    clear_cache,
    get_current_config,
    get_stats,
    update_config,
)


async def health_check(request: Request) -> JSONResponse:
    """Liveness probe."""
    return JSONResponse({"status": "healthy"})


async def api_stats(request: Request) -> JSONResponse:
    """Resolution metrics plus resolution cache stats."""
    return JSONResponse(get_stats())


async def api_cache_clear(request: Request) -> JSONResponse:
    """Drop every cached resolver answer."""
    try:
        return JSONResponse(clear_cache())
    except Exception as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)


async def api_config_get(request: Request) -> JSONResponse:
    """Current runtime configuration and its defaults."""
    return JSONResponse(get_current_config())


async def api_config_update(request: Request) -> JSONResponse:
    """Apply runtime configuration changes.

    Body: {"config": {"time_budget": 40, "timer_domains": [...], ...}}
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(
            {"status": "error", "message": "Invalid JSON in request body"}, status_code=400
        )

    updates = body.get("config") if isinstance(body, dict) else None
    if not isinstance(updates, dict):
        return JSONResponse(
            {"status": "error", "message": "Body must contain a config object"}, status_code=400
        )

    return JSONResponse(update_config(updates))
