"""Admin API routes for stats, config, strategies and cache management."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from webfetch_mcp.admin.service import (
    clear_cache,
    get_current_config,
    get_stats,
    get_strategy_entries,
)


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for container orchestration.

    Returns:
        JSONResponse with status: healthy
    """
    return JSONResponse({"status": "healthy"})


async def api_stats(request: Request) -> JSONResponse:
    """Get server statistics and metrics as JSON.

    Returns:
        JSONResponse with server stats including cache and strategy metrics
    """
    return JSONResponse(get_stats())


async def api_cache_clear(request: Request) -> JSONResponse:
    """Clear all cache entries.

    Returns:
        JSONResponse with operation status
    """
    try:
        return JSONResponse(clear_cache())
    except Exception as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)


async def api_config_get(request: Request) -> JSONResponse:
    """Get current configuration.

    Returns:
        JSONResponse with current config values
    """
    return JSONResponse(get_current_config())


async def api_strategies(request: Request) -> JSONResponse:
    """Get the learned and configured strategy entries.

    Returns:
        JSONResponse with the entries, longest prefix first
    """
    try:
        return JSONResponse({"entries": get_strategy_entries()})
    except Exception as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)
