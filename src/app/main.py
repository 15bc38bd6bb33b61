"""Entry point for the tool-gateway service."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api import router as api_router
from app.config import get_settings
from app.logging_config import get_logger, init_logging
from integrations.config_watcher import McpConfigWatcher
from integrations.tool_search_client import HttpToolSearchClient
from integrations.user_metadata import FileUserMetadataProvider
from routing.router import ToolRouter

settings = get_settings()
logger = get_logger(__name__)


app = FastAPI(title=settings.app_name)


@app.on_event("startup")
async def on_startup() -> None:
    """Wire the search client, collaborators and router."""

    init_logging(settings.log_level)
    app.state.is_ready = False
    app.state.init_error = None
    app.state.tool_router = None
    app.state.config_watcher = None

    logger.info("[Startup] Creating tool-search client")
    try:
        search = HttpToolSearchClient.from_settings(settings)
    except ValueError as exc:
        app.state.init_error = f"Tool search backend is not configured: {exc}"
        logger.error("[Startup] %s", app.state.init_error)
        return

    watcher = McpConfigWatcher.from_settings(settings)
    try:
        await watcher.start()
    except OSError as exc:
        app.state.init_error = f"Cannot watch {settings.mcp_config_path}: {exc}"
        logger.exception("[Startup] Config watcher failed to start")
        return
    app.state.config_watcher = watcher

    app.state.tool_router = ToolRouter(
        search,
        query=settings.registry_query,
        server=settings.registry_server,
        limit=settings.registry_limit,
        ttl_ms=settings.registry_ttl_ms,
        user_metadata_provider=FileUserMetadataProvider.from_settings(settings),
        config_watcher=watcher,
    )
    app.state.is_ready = True
    logger.info(
        "Service %s listening on %s:%s (search=%s, ttl_ms=%s)",
        settings.app_name,
        settings.host,
        settings.port,
        settings.tool_search_url,
        settings.registry_ttl_ms,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    logger.info("Service %s is stopping", settings.app_name)
    tool_router = getattr(app.state, "tool_router", None)
    if tool_router is not None:
        tool_router.close()
    watcher = getattr(app.state, "config_watcher", None)
    if watcher is not None:
        await watcher.close()


@app.get("/health", summary="Service availability")
async def healthcheck():
    is_ready = getattr(app.state, "is_ready", False)
    error = getattr(app.state, "init_error", None)
    payload = {"status": "ok" if is_ready else "initializing", "service": settings.app_name}
    if error:
        payload["error"] = error
    if not is_ready:
        return JSONResponse(status_code=503, content=payload)
    return payload


app.include_router(api_router, prefix=settings.api_prefix)


def main() -> None:
    """Run the HTTP service."""

    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
