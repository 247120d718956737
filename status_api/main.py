import os
import time
from typing import Optional

import httpx
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, Response
from loguru import logger

from status_api.aggregator import StatusAggregator
from status_api.config import Settings
from status_api.game_status import read_game_status
from status_api.models import (
    DeploymentHealth,
    LivenessResponse,
    ReadinessResponse,
    StatusError,
    format_datetime,
    utc_now,
)
from status_api.proxy import DevServerProxy
from status_api.static_files import StaticSite

PROCESS_STARTED_AT = time.monotonic()

# Routing is by path only; every method reaches the same handler
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def json_response(content, status_code: int = 200, cache_control: Optional[str] = None) -> JSONResponse:
    """JSON response readable from any origin"""
    headers = {"Access-Control-Allow-Origin": "*"}
    if cache_control:
        headers["Cache-Control"] = cache_control
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def create_app(
    settings: Settings,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the app for one immutable Settings instance"""
    # Docs routes would shadow SPA paths
    app = FastAPI(title="Portfolio Status API", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.aggregator = StatusAggregator(
        settings.upstream,
        timeout=settings.upstream_timeout_seconds,
        transport=upstream_transport,
    )
    app.state.static_site = StaticSite(settings.static_root)
    app.state.game_status_file = settings.resolve_game_status_file()
    app.state.proxy = None
    app.state.cleanups = []
    if settings.server_mode == "proxy":
        app.state.proxy = DevServerProxy(settings.dev_server_url, transport=proxy_transport)
        app.state.cleanups.append(app.state.proxy.aclose)

    logger.info(f"Mode: {settings.server_mode}, slot: {settings.deployment_slot}")
    logger.info(f"Game status file: {app.state.game_status_file}")

    # Health checks

    @app.api_route("/health", methods=ALL_METHODS)
    async def health() -> JSONResponse:
        """Health check for blue-green deployment"""
        payload = DeploymentHealth(
            slot=settings.deployment_slot,
            timestamp=format_datetime(utc_now()),
            uptime=time.monotonic() - PROCESS_STARTED_AT,
            environment=settings.environment,
            version=settings.app_version,
        )
        return json_response(payload.model_dump(), cache_control="no-cache, no-store, must-revalidate")

    @app.api_route("/live", methods=ALL_METHODS)
    async def live() -> JSONResponse:
        """Liveness check: the process is up"""
        payload = LivenessResponse(pid=os.getpid(), timestamp=format_datetime(utc_now()))
        return json_response(payload.model_dump())

    @app.api_route("/ready", methods=ALL_METHODS)
    async def ready() -> JSONResponse:
        """Readiness check: local dependencies are in place"""
        dependencies = {"game_status": app.state.game_status_file.exists()}
        if settings.server_mode == "static":
            dependencies["static_root"] = app.state.static_site.has_index()

        timestamp = format_datetime(utc_now())
        if all(dependencies.values()):
            payload = ReadinessResponse(status="ready", timestamp=timestamp)
            return json_response(payload.model_dump(exclude_none=True))

        logger.warning(f"Readiness check degraded: {dependencies}")
        payload = ReadinessResponse(
            status="degraded",
            timestamp=timestamp,
            dependencies=dependencies,
            message="Some dependencies are unhealthy",
        )
        return json_response(payload.model_dump(exclude_none=True), status_code=503)

    # Status

    @app.api_route("/api/status", methods=ALL_METHODS)
    async def get_status() -> JSONResponse:
        """Aggregated monitor status, or a single error sentinel"""
        status = await app.state.aggregator.fetch_status()
        payload = status.model_dump() if status is not None else StatusError().model_dump()
        return json_response(payload, cache_control="no-cache")

    @app.api_route("/api/minecraft-status", methods=ALL_METHODS)
    def get_game_status() -> JSONResponse:
        """Game server status, always 200 so the front end can render something"""
        return json_response(read_game_status(app.state.game_status_file), cache_control="no-cache")

    # Everything else

    if app.state.proxy is not None:
        proxy: DevServerProxy = app.state.proxy

        @app.websocket("/{full_path:path}")
        async def proxy_websocket(websocket: WebSocket, full_path: str) -> None:
            await proxy.forward_websocket(websocket)

        @app.api_route(
            "/{full_path:path}",
            methods=ALL_METHODS,
            include_in_schema=False,
        )
        async def proxy_http(request: Request, full_path: str) -> Response:
            return await proxy.forward(request)

    else:
        site: StaticSite = app.state.static_site

        @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
        def static(request: Request, full_path: str) -> Response:
            if request.method == "OPTIONS":
                return site.options()
            return site.serve("/" + full_path)

    return app
