"""FastAPI application factory for clawdtm."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clawdtm import __version__
from clawdtm.api.routes.admin import router as admin_router
from clawdtm.api.routes.agents import router as agents_router
from clawdtm.api.routes.discovery import router as discovery_router
from clawdtm.api.routes.skills import router as skills_router
from clawdtm.api.routes.webhooks import router as webhooks_router
from clawdtm.config import ClawdtmConfig
from clawdtm.errors import ClawdtmError, RateLimitedError
from clawdtm.jobs import build_scheduler
from clawdtm.logs import log_json, resolve_log_level
from clawdtm.runtime import Services, build_services, prepare

logger = logging.getLogger(__name__)


def _error_response(exc: ClawdtmError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


def create_app(config: ClawdtmConfig | None = None, *, services: Services | None = None) -> FastAPI:
    """Create FastAPI app with services on ``app.state``, error envelopes and request logging."""
    if services is None:
        services = build_services(config or ClawdtmConfig())
    config = services.config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await prepare(services)
        scheduler = None
        if config.api.run_scheduler:
            scheduler = build_scheduler(services)
            await scheduler.start()
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            await services.close()

    app = FastAPI(
        title="ClawdTM API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials="*" not in config.api.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Token"],
    )
    app.state.services = services
    app.state.scheduler = None
    app.state.log_level = resolve_log_level(config.logging.level)

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        started = time.perf_counter()
        method = request.method
        path = request.url.path
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled API exception: %s",
                json.dumps({"event": "api_request_error", "method": method, "path": path}, ensure_ascii=False),
            )
            raise
        log_json(
            logger,
            app.state.log_level,
            "api_request",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
        return response

    @app.exception_handler(ClawdtmError)
    async def clawdtm_error_handler(request: Request, exc: ClawdtmError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        hint = "Check your request body format"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            hint = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request", "hint": hint})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request failed path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(agents_router)
    app.include_router(skills_router)
    app.include_router(admin_router)
    app.include_router(webhooks_router)
    app.include_router(discovery_router)
    return app
