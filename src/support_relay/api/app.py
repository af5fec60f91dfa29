"""FastAPI application factory: routes, middleware and error mapping."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from support_relay.api.ratelimit import RequestLimiter
from support_relay.api.routes import admin, chat, health, patterns, telegram
from support_relay.app import SupportRelayApp
from support_relay.core.errors import RelayError
from support_relay.log import bind_request_context, get_logger

logger = get_logger(__name__)

APOLOGY_REPLY = "Üzgünüm, şu anda teknik bir sorun yaşıyoruz. Lütfen biraz sonra tekrar deneyin."


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "request: invalid"
    first = errors[0]
    # Drop the "body"/"query"/"path" prefix FastAPI puts in front of the field
    location = [str(part) for part in first.get("loc", ())[1:]] or ["request"]
    return f"{'.'.join(location)}: {first.get('msg', 'invalid')}"


def _server_error_body(request: Request) -> dict[str, str]:
    """Generic 500 body; chat callers always get an apology they can show."""
    content = {"error": "Internal server error"}
    if request.url.path.startswith("/conversations/"):
        content.update(reply=APOLOGY_REPLY, role="system")
    return content


def create_app(relay: SupportRelayApp) -> FastAPI:
    """Build the HTTP app around an (unstarted) relay; the lifespan starts and stops it."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await relay.start()
        try:
            yield
        finally:
            await relay.stop()

    app = FastAPI(title="Support Relay", lifespan=lifespan)
    app.state.relay = relay
    limiter = RequestLimiter(relay.config.server.rate_limit)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=relay.config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        bind_request_context(
            request_id=request.headers.get("x-request-id") or uuid.uuid4().hex[:12],
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()
        response = limiter.rejection(request) or await call_next(request)
        logger.info(
            "http_request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", error=exc.message, error_type=type(exc).__name__)
            return JSONResponse(status_code=exc.status_code, content=_server_error_body(request))
        logger.info("request_rejected", status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.info("request_rejected", status=400, error=message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content=_server_error_body(request))

    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(patterns.router)
    app.include_router(admin.router)
    app.include_router(telegram.router)

    return app
