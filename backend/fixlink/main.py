"""
main.py

Application entrypoint for the Fixlink engagement API.
- Initializes structured logging
- Builds the database engine, Redis client and notification dispatcher
  in the application lifespan
- Sets up FastAPI application and middlewares
- Registers all API routers
- Integrates rate limiting via SlowAPI
- Adds common security headers
- Configures CORS
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from fixlink.core.config import settings
from fixlink.core.exceptions import TransientStoreError
from fixlink.core.limiter import limiter
from fixlink.core.logging import init_logging
from fixlink.database.session import (
    STORE_UNAVAILABLE_ERRORS,
    build_engine,
    build_session_factory,
)
from fixlink.engagement.routes import booking_router, quote_router
from fixlink.engagement.routes import router as engagement_router
from fixlink.notifications.gateway import NotificationDispatcher, RedisNotificationGateway
from fixlink.review.routes import router as review_router
from fixlink.worker.routes import router as worker_router

logger = logging.getLogger(__name__)


# -----------------------------
# Lifespan
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine = build_engine()
    app.state.session_factory = build_session_factory(engine)
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    app.state.notifier = NotificationDispatcher(
        RedisNotificationGateway(redis_client, settings.NOTIFICATION_CHANNEL)
    )
    logger.info(f"{settings.APP_NAME} started")
    try:
        yield
    finally:
        await app.state.notifier.drain()
        await redis_client.aclose()
        await engine.dispose()
        logger.info(f"{settings.APP_NAME} stopped")


# -----------------------------
# Security Headers Middleware
# -----------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add common security headers to responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    return _rate_limit_exceeded_handler(request, exc)  # type: ignore[arg-type]


async def store_unavailable_handler(request: Request, exc: Exception) -> Response:
    logger.error(f"[STORE] Unhandled store failure on {request.method} {request.url.path}: {exc}")
    error = TransientStoreError()
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": error.detail})


# -----------------------------
# FastAPI App Initialization
# -----------------------------
def create_app() -> FastAPI:
    init_logging()
    app = FastAPI(title="Fixlink Engagement API", lifespan=lifespan)
    app.state.limiter = limiter

    app.add_exception_handler(429, rate_limit_exceeded_handler)
    for error_type in STORE_UNAVAILABLE_ERRORS:
        app.add_exception_handler(error_type, store_unavailable_handler)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(quote_router)
    app.include_router(booking_router)
    app.include_router(engagement_router)
    app.include_router(worker_router)
    app.include_router(review_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "app": settings.APP_NAME}

    return app


app = create_app()
