"""Application factory and top-level wiring.

``create_app`` brings together configuration, the database, the session
cookie, routers, error handling, metrics and the broadcast loop. The module
level ``app`` is what uvicorn serves.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .core.config import settings
from .core.errors import (
    ServiceError,
    http_exception_handler,
    service_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .core.logging import configure_logging
from .crud.web_sessions import purge_expired_sessions
from .db.session import Base, SessionLocal
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware
from .routers import api_timers, auth_ui, live
from .services.broadcast import Broadcaster, ChannelRegistry, store_loader

# Registers the tables with ``Base.metadata`` before ``create_all`` runs.
from .models import timer as _timer  # noqa: F401
from .models import user as _user  # noqa: F401
from .models import web_session as _web_session  # noqa: F401

logger = logging.getLogger(__name__)


def _purge_sessions(factory: sessionmaker) -> int:
    with factory() as db:
        return purge_expired_sessions(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    factory = app.state.session_factory
    purged = await run_in_threadpool(_purge_sessions, factory)
    if purged:
        logger.info("Purged %s expired sessions", purged)
    app.state.broadcaster.start()
    logger.info("%s started", settings.APP_NAME)
    try:
        yield
    finally:
        await app.state.broadcaster.stop()
        logger.info("%s stopped", settings.APP_NAME)


def create_app(*, session_factory: sessionmaker | None = None, metrics: bool = True) -> FastAPI:
    factory = session_factory or SessionLocal
    Base.metadata.create_all(bind=factory.kw["bind"])

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.session_factory = factory
    app.state.channels = ChannelRegistry()
    app.state.broadcaster = Broadcaster(
        app.state.channels,
        store_loader(factory),
        interval=settings.BROADCAST_INTERVAL_SECONDS,
        scope=settings.BROADCAST_SCOPE,
    )

    # Last added runs first: CORS -> request id -> security headers -> session.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.APP_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=settings.cookie_secure,
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.cookie_secure)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.mount("/static", StaticFiles(directory=str(settings.STATIC_DIR)), name="static")

    app.include_router(auth_ui.router)
    app.include_router(api_timers.router)
    app.include_router(live.router)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, bool]:
        return {"ok": True}

    if metrics:
        Instrumentator(excluded_handlers=["/metrics", "/health"]).instrument(app).expose(
            app, include_in_schema=False
        )
    return app


configure_logging(settings.LOG_LEVEL)
app = create_app()

__all__ = ["app", "create_app"]
