"""SQLAlchemy engine, session factory and the request-scoped session dependency."""

from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.requests import HTTPConnection

from ..core.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite connections are shared with the threadpool."""

    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    connect_args = {"check_same_thread": False}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database.
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine(settings.DB_URL)
SessionLocal = build_session_factory(engine)
Base = declarative_base()


def get_db(conn: HTTPConnection) -> Iterator[Session]:
    """Yield a session from the factory the running app was built with.

    Works for both HTTP requests and WebSocket handshakes.
    """

    factory = getattr(conn.app.state, "session_factory", None) or SessionLocal
    db = factory()
    try:
        yield db
    finally:
        db.close()
