"""Session-cookie helpers for the rendered page and the live-update socket.

The signed cookie (Starlette ``SessionMiddleware``) stores only the id of a
row in the ``sessions`` table; the row is the source of truth.
"""

from __future__ import annotations

from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from ..crud.web_sessions import get_active_session
from ..models.web_session import WebSession

SESSION_KEY = "sid"


def session_id(conn: HTTPConnection) -> str | None:
    value = conn.session.get(SESSION_KEY)
    return value if isinstance(value, str) else None


def current_session(conn: HTTPConnection, db: Session) -> WebSession | None:
    return get_active_session(db, session_id(conn))


def remember_session(conn: HTTPConnection, sid: str) -> None:
    conn.session.clear()
    conn.session[SESSION_KEY] = sid


def forget_session(conn: HTTPConnection) -> None:
    conn.session.clear()
