"""Server-side session store.

The signed cookie only holds ``sid``; destroying the row here is what makes
a logout stick, even for a copied cookie.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import InternalError
from ..models.user import User
from ..models.web_session import WebSession
from ..services.timecalc import parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)


def create_session(db: Session, user: User, *, now: datetime | None = None) -> WebSession:
    created = now or utcnow()
    record = WebSession(
        user_id=user.id,
        username=user.username,
        created_at=to_iso(created),
        expires_at=to_iso(created + timedelta(seconds=settings.SESSION_MAX_AGE)),
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error writing session for user %s", user.id)
        raise InternalError("An error occurred while creating the session") from exc
    db.refresh(record)
    return record


def get_active_session(db: Session, session_id: str | None, *, now: datetime | None = None) -> WebSession | None:
    """Return the session if it exists and has not expired."""
    if not session_id:
        return None
    record = db.get(WebSession, session_id)
    if record is None:
        return None
    expires = parse_iso(record.expires_at)
    if expires is not None and expires <= (now or utcnow()):
        return None
    return record


def destroy_session(db: Session, session_id: str | None) -> None:
    if not session_id:
        return
    try:
        db.execute(delete(WebSession).where(WebSession.id == session_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error destroying session")
        raise InternalError("An error occurred during logout") from exc


def purge_expired_sessions(db: Session, *, now: datetime | None = None) -> int:
    # ISO strings in one format and timezone sort chronologically.
    cutoff = to_iso(now or utcnow())
    try:
        result = db.execute(delete(WebSession).where(WebSession.expires_at <= cutoff))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error purging expired sessions")
        raise InternalError("An error occurred while expiring sessions") from exc
    return result.rowcount or 0
