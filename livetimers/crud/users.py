"""CRUD helpers for the credential store."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import ConflictError, InternalError
from ..models.user import User
from ..services.timecalc import to_iso, utcnow

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalars().first()


def create_user(db: Session, username: str, password_hash: str) -> User:
    if get_user_by_username(db, username) is not None:
        raise ConflictError()
    user = User(username=username, password_hash=password_hash, created_at=to_iso(utcnow()))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent signup for the same name.
        db.rollback()
        raise ConflictError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error during registration")
        raise InternalError("An error occurred during user registration") from exc
    db.refresh(user)
    return user
