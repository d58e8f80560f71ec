"""Auth service: signup, login, logout and bearer-token verification.

Signup and login issue two credentials at once: a signed bearer token for the
JSON API and a server-side session (referenced from the session cookie) that
admits the browser to the live-update WebSocket.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, UnauthorizedError
from ..core.security import TokenPayload, decode_token, hash_password, issue_token, verify_password
from ..crud.users import create_user, get_user_by_username
from ..crud.web_sessions import create_session, destroy_session, purge_expired_sessions
from ..models.user import User
from ..schemas.auth import AuthResult, UserOut

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def _issue(db: Session, user: User) -> AuthResult:
    token = issue_token(user.id, user.username)
    purge_expired_sessions(db)
    session = create_session(db, user)
    return AuthResult(user=UserOut.model_validate(user), token=token, session_id=session.id)


def register(db: Session, username: str, password: str) -> AuthResult:
    username = (username or "").strip()
    if not username or not password:
        raise BadRequestError("username and password are required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    user = create_user(db, username, hash_password(password))
    logger.info("user.registered", extra={"extra_data": {"user_id": user.id}})
    return _issue(db, user)


def login(db: Session, username: str, password: str) -> AuthResult:
    user = get_user_by_username(db, (username or "").strip())
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login.failed", extra={"extra_data": {"username": username}})
        raise UnauthorizedError(INVALID_CREDENTIALS)
    logger.info("login.succeeded", extra={"extra_data": {"user_id": user.id}})
    return _issue(db, user)


def logout(db: Session, session_id: str | None) -> None:
    destroy_session(db, session_id)


def verify_token(token: str | None) -> TokenPayload:
    if not token:
        raise UnauthorizedError("Authorization required")
    return decode_token(token)
