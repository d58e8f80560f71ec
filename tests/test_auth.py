"""Signup, login, logout and bearer-token checks against an in-memory store."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from jose import jwt
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from livetimers.core.errors import BadRequestError, ConflictError, ForbiddenError, UnauthorizedError
from livetimers.core.security import ALGORITHM, AUDIENCE, ISSUER, hash_password, verify_password
from livetimers.crud.web_sessions import create_session, get_active_session
from livetimers.db.session import Base
from livetimers.services import auth

# Ensure models are registered so metadata tables are created
from livetimers.models import timer as timer_model  # noqa: F401
from livetimers.models import user as user_model  # noqa: F401
from livetimers.models import web_session as web_session_model  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _user_count(db, username):
    return db.scalar(select(func.count()).select_from(user_model.User).where(user_model.User.username == username))


def test_register_stores_hash_not_password(db_session):
    result = auth.register(db_session, "ada", "lovelace")

    stored = db_session.get(user_model.User, result.user.id)
    assert stored.username == "ada"
    assert stored.password_hash != "lovelace"
    assert verify_password("lovelace", stored.password_hash)
    assert result.token
    assert get_active_session(db_session, result.session_id).user_id == stored.id


def test_register_twice_conflicts_and_keeps_one_user(db_session):
    auth.register(db_session, "grace", "hopper")

    with pytest.raises(ConflictError):
        auth.register(db_session, "grace", "something-else")

    assert _user_count(db_session, "grace") == 1


def test_register_requires_username_and_password(db_session):
    with pytest.raises(BadRequestError):
        auth.register(db_session, "  ", "pw")
    with pytest.raises(BadRequestError):
        auth.register(db_session, "linus", "")


def test_login_token_resolves_to_registered_user(db_session):
    registered = auth.register(db_session, "alan", "turing")

    logged_in = auth.login(db_session, "alan", "turing")
    payload = auth.verify_token(logged_in.token)

    assert payload.user_id == registered.user.id
    assert payload.username == "alan"
    assert logged_in.session_id != registered.session_id


@pytest.mark.parametrize("username,password", [("alan", "wrong"), ("nobody", "turing")])
def test_login_rejects_bad_credentials(db_session, username, password):
    auth.register(db_session, "alan", "turing")

    with pytest.raises(UnauthorizedError):
        auth.login(db_session, username, password)


def test_verify_token_requires_a_token():
    with pytest.raises(UnauthorizedError):
        auth.verify_token(None)
    with pytest.raises(UnauthorizedError):
        auth.verify_token("")


def test_verify_token_rejects_foreign_signature(db_session):
    registered = auth.register(db_session, "eve", "secret")
    forged = jwt.encode(
        {"sub": registered.user.id, "username": "eve", "iat": 0, "typ": "access", "aud": AUDIENCE, "iss": ISSUER},
        "not-the-secret",
        algorithm=ALGORITHM,
    )

    with pytest.raises(ForbiddenError):
        auth.verify_token(forged)
    with pytest.raises(ForbiddenError):
        auth.verify_token("garbage")


def test_token_has_no_expiry_claim(db_session):
    result = auth.register(db_session, "ken", "thompson")
    claims = jwt.get_unverified_claims(result.token)
    assert "exp" not in claims
    assert claims["sub"] == result.user.id


def test_logout_destroys_server_side_session(db_session):
    result = auth.register(db_session, "dennis", "ritchie")
    assert get_active_session(db_session, result.session_id) is not None

    auth.logout(db_session, result.session_id)

    assert get_active_session(db_session, result.session_id) is None
    # Logging out twice, or without a session, is harmless.
    auth.logout(db_session, result.session_id)
    auth.logout(db_session, None)


def test_verify_password_handles_garbage_hash():
    assert not verify_password("pw", "not-a-bcrypt-hash")
    assert verify_password("pw", hash_password("pw", rounds=4))


def test_login_purges_expired_sessions(db_session):
    registered = auth.register(db_session, "barbara", "liskov")
    user = db_session.get(user_model.User, registered.user.id)
    stale_id = create_session(db_session, user, now=datetime(2000, 1, 1, tzinfo=timezone.utc)).id

    auth.login(db_session, "barbara", "liskov")

    WebSession = web_session_model.WebSession
    assert db_session.scalar(select(func.count()).select_from(WebSession).where(WebSession.id == stale_id)) == 0
    assert get_active_session(db_session, registered.session_id) is not None
