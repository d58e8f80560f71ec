from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings
from .errors import ForbiddenError

ALGORITHM = "HS256"
AUDIENCE = "livetimers-clients"
ISSUER = "livetimers"
TOKEN_TYPE = "access"


class TokenPayload(BaseModel):
    sub: str
    username: str
    iat: int
    typ: str
    aud: str
    iss: str

    @property
    def user_id(self) -> str:
        return self.sub


def hash_password(plain: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def issue_token(user_id: str, username: str) -> str:
    """Sign a bearer token for ``user_id``.

    Tokens carry no ``exp`` claim: they stay valid until ``JWT_SECRET``
    rotates.
    """

    payload: dict[str, Any] = {
        "sub": user_id,
        "username": username,
        "iat": int(datetime.now(tz=timezone.utc).timestamp()),
        "typ": TOKEN_TYPE,
        "aud": AUDIENCE,
        "iss": ISSUER,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except JWTError as exc:
        raise ForbiddenError("Invalid token") from exc
    try:
        payload = TokenPayload.model_validate(decoded)
    except ValidationError as exc:
        raise ForbiddenError("Invalid token payload") from exc
    if payload.typ != TOKEN_TYPE:
        raise ForbiddenError("Invalid token type")
    return payload
