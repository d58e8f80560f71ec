from __future__ import annotations

from fastapi import Header, Request
from fastapi.security.utils import get_authorization_scheme_param

from ..core.errors import ForbiddenError, UnauthorizedError
from ..middlewares import principal_ctx_var
from ..services.auth import verify_token


class AuthContext:
    def __init__(self, *, user_id: str, username: str, scheme: str) -> None:
        self.user_id = user_id
        self.username = username
        self.scheme = scheme


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_bearer(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext:
    """Missing header -> 401, anything that fails verification -> 403."""
    if not authorization:
        raise UnauthorizedError("Authorization required")
    scheme, credentials = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not credentials:
        raise ForbiddenError("Invalid authorization header")
    payload = verify_token(credentials)
    _set_principal(request, f"user:{payload.user_id}")
    request.state.token_payload = payload
    return AuthContext(user_id=payload.user_id, username=payload.username, scheme="jwt")
