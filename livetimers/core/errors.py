"""Error taxonomy and the handlers that turn it into JSON responses.

Services raise ``ServiceError`` subclasses; routers never build error
responses by hand. Every failure leaves the app as the same envelope::

    {"code": "...", "message": "...", "details": ...}
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: Any | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"
    default_message = "Bad request"


class ConflictError(ServiceError):
    # Existing clients expect a 400 for a taken username.
    status_code = status.HTTP_400_BAD_REQUEST
    code = "conflict"
    default_message = "User with that username already exists"


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class InternalError(ServiceError):
    pass


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


def wants_html(request: Request) -> bool:
    """Browser navigations and form posts get pages, API callers get JSON."""

    accept = (request.headers.get("accept") or "").lower()
    content_type = (request.headers.get("content-type") or "").lower()
    if "text/html" in accept:
        return True
    return content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data"))


async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and wants_html(request):
        return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and wants_html(request):
        return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=BadRequestError.status_code,
        code=BadRequestError.code,
        message="Malformed request",
        details={"errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=InternalError.code,
        message=InternalError.default_message,
    )
