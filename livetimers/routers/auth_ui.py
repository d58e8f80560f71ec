"""Entry page, signup, login and logout.

Browsers get the rendered page back from every one of these; callers that
send ``Accept: application/json`` get ``{user, token}`` instead.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import BadRequestError
from ..core.jinja import get_templates
from ..core.security import issue_token
from ..crud.timers import list_timers
from ..db.session import get_db
from ..deps.ui_auth import current_session, forget_session, remember_session, session_id
from ..schemas.auth import AuthResult, Credentials, UserOut
from ..services import auth as auth_service

router = APIRouter(tags=["auth"])
templates = get_templates()


async def read_credentials(request: Request) -> Credentials:
    """Accept credentials as JSON or as a classic HTML form post."""

    content_type = (request.headers.get("content-type") or "").lower()
    try:
        if content_type.startswith("application/json"):
            data = await request.json()
        else:
            data = dict(await request.form())
        if not isinstance(data, dict):
            raise BadRequestError("Expected an object with username and password")
        return Credentials.model_validate(data)
    except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadRequestError("Malformed credentials") from exc


def _wants_json(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return "application/json" in accept and "text/html" not in accept


def _render(
    request: Request,
    db: Session,
    *,
    user: UserOut | None,
    token: str | None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    timers = list_timers(db, user.id) if user else []
    return templates.TemplateResponse(
        request,
        "index.html",
        {"user": user, "token": token, "timers": timers},
        status_code=status_code,
    )


def _signed_in(request: Request, db: Session, result: AuthResult, status_code: int) -> Response:
    previous = session_id(request)
    if previous and previous != result.session_id:
        auth_service.logout(db, previous)
    remember_session(request, result.session_id)
    if _wants_json(request):
        return JSONResponse(
            {"user": result.user.model_dump(by_alias=True), "token": result.token},
            status_code=status_code,
        )
    return _render(request, db, user=result.user, token=result.token, status_code=status_code)


@router.get("/", response_class=HTMLResponse)
def index_page(request: Request, db: Session = Depends(get_db)):
    session = current_session(request, db)
    if session is None:
        return _render(request, db, user=None, token=None)
    user = UserOut(id=session.user_id, username=session.username)
    return _render(request, db, user=user, token=issue_token(session.user_id, session.username))


@router.post("/signup")
def signup(
    request: Request,
    credentials: Credentials = Depends(read_credentials),
    db: Session = Depends(get_db),
):
    result = auth_service.register(db, credentials.username, credentials.password)
    return _signed_in(request, db, result, status.HTTP_200_OK)


@router.post("/login")
def login(
    request: Request,
    credentials: Credentials = Depends(read_credentials),
    db: Session = Depends(get_db),
):
    # A failed login raises UnauthorizedError; the handler redirects browsers to "/".
    result = auth_service.login(db, credentials.username, credentials.password)
    response = _signed_in(request, db, result, status.HTTP_200_OK)
    response.set_cookie(
        settings.TOKEN_COOKIE_NAME,
        result.token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return response


@router.get("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    auth_service.logout(db, session_id(request))
    forget_session(request)
    if _wants_json(request):
        response: Response = JSONResponse({"user": None, "token": None})
    else:
        response = _render(request, db, user=None, token=None)
    response.delete_cookie(settings.TOKEN_COOKIE_NAME)
    return response
