from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..crud.timers import create_timer, list_timers, stop_timer
from ..db.session import get_db
from ..deps.auth import AuthContext, require_bearer
from ..schemas.timer import TimerCreate, TimerEnvelope, TimerList, TimerOut, TimerStopped

router = APIRouter(prefix="/timer", tags=["timers"])


@router.post("", response_model=TimerEnvelope, status_code=201)
def api_create_timer(
    payload: TimerCreate | None = Body(default=None),
    auth: AuthContext = Depends(require_bearer),
    db: Session = Depends(get_db),
):
    # A missing body is the same as an empty description.
    timer = create_timer(db, auth.user_id, payload.description if payload else None)
    return TimerEnvelope(timer=TimerOut.model_validate(timer))


@router.post("/stop/{timer_id}", response_model=TimerStopped)
def api_stop_timer(
    timer_id: str,
    auth: AuthContext = Depends(require_bearer),
    db: Session = Depends(get_db),
):
    timer = stop_timer(db, timer_id, auth.user_id)
    return TimerStopped(timer=TimerOut.model_validate(timer))


@router.get("/update", response_model=TimerList)
def api_list_timers(
    auth: AuthContext = Depends(require_bearer),
    db: Session = Depends(get_db),
):
    return TimerList(timers=list_timers(db, auth.user_id))
