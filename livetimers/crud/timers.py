"""Timer service: create, stop and list timers with live elapsed time."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, ForbiddenError, InternalError, NotFoundError
from ..models.timer import Timer
from ..schemas.timer import TimerOut
from ..services.timecalc import elapsed_seconds, parse_iso, to_iso, utcnow, whole_seconds

logger = logging.getLogger(__name__)

TIMER_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def _now() -> datetime:
    return utcnow()


def is_valid_timer_id(value: object) -> bool:
    return isinstance(value, str) and bool(TIMER_ID_RE.match(value))


def timer_view(timer: Timer, now: datetime) -> TimerOut:
    """Snapshot a timer for output, overlaying elapsed time on active ones.

    The overlay lives on the schema copy only; the ORM row is left untouched
    so nothing transient gets flushed back to the store.
    """

    view = TimerOut.model_validate(timer)
    if not timer.is_active:
        return view
    return view.model_copy(
        update={"duration_seconds": elapsed_seconds(timer.start, now, is_active=True)}
    )


def get_timer(db: Session, timer_id: str) -> Timer | None:
    return db.get(Timer, timer_id)


def create_timer(db: Session, user_id: str, description: str | None, *, now: datetime | None = None) -> Timer:
    description = (description or "").strip()
    if not description:
        raise BadRequestError("description is required")
    timer = Timer(
        user_id=user_id,
        description=description,
        start=to_iso(now or _now()),
        end=None,
        duration_seconds=0,
        is_active=True,
    )
    db.add(timer)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error creating timer for user %s", user_id)
        raise InternalError("An error occurred while creating timer") from exc
    db.refresh(timer)
    return timer


def stop_timer(db: Session, timer_id: str, requester_id: str, *, now: datetime | None = None) -> Timer:
    if not is_valid_timer_id(timer_id):
        raise BadRequestError("Invalid timer ID")
    try:
        timer = get_timer(db, timer_id)
        if timer is None:
            raise NotFoundError("Timer not found")
        if timer.user_id != requester_id:
            raise ForbiddenError("Access to this timer is denied")
        if not timer.is_active:
            raise BadRequestError("Timer is already stopped")

        stopped_at = now or _now()
        duration = whole_seconds(parse_iso(timer.start), stopped_at)
        # Guarded on is_active so a racing second stop updates nothing.
        result = db.execute(
            update(Timer)
            .where(Timer.id == timer.id, Timer.is_active.is_(True))
            .values({Timer.is_active: False, Timer.end: to_iso(stopped_at), Timer.duration_seconds: duration})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise BadRequestError("Timer is already stopped")
        db.commit()
        db.refresh(timer)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error stopping timer %s", timer_id)
        raise InternalError("An error occurred while stopping timer") from exc
    return timer


def list_timers(db: Session, user_id: str, *, now: datetime | None = None) -> list[TimerOut]:
    try:
        rows = db.execute(
            select(Timer).where(Timer.user_id == user_id).order_by(Timer.start)
        ).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Error fetching timers for user %s", user_id)
        raise InternalError("An error occurred while fetching timers") from exc
    moment = now or _now()
    return [timer_view(timer, moment) for timer in rows]


def list_all_timers(db: Session, *, now: datetime | None = None) -> list[TimerOut]:
    """Every timer in the store, for the broadcast loop."""
    rows = db.execute(select(Timer).order_by(Timer.start)).scalars().all()
    moment = now or _now()
    return [timer_view(timer, moment) for timer in rows]
