"""SQLAlchemy model for timers."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text

from ..db.session import Base
from .user import new_id


class Timer(Base):
    """A named stopwatch owned by one user.

    ``duration_seconds`` is only authoritative once ``is_active`` is false;
    while running it is recomputed on every read.
    """

    __tablename__ = "timers"

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    start = Column("start_at", Text, nullable=False)
    end = Column("end_at", Text, nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)


__all__ = ["Timer"]
