"""Server-side session records backing the signed session cookie."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Text

from ..db.session import Base
from .user import new_id


class WebSession(Base):
    __tablename__ = "sessions"

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False, index=True)
    username = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
    expires_at = Column(Text, nullable=False)


__all__ = ["WebSession"]
