"""SQLAlchemy model for registered users."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Text

from ..db.session import Base


def new_id() -> str:
    return uuid4().hex


class User(Base):
    """A registered account. Never updated or deleted after signup."""

    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=new_id)
    username = Column(Text, nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


__all__ = ["User", "new_id"]
