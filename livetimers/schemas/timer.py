"""Pydantic schemas for timer payloads.

Field names on the wire follow the browser client (``_id``, ``userId``,
``isActive``, ``durationInSeconds``).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimerCreate(BaseModel):
    description: str = ""

    model_config = {
        "json_schema_extra": {
            "example": {"description": "write spec"}
        }
    }


class TimerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str = Field(alias="userId")
    description: str
    start: str
    end: Optional[str] = None
    is_active: bool = Field(alias="isActive")
    duration_seconds: int = Field(alias="durationInSeconds")


class TimerEnvelope(BaseModel):
    timer: TimerOut


class TimerStopped(BaseModel):
    message: str = "Timer stopped successfully"
    timer: TimerOut


class TimerList(BaseModel):
    timers: list[TimerOut] = Field(default_factory=list)
