from __future__ import annotations

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    username: str = Field(default="", max_length=150)
    password: str = Field(default="", max_length=256)

    model_config = {
        "json_schema_extra": {
            "example": {"username": "ada", "password": "correct horse battery staple"}
        }
    }


class UserOut(BaseModel):
    id: str = Field(alias="_id")
    username: str

    model_config = {"from_attributes": True, "populate_by_name": True}


class AuthResult(BaseModel):
    """What signup and login hand to the page renderer."""

    user: UserOut
    token: str
    session_id: str
