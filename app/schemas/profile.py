from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import Field, SQLModel


class ProfileRead(SQLModel):
    """Response schema returned to clients."""

    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(SQLModel):
    """
    Partial profile update for authenticated users.

    Only `username` is editable; email belongs to Supabase Auth.
    `id`, when sent, must be the caller's own identity id.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    username: str | None = Field(default=None, max_length=30)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("username cannot be empty")
        return v
