import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CommentCreate(BaseModel):
    """Payload for `POST /comments` (`reviewId`, `content`)."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    review_id: uuid.UUID
    content: str = Field(max_length=1000)

    @field_validator("content")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content cannot be empty")
        return v


class CommentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(max_length=1000)

    @field_validator("content")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content cannot be empty")
        return v


class CommentAuthor(BaseModel):
    id: str
    username: str
    email: str | None = None


class CommentRead(BaseModel):
    """Comment as returned to clients (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: uuid.UUID
    review_id: uuid.UUID
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime
    user: CommentAuthor | None = None


class CommentResponse(BaseModel):
    success: bool = True
    data: CommentRead
    message: str


class CommentListResponse(BaseModel):
    success: bool = True
    data: list[CommentRead]
    total: int
