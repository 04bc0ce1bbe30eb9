import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel

from app.models.review import Review


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


def _normalize_tags(tags: list[str] | None) -> list[str] | None:
    """Trim tags, drop blanks and duplicates (first occurrence wins)."""
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ReviewCreate(BaseModel):
    """
    Payload for posting a review.

    Accepts camelCase keys (keyboardFrame, soundRating, ...) as sent by the
    app, and snake_case as well.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    title: str = Field(max_length=200)
    content: str
    keyboard_frame: str = Field(max_length=200)
    switch_type: str = Field(max_length=200)
    keycap_type: str = Field(max_length=200)
    desk_pad: str | None = Field(default=None, max_length=200)
    desk_type: str | None = Field(default=None, max_length=200)
    sound_rating: float = Field(ge=0, le=5)
    feel_rating: float = Field(ge=0, le=5)
    overall_rating: float = Field(ge=0, le=5)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "content", "keyboard_frame", "switch_type", "keycap_type")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return _normalize_tags(v) or []


class ReviewUpdate(BaseModel):
    """
    Partial update payload for reviews.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    title: str | None = Field(default=None, max_length=200)
    content: str | None = None
    keyboard_frame: str | None = Field(default=None, max_length=200)
    switch_type: str | None = Field(default=None, max_length=200)
    keycap_type: str | None = Field(default=None, max_length=200)
    desk_pad: str | None = Field(default=None, max_length=200)
    desk_type: str | None = Field(default=None, max_length=200)
    sound_rating: float | None = Field(default=None, ge=0, le=5)
    feel_rating: float | None = Field(default=None, ge=0, le=5)
    overall_rating: float | None = Field(default=None, ge=0, le=5)
    tags: list[str] | None = None

    @field_validator("title", "content", "keyboard_frame", "switch_type", "keycap_type")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _strip_required(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_tags(v)


class ReviewSearch(BaseModel):
    """Search filters; every field is optional and they AND together."""

    keyboard_frame: str | None = None
    switch_type: str | None = None
    keycap_type: str | None = None
    tags: list[str] | None = None

    @classmethod
    def from_query(
        cls,
        keyboard_frame: str | None = None,
        switch_type: str | None = None,
        keycap_type: str | None = None,
        tags: str | None = None,
    ) -> "ReviewSearch":
        """Build from query-string values; `tags` is comma separated."""
        tag_list = _normalize_tags(tags.split(",")) if tags else None
        return cls(
            keyboard_frame=(keyboard_frame or "").strip() or None,
            switch_type=(switch_type or "").strip() or None,
            keycap_type=(keycap_type or "").strip() or None,
            tags=tag_list or None,
        )


class ReviewRead(SQLModel):
    """
    Review representation for clients (snake_case, like the table).

    `from_row` never fails on legacy rows with NULL columns.
    """

    id: uuid.UUID
    title: str
    content: str
    keyboard_frame: str
    switch_type: str
    keycap_type: str
    desk_pad: str | None = None
    desk_type: str | None = None
    sound_rating: float
    feel_rating: float
    overall_rating: float
    tags: list[str]
    user_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, review: Review) -> "ReviewRead":
        now = datetime.now(timezone.utc)
        return cls(
            id=review.id,
            title=review.title or "",
            content=review.content or "",
            keyboard_frame=review.keyboard_frame or "",
            switch_type=review.switch_type or "",
            keycap_type=review.keycap_type or "",
            desk_pad=review.desk_pad or None,
            desk_type=review.desk_type or None,
            sound_rating=review.sound_rating or 0,
            feel_rating=review.feel_rating or 0,
            overall_rating=review.overall_rating or 0,
            tags=list(review.tags or []),
            user_id=review.user_id or "",
            created_at=review.created_at or now,
            updated_at=review.updated_at or review.created_at or now,
        )


class ReviewPage(SQLModel):
    reviews: list[ReviewRead]
    total: int


class ReviewMediaRead(SQLModel):
    """Read model for review media."""

    id: uuid.UUID
    review_id: uuid.UUID
    file_url: str
    file_type: str
    file_size: int
    original_name: str | None = None
    media_type: str
    created_at: datetime
