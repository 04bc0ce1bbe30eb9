import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Review(SQLModel, table=True):
    """
    A keyboard build review.

    Descriptive columns are nullable because rows written by older clients
    may lack them; readers substitute defaults.
    """

    __tablename__ = "reviews"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    title: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None)

    # Keyboard setup
    keyboard_frame: str | None = Field(default=None, max_length=200)
    switch_type: str | None = Field(default=None, max_length=200)
    keycap_type: str | None = Field(default=None, max_length=200)
    desk_pad: str | None = Field(default=None, max_length=200)
    desk_type: str | None = Field(default=None, max_length=200)

    # Ratings, 0..5
    sound_rating: float | None = Field(default=None)
    feel_rating: float | None = Field(default=None)
    overall_rating: float | None = Field(default=None)

    tags: list[str] | None = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=True),
    )

    user_id: str = Field(
        index=True,
        max_length=36,
        description="Owner: Supabase auth.users.id",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last change (UTC)",
    )


class ReviewMedia(SQLModel, table=True):
    """
    An uploaded image / audio / video attached to a review.

    The bytes live in Supabase Storage under `storage_path`.
    """

    __tablename__ = "review_media"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    review_id: uuid.UUID = Field(
        foreign_key="reviews.id",
        index=True,
        description="FK to reviews.id",
    )

    storage_path: str = Field(description="Object path inside the media bucket")
    file_url: str = Field(description="Public URL stored in Supabase Storage")
    file_type: str = Field(max_length=100, description="MIME type")
    file_size: int = Field(default=0, ge=0, description="Size in bytes")
    original_name: str | None = Field(default=None, max_length=255)
    media_type: str = Field(
        default="image",
        max_length=10,
        description="image | audio | video",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Upload timestamp (UTC)",
    )
