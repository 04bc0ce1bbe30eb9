import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Comment(SQLModel, table=True):
    """A comment on a review. Only its author may edit or delete it."""

    __tablename__ = "comments"

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

    user_id: str = Field(
        index=True,
        max_length=36,
        description="Author: Supabase auth.users.id",
    )

    content: str = Field(max_length=1000)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last edit (UTC)",
    )
