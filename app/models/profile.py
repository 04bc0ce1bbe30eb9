from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Local, mutable profile of a Supabase account.

    Identity:
      - id: MUST match Supabase auth.users.id (JWT "sub")

    This table is *not* responsible for password hashes. Supabase Auth
    stores credentials in its own schema; we only keep display fields.
    """

    __tablename__ = "profiles"

    id: str = Field(
        primary_key=True,
        max_length=36,
        description="Matches Supabase auth.users.id",
    )

    username: str = Field(
        max_length=30,
        index=True,
        description="Display name; chosen at sign-up",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last profile change (UTC)",
    )
