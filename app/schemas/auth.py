from datetime import datetime
from typing import Any

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import Field, SQLModel

from app.schemas.profile import ProfileRead


class Identity(SQLModel):
    """
    Account record owned by Supabase Auth (auth.users).

    Read-only for this backend; `user_metadata.username` carries the
    username given at sign-up.
    """

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    created_at: datetime | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_provider(cls, user: Any) -> "Identity":
        """Build from a supabase-py `User` (or anything with the same attributes)."""
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            email_confirmed_at=getattr(user, "email_confirmed_at", None),
            created_at=getattr(user, "created_at", None),
            user_metadata=dict(getattr(user, "user_metadata", None) or {}),
        )


class AuthSession(SQLModel):
    """Tokens issued by Supabase Auth for a signed-in user."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    expires_at: int | None = None
    token_type: str = "bearer"

    @classmethod
    def from_provider(cls, session: Any) -> "AuthSession":
        return cls(
            access_token=session.access_token,
            refresh_token=getattr(session, "refresh_token", None),
            expires_in=getattr(session, "expires_in", None),
            expires_at=getattr(session, "expires_at", None),
            token_type=getattr(session, "token_type", None) or "bearer",
        )


class AuthPayload(SQLModel):
    """
    Result of sign-up / sign-in.

    `session` is None when Supabase requires e-mail confirmation first.
    """

    user: Identity | None = None
    session: AuthSession | None = None


class Principal(SQLModel):
    """
    The resolved caller of one request.

    Built from the Profile row, or synthesized from the Identity when the
    profile does not exist (yet). Never persisted.
    """

    id: str
    username: str
    email: str | None = None


# ----- Request payloads -----


class RegisterRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=30)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username cannot be empty")
        return v


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)


class ResendConfirmationRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyCallbackRequest(SQLModel):
    """
    Fragment parameters posted by the /auth/callback page.

    Only `access_token` is used; the rest are accepted for completeness.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_at: str | None = None
    expires_in: str | None = None
    type: str | None = None


# ----- Responses -----


class MessageResponse(SQLModel):
    success: bool
    message: str


class CurrentUserRead(Principal):
    """`GET /auth/me` payload: the principal plus its stored profile."""

    profile: ProfileRead | None = None


class CallbackData(SQLModel):
    user: Identity
    profile: ProfileRead | None = None


class CallbackResponse(SQLModel):
    success: bool
    message: str
    data: CallbackData | None = None
    error: str | None = None
