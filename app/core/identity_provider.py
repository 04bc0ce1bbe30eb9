import logging
from functools import lru_cache
from collections.abc import Callable
from typing import Any

from supabase import AuthError, Client

from app.core.config import get_settings
from app.core.supabase_client import supabase_auth_session, supabase_public
from app.schemas.auth import AuthPayload, AuthSession, Identity

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """
    Supabase Auth rejected a call.

    Carries the provider message and error code (e.g. "user_already_exists",
    "invalid_credentials") so callers can decide how to surface it.
    """

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


def _wrap(exc: AuthError) -> IdentityProviderError:
    code = getattr(exc, "code", None)
    return IdentityProviderError(getattr(exc, "message", None) or str(exc), code=code)


def _to_payload(response: Any) -> AuthPayload:
    user = getattr(response, "user", None)
    session = getattr(response, "session", None)
    return AuthPayload(
        user=Identity.from_provider(user) if user else None,
        session=AuthSession.from_provider(session) if session else None,
    )


class IdentityProviderClient:
    """
    Thin wrapper over Supabase Auth (GoTrue).

    Responsibilities:
      - sign-up / sign-in / sign-out / resend confirmation
      - resolve a bearer token to its auth user
      - convert supabase-py responses into our schemas
      - convert AuthError into IdentityProviderError

    Holds no per-request state: every call passes what it needs. Calls that
    open a session (sign-up, sign-in) run on a client from
    `session_client_factory`, so the shared `client` never holds a user's
    session or Authorization header.
    """

    def __init__(
        self,
        client: Client,
        redirect_url: str | None = None,
        session_client_factory: Callable[[], Client] | None = None,
    ):
        self.client = client
        self.redirect_url = redirect_url
        self.session_client_factory = session_client_factory or supabase_auth_session

    def _options(self, **extra: Any) -> dict[str, Any]:
        options: dict[str, Any] = dict(extra)
        if self.redirect_url:
            options["email_redirect_to"] = self.redirect_url
        return options

    def sign_up(self, email: str, password: str, username: str) -> AuthPayload:
        """
        Create the auth account; `username` is stored as user metadata.

        Returns a payload without session when e-mail confirmation is on.
        """
        try:
            response = self.session_client_factory().auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": self._options(data={"username": username}),
                }
            )
        except AuthError as exc:
            raise _wrap(exc) from exc
        return _to_payload(response)

    def sign_in(self, email: str, password: str) -> AuthPayload:
        try:
            response = self.session_client_factory().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as exc:
            raise _wrap(exc) from exc
        return _to_payload(response)

    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind `access_token` (all of its refresh tokens)."""
        try:
            self.client.auth.admin.sign_out(access_token)
        except AuthError as exc:
            raise _wrap(exc) from exc

    def resend_confirmation(self, email: str) -> None:
        try:
            self.client.auth.resend(
                {"type": "signup", "email": email, "options": self._options()}
            )
        except AuthError as exc:
            raise _wrap(exc) from exc

    def get_identity(self, access_token: str) -> Identity | None:
        """
        Token introspection: ask Supabase Auth who owns `access_token`.

        Returns None when the provider answers without a user.

        Raises:
            IdentityProviderError: invalid / expired token or provider error.
        """
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as exc:
            raise _wrap(exc) from exc

        user = getattr(response, "user", None) if response is not None else None
        if user is None:
            return None
        return Identity.from_provider(user)


@lru_cache
def get_identity_provider() -> IdentityProviderClient:
    """Process-wide provider client (FastAPI dependency)."""
    settings = get_settings()
    return IdentityProviderClient(supabase_public(), redirect_url=settings.AUTH_REDIRECT_URL)
