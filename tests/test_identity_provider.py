"""Tests for the Supabase Auth wrapper, against a mocked supabase client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from jose import jwt
from supabase import AuthError, create_client

from app.core.identity_provider import IdentityProviderClient, IdentityProviderError
from app.core.supabase_client import _stateless_options


class _ProviderError(AuthError):
    def __init__(self, message: str, code: str | None = None):
        Exception.__init__(self, message)
        self.message = message
        self.code = code


def _user(**overrides):
    values = {
        "id": "0b6f0f57-8a53-4f55-9a0e-1ad1f2d4c001",
        "email": "a@x.com",
        "email_confirmed_at": None,
        "created_at": None,
        "user_metadata": {"username": "cherry_fan"},
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture()
def supabase_client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def session_client() -> MagicMock:
    """Client handed out for one sign-up / sign-in call."""
    return MagicMock()


def test_sign_up_sends_username_metadata_and_redirect(supabase_client, session_client) -> None:
    session_client.auth.sign_up.return_value = SimpleNamespace(user=_user(), session=None)
    provider = IdentityProviderClient(
        supabase_client,
        redirect_url="https://app.example.com/auth/callback",
        session_client_factory=lambda: session_client,
    )

    payload = provider.sign_up("a@x.com", "secret1", "cherry_fan")

    supabase_client.auth.sign_up.assert_not_called()
    session_client.auth.sign_up.assert_called_once_with(
        {
            "email": "a@x.com",
            "password": "secret1",
            "options": {
                "data": {"username": "cherry_fan"},
                "email_redirect_to": "https://app.example.com/auth/callback",
            },
        }
    )
    assert payload.user.id == "0b6f0f57-8a53-4f55-9a0e-1ad1f2d4c001"
    assert payload.user.user_metadata == {"username": "cherry_fan"}
    assert payload.session is None


def test_sign_in_converts_session(supabase_client, session_client) -> None:
    session = SimpleNamespace(access_token="at", refresh_token="rt", expires_in=3600, expires_at=123, token_type="bearer")
    session_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=_user(), session=session)
    provider = IdentityProviderClient(supabase_client, session_client_factory=lambda: session_client)

    payload = provider.sign_in("a@x.com", "secret1")

    supabase_client.auth.sign_in_with_password.assert_not_called()

    assert payload.session.access_token == "at"
    assert payload.session.refresh_token == "rt"
    assert payload.session.expires_at == 123


def test_provider_errors_are_wrapped(supabase_client, session_client) -> None:
    session_client.auth.sign_in_with_password.side_effect = _ProviderError(
        "Invalid login credentials", code="invalid_credentials"
    )
    provider = IdentityProviderClient(supabase_client, session_client_factory=lambda: session_client)

    with pytest.raises(IdentityProviderError) as exc_info:
        provider.sign_in("a@x.com", "nope")

    assert exc_info.value.message == "Invalid login credentials"
    assert exc_info.value.code == "invalid_credentials"


def test_sign_out_revokes_given_token(supabase_client) -> None:
    IdentityProviderClient(supabase_client).sign_out("access-token")
    supabase_client.auth.admin.sign_out.assert_called_once_with("access-token")


def test_resend_confirmation_uses_signup_type(supabase_client) -> None:
    IdentityProviderClient(supabase_client).resend_confirmation("a@x.com")
    supabase_client.auth.resend.assert_called_once_with(
        {"type": "signup", "email": "a@x.com", "options": {}}
    )


def test_get_identity(supabase_client) -> None:
    supabase_client.auth.get_user.return_value = SimpleNamespace(user=_user(email="b@x.com"))
    identity = IdentityProviderClient(supabase_client).get_identity("token")
    assert identity.email == "b@x.com"
    supabase_client.auth.get_user.assert_called_once_with("token")


def test_get_identity_without_user_returns_none(supabase_client) -> None:
    supabase_client.auth.get_user.return_value = None
    assert IdentityProviderClient(supabase_client).get_identity("token") is None

    supabase_client.auth.get_user.return_value = SimpleNamespace(user=None)
    assert IdentityProviderClient(supabase_client).get_identity("token") is None


def test_get_identity_with_rejected_token_raises(supabase_client) -> None:
    supabase_client.auth.get_user.side_effect = _ProviderError("invalid JWT", code="bad_jwt")
    with pytest.raises(IdentityProviderError):
        IdentityProviderClient(supabase_client).get_identity("token")


def test_each_sign_in_gets_its_own_client(supabase_client) -> None:
    handed_out: list[MagicMock] = []

    def factory() -> MagicMock:
        per_call = MagicMock()
        per_call.auth.sign_in_with_password.return_value = SimpleNamespace(user=_user(), session=None)
        handed_out.append(per_call)
        return per_call

    provider = IdentityProviderClient(supabase_client, session_client_factory=factory)
    provider.sign_in("a@x.com", "secret1")
    provider.sign_in("a@x.com", "secret1")

    assert len(handed_out) == 2
    assert handed_out[0] is not handed_out[1]


def test_login_keeps_shared_client_free_of_user_session(session_client) -> None:
    anon_key = jwt.encode({"role": "anon"}, "anon-signing-key", algorithm="HS256")
    shared = create_client("https://project.supabase.test", anon_key, _stateless_options())
    session = SimpleNamespace(
        access_token="alice-access-token",
        refresh_token="alice-refresh",
        expires_in=3600,
        expires_at=None,
        token_type="bearer",
    )
    session_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=_user(), session=session)
    provider = IdentityProviderClient(shared, session_client_factory=lambda: session_client)

    payload = provider.sign_in("alice@example.com", "secret1")

    assert payload.session.access_token == "alice-access-token"
    assert shared.auth.get_session() is None
    assert shared.options.headers["Authorization"] == f"Bearer {anon_key}"
