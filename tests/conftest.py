"""Pytest fixtures for the keyboard review backend."""

import os

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import uuid  # noqa: E402
from collections.abc import Iterator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.core.identity_provider import IdentityProviderError, get_identity_provider  # noqa: E402
from app.core.storage_utils import MediaStorage, get_media_storage  # noqa: E402
from app.core.token_verifier import SupabaseTokenVerifier, get_token_verifier  # noqa: E402
from app.database import engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.review import Review  # noqa: E402
from app.schemas.auth import AuthPayload, AuthSession, Identity  # noqa: E402

PASSWORD = "secret1"


class FakeIdentityProvider:
    """In-memory stand-in for Supabase Auth with the IdentityProviderClient API."""

    def __init__(self, auto_confirm: bool = True) -> None:
        self.auto_confirm = auto_confirm
        self.accounts: dict[str, dict] = {}  # email -> account
        self.tokens: dict[str, str] = {}  # access token -> user id
        self.resent: list[str] = []
        self.fail_sign_out = False

    def _identity(self, account: dict) -> Identity:
        return Identity(
            id=account["id"],
            email=account["email"],
            email_confirmed_at=account["confirmed_at"],
            created_at=account["created_at"],
            user_metadata={"username": account["username"]},
        )

    def _account_by_id(self, user_id: str) -> dict | None:
        return next((a for a in self.accounts.values() if a["id"] == user_id), None)

    def issue_token(self, user_id: str) -> str:
        token = f"token-{uuid.uuid4()}"
        self.tokens[token] = user_id
        return token

    def add_account(self, email: str, username: str, password: str = PASSWORD) -> dict:
        now = datetime.now(timezone.utc)
        account = {
            "id": str(uuid.uuid4()),
            "email": email,
            "username": username,
            "password": password,
            "confirmed_at": now if self.auto_confirm else None,
            "created_at": now,
        }
        self.accounts[email] = account
        return account

    def _session_for(self, account: dict) -> AuthSession:
        return AuthSession(
            access_token=self.issue_token(account["id"]),
            refresh_token=f"refresh-{uuid.uuid4()}",
            expires_in=3600,
        )

    # ----- IdentityProviderClient API -----

    def sign_up(self, email: str, password: str, username: str) -> AuthPayload:
        if email in self.accounts:
            raise IdentityProviderError("User already registered", code="user_already_exists")
        account = self.add_account(email, username, password)
        session = self._session_for(account) if self.auto_confirm else None
        return AuthPayload(user=self._identity(account), session=session)

    def sign_in(self, email: str, password: str) -> AuthPayload:
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise IdentityProviderError("Invalid login credentials", code="invalid_credentials")
        if account["confirmed_at"] is None:
            raise IdentityProviderError("Email not confirmed", code="email_not_confirmed")
        return AuthPayload(user=self._identity(account), session=self._session_for(account))

    def sign_out(self, access_token: str) -> None:
        if self.fail_sign_out or access_token not in self.tokens:
            raise IdentityProviderError("Session not found", code="session_not_found")
        del self.tokens[access_token]

    def resend_confirmation(self, email: str) -> None:
        if email not in self.accounts:
            raise IdentityProviderError("User not found", code="user_not_found")
        self.resent.append(email)

    def get_identity(self, access_token: str) -> Identity | None:
        user_id = self.tokens.get(access_token)
        if user_id is None:
            raise IdentityProviderError("invalid JWT: unable to parse or verify signature", code="bad_jwt")
        account = self._account_by_id(user_id)
        return self._identity(account) if account else None


class InMemoryStorage(MediaStorage):
    """Media bucket kept in a dict; `fail_on` names a file whose upload blows up."""

    def __init__(self) -> None:
        super().__init__(client=None, bucket="review-media")
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_on: str | None = None
        self.fail_remove = False

    def upload(self, path: str, file_bytes: bytes, content_type: str) -> str:
        if self.fail_on and path.endswith(self.fail_on):
            raise RuntimeError("storage unavailable")
        self.objects[path] = (file_bytes, content_type)
        return f"https://project.supabase.test/storage/v1/object/public/{self.bucket}/{path}"

    def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise RuntimeError("storage unavailable")
        for path in paths:
            self.objects.pop(path, None)


@pytest.fixture(scope="session", autouse=True)
def _create_tables() -> Iterator[None]:
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clean_database() -> Iterator[None]:
    """Clear tables before each test to guarantee isolation."""
    with Session(engine) as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture()
def db_session() -> Iterator[Session]:
    """Provide a raw database session to tests."""
    with Session(engine) as session:
        yield session


@pytest.fixture()
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def client(provider: FakeIdentityProvider, storage: InMemoryStorage) -> Iterator[TestClient]:
    """TestClient with Supabase Auth and Storage replaced by in-memory fakes."""
    app.dependency_overrides[get_identity_provider] = lambda: provider
    app.dependency_overrides[get_token_verifier] = lambda: SupabaseTokenVerifier(provider)
    app.dependency_overrides[get_media_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def register_user(client: TestClient):
    """Register through the API; returns {id, token, headers, username, email}."""

    def _register(username: str, email: str | None = None, password: str = PASSWORD) -> dict:
        email = email or f"{username}@example.com"
        response = client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        token = body["session"]["access_token"]
        return {
            "id": body["user"]["id"],
            "token": token,
            "headers": auth_headers(token),
            "username": username,
            "email": email,
        }

    return _register


def seed_review(session: Session, user_id: str, **fields) -> Review:
    """Insert a review row directly (explicit timestamps, legacy NULLs...)."""
    values = {
        "title": "Review",
        "content": "Body",
        "keyboard_frame": "Frame",
        "switch_type": "Switch",
        "keycap_type": "Keycap",
        "sound_rating": 4.0,
        "feel_rating": 4.0,
        "overall_rating": 4.0,
        "tags": [],
    }
    values.update(fields)
    review = Review(user_id=user_id, **values)
    session.add(review)
    session.commit()
    session.refresh(review)
    return review
