from functools import lru_cache
from typing import Any, Protocol

from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
    get_identity_provider,
)
from app.schemas.auth import Identity


class IdentityVerifier(Protocol):
    """
    Resolve a bearer token to the Identity that owns it.

    Implementations return None (or raise IdentityProviderError) when the
    token cannot be trusted. The auth guard only depends on this interface.
    """

    def verify(self, token: str) -> Identity | None: ...


class SupabaseTokenVerifier:
    """Remote introspection: one round trip to Supabase Auth per call."""

    def __init__(self, provider: IdentityProviderClient):
        self.provider = provider

    def verify(self, token: str) -> Identity | None:
        return self.provider.get_identity(token)


class JwtTokenVerifier:
    """
    Local signature verification of Supabase access tokens.

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET by default)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def decode(self, token: str) -> dict[str, Any]:
        """
        Decode and verify a raw JWT.

        Raises:
            IdentityProviderError: if token is invalid/expired.
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_aud": False},
            )
        except JWTError as exc:
            raise IdentityProviderError("Invalid or expired token", code="invalid_jwt") from exc

    def verify(self, token: str) -> Identity | None:
        claims = self.decode(token)
        sub = claims.get("sub")
        if not sub:
            return None
        return Identity(
            id=str(sub),
            email=claims.get("email"),
            user_metadata=claims.get("user_metadata") or {},
        )


def build_token_verifier(
    mode: str,
    *,
    provider: IdentityProviderClient | None = None,
    secret: str | None = None,
    algorithm: str = "HS256",
) -> IdentityVerifier:
    """
    Pick the verifier implementation for `mode` ("remote" | "local").

    Raises:
        RuntimeError: local mode without a signing secret, or unknown mode.
    """
    if mode == "remote":
        return SupabaseTokenVerifier(provider or get_identity_provider())
    if mode == "local":
        if not secret:
            raise RuntimeError("AUTH_TOKEN_VERIFIER=local requires SUPABASE_JWT_SECRET in .env")
        return JwtTokenVerifier(secret, algorithm)
    raise RuntimeError(f"Unknown AUTH_TOKEN_VERIFIER: {mode!r}")


@lru_cache
def get_token_verifier() -> IdentityVerifier:
    """Process-wide verifier selected from settings (FastAPI dependency)."""
    settings = get_settings()
    return build_token_verifier(
        settings.AUTH_TOKEN_VERIFIER,
        secret=settings.SUPABASE_JWT_SECRET,
        algorithm=settings.SUPABASE_JWT_ALG,
    )
