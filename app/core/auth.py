import logging
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from app.core.errors import AuthenticationFailure, AuthorizationFailure
from app.core.identity_provider import IdentityProviderError
from app.core.token_verifier import IdentityVerifier, get_token_verifier
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import Identity, Principal

logger = logging.getLogger(__name__)

# HTTP Bearer scheme:
# - auto_error=False => a missing/malformed Authorization header yields None,
#   so we can answer with our own 401 body instead of FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)

profile_repo = ProfileRepository()


def username_from_email(email: str | None) -> str:
    """
    Derive a display name from email when the user has no profile yet.

    "cherry@x.com" -> "cherry"; no email -> "Unknown".
    """
    local = (email or "").split("@", 1)[0]
    return local or "Unknown"


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """
    Extract the raw token from `Authorization: Bearer <token>`.

    Raises:
        AuthenticationFailure(401): header missing or not a Bearer credential.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailure("Missing bearer token")
    return credentials.credentials


def resolve_principal(
    token: str,
    verifier: IdentityVerifier,
    session: Session,
    repo: ProfileRepository = profile_repo,
) -> Principal:
    """
    Resolve who is calling.

    Flow:
      1. Verify the token => Identity (one provider round trip at most).
      2. Load the Profile keyed by identity id.
      3. Profile found  => Principal from profile fields.
         Profile missing => Principal synthesized from the identity
                            (username = local part of the email).

    Raises:
        AuthenticationFailure(401): token rejected or bound to no identity.
    """
    try:
        identity: Identity | None = verifier.verify(token)
    except IdentityProviderError as exc:
        logger.info("Bearer token rejected: %s (%s)", exc.message, exc.code)
        raise AuthenticationFailure("Invalid or expired token", code=exc.code) from exc

    if identity is None:
        raise AuthenticationFailure("Invalid or expired token")

    profile = repo.get_by_id(session, identity.id)
    if profile is None:
        logger.warning("No profile for authenticated user %s; using identity fields", identity.id)
        return Principal(
            id=identity.id,
            username=username_from_email(identity.email),
            email=identity.email,
        )

    return Principal(id=profile.id, username=profile.username, email=profile.email)


def require_auth(
    token: str = Depends(get_bearer_token),
    verifier: IdentityVerifier = Depends(get_token_verifier),
    session: Session = Depends(get_session),
) -> Principal:
    """
    Enforce authentication.

    If attached to a route, requests without a valid Supabase access token
    are rejected with 401 before the handler runs.

    Returns:
        The resolved Principal.
    """
    principal = resolve_principal(token, verifier, session)
    logger.debug("Authenticated %s (%s)", principal.id, principal.username)
    return principal


def ensure_same_identity(principal: Principal, identity_id: str) -> None:
    """
    Allow a profile write only for the caller's own identity.

    Raises:
        AuthorizationFailure(403): identity_id is someone else.
    """
    if identity_id != principal.id:
        raise AuthorizationFailure("You can only modify your own profile")


def caller_claims(principal: Principal) -> dict[str, Any]:
    """JWT-style claims identifying the caller to database RLS policies."""
    return {"sub": principal.id, "email": principal.email, "role": "authenticated"}
