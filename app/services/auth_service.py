import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.auth import username_from_email
from app.core.errors import AuthenticationFailure, Conflict, NotFound, ProviderFailure
from app.core.identity_provider import IdentityProviderClient, IdentityProviderError
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import (
    AuthPayload,
    CallbackData,
    CurrentUserRead,
    Identity,
    LoginRequest,
    MessageResponse,
    Principal,
    RegisterRequest,
)
from app.schemas.profile import ProfileRead, ProfileUpdate

logger = logging.getLogger(__name__)


class AuthService:
    """
    Account flows on top of Supabase Auth + the local profiles table.

    Profile policy: the profile row is inserted explicitly right after
    sign-up. If that insert fails, registration still succeeds; the
    e-mail verification callback re-creates the missing row, and the auth
    guard serves a synthesized principal in the meantime.
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    # ----- Helpers -----

    def _insert_profile(
        self,
        session: Session,
        *,
        identity_id: str,
        username: str,
        email: str,
    ) -> Profile | None:
        """Insert a profile row; log and return None if the store refuses it."""
        now = datetime.now(timezone.utc)
        profile = Profile(
            id=identity_id,
            username=username[:30],
            email=email,
            created_at=now,
            updated_at=now,
        )
        try:
            return self.repo.create(session, profile)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Profile insert failed for user %s", identity_id)
            return None

    def _profile_from_identity(self, session: Session, identity: Identity) -> Profile | None:
        if not identity.email:
            logger.warning("Cannot create profile for user %s without an email", identity.id)
            return None
        username = identity.user_metadata.get("username") or username_from_email(identity.email)
        return self._insert_profile(
            session,
            identity_id=identity.id,
            username=str(username),
            email=identity.email,
        )

    # ----- Account flows -----

    def register(
        self,
        session: Session,
        provider: IdentityProviderClient,
        payload: RegisterRequest,
    ) -> AuthPayload:
        """
        Create the Supabase account, then the profile row.

        Returns:
            user + session, or user only while e-mail confirmation is pending.

        Raises:
            ProviderFailure(400): Supabase refused the sign-up.
        """
        email = str(payload.email)
        try:
            result = provider.sign_up(email, payload.password, payload.username)
        except IdentityProviderError as exc:
            logger.info("Sign-up rejected for %s: %s", email, exc.message)
            raise ProviderFailure(f"Registration failed: {exc.message}", code=exc.code) from exc

        if result.user is not None and self.repo.get_by_id(session, result.user.id) is None:
            self._insert_profile(
                session,
                identity_id=result.user.id,
                username=payload.username,
                email=email,
            )

        logger.info(
            "Registered user %s (%s)",
            result.user.id if result.user else None,
            "session issued" if result.session else "confirmation pending",
        )
        return result

    def login(self, provider: IdentityProviderClient, payload: LoginRequest) -> AuthPayload:
        """
        Raises:
            AuthenticationFailure(401): bad credentials / unconfirmed e-mail.
        """
        try:
            return provider.sign_in(str(payload.email), payload.password)
        except IdentityProviderError as exc:
            raise AuthenticationFailure(f"Login failed: {exc.message}", code=exc.code) from exc

    def logout(self, provider: IdentityProviderClient, access_token: str) -> MessageResponse:
        """
        Revoke the caller's session.

        A provider failure is reported in the result, never raised.
        """
        try:
            provider.sign_out(access_token)
        except IdentityProviderError as exc:
            logger.warning("Sign-out failed: %s (%s)", exc.message, exc.code)
            return MessageResponse(success=False, message=f"Logout failed: {exc.message}")
        return MessageResponse(success=True, message="Logged out successfully")

    def resend_email_confirmation(
        self,
        provider: IdentityProviderClient,
        email: str,
    ) -> MessageResponse:
        """
        Raises:
            ProviderFailure(400): Supabase refused to send (rate limit, unknown user...).
        """
        try:
            provider.resend_confirmation(email)
        except IdentityProviderError as exc:
            raise ProviderFailure(
                f"Failed to resend confirmation email: {exc.message}", code=exc.code
            ) from exc
        return MessageResponse(success=True, message=f"Confirmation email sent to {email}")

    def verify_auth_callback(
        self,
        session: Session,
        provider: IdentityProviderClient,
        access_token: str,
    ) -> CallbackData:
        """
        Handle the token Supabase issues after the confirmation link.

        - resolves the identity behind the token
        - re-creates the profile row if registration could not insert it
        - a profile that still cannot be created is reported as None

        Raises:
            AuthenticationFailure(401): token rejected.
        """
        try:
            identity = provider.get_identity(access_token)
        except IdentityProviderError as exc:
            raise AuthenticationFailure("Invalid or expired token", code=exc.code) from exc
        if identity is None:
            raise AuthenticationFailure("Invalid or expired token")

        profile = self.repo.get_by_id(session, identity.id)
        if profile is None:
            logger.warning("Confirmed user %s has no profile; creating it", identity.id)
            profile = self._profile_from_identity(session, identity)

        return CallbackData(
            user=identity,
            profile=ProfileRead.model_validate(profile) if profile else None,
        )

    # ----- Profile -----

    def get_current_user(self, session: Session, principal: Principal) -> CurrentUserRead:
        profile = self.repo.get_by_id(session, principal.id)
        return CurrentUserRead(
            id=principal.id,
            username=principal.username,
            email=principal.email,
            profile=ProfileRead.model_validate(profile) if profile else None,
        )

    def update_profile(
        self,
        session: Session,
        identity_id: str,
        payload: ProfileUpdate,
        email: str | None = None,
    ) -> Profile:
        """
        Partial profile update, stamping updated_at.

        The caller must have checked that identity_id is its own
        (`ensure_same_identity`). A missing row is created when `email` is
        known, so users without a profile can still set their username.

        Raises:
            NotFound(404): no profile and no email to create one.
            Conflict(409): the email already belongs to another profile.
        """
        profile = self.repo.get_by_id(session, identity_id)
        if profile is None:
            if not email:
                raise NotFound("Profile not found")
            profile = Profile(
                id=identity_id,
                username=payload.username or username_from_email(email),
                email=email,
            )

        if payload.username is not None:
            profile.username = payload.username
        profile.updated_at = datetime.now(timezone.utc)

        try:
            return self.repo.update(session, profile)
        except IntegrityError as exc:
            session.rollback()
            logger.warning("Profile write for %s hit a unique constraint", identity_id)
            raise Conflict("Profile email is already in use", code="unique_violation") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Profile update failed for %s", identity_id)
            raise ProviderFailure("Failed to update profile", code=type(exc).__name__) from exc
