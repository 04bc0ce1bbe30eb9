import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import caller_claims
from app.core.errors import (
    AuthorizationFailure,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    ProviderFailure,
)
from app.core.storage_utils import MediaStorage, generate_object_path
from app.models.review import Review, ReviewMedia
from app.repositories.review_repo import ReviewRepository
from app.schemas.auth import Principal
from app.schemas.review import (
    ReviewCreate,
    ReviewPage,
    ReviewRead,
    ReviewSearch,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)

# --- Media config ---

DEFAULT_MAX_MEDIA_BYTES = 20 * 1024 * 1024

# MIME prefix -> stored media_type
ALLOWED_MEDIA_PREFIXES: dict[str, str] = {
    "image/": "image",
    "audio/": "audio",
    "video/": "video",
}

# (original filename, content type, bytes)
MediaFile = tuple[str | None, str, bytes]


class ReviewService:
    """
    Business logic for Review & ReviewMedia.

    Responsibilities:
      - ownership gate: only the author may update/delete or attach media
      - read models tolerant of legacy NULL columns
      - media upload/delete orchestration with Supabase Storage
    """

    def __init__(self, repo: ReviewRepository, max_media_bytes: int = DEFAULT_MAX_MEDIA_BYTES):
        self.repo = repo
        self.max_media_bytes = max_media_bytes

    # ----- Helpers -----

    def _get_review(self, session: Session, review_id: uuid.UUID) -> Review:
        review = self.repo.get_by_id(session, review_id)
        if not review:
            raise NotFound("Review not found")
        return review

    def _get_owned_review(
        self,
        session: Session,
        review_id: uuid.UUID,
        principal: Principal,
        action: str,
    ) -> Review:
        """
        Load a review the caller is about to mutate.

        Raises:
            NotFound(404): no such review.
            AuthorizationFailure(403): review belongs to someone else.
        """
        review = self._get_review(session, review_id)
        if review.user_id != principal.id:
            logger.info("User %s may not %s review %s", principal.id, action, review_id)
            raise AuthorizationFailure(f"You do not have permission to {action} this review")
        return review

    def _validate_media(self, content_type: str | None, file_bytes: bytes) -> str:
        """Return the media_type for an upload, or raise."""
        if not content_type:
            raise InvalidInput("Missing content-type for uploaded file")

        media_type = next(
            (kind for prefix, kind in ALLOWED_MEDIA_PREFIXES.items() if content_type.startswith(prefix)),
            None,
        )
        if media_type is None:
            raise InvalidInput("Unsupported media type. Allowed: image, audio, video.")

        if len(file_bytes) > self.max_media_bytes:
            raise PayloadTooLarge(f"File too large (max {self.max_media_bytes // (1024 * 1024)}MB).")

        return media_type

    # ----- Reviews -----

    def create_review(
        self,
        session: Session,
        payload: ReviewCreate,
        principal: Principal,
        raw_token: str | None = None,
    ) -> ReviewRead:
        """
        Persist a review owned by the caller.

        With the caller's bearer token at hand, the insert runs in the
        caller's database security context (RLS); otherwise as the service.
        """
        now = datetime.now(timezone.utc)
        review = Review(
            **payload.model_dump(),
            user_id=principal.id,
            created_at=now,
            updated_at=now,
        )
        claims = caller_claims(principal) if raw_token else None
        try:
            review = self.repo.create(session, review, caller_claims=claims)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Review insert failed for user %s", principal.id)
            raise ProviderFailure("Failed to create review", code=type(exc).__name__) from exc

        logger.info("Review %s created by %s", review.id, principal.id)
        return ReviewRead.from_row(review)

    def list_reviews(self, session: Session, page: int = 1, limit: int = 10) -> ReviewPage:
        """Newest-first page of reviews plus the total count."""
        if page < 1 or limit < 1:
            raise InvalidInput("page must be >= 1 and limit must be > 0")
        rows = self.repo.list_page(session, skip=(page - 1) * limit, limit=limit)
        return ReviewPage(
            reviews=[ReviewRead.from_row(r) for r in rows],
            total=self.repo.count(session),
        )

    def get_review(self, session: Session, review_id: uuid.UUID) -> ReviewRead:
        return ReviewRead.from_row(self._get_review(session, review_id))

    def list_user_reviews(self, session: Session, user_id: str) -> list[ReviewRead]:
        return [ReviewRead.from_row(r) for r in self.repo.list_by_user(session, user_id)]

    def search_reviews(self, session: Session, query: ReviewSearch) -> list[ReviewRead]:
        rows = self.repo.search(
            session,
            keyboard_frame=query.keyboard_frame,
            switch_type=query.switch_type,
            keycap_type=query.keycap_type,
            tags=query.tags,
        )
        return [ReviewRead.from_row(r) for r in rows]

    def update_review(
        self,
        session: Session,
        review_id: uuid.UUID,
        payload: ReviewUpdate,
        principal: Principal,
    ) -> ReviewRead:
        """Partial update by the author only."""
        review = self._get_owned_review(session, review_id, principal, "update")

        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field not in ("desk_pad", "desk_type"):
                continue
            setattr(review, field, value)
        review.updated_at = datetime.now(timezone.utc)

        return ReviewRead.from_row(self.repo.update(session, review))

    def delete_review(
        self,
        session: Session,
        storage: MediaStorage,
        review_id: uuid.UUID,
        principal: Principal,
    ) -> None:
        """
        Delete a review with everything hanging off it.

        Order:
          1. blobs of all its media (removing a missing blob is a no-op)
          2. media rows, comments and the review row, in one transaction

        A failure in step 1 leaves every row in place, so the call can simply
        be retried. A second delete of the same review is a 404.
        """
        review = self._get_owned_review(session, review_id, principal, "delete")
        media = self.repo.list_media(session, review.id)

        paths = [m.storage_path or storage.extract_path_from_public_url(m.file_url) for m in media]
        try:
            storage.remove([p for p in paths if p])
        except Exception as exc:
            logger.exception("Blob cleanup failed for review %s", review.id)
            raise ProviderFailure("Failed to delete review media", code=type(exc).__name__) from exc

        try:
            media_count, comment_count = self.repo.delete_with_dependents(session, review)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Review delete failed for %s", review_id)
            raise ProviderFailure("Failed to delete review", code=type(exc).__name__) from exc

        logger.info(
            "Review %s deleted by %s (%d media, %d comments)",
            review_id,
            principal.id,
            media_count,
            comment_count,
        )

    # ----- Media -----

    def list_media(self, session: Session, review_id: uuid.UUID) -> list[ReviewMedia]:
        self._get_review(session, review_id)
        return self.repo.list_media(session, review_id)

    def upload_media(
        self,
        session: Session,
        storage: MediaStorage,
        review_id: uuid.UUID,
        files: Iterable[MediaFile],
        principal: Principal,
    ) -> list[ReviewMedia]:
        """
        Attach one or more files to a review: all of them or none.

        Every file is validated before anything is uploaded. If an upload or
        the row insert fails, the rows are rolled back and the blobs already
        stored by this call are removed before the error is raised.

        Path pattern:
            <review_id>/<uuid4>-<original name>
        """
        review = self._get_owned_review(session, review_id, principal, "add media to")

        files = list(files)
        if not files:
            raise InvalidInput("No files uploaded")
        kinds = [self._validate_media(content_type, data) for _, content_type, data in files]

        uploaded: list[str] = []
        rows: list[ReviewMedia] = []
        try:
            for (name, content_type, data), kind in zip(files, kinds):
                path = generate_object_path(review.id, name)
                url = storage.upload(path, data, content_type)
                uploaded.append(path)
                rows.append(
                    ReviewMedia(
                        review_id=review.id,
                        storage_path=path,
                        file_url=url,
                        file_type=content_type,
                        file_size=len(data),
                        original_name=name,
                        media_type=kind,
                    )
                )
            created = self.repo.create_media_batch(session, rows)
        except Exception as exc:
            session.rollback()
            logger.error(
                "Media upload for review %s failed after %d/%d files: %s",
                review.id,
                len(uploaded),
                len(files),
                exc,
            )
            try:
                storage.remove(uploaded)
            except Exception:
                logger.exception("Could not remove partial uploads %s", uploaded)
            raise ProviderFailure(
                f"Media upload failed: {exc}", code=type(exc).__name__
            ) from exc

        logger.info("Attached %d media to review %s", len(created), review.id)
        return created
