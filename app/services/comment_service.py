import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.errors import NotFound, ProviderFailure
from app.models.comment import Comment
from app.models.profile import Profile
from app.repositories.comment_repo import CommentRepository
from app.repositories.review_repo import ReviewRepository
from app.schemas.auth import Principal
from app.schemas.comment import CommentAuthor, CommentCreate, CommentRead, CommentUpdate

logger = logging.getLogger(__name__)

NOT_FOUND_OR_NOT_PERMITTED = "Comment not found or you do not have permission"


def to_read(comment: Comment, author: Profile | None = None) -> CommentRead:
    return CommentRead(
        id=comment.id,
        review_id=comment.review_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        user=(
            CommentAuthor(id=author.id, username=author.username, email=author.email)
            if author
            else None
        ),
    )


class CommentService:
    """
    Business logic for comments.

    Ownership: update/delete look the comment up by (id, author). Someone
    else's comment is reported exactly like a missing one, so non-authors
    cannot probe which comment ids exist.
    """

    def __init__(self, comment_repo: CommentRepository, review_repo: ReviewRepository):
        self.comment_repo = comment_repo
        self.review_repo = review_repo

    def _get_owned(self, session: Session, comment_id: uuid.UUID, principal: Principal) -> Comment:
        comment = self.comment_repo.get_owned(session, comment_id, principal.id)
        if comment is None:
            raise NotFound(NOT_FOUND_OR_NOT_PERMITTED)
        return comment

    def create_comment(
        self,
        session: Session,
        payload: CommentCreate,
        principal: Principal,
    ) -> CommentRead:
        """
        Raises:
            NotFound(404): the review does not exist.
        """
        if self.review_repo.get_by_id(session, payload.review_id) is None:
            raise NotFound("Review not found")

        now = datetime.now(timezone.utc)
        comment = Comment(
            review_id=payload.review_id,
            user_id=principal.id,
            content=payload.content,
            created_at=now,
            updated_at=now,
        )
        try:
            comment = self.comment_repo.create(session, comment)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Comment insert failed on review %s", payload.review_id)
            raise ProviderFailure("Failed to create comment", code=type(exc).__name__) from exc

        logger.info("Comment %s created on review %s by %s", comment.id, comment.review_id, principal.id)
        return to_read(comment)

    def list_for_review(self, session: Session, review_id: uuid.UUID) -> list[CommentRead]:
        """Oldest first, each with its author's {id, username, email} when known."""
        return [
            to_read(comment, author)
            for comment, author in self.comment_repo.list_for_review(session, review_id)
        ]

    def update_comment(
        self,
        session: Session,
        comment_id: uuid.UUID,
        payload: CommentUpdate,
        principal: Principal,
    ) -> CommentRead:
        comment = self._get_owned(session, comment_id, principal)
        comment.content = payload.content
        comment.updated_at = datetime.now(timezone.utc)
        comment = self.comment_repo.update(session, comment)
        logger.info("Comment %s updated by %s", comment_id, principal.id)
        return to_read(comment)

    def remove_comment(self, session: Session, comment_id: uuid.UUID, principal: Principal) -> None:
        comment = self._get_owned(session, comment_id, principal)
        self.comment_repo.delete(session, comment)
        logger.info("Comment %s deleted by %s", comment_id, principal.id)
