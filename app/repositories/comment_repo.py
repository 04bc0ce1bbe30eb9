import uuid

from sqlmodel import Session, col, select

from app.models.comment import Comment
from app.models.profile import Profile


class CommentRepository:
    """Data access layer for Comment."""

    def get_owned(self, session: Session, comment_id: uuid.UUID, user_id: str) -> Comment | None:
        """
        Return the comment only if `user_id` wrote it.

        A missing comment and someone else's comment look the same (None).
        """
        stmt = select(Comment).where(Comment.id == comment_id, Comment.user_id == user_id)
        return session.exec(stmt).first()

    def list_for_review(
        self,
        session: Session,
        review_id: uuid.UUID,
    ) -> list[tuple[Comment, Profile | None]]:
        """Comments on a review, oldest first, each with its author's profile (if any)."""
        stmt = (
            select(Comment, Profile)
            .join(Profile, col(Profile.id) == col(Comment.user_id), isouter=True)
            .where(Comment.review_id == review_id)
            .order_by(col(Comment.created_at), col(Comment.id))
        )
        return list(session.exec(stmt).all())

    # CRUD
    def create(self, session: Session, comment: Comment) -> Comment:
        session.add(comment)
        session.commit()
        session.refresh(comment)
        return comment

    def update(self, session: Session, comment: Comment) -> Comment:
        session.add(comment)
        session.commit()
        session.refresh(comment)
        return comment

    def delete(self, session: Session, comment: Comment) -> None:
        session.delete(comment)
        session.commit()
