import json
import uuid
from typing import Any

from sqlalchemy import String, cast, func, or_
from sqlmodel import Session, col, select

from app.database import apply_caller_context
from app.models.comment import Comment
from app.models.review import Review, ReviewMedia


class ReviewRepository:
    """
    Data access layer for Review & ReviewMedia.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    @staticmethod
    def _newest_first(stmt):
        return stmt.order_by(col(Review.created_at).desc(), col(Review.id).desc())

    # ----- Reviews -----

    def get_by_id(self, session: Session, review_id: uuid.UUID) -> Review | None:
        return session.get(Review, review_id)

    def count(self, session: Session) -> int:
        return session.exec(select(func.count()).select_from(Review)).one()

    def list_page(self, session: Session, skip: int = 0, limit: int = 10) -> list[Review]:
        stmt = self._newest_first(select(Review)).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def list_by_user(self, session: Session, user_id: str) -> list[Review]:
        stmt = self._newest_first(select(Review).where(Review.user_id == user_id))
        return list(session.exec(stmt).all())

    def search(
        self,
        session: Session,
        *,
        keyboard_frame: str | None = None,
        switch_type: str | None = None,
        keycap_type: str | None = None,
        tags: list[str] | None = None,
    ) -> list[Review]:
        """
        Filtered listing.

        - text filters: case-insensitive substring
        - tags: match if the review carries ANY of the given tags
        - filters AND together; None / empty filters are ignored
        """
        stmt = select(Review)

        text_filters = (
            (Review.keyboard_frame, keyboard_frame),
            (Review.switch_type, switch_type),
            (Review.keycap_type, keycap_type),
        )
        for column, value in text_filters:
            if value:
                stmt = stmt.where(func.lower(column).contains(value.lower(), autoescape=True))

        if tags:
            # tags is a JSON array; each element is stored JSON-encoded, so
            # matching the quoted tag text works on Postgres and SQLite alike.
            tags_text = cast(Review.tags, String)
            stmt = stmt.where(
                or_(*(tags_text.contains(json.dumps(tag), autoescape=True) for tag in tags))
            )

        return list(session.exec(self._newest_first(stmt)).all())

    def create(
        self,
        session: Session,
        review: Review,
        caller_claims: dict[str, Any] | None = None,
    ) -> Review:
        """
        Insert a review.

        With `caller_claims` the insert runs as that Supabase user so RLS
        insert policies apply to them instead of the service connection.
        """
        if caller_claims:
            apply_caller_context(session, caller_claims)
        session.add(review)
        session.commit()
        session.refresh(review)
        return review

    def update(self, session: Session, review: Review) -> Review:
        session.add(review)
        session.commit()
        session.refresh(review)
        return review

    def delete_with_dependents(self, session: Session, review: Review) -> tuple[int, int]:
        """
        Delete a review, its media rows and its comments in ONE commit.

        Returns:
            (media rows deleted, comments deleted)
        """
        media = session.exec(select(ReviewMedia).where(ReviewMedia.review_id == review.id)).all()
        comments = session.exec(select(Comment).where(Comment.review_id == review.id)).all()
        for row in (*media, *comments):
            session.delete(row)
        # Children must be gone before the parent row (FKs).
        session.flush()
        session.delete(review)
        session.commit()
        return len(media), len(comments)

    # ----- Media -----

    def list_media(self, session: Session, review_id: uuid.UUID) -> list[ReviewMedia]:
        stmt = (
            select(ReviewMedia)
            .where(ReviewMedia.review_id == review_id)
            .order_by(col(ReviewMedia.created_at), col(ReviewMedia.id))
        )
        return list(session.exec(stmt).all())

    def create_media_batch(self, session: Session, media: list[ReviewMedia]) -> list[ReviewMedia]:
        """Insert several media rows atomically."""
        session.add_all(media)
        session.commit()
        for row in media:
            session.refresh(row)
        return media
