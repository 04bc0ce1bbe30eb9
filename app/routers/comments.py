import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.repositories.comment_repo import CommentRepository
from app.repositories.review_repo import ReviewRepository
from app.schemas.auth import MessageResponse, Principal
from app.schemas.comment import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
)
from app.services.comment_service import CommentService

router = APIRouter(prefix="/comments", tags=["Comments"])

comment_repo = CommentRepository()
review_repo = ReviewRepository()
service = CommentService(comment_repo, review_repo)


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    payload: CommentCreate,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """
    Comment on a review.

    - 404 if the review does not exist.
    - content: 1..1000 characters.
    """
    comment = service.create_comment(session, payload, current_user)
    return CommentResponse(data=comment, message="Comment created successfully")


@router.get("/review/{review_id}", response_model=CommentListResponse)
def list_review_comments(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Comments of a review in reading order (oldest first)."""
    comments = service.list_for_review(session, review_id)
    return CommentListResponse(data=comments, total=len(comments))


@router.patch("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: uuid.UUID,
    payload: CommentUpdate,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """
    Edit your own comment.

    Someone else's comment answers 404, same as a missing one.
    """
    comment = service.update_comment(session, comment_id, payload, current_user)
    return CommentResponse(data=comment, message="Comment updated successfully")


@router.delete("/{comment_id}", response_model=MessageResponse)
def delete_comment(
    comment_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """Delete your own comment (404 for missing or someone else's)."""
    service.remove_comment(session, comment_id, current_user)
    return MessageResponse(success=True, message="Comment deleted successfully")
