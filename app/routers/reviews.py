import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlmodel import Session

from app.core.auth import get_bearer_token, require_auth
from app.core.config import get_settings
from app.core.storage_utils import MediaStorage, get_media_storage
from app.database import get_session
from app.repositories.review_repo import ReviewRepository
from app.schemas.auth import MessageResponse, Principal
from app.schemas.review import (
    ReviewCreate,
    ReviewMediaRead,
    ReviewPage,
    ReviewRead,
    ReviewSearch,
    ReviewUpdate,
)
from app.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])

repo = ReviewRepository()
service = ReviewService(repo, max_media_bytes=get_settings().MAX_MEDIA_BYTES)


# -------- Authenticated endpoints --------


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
    token: str = Depends(get_bearer_token),
):
    """
    Post a review as the authenticated user.

    Ratings must be within 0..5.
    """
    return service.create_review(session, payload, current_user, raw_token=token)


# -------- Public endpoints --------


@router.get("", response_model=ReviewPage)
def list_reviews(
    session: Session = Depends(get_session),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """
    List reviews, newest first.

    Returns the page plus the total number of reviews.
    """
    return service.list_reviews(session, page=page, limit=limit)


@router.get("/search", response_model=list[ReviewRead])
def search_reviews(
    session: Session = Depends(get_session),
    keyboard_frame: str | None = Query(default=None, alias="keyboardFrame"),
    switch_type: str | None = Query(default=None, alias="switchType"),
    keycap_type: str | None = Query(default=None, alias="keycapType"),
    tags: str | None = Query(default=None, description="Comma separated, matches ANY"),
):
    """
    Search reviews.

    - text filters are case-insensitive substring matches
    - `tags=red,lubed` matches reviews carrying at least one of them
    - all given filters must match; no filter returns every review
    """
    query = ReviewSearch.from_query(keyboard_frame, switch_type, keycap_type, tags)
    return service.search_reviews(session, query)


@router.get("/user/{user_id}", response_model=list[ReviewRead])
def list_user_reviews(
    user_id: str,
    session: Session = Depends(get_session),
):
    """Reviews written by one user, newest first."""
    return service.list_user_reviews(session, user_id)


@router.get("/{review_id}", response_model=ReviewRead)
def get_review(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Get a single review by id."""
    return service.get_review(session, review_id)


@router.get("/{review_id}/media", response_model=list[ReviewMediaRead])
def list_review_media(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """List media attached to a review (upload order)."""
    return service.list_media(session, review_id)


# -------- Owner-only endpoints --------


@router.patch("/{review_id}", response_model=ReviewRead)
def update_review(
    review_id: uuid.UUID,
    payload: ReviewUpdate,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """Update a review (author only, 403 otherwise)."""
    return service.update_review(session, review_id, payload, current_user)


@router.delete("/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
    current_user: Principal = Depends(require_auth),
):
    """
    Delete a review (author only).

    - Also deletes its media files from Storage, its media rows and comments.
    """
    service.delete_review(session, storage, review_id, current_user)
    return MessageResponse(success=True, message="Review deleted successfully")


@router.post(
    "/{review_id}/media",
    response_model=list[ReviewMediaRead],
    status_code=status.HTTP_201_CREATED,
    summary="Upload one or more media files for a review",
)
def upload_review_media(
    review_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
    current_user: Principal = Depends(require_auth),
):
    """
    Attach images / audio / video to a review (author only).

    All files are stored or none: one failure cancels the whole upload.
    """
    payload = [(f.filename, f.content_type, f.file.read()) for f in files]
    return service.upload_media(session, storage, review_id, payload, current_user)
