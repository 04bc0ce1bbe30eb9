"""Tests for comments: creation, listing order, author-only edits."""

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import status
from sqlmodel import Session

from conftest import seed_review
from app.models.comment import Comment

BASE_TIME = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _comment(client, headers, review_id, content="Clean build!") -> dict:
    response = client.post(
        "/comments",
        json={"reviewId": str(review_id), "content": content},
        headers=headers,
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["data"]


def test_create_comment(client, register_user, db_session: Session) -> None:
    user = register_user("commenter")
    review = seed_review(db_session, "author")

    response = client.post(
        "/comments",
        json={"reviewId": str(review.id), "content": "  Sounds great  "},
        headers=user["headers"],
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Comment created successfully"
    assert body["data"]["reviewId"] == str(review.id)
    assert body["data"]["userId"] == user["id"]
    assert body["data"]["content"] == "Sounds great"


def test_create_comment_requires_auth(client, db_session: Session) -> None:
    review = seed_review(db_session, "author")
    response = client.post("/comments", json={"reviewId": str(review.id), "content": "hi"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_create_comment_on_missing_review_is_404(client, register_user) -> None:
    user = register_user("commenter")
    response = client.post(
        "/comments",
        json={"reviewId": str(uuid.uuid4()), "content": "hello?"},
        headers=user["headers"],
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Review not found"


def test_create_comment_rejects_too_long_content(client, register_user, db_session: Session) -> None:
    user = register_user("commenter")
    review = seed_review(db_session, "author")

    response = client.post(
        "/comments",
        json={"reviewId": str(review.id), "content": "x" * 1001},
        headers=user["headers"],
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT

    at_limit = client.post(
        "/comments",
        json={"reviewId": str(review.id), "content": "x" * 1000},
        headers=user["headers"],
    )
    assert at_limit.status_code == status.HTTP_201_CREATED


def test_create_comment_rejects_blank_content(client, register_user, db_session: Session) -> None:
    user = register_user("commenter")
    review = seed_review(db_session, "author")
    response = client.post(
        "/comments",
        json={"reviewId": str(review.id), "content": "   "},
        headers=user["headers"],
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT


def test_list_comments_oldest_first_with_authors(client, db_session: Session) -> None:
    from app.models.profile import Profile

    review = seed_review(db_session, "author")
    db_session.add(Profile(id="u-1", username="first", email="first@example.com"))
    db_session.add(Comment(review_id=review.id, user_id="u-1", content="later", created_at=BASE_TIME + timedelta(minutes=1)))
    db_session.add(Comment(review_id=review.id, user_id="u-ghost", content="earlier", created_at=BASE_TIME))
    db_session.commit()

    response = client.get(f"/comments/review/{review.id}")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["total"] == 2
    assert [c["content"] for c in body["data"]] == ["earlier", "later"]
    assert body["data"][0]["user"] is None
    assert body["data"][1]["user"] == {"id": "u-1", "username": "first", "email": "first@example.com"}


def test_list_comments_for_review_without_comments(client, db_session: Session) -> None:
    review = seed_review(db_session, "author")
    body = client.get(f"/comments/review/{review.id}").json()
    assert body == {"success": True, "data": [], "total": 0}


def test_update_comment_by_author_advances_updated_at(client, register_user, db_session: Session) -> None:
    user = register_user("commenter")
    review = seed_review(db_session, "author")
    comment = Comment(
        review_id=review.id,
        user_id=user["id"],
        content="first draft",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    db_session.add(comment)
    db_session.commit()
    db_session.refresh(comment)

    response = client.patch(f"/comments/{comment.id}", json={"content": "final"}, headers=user["headers"])
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["message"] == "Comment updated successfully"
    assert body["data"]["content"] == "final"
    assert body["data"]["updatedAt"] > body["data"]["createdAt"]


def test_update_comment_by_someone_else_is_not_found(client, register_user, db_session: Session) -> None:
    author = register_user("author")
    other = register_user("other")
    review = seed_review(db_session, "reviewer")
    comment = _comment(client, author["headers"], review.id)

    response = client.patch(f"/comments/{comment['id']}", json={"content": "edited"}, headers=other["headers"])
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Comment not found or you do not have permission"

    listed = client.get(f"/comments/review/{review.id}").json()["data"]
    assert listed[0]["content"] == "Clean build!"


def test_delete_comment_by_someone_else_is_not_found(client, register_user, db_session: Session) -> None:
    author = register_user("author")
    other = register_user("other")
    review = seed_review(db_session, "reviewer")
    comment = _comment(client, author["headers"], review.id)

    response = client.delete(f"/comments/{comment['id']}", headers=other["headers"])
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert client.get(f"/comments/review/{review.id}").json()["total"] == 1


def test_delete_comment_by_author(client, register_user, db_session: Session) -> None:
    author = register_user("author")
    review = seed_review(db_session, "reviewer")
    comment = _comment(client, author["headers"], review.id)

    response = client.delete(f"/comments/{comment['id']}", headers=author["headers"])
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "message": "Comment deleted successfully"}
    assert client.get(f"/comments/review/{review.id}").json()["total"] == 0

    again = client.delete(f"/comments/{comment['id']}", headers=author["headers"])
    assert again.status_code == status.HTTP_404_NOT_FOUND
