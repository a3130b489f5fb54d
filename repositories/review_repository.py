"""
Review repository (persistence).

This module provides *only* persistence operations and row mapping for the
Review domain entity. Moderation rules (lifecycle, authorization) live in the
domain and in `services/review_moderation_store.py`.

Row shape of the `reviews` collection:
    {id, lawyerId, lawyerName, clientName, email, title, content, rating,
     anonymous, date, status, verified, userId, moderatorId, moderatedAt,
     adminNotes}
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from domain.review import GENERAL_LAWYER_ID, Review, ReviewStatus
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.collection_client import (
    ID_FIELD,
    ChangeCallback,
    CollectionClient,
    ErrorCallback,
    Subscription,
)

# Collection name for Review records.
# Keep this aligned with your database schema.
REVIEWS_COLLECTION: str = "reviews"


def review_to_row(review: Review) -> dict[str, Any]:
    """Convert a domain Review to a `reviews` row payload."""

    return {
        ID_FIELD: review.review_id,
        "lawyerId": review.lawyer_id,
        "lawyerName": review.lawyer_name,
        "clientName": review.author_display_name,
        "email": review.author_email,
        "title": review.title,
        "content": review.body,
        "rating": review.rating,
        "anonymous": review.anonymous,
        "date": to_iso_utc(review.submitted_at) if review.submitted_at else None,
        "status": review.status.value,
        "verified": review.verified,
        "userId": review.author_user_id,
        "moderatorId": review.moderator_id,
        "moderatedAt": to_iso_utc(review.moderated_at) if review.moderated_at else None,
        "adminNotes": review.admin_notes,
    }


def row_to_review(row: Mapping[str, Any]) -> Review:
    """
    Convert a `reviews` row into a domain Review.

    Raises KeyError/ValueError for rows missing the id, rating or a known status.
    """

    def get_optional(key: str) -> Optional[str]:
        value = row.get(key)
        return str(value) if value not in (None, "") else None

    return Review(
        review_id=str(row[ID_FIELD]),
        lawyer_id=get_optional("lawyerId") or GENERAL_LAWYER_ID,
        lawyer_name=get_optional("lawyerName"),
        author_display_name=str(row.get("clientName") or ""),
        author_email=get_optional("email"),
        author_user_id=get_optional("userId"),
        anonymous=bool(row.get("anonymous", False)),
        rating=int(row["rating"]),
        title=str(row.get("title") or ""),
        body=str(row.get("content") or ""),
        submitted_at=parse_utc_datetime(row.get("date")),
        status=ReviewStatus(str(row.get("status") or ReviewStatus.PENDING.value)),
        verified=bool(row.get("verified", False)),
        moderator_id=get_optional("moderatorId"),
        moderated_at=parse_utc_datetime(row.get("moderatedAt")),
        admin_notes=get_optional("adminNotes"),
    )


class ReviewRepository:
    """Thin persistence wrapper over the `reviews` collection."""

    def __init__(self, client: CollectionClient, collection: str = REVIEWS_COLLECTION) -> None:
        self._client = client
        self.collection = collection

    async def insert(self, review: Review) -> None:
        row = review_to_row(review)
        await self._client.create(self.collection, review.review_id, row)

    async def update_moderation(
        self,
        review_id: str,
        status: ReviewStatus,
        moderator_id: str,
        moderated_at: datetime,
        admin_notes: Optional[str] = None,
    ) -> None:
        changes: dict[str, Any] = {
            "status": status.value,
            "moderatorId": moderator_id,
            "moderatedAt": to_iso_utc(moderated_at),
        }
        if admin_notes is not None:
            changes["adminNotes"] = admin_notes
        await self._client.update(self.collection, review_id, changes)

    async def delete(self, review_id: str) -> None:
        await self._client.delete(self.collection, review_id)

    async def subscribe(
        self,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        return await self._client.subscribe(
            self.collection,
            on_change,
            on_error=on_error,
            order_by="date",
        )


__all__ = [
    "REVIEWS_COLLECTION",
    "review_to_row",
    "row_to_review",
    "ReviewRepository",
]
