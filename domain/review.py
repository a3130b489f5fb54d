"""
Domain: Review entity and its moderation lifecycle.

Contract excerpts implemented here:
- Every newly created Review is pending and has no moderator.
- A Review always carries exactly one of pending / approved / rejected.
- Transitions are one-directional: pending -> approved or pending -> rejected.
  Re-applying the current terminal status is a no-op; anything else is refused.
- Rating is an integer 1..5; the body is at most 500 characters.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import InvalidTransitionError, ValidationError
from .time import require_utc_timestamp

REVIEW_BODY_MAX_LENGTH: int = 500
MIN_RATING: int = 1
MAX_RATING: int = 5
GENERAL_LAWYER_ID: str = "general"
ANONYMOUS_AUTHOR: str = "Anonymous"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _is_valid_rating(rating: object) -> bool:
    # bool is an int subclass; True must not pass as a rating of 1.
    return (
        isinstance(rating, int)
        and not isinstance(rating, bool)
        and MIN_RATING <= rating <= MAX_RATING
    )


def submission_enabled(rating: Optional[int], submitting: bool = False) -> bool:
    """
    Whether the review submit control should be enabled.

    Disabled only while no rating has been chosen (None or 0) or while a
    submission is already in flight. A rating of 1 is a legitimate choice.
    """

    if submitting:
        return False
    return _is_valid_rating(rating)


@dataclass(frozen=True, slots=True)
class ReviewInput:
    """Public review submission as received from the review form."""

    rating: Optional[int]
    title: str
    body: str
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    anonymous: bool = False
    lawyer_id: Optional[str] = None
    lawyer_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.anonymous:
            return ANONYMOUS_AUTHOR
        return (self.author_name or "").strip()

    def validate(self) -> None:
        """Raise ValidationError describing every problem with this submission."""

        problems: dict[str, str] = {}

        if self.rating is None or self.rating == 0:
            problems["rating"] = "Please select a rating before submitting"
        elif not _is_valid_rating(self.rating):
            problems["rating"] = f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}"

        if not self.title or not self.title.strip():
            problems["title"] = "Title is required"

        if not self.body or not self.body.strip():
            problems["body"] = "Review text is required"
        elif len(self.body) > REVIEW_BODY_MAX_LENGTH:
            problems["body"] = f"Review text must be at most {REVIEW_BODY_MAX_LENGTH} characters"

        if not self.anonymous and not (self.author_name or "").strip():
            problems["author_name"] = "Name is required unless posting anonymously"

        if problems:
            raise ValidationError("Invalid review submission", details=problems)


@dataclass(frozen=True, slots=True)
class Review:
    """
    Immutable snapshot of a review as last confirmed by the store.

    Moderation never mutates an instance; `moderated()` returns a new one.
    """

    review_id: str
    lawyer_id: str
    lawyer_name: Optional[str]
    author_display_name: str
    rating: int
    title: str
    body: str
    submitted_at: Optional[datetime]
    status: ReviewStatus = ReviewStatus.PENDING
    author_email: Optional[str] = None
    author_user_id: Optional[str] = None
    anonymous: bool = False
    verified: bool = False
    moderator_id: Optional[str] = None
    moderated_at: Optional[datetime] = None
    admin_notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.submitted_at is not None:
            require_utc_timestamp("submitted_at", self.submitted_at)
        if self.moderated_at is not None:
            require_utc_timestamp("moderated_at", self.moderated_at)

    @classmethod
    def new(
        cls,
        review_id: str,
        review_input: ReviewInput,
        submitted_at: datetime,
        author_user_id: Optional[str] = None,
    ) -> "Review":
        """Build a freshly submitted (pending, unmoderated) review."""

        review_input.validate()
        return cls(
            review_id=review_id,
            lawyer_id=review_input.lawyer_id or GENERAL_LAWYER_ID,
            lawyer_name=review_input.lawyer_name,
            author_display_name=review_input.display_name,
            author_email=review_input.author_email or None,
            author_user_id=author_user_id,
            anonymous=review_input.anonymous,
            rating=int(review_input.rating),  # validated above
            title=review_input.title.strip(),
            body=review_input.body,
            submitted_at=submitted_at,
            status=ReviewStatus.PENDING,
            verified=False,
            moderator_id=None,
            moderated_at=None,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is ReviewStatus.PENDING

    def moderated(
        self,
        status: ReviewStatus,
        moderator_id: str,
        at: datetime,
        notes: Optional[str] = None,
    ) -> "Review":
        """
        Return this review moved to `status` by `moderator_id`.

        Re-applying the current approved/rejected status returns `self`
        unchanged so that repeated moderation is idempotent.
        """

        status = ReviewStatus(status)
        if status is ReviewStatus.PENDING:
            raise InvalidTransitionError(self.status.value, status.value)
        if self.status is status:
            return self
        if self.status is not ReviewStatus.PENDING:
            raise InvalidTransitionError(self.status.value, status.value)

        require_utc_timestamp("moderated_at", at)
        return replace(
            self,
            status=status,
            moderator_id=moderator_id,
            moderated_at=at,
            admin_notes=notes if notes is not None else self.admin_notes,
        )

    def matches_text(self, term: Optional[str]) -> bool:
        """Case-insensitive substring match over title, body, author and lawyer name."""

        if term is None or not term.strip():
            return True
        needle = term.strip().lower()
        haystack = (self.title, self.body, self.author_display_name, self.lawyer_name)
        return any(needle in (value or "").lower() for value in haystack)


__all__ = [
    "REVIEW_BODY_MAX_LENGTH",
    "GENERAL_LAWYER_ID",
    "ANONYMOUS_AUTHOR",
    "ReviewStatus",
    "ReviewInput",
    "Review",
    "submission_enabled",
]
