"""
Domain: aggregate review statistics (pure).

The full fold is the only way stats are produced. It is recomputed from the
whole review set on every change rather than patched incrementally, which is
fine at directory scale (hundreds of reviews) and cannot drift after a missed
change event.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .review import Review, ReviewStatus


@dataclass(frozen=True, slots=True)
class ReviewStats:
    total_reviews: int = 0
    total_pending: int = 0
    total_approved: int = 0
    average_rating: float = 0.0

    @property
    def total_rejected(self) -> int:
        # Rejected is the complement: the three counts always sum to the total.
        return self.total_reviews - self.total_pending - self.total_approved

    @property
    def approval_rate(self) -> int:
        """Approved share of all reviews, in whole percent."""
        return round(self.total_approved / max(self.total_reviews, 1) * 100)

    def to_dict(self) -> dict[str, float | int]:
        return {
            "totalReviews": self.total_reviews,
            "totalPending": self.total_pending,
            "totalApproved": self.total_approved,
            "totalRejected": self.total_rejected,
            "averageRating": self.average_rating,
        }


EMPTY_STATS = ReviewStats()


def fold_review_stats(reviews: Iterable[Review]) -> ReviewStats:
    """
    Fold a review set into ReviewStats.

    - average_rating is the mean over all reviews regardless of status,
      rounded half-up to one decimal; 0.0 for an empty set.
    """

    total = pending = approved = rating_sum = 0
    for review in reviews:
        total += 1
        rating_sum += review.rating
        if review.status is ReviewStatus.PENDING:
            pending += 1
        elif review.status is ReviewStatus.APPROVED:
            approved += 1

    if total == 0:
        return EMPTY_STATS

    average = (Decimal(rating_sum) / Decimal(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return ReviewStats(
        total_reviews=total,
        total_pending=pending,
        total_approved=approved,
        average_rating=float(average),
    )


__all__ = ["ReviewStats", "EMPTY_STATS", "fold_review_stats"]
