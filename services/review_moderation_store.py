"""
Review moderation store.

Keeps a live, read-through view of the `reviews` collection and exposes the
moderation operations on it.

Handles:
- Public submission (always lands as pending, unmoderated)
- Approve / reject / delete, gated by the moderate_reviews capability
- Partitioned views (pending / approved / rejected) and text search
- Aggregate stats, refolded from the full set on every change

Consistency model:
- The Collection Client is the only source of truth. Writes are never applied
  locally; the in-memory view changes only when the confirming change event
  arrives through the subscription.
- If the subscription fails, the last-known-good view keeps being served and
  `stale` is set until a fresh snapshot arrives.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional
from uuid import uuid4

from domain.capabilities import Capability, Identity, require_capability
from domain.errors import NotFoundError, TransportError, ValidationError
from domain.review import Review, ReviewInput, ReviewStatus
from domain.stats import EMPTY_STATS, ReviewStats, fold_review_stats
from domain.time import utc_now
from repositories.collection_client import ChangeEvent, ChangeKind, CollectionClient, Subscription
from repositories.review_repository import REVIEWS_COLLECTION, ReviewRepository, row_to_review

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(review: Review) -> tuple[bool, datetime]:
    # Reviews still waiting for a server timestamp are the newest.
    return (review.submitted_at is None, review.submitted_at or _EPOCH)


def parse_review_status(status: Optional[ReviewStatus | str]) -> Optional[ReviewStatus]:
    """Accept a status, its string value, or None / "all" meaning no filter."""

    if status is None or status == "all":
        return None
    try:
        return ReviewStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown review status '{status}'", details={"status": str(status)}) from exc


class ReviewQuery:
    """
    Lazily evaluated, restartable result of `ReviewModerationStore.query`.

    Filtering happens on iteration; each `iter()` starts over from the
    snapshot taken when the query was created. No paging state is kept.
    """

    def __init__(
        self,
        reviews: tuple[Review, ...],
        status: Optional[ReviewStatus] = None,
        text_search: Optional[str] = None,
    ) -> None:
        self._reviews = reviews
        self.status = status
        self.text_search = text_search

    def __iter__(self) -> Iterator[Review]:
        for review in self._reviews:
            if self.status is not None and review.status is not self.status:
                continue
            if not review.matches_text(self.text_search):
                continue
            yield review

    def count(self) -> int:
        return sum(1 for _ in self)


class ReviewModerationStore:
    """
    Live review set plus moderation operations.

    Construct once per process (or admin session) with an explicit
    CollectionClient and pass it to consumers. Call `start()` to subscribe and
    `close()` to release the subscription; `async with` does both.
    """

    def __init__(
        self,
        client: CollectionClient,
        *,
        collection: str = REVIEWS_COLLECTION,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._repository = ReviewRepository(client, collection)
        self._clock = clock
        self._id_factory = id_factory
        self._reviews: Dict[str, Review] = {}
        self._ordered: tuple[Review, ...] = ()
        self._stats: ReviewStats = EMPTY_STATS
        self._subscription: Optional[Subscription] = None
        self._stale = False
        self._last_error: Optional[TransportError] = None

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._subscription is not None and self._subscription.active:
            return
        try:
            self._subscription = await self._repository.subscribe(self.handle_change, self._handle_subscription_error)
        except TransportError as exc:
            self._handle_subscription_error(exc)

    async def close(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()

    async def __aenter__(self) -> "ReviewModerationStore":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def stale(self) -> bool:
        """True while serving the last-known-good view after a subscription error."""
        return self._stale

    @property
    def last_error(self) -> Optional[TransportError]:
        return self._last_error

    def _handle_subscription_error(self, error: TransportError) -> None:
        self._stale = True
        self._last_error = error
        logger.warning(
            f"Review subscription failed, serving last-known-good view: {error.message}",
            extra={"collection": self._repository.collection, "cached_reviews": len(self._reviews)},
        )

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def _decode(self, row) -> Optional[Review]:
        try:
            return row_to_review(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                f"Skipping malformed review row: {exc}",
                extra={"review_id": row.get("id") if hasattr(row, "get") else None},
            )
            return None

    def handle_change(self, event: ChangeEvent) -> None:
        """Apply one change event to the in-memory view and refold stats."""

        if event.kind is ChangeKind.SNAPSHOT:
            rebuilt: Dict[str, Review] = {}
            for row in event.documents:
                review = self._decode(row)
                if review is not None:
                    rebuilt[review.review_id] = review
            self._reviews = rebuilt
            self._stale = False
            self._last_error = None
        elif event.kind in (ChangeKind.INSERT, ChangeKind.UPDATE):
            review = self._decode(event.document or {})
            if review is not None:
                self._reviews[review.review_id] = review
        elif event.kind is ChangeKind.DELETE and event.document_id is not None:
            self._reviews.pop(event.document_id, None)

        self._ordered = tuple(sorted(self._reviews.values(), key=_newest_first, reverse=True))
        self._stats = fold_review_stats(self._ordered)

    # ------------------------------------------------------------------
    # Reads (synchronous, over current in-memory state)
    # ------------------------------------------------------------------

    @property
    def reviews(self) -> tuple[Review, ...]:
        """All reviews, newest first."""
        return self._ordered

    def _with_status(self, status: ReviewStatus) -> tuple[Review, ...]:
        return tuple(r for r in self._ordered if r.status is status)

    @property
    def pending(self) -> tuple[Review, ...]:
        return self._with_status(ReviewStatus.PENDING)

    @property
    def approved(self) -> tuple[Review, ...]:
        return self._with_status(ReviewStatus.APPROVED)

    @property
    def rejected(self) -> tuple[Review, ...]:
        return self._with_status(ReviewStatus.REJECTED)

    def get(self, review_id: str) -> Optional[Review]:
        return self._reviews.get(review_id)

    def query(
        self,
        status: Optional[ReviewStatus | str] = None,
        text_search: Optional[str] = None,
    ) -> ReviewQuery:
        return ReviewQuery(self._ordered, parse_review_status(status), text_search)

    def stats(self) -> ReviewStats:
        return self._stats

    def approved_for_lawyer(self, lawyer_id: str) -> List[Review]:
        """Approved reviews for one lawyer's public page."""
        return [r for r in self.approved if r.lawyer_id == lawyer_id]

    def submitted_by(self, user_id: str) -> List[Review]:
        """Every review a signed-in user has submitted, whatever its status."""
        return [r for r in self._ordered if r.author_user_id == user_id]

    # ------------------------------------------------------------------
    # Writes (asynchronous; confirmed by the subscription)
    # ------------------------------------------------------------------

    async def submit(self, review_input: ReviewInput, author: Optional[Identity] = None) -> str:
        """
        Persist a new pending review and return its id.

        Raises:
            ValidationError: invalid rating, missing text, body too long.
            TransportError: the write did not reach the store.
        """

        review = Review.new(
            review_id=self._id_factory(),
            review_input=review_input,
            submitted_at=self._clock(),
            author_user_id=author.user_id if author else None,
        )
        await self._repository.insert(review)
        logger.info(
            f"Review submitted: {review.review_id}",
            extra={"review_id": review.review_id, "lawyer_id": review.lawyer_id},
        )
        return review.review_id

    async def approve(self, review_id: str, actor: Optional[Identity], notes: Optional[str] = None) -> None:
        await self._moderate(review_id, actor, ReviewStatus.APPROVED, notes)

    async def reject(self, review_id: str, actor: Optional[Identity], notes: Optional[str] = None) -> None:
        await self._moderate(review_id, actor, ReviewStatus.REJECTED, notes)

    async def _moderate(
        self,
        review_id: str,
        actor: Optional[Identity],
        status: ReviewStatus,
        notes: Optional[str],
    ) -> None:
        moderator = require_capability(actor, Capability.MODERATE_REVIEWS)

        current = self._reviews.get(review_id)
        if current is None:
            raise NotFoundError(f"Review not found: {review_id}", details={"review_id": review_id})

        moderated_at = self._clock()
        updated = current.moderated(status, moderator.user_id, moderated_at, notes)
        if updated is current:
            logger.debug(f"Review {review_id} already {status.value}; nothing to do")
            return

        await self._repository.update_moderation(review_id, status, moderator.user_id, moderated_at, notes)
        logger.info(
            f"Review {review_id} {status.value}",
            extra={"review_id": review_id, "status": status.value, "moderator_id": moderator.user_id},
        )

    async def delete(self, review_id: str, actor: Optional[Identity]) -> None:
        """Delete a review in any status. Irreversible."""

        moderator = require_capability(actor, Capability.MODERATE_REVIEWS)
        if review_id not in self._reviews:
            raise NotFoundError(f"Review not found: {review_id}", details={"review_id": review_id})

        await self._repository.delete(review_id)
        logger.info(
            f"Review {review_id} deleted",
            extra={"review_id": review_id, "moderator_id": moderator.user_id},
        )


__all__ = ["ReviewModerationStore", "ReviewQuery", "parse_review_status"]
