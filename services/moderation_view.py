"""
Moderation view projection (read side).

Stateless combinators over the current contents of the ReviewModerationStore
and the LeadAggregator. Given a ViewConfig they produce the sequences an
administrative UI renders. Inputs are never mutated and nothing is memoized:
every call re-derives its output from the current inputs.

Status filter:
- "all" / None shows everything.
- A review status (pending / approved / rejected) filters reviews; a lead
  status (new / contacted / open / closed) filters leads. A filter value that
  belongs to the other entity leaves that entity unfiltered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from domain.errors import ValidationError
from domain.lead import LeadOrigin, LeadStatus, MatchRequestLead, TaggedLead
from domain.partition import CASE_FIELDS
from domain.review import Review, ReviewStatus
from domain.stats import ReviewStats, fold_review_stats
from services.lead_aggregator import LeadAggregator, parse_origin
from services.review_moderation_store import ReviewModerationStore

DASHBOARD_PENDING_PREVIEW: int = 3
DASHBOARD_RECENT_LEADS: int = 5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_REVIEW_STATUS_ORDER = {ReviewStatus.PENDING: 0, ReviewStatus.APPROVED: 1, ReviewStatus.REJECTED: 2}
_LEAD_STATUS_ORDER = {LeadStatus.NEW: 0, LeadStatus.CONTACTED: 1, LeadStatus.OPEN: 2, LeadStatus.CLOSED: 3}


class SortKey(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    RATING_HIGH = "rating_high"
    RATING_LOW = "rating_low"
    STATUS = "status"


@dataclass(frozen=True, slots=True)
class ViewConfig:
    status_filter: Optional[str] = None
    origin_filter: Optional[str] = None
    search_term: Optional[str] = None
    sort_key: SortKey = SortKey.NEWEST

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "sort_key", SortKey(self.sort_key))
        except ValueError as exc:
            raise ValidationError(
                f"Unknown sort key '{self.sort_key}'",
                details={"sort_key": str(self.sort_key)},
            ) from exc
        if self.status_filter not in (None, "all"):
            known = {s.value for s in ReviewStatus} | {s.value for s in LeadStatus}
            if self.status_filter not in known:
                raise ValidationError(
                    f"Unknown status filter '{self.status_filter}'",
                    details={"status_filter": str(self.status_filter)},
                )
        parse_origin(self.origin_filter)


@dataclass(frozen=True, slots=True)
class BulletinEntry:
    """One match request as shown to lawyers: case tier only, no owner stamp."""

    lead_id: str
    status: LeadStatus
    created_at: Optional[datetime]
    case_details: Mapping[str, Any]
    interested_lawyers: int = 0


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    stats: ReviewStats
    pending_preview: tuple[Review, ...]
    lead_counts: Mapping[LeadOrigin, int]
    recent_leads: tuple[TaggedLead, ...]
    rating_distribution: Mapping[int, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RenderedView:
    reviews: tuple[Review, ...]
    leads: tuple[TaggedLead, ...]
    stats: ReviewStats
    stale: bool = False


def _review_status_filter(value: Optional[str]) -> Optional[ReviewStatus]:
    if value in (None, "all"):
        return None
    try:
        return ReviewStatus(value)
    except ValueError:
        return None


def _lead_status_filter(value: Optional[str]) -> Optional[LeadStatus]:
    if value in (None, "all"):
        return None
    try:
        return LeadStatus(value)
    except ValueError:
        return None


def _review_time(review: Review) -> tuple[bool, datetime]:
    return (review.submitted_at is None, review.submitted_at or _EPOCH)


def _lead_time(lead: TaggedLead) -> tuple[bool, datetime]:
    return (lead.created_at is None, lead.created_at or _EPOCH)


def project_reviews(reviews: Iterable[Review], config: ViewConfig) -> tuple[Review, ...]:
    """Filter, search and sort reviews. Returns a new tuple; `reviews` is untouched."""

    status = _review_status_filter(config.status_filter)
    selected = [
        r
        for r in reviews
        if (status is None or r.status is status) and r.matches_text(config.search_term)
    ]

    # Newest first is the base order; later sorts are stable on top of it.
    selected.sort(key=_review_time, reverse=True)
    if config.sort_key is SortKey.OLDEST:
        selected.sort(key=_review_time)
    elif config.sort_key is SortKey.RATING_HIGH:
        selected.sort(key=lambda r: r.rating, reverse=True)
    elif config.sort_key is SortKey.RATING_LOW:
        selected.sort(key=lambda r: r.rating)
    elif config.sort_key is SortKey.STATUS:
        selected.sort(key=lambda r: _REVIEW_STATUS_ORDER[r.status])
    return tuple(selected)


def project_leads(leads: Iterable[TaggedLead], config: ViewConfig) -> tuple[TaggedLead, ...]:
    """
    Filter, search and sort the merged lead feed.

    Rating sorts do not apply to leads and fall back to newest first.
    """

    origin = parse_origin(config.origin_filter)
    status = _lead_status_filter(config.status_filter)
    selected = [
        lead
        for lead in leads
        if (origin is None or lead.origin is origin)
        and (status is None or lead.status is status)
        and lead.matches_text(config.search_term)
    ]

    selected.sort(key=_lead_time, reverse=True)
    if config.sort_key is SortKey.OLDEST:
        selected.sort(key=_lead_time)
    elif config.sort_key is SortKey.STATUS:
        selected.sort(key=lambda lead: _LEAD_STATUS_ORDER[lead.status])
    return tuple(selected)


def bulletin_board(leads: Iterable[TaggedLead]) -> tuple[BulletinEntry, ...]:
    """
    Match requests still open to lawyers, reduced to their public tier.

    Only allowlisted case fields are copied, so contact or conflict fields
    that were written into case_details directly never reach lawyers. The
    owner stamp is dropped too.
    """

    entries: List[BulletinEntry] = []
    for tagged in leads:
        if tagged.origin is not LeadOrigin.MATCH_REQUEST or tagged.status is LeadStatus.CLOSED:
            continue
        lead = tagged.lead
        if not isinstance(lead, MatchRequestLead):
            continue
        public = {k: v for k, v in lead.case_details.items() if k in CASE_FIELDS}
        entries.append(
            BulletinEntry(
                lead_id=lead.lead_id,
                status=lead.status,
                created_at=lead.created_at,
                case_details=public,
                interested_lawyers=len(lead.interested_lawyers),
            )
        )
    entries.sort(key=lambda e: (e.created_at is None, e.created_at or _EPOCH), reverse=True)
    return tuple(entries)


def rating_distribution(reviews: Iterable[Review]) -> Dict[int, int]:
    """Count of reviews per star rating, 5 down to 1."""

    counts = {stars: 0 for stars in range(5, 0, -1)}
    for review in reviews:
        if review.rating in counts:
            counts[review.rating] += 1
    return counts


def dashboard_summary(reviews: Iterable[Review], leads: Iterable[TaggedLead]) -> DashboardSummary:
    reviews = tuple(reviews)
    leads = tuple(leads)

    pending = [r for r in reviews if r.status is ReviewStatus.PENDING]
    pending.sort(key=_review_time, reverse=True)

    counts = {origin: 0 for origin in LeadOrigin}
    for lead in leads:
        counts[lead.origin] += 1

    recent = sorted(leads, key=_lead_time, reverse=True)[:DASHBOARD_RECENT_LEADS]

    return DashboardSummary(
        stats=fold_review_stats(reviews),
        pending_preview=tuple(pending[:DASHBOARD_PENDING_PREVIEW]),
        lead_counts=counts,
        recent_leads=tuple(recent),
        rating_distribution=rating_distribution(reviews),
    )


class ModerationView:
    """Binds the projections to a live store and aggregator."""

    def __init__(self, store: ReviewModerationStore, aggregator: LeadAggregator) -> None:
        self._store = store
        self._aggregator = aggregator

    @property
    def stale(self) -> bool:
        return self._store.stale or self._aggregator.stale

    def render(self, config: Optional[ViewConfig] = None) -> RenderedView:
        config = config or ViewConfig()
        return RenderedView(
            reviews=project_reviews(self._store.reviews, config),
            leads=project_leads(self._aggregator.leads(), config),
            stats=self._store.stats(),
            stale=self.stale,
        )

    def dashboard(self) -> DashboardSummary:
        return dashboard_summary(self._store.reviews, self._aggregator.leads())

    def bulletin_board(self) -> tuple[BulletinEntry, ...]:
        return bulletin_board(self._aggregator.leads())


__all__ = [
    "SortKey",
    "ViewConfig",
    "BulletinEntry",
    "DashboardSummary",
    "RenderedView",
    "project_reviews",
    "project_leads",
    "bulletin_board",
    "rating_distribution",
    "dashboard_summary",
    "ModerationView",
]
