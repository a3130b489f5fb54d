"""
Tests for `services/moderation_view.py`.

Covers contract rules:
- Projections never mutate their inputs and re-derive output on every call.
- The bulletin board shows open match requests with the case tier only.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeCollectionClient, SequentialIds, TickingClock
from domain.errors import ValidationError
from domain.lead import DirectContactLead, LeadOrigin, LeadStatus, MatchRequestLead, TaggedLead
from domain.partition import OWNER_FIELD
from domain.review import Review, ReviewInput, ReviewStatus
from repositories.lead_repository import row_to_tagged_lead
from services.lead_aggregator import LeadAggregator
from services.moderation_view import (
    ModerationView,
    SortKey,
    ViewConfig,
    bulletin_board,
    dashboard_summary,
    project_leads,
    project_reviews,
    rating_distribution,
)
from services.review_moderation_store import ReviewModerationStore

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _review(review_id: str, rating: int, minutes: int, status: ReviewStatus = ReviewStatus.PENDING, title="Title"):
    review = Review.new(
        review_id,
        ReviewInput(rating=rating, title=title, body="Body text", author_name="Jane"),
        T0 + timedelta(minutes=minutes),
    )
    if status is not ReviewStatus.PENDING:
        review = review.moderated(status, "admin-1", T0 + timedelta(hours=1))
    return review


def _direct(lead_id: str, minutes: int, status=LeadStatus.NEW) -> TaggedLead:
    return TaggedLead(
        LeadOrigin.DIRECT_CONTACT,
        DirectContactLead(
            lead_id=lead_id,
            status=status,
            created_at=T0 + timedelta(minutes=minutes),
            contact_info={"name": "Jane Doe", "email": "jane@example.com", "phone": "555-0100"},
            case_summary="Custody question",
        ),
    )


def _match(lead_id: str, minutes: int, status=LeadStatus.NEW) -> TaggedLead:
    return TaggedLead(
        LeadOrigin.MATCH_REQUEST,
        MatchRequestLead(
            lead_id=lead_id,
            status=status,
            created_at=T0 + timedelta(minutes=minutes),
            contact_info={"firstName": "John", "lastName": "Roe", "email": "john@example.com", OWNER_FIELD: "u1"},
            conflict_data={"opposingParty": "Acme Corp"},
            case_details={"category": "Employment Law", "summary": "Wrongful termination", OWNER_FIELD: "u1"},
            interested_lawyers=("lawyer-1",),
        ),
    )


REVIEWS = (
    _review("r1", 3, 0),
    _review("r2", 5, 10, ReviewStatus.APPROVED, title="Great"),
    _review("r3", 1, 20, ReviewStatus.REJECTED),
    _review("r4", 5, 30),
)

LEADS = (
    _direct("d1", 0),
    _match("m1", 10),
    _match("m2", 20, LeadStatus.CLOSED),
    _direct("d2", 30, LeadStatus.CONTACTED),
)


def _ids(items) -> list:
    return [getattr(item, "review_id", None) or item.lead_id for item in items]


def test_default_view_is_newest_first() -> None:
    assert _ids(project_reviews(REVIEWS, ViewConfig())) == ["r4", "r3", "r2", "r1"]
    assert _ids(project_leads(LEADS, ViewConfig())) == ["d2", "m2", "m1", "d1"]


@pytest.mark.parametrize(
    "sort_key, expected",
    [
        (SortKey.OLDEST, ["r1", "r2", "r3", "r4"]),
        (SortKey.RATING_HIGH, ["r4", "r2", "r1", "r3"]),
        (SortKey.RATING_LOW, ["r3", "r1", "r4", "r2"]),
        (SortKey.STATUS, ["r4", "r1", "r2", "r3"]),
    ],
)
def test_review_sorting(sort_key, expected) -> None:
    assert _ids(project_reviews(REVIEWS, ViewConfig(sort_key=sort_key))) == expected


def test_review_status_filter_and_search() -> None:
    assert _ids(project_reviews(REVIEWS, ViewConfig(status_filter="pending"))) == ["r4", "r1"]
    assert _ids(project_reviews(REVIEWS, ViewConfig(search_term="great"))) == ["r2"]
    # A lead status leaves reviews unfiltered.
    assert len(project_reviews(REVIEWS, ViewConfig(status_filter="closed"))) == 4


def test_lead_filters_and_sorting() -> None:
    assert _ids(project_leads(LEADS, ViewConfig(origin_filter="direct-contact"))) == ["d2", "d1"]
    assert _ids(project_leads(LEADS, ViewConfig(status_filter="closed"))) == ["m2"]
    assert _ids(project_leads(LEADS, ViewConfig(search_term="roe"))) == ["m2", "m1"]
    assert _ids(project_leads(LEADS, ViewConfig(sort_key="status"))) == ["m1", "d1", "d2", "m2"]
    # Rating sorts do not apply to leads.
    assert _ids(project_leads(LEADS, ViewConfig(sort_key=SortKey.RATING_HIGH))) == ["d2", "m2", "m1", "d1"]


def test_projection_does_not_mutate_inputs() -> None:
    reviews = list(REVIEWS)
    leads = list(LEADS)

    project_reviews(reviews, ViewConfig(sort_key=SortKey.RATING_LOW))
    project_leads(leads, ViewConfig(sort_key=SortKey.OLDEST))

    assert reviews == list(REVIEWS)
    assert leads == list(LEADS)


def test_invalid_view_config() -> None:
    with pytest.raises(ValidationError):
        ViewConfig(sort_key="loudest")
    with pytest.raises(ValidationError):
        ViewConfig(status_filter="archived")
    with pytest.raises(ValidationError):
        ViewConfig(origin_filter="fax")


def test_bulletin_board_shows_open_match_requests_case_tier_only() -> None:
    entries = bulletin_board(LEADS)

    assert [e.lead_id for e in entries] == ["m1"]
    entry = entries[0]
    assert dict(entry.case_details) == {"category": "Employment Law", "summary": "Wrongful termination"}
    assert entry.interested_lawyers == 1
    assert not hasattr(entry, "contact_info")
    assert not hasattr(entry, "conflict_data")


def test_bulletin_board_drops_contact_fields_stored_in_case_details() -> None:
    row = {
        "id": "m9",
        "status": "new",
        "created_at": T0.isoformat(),
        "contact_info": {"firstName": "Jane", "email": "jane@example.com"},
        "conflict_data": {},
        "case_details": {
            "category": "Family Law",
            "summary": "Custody question",
            "email": "jane@example.com",
            "phone": "555-0100",
            "opposingParty": "John Doe",
            OWNER_FIELD: "u1",
        },
        "interested_lawyers": [],
    }

    entries = bulletin_board([row_to_tagged_lead(LeadOrigin.MATCH_REQUEST, row)])

    assert dict(entries[0].case_details) == {"category": "Family Law", "summary": "Custody question"}


def test_rating_distribution() -> None:
    assert rating_distribution(REVIEWS) == {5: 2, 4: 0, 3: 1, 2: 0, 1: 1}


def test_dashboard_summary() -> None:
    extra_pending = tuple(_review(f"p{i}", 4, 40 + i) for i in range(3))
    leads = LEADS + tuple(_direct(f"x{i}", 40 + i) for i in range(3))

    summary = dashboard_summary(REVIEWS + extra_pending, leads)

    assert summary.stats.total_reviews == 7
    assert [r.review_id for r in summary.pending_preview] == ["p2", "p1", "p0"]
    assert summary.lead_counts == {LeadOrigin.DIRECT_CONTACT: 5, LeadOrigin.MATCH_REQUEST: 2}
    assert [lead.lead_id for lead in summary.recent_leads] == ["x2", "x1", "x0", "d2", "m2"]


@pytest.mark.asyncio
async def test_render_rederives_from_live_stores(admin) -> None:
    client = FakeCollectionClient()
    store = ReviewModerationStore(client, clock=TickingClock(), id_factory=SequentialIds("review"))
    aggregator = LeadAggregator(client)
    await store.start()
    await aggregator.start()
    view = ModerationView(store, aggregator)
    config = ViewConfig(status_filter="pending")

    assert view.render(config).reviews == ()

    review_id = await store.submit(ReviewInput(rating=4, title="Helpful", body="Good advice", anonymous=True))
    rendered = view.render(config)
    assert [r.review_id for r in rendered.reviews] == [review_id]
    assert rendered.stats.total_pending == 1

    await store.approve(review_id, admin)
    assert view.render(config).reviews == ()
    assert view.render(ViewConfig(status_filter="approved")).stats.total_approved == 1
    assert view.render().stale is False

    await store.close()
    await aggregator.close()
