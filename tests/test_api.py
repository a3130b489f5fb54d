"""
Tests for the HTTP surface in `api/`.

The application is built with an in-memory CollectionClient, so the
lifespan starts real stores without touching Supabase.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from conftest import FakeCollectionClient
from repositories.lead_repository import MATCH_REQUEST_COLLECTION

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
LAWYER = {"X-User-Id": "lawyer-1", "X-User-Role": "lawyer"}
USER = {"X-User-Id": "user-1", "X-User-Role": "user"}

REVIEW = {"rating": 5, "title": "Great", "body": "Excellent help", "author_name": "Jane Doe"}

MATCH_REQUEST = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@example.com",
    "phone": "555-0100",
    "opposingParty": "Acme Corp",
    "category": "Employment Law",
    "summary": "Wrongful termination after reporting a safety issue.",
}


@pytest.fixture
def collection_client() -> FakeCollectionClient:
    return FakeCollectionClient()


@pytest.fixture
def client(collection_client):
    with TestClient(create_app(collection_client)) as test_client:
        yield test_client


def test_health_and_root(client) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    assert client.get("/").json()["docs"] == "/docs"


def test_review_submit_and_approve_flow(client) -> None:
    created = client.post("/api/v1/reviews", json=REVIEW)
    assert created.status_code == 201
    review_id = created.json()["id"]

    stats = client.get("/api/v1/reviews/stats", headers=ADMIN).json()
    assert (stats["total_reviews"], stats["total_pending"], stats["total_approved"]) == (1, 1, 0)
    assert stats["average_rating"] == 5.0

    approved = client.post(f"/api/v1/reviews/{review_id}/approve", headers=ADMIN)
    assert approved.status_code == 202

    stats = client.get("/api/v1/reviews/stats", headers=ADMIN).json()
    assert (stats["total_reviews"], stats["total_pending"], stats["total_approved"]) == (1, 0, 1)

    public = client.get("/api/v1/lawyers/general/reviews").json()
    assert [item["id"] for item in public["items"]] == [review_id]
    assert "author_email" not in public["items"][0]


def test_rating_zero_is_a_validation_error(client) -> None:
    response = client.post("/api/v1/reviews", json={**REVIEW, "rating": 0})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "rating" in error["details"]


def test_review_queue_requires_admin(client) -> None:
    assert client.get("/api/v1/reviews").status_code == 403
    assert client.get("/api/v1/reviews", headers=LAWYER).status_code == 403
    assert client.get("/api/v1/reviews", headers=ADMIN).status_code == 200


def test_lawyer_cannot_moderate(client) -> None:
    review_id = client.post("/api/v1/reviews", json=REVIEW).json()["id"]

    response = client.post(f"/api/v1/reviews/{review_id}/approve", headers=LAWYER)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"


def test_unknown_review_is_404(client) -> None:
    assert client.delete("/api/v1/reviews/missing", headers=ADMIN).status_code == 404


def test_reject_after_approve_is_409(client) -> None:
    review_id = client.post("/api/v1/reviews", json=REVIEW).json()["id"]
    client.post(f"/api/v1/reviews/{review_id}/approve", headers=ADMIN)

    response = client.post(f"/api/v1/reviews/{review_id}/reject", headers=ADMIN, json={"notes": "changed mind"})

    assert response.status_code == 409


def test_review_search(client) -> None:
    client.post("/api/v1/reviews", json=REVIEW)
    client.post("/api/v1/reviews", json={**REVIEW, "title": "Slow", "body": "Took weeks"})

    response = client.get("/api/v1/reviews", params={"search": "weeks", "status": "pending"}, headers=ADMIN)

    assert [item["title"] for item in response.json()["items"]] == ["Slow"]


def test_match_request_requires_signed_in_user(client, collection_client) -> None:
    response = client.post("/api/v1/leads/match-request", json=MATCH_REQUEST)

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "PRECONDITION_FAILED"
    assert collection_client.writes == []


def test_match_request_rejects_unknown_fields(client) -> None:
    response = client.post("/api/v1/leads/match-request", json={**MATCH_REQUEST, "ssn": "000"}, headers=USER)

    assert response.status_code == 422


def test_lead_lifecycle_over_http(client) -> None:
    lead_id = client.post("/api/v1/leads/match-request", json=MATCH_REQUEST, headers=USER).json()["id"]

    listed = client.get("/api/v1/leads", headers=ADMIN).json()
    assert listed["counts_by_origin"] == {"direct-contact": 0, "match-request": 1}
    lead = listed["items"][0]
    assert lead["contact_info"]["email"] == "jane@example.com"
    assert lead["conflict_data"] == {"opposingParty": "Acme Corp"}

    closed = client.patch(f"/api/v1/leads/match-request/{lead_id}/status", json={"status": "closed"}, headers=ADMIN)
    assert closed.status_code == 202

    reopened = client.patch(f"/api/v1/leads/match-request/{lead_id}/status", json={"status": "new"}, headers=ADMIN)
    assert reopened.status_code == 409
    assert reopened.json()["error"]["code"] == "INVALID_TRANSITION"

    assert client.delete(f"/api/v1/leads/match-request/{lead_id}", headers=LAWYER).status_code == 403
    assert client.delete(f"/api/v1/leads/match-request/{lead_id}", headers=ADMIN).status_code == 202
    assert client.get("/api/v1/leads", headers=ADMIN).json()["total_count"] == 0


def test_bulk_lead_status_update(client, collection_client) -> None:
    first = client.post("/api/v1/leads/match-request", json=MATCH_REQUEST, headers=USER).json()["id"]
    second = client.post("/api/v1/leads/match-request", json=MATCH_REQUEST, headers=USER).json()["id"]
    client.patch(f"/api/v1/leads/match-request/{second}/status", json={"status": "closed"}, headers=ADMIN)
    writes = len(collection_client.writes)

    rejected = client.patch(
        "/api/v1/leads/match-request/status",
        json={"lead_ids": [first, second], "status": "open"},
        headers=ADMIN,
    )
    assert rejected.status_code == 409
    assert len(collection_client.writes) == writes

    accepted = client.patch(
        "/api/v1/leads/match-request/status",
        json={"lead_ids": [first], "status": "open"},
        headers=ADMIN,
    )
    assert accepted.status_code == 202
    assert accepted.json()["updated"] == [first]

    statuses = {lead["id"]: lead["status"] for lead in client.get("/api/v1/leads", headers=ADMIN).json()["items"]}
    assert statuses == {first: "open", second: "closed"}

    forbidden = client.patch(
        "/api/v1/leads/match-request/status",
        json={"lead_ids": [first], "status": "closed"},
        headers=LAWYER,
    )
    assert forbidden.status_code == 403


def test_bulletin_board_exposes_case_tier_only(client) -> None:
    client.post("/api/v1/leads/match-request", json=MATCH_REQUEST, headers=USER)

    assert client.get("/api/v1/leads/bulletin-board", headers=USER).status_code == 403

    board = client.get("/api/v1/leads/bulletin-board", headers=LAWYER)
    assert board.status_code == 200
    entry = board.json()[0]
    assert set(entry["case_details"]) == {"category", "summary"}
    assert "contact_info" not in entry
    assert "conflict_data" not in entry
    assert "jane@example.com" not in board.text


def test_direct_contact_submission(client) -> None:
    response = client.post(
        "/api/v1/leads/direct-contact",
        json={
            "category": "Family Law",
            "case_summary": "I need help with a custody arrangement.",
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "555-0100",
            "lawyer_id": "lawyer-7",
        },
    )
    assert response.status_code == 201

    leads = client.get("/api/v1/leads", params={"origin": "direct-contact"}, headers=ADMIN).json()
    assert leads["items"][0]["contact_name"] == "Jane Doe"


def test_moderation_view_and_dashboard(client) -> None:
    client.post("/api/v1/reviews", json=REVIEW)
    client.post("/api/v1/leads/match-request", json=MATCH_REQUEST, headers=USER)

    view = client.get("/api/v1/moderation/view", params={"status": "pending", "sort": "oldest"}, headers=ADMIN)
    assert view.status_code == 200
    body = view.json()
    assert len(body["reviews"]) == 1
    # "pending" is a review status, so leads stay unfiltered.
    assert len(body["leads"]) == 1
    assert body["stats"]["total_pending"] == 1

    closed_leads = client.get("/api/v1/moderation/view", params={"status": "closed"}, headers=ADMIN).json()
    assert closed_leads["leads"] == []
    assert len(closed_leads["reviews"]) == 1

    dashboard = client.get("/api/v1/moderation/dashboard", headers=ADMIN).json()
    assert dashboard["lead_counts"]["match-request"] == 1
    assert len(dashboard["pending_preview"]) == 1

    assert client.get("/api/v1/moderation/dashboard", headers=LAWYER).status_code == 403
    assert client.get("/api/v1/moderation/view", params={"status": "archived"}, headers=ADMIN).status_code == 400


def test_unknown_role_header_is_refused(client) -> None:
    response = client.get("/api/v1/reviews", headers={"X-User-Id": "u1", "X-User-Role": "root"})

    assert response.status_code == 403


def test_subscription_failure_reports_degraded(client, collection_client) -> None:
    collection_client.emit_error(MATCH_REQUEST_COLLECTION)

    assert client.get("/health").json()["status"] == "degraded"


def test_shutdown_releases_subscriptions(collection_client) -> None:
    with TestClient(create_app(collection_client)):
        assert len(collection_client.active_subscriptions()) == 3

    assert collection_client.active_subscriptions() == []
