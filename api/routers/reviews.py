"""
Reviews API Endpoints.

Public review submission, the moderation queue, and approved reviews per
lawyer. Writes return 202: the change shows up in reads once the store has
confirmed it.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_identity, get_review_store
from api.models import (
    AcceptedResponse,
    ModerationRequest,
    ReviewListResponse,
    ReviewResponse,
    ReviewSubmitRequest,
    StatsResponse,
)
from domain.capabilities import Capability, Identity, require_capability
from domain.review import ReviewInput
from services.review_moderation_store import ReviewModerationStore

router = APIRouter()


@router.post(
    "/reviews",
    response_model=AcceptedResponse,
    status_code=201,
    summary="Submit Review",
    description="Submit a review. It is held as pending until a moderator approves it.",
)
async def submit_review(
    request: ReviewSubmitRequest,
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    """
    Submit a public review.

    **Validation:**
    - rating must be chosen (1-5); 0 or missing is refused
    - title and body are required; body is at most 500 characters
    - a name is required unless posting anonymously
    """
    review_input = ReviewInput(
        rating=request.rating,
        title=request.title,
        body=request.body,
        author_name=request.author_name,
        author_email=request.author_email,
        anonymous=request.anonymous,
        lawyer_id=request.lawyer_id,
        lawyer_name=request.lawyer_name,
    )
    review_id = await store.submit(review_input, author=identity)
    return AcceptedResponse(
        id=review_id,
        status="pending",
        message="Thank you! Your review has been submitted and is pending approval.",
    )


@router.get(
    "/reviews",
    response_model=ReviewListResponse,
    summary="Query Reviews",
    description="Moderation queue with optional status filter and text search.",
)
def list_reviews(
    status: Optional[str] = Query(None, description="pending, approved, rejected or all"),
    search: Optional[str] = Query(None, description="Substring over title, body, author and lawyer name"),
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    require_capability(identity, Capability.MODERATE_REVIEWS)
    items = [ReviewResponse.from_domain(r) for r in store.query(status=status, text_search=search)]
    return ReviewListResponse(items=items, total_count=len(items), stale=store.stale)


@router.get(
    "/reviews/stats",
    response_model=StatsResponse,
    summary="Review Stats",
)
def review_stats(
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    require_capability(identity, Capability.MODERATE_REVIEWS)
    return StatsResponse.from_domain(store.stats())


@router.post(
    "/reviews/{review_id}/approve",
    response_model=AcceptedResponse,
    status_code=202,
    summary="Approve Review",
)
async def approve_review(
    review_id: str,
    body: Optional[ModerationRequest] = Body(None),
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    await store.approve(review_id, identity, notes=body.notes if body else None)
    return AcceptedResponse(id=review_id, status="approved", message="Review approved.")


@router.post(
    "/reviews/{review_id}/reject",
    response_model=AcceptedResponse,
    status_code=202,
    summary="Reject Review",
)
async def reject_review(
    review_id: str,
    body: Optional[ModerationRequest] = Body(None),
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    await store.reject(review_id, identity, notes=body.notes if body else None)
    return AcceptedResponse(id=review_id, status="rejected", message="Review rejected.")


@router.delete(
    "/reviews/{review_id}",
    response_model=AcceptedResponse,
    status_code=202,
    summary="Delete Review",
    description="Permanently delete a review in any status.",
)
async def delete_review(
    review_id: str,
    identity: Optional[Identity] = Depends(get_identity),
    store: ReviewModerationStore = Depends(get_review_store),
):
    await store.delete(review_id, identity)
    return AcceptedResponse(id=review_id, status="deleted", message="Review deleted.")


@router.get(
    "/lawyers/{lawyer_id}/reviews",
    response_model=ReviewListResponse,
    summary="Approved Reviews for a Lawyer",
)
def lawyer_reviews(
    lawyer_id: str,
    store: ReviewModerationStore = Depends(get_review_store),
):
    """Public listing: approved reviews only."""
    items = [ReviewResponse.from_domain(r) for r in store.approved_for_lawyer(lawyer_id)]
    return ReviewListResponse(items=items, total_count=len(items), stale=store.stale)
