"""
Leads API Endpoints.

Intake for both pathways, the merged lead feed for staff, lead status
changes, and the lawyer-facing bulletin board.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_identity, get_intake_service, get_lead_aggregator
from api.models import (
    AcceptedResponse,
    BulletinEntryResponse,
    DirectContactRequest,
    LeadBulkStatusResponse,
    LeadBulkStatusUpdateRequest,
    LeadListResponse,
    LeadResponse,
    LeadStatusUpdateRequest,
    MatchRequestRequest,
)
from domain.capabilities import Capability, Identity, require_capability
from domain.lead import DirectContactInput
from services.lead_aggregator import LeadAggregator
from services.lead_intake_service import LeadIntakeService
from services.moderation_view import bulletin_board

router = APIRouter()


@router.post(
    "/leads/direct-contact",
    response_model=AcceptedResponse,
    status_code=201,
    summary="Submit Direct-Contact Lead",
)
async def submit_direct_contact(
    request: DirectContactRequest,
    intake: LeadIntakeService = Depends(get_intake_service),
):
    lead_id = await intake.submit_direct_contact(
        DirectContactInput(
            category=request.category,
            case_summary=request.case_summary,
            name=request.name,
            email=request.email,
            phone=request.phone,
            lawyer_id=request.lawyer_id,
            lawyer_name=request.lawyer_name,
            urgency=request.urgency,
            preferred_contact=request.preferred_contact,
        )
    )
    return AcceptedResponse(id=lead_id, status="new", message="Your request has been sent.")


@router.post(
    "/leads/match-request",
    response_model=AcceptedResponse,
    status_code=201,
    summary="Submit Match Request",
    description="Requires a signed-in user. The submission is stored as three privacy tiers.",
)
async def submit_match_request(
    request: MatchRequestRequest,
    identity: Optional[Identity] = Depends(get_identity),
    intake: LeadIntakeService = Depends(get_intake_service),
):
    lead_id = await intake.submit_match_request(request.model_dump(exclude_none=True), identity)
    return AcceptedResponse(id=lead_id, status="new", message="Your match request has been received.")


@router.get(
    "/leads",
    response_model=LeadListResponse,
    summary="List Leads",
    description="Merged feed of both lead origins, newest first.",
)
def list_leads(
    origin: Optional[str] = Query(None, description="direct-contact, match-request or all"),
    search: Optional[str] = Query(None, description="Substring over contact name, email, summary, lawyer"),
    identity: Optional[Identity] = Depends(get_identity),
    aggregator: LeadAggregator = Depends(get_lead_aggregator),
):
    require_capability(identity, Capability.MANAGE_LEADS)
    leads = aggregator.filter(origin=origin, text_search=search)
    return LeadListResponse(
        items=[LeadResponse.from_domain(lead, identity) for lead in leads],
        total_count=len(leads),
        counts_by_origin={o.value: n for o, n in aggregator.counts().items()},
        stale=aggregator.stale,
    )


@router.get(
    "/leads/bulletin-board",
    response_model=List[BulletinEntryResponse],
    summary="Bulletin Board",
    description="Open match requests for lawyers. Case details only; no contact or conflict data.",
)
def get_bulletin_board(
    identity: Optional[Identity] = Depends(get_identity),
    aggregator: LeadAggregator = Depends(get_lead_aggregator),
):
    require_capability(identity, Capability.VIEW_BULLETIN_BOARD)
    return [BulletinEntryResponse.from_domain(entry) for entry in bulletin_board(aggregator.leads())]


@router.patch(
    "/leads/{origin}/{lead_id}/status",
    response_model=AcceptedResponse,
    status_code=202,
    summary="Update Lead Status",
    description="Forward-only: new -> contacted -> open -> closed, with new -> closed allowed.",
)
async def update_lead_status(
    origin: str,
    lead_id: str,
    request: LeadStatusUpdateRequest,
    identity: Optional[Identity] = Depends(get_identity),
    aggregator: LeadAggregator = Depends(get_lead_aggregator),
):
    await aggregator.update_status(lead_id, origin, request.status, identity)
    return AcceptedResponse(id=lead_id, status=request.status, message="Lead status updated.")


@router.patch(
    "/leads/{origin}/status",
    response_model=LeadBulkStatusResponse,
    status_code=202,
    summary="Bulk Update Lead Status",
    description="Moves several leads of one origin together. One illegal move rejects the whole batch.",
)
async def bulk_update_lead_status(
    origin: str,
    request: LeadBulkStatusUpdateRequest,
    identity: Optional[Identity] = Depends(get_identity),
    aggregator: LeadAggregator = Depends(get_lead_aggregator),
):
    updated = await aggregator.update_status_many(request.lead_ids, origin, request.status, identity)
    return LeadBulkStatusResponse(
        updated=updated,
        status=request.status,
        message=f"{len(updated)} leads updated.",
    )


@router.delete(
    "/leads/{origin}/{lead_id}",
    response_model=AcceptedResponse,
    status_code=202,
    summary="Delete Lead",
)
async def delete_lead(
    origin: str,
    lead_id: str,
    identity: Optional[Identity] = Depends(get_identity),
    aggregator: LeadAggregator = Depends(get_lead_aggregator),
):
    await aggregator.remove(lead_id, origin, identity)
    return AcceptedResponse(id=lead_id, status="deleted", message="Lead deleted.")
