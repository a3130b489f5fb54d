"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Domain rules (rating range, tier partitioning, lifecycle) are enforced by the
domain layer, not here; these models only shape the JSON.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.capabilities import Capability, Identity, has_capability
from domain.lead import MatchRequestLead, TaggedLead
from domain.review import Review
from domain.stats import ReviewStats
from services.moderation_view import BulletinEntry, DashboardSummary


# ============================================================================
# Review Models
# ============================================================================

class ReviewSubmitRequest(BaseModel):
    """Public review submission."""
    rating: Optional[int] = Field(None, description="Star rating 1-5")
    title: str = ""
    body: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    anonymous: bool = False
    lawyer_id: Optional[str] = Field(None, description="Omit for general site feedback")
    lawyer_name: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "rating": 5,
                "title": "Great",
                "body": "Excellent help",
                "author_name": "Jane Doe",
                "anonymous": False,
                "lawyer_id": "lawyer-42",
                "lawyer_name": "A. Counsel",
            }
        }


class ReviewResponse(BaseModel):
    """Single review. The author's email is never returned."""
    id: str
    lawyer_id: str
    lawyer_name: Optional[str] = None
    author_display_name: str
    rating: int
    title: str
    body: str
    submitted_at: Optional[datetime] = None
    status: str
    verified: bool = False
    moderator_id: Optional[str] = None
    moderated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, review: Review) -> "ReviewResponse":
        return cls(
            id=review.review_id,
            lawyer_id=review.lawyer_id,
            lawyer_name=review.lawyer_name,
            author_display_name=review.author_display_name,
            rating=review.rating,
            title=review.title,
            body=review.body,
            submitted_at=review.submitted_at,
            status=review.status.value,
            verified=review.verified,
            moderator_id=review.moderator_id,
            moderated_at=review.moderated_at,
        )


class ReviewListResponse(BaseModel):
    items: List[ReviewResponse]
    total_count: int
    stale: bool = False


class ModerationRequest(BaseModel):
    """Optional body for approve / reject."""
    notes: Optional[str] = Field(None, description="Internal note kept with the review")


class StatsResponse(BaseModel):
    total_reviews: int
    total_pending: int
    total_approved: int
    total_rejected: int
    average_rating: float
    approval_rate: int

    @classmethod
    def from_domain(cls, stats: ReviewStats) -> "StatsResponse":
        return cls(
            total_reviews=stats.total_reviews,
            total_pending=stats.total_pending,
            total_approved=stats.total_approved,
            total_rejected=stats.total_rejected,
            average_rating=stats.average_rating,
            approval_rate=stats.approval_rate,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "total_reviews": 1,
                "total_pending": 0,
                "total_approved": 1,
                "total_rejected": 0,
                "average_rating": 5.0,
                "approval_rate": 100,
            }
        }


class AcceptedResponse(BaseModel):
    """
    Write accepted by the store.

    The change becomes visible in reads once its change event arrives.
    """
    id: str
    status: str
    message: str


# ============================================================================
# Lead Models
# ============================================================================

class DirectContactRequest(BaseModel):
    """Direct-contact intake form addressed to one lawyer."""
    category: str
    case_summary: str
    name: str
    email: str
    phone: str
    lawyer_id: Optional[str] = None
    lawyer_name: Optional[str] = None
    urgency: str = "normal"
    preferred_contact: str = "email"


class MatchRequestRequest(BaseModel):
    """Match-request submission. Field names match the stored tiers."""
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    opposingParty: Optional[str] = None
    opposingLawFirm: Optional[str] = None
    opposingLawyer: Optional[str] = None
    category: Optional[str] = None
    timeline: Optional[str] = None
    budget: Optional[str] = None
    location: Optional[str] = None
    summary: Optional[str] = None
    preferredContact: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "firstName": "Jane",
                "lastName": "Doe",
                "email": "jane@example.com",
                "phone": "555-0100",
                "opposingParty": "Acme Corp",
                "category": "Employment Law",
                "timeline": "immediate",
                "budget": "1000-5000",
                "location": "Los Angeles, CA",
                "summary": "Wrongful termination after reporting a safety issue.",
                "preferredContact": "email",
            }
        }


class LeadStatusUpdateRequest(BaseModel):
    status: str = Field(..., description="One of new, contacted, open, closed")


class LeadBulkStatusUpdateRequest(BaseModel):
    lead_ids: List[str] = Field(..., min_length=1, description="Leads of one origin to move together")
    status: str = Field(..., description="One of new, contacted, open, closed")

    class Config:
        json_schema_extra = {
            "example": {
                "lead_ids": ["7f3c2a", "9b1e44"],
                "status": "contacted"
            }
        }


class LeadBulkStatusResponse(BaseModel):
    """Bulk status change accepted. Leads already at the status are not listed."""
    updated: List[str]
    status: str
    message: str


class LeadResponse(BaseModel):
    """
    Origin-tagged lead.

    contact_info and conflict_data are included only for callers holding the
    matching capability; case_details only exists on match requests.
    """
    id: str
    origin: str
    status: str
    created_at: Optional[datetime] = None
    contact_name: str
    case_summary: str
    lawyer_name: str
    contact_info: Optional[Dict[str, Any]] = None
    conflict_data: Optional[Dict[str, Any]] = None
    case_details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, tagged: TaggedLead, viewer: Optional[Identity]) -> "LeadResponse":
        lead = tagged.lead
        contact_info = conflict_data = case_details = None
        if has_capability(viewer, Capability.VIEW_LEAD_CONTACT_INFO):
            contact_info = dict(lead.contact_info)
        if isinstance(lead, MatchRequestLead):
            case_details = dict(lead.case_details)
            if has_capability(viewer, Capability.VIEW_CONFLICT_DATA):
                conflict_data = dict(lead.conflict_data)
        return cls(
            id=tagged.lead_id,
            origin=tagged.origin.value,
            status=tagged.status.value,
            created_at=tagged.created_at,
            contact_name=tagged.contact_name if contact_info is not None else "",
            case_summary=tagged.case_summary,
            lawyer_name=tagged.lawyer_name,
            contact_info=contact_info,
            conflict_data=conflict_data,
            case_details=case_details,
        )


class LeadListResponse(BaseModel):
    items: List[LeadResponse]
    total_count: int
    counts_by_origin: Dict[str, int]
    stale: bool = False


class BulletinEntryResponse(BaseModel):
    """Match request as listed to lawyers: case tier only."""
    id: str
    status: str
    created_at: Optional[datetime] = None
    case_details: Dict[str, Any]
    interested_lawyers: int = 0

    @classmethod
    def from_domain(cls, entry: BulletinEntry) -> "BulletinEntryResponse":
        return cls(
            id=entry.lead_id,
            status=entry.status.value,
            created_at=entry.created_at,
            case_details=dict(entry.case_details),
            interested_lawyers=entry.interested_lawyers,
        )


# ============================================================================
# Moderation Models
# ============================================================================

class ModerationViewResponse(BaseModel):
    reviews: List[ReviewResponse]
    leads: List[LeadResponse]
    stats: StatsResponse
    stale: bool = False


class DashboardResponse(BaseModel):
    stats: StatsResponse
    pending_preview: List[ReviewResponse]
    lead_counts: Dict[str, int]
    recent_leads: List[LeadResponse]
    rating_distribution: Dict[int, int]

    @classmethod
    def from_domain(cls, summary: DashboardSummary, viewer: Optional[Identity]) -> "DashboardResponse":
        return cls(
            stats=StatsResponse.from_domain(summary.stats),
            pending_preview=[ReviewResponse.from_domain(r) for r in summary.pending_preview],
            lead_counts={origin.value: count for origin, count in summary.lead_counts.items()},
            recent_leads=[LeadResponse.from_domain(lead, viewer) for lead in summary.recent_leads],
            rating_distribution=dict(summary.rating_distribution),
        )


class ErrorResponse(BaseModel):
    """Error body returned for every domain failure."""
    error: Dict[str, Any]

    class Config:
        json_schema_extra = {
            "example": {
                "error": {
                    "message": "Cannot change status from 'closed' to 'new'",
                    "code": "INVALID_TRANSITION",
                    "status_code": 409,
                    "details": {"current": "closed", "requested": "new"},
                }
            }
        }
