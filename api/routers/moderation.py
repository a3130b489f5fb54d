"""
Moderation API Endpoints.

Read-only views for the admin panel: the combined filtered/sorted view and
the dashboard summary.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_identity, get_moderation_view
from api.models import DashboardResponse, LeadResponse, ModerationViewResponse, ReviewResponse, StatsResponse
from domain.capabilities import Capability, Identity, require_capability
from services.moderation_view import ModerationView, SortKey, ViewConfig

router = APIRouter()


def _require_staff(identity: Optional[Identity]) -> Identity:
    require_capability(identity, Capability.MODERATE_REVIEWS)
    return require_capability(identity, Capability.MANAGE_LEADS)


@router.get(
    "/moderation/view",
    response_model=ModerationViewResponse,
    summary="Moderation View",
)
def moderation_view(
    status: Optional[str] = Query(None, description="Review or lead status, or all"),
    origin: Optional[str] = Query(None, description="direct-contact, match-request or all"),
    search: Optional[str] = Query(None),
    sort: SortKey = Query(SortKey.NEWEST),
    identity: Optional[Identity] = Depends(get_identity),
    view: ModerationView = Depends(get_moderation_view),
):
    """
    Reviews and leads after filter, search and sort.

    **Example usage:**
    - Pending reviews, oldest first: `GET /api/v1/moderation/view?status=pending&sort=oldest`
    - Match requests mentioning "eviction": `GET /api/v1/moderation/view?origin=match-request&search=eviction`
    """
    staff = _require_staff(identity)
    rendered = view.render(ViewConfig(status_filter=status, origin_filter=origin, search_term=search, sort_key=sort))
    return ModerationViewResponse(
        reviews=[ReviewResponse.from_domain(r) for r in rendered.reviews],
        leads=[LeadResponse.from_domain(lead, staff) for lead in rendered.leads],
        stats=StatsResponse.from_domain(rendered.stats),
        stale=rendered.stale,
    )


@router.get(
    "/moderation/dashboard",
    response_model=DashboardResponse,
    summary="Moderation Dashboard",
)
def moderation_dashboard(
    identity: Optional[Identity] = Depends(get_identity),
    view: ModerationView = Depends(get_moderation_view),
):
    staff = _require_staff(identity)
    return DashboardResponse.from_domain(view.dashboard(), staff)
