"""
Request dependencies.

The caller's identity comes from the upstream authentication gateway, which
sets `X-User-Id` and `X-User-Role` after verifying the session. Requests
without `X-User-Id` are anonymous (identity None).

The stores are built once in the application lifespan and read from
`app.state`.
"""

from typing import Optional

from fastapi import Header, Request

from domain.capabilities import Identity, Role
from domain.errors import AuthorizationError
from services.lead_aggregator import LeadAggregator
from services.lead_intake_service import LeadIntakeService
from services.moderation_view import ModerationView
from services.review_moderation_store import ReviewModerationStore


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Identity]:
    if x_user_id is None or not x_user_id.strip():
        return None
    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError as exc:
        raise AuthorizationError(
            f"Unknown role '{x_user_role}'",
            details={"role": str(x_user_role)},
        ) from exc
    return Identity(user_id=x_user_id.strip(), role=role)


def get_review_store(request: Request) -> ReviewModerationStore:
    return request.app.state.review_store


def get_lead_aggregator(request: Request) -> LeadAggregator:
    return request.app.state.lead_aggregator


def get_intake_service(request: Request) -> LeadIntakeService:
    return request.app.state.intake_service


def get_moderation_view(request: Request) -> ModerationView:
    return ModerationView(request.app.state.review_store, request.app.state.lead_aggregator)
