"""
Lead repository (persistence).

This module provides *only* persistence operations and row mapping for both
lead origins. No lifecycle or authorization rules belong here.

Collections:
- `intake_leads` (direct-contact origin):
    {id, lawyer_id, lawyer_name, category, urgency, contact_info{name, email, phone},
     case_summary, preferred_contact, status, created_at, updated_at}
- `leads` (match-request origin):
    {id, contact_info{...}, conflict_data{...}, case_details{...}, status,
     interested_lawyers[], assigned_lawyer_id, assigned_lawyer_name,
     created_at, updated_at}
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from domain.lead import (
    DirectContactInput,
    DirectContactLead,
    LeadOrigin,
    LeadStatus,
    MatchRequestLead,
    TaggedLead,
)
from domain.partition import PartitionedLead
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.collection_client import (
    ID_FIELD,
    ChangeCallback,
    CollectionClient,
    ErrorCallback,
    Subscription,
)

# Collection names per origin.
# Keep these aligned with your database schema.
DIRECT_CONTACT_COLLECTION: str = "intake_leads"
MATCH_REQUEST_COLLECTION: str = "leads"

_COLLECTIONS: Mapping[LeadOrigin, str] = {
    LeadOrigin.DIRECT_CONTACT: DIRECT_CONTACT_COLLECTION,
    LeadOrigin.MATCH_REQUEST: MATCH_REQUEST_COLLECTION,
}


def collection_for(origin: LeadOrigin | str) -> str:
    return _COLLECTIONS[LeadOrigin(origin)]


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _get_optional(row: Mapping[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    return str(value) if value not in (None, "") else None


def direct_contact_to_row(
    lead_id: str,
    intake: DirectContactInput,
    created_at: datetime,
) -> dict[str, Any]:
    """Build the `intake_leads` row for a validated direct-contact request."""

    timestamp = to_iso_utc(created_at)
    return {
        ID_FIELD: lead_id,
        "lawyer_id": intake.lawyer_id,
        "lawyer_name": intake.lawyer_name,
        "category": intake.category,
        "urgency": str(getattr(intake.urgency, "value", intake.urgency)),
        "contact_info": {
            "name": intake.name.strip(),
            "email": intake.email.strip(),
            "phone": intake.phone.strip(),
        },
        "case_summary": intake.case_summary.strip(),
        "preferred_contact": intake.preferred_contact,
        "status": LeadStatus.NEW.value,
        "created_at": timestamp,
        "updated_at": timestamp,
    }


def match_request_to_row(
    lead_id: str,
    partitioned: PartitionedLead,
    created_at: datetime,
) -> dict[str, Any]:
    """Build the `leads` row carrying all three tiers of one match request."""

    timestamp = to_iso_utc(created_at)
    return {
        ID_FIELD: lead_id,
        **partitioned.to_document(),
        "status": LeadStatus.NEW.value,
        "interested_lawyers": [],
        "assigned_lawyer_id": None,
        "assigned_lawyer_name": None,
        "created_at": timestamp,
        "updated_at": timestamp,
    }


def row_to_direct_contact_lead(row: Mapping[str, Any]) -> DirectContactLead:
    return DirectContactLead(
        lead_id=str(row[ID_FIELD]),
        status=LeadStatus(str(row.get("status") or LeadStatus.NEW.value)),
        created_at=parse_utc_datetime(row.get("created_at")),
        updated_at=parse_utc_datetime(row.get("updated_at")),
        contact_info=_mapping(row.get("contact_info")),
        # Older rows carry only a category in place of a summary.
        case_summary=_get_optional(row, "case_summary") or _get_optional(row, "category"),
        category=_get_optional(row, "category"),
        urgency=_get_optional(row, "urgency"),
        preferred_contact=_get_optional(row, "preferred_contact"),
        lawyer_id=_get_optional(row, "lawyer_id"),
        lawyer_name=_get_optional(row, "lawyer_name"),
    )


def row_to_match_request_lead(row: Mapping[str, Any]) -> MatchRequestLead:
    return MatchRequestLead(
        lead_id=str(row[ID_FIELD]),
        status=LeadStatus(str(row.get("status") or LeadStatus.NEW.value)),
        created_at=parse_utc_datetime(row.get("created_at")),
        updated_at=parse_utc_datetime(row.get("updated_at")),
        contact_info=_mapping(row.get("contact_info")),
        conflict_data=_mapping(row.get("conflict_data")),
        case_details=_mapping(row.get("case_details")),
        interested_lawyers=tuple(str(x) for x in (row.get("interested_lawyers") or [])),
        assigned_lawyer_id=_get_optional(row, "assigned_lawyer_id"),
        assigned_lawyer_name=_get_optional(row, "assigned_lawyer_name"),
    )


def row_to_tagged_lead(origin: LeadOrigin, row: Mapping[str, Any]) -> TaggedLead:
    if origin is LeadOrigin.DIRECT_CONTACT:
        return TaggedLead(origin, row_to_direct_contact_lead(row))
    return TaggedLead(origin, row_to_match_request_lead(row))


class LeadRepository:
    """Persistence for both lead collections, addressed by origin."""

    def __init__(self, client: CollectionClient) -> None:
        self._client = client

    async def insert_direct_contact(self, lead_id: str, intake: DirectContactInput, created_at: datetime) -> None:
        row = direct_contact_to_row(lead_id, intake, created_at)
        await self._client.create(DIRECT_CONTACT_COLLECTION, lead_id, row)

    async def insert_match_request(self, lead_id: str, partitioned: PartitionedLead, created_at: datetime) -> None:
        row = match_request_to_row(lead_id, partitioned, created_at)
        await self._client.create(MATCH_REQUEST_COLLECTION, lead_id, row)

    async def update_status(
        self,
        lead_id: str,
        origin: LeadOrigin,
        status: LeadStatus,
        updated_at: datetime,
    ) -> None:
        changes = {"status": status.value, "updated_at": to_iso_utc(updated_at)}
        await self._client.update(collection_for(origin), lead_id, changes)

    async def update_status_many(
        self,
        lead_ids: Sequence[str],
        origin: LeadOrigin,
        status: LeadStatus,
        updated_at: datetime,
    ) -> None:
        changes = {"status": status.value, "updated_at": to_iso_utc(updated_at)}
        await self._client.update_many(collection_for(origin), lead_ids, changes)

    async def delete(self, lead_id: str, origin: LeadOrigin) -> None:
        await self._client.delete(collection_for(origin), lead_id)

    async def subscribe(
        self,
        origin: LeadOrigin,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        return await self._client.subscribe(
            collection_for(origin),
            on_change,
            on_error=on_error,
            order_by="created_at",
        )


__all__ = [
    "DIRECT_CONTACT_COLLECTION",
    "MATCH_REQUEST_COLLECTION",
    "collection_for",
    "direct_contact_to_row",
    "match_request_to_row",
    "row_to_direct_contact_lead",
    "row_to_match_request_lead",
    "row_to_tagged_lead",
    "LeadRepository",
]
