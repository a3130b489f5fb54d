"""
Domain: Lead entities, origins and the lead status lifecycle.

Contract excerpts implemented here:
- A Lead is produced by exactly one intake pathway (its Origin):
  direct-contact (flat contact payload) or match-request (three privacy tiers).
- Lead.status is one of new / contacted / open / closed.
- Status only moves forward along new -> contacted -> open -> closed.
  new -> closed is an accepted shortcut; closed is terminal.
- The two origins are carried as a tagged union (TaggedLead) so that every
  consumer sees which pathway a lead came from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .errors import InvalidTransitionError, ValidationError
from .time import require_utc_timestamp

CASE_SUMMARY_MIN_LENGTH: int = 20

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class LeadOrigin(str, Enum):
    DIRECT_CONTACT = "direct-contact"
    MATCH_REQUEST = "match-request"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    OPEN = "open"
    CLOSED = "closed"


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EMERGENCY = "emergency"


LEAD_TRANSITIONS: Mapping[LeadStatus, frozenset[LeadStatus]] = {
    LeadStatus.NEW: frozenset({LeadStatus.CONTACTED, LeadStatus.OPEN, LeadStatus.CLOSED}),
    LeadStatus.CONTACTED: frozenset({LeadStatus.OPEN, LeadStatus.CLOSED}),
    LeadStatus.OPEN: frozenset({LeadStatus.CLOSED}),
    LeadStatus.CLOSED: frozenset(),
}


def check_lead_transition(current: LeadStatus, requested: LeadStatus) -> bool:
    """
    Validate a lead status change.

    Returns:
    - True if the change is a legal forward move.
    - False if `requested` equals `current` on a non-terminal status (no-op).

    Raises:
    - InvalidTransitionError for backward moves and any move out of closed.
    """

    current = LeadStatus(current)
    requested = LeadStatus(requested)
    if current is LeadStatus.CLOSED:
        raise InvalidTransitionError(current.value, requested.value)
    if requested is current:
        return False
    if requested not in LEAD_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, requested.value)
    return True


def contact_name(contact_info: Optional[Mapping[str, Any]]) -> str:
    """Assemble a display name from either `name` or `firstName` + `lastName`."""

    if not contact_info:
        return ""
    name = contact_info.get("name")
    if name:
        return str(name).strip()
    parts = [contact_info.get("firstName"), contact_info.get("lastName")]
    return " ".join(str(p).strip() for p in parts if p).strip()


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and _EMAIL_RE.match(value) is not None


@dataclass(frozen=True, slots=True)
class DirectContactInput:
    """Direct-contact intake form addressed to one lawyer."""

    category: str
    case_summary: str
    name: str
    email: str
    phone: str
    lawyer_id: Optional[str] = None
    lawyer_name: Optional[str] = None
    urgency: Urgency = Urgency.NORMAL
    preferred_contact: str = "email"

    def validate(self) -> None:
        problems: dict[str, str] = {}
        if not (self.category or "").strip():
            problems["category"] = "Please select a legal category"
        if len((self.case_summary or "").strip()) < CASE_SUMMARY_MIN_LENGTH:
            problems["case_summary"] = (
                f"Please provide at least {CASE_SUMMARY_MIN_LENGTH} characters describing your situation"
            )
        if not (self.name or "").strip():
            problems["name"] = "Name is required"
        if not (self.email or "").strip():
            problems["email"] = "Email is required"
        elif not is_valid_email(self.email.strip()):
            problems["email"] = "Please enter a valid email"
        if not (self.phone or "").strip():
            problems["phone"] = "Phone number is required"
        try:
            Urgency(self.urgency)
        except ValueError:
            problems["urgency"] = f"Unknown urgency '{self.urgency}'"
        if problems:
            raise ValidationError("Invalid direct-contact request", details=problems)


def _check_lead_timestamps(created_at: Optional[datetime], updated_at: Optional[datetime]) -> None:
    if created_at is not None:
        require_utc_timestamp("created_at", created_at)
    if updated_at is not None:
        require_utc_timestamp("updated_at", updated_at)


@dataclass(frozen=True, slots=True)
class DirectContactLead:
    """Lead from the direct-contact form. Flat payload, no tier partitioning."""

    lead_id: str
    status: LeadStatus
    created_at: Optional[datetime]
    contact_info: Mapping[str, Any]
    case_summary: Optional[str] = None
    category: Optional[str] = None
    urgency: Optional[str] = None
    preferred_contact: Optional[str] = None
    lawyer_id: Optional[str] = None
    lawyer_name: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _check_lead_timestamps(self.created_at, self.updated_at)


@dataclass(frozen=True, slots=True)
class MatchRequestLead:
    """
    Lead from the match-request flow, stored as three co-addressed tiers.

    - contact_info: PII tier (staff, later the assigned lawyer).
    - conflict_data: conflict-check tier (staff during screening only).
    - case_details: public tier (the only tier fit for a bulletin board).
    """

    lead_id: str
    status: LeadStatus
    created_at: Optional[datetime]
    contact_info: Mapping[str, Any]
    conflict_data: Mapping[str, Any]
    case_details: Mapping[str, Any]
    interested_lawyers: tuple[str, ...] = field(default_factory=tuple)
    assigned_lawyer_id: Optional[str] = None
    assigned_lawyer_name: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _check_lead_timestamps(self.created_at, self.updated_at)


AnyLead = Union[DirectContactLead, MatchRequestLead]


@dataclass(frozen=True, slots=True)
class TaggedLead:
    """Origin-tagged lead: the unit of the merged lead feed."""

    origin: LeadOrigin
    lead: AnyLead

    def __post_init__(self) -> None:
        expected = DirectContactLead if self.origin is LeadOrigin.DIRECT_CONTACT else MatchRequestLead
        if not isinstance(self.lead, expected):
            raise TypeError(f"{self.origin.value} leads must be {expected.__name__}")

    @property
    def lead_id(self) -> str:
        return self.lead.lead_id

    @property
    def status(self) -> LeadStatus:
        return self.lead.status

    @property
    def created_at(self) -> Optional[datetime]:
        return self.lead.created_at

    @property
    def contact_name(self) -> str:
        return contact_name(self.lead.contact_info)

    @property
    def email(self) -> str:
        return str((self.lead.contact_info or {}).get("email") or "")

    @property
    def case_summary(self) -> str:
        if isinstance(self.lead, DirectContactLead):
            return self.lead.case_summary or ""
        return str((self.lead.case_details or {}).get("summary") or "")

    @property
    def lawyer_name(self) -> str:
        if isinstance(self.lead, DirectContactLead):
            return self.lead.lawyer_name or ""
        return self.lead.assigned_lawyer_name or ""

    def matches_text(self, term: Optional[str]) -> bool:
        """Case-insensitive substring match over contact name, email, case summary and lawyer name."""

        if term is None or not term.strip():
            return True
        needle = term.strip().lower()
        haystack = (self.contact_name, self.email, self.case_summary, self.lawyer_name)
        return any(needle in value.lower() for value in haystack)


__all__ = [
    "LeadOrigin",
    "LeadStatus",
    "Urgency",
    "LEAD_TRANSITIONS",
    "check_lead_transition",
    "contact_name",
    "DirectContactInput",
    "DirectContactLead",
    "MatchRequestLead",
    "TaggedLead",
]
