"""
Domain: PII partitioner for match-request submissions (pure).

One raw match-request submission is split into three disjoint tiers before
anything is persisted:

- contact_info  (PII tier):            firstName, lastName, email, phone
- conflict_data (conflict-check tier): opposingParty, opposingLawFirm, opposingLawyer
- case_details  (public tier):         category, timeline, budget, location,
                                       summary, preferredContact

Invariants:
- Every raw field lands in exactly one tier; nothing is dropped or duplicated.
- The owner's user id is stamped into contact_info and case_details as
  `userId`, never into conflict_data.
- case_details never carries an email or phone field.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import PreconditionError, ValidationError
from .lead import is_valid_email

OWNER_FIELD: str = "userId"

CONTACT_FIELDS: frozenset[str] = frozenset({"firstName", "lastName", "email", "phone"})
CONFLICT_FIELDS: frozenset[str] = frozenset({"opposingParty", "opposingLawFirm", "opposingLawyer"})
CASE_FIELDS: frozenset[str] = frozenset({
    "category",
    "timeline",
    "budget",
    "location",
    "summary",
    "preferredContact",
})

REQUIRED_FIELDS: frozenset[str] = frozenset({"firstName", "lastName", "email", "category", "summary"})


@dataclass(frozen=True, slots=True)
class PartitionedLead:
    """The three tiers of one match request. All share the lead's id once persisted."""

    contact_info: Mapping[str, Any]
    conflict_data: Mapping[str, Any]
    case_details: Mapping[str, Any]

    @property
    def owner_user_id(self) -> Optional[str]:
        return self.contact_info.get(OWNER_FIELD)

    def public_view(self) -> dict[str, Any]:
        """Case tier as shown on a multi-lawyer listing: allowlisted case fields only."""
        return {k: v for k, v in self.case_details.items() if k in CASE_FIELDS}

    def to_document(self) -> dict[str, dict[str, Any]]:
        return {
            "contact_info": dict(self.contact_info),
            "conflict_data": dict(self.conflict_data),
            "case_details": dict(self.case_details),
        }


def _tier_of(key: str) -> str:
    if key in CONTACT_FIELDS:
        return "contact_info"
    if key in CONFLICT_FIELDS:
        return "conflict_data"
    if key in CASE_FIELDS:
        return "case_details"
    raise ValidationError(
        f"Unknown match-request field '{key}'",
        details={"field": key},
    )


def _validate_raw(raw: Mapping[str, Any]) -> None:
    problems: dict[str, str] = {}
    if OWNER_FIELD in raw:
        problems[OWNER_FIELD] = "Owner identity is assigned by the server, not the submission"
    for name in sorted(REQUIRED_FIELDS):
        value = raw.get(name)
        if value is None or not str(value).strip():
            problems[name] = f"{name} is required"
    email = raw.get("email")
    if email and not is_valid_email(str(email).strip()):
        problems["email"] = "Please enter a valid email"
    if problems:
        raise ValidationError("Invalid match request", details=problems)


def partition(raw: Mapping[str, Any], owner_user_id: Optional[str]) -> PartitionedLead:
    """
    Split one raw match-request submission into its three privacy tiers.

    Raises:
    - PreconditionError if no owner identity is supplied.
    - ValidationError for unknown fields, a caller-supplied userId, or missing
      required fields.
    """

    if owner_user_id is None or not str(owner_user_id).strip():
        raise PreconditionError("Match requests require an authenticated owner")

    _validate_raw(raw)

    tiers: dict[str, dict[str, Any]] = {
        "contact_info": {},
        "conflict_data": {},
        "case_details": {},
    }
    for key, value in raw.items():
        tiers[_tier_of(key)][key] = value

    tiers["contact_info"][OWNER_FIELD] = owner_user_id
    tiers["case_details"][OWNER_FIELD] = owner_user_id

    return PartitionedLead(
        contact_info=MappingProxyType(tiers["contact_info"]),
        conflict_data=MappingProxyType(tiers["conflict_data"]),
        case_details=MappingProxyType(tiers["case_details"]),
    )


def reassemble(partitioned: PartitionedLead) -> dict[str, Any]:
    """Inverse of `partition`: merge the tiers back into one flat submission."""

    merged: dict[str, Any] = {}
    for tier in (partitioned.contact_info, partitioned.conflict_data, partitioned.case_details):
        for key, value in tier.items():
            if key == OWNER_FIELD:
                continue
            merged[key] = value
    return merged


__all__ = [
    "OWNER_FIELD",
    "CONTACT_FIELDS",
    "CONFLICT_FIELDS",
    "CASE_FIELDS",
    "PartitionedLead",
    "partition",
    "reassemble",
]
