"""
Domain: roles, capabilities and the authorization table.

Authorization decisions are made only against CAPABILITY_TABLE. Call sites ask
"does this identity hold capability X", never "is the role string 'admin'".

Current matrix:
- user:   may submit match requests.
- lawyer: may submit match requests and read the bulletin board (case tier only).
- admin:  holds every capability (moderation, lead management, PII tiers).

Review submission is public and needs no capability.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .errors import AuthorizationError


class Role(str, Enum):
    USER = "user"
    LAWYER = "lawyer"
    ADMIN = "admin"


class Capability(str, Enum):
    SUBMIT_MATCH_REQUEST = "submit_match_request"
    MODERATE_REVIEWS = "moderate_reviews"
    MANAGE_LEADS = "manage_leads"
    VIEW_LEAD_CONTACT_INFO = "view_lead_contact_info"
    VIEW_CONFLICT_DATA = "view_conflict_data"
    VIEW_BULLETIN_BOARD = "view_bulletin_board"


CAPABILITY_TABLE: Mapping[Role, frozenset[Capability]] = {
    Role.USER: frozenset({Capability.SUBMIT_MATCH_REQUEST}),
    Role.LAWYER: frozenset({
        Capability.SUBMIT_MATCH_REQUEST,
        Capability.VIEW_BULLETIN_BOARD,
    }),
    Role.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated caller as handed to us by the identity provider."""

    user_id: str
    role: Role

    def __post_init__(self) -> None:
        if not self.user_id or not self.user_id.strip():
            raise ValueError("user_id must be a non-empty string")
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))


def has_capability(identity: Optional[Identity], capability: Capability) -> bool:
    if identity is None:
        return False
    return capability in CAPABILITY_TABLE.get(identity.role, frozenset())


def require_capability(identity: Optional[Identity], capability: Capability) -> Identity:
    """
    Return the identity if it holds `capability`, otherwise raise AuthorizationError.

    An absent identity is always refused.
    """

    if identity is None:
        raise AuthorizationError(
            f"Authentication required for '{capability.value}'",
            details={"capability": capability.value},
        )
    if not has_capability(identity, capability):
        raise AuthorizationError(
            f"Role '{identity.role.value}' lacks capability '{capability.value}'",
            details={"capability": capability.value, "role": identity.role.value},
        )
    return identity


def is_moderator(role: Role | str) -> bool:
    return Capability.MODERATE_REVIEWS in CAPABILITY_TABLE.get(Role(role), frozenset())


__all__ = [
    "Role",
    "Capability",
    "CAPABILITY_TABLE",
    "Identity",
    "has_capability",
    "require_capability",
    "is_moderator",
]
