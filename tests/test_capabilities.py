"""
Tests for `domain/capabilities.py`.

Covers contract rules:
- Only admin may moderate reviews or manage leads.
- Lawyers may read the bulletin board; users may not.
- An absent identity is always refused.
"""

from __future__ import annotations

import pytest

from domain.capabilities import (
    CAPABILITY_TABLE,
    Capability,
    Identity,
    Role,
    has_capability,
    is_moderator,
    require_capability,
)
from domain.errors import AuthorizationError


def test_every_role_has_an_entry() -> None:
    assert set(CAPABILITY_TABLE) == set(Role)


def test_admin_holds_every_capability() -> None:
    assert CAPABILITY_TABLE[Role.ADMIN] == frozenset(Capability)


def test_only_admin_is_a_moderator() -> None:
    assert is_moderator(Role.ADMIN)
    assert is_moderator("admin")
    assert not is_moderator(Role.LAWYER)
    assert not is_moderator(Role.USER)


def test_lawyer_reads_bulletin_board_but_cannot_manage_leads(lawyer) -> None:
    assert has_capability(lawyer, Capability.VIEW_BULLETIN_BOARD)
    assert not has_capability(lawyer, Capability.MANAGE_LEADS)
    assert not has_capability(lawyer, Capability.VIEW_LEAD_CONTACT_INFO)


def test_user_may_only_submit_match_requests(user) -> None:
    assert has_capability(user, Capability.SUBMIT_MATCH_REQUEST)
    assert not has_capability(user, Capability.VIEW_BULLETIN_BOARD)


def test_require_capability_returns_identity(admin) -> None:
    assert require_capability(admin, Capability.MODERATE_REVIEWS) is admin


def test_require_capability_refuses_missing_identity() -> None:
    with pytest.raises(AuthorizationError) as exc_info:
        require_capability(None, Capability.MODERATE_REVIEWS)

    assert exc_info.value.status_code == 403


def test_require_capability_refuses_lacking_role(lawyer) -> None:
    with pytest.raises(AuthorizationError) as exc_info:
        require_capability(lawyer, Capability.MODERATE_REVIEWS)

    assert exc_info.value.details == {"capability": "moderate_reviews", "role": "lawyer"}


def test_identity_coerces_role_strings() -> None:
    assert Identity(user_id="u1", role="lawyer").role is Role.LAWYER  # type: ignore[arg-type]


def test_identity_rejects_blank_user_id() -> None:
    with pytest.raises(ValueError):
        Identity(user_id="  ", role=Role.USER)

    with pytest.raises(ValueError):
        Identity(user_id="u1", role="superuser")  # type: ignore[arg-type]
