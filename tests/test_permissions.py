"""Tests for the master-data access state machine."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.app.crm.errors import AuthorizationError, ConflictError, NotFoundError
from src.app.crm.permissions import (
    PermissionState,
    approve_transition,
    permission_state,
    request_transition,
    revoke_transition,
)
from src.app.crm.schemas import PermissionRead, UserRole

NOW = datetime(2025, 5, 5, tzinfo=timezone.utc)


def _row(**overrides) -> PermissionRead:
    return PermissionRead.model_validate({"id": "p-1", "user_id": "u-1", **overrides})


def test_state_derivation():
    assert permission_state(None) == PermissionState.NO_REQUEST
    assert permission_state(_row()) == PermissionState.NO_REQUEST
    assert permission_state(_row(requested_at=NOW)) == PermissionState.PENDING
    assert permission_state(_row(requested_at=NOW, has_view_access=True)) == PermissionState.APPROVED


def test_request_opens_or_refreshes_pending():
    assert request_transition(None, NOW) == {"has_view_access": False, "requested_at": NOW}
    assert request_transition(_row(requested_at=NOW), NOW)["requested_at"] == NOW


def test_request_rejected_when_already_approved():
    with pytest.raises(ConflictError):
        request_transition(_row(has_view_access=True, requested_at=NOW))


def test_admin_approves_pending_request():
    values = approve_transition(_row(requested_at=NOW), "admin-1", UserRole.ADMIN, NOW)
    assert values == {"has_view_access": True, "approved_at": NOW, "approved_by": "admin-1"}


def test_non_admin_cannot_approve():
    with pytest.raises(AuthorizationError):
        approve_transition(_row(requested_at=NOW), "u-2", UserRole.USER)


def test_approve_without_request():
    with pytest.raises(NotFoundError):
        approve_transition(None, "admin-1", "admin")
    with pytest.raises(ConflictError):
        approve_transition(_row(), "admin-1", "admin")


def test_approve_twice_conflicts():
    with pytest.raises(ConflictError):
        approve_transition(_row(requested_at=NOW, has_view_access=True), "admin-1", "admin")


def test_revoke_resets_to_no_request():
    values = revoke_transition(_row(requested_at=NOW, has_view_access=True), UserRole.ADMIN)
    assert values == {
        "has_view_access": False,
        "approved_at": None,
        "approved_by": None,
        "requested_at": None,
    }
    assert permission_state(_row(**values)) == PermissionState.NO_REQUEST


def test_revoke_requires_admin_and_approved_state():
    with pytest.raises(AuthorizationError):
        revoke_transition(_row(has_view_access=True), UserRole.USER)
    with pytest.raises(NotFoundError):
        revoke_transition(None, UserRole.ADMIN)
    with pytest.raises(ConflictError):
        revoke_transition(_row(requested_at=NOW), UserRole.ADMIN)
