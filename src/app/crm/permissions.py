"""Master-data access permission state machine.

Each user has at most one permission row. Its state is derived, not
stored:

    no-request --request--> pending --approve(admin)--> approved
        ^                      |                           |
        |                      +--request (refresh)--------+ (rejected)
        +------------------revoke(admin)-------------------+

Revoking clears the approval and the request stamp, so the row reads as
no-request and a new request is accepted. The transition functions return
the column values to write and raise on anything the diagram does not
allow; persisting them is DirectoryService's job.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from src.app.crm.errors import AuthorizationError, ConflictError, NotFoundError
from src.app.crm.schemas import PermissionRead, UserRole


class PermissionState(str, Enum):
    NO_REQUEST = "no_request"
    PENDING = "pending"
    APPROVED = "approved"


def permission_state(row: PermissionRead | None) -> PermissionState:
    """Derive the workflow state from a (possibly missing) permission row."""
    if row is None:
        return PermissionState.NO_REQUEST
    if row.has_view_access:
        return PermissionState.APPROVED
    if row.requested_at is not None:
        return PermissionState.PENDING
    return PermissionState.NO_REQUEST


def _require_admin(role: UserRole | str, action: str) -> None:
    if UserRole(role) != UserRole.ADMIN:
        raise AuthorizationError(f"Only admins can {action} master data access")


def request_transition(row: PermissionRead | None, now: datetime | None = None) -> dict[str, Any]:
    """Values for a user's access request (new request or refresh of a pending one).

    Raises:
        ConflictError: If the user already has access.
    """
    if permission_state(row) == PermissionState.APPROVED:
        raise ConflictError("Master data access is already approved")
    return {
        "has_view_access": False,
        "requested_at": now or datetime.now(timezone.utc),
    }


def approve_transition(
    row: PermissionRead | None,
    approved_by: str,
    role: UserRole | str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Values for an admin approving a pending request.

    Raises:
        AuthorizationError: If the caller is not an admin.
        NotFoundError: If the user never requested access.
        ConflictError: If the request is not pending.
    """
    _require_admin(role, "approve")
    if row is None:
        raise NotFoundError("Permission request not found")
    state = permission_state(row)
    if state != PermissionState.PENDING:
        raise ConflictError(f"Cannot approve a request in state {state.value}")
    return {
        "has_view_access": True,
        "approved_at": now or datetime.now(timezone.utc),
        "approved_by": approved_by,
    }


def revoke_transition(row: PermissionRead | None, role: UserRole | str) -> dict[str, Any]:
    """Values for an admin revoking approved access.

    Raises:
        AuthorizationError: If the caller is not an admin.
        NotFoundError: If the user has no permission row.
        ConflictError: If access is not currently approved.
    """
    _require_admin(role, "revoke")
    if row is None:
        raise NotFoundError("Permission not found")
    state = permission_state(row)
    if state != PermissionState.APPROVED:
        raise ConflictError(f"Cannot revoke access in state {state.value}")
    return {
        "has_view_access": False,
        "approved_at": None,
        "approved_by": None,
        "requested_at": None,
    }
