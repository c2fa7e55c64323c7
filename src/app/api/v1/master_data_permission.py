"""Master-data access request / approve / revoke endpoints.

Invalid transitions answer 409, approving or revoking for a user with no
request answers 404, and non-admin approve / revoke attempts answer 403.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from src.app.api.deps import get_directory_service
from src.app.crm.schemas import CamelModel, PermissionRead, PermissionWithUser, UserRole

router = APIRouter(prefix="/master-data-permission", tags=["master-data-permission"])


class AccessRequest(CamelModel):
    user_id: str = Field(..., min_length=1)


class ApproveRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    approved_by: str = Field(..., min_length=1)
    user_role: UserRole


class RevokeRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    user_role: UserRole


class PermissionStatus(CamelModel):
    """Permission row, or just ``hasViewAccess: false`` when none exists."""

    id: str | None = None
    user_id: str
    has_view_access: bool = False
    requested_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None


@router.get("/pending", response_model=list[PermissionWithUser])
async def list_pending(
    user_role: UserRole = Query(..., alias="userRole"),
    service: Any = Depends(get_directory_service),
) -> list[PermissionWithUser]:
    """Open requests, newest first (admin only)."""
    return await service.list_pending_requests(user_role)


@router.get("/approved", response_model=list[PermissionWithUser])
async def list_approved(
    user_role: UserRole = Query(..., alias="userRole"),
    service: Any = Depends(get_directory_service),
) -> list[PermissionWithUser]:
    """Granted access, most recent approval first (admin only)."""
    return await service.list_approved(user_role)


@router.post("/request", response_model=PermissionRead)
async def request_access(
    body: AccessRequest, service: Any = Depends(get_directory_service)
) -> PermissionRead:
    return await service.request_access(body.user_id)


@router.post("/approve", response_model=PermissionRead)
async def approve_access(
    body: ApproveRequest, service: Any = Depends(get_directory_service)
) -> PermissionRead:
    return await service.approve_access(body.user_id, body.approved_by, body.user_role)


@router.post("/revoke", response_model=PermissionRead)
async def revoke_access(
    body: RevokeRequest, service: Any = Depends(get_directory_service)
) -> PermissionRead:
    return await service.revoke_access(body.user_id, body.user_role)


@router.get("/{user_id}", response_model=PermissionStatus)
async def get_permission(
    user_id: str, service: Any = Depends(get_directory_service)
) -> PermissionStatus:
    permission = await service.get_permission(user_id)
    if permission is None:
        return PermissionStatus(user_id=user_id, has_view_access=False)
    return PermissionStatus.model_validate(permission.model_dump())
