"""Team member endpoints and the assignment roster.

``GET /team-members/assignable`` serves the same configured roster the
visibility resolver matches against, so the Lead / Co-Lead pickers can
only offer names that will actually grant visibility.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from src.app.api.deps import get_crm_service
from src.app.crm.schemas import EntityKind, TeamMemberCreate, TeamMemberRead, TeamMemberUpdate

router = APIRouter(prefix="/team-members", tags=["team-members"])


@router.get("", response_model=list[TeamMemberRead])
async def list_team_members(service: Any = Depends(get_crm_service)) -> list[TeamMemberRead]:
    return await service.list_records(EntityKind.TEAM_MEMBER, order_by="name")


@router.get("/assignable", response_model=list[str])
async def list_assignable(service: Any = Depends(get_crm_service)) -> list[str]:
    """Full names accepted for leadAssignment / coLeadAssignment."""
    return list(service.roster)


@router.get("/{member_id}", response_model=TeamMemberRead)
async def get_team_member(member_id: str, service: Any = Depends(get_crm_service)) -> TeamMemberRead:
    return await service.get_record(EntityKind.TEAM_MEMBER, member_id)


@router.post("", response_model=TeamMemberRead, status_code=status.HTTP_201_CREATED)
async def create_team_member(
    body: TeamMemberCreate, service: Any = Depends(get_crm_service)
) -> TeamMemberRead:
    return await service.create_record(EntityKind.TEAM_MEMBER, body.model_dump())


@router.patch("/{member_id}", response_model=TeamMemberRead)
async def update_team_member(
    member_id: str,
    body: TeamMemberUpdate,
    service: Any = Depends(get_crm_service),
) -> TeamMemberRead:
    return await service.update_record(
        EntityKind.TEAM_MEMBER, member_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team_member(member_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_record(EntityKind.TEAM_MEMBER, member_id)
