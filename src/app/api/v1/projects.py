"""Project endpoints: projects, their members and threaded comments."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from src.app.api.deps import Actor, get_actor, get_crm_service
from src.app.crm.schemas import (
    CommentCreate,
    CommentRead,
    EntityKind,
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
    ProjectWithOwner,
    ThreadedComment,
)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[ProjectWithOwner])
async def list_projects(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[ProjectWithOwner]:
    """All projects with owner details for admins, owned projects for users."""
    return await service.list_projects(actor.user_id, actor.role)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: str, service: Any = Depends(get_crm_service)) -> ProjectRead:
    return await service.get_record(EntityKind.PROJECT, project_id)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(body: ProjectCreate, service: Any = Depends(get_crm_service)) -> ProjectRead:
    return await service.create_project(body)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    service: Any = Depends(get_crm_service),
) -> ProjectRead:
    return await service.update_project(project_id, body)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, service: Any = Depends(get_crm_service)) -> None:
    """Delete a project with its comments and memberships."""
    await service.delete_project(project_id)


# ── Members ──────────────────────────────────────────────────────────────────


@router.get("/{project_id}/members", response_model=list[ProjectMemberRead])
async def list_members(
    project_id: str, service: Any = Depends(get_crm_service)
) -> list[ProjectMemberRead]:
    return await service.list_project_members(project_id)


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: str,
    body: ProjectMemberCreate,
    service: Any = Depends(get_crm_service),
) -> ProjectMemberRead:
    return await service.add_project_member(project_id, body)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: str, user_id: str, service: Any = Depends(get_crm_service)
) -> None:
    await service.remove_project_member(project_id, user_id)


# ── Comments ─────────────────────────────────────────────────────────────────


@router.get("/{project_id}/comments", response_model=list[ThreadedComment])
async def list_project_comments(
    project_id: str, service: Any = Depends(get_crm_service)
) -> list[ThreadedComment]:
    return await service.list_comments(EntityKind.PROJECT_COMMENT, project_id)


@router.post(
    "/{project_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_project_comment(
    project_id: str,
    body: CommentCreate,
    service: Any = Depends(get_crm_service),
) -> CommentRead:
    return await service.add_comment(EntityKind.PROJECT_COMMENT, project_id, body)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project_comment(comment_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_comment(EntityKind.PROJECT_COMMENT, comment_id)
