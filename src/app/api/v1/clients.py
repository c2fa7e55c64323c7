"""Client endpoints, including threaded client comments."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from src.app.api.deps import Actor, get_actor, get_crm_service
from src.app.crm.schemas import (
    ClientCreate,
    ClientRead,
    ClientUpdate,
    CommentCreate,
    CommentRead,
    EntityKind,
    ThreadedComment,
)

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=list[ClientRead])
async def list_clients(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[ClientRead]:
    """Active clients visible to the caller, most recently updated first."""
    return await service.list_visible_clients(actor.user_id, actor.role)


@router.get("/past", response_model=list[ClientRead])
async def list_past_clients(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[ClientRead]:
    """Closed or dropped clients."""
    return await service.list_past_clients(actor.user_id, actor.role)


@router.get("/recent", response_model=list[ClientRead])
async def list_recent_clients(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[ClientRead]:
    return await service.list_recent_clients(actor.user_id, actor.role)


@router.get("/by-assignment", response_model=list[ClientRead])
async def list_clients_by_assignment(
    assignee_name: str = Query(..., alias="assigneeName", min_length=1),
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[ClientRead]:
    return await service.list_clients_by_assignment(assignee_name, actor.user_id, actor.role)


@router.get("/{client_id}", response_model=ClientRead)
async def get_client(client_id: str, service: Any = Depends(get_crm_service)) -> ClientRead:
    return await service.get_record(EntityKind.CLIENT, client_id)


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
async def create_client(body: ClientCreate, service: Any = Depends(get_crm_service)) -> ClientRead:
    return await service.create_client(body)


@router.patch("/{client_id}", response_model=ClientRead)
async def update_client(
    client_id: str,
    body: ClientUpdate,
    service: Any = Depends(get_crm_service),
) -> ClientRead:
    return await service.update_client(client_id, body)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: str, service: Any = Depends(get_crm_service)) -> None:
    """Delete a client; leads converted into it drop their reference."""
    await service.delete_client(client_id)


# ── Comments ─────────────────────────────────────────────────────────────────


@router.get("/{client_id}/comments", response_model=list[ThreadedComment])
async def list_client_comments(
    client_id: str, service: Any = Depends(get_crm_service)
) -> list[ThreadedComment]:
    return await service.list_comments(EntityKind.CLIENT_COMMENT, client_id)


@router.post(
    "/{client_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_client_comment(
    client_id: str,
    body: CommentCreate,
    service: Any = Depends(get_crm_service),
) -> CommentRead:
    return await service.add_comment(EntityKind.CLIENT_COMMENT, client_id, body)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client_comment(comment_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_comment(EntityKind.CLIENT_COMMENT, comment_id)
