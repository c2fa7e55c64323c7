"""User administration endpoints.

Passwords are accepted on create and change-password only and are stored
as bcrypt hashes; no response ever carries a password or its hash.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import Field

from src.app.api.deps import get_crm_service
from src.app.crm.schemas import CamelModel, EntityKind, UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


@router.get("", response_model=list[UserRead])
async def list_users(service: Any = Depends(get_crm_service)) -> list[UserRead]:
    return await service.list_records(EntityKind.USER, order_by="first_name")


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user_id: str, service: Any = Depends(get_crm_service)) -> UserRead:
    return await service.get_record(EntityKind.USER, user_id)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, service: Any = Depends(get_crm_service)) -> UserRead:
    """Create a user; 400 if the email or username is taken."""
    return await service.create_user(body)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str, body: UserUpdate, service: Any = Depends(get_crm_service)
) -> UserRead:
    return await service.update_user(user_id, body)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_record(EntityKind.USER, user_id)


@router.post("/{user_id}/change-password")
async def change_password(
    user_id: str,
    body: ChangePasswordRequest,
    service: Any = Depends(get_crm_service),
) -> dict:
    await service.change_password(user_id, body.current_password, body.new_password)
    return {"message": "Password updated successfully"}
