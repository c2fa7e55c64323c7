"""Authentication API endpoints.

Login accepts an email or a username with the password and returns a JWT
access token. ``/auth/me`` resolves that token back to the user.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, Field

from src.app.api.deps import get_crm_service, get_current_user
from src.app.core.security import create_access_token
from src.app.crm.schemas import CamelModel, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(CamelModel):
    """Either an email address or a username goes in ``login``."""

    login: str = Field(..., min_length=1, validation_alias=AliasChoices("email", "username", "login"))
    password: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    user: UserRead
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, service: Any = Depends(get_crm_service)) -> TokenResponse:
    """Authenticate a user and return an access token."""
    user = await service.authenticate(body.login, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    token = create_access_token({"sub": user.id, "role": user.role.value, "email": user.email})
    return TokenResponse(user=user, access_token=token)


@router.get("/me", response_model=UserRead)
async def me(user: UserRead = Depends(get_current_user)) -> UserRead:
    """Return the user behind the bearer token."""
    return user
