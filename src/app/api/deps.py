"""FastAPI dependency injection for CRM services and request identity.

Services are created once in the application lifespan and stored on
``app.state``; the getters below return 503 when they are missing (for
example when the database failed to initialize). Visibility-scoped
endpoints identify the caller through the ``userId`` / ``userRole`` query
parameters; the bot API authenticates with a shared secret instead.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Header, HTTPException, Query, Request, status

from src.app.config import Settings, get_settings
from src.app.core.security import verify_token
from src.app.crm.schemas import EntityKind, UserRead, UserRole


def _get_state_service(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_crm_service(request: Request) -> Any:
    """Retrieve CrmService from app.state, 503 if not available."""
    return _get_state_service(request, "crm_service", "CRM service")


def get_directory_service(request: Request) -> Any:
    """Retrieve DirectoryService from app.state, 503 if not available."""
    return _get_state_service(request, "directory_service", "Directory service")


def get_bot_link_service(request: Request) -> Any:
    """Retrieve BotLinkService from app.state, 503 if not available."""
    return _get_state_service(request, "bot_link_service", "Bot service")


# ── Caller Identity ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Actor:
    """Who is asking, as far as record visibility is concerned."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


async def get_actor(
    user_id: str = Query(..., alias="userId", min_length=1),
    user_role: UserRole = Query(..., alias="userRole"),
) -> Actor:
    """Read the caller from ``userId`` / ``userRole``; unknown roles are a 422."""
    return Actor(user_id=user_id, role=user_role)


async def get_current_user(
    request: Request,
    service: Any = Depends(get_crm_service),
) -> UserRead:
    """Resolve the bearer JWT to a user.

    Raises:
        HTTPException(401): Missing or invalid token, or the user no longer exists.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(auth_header[7:], token_type="access")
    user = await service.repository.get(EntityKind.USER, payload["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# ── Bot Authentication ──────────────────────────────────────────────────────


async def require_bot_key(
    x_bot_key: str | None = Header(default=None, alias="X-Bot-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the shared bot secret.

    Raises:
        HTTPException(503): No secret is configured on the server.
        HTTPException(401): Header missing or wrong.
    """
    if not settings.BOT_SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Bot integration is not configured",
        )
    if not x_bot_key or not hmac.compare_digest(x_bot_key, settings.BOT_SECRET_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bot key",
        )
