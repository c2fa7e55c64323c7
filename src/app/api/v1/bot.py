"""Bot API endpoints called by the chat-platform integration.

Every route requires the shared secret in the ``X-Bot-Key`` header. Calls
act on behalf of the CRM user linked to the chat account; lead creation
and conversion go through the same service code as the REST endpoints.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from src.app.api.deps import get_bot_link_service, require_bot_key
from src.app.crm.bot_links import BotIdentity, BotLeadCreate, BotLinkRequest
from src.app.crm.schemas import (
    BotLeadStats,
    CamelModel,
    ClientRead,
    LeadRead,
    UserRead,
    UserRole,
)

router = APIRouter(prefix="/bot", tags=["bot"], dependencies=[Depends(require_bot_key)])


# ── Response Schemas ─────────────────────────────────────────────────────────


class BotUser(CamelModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: UserRole


class BotMappingInfo(CamelModel):
    platform: str
    platform_username: str | None = None
    linked_at: datetime | None = None


class LinkResponse(CamelModel):
    success: bool = True
    message: str
    user: BotUser
    mapping: BotMappingInfo


class UserInfoResponse(CamelModel):
    success: bool = True
    user: BotUser
    mapping: BotMappingInfo


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class LeadResponse(CamelModel):
    success: bool = True
    message: str
    lead: LeadRead


class ConvertResponse(CamelModel):
    success: bool = True
    message: str
    client: ClientRead
    created: bool


class StatsResponse(CamelModel):
    success: bool = True
    stats: BotLeadStats


def _bot_user(user: UserRead) -> BotUser:
    return BotUser.model_validate(user.model_dump())


def _mapping_info(mapping: Any) -> BotMappingInfo:
    return BotMappingInfo(
        platform=mapping.platform,
        platform_username=mapping.platform_username,
        linked_at=mapping.linked_at,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/health")
async def bot_health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/link-account", response_model=LinkResponse)
async def link_account(
    body: BotLinkRequest, service: Any = Depends(get_bot_link_service)
) -> LinkResponse:
    """Link a chat account to a CRM user by checking the CRM credentials."""
    mapping, user, relinked = await service.link_account(body)
    return LinkResponse(
        message="Account re-linked successfully" if relinked else "Account linked successfully",
        user=_bot_user(user),
        mapping=_mapping_info(mapping),
    )


@router.post("/unlink-account", response_model=MessageResponse)
async def unlink_account(
    body: BotIdentity, service: Any = Depends(get_bot_link_service)
) -> MessageResponse:
    await service.unlink_account(body.platform, body.platform_user_id)
    return MessageResponse(message="Account unlinked successfully")


@router.get("/user-info/{platform}/{platform_user_id}", response_model=UserInfoResponse)
async def user_info(
    platform: str,
    platform_user_id: str,
    service: Any = Depends(get_bot_link_service),
) -> UserInfoResponse:
    linked = await service.find_linked_user(platform, platform_user_id)
    if linked is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not linked. Please link your account first.",
        )
    mapping, user = linked
    return UserInfoResponse(user=_bot_user(user), mapping=_mapping_info(mapping))


@router.post("/leads", response_model=LeadResponse)
async def create_lead(
    body: BotLeadCreate, service: Any = Depends(get_bot_link_service)
) -> LeadResponse:
    """Create a lead owned by and assigned to the linked user; 403 when not linked."""
    lead = await service.create_lead(body)
    return LeadResponse(message="Lead created successfully", lead=lead)


@router.post("/leads/{lead_id}/convert", response_model=ConvertResponse)
async def convert_lead(
    lead_id: str,
    body: BotIdentity,
    service: Any = Depends(get_bot_link_service),
) -> ConvertResponse:
    result = await service.convert_lead(body, lead_id)
    return ConvertResponse(
        message=(
            "Lead converted to client successfully"
            if result.created
            else "Lead was already converted"
        ),
        client=result.client,
        created=result.created,
    )


@router.get("/stats/{platform}/{platform_user_id}", response_model=StatsResponse)
async def lead_stats(
    platform: str,
    platform_user_id: str,
    service: Any = Depends(get_bot_link_service),
) -> StatsResponse:
    return StatsResponse(stats=await service.lead_stats(platform, platform_user_id))
