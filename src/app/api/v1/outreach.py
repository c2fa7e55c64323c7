"""Outreach campaign and email endpoints.

Emails are drafted against contacts taken from the fund tracker, the
client master data or typed in by hand; ``POST /outreach/emails/bulk``
drafts one email per recipient in a single insert. Sending is tracked
through status and timestamp updates only.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from src.app.api.deps import get_crm_service
from src.app.crm.schemas import (
    CamelModel,
    EntityKind,
    OutreachCampaignCreate,
    OutreachCampaignRead,
    OutreachCampaignUpdate,
    OutreachEmailCreate,
    OutreachEmailRead,
    OutreachEmailUpdate,
    OutreachStatus,
)

router = APIRouter(prefix="/outreach", tags=["outreach"])


class BulkEmailRequest(CamelModel):
    emails: list[OutreachEmailCreate] = Field(..., min_length=1)


# ── Campaigns ────────────────────────────────────────────────────────────────


@router.get("/campaigns", response_model=list[OutreachCampaignRead])
async def list_campaigns(
    created_by: str | None = Query(None, alias="createdBy"),
    service: Any = Depends(get_crm_service),
) -> list[OutreachCampaignRead]:
    filters = {"created_by": created_by} if created_by else None
    return await service.list_records(
        EntityKind.OUTREACH_CAMPAIGN, filters, order_by="created_at", descending=True
    )


@router.get("/campaigns/{campaign_id}", response_model=OutreachCampaignRead)
async def get_campaign(
    campaign_id: str, service: Any = Depends(get_crm_service)
) -> OutreachCampaignRead:
    return await service.get_record(EntityKind.OUTREACH_CAMPAIGN, campaign_id)


@router.post("/campaigns", response_model=OutreachCampaignRead, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    body: OutreachCampaignCreate, service: Any = Depends(get_crm_service)
) -> OutreachCampaignRead:
    return await service.create_record(EntityKind.OUTREACH_CAMPAIGN, body.model_dump())


@router.patch("/campaigns/{campaign_id}", response_model=OutreachCampaignRead)
async def update_campaign(
    campaign_id: str,
    body: OutreachCampaignUpdate,
    service: Any = Depends(get_crm_service),
) -> OutreachCampaignRead:
    return await service.update_record(
        EntityKind.OUTREACH_CAMPAIGN, campaign_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/campaigns/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(campaign_id: str, service: Any = Depends(get_crm_service)) -> None:
    """Delete a campaign; its emails stay, detached from the campaign."""
    await service.repository.update_where(
        EntityKind.OUTREACH_EMAIL, {"campaign_id": campaign_id}, {"campaign_id": None}
    )
    await service.delete_record(EntityKind.OUTREACH_CAMPAIGN, campaign_id)


# ── Emails ───────────────────────────────────────────────────────────────────


@router.get("/emails", response_model=list[OutreachEmailRead])
async def list_emails(
    campaign_id: str | None = Query(None, alias="campaignId"),
    created_by: str | None = Query(None, alias="createdBy"),
    email_status: OutreachStatus | None = Query(None, alias="status"),
    service: Any = Depends(get_crm_service),
) -> list[OutreachEmailRead]:
    filters: dict[str, Any] = {}
    if campaign_id:
        filters["campaign_id"] = campaign_id
    if created_by:
        filters["created_by"] = created_by
    if email_status:
        filters["status"] = email_status
    return await service.list_records(
        EntityKind.OUTREACH_EMAIL, filters or None, order_by="created_at", descending=True
    )


@router.post("/emails/bulk", response_model=list[OutreachEmailRead], status_code=status.HTTP_201_CREATED)
async def create_emails_bulk(
    body: BulkEmailRequest, service: Any = Depends(get_crm_service)
) -> list[OutreachEmailRead]:
    return await service.repository.bulk_create(
        EntityKind.OUTREACH_EMAIL, [email.model_dump() for email in body.emails]
    )


@router.get("/emails/{email_id}", response_model=OutreachEmailRead)
async def get_email(email_id: str, service: Any = Depends(get_crm_service)) -> OutreachEmailRead:
    return await service.get_record(EntityKind.OUTREACH_EMAIL, email_id)


@router.post("/emails", response_model=OutreachEmailRead, status_code=status.HTTP_201_CREATED)
async def create_email(
    body: OutreachEmailCreate, service: Any = Depends(get_crm_service)
) -> OutreachEmailRead:
    return await service.create_record(EntityKind.OUTREACH_EMAIL, body.model_dump())


@router.patch("/emails/{email_id}", response_model=OutreachEmailRead)
async def update_email(
    email_id: str,
    body: OutreachEmailUpdate,
    service: Any = Depends(get_crm_service),
) -> OutreachEmailRead:
    return await service.update_record(
        EntityKind.OUTREACH_EMAIL, email_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/emails/{email_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_email(email_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_record(EntityKind.OUTREACH_EMAIL, email_id)
