"""Partner endpoints: referral partners and their commission rates."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from src.app.api.deps import get_crm_service
from src.app.crm.schemas import EntityKind, PartnerCreate, PartnerRead, PartnerUpdate

router = APIRouter(prefix="/partners", tags=["partners"])


@router.get("", response_model=list[PartnerRead])
async def list_partners(service: Any = Depends(get_crm_service)) -> list[PartnerRead]:
    return await service.list_records(EntityKind.PARTNER, order_by="name")


@router.get("/{partner_id}", response_model=PartnerRead)
async def get_partner(partner_id: str, service: Any = Depends(get_crm_service)) -> PartnerRead:
    return await service.get_record(EntityKind.PARTNER, partner_id)


@router.post("", response_model=PartnerRead, status_code=status.HTTP_201_CREATED)
async def create_partner(body: PartnerCreate, service: Any = Depends(get_crm_service)) -> PartnerRead:
    return await service.create_record(EntityKind.PARTNER, body.model_dump())


@router.patch("/{partner_id}", response_model=PartnerRead)
async def update_partner(
    partner_id: str,
    body: PartnerUpdate,
    service: Any = Depends(get_crm_service),
) -> PartnerRead:
    return await service.update_record(
        EntityKind.PARTNER, partner_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{partner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_partner(partner_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_record(EntityKind.PARTNER, partner_id)
