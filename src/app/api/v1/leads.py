"""Lead endpoints.

List views are scoped to the caller (``userId`` / ``userRole`` query
parameters). Creating a lead can convert it straight into a client with
``convertToClient: true``; ``POST /leads/{id}/convert`` runs the same
conversion later. Deleting a lead also deletes the client it became.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from src.app.api.deps import Actor, get_actor, get_crm_service
from src.app.crm.schemas import (
    ConversionResult,
    EntityKind,
    InboundSource,
    LeadCreate,
    LeadCreateResult,
    LeadRead,
    LeadUpdate,
)

router = APIRouter(prefix="/leads", tags=["leads"])


class CreateLeadRequest(LeadCreate):
    """Lead fields plus the optional immediate conversion flag."""

    convert_to_client: bool = False


@router.get("", response_model=list[LeadRead])
async def list_leads(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[LeadRead]:
    """Active leads visible to the caller, most recently updated first."""
    return await service.list_visible_leads(actor.user_id, actor.role)


@router.get("/cold", response_model=list[LeadRead])
async def list_cold_leads(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[LeadRead]:
    """Rejected leads (all for admins, owned for users)."""
    return await service.list_cold_leads(actor.user_id, actor.role)


@router.get("/by-source/{source}", response_model=list[LeadRead])
async def list_leads_by_source(
    source: InboundSource,
    service: Any = Depends(get_crm_service),
) -> list[LeadRead]:
    """Leads referred by one inbound partner."""
    return await service.list_leads_by_inbound_source(source)


@router.get("/by-assignment", response_model=list[LeadRead])
async def list_leads_by_assignment(
    assignee_name: str = Query(..., alias="assigneeName", min_length=1),
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> list[LeadRead]:
    """Leads with ``assigneeName`` as Lead or Co-Lead, terminal ones included."""
    return await service.list_leads_by_assignment(assignee_name, actor.user_id, actor.role)


@router.get("/{lead_id}", response_model=LeadRead)
async def get_lead(lead_id: str, service: Any = Depends(get_crm_service)) -> LeadRead:
    return await service.get_record(EntityKind.LEAD, lead_id)


@router.post("", response_model=LeadCreateResult, status_code=status.HTTP_201_CREATED)
async def create_lead(
    body: CreateLeadRequest,
    service: Any = Depends(get_crm_service),
) -> LeadCreateResult:
    data = LeadCreate.model_validate(body.model_dump(exclude={"convert_to_client"}))
    return await service.create_lead(
        data,
        convert_to_client=body.convert_to_client,
        entry_point="lead_create",
    )


@router.patch("/{lead_id}", response_model=LeadRead)
async def update_lead(
    lead_id: str,
    body: LeadUpdate,
    service: Any = Depends(get_crm_service),
) -> LeadRead:
    return await service.update_lead(lead_id, body)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(lead_id: str, service: Any = Depends(get_crm_service)) -> None:
    await service.delete_lead(lead_id)


@router.post("/{lead_id}/convert", response_model=ConversionResult)
async def convert_lead(lead_id: str, service: Any = Depends(get_crm_service)) -> ConversionResult:
    """Convert a lead to a client; converting again returns the same client."""
    return await service.convert_lead(lead_id, entry_point="api")
