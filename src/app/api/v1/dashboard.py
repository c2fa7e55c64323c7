"""Dashboard and spreadsheet export endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from src.app.api.deps import Actor, get_actor, get_crm_service, get_directory_service
from src.app.crm.importing.export import EXPORT_LAYOUTS
from src.app.crm.importing.spreadsheet import XLSX_MEDIA_TYPE, write_workbook
from src.app.crm.schemas import DashboardStats, EntityKind

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_crm_service),
) -> DashboardStats:
    """Lead, client and active project counts over what the caller can see."""
    return await service.dashboard_stats(actor.user_id, actor.role)


@router.get("/export/{entity}")
async def export_entity(
    entity: str,
    actor: Actor = Depends(get_actor),
    crm: Any = Depends(get_crm_service),
    directory: Any = Depends(get_directory_service),
) -> Response:
    """Download an entity list as an xlsx workbook.

    Leads and clients follow the caller's visibility; client master data
    follows the access permission.
    """
    layout = EXPORT_LAYOUTS.get(entity)
    if layout is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown export entity: {entity}",
        )

    if layout.kind == EntityKind.LEAD:
        records = await crm.list_visible_leads(actor.user_id, actor.role)
    elif layout.kind == EntityKind.CLIENT:
        records = await crm.list_visible_clients(actor.user_id, actor.role)
    elif layout.kind == EntityKind.MASTER_DATA:
        records = await directory.list_master_data(actor.user_id, actor.role)
    elif layout.kind == EntityKind.FUND:
        records = await directory.list_funds()
    else:
        records = await crm.list_records(layout.kind, order_by="created_at")

    content = write_workbook(layout.sheet_title, layout.columns, records)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{layout.filename}"'},
    )
