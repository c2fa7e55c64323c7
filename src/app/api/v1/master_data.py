"""Client master data endpoints (the approval-gated contact book).

Listing returns every contact to admins and approved users and an empty
list to everyone else. Deleting is admin only.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import Field

from src.app.api.deps import Actor, get_actor, get_directory_service
from src.app.api.v1.fund_tracker import (
    BulkDeleteResponse,
    ImportRequest,
    SheetPreview,
    UploadRequest,
    import_response,
    preview,
)
from src.app.crm.schemas import (
    CamelModel,
    DuplicateResolution,
    ImportReport,
    MasterDataCreate,
    MasterDataRead,
    MasterDataUpdate,
    UserRole,
)

router = APIRouter(prefix="/client-master-data", tags=["client-master-data"])


class MasterDataImportRequest(ImportRequest):
    user_id: str | None = None


class MasterDataBulkDeleteRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)
    user_role: UserRole


@router.get("", response_model=list[MasterDataRead])
async def list_master_data(
    actor: Actor = Depends(get_actor),
    service: Any = Depends(get_directory_service),
) -> list[MasterDataRead]:
    return await service.list_master_data(actor.user_id, actor.role)


@router.post("/parse", response_model=SheetPreview)
async def parse_upload(body: UploadRequest) -> SheetPreview:
    return preview(body.file_data)


@router.post("/import", response_model=ImportReport, status_code=status.HTTP_201_CREATED)
async def import_master_data(
    body: MasterDataImportRequest,
    service: Any = Depends(get_directory_service),
) -> JSONResponse:
    """Bulk-import contacts, recording the importing user as ``addedBy``."""
    return import_response(await service.import_master_data(body.data, body.user_id))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_master_data(
    body: MasterDataBulkDeleteRequest,
    service: Any = Depends(get_directory_service),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(
        deleted=await service.bulk_delete_master_data(body.ids, body.user_role)
    )


@router.get("/{record_id}", response_model=MasterDataRead)
async def get_master_data(
    record_id: str, service: Any = Depends(get_directory_service)
) -> MasterDataRead:
    return await service.get_master_data(record_id)


@router.post("", response_model=MasterDataRead, status_code=status.HTTP_201_CREATED)
async def create_master_data(
    body: MasterDataCreate,
    on_duplicate: DuplicateResolution = Query(DuplicateResolution.CHECK, alias="onDuplicate"),
    replace_id: str | None = Query(None, alias="replaceId"),
    service: Any = Depends(get_directory_service),
) -> MasterDataRead:
    return await service.create_master_data(body, on_duplicate, replace_id)


@router.patch("/{record_id}", response_model=MasterDataRead)
async def update_master_data(
    record_id: str,
    body: MasterDataUpdate,
    on_duplicate: DuplicateResolution = Query(DuplicateResolution.CHECK, alias="onDuplicate"),
    service: Any = Depends(get_directory_service),
) -> MasterDataRead:
    return await service.update_master_data(record_id, body, on_duplicate)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_master_data(
    record_id: str,
    user_role: UserRole = Query(..., alias="userRole"),
    service: Any = Depends(get_directory_service),
) -> None:
    await service.delete_master_data(record_id, user_role)
