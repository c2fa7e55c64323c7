"""Fund tracker endpoints, including spreadsheet preview and bulk import.

Importing is two calls: ``/parse`` turns the uploaded workbook into
``{headers, data}`` for review, then ``/import`` takes that ``data`` back
and writes the valid rows.

Single creates and updates run an advisory name check controlled by the
``onDuplicate`` query parameter (check / create / replace); a collision
under ``check`` answers 409 with the existing record in ``details``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import Field

from src.app.api.deps import get_directory_service
from src.app.crm.importing.spreadsheet import parse_spreadsheet
from src.app.crm.schemas import (
    CamelModel,
    DuplicateResolution,
    FundCreate,
    FundRead,
    FundUpdate,
    ImportReport,
)

router = APIRouter(prefix="/fund-tracker", tags=["fund-tracker"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class UploadRequest(CamelModel):
    """Base64 xlsx content (a ``data:`` URL prefix is tolerated)."""

    file_data: str = Field(..., min_length=1)


class ImportRequest(CamelModel):
    """Row objects from ``/parse``, keyed by the spreadsheet's own headers."""

    data: list[dict[str, Any]]


class SheetPreview(CamelModel):
    headers: list[str]
    data: list[dict[str, Any]]
    row_count: int


class BulkDeleteRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)


class BulkDeleteResponse(CamelModel):
    deleted: int


def import_response(report: ImportReport) -> JSONResponse:
    """201 with the report, or 400 with the same shape when nothing was imported."""
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if report.imported else status.HTTP_400_BAD_REQUEST,
        content=report.model_dump(mode="json", by_alias=True),
    )


def preview(file_data: str) -> SheetPreview:
    sheet = parse_spreadsheet(file_data)
    return SheetPreview(headers=sheet.headers, data=sheet.rows, row_count=len(sheet.rows))


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[FundRead])
async def list_funds(service: Any = Depends(get_directory_service)) -> list[FundRead]:
    return await service.list_funds()


@router.post("/parse", response_model=SheetPreview)
async def parse_upload(body: UploadRequest) -> SheetPreview:
    """Preview an upload: header names and raw rows, nothing is written."""
    return preview(body.file_data)


@router.post("/import", response_model=ImportReport, status_code=status.HTTP_201_CREATED)
async def import_funds(
    body: ImportRequest,
    service: Any = Depends(get_directory_service),
) -> JSONResponse:
    """Bulk-import previewed rows; invalid rows are reported, not written."""
    return import_response(await service.import_funds(body.data))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_funds(
    body: BulkDeleteRequest,
    service: Any = Depends(get_directory_service),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(deleted=await service.bulk_delete_funds(body.ids))


@router.get("/{fund_id}", response_model=FundRead)
async def get_fund(fund_id: str, service: Any = Depends(get_directory_service)) -> FundRead:
    return await service.get_fund(fund_id)


@router.post("", response_model=FundRead, status_code=status.HTTP_201_CREATED)
async def create_fund(
    body: FundCreate,
    on_duplicate: DuplicateResolution = Query(DuplicateResolution.CHECK, alias="onDuplicate"),
    replace_id: str | None = Query(None, alias="replaceId"),
    service: Any = Depends(get_directory_service),
) -> FundRead:
    return await service.create_fund(body, on_duplicate, replace_id)


@router.patch("/{fund_id}", response_model=FundRead)
async def update_fund(
    fund_id: str,
    body: FundUpdate,
    on_duplicate: DuplicateResolution = Query(DuplicateResolution.CHECK, alias="onDuplicate"),
    service: Any = Depends(get_directory_service),
) -> FundRead:
    return await service.update_fund(fund_id, body, on_duplicate)


@router.delete("/{fund_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fund(fund_id: str, service: Any = Depends(get_directory_service)) -> None:
    await service.delete_fund(fund_id)
