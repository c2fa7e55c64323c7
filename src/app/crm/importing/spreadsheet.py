"""xlsx parsing and writing with openpyxl.

Parsing turns a base64 upload into header-keyed row dicts: first sheet
only, first row is the header row, blank header columns and fully blank
rows are dropped, empty cells are omitted from the row dict. Writing
produces a single-sheet workbook with a bold header row for the export
endpoint.
"""

from __future__ import annotations

import base64
import binascii
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from io import BytesIO
from typing import Any

import structlog
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from src.app.crm.errors import ValidationFailed

logger = structlog.get_logger(__name__)

EMPTY_SHEET_MESSAGE = "Excel file is empty or has no data"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")


@dataclass
class ParsedSheet:
    """Header names in column order plus one dict per non-blank data row."""

    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


def decode_upload(file_data: str) -> bytes:
    """Decode base64 file content, tolerating a ``data:...;base64,`` prefix.

    Raises:
        ValidationFailed: If the payload is not valid base64.
    """
    payload = file_data.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationFailed("File data is not valid base64") from exc


def _cell_value(value: Any) -> Any:
    """Normalize a cell for JSON: dates to ISO text, blank strings to None."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, str):
        return value if value.strip() else None
    return value


def parse_spreadsheet(file_data: str) -> ParsedSheet:
    """Parse a base64 xlsx upload into header-keyed rows.

    Args:
        file_data: Base64 workbook bytes as sent by the browser.

    Returns:
        ParsedSheet for the first worksheet.

    Raises:
        ValidationFailed: If the file is not a readable workbook or has no data rows.
    """
    content = decode_upload(file_data)
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ValidationFailed("File is not a valid Excel workbook") from exc

    try:
        if not workbook.worksheets:
            raise ValidationFailed(EMPTY_SHEET_MESSAGE)
        sheet = workbook.worksheets[0]
        row_iter = sheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            raise ValidationFailed(EMPTY_SHEET_MESSAGE)

        columns: list[tuple[int, str]] = []
        for index, raw in enumerate(header_row):
            if raw is None or not str(raw).strip():
                continue
            columns.append((index, str(raw).strip()))

        rows: list[dict[str, Any]] = []
        for values in row_iter:
            row: dict[str, Any] = {}
            for index, header in columns:
                value = _cell_value(values[index]) if index < len(values) else None
                if value is not None:
                    row[header] = value
            if row:
                rows.append(row)
    finally:
        workbook.close()

    if not rows:
        raise ValidationFailed(EMPTY_SHEET_MESSAGE)

    logger.info("import.sheet_parsed", columns=len(columns), rows=len(rows))
    return ParsedSheet(headers=[h for _, h in columns], rows=rows)


def _export_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is not None:
        # openpyxl cannot store tz-aware datetimes
        return value.replace(tzinfo=None)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(_export_value(v)) for v in value)
    return value


def write_workbook(
    title: str,
    columns: Sequence[tuple[str, str]],
    records: Iterable[Any],
) -> bytes:
    """Render records to xlsx bytes.

    Args:
        title: Worksheet title.
        columns: (header text, attribute name) pairs in column order.
        records: Objects (or dicts) exposing the attributes.

    Returns:
        The workbook file content.
    """
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title[:31]
    sheet.append([header for header, _ in columns])
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    for record in records:
        if isinstance(record, dict):
            row = [_export_value(record.get(attr)) for _, attr in columns]
        else:
            row = [_export_value(getattr(record, attr, None)) for _, attr in columns]
        sheet.append(row)

    for index, (header, _) in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = max(12, len(header) + 4)

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
