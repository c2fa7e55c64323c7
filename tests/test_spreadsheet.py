"""Tests for xlsx parsing and the export writer."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from io import BytesIO

import pytest
from openpyxl import load_workbook

from src.app.crm.errors import ValidationFailed
from src.app.crm.importing.spreadsheet import (
    EMPTY_SHEET_MESSAGE,
    decode_upload,
    parse_spreadsheet,
    write_workbook,
)
from src.app.crm.schemas import FundStage, Sector
from tests.fakes import workbook_upload


# ── Parsing ──────────────────────────────────────────────────────────────────


def test_parse_keys_rows_by_header():
    upload = workbook_upload(
        ["Fund Name", "Email 1"],
        [["Blue Peak", "ir@bluepeak.example"], ["Kestrel", "deals@kestrel.example"]],
    )

    sheet = parse_spreadsheet(upload)

    assert sheet.headers == ["Fund Name", "Email 1"]
    assert sheet.rows == [
        {"Fund Name": "Blue Peak", "Email 1": "ir@bluepeak.example"},
        {"Fund Name": "Kestrel", "Email 1": "deals@kestrel.example"},
    ]


def test_parse_drops_blank_headers_rows_and_cells():
    upload = workbook_upload(
        ["Name", None, "Company"],
        [
            ["Meera Shah", "ignored", None],
            [None, None, None],
            ["  ", None, "Orchid Labs"],
        ],
    )

    sheet = parse_spreadsheet(upload)

    assert sheet.headers == ["Name", "Company"]
    assert sheet.rows == [{"Name": "Meera Shah"}, {"Company": "Orchid Labs"}]


def test_parse_accepts_data_url_prefix():
    upload = workbook_upload(["Name"], [["Meera Shah"]])
    sheet = parse_spreadsheet(
        "data:application/vnd.openxmlformats-officedocument.spreadsheetml.sheet;base64," + upload
    )
    assert sheet.rows == [{"Name": "Meera Shah"}]


def test_parse_header_only_sheet_is_empty():
    with pytest.raises(ValidationFailed) as exc_info:
        parse_spreadsheet(workbook_upload(["Name", "Email"], []))
    assert exc_info.value.message == EMPTY_SHEET_MESSAGE


def test_parse_rejects_non_workbook_content():
    with pytest.raises(ValidationFailed):
        parse_spreadsheet(base64.b64encode(b"name,email\nx,y\n").decode())


def test_decode_rejects_invalid_base64():
    with pytest.raises(ValidationFailed):
        decode_upload("not base64 at all!")


# ── Writing ──────────────────────────────────────────────────────────────────


def test_write_workbook_renders_header_and_values():
    created = datetime(2025, 2, 3, 4, 5, tzinfo=timezone.utc)
    records = [
        {"company_name": "Acme Foods", "sector": Sector.ENERGY, "created_at": created},
        {"company_name": "Orchid Labs", "sector": None, "created_at": None},
    ]

    content = write_workbook(
        "Leads",
        [("Company Name", "company_name"), ("Sector", "sector"), ("Created At", "created_at")],
        records,
    )

    sheet = load_workbook(BytesIO(content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert sheet.title == "Leads"
    assert rows[0] == ("Company Name", "Sector", "Created At")
    assert rows[1] == ("Acme Foods", "Energy", datetime(2025, 2, 3, 4, 5))
    assert rows[2] == ("Orchid Labs", None, None)
    assert sheet["A1"].font.bold


def test_write_workbook_joins_list_values():
    content = write_workbook(
        "Funds",
        [("Stages", "stages")],
        [{"stages": [FundStage.EARLY, FundStage.LATE]}],
    )
    sheet = load_workbook(BytesIO(content)).active
    assert sheet["A2"].value == "Early, Late"
