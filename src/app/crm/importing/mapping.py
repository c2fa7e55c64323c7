"""Column mapping and row validation for bulk spreadsheet imports.

Static mapping tables translate the many header spellings seen in the
wild to canonical field names. Lookup is case-insensitive on the trimmed
header; unknown headers are ignored. Enum-valued fields keep exact matches
only and stages are split on comma/semicolon and filtered to the allowed
set.

Validation collects every problem on a row instead of stopping at the
first one, and reports rows by their spreadsheet row number (header is
row 1, so the first data row is row 2).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from src.app.crm.schemas import FundSource, FundStage, FundType, RowError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
STAGE_SEPARATOR = re.compile(r"[,;]")

# ── Fund Tracker ────────────────────────────────────────────────────────────

FUND_COLUMN_MAP: dict[str, str] = {
    "fund name": "fund_name",
    "fundname": "fund_name",
    "name": "fund_name",
    "fund": "fund_name",
    "website": "website",
    "web": "website",
    "url": "website",
    "site": "website",
    "fund website": "website",
    "type": "fund_type",
    "fund type": "fund_type",
    "fundtype": "fund_type",
    "category": "fund_type",
    "stage": "stages",
    "stages": "stages",
    "investment stage": "stages",
    "investment stages": "stages",
    "source": "source",
    "data source": "source",
    "datasource": "source",
    "origin": "source",
    "contact 1": "contact_person1",
    "contact person 1": "contact_person1",
    "contact1": "contact_person1",
    "primary contact": "contact_person1",
    "contact": "contact_person1",
    "contact name": "contact_person1",
    "designation 1": "designation1",
    "designation1": "designation1",
    "title 1": "designation1",
    "title": "designation1",
    "designation": "designation1",
    "email 1": "email1",
    "email1": "email1",
    "primary email": "email1",
    "email": "email1",
    "phone 1": "phone1",
    "phone1": "phone1",
    "phone": "phone1",
    "primary phone": "phone1",
    "mobile 1": "phone1",
    "mobile": "phone1",
    "contact phone": "phone1",
    "contact 2": "contact_person2",
    "contact person 2": "contact_person2",
    "contact2": "contact_person2",
    "secondary contact": "contact_person2",
    "designation 2": "designation2",
    "designation2": "designation2",
    "title 2": "designation2",
    "email 2": "email2",
    "email2": "email2",
    "secondary email": "email2",
    "phone 2": "phone2",
    "phone2": "phone2",
    "secondary phone": "phone2",
    "mobile 2": "phone2",
    "notes": "notes",
    "comments": "notes",
    "note": "notes",
}

FUND_TYPES = frozenset(t.value for t in FundType)
FUND_STAGES = tuple(s.value for s in FundStage)
FUND_SOURCES = frozenset(s.value for s in FundSource)

NO_IMPORT_DATA_MESSAGE = "No data to import"

FUND_NO_VALID_ROWS_MESSAGE = (
    "No valid funds to import. Make sure each row has: "
    "Fund Name, Contact Person 1, Designation 1, and Email 1"
)

# ── Client Master Data ──────────────────────────────────────────────────────

MASTER_DATA_COLUMN_MAP: dict[str, str] = {
    "name": "name",
    "client name": "name",
    "contact": "name",
    "contact name": "name",
    "designation": "designation",
    "title": "designation",
    "position": "designation",
    "company": "company",
    "organization": "company",
    "firm": "company",
    "industry": "industry",
    "sector": "industry",
    "phone": "phone",
    "phone number": "phone",
    "mobile": "phone",
    "email": "email",
    "email address": "email",
    "address": "address",
    "location": "address",
    "notes": "notes",
    "comments": "notes",
    "remarks": "notes",
}

MASTER_DATA_NO_VALID_ROWS_MESSAGE = (
    "No valid contacts to import. Make sure each row has a Name"
)


# ── Mapping ─────────────────────────────────────────────────────────────────


def _text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def map_row(row: dict[str, Any], column_map: dict[str, str]) -> dict[str, str]:
    """Rename a raw row's headers to canonical fields.

    Values are stringified and trimmed; empty values and unknown headers
    are dropped. When two headers map to the same field the first
    non-empty one wins.
    """
    mapped: dict[str, str] = {}
    for header, value in row.items():
        target = column_map.get(str(header).strip().lower())
        if target is None or value is None:
            continue
        text = _text(value)
        if text and target not in mapped:
            mapped[target] = text
    return mapped


def parse_stages(raw: str | None) -> list[str]:
    """Split a stages cell on comma/semicolon, keeping allowed values in order."""
    if not raw:
        return []
    stages: list[str] = []
    for part in STAGE_SEPARATOR.split(raw):
        value = part.strip()
        if value in FUND_STAGES and value not in stages:
            stages.append(value)
    return stages


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


# ── Row Builders ────────────────────────────────────────────────────────────


def build_fund_row(row: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Map and validate one fund tracker row.

    Returns:
        (values, errors); values are only meaningful when errors is empty.
    """
    mapped = map_row(row, FUND_COLUMN_MAP)
    errors: list[str] = []
    if not mapped.get("fund_name"):
        errors.append("Fund Name is required")
    if not mapped.get("contact_person1"):
        errors.append("Contact Person 1 is required")
    if not mapped.get("designation1"):
        errors.append("Designation 1 is required")
    if not mapped.get("email1"):
        errors.append("Email 1 is required")
    elif not is_valid_email(mapped["email1"]):
        errors.append("Email 1 format is invalid")
    if mapped.get("email2") and not is_valid_email(mapped["email2"]):
        errors.append("Email 2 format is invalid")

    values: dict[str, Any] = {
        "fund_name": mapped.get("fund_name"),
        "website": mapped.get("website"),
        "fund_type": mapped.get("fund_type") if mapped.get("fund_type") in FUND_TYPES else None,
        "stages": parse_stages(mapped.get("stages")),
        "source": mapped.get("source") if mapped.get("source") in FUND_SOURCES else None,
        "contact_person1": mapped.get("contact_person1"),
        "designation1": mapped.get("designation1"),
        "email1": mapped.get("email1"),
        "phone1": mapped.get("phone1"),
        "contact_person2": mapped.get("contact_person2"),
        "designation2": mapped.get("designation2"),
        "email2": mapped.get("email2"),
        "phone2": mapped.get("phone2"),
        "notes": mapped.get("notes"),
    }
    return values, errors


def build_master_data_row(row: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Map and validate one client master data row (added_by is set by the caller)."""
    mapped = map_row(row, MASTER_DATA_COLUMN_MAP)
    errors: list[str] = []
    if not mapped.get("name"):
        errors.append("Name is required")
    if mapped.get("email") and not is_valid_email(mapped["email"]):
        errors.append("Email format is invalid")

    values = {
        key: mapped.get(key)
        for key in (
            "name",
            "designation",
            "company",
            "industry",
            "address",
            "phone",
            "email",
            "notes",
        )
    }
    return values, errors


# ── Batch ───────────────────────────────────────────────────────────────────


@dataclass
class PreparedImport:
    """Rows that passed validation plus per-row errors for those that did not."""

    total: int
    valid: list[dict[str, Any]] = field(default_factory=list)
    row_errors: list[RowError] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.total - len(self.valid)


def prepare_import(
    rows: Iterable[dict[str, Any]],
    build_row: Callable[[dict[str, Any]], tuple[dict[str, Any], list[str]]],
) -> PreparedImport:
    """Validate every row independently; a bad row never aborts the batch."""
    rows = list(rows)
    prepared = PreparedImport(total=len(rows))
    for index, row in enumerate(rows):
        values, errors = build_row(row if isinstance(row, dict) else {})
        if errors:
            prepared.row_errors.append(RowError(row=index + 2, errors=errors))
        else:
            prepared.valid.append(values)
    return prepared
