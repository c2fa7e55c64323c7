"""Tests for the SQL filter clauses built by CrmRepository."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from src.app.crm.models import LeadModel, UserMasterDataPermissionModel
from src.app.crm.repository import _where


def _sql(clause) -> str:
    return str(clause.compile(dialect=postgresql.dialect()))


def test_non_uuid_value_on_uuid_column_matches_nothing():
    (clause,) = _where(LeadModel, {"owner_id": "abc"})
    assert _sql(clause) == "false"

    (approver,) = _where(UserMasterDataPermissionModel, {"approved_by": "admin-1"})
    assert _sql(approver) == "false"


def test_uuid_value_on_uuid_column_compares():
    owner = str(uuid.uuid4())
    (clause,) = _where(LeadModel, {"owner_id": owner})
    assert clause.right.value == owner
    assert "leads.owner_id =" in _sql(clause)


def test_in_list_on_uuid_column_drops_non_uuid_ids():
    keep = str(uuid.uuid4())
    (clause,) = _where(LeadModel, {"id": [keep, "missing", "1"]})
    assert clause.right.value == [keep]


def test_in_list_without_any_uuid_selects_no_rows():
    (clause,) = _where(LeadModel, {"id": ["missing"]})
    assert clause.right.value == []
    assert "leads.id IN" in _sql(select(LeadModel).where(clause))


def test_text_columns_keep_any_value():
    (clause,) = _where(LeadModel, {"company_name": "abc"})
    assert clause.right.value == "abc"


def test_none_becomes_is_null_on_uuid_column():
    (clause,) = _where(LeadModel, {"converted_client_id": None})
    assert _sql(clause) == "leads.converted_client_id IS NULL"
