"""Tests for import column mapping and per-row validation."""

from __future__ import annotations

from src.app.crm.importing.mapping import (
    FUND_COLUMN_MAP,
    build_fund_row,
    build_master_data_row,
    map_row,
    parse_stages,
    prepare_import,
)


def test_map_row_is_case_insensitive_and_ignores_unknown_headers():
    mapped = map_row(
        {" FUND NAME ": "Blue Peak", "Primary Email": "ir@bluepeak.example", "Favourite Colour": "red"},
        FUND_COLUMN_MAP,
    )
    assert mapped == {"fund_name": "Blue Peak", "email1": "ir@bluepeak.example"}


def test_map_row_first_non_empty_alias_wins():
    mapped = map_row({"Fund": "", "Fund Name": "Blue Peak", "Name": "Other"}, FUND_COLUMN_MAP)
    assert mapped["fund_name"] == "Blue Peak"


def test_map_row_stringifies_numbers():
    mapped = map_row({"Phone": 9810012345.0}, FUND_COLUMN_MAP)
    assert mapped["phone1"] == "9810012345"


def test_parse_stages_keeps_allowed_values_in_order():
    assert parse_stages("Late; Early,Unknown , Late") == ["Late", "Early"]
    assert parse_stages(None) == []


def test_valid_fund_row():
    values, errors = build_fund_row({
        "Fund Name": "Blue Peak Capital",
        "Type": "PE/VC",
        "Stages": "Seed/Pre-Seed, Early",
        "Source": "Tracxn",
        "Contact Person 1": "Irene Fox",
        "Designation 1": "Partner",
        "Email 1": "irene@bluepeak.example",
    })
    assert errors == []
    assert values["fund_name"] == "Blue Peak Capital"
    assert values["fund_type"] == "PE/VC"
    assert values["stages"] == ["Seed/Pre-Seed", "Early"]
    assert values["source"] == "Tracxn"
    assert values["email2"] is None


def test_fund_row_drops_unknown_enum_values():
    values, errors = build_fund_row({
        "Fund Name": "Kestrel",
        "Type": "Hedge Fund",
        "Source": "Word of mouth",
        "Contact": "Sam Lee",
        "Title": "Principal",
        "Email": "sam@kestrel.example",
    })
    assert errors == []
    assert values["fund_type"] is None
    assert values["source"] is None


def test_fund_row_collects_every_error():
    _, errors = build_fund_row({"Email 1": "not-an-email", "Email 2": "also bad"})
    assert errors == [
        "Fund Name is required",
        "Contact Person 1 is required",
        "Designation 1 is required",
        "Email 1 format is invalid",
        "Email 2 format is invalid",
    ]


def test_master_data_row_requires_name_only():
    values, errors = build_master_data_row({"Client Name": "Meera Shah", "Organization": "Orchid Labs"})
    assert errors == []
    assert values["name"] == "Meera Shah"
    assert values["company"] == "Orchid Labs"

    _, errors = build_master_data_row({"Email": "meera@"})
    assert errors == ["Name is required", "Email format is invalid"]


def test_prepare_import_reports_spreadsheet_row_numbers():
    prepared = prepare_import(
        [{"Name": "Meera Shah"}, {"Company": "No name"}, {"Name": "Arjun Rao"}],
        build_master_data_row,
    )
    assert prepared.total == 3
    assert len(prepared.valid) == 2
    assert prepared.skipped == 1
    assert [e.row for e in prepared.row_errors] == [3]
    assert prepared.row_errors[0].errors == ["Name is required"]
