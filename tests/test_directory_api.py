"""API tests for the fund tracker, client master data, access permissions and export."""

from __future__ import annotations

from io import BytesIO

import pytest
from openpyxl import load_workbook

from src.app.crm.importing.spreadsheet import XLSX_MEDIA_TYPE
from src.app.crm.schemas import EntityKind
from tests.fakes import seed_lead, seed_user, workbook_upload

FUND = {
    "fundName": "Blue Peak Capital",
    "fundType": "PE/VC",
    "stages": ["Early", "Late"],
    "contactPerson1": "Irene Fox",
    "designation1": "Partner",
    "email1": "irene@bluepeak.example",
}


# ── Fund Tracker ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_fund_and_duplicate_check(client_and_repo):
    """POST /api/fund-tracker twice with the same name -> 201 then 409 with the existing fund."""
    client, _ = client_and_repo

    first = await client.post("/api/fund-tracker", json=FUND)
    second = await client.post("/api/fund-tracker", json={**FUND, "fundName": " BLUE PEAK CAPITAL"})

    assert first.status_code == 201
    assert first.json()["stages"] == ["Early", "Late"]
    assert second.status_code == 409
    assert second.json()["details"]["existing"]["id"] == first.json()["id"]


@pytest.mark.asyncio
async def test_duplicate_fund_replace(client_and_repo):
    """POST /api/fund-tracker?onDuplicate=replace -> the existing fund is overwritten."""
    client, _ = client_and_repo
    first = (await client.post("/api/fund-tracker", json=FUND)).json()

    response = await client.post(
        "/api/fund-tracker",
        params={"onDuplicate": "replace", "replaceId": first["id"]},
        json={**FUND, "notes": "Updated thesis"},
    )

    assert response.status_code == 201
    assert response.json()["id"] == first["id"]
    assert len((await client.get("/api/fund-tracker")).json()) == 1


@pytest.mark.asyncio
async def test_create_fund_with_invalid_stage(client_and_repo):
    """POST /api/fund-tracker with an unknown stage -> 422."""
    client, _ = client_and_repo
    response = await client.post("/api/fund-tracker", json={**FUND, "stages": ["Growth"]})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_parse_preview_does_not_write(client_and_repo):
    """POST /api/fund-tracker/parse -> headers and rows, nothing stored."""
    client, repo = client_and_repo
    upload = workbook_upload(["Fund Name", "Email 1"], [["Blue Peak", "ir@bluepeak.example"]])

    response = await client.post("/api/fund-tracker/parse", json={"fileData": upload})

    assert response.status_code == 200
    assert response.json() == {
        "headers": ["Fund Name", "Email 1"],
        "data": [{"Fund Name": "Blue Peak", "Email 1": "ir@bluepeak.example"}],
        "rowCount": 1,
    }
    assert (await client.get("/api/fund-tracker")).json() == []


@pytest.mark.asyncio
async def test_import_funds(client_and_repo):
    """POST /api/fund-tracker/import -> 201 with imported/skipped counts and row errors."""
    client, _ = client_and_repo
    rows = [
        {"Fund Name": "Acme Fund", "Contact 1": "J. Lee", "Designation 1": "Partner", "Email 1": "j@acme.fund"},
        {"Fund Name": "", "Contact 1": "X"},
    ]

    response = await client.post("/api/fund-tracker/import", json={"data": rows})

    assert response.status_code == 201
    body = response.json()
    assert (body["imported"], body["skipped"]) == (1, 1)
    assert body["rowErrors"][0]["row"] == 3
    assert [f["fundName"] for f in (await client.get("/api/fund-tracker")).json()] == ["Acme Fund"]


@pytest.mark.asyncio
async def test_parse_then_import(client_and_repo):
    """/parse rows fed unchanged into /import -> the invalid email row is reported."""
    client, _ = client_and_repo
    upload = workbook_upload(
        ["Fund", "Contact", "Title", "Email"],
        [
            ["Blue Peak", "Irene Fox", "Partner", "irene@bluepeak.example"],
            ["Kestrel", "Sam Lee", "Principal", "not-an-email"],
        ],
    )

    parsed = (await client.post("/api/fund-tracker/parse", json={"fileData": upload})).json()
    response = await client.post("/api/fund-tracker/import", json={"data": parsed["data"]})

    assert response.status_code == 201
    body = response.json()
    assert (body["imported"], body["skipped"]) == (1, 1)
    assert body["rowErrors"] == [{"row": 3, "errors": ["Email 1 format is invalid"]}]


@pytest.mark.asyncio
async def test_import_without_valid_rows(client_and_repo):
    """POST /api/fund-tracker/import with only bad rows -> 400 with the same report shape."""
    client, _ = client_and_repo

    response = await client.post("/api/fund-tracker/import", json={"data": [{"Fund Name": "Blue Peak"}]})

    assert response.status_code == 400
    assert response.json()["imported"] == 0
    assert response.json()["skipped"] == 1


@pytest.mark.asyncio
async def test_import_caps_row_errors(client_and_repo):
    """POST /api/fund-tracker/import with 12 bad rows -> 10 row errors, all 12 skipped."""
    client, _ = client_and_repo
    rows = [{"Fund Name": f"Fund {i}"} for i in range(12)]

    response = await client.post("/api/fund-tracker/import", json={"data": rows})

    body = response.json()
    assert response.status_code == 400
    assert body["skipped"] == 12
    assert len(body["rowErrors"]) == 10
    assert [e["row"] for e in body["rowErrors"]] == list(range(2, 12))


@pytest.mark.asyncio
async def test_import_empty_data(client_and_repo):
    """POST /api/fund-tracker/import with no rows -> 400."""
    client, _ = client_and_repo
    response = await client.post("/api/fund-tracker/import", json={"data": []})
    assert response.status_code == 400
    assert response.json()["message"] == "No data to import"


@pytest.mark.asyncio
async def test_parse_empty_sheet(client_and_repo):
    """POST /api/fund-tracker/parse with a header-only sheet -> 400."""
    client, _ = client_and_repo
    response = await client.post(
        "/api/fund-tracker/parse", json={"fileData": workbook_upload(["Fund Name"], [])}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Excel file is empty or has no data"


@pytest.mark.asyncio
async def test_bulk_delete_funds(client_and_repo):
    """POST /api/fund-tracker/bulk-delete -> number of funds removed."""
    client, _ = client_and_repo
    ids = [
        (await client.post("/api/fund-tracker", json={**FUND, "fundName": name})).json()["id"]
        for name in ("A", "B")
    ]

    response = await client.post("/api/fund-tracker/bulk-delete", json={"ids": ids})

    assert response.json() == {"deleted": 2}
    assert (await client.post("/api/fund-tracker/bulk-delete", json={"ids": []})).status_code == 422


# ── Client Master Data ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_master_data_visibility_follows_permission(client_and_repo):
    """GET /api/client-master-data -> [] until the caller's request is approved."""
    client, repo = client_and_repo
    admin = await seed_user(repo, "Pankaj", "Karna", role="admin")
    user = await seed_user(repo)
    await client.post("/api/client-master-data", json={"name": "Meera Shah", "addedBy": admin.id})
    params = {"userId": user.id, "userRole": "user"}

    before = await client.get("/api/client-master-data", params=params)
    await client.post("/api/master-data-permission/request", json={"userId": user.id})
    approve = await client.post(
        "/api/master-data-permission/approve",
        json={"userId": user.id, "approvedBy": admin.id, "userRole": "admin"},
    )
    after = await client.get("/api/client-master-data", params=params)

    assert before.json() == []
    assert approve.status_code == 200
    assert approve.json()["hasViewAccess"] is True
    assert [r["name"] for r in after.json()] == ["Meera Shah"]


@pytest.mark.asyncio
async def test_master_data_delete_requires_admin(client_and_repo):
    """DELETE /api/client-master-data/{id}?userRole=user -> 403."""
    client, _ = client_and_repo
    record = (await client.post(
        "/api/client-master-data", json={"name": "Meera Shah", "addedBy": "u-1"}
    )).json()

    forbidden = await client.delete(f"/api/client-master-data/{record['id']}", params={"userRole": "user"})
    allowed = await client.delete(f"/api/client-master-data/{record['id']}", params={"userRole": "admin"})

    assert forbidden.status_code == 403
    assert allowed.status_code == 204


@pytest.mark.asyncio
async def test_master_data_import_records_importer(client_and_repo):
    """POST /api/client-master-data/import -> rows attributed to userId."""
    client, repo = client_and_repo
    admin = await seed_user(repo, "Pankaj", "Karna", role="admin")
    rows = [{"Client Name": "Meera Shah", "Firm": "Orchid Labs"}]

    response = await client.post(
        "/api/client-master-data/import", json={"data": rows, "userId": admin.id}
    )
    listed = await client.get("/api/client-master-data", params={"userId": admin.id, "userRole": "admin"})

    assert response.status_code == 201
    assert listed.json()[0]["addedBy"] == admin.id
    assert listed.json()[0]["company"] == "Orchid Labs"


@pytest.mark.asyncio
async def test_master_data_import_without_user(client_and_repo):
    """POST /api/client-master-data/import without userId -> 400, nothing stored."""
    client, repo = client_and_repo

    response = await client.post(
        "/api/client-master-data/import", json={"data": [{"Client Name": "Meera Shah"}]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User ID is required"
    assert repo.rows[EntityKind.MASTER_DATA] == {}


# ── Access Permissions ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_permission_status_without_request(client_and_repo):
    """GET /api/master-data-permission/{userId} with no row -> hasViewAccess false."""
    client, _ = client_and_repo
    response = await client.get("/api/master-data-permission/u-unknown")
    assert response.status_code == 200
    assert response.json()["hasViewAccess"] is False
    assert response.json()["userId"] == "u-unknown"


@pytest.mark.asyncio
async def test_permission_transition_errors(client_and_repo):
    """approve/revoke -> 404 with no request, 403 for non-admins, 409 out of order."""
    client, repo = client_and_repo
    user = await seed_user(repo)

    missing = await client.post(
        "/api/master-data-permission/approve",
        json={"userId": user.id, "approvedBy": "admin-1", "userRole": "admin"},
    )
    await client.post("/api/master-data-permission/request", json={"userId": user.id})
    not_admin = await client.post(
        "/api/master-data-permission/approve",
        json={"userId": user.id, "approvedBy": user.id, "userRole": "user"},
    )
    revoke_pending = await client.post(
        "/api/master-data-permission/revoke", json={"userId": user.id, "userRole": "admin"}
    )
    unknown_user = await client.post("/api/master-data-permission/request", json={"userId": "ghost"})

    assert missing.status_code == 404
    assert not_admin.status_code == 403
    assert revoke_pending.status_code == 409
    assert unknown_user.status_code == 404


@pytest.mark.asyncio
async def test_pending_list_is_admin_only(client_and_repo):
    """GET /api/master-data-permission/pending -> admin sees requests, user gets 403."""
    client, repo = client_and_repo
    user = await seed_user(repo)
    await client.post("/api/master-data-permission/request", json={"userId": user.id})

    admin_view = await client.get("/api/master-data-permission/pending", params={"userRole": "admin"})
    user_view = await client.get("/api/master-data-permission/pending", params={"userRole": "user"})

    assert [p["userName"] for p in admin_view.json()] == ["Nitin Gupta"]
    assert user_view.status_code == 403


# ── Export ───────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_export_leads_as_xlsx(client_and_repo):
    """GET /api/export/leads -> an xlsx attachment with the caller's leads."""
    client, repo = client_and_repo
    user = await seed_user(repo)
    await seed_lead(repo, user.id, company_name="Acme Foods")
    await seed_lead(repo, "someone-else", company_name="Hidden Co")

    response = await client.get("/api/export/leads", params={"userId": user.id, "userRole": "user"})

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert 'filename="leads.xlsx"' in response.headers["content-disposition"]
    sheet = load_workbook(BytesIO(response.content)).active
    assert sheet["A1"].value == "Company Name"
    assert [row[0] for row in sheet.iter_rows(min_row=2, values_only=True)] == ["Acme Foods"]


@pytest.mark.asyncio
async def test_export_unknown_entity(client_and_repo):
    """GET /api/export/invoices -> 404."""
    client, _ = client_and_repo
    response = await client.get("/api/export/invoices", params={"userId": "u-1", "userRole": "admin"})
    assert response.status_code == 404
