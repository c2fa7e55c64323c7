"""Tests for lead -> client conversion.

Covers the copied fields, idempotent re-conversion, repair of a broken
client link and the missing-lead error.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.app.crm.conversion import build_client_values, convert_lead_to_client
from src.app.crm.errors import NotFoundError
from src.app.crm.schemas import ClientStatus, EntityKind, LeadRead
from tests.fakes import lead_values, seed_lead

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_conversion_copies_lead_fields(repo):
    lead = await seed_lead(
        repo,
        "owner-1",
        lead_assignment="Nitin Gupta",
        co_lead_assignment="Aakash Jain",
        phone_number="+91 98100 00000",
    )

    result = await convert_lead_to_client(repo, lead.id, now=NOW)

    client = result.client
    assert result.created is True
    assert client.company_name == "Acme Foods"
    assert client.sector == lead.sector
    assert client.transaction_type == lead.transaction_type
    assert client.client_poc == "Ravi Mehta"
    assert client.phone_number == "+91 98100 00000"
    assert client.lead_assignment == "Nitin Gupta"
    assert client.co_lead_assignment == "Aakash Jain"
    assert client.owner_id == "owner-1"
    assert client.status == ClientStatus.NDA_SHARED
    assert client.converted_from_lead_id == lead.id


@pytest.mark.asyncio
async def test_conversion_marks_lead_and_keeps_its_identity(repo):
    lead = await seed_lead(repo, "owner-1")

    result = await convert_lead_to_client(repo, lead.id)

    stored = await repo.get(EntityKind.LEAD, lead.id)
    assert result.lead.id == lead.id
    assert stored.is_converted is True
    assert stored.converted_client_id == result.client.id


def test_notes_default_mentions_conversion_time():
    lead = LeadRead.model_validate({**lead_values("o"), "id": "l-1"})
    values = build_client_values(lead, NOW)
    assert values["notes"] == f"Copied from lead on {NOW.isoformat()}"

    noted = lead.model_copy(update={"notes": "Warm intro via LGT"})
    assert build_client_values(noted, NOW)["notes"] == "Warm intro via LGT"


@pytest.mark.asyncio
async def test_second_conversion_returns_same_client(repo):
    lead = await seed_lead(repo, "owner-1")

    first = await convert_lead_to_client(repo, lead.id)
    second = await convert_lead_to_client(repo, lead.id)

    assert second.created is False
    assert second.client.id == first.client.id
    assert len(repo.rows[EntityKind.CLIENT]) == 1


@pytest.mark.asyncio
async def test_conversion_repairs_missing_client(repo):
    lead = await seed_lead(repo, "owner-1")
    first = await convert_lead_to_client(repo, lead.id)
    await repo.delete(EntityKind.CLIENT, first.client.id)

    repaired = await convert_lead_to_client(repo, lead.id)

    assert repaired.created is True
    assert repaired.client.id != first.client.id
    stored = await repo.get(EntityKind.LEAD, lead.id)
    assert stored.converted_client_id == repaired.client.id


@pytest.mark.asyncio
async def test_conversion_of_unknown_lead_raises(repo):
    with pytest.raises(NotFoundError):
        await convert_lead_to_client(repo, "no-such-lead")
    assert repo.rows[EntityKind.CLIENT] == {}
