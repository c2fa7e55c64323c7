"""Lead to client conversion -- the one implementation behind every entry point.

The REST convert endpoint, lead creation with ``convertToClient`` and the
bot convert endpoint all call ``convert_lead_to_client``. The procedure
copies the lead's descriptive fields into a new client, stamps the client
with the originating lead id, then marks the lead converted and points it
at the client. The lead keeps its identity.

Conversion is idempotent: a lead that already points at an existing client
gets that client back. If the linked client has gone missing, a fresh
client is created and the back-reference repaired.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from src.app.core.monitoring import record_lead_conversion
from src.app.crm.errors import NotFoundError
from src.app.crm.schemas import (
    ClientRead,
    ClientStatus,
    ConversionResult,
    EntityKind,
    LeadRead,
)

logger = structlog.get_logger(__name__)

# Lead fields copied verbatim onto the new client.
CONVERTED_FIELDS: tuple[str, ...] = (
    "company_name",
    "sector",
    "custom_sector",
    "transaction_type",
    "custom_transaction_type",
    "client_poc",
    "phone_number",
    "email_id",
    "last_contacted",
    "assigned_to",
    "lead_assignment",
    "co_lead_assignment",
    "owner_id",
)


def build_client_values(lead: LeadRead, now: datetime | None = None) -> dict[str, Any]:
    """Column values for the client materialized from ``lead``."""
    now = now or datetime.now(timezone.utc)
    values = {field: getattr(lead, field) for field in CONVERTED_FIELDS}
    values["status"] = ClientStatus.NDA_SHARED
    values["notes"] = lead.notes or f"Copied from lead on {now.isoformat()}"
    values["converted_from_lead_id"] = lead.id
    return values


async def convert_lead_to_client(
    repository: Any,
    lead_id: str,
    *,
    entry_point: str = "api",
    now: datetime | None = None,
) -> ConversionResult:
    """Materialize a client from a lead and mark the lead converted.

    Args:
        repository: CrmRepository (or a compatible double).
        lead_id: Lead to convert.
        entry_point: Caller label for metrics and logs ("api", "lead_create", "bot").
        now: Clock override for the generated notes text.

    Returns:
        ConversionResult with the updated lead, the client, and whether the
        client was newly created.

    Raises:
        NotFoundError: If the lead does not exist.
    """
    lead: LeadRead | None = await repository.get(EntityKind.LEAD, lead_id)
    if lead is None:
        raise NotFoundError(f"Lead not found: {lead_id}")

    if lead.is_converted and lead.converted_client_id:
        existing: ClientRead | None = await repository.get(
            EntityKind.CLIENT, lead.converted_client_id
        )
        if existing is not None:
            record_lead_conversion(entry_point, created=False)
            logger.info(
                "lead.conversion_reused",
                lead_id=lead.id,
                client_id=existing.id,
                entry_point=entry_point,
            )
            return ConversionResult(lead=lead, client=existing, created=False)
        logger.warning(
            "lead.conversion_link_broken",
            lead_id=lead.id,
            missing_client_id=lead.converted_client_id,
        )

    client: ClientRead = await repository.create(
        EntityKind.CLIENT, build_client_values(lead, now)
    )
    updated: LeadRead | None = await repository.update(
        EntityKind.LEAD,
        lead.id,
        {"is_converted": True, "converted_client_id": client.id},
    )
    if updated is None:
        # Lead vanished between the read and the update; drop the orphan client.
        await repository.delete(EntityKind.CLIENT, client.id)
        raise NotFoundError(f"Lead not found: {lead_id}")

    record_lead_conversion(entry_point, created=True)
    logger.info(
        "lead.converted",
        lead_id=updated.id,
        client_id=client.id,
        entry_point=entry_point,
    )
    return ConversionResult(lead=updated, client=client, created=True)
