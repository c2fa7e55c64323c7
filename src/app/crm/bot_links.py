"""Chat-platform account links and lead intake on behalf of linked users.

A chat user (identified by platform + platform user id) is linked to a CRM
user by proving the CRM credentials once. Every later bot call resolves
the CRM user through that link. Unlinking deactivates the mapping rather
than deleting it, so a re-link refreshes the same row.

Bot-entered leads are forgiving about free-text choices: a sector,
transaction type or inbound source the CRM does not know becomes "Others"
with the typed text kept in the matching custom field.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from pydantic import Field

from src.app.crm.errors import AuthenticationFailed, AuthorizationError, NotFoundError
from src.app.crm.schemas import (
    AcceptanceStage,
    BotLeadStats,
    BotMappingRead,
    CamelModel,
    ConversionResult,
    EntityKind,
    InboundSource,
    LeadCreate,
    LeadRead,
    LeadStatus,
    Sector,
    SourceType,
    TransactionType,
    UserRead,
)

logger = structlog.get_logger(__name__)

NOT_LINKED_MESSAGE = "User not linked. Please link your account first using /link command."


# ── Payloads ────────────────────────────────────────────────────────────────


class BotIdentity(CamelModel):
    platform: str = Field(..., min_length=1)
    platform_user_id: str = Field(..., min_length=1)


class BotLinkRequest(BotIdentity):
    platform_username: str | None = None
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class BotLeadCreate(BotIdentity):
    """Lead fields as collected in a chat conversation; choices are free text."""

    company_name: str = Field(..., min_length=1)
    sector: str = Field(..., min_length=1)
    transaction_type: str = Field(..., min_length=1)
    client_poc: str = Field(..., min_length=1)
    email_id: str = Field(..., min_length=1)
    phone_number: str | None = None
    source_type: str = SourceType.INBOUND.value
    inbound_source: str | None = None
    outbound_source: str | None = None
    notes: str | None = None


# ── Free-text Choices ───────────────────────────────────────────────────────


def coerce_choice(enum_cls: type[Enum], value: str | None) -> tuple[Any, str | None]:
    """Match free text to an enum member, falling back to Others.

    The match is case-insensitive on the trimmed text. Returns
    (member, custom_text); custom_text is the original text when it did not
    match, None otherwise.
    """
    if value is None or not value.strip():
        return None, None
    text = value.strip()
    for member in enum_cls:
        if member.value.lower() == text.lower():
            return member, None
    return enum_cls("Others"), text


def build_lead_values(data: BotLeadCreate, user: UserRead) -> LeadCreate:
    """Turn a chat-collected lead into a LeadCreate owned by ``user``."""
    sector, custom_sector = coerce_choice(Sector, data.sector)
    transaction_type, custom_transaction_type = coerce_choice(TransactionType, data.transaction_type)
    source_type = (
        SourceType.OUTBOUND
        if data.source_type.strip().lower() == SourceType.OUTBOUND.value.lower()
        else SourceType.INBOUND
    )
    inbound_source, custom_inbound_source = (None, None)
    if source_type == SourceType.INBOUND:
        inbound_source, custom_inbound_source = coerce_choice(InboundSource, data.inbound_source)

    return LeadCreate(
        company_name=data.company_name,
        sector=sector,
        custom_sector=custom_sector,
        transaction_type=transaction_type,
        custom_transaction_type=custom_transaction_type,
        client_poc=data.client_poc,
        phone_number=data.phone_number,
        email_id=data.email_id,
        source_type=source_type,
        inbound_source=inbound_source,
        custom_inbound_source=custom_inbound_source,
        outbound_source=data.outbound_source if source_type == SourceType.OUTBOUND else None,
        acceptance_stage=AcceptanceStage.UNDECIDED,
        status=LeadStatus.INITIAL_DISCUSSION,
        assigned_to=user.full_name,
        owner_id=user.id,
        notes=data.notes,
    )


# ── Service ─────────────────────────────────────────────────────────────────


class BotLinkService:
    """Bot-facing operations, delegating CRM work to CrmService.

    Args:
        repository: CrmRepository or a compatible test double.
        crm_service: The CrmService sharing that repository.
    """

    def __init__(self, repository: Any, crm_service: Any) -> None:
        self.repository = repository
        self.crm_service = crm_service

    async def _mapping(self, platform: str, platform_user_id: str) -> BotMappingRead | None:
        rows = await self.repository.find(
            EntityKind.BOT_MAPPING,
            {"platform": platform, "platform_user_id": platform_user_id},
        )
        return rows[0] if rows else None

    async def link_account(self, data: BotLinkRequest) -> tuple[BotMappingRead, UserRead, bool]:
        """Link a chat account to the CRM user owning the credentials.

        Returns:
            (mapping, user, relinked); relinked is True when an existing
            mapping was refreshed.

        Raises:
            AuthenticationFailed: Unknown login or wrong password.
        """
        user = await self.crm_service.authenticate(data.email, data.password)
        if user is None:
            raise AuthenticationFailed("Invalid email or password")

        values = {
            "crm_user_id": user.id,
            "platform_username": data.platform_username,
            "is_active": True,
            "linked_at": datetime.now(timezone.utc),
        }
        existing = await self._mapping(data.platform, data.platform_user_id)
        if existing is not None:
            mapping = await self.repository.update(EntityKind.BOT_MAPPING, existing.id, values)
        else:
            mapping = await self.repository.create(
                EntityKind.BOT_MAPPING,
                {"platform": data.platform, "platform_user_id": data.platform_user_id, **values},
            )
        logger.info(
            "bot.account_linked",
            platform=data.platform,
            crm_user_id=user.id,
            relinked=existing is not None,
        )
        return mapping, user, existing is not None

    async def unlink_account(self, platform: str, platform_user_id: str) -> None:
        mapping = await self._mapping(platform, platform_user_id)
        if mapping is None or not mapping.is_active:
            raise NotFoundError("User not linked")
        await self.repository.update(EntityKind.BOT_MAPPING, mapping.id, {"is_active": False})
        logger.info("bot.account_unlinked", platform=platform, crm_user_id=mapping.crm_user_id)

    async def find_linked_user(
        self, platform: str, platform_user_id: str
    ) -> tuple[BotMappingRead, UserRead] | None:
        """The active mapping and its CRM user, or None when not linked."""
        mapping = await self._mapping(platform, platform_user_id)
        if mapping is None or not mapping.is_active:
            return None
        user = await self.repository.get(EntityKind.USER, mapping.crm_user_id)
        if user is None:
            return None
        return mapping, user

    async def require_linked_user(self, platform: str, platform_user_id: str) -> UserRead:
        linked = await self.find_linked_user(platform, platform_user_id)
        if linked is None:
            raise AuthorizationError(NOT_LINKED_MESSAGE)
        return linked[1]

    async def create_lead(self, data: BotLeadCreate) -> LeadRead:
        user = await self.require_linked_user(data.platform, data.platform_user_id)
        result = await self.crm_service.create_lead(
            build_lead_values(data, user), entry_point="bot"
        )
        return result.lead

    async def convert_lead(self, identity: BotIdentity, lead_id: str) -> ConversionResult:
        await self.require_linked_user(identity.platform, identity.platform_user_id)
        return await self.crm_service.convert_lead(lead_id, entry_point="bot")

    async def lead_stats(self, platform: str, platform_user_id: str) -> BotLeadStats:
        user = await self.require_linked_user(platform, platform_user_id)
        return await self.crm_service.lead_stats(user.id, user.role)
