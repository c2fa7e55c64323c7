"""Chat conversation handler: commands, account linking and lead intake.

Transport independent: a platform adapter feeds each incoming text (a
typed message or the label of a pressed button) to ``handle_message`` and
sends back the returned replies, rendering ``choices`` as buttons.

Lead intake asks, in order: company, sector (custom text on "Others"),
transaction type (custom text on "Others"), point of contact, email,
phone, inbound/outbound, then the inbound source (custom text on
"Others") or the outbound referrer. The last answer submits the lead
through the bot API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from src.app.bot.client import BotApiError, CrmBotApiClient
from src.app.bot.sessions import BotSession, BotSessionStore
from src.app.crm.schemas import InboundSource, Sector, SourceType, TransactionType

logger = structlog.get_logger(__name__)

OTHERS = "Others"

HELP_TEXT = (
    "Available commands:\n\n"
    "/link - Link your chat account to the CRM\n"
    "/newlead - Add a new lead\n"
    "/stats - View your lead statistics\n"
    "/cancel - Cancel the current operation\n"
    "/help - Show this message"
)

WELCOME_TEXT = (
    "Welcome to the Maple Advisors CRM bot!\n\n"
    "Use /link to connect your account.\n"
    "Use /newlead to add a lead.\n"
    "Use /stats to view your stats.\n"
    "Use /help to see all commands."
)

IDLE_TEXT = "Use /newlead to add a lead or /help to see commands."


class Step(str, Enum):
    LINK_EMAIL = "link_email"
    LINK_PASSWORD = "link_password"
    COMPANY = "lead_company"
    SECTOR = "lead_sector"
    SECTOR_CUSTOM = "lead_sector_custom"
    TRANSACTION = "lead_transaction"
    TRANSACTION_CUSTOM = "lead_transaction_custom"
    POC = "lead_poc"
    EMAIL = "lead_email"
    PHONE = "lead_phone"
    SOURCE_TYPE = "lead_source_type"
    INBOUND_SOURCE = "lead_inbound_source"
    INBOUND_SOURCE_CUSTOM = "lead_inbound_source_custom"
    OUTBOUND_SOURCE = "lead_outbound_source"


@dataclass
class BotReply:
    text: str
    choices: list[str] = field(default_factory=list)


def _choices(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# Prompt for each step that waits on the user.
PROMPTS: dict[Step, BotReply] = {
    Step.LINK_EMAIL: BotReply("Enter your CRM email or username:"),
    Step.LINK_PASSWORD: BotReply("Now enter your CRM password:"),
    Step.COMPANY: BotReply("What is the company name?"),
    Step.SECTOR: BotReply("Select the sector:", _choices(Sector)),
    Step.SECTOR_CUSTOM: BotReply("Please type the sector name:"),
    Step.TRANSACTION: BotReply("Select the transaction type:", _choices(TransactionType)),
    Step.TRANSACTION_CUSTOM: BotReply("Please type the transaction type:"),
    Step.POC: BotReply("Who is the point of contact (POC)?"),
    Step.EMAIL: BotReply("What is their email address?"),
    Step.PHONE: BotReply("What is their phone number?"),
    Step.SOURCE_TYPE: BotReply("Is this an inbound or outbound lead?", _choices(SourceType)),
    Step.INBOUND_SOURCE: BotReply("Select the inbound source:", _choices(InboundSource)),
    Step.INBOUND_SOURCE_CUSTOM: BotReply("Please type the inbound source:"),
    Step.OUTBOUND_SOURCE: BotReply("Who referred this lead? (Enter name/firm):"),
}


def advance(session: BotSession, text: str) -> Step | None:
    """Record an answer on ``session`` and return the next step.

    Returns None when the answer completes the flow. A choice step answered
    with text outside its options re-asks the same step.
    """
    step = Step(session.step)
    value = text.strip()

    if step == Step.LINK_EMAIL:
        session.data["email"] = value
        return Step.LINK_PASSWORD
    if step == Step.LINK_PASSWORD:
        session.data["password"] = value
        return None

    if step == Step.COMPANY:
        session.data["companyName"] = value
        return Step.SECTOR
    if step == Step.SECTOR:
        if value not in _choices(Sector):
            return Step.SECTOR
        if value == OTHERS:
            return Step.SECTOR_CUSTOM
        session.data["sector"] = value
        return Step.TRANSACTION
    if step == Step.SECTOR_CUSTOM:
        session.data["sector"] = value
        return Step.TRANSACTION
    if step == Step.TRANSACTION:
        if value not in _choices(TransactionType):
            return Step.TRANSACTION
        if value == OTHERS:
            return Step.TRANSACTION_CUSTOM
        session.data["transactionType"] = value
        return Step.POC
    if step == Step.TRANSACTION_CUSTOM:
        session.data["transactionType"] = value
        return Step.POC
    if step == Step.POC:
        session.data["clientPoc"] = value
        return Step.EMAIL
    if step == Step.EMAIL:
        session.data["emailId"] = value
        return Step.PHONE
    if step == Step.PHONE:
        session.data["phoneNumber"] = value
        return Step.SOURCE_TYPE
    if step == Step.SOURCE_TYPE:
        if value not in _choices(SourceType):
            return Step.SOURCE_TYPE
        session.data["sourceType"] = value
        return Step.INBOUND_SOURCE if value == SourceType.INBOUND.value else Step.OUTBOUND_SOURCE
    if step == Step.INBOUND_SOURCE:
        if value not in _choices(InboundSource):
            return Step.INBOUND_SOURCE
        if value == OTHERS:
            return Step.INBOUND_SOURCE_CUSTOM
        session.data["inboundSource"] = value
        return None
    if step == Step.INBOUND_SOURCE_CUSTOM:
        session.data["inboundSource"] = value
        return None
    if step == Step.OUTBOUND_SOURCE:
        session.data["outboundSource"] = value
        return None
    raise ValueError(f"Unhandled step: {step}")


def format_lead(lead: dict[str, Any]) -> str:
    sector = lead.get("customSector") or lead.get("sector")
    transaction = lead.get("customTransactionType") or lead.get("transactionType")
    source = (
        lead.get("customInboundSource")
        or lead.get("inboundSource")
        or lead.get("outboundSource")
    )
    return (
        "Lead added successfully!\n\n"
        f"{lead.get('companyName')}\n"
        f"{sector} - {transaction}\n"
        f"POC: {lead.get('clientPoc')}\n"
        f"Email: {lead.get('emailId')}\n"
        f"Phone: {lead.get('phoneNumber') or '-'}\n"
        f"{lead.get('sourceType')}: {source or '-'}\n\n"
        f"Status: {lead.get('status')}\n\n"
        "Use /newlead to add another lead."
    )


def format_stats(stats: dict[str, Any]) -> str:
    lines = [f"Your leads: {stats.get('totalLeads', 0)}", ""]
    for status, count in sorted((stats.get("byStatus") or {}).items()):
        lines.append(f"{status}: {count}")
    lines.append("")
    for stage, count in sorted((stats.get("byAcceptance") or {}).items()):
        lines.append(f"{stage}: {count}")
    lines.append("")
    lines.append(f"Converted to clients: {stats.get('converted', 0)}")
    return "\n".join(lines)


class ConversationHandler:
    """Routes chat messages to commands or the session in progress.

    Args:
        api: Client for the CRM bot API.
        sessions: Session store shared by every chat user of the platform.
    """

    def __init__(self, api: CrmBotApiClient, sessions: BotSessionStore) -> None:
        self.api = api
        self.sessions = sessions

    @property
    def platform(self) -> str:
        return self.api.platform

    async def handle_message(
        self,
        platform_user_id: str,
        text: str,
        platform_username: str | None = None,
    ) -> list[BotReply]:
        text = text.strip()
        if text.startswith("/"):
            return await self._handle_command(platform_user_id, text.split()[0].lower())

        session = self.sessions.get(self.platform, platform_user_id)
        if session is None:
            return [BotReply(IDLE_TEXT)]

        next_step = advance(session, text)
        if next_step is not None:
            session.step = next_step.value
            self.sessions.save(self.platform, platform_user_id, session)
            return [PROMPTS[next_step]]

        self.sessions.discard(self.platform, platform_user_id)
        if Step(session.step) == Step.LINK_PASSWORD:
            return [await self._link(platform_user_id, session.data, platform_username)]
        return await self._submit_lead(platform_user_id, session.data)

    # ── Commands ────────────────────────────────────────────────────────────

    async def _handle_command(self, platform_user_id: str, command: str) -> list[BotReply]:
        if command == "/start":
            return [BotReply(WELCOME_TEXT)]
        if command == "/help":
            return [BotReply(HELP_TEXT)]
        if command == "/cancel":
            if self.sessions.discard(self.platform, platform_user_id):
                return [BotReply("Operation cancelled.")]
            return [BotReply("Nothing to cancel.")]
        if command == "/link":
            self.sessions.start(self.platform, platform_user_id, Step.LINK_EMAIL.value)
            return [PROMPTS[Step.LINK_EMAIL]]
        if command == "/newlead":
            return await self._start_lead(platform_user_id)
        if command == "/stats":
            return [await self._stats(platform_user_id)]
        return [BotReply(f"Unknown command {command}.\n\n{HELP_TEXT}")]

    async def _start_lead(self, platform_user_id: str) -> list[BotReply]:
        try:
            linked = await self.api.user_info(platform_user_id)
        except (BotApiError, httpx.HTTPError):
            logger.warning("bot.user_info_failed", platform=self.platform, exc_info=True)
            return [BotReply("The CRM is not reachable right now. Please try again later.")]
        if linked is None:
            return [BotReply(
                "You need to link your CRM account first.\n"
                "Use /link to connect your CRM account."
            )]
        self.sessions.start(self.platform, platform_user_id, Step.COMPANY.value)
        return [PROMPTS[Step.COMPANY]]

    async def _stats(self, platform_user_id: str) -> BotReply:
        try:
            data = await self.api.stats(platform_user_id)
        except BotApiError as exc:
            if exc.status_code == 403:
                return BotReply("You're not linked yet.\nUse /link to connect your account.")
            return BotReply(f"Could not load stats: {exc.message}")
        except httpx.HTTPError:
            logger.warning("bot.stats_failed", platform=self.platform, exc_info=True)
            return BotReply("Failed to load stats. Please try again later.")
        return BotReply(format_stats(data.get("stats", {})))

    # ── Completion ──────────────────────────────────────────────────────────

    async def _link(
        self,
        platform_user_id: str,
        data: dict[str, str],
        platform_username: str | None,
    ) -> BotReply:
        try:
            result = await self.api.link_account(
                platform_user_id,
                data.get("email", ""),
                data.get("password", ""),
                platform_username,
            )
        except BotApiError as exc:
            return BotReply(f"{exc.message}\n\nPlease try again with /link")
        except httpx.HTTPError:
            logger.warning("bot.link_failed", platform=self.platform, exc_info=True)
            return BotReply("Failed to link account. Please try again with /link")
        user = result.get("user", {})
        return BotReply(
            "Account linked successfully!\n\n"
            f"Welcome, {user.get('firstName', '')} {user.get('lastName', '')}!\n\n"
            "You can now:\n"
            "- Use /newlead to add leads\n"
            "- Use /stats to view your stats"
        )

    async def _submit_lead(self, platform_user_id: str, data: dict[str, str]) -> list[BotReply]:
        summary = BotReply(
            "Creating lead...\n\n"
            f"Company: {data.get('companyName')}\n"
            f"Sector: {data.get('sector')}\n"
            f"Type: {data.get('transactionType')}\n"
            f"POC: {data.get('clientPoc')}\n"
            f"Email: {data.get('emailId')}\n"
            f"Phone: {data.get('phoneNumber')}\n"
            f"Source: {data.get('sourceType')} - "
            f"{data.get('inboundSource') or data.get('outboundSource')}"
        )
        try:
            result = await self.api.create_lead(platform_user_id, dict(data))
        except BotApiError as exc:
            return [summary, BotReply(f"Failed to add lead: {exc.message}")]
        except httpx.HTTPError:
            logger.warning("bot.lead_submit_failed", platform=self.platform, exc_info=True)
            return [summary, BotReply("Failed to add lead. Please try again with /newlead")]
        return [summary, BotReply(format_lead(result.get("lead", {})))]
