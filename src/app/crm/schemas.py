"""Pydantic schemas for the CRM -- enums, create/update payloads, read models.

Defines all structured types that cross the persistence gateway:
- Enums: UserRole, Sector, TransactionType, SourceType, InboundSource,
  AcceptanceStage, LeadStatus, ClientStatus, ProjectStatus, ProjectPriority,
  CommentType, FundType, FundStage, FundSource, OutreachSource, OutreachStatus
- Entity schemas: <Entity>Create / <Entity>Update / <Entity>Read
- EntityKind + READ_SCHEMAS: the registry CrmRepository (and its test
  doubles) use to build read models for each table

Every schema serializes with camelCase aliases (``companyName``) and
accepts either camelCase or snake_case on input.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase wire aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _blank_to_none(value: Any) -> Any:
    """Treat empty / whitespace-only strings from form posts as absent."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ── Enums ───────────────────────────────────────────────────────────────────


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Sector(str, Enum):
    TECHNOLOGY = "Technology"
    MANUFACTURING = "Manufacturing"
    HEALTHCARE = "Healthcare"
    ENERGY = "Energy"
    REAL_ESTATE = "Real Estate"
    CONSUMER_GOODS = "Consumer Goods"
    OTHERS = "Others"


class TransactionType(str, Enum):
    MERGERS_ACQUISITIONS = "M&A"
    FUNDRAISING = "Fundraising"
    DEBT_FINANCING = "Debt Financing"
    STRATEGIC_ADVISORY = "Strategic Advisory"
    OTHERS = "Others"


class SourceType(str, Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"


class InboundSource(str, Enum):
    KOTAK_WEALTH = "Kotak Wealth"
    WEALTH_360 = "360 Wealth"
    LGT = "LGT"
    PANDION_PARTNERS = "Pandion Partners"
    OTHERS = "Others"


class AcceptanceStage(str, Enum):
    """Lead-only tri-state, independent of the pipeline status."""

    UNDECIDED = "Undecided"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class LeadStatus(str, Enum):
    INITIAL_DISCUSSION = "Initial Discussion"
    NDA = "NDA"
    ENGAGEMENT = "Engagement"


class ClientStatus(str, Enum):
    """Client pipeline; the first member is the status given on conversion."""

    NDA_SHARED = "NDA Shared"
    NDA_SIGNED = "NDA Signed"
    IM_FINANCIAL_MODEL = "IM/Financial Model"
    INVESTOR_TRACKER = "Investor Tracker"
    TERM_SHEET = "Term Sheet"
    DUE_DILIGENCE = "Due Diligence"
    AGREEMENT = "Agreement"
    TRANSACTION_CLOSED = "Transaction closed"
    CLIENT_DROPPED = "Client Dropped"


TERMINAL_CLIENT_STATUSES = frozenset({
    ClientStatus.TRANSACTION_CLOSED,
    ClientStatus.CLIENT_DROPPED,
})


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_PROJECT_STATUSES = frozenset({
    ProjectStatus.PLANNING,
    ProjectStatus.IN_PROGRESS,
    ProjectStatus.ON_HOLD,
})


class ProjectPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class CommentType(str, Enum):
    UPDATE = "update"
    CHANGE = "change"
    FEEDBACK = "feedback"


class FundType(str, Enum):
    FAMILY_OFFICE = "Family Office"
    PE_VC = "PE/VC"
    STRATEGIC = "Strategic"
    ANGEL_NETWORK = "Angel Network"


class FundStage(str, Enum):
    SEED = "Seed/Pre-Seed"
    EARLY = "Early"
    LATE = "Late"
    PRE_IPO = "Pre-IPO"
    LISTED = "Listed"


class FundSource(str, Enum):
    MAPLE_TRACKER = "Maple Tracker"
    TRACXN = "Tracxn"
    PRIVATE_CIRCLE = "Private Circle"
    OTHERS = "Others"


class OutreachSource(str, Enum):
    FUND_TRACKER = "fund_tracker"
    CLIENT_MASTER_DATA = "client_master_data"
    MANUAL = "manual"


class OutreachStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"
    OPENED = "opened"
    REPLIED = "replied"


class DuplicateResolution(str, Enum):
    """How a single-record write reacts to a name collision."""

    CHECK = "check"
    CREATE = "create"
    REPLACE = "replace"


class EntityKind(str, Enum):
    """Table families addressable through CrmRepository."""

    USER = "user"
    PARTNER = "partner"
    LEAD = "lead"
    CLIENT = "client"
    PROJECT = "project"
    PROJECT_MEMBER = "project_member"
    PROJECT_COMMENT = "project_comment"
    CLIENT_COMMENT = "client_comment"
    FUND = "fund"
    MASTER_DATA = "master_data"
    PERMISSION = "permission"
    TEAM_MEMBER = "team_member"
    OUTREACH_CAMPAIGN = "outreach_campaign"
    OUTREACH_EMAIL = "outreach_email"
    BOT_MAPPING = "bot_mapping"


# ── Users ───────────────────────────────────────────────────────────────────


class UserCreate(CamelModel):
    email: str = Field(..., min_length=3)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    role: UserRole = UserRole.USER


class UserUpdate(CamelModel):
    email: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole | None = None


class UserRead(CamelModel):
    """User as exposed over the API; never carries the password hash."""

    id: str
    email: str
    username: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.USER
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ── Partners & Team ─────────────────────────────────────────────────────────


class PartnerCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    commission_rate: Decimal = Field(default=Decimal("0.00"), ge=0, le=100, decimal_places=2)
    is_active: bool = True


class PartnerUpdate(CamelModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    commission_rate: Decimal | None = Field(default=None, ge=0, le=100, decimal_places=2)
    is_active: bool | None = None


class PartnerRead(CamelModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    commission_rate: Decimal = Decimal("0.00")
    is_active: bool = True
    created_at: datetime | None = None


class TeamMemberCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: str | None = None
    position: str | None = None
    is_active: bool = True


class TeamMemberUpdate(CamelModel):
    name: str | None = None
    email: str | None = None
    position: str | None = None
    is_active: bool | None = None


class TeamMemberRead(CamelModel):
    id: str
    name: str
    email: str | None = None
    position: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Leads ───────────────────────────────────────────────────────────────────

_LEAD_OPTIONAL_TEXT = (
    "custom_sector",
    "custom_transaction_type",
    "phone_number",
    "inbound_source",
    "custom_inbound_source",
    "outbound_source",
    "lead_assignment",
    "co_lead_assignment",
    "notes",
)


class LeadCreate(CamelModel):
    company_name: str = Field(..., min_length=1)
    sector: Sector
    custom_sector: str | None = None
    transaction_type: TransactionType
    custom_transaction_type: str | None = None
    client_poc: str = Field(..., min_length=1)
    phone_number: str | None = None
    email_id: str = Field(..., min_length=1)
    first_contacted: datetime | None = None
    last_contacted: datetime | None = None
    source_type: SourceType
    inbound_source: InboundSource | None = None
    custom_inbound_source: str | None = None
    outbound_source: str | None = None
    acceptance_stage: AcceptanceStage = AcceptanceStage.UNDECIDED
    status: LeadStatus = LeadStatus.INITIAL_DISCUSSION
    assigned_to: str = Field(..., min_length=1)
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    owner_id: str = Field(..., min_length=1)
    notes: str | None = None

    blank_optional = field_validator(*_LEAD_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class LeadUpdate(CamelModel):
    """Partial lead update; only fields present in the payload are written."""

    company_name: str | None = None
    sector: Sector | None = None
    custom_sector: str | None = None
    transaction_type: TransactionType | None = None
    custom_transaction_type: str | None = None
    client_poc: str | None = None
    phone_number: str | None = None
    email_id: str | None = None
    first_contacted: datetime | None = None
    last_contacted: datetime | None = None
    source_type: SourceType | None = None
    inbound_source: InboundSource | None = None
    custom_inbound_source: str | None = None
    outbound_source: str | None = None
    acceptance_stage: AcceptanceStage | None = None
    status: LeadStatus | None = None
    assigned_to: str | None = None
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    notes: str | None = None

    blank_optional = field_validator(*_LEAD_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class LeadRead(CamelModel):
    id: str
    company_name: str
    sector: Sector
    custom_sector: str | None = None
    transaction_type: TransactionType
    custom_transaction_type: str | None = None
    client_poc: str
    phone_number: str | None = None
    email_id: str
    first_contacted: datetime | None = None
    last_contacted: datetime | None = None
    source_type: SourceType
    inbound_source: InboundSource | None = None
    custom_inbound_source: str | None = None
    outbound_source: str | None = None
    acceptance_stage: AcceptanceStage = AcceptanceStage.UNDECIDED
    status: LeadStatus = LeadStatus.INITIAL_DISCUSSION
    assigned_to: str
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    is_converted: bool = False
    converted_client_id: str | None = None
    owner_id: str
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Clients ─────────────────────────────────────────────────────────────────

_CLIENT_OPTIONAL_TEXT = (
    "custom_sector",
    "custom_transaction_type",
    "phone_number",
    "lead_assignment",
    "co_lead_assignment",
    "control_sheet_link",
    "notes",
)


class ClientCreate(CamelModel):
    company_name: str = Field(..., min_length=1)
    sector: Sector
    custom_sector: str | None = None
    transaction_type: TransactionType
    custom_transaction_type: str | None = None
    client_poc: str = Field(..., min_length=1)
    phone_number: str | None = None
    email_id: str = Field(..., min_length=1)
    last_contacted: datetime | None = None
    status: ClientStatus = ClientStatus.NDA_SHARED
    assigned_to: str = Field(..., min_length=1)
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    control_sheet_link: str | None = None
    converted_from_lead_id: str | None = None
    owner_id: str = Field(..., min_length=1)
    notes: str | None = None

    blank_optional = field_validator(*_CLIENT_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class ClientUpdate(CamelModel):
    company_name: str | None = None
    sector: Sector | None = None
    custom_sector: str | None = None
    transaction_type: TransactionType | None = None
    custom_transaction_type: str | None = None
    client_poc: str | None = None
    phone_number: str | None = None
    email_id: str | None = None
    last_contacted: datetime | None = None
    status: ClientStatus | None = None
    assigned_to: str | None = None
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    control_sheet_link: str | None = None
    notes: str | None = None

    blank_optional = field_validator(*_CLIENT_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class ClientRead(CamelModel):
    id: str
    company_name: str
    sector: Sector
    custom_sector: str | None = None
    transaction_type: TransactionType
    custom_transaction_type: str | None = None
    client_poc: str
    phone_number: str | None = None
    email_id: str
    last_contacted: datetime | None = None
    status: ClientStatus = ClientStatus.NDA_SHARED
    assigned_to: str
    lead_assignment: str | None = None
    co_lead_assignment: str | None = None
    control_sheet_link: str | None = None
    converted_from_lead_id: str | None = None
    owner_id: str
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Projects & Comments ─────────────────────────────────────────────────────


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: ProjectPriority = ProjectPriority.MEDIUM
    start_date: datetime | None = None
    due_date: datetime | None = None
    client_id: str | None = None
    owner_id: str = Field(..., min_length=1)

    blank_client = field_validator("client_id", "description", mode="before")(_blank_to_none)


class ProjectUpdate(CamelModel):
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    client_id: str | None = None

    blank_client = field_validator("client_id", mode="before")(_blank_to_none)


class ProjectRead(CamelModel):
    id: str
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: ProjectPriority = ProjectPriority.MEDIUM
    start_date: datetime | None = None
    due_date: datetime | None = None
    client_id: str | None = None
    owner_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectWithOwner(ProjectRead):
    """Project row annotated with its owner's display name and email (admin view)."""

    owner_name: str | None = None
    owner_email: str | None = None


class ProjectMemberCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    can_edit: bool = False


class ProjectMemberRead(CamelModel):
    id: str
    project_id: str
    user_id: str
    can_edit: bool = False
    created_at: datetime | None = None


class CommentCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    comment_type: CommentType = CommentType.UPDATE
    parent_comment_id: str | None = None

    blank_parent = field_validator("parent_comment_id", mode="before")(_blank_to_none)


class CommentRead(CamelModel):
    """A project or client comment; exactly one of project_id/client_id is set."""

    id: str
    project_id: str | None = None
    client_id: str | None = None
    user_id: str
    parent_comment_id: str | None = None
    comment_type: CommentType
    content: str
    created_at: datetime | None = None


class ThreadedComment(CommentRead):
    """Top-level comment with its author's name and one level of replies."""

    user_name: str = "Unknown User"
    replies: list[ThreadedComment] = Field(default_factory=list)


# ── Fund Tracker ────────────────────────────────────────────────────────────

_FUND_OPTIONAL_TEXT = (
    "website",
    "fund_type",
    "source",
    "phone1",
    "contact_person2",
    "designation2",
    "email2",
    "phone2",
    "notes",
)


class FundCreate(CamelModel):
    fund_name: str = Field(..., min_length=1)
    website: str | None = None
    fund_type: FundType | None = None
    stages: list[FundStage] = Field(default_factory=list)
    source: FundSource | None = None
    contact_person1: str = Field(..., min_length=1)
    designation1: str = Field(..., min_length=1)
    email1: str = Field(..., min_length=1)
    phone1: str | None = None
    contact_person2: str | None = None
    designation2: str | None = None
    email2: str | None = None
    phone2: str | None = None
    notes: str | None = None

    blank_optional = field_validator(*_FUND_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class FundUpdate(CamelModel):
    fund_name: str | None = None
    website: str | None = None
    fund_type: FundType | None = None
    stages: list[FundStage] | None = None
    source: FundSource | None = None
    contact_person1: str | None = None
    designation1: str | None = None
    email1: str | None = None
    phone1: str | None = None
    contact_person2: str | None = None
    designation2: str | None = None
    email2: str | None = None
    phone2: str | None = None
    notes: str | None = None

    blank_optional = field_validator(*_FUND_OPTIONAL_TEXT, mode="before")(_blank_to_none)


class FundRead(CamelModel):
    id: str
    fund_name: str
    website: str | None = None
    fund_type: str | None = None
    stages: list[str] = Field(default_factory=list)
    source: str | None = None
    contact_person1: str
    designation1: str
    email1: str
    phone1: str | None = None
    contact_person2: str | None = None
    designation2: str | None = None
    email2: str | None = None
    phone2: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Client Master Data & Permissions ────────────────────────────────────────


class MasterDataCreate(CamelModel):
    name: str = Field(..., min_length=1)
    designation: str | None = None
    company: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = None
    added_by: str = Field(..., min_length=1)


class MasterDataUpdate(CamelModel):
    name: str | None = None
    designation: str | None = None
    company: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = None


class MasterDataRead(CamelModel):
    id: str
    name: str
    designation: str | None = None
    company: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = None
    added_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PermissionRead(CamelModel):
    id: str
    user_id: str
    has_view_access: bool = False
    requested_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PermissionWithUser(PermissionRead):
    """Permission row joined with the requesting user's identity (admin views)."""

    user_name: str | None = None
    user_email: str | None = None


# ── Outreach ────────────────────────────────────────────────────────────────


class OutreachCampaignCreate(CamelModel):
    name: str = Field(..., min_length=1)
    subject: str | None = None
    body: str | None = None
    created_by: str = Field(..., min_length=1)


class OutreachCampaignUpdate(CamelModel):
    name: str | None = None
    subject: str | None = None
    body: str | None = None


class OutreachCampaignRead(CamelModel):
    id: str
    name: str
    subject: str | None = None
    body: str | None = None
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OutreachEmailCreate(CamelModel):
    campaign_id: str | None = None
    recipient_name: str = Field(..., min_length=1)
    recipient_email: str = Field(..., min_length=3)
    recipient_company: str | None = None
    recipient_designation: str | None = None
    source: OutreachSource = OutreachSource.MANUAL
    source_id: str | None = None
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    status: OutreachStatus = OutreachStatus.DRAFT
    created_by: str = Field(..., min_length=1)


class OutreachEmailUpdate(CamelModel):
    subject: str | None = None
    body: str | None = None
    status: OutreachStatus | None = None
    sent_at: datetime | None = None
    opened_at: datetime | None = None
    replied_at: datetime | None = None
    error_message: str | None = None


class OutreachEmailRead(CamelModel):
    id: str
    campaign_id: str | None = None
    recipient_name: str
    recipient_email: str
    recipient_company: str | None = None
    recipient_designation: str | None = None
    source: OutreachSource = OutreachSource.MANUAL
    source_id: str | None = None
    subject: str
    body: str
    status: OutreachStatus = OutreachStatus.DRAFT
    sent_at: datetime | None = None
    opened_at: datetime | None = None
    replied_at: datetime | None = None
    error_message: str | None = None
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Bot Links ───────────────────────────────────────────────────────────────


class BotMappingRead(CamelModel):
    id: str
    platform: str
    platform_user_id: str
    platform_username: str | None = None
    crm_user_id: str
    linked_at: datetime | None = None
    is_active: bool = True


# ── Composite Results ───────────────────────────────────────────────────────


class ConversionResult(CamelModel):
    """Outcome of a lead to client conversion."""

    lead: LeadRead
    client: ClientRead
    created: bool = True


class LeadCreateResult(CamelModel):
    lead: LeadRead
    client: ClientRead | None = None


class RowError(CamelModel):
    row: int
    errors: list[str]


class ImportReport(CamelModel):
    message: str
    imported: int
    skipped: int
    row_errors: list[RowError] = Field(default_factory=list)


class DashboardStats(CamelModel):
    total_leads: int
    active_clients: int
    active_projects: int


class BotLeadStats(CamelModel):
    total_leads: int
    by_status: dict[str, int] = Field(default_factory=dict)
    by_acceptance: dict[str, int] = Field(default_factory=dict)
    converted: int = 0


# ── Registry ────────────────────────────────────────────────────────────────

READ_SCHEMAS: dict[EntityKind, type[CamelModel]] = {
    EntityKind.USER: UserRead,
    EntityKind.PARTNER: PartnerRead,
    EntityKind.LEAD: LeadRead,
    EntityKind.CLIENT: ClientRead,
    EntityKind.PROJECT: ProjectRead,
    EntityKind.PROJECT_MEMBER: ProjectMemberRead,
    EntityKind.PROJECT_COMMENT: CommentRead,
    EntityKind.CLIENT_COMMENT: CommentRead,
    EntityKind.FUND: FundRead,
    EntityKind.MASTER_DATA: MasterDataRead,
    EntityKind.PERMISSION: PermissionRead,
    EntityKind.TEAM_MEMBER: TeamMemberRead,
    EntityKind.OUTREACH_CAMPAIGN: OutreachCampaignRead,
    EntityKind.OUTREACH_EMAIL: OutreachEmailRead,
    EntityKind.BOT_MAPPING: BotMappingRead,
}
