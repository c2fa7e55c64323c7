"""CRM persistence models -- one SQLAlchemy table per entity family.

Tables:
- UserModel, PartnerModel, TeamMemberModel: people and firms
- LeadModel, ClientModel: the pipeline; leads point forward to the client
  they converted into, clients record the originating lead id (no FK)
- ProjectModel, ProjectMemberModel, ProjectCommentModel, ClientCommentModel
- FundTrackerModel, ClientMasterDataModel, UserMasterDataPermissionModel
- OutreachCampaignModel, OutreachEmailModel
- BotUserMappingModel: chat-platform account links

Enum-valued columns are stored as plain strings and validated by the
Pydantic schemas; flags are real booleans. Cascades that the business
rules require (lead -> client, project -> comments/members) are run by
CrmService, not by the database.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import Base
from src.app.crm.schemas import EntityKind


def _uuid_pk() -> Mapped[str]:
    return mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )


def _created_at() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now())


def _updated_at() -> Mapped[datetime | None]:
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )


# ── People ──────────────────────────────────────────────────────────────────


class UserModel(Base):
    """CRM login account. Email and username are each unique."""

    __tablename__ = "users"

    id: Mapped[str] = _uuid_pk()
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class PartnerModel(Base):
    __tablename__ = "partners"

    id: Mapped[str] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()


class TeamMemberModel(Base):
    __tablename__ = "team_members"

    id: Mapped[str] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    position: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


# ── Pipeline ────────────────────────────────────────────────────────────────


class ClientModel(Base):
    """Engaged customer. converted_from_lead_id is recorded, never enforced."""

    __tablename__ = "clients"

    id: Mapped[str] = _uuid_pk()
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    sector: Mapped[str] = mapped_column(String(50), nullable=False)
    custom_sector: Mapped[str | None] = mapped_column(String(200), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    custom_transaction_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    client_poc: Mapped[str] = mapped_column(String(200), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email_id: Mapped[str] = mapped_column(String(320), nullable=False)
    last_contacted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="NDA Shared")
    assigned_to: Mapped[str] = mapped_column(String(200), nullable=False)
    lead_assignment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    co_lead_assignment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    control_sheet_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    converted_from_lead_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class LeadModel(Base):
    """Prospective client captured before an engagement begins."""

    __tablename__ = "leads"

    id: Mapped[str] = _uuid_pk()
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    sector: Mapped[str] = mapped_column(String(50), nullable=False)
    custom_sector: Mapped[str | None] = mapped_column(String(200), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    custom_transaction_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    client_poc: Mapped[str] = mapped_column(String(200), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email_id: Mapped[str] = mapped_column(String(320), nullable=False)
    first_contacted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_contacted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    inbound_source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    custom_inbound_source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    outbound_source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    acceptance_stage: Mapped[str] = mapped_column(String(20), nullable=False, default="Undecided")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Initial Discussion")
    assigned_to: Mapped[str] = mapped_column(String(200), nullable=False)
    lead_assignment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    co_lead_assignment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_converted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    converted_client_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("clients.id"), nullable=True
    )
    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


# ── Projects ────────────────────────────────────────────────────────────────


class ProjectModel(Base):
    __tablename__ = "projects"

    id: Mapped[str] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="planning")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    client_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("clients.id"), nullable=True
    )
    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class ProjectMemberModel(Base):
    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )

    id: Mapped[str] = _uuid_pk()
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False
    )
    can_edit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = _created_at()


class ProjectCommentModel(Base):
    """Project comment; replies set parent_comment_id (one level deep)."""

    __tablename__ = "project_comments"

    id: Mapped[str] = _uuid_pk()
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False
    )
    parent_comment_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("project_comments.id"), nullable=True
    )
    comment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class ClientCommentModel(Base):
    """Client comment; same threading rules as project comments."""

    __tablename__ = "client_comments"

    id: Mapped[str] = _uuid_pk()
    client_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("clients.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False
    )
    parent_comment_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("client_comments.id"), nullable=True
    )
    comment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# ── Directories ─────────────────────────────────────────────────────────────


class FundTrackerModel(Base):
    """Fund contact row. fund_name uniqueness is a business rule, not a constraint."""

    __tablename__ = "fund_tracker"

    id: Mapped[str] = _uuid_pk()
    fund_name: Mapped[str] = mapped_column(String(300), nullable=False)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    fund_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stages: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list, server_default=text("'[]'::json")
    )
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_person1: Mapped[str] = mapped_column(String(200), nullable=False)
    designation1: Mapped[str] = mapped_column(String(200), nullable=False)
    email1: Mapped[str] = mapped_column(String(320), nullable=False)
    phone1: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_person2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    designation2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email2: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone2: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class ClientMasterDataModel(Base):
    """Approval-gated contact directory entry."""

    __tablename__ = "client_master_data"

    id: Mapped[str] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    designation: Mapped[str | None] = mapped_column(String(200), nullable=True)
    company: Mapped[str | None] = mapped_column(String(300), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    added_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class UserMasterDataPermissionModel(Base):
    """One row per user tracking the master-data view request/approval."""

    __tablename__ = "user_master_data_permissions"

    id: Mapped[str] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), unique=True, nullable=False
    )
    has_view_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


# ── Outreach ────────────────────────────────────────────────────────────────


class OutreachCampaignModel(Base):
    __tablename__ = "outreach_campaigns"

    id: Mapped[str] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class OutreachEmailModel(Base):
    __tablename__ = "outreach_emails"

    id: Mapped[str] = _uuid_pk()
    campaign_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("outreach_campaigns.id"), nullable=True
    )
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    recipient_company: Mapped[str | None] = mapped_column(String(300), nullable=True)
    recipient_designation: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


# ── Bot Links ───────────────────────────────────────────────────────────────


class BotUserMappingModel(Base):
    """Links a chat-platform account to a CRM user."""

    __tablename__ = "bot_user_mappings"
    __table_args__ = (
        UniqueConstraint("platform", "platform_user_id", name="uq_bot_platform_user"),
    )

    id: Mapped[str] = _uuid_pk()
    platform: Mapped[str] = mapped_column(String(30), nullable=False)
    platform_user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    platform_username: Mapped[str | None] = mapped_column(String(200), nullable=True)
    crm_user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), nullable=False
    )
    linked_at: Mapped[datetime] = _created_at()
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


MODELS: dict[EntityKind, type[Base]] = {
    EntityKind.USER: UserModel,
    EntityKind.PARTNER: PartnerModel,
    EntityKind.LEAD: LeadModel,
    EntityKind.CLIENT: ClientModel,
    EntityKind.PROJECT: ProjectModel,
    EntityKind.PROJECT_MEMBER: ProjectMemberModel,
    EntityKind.PROJECT_COMMENT: ProjectCommentModel,
    EntityKind.CLIENT_COMMENT: ClientCommentModel,
    EntityKind.FUND: FundTrackerModel,
    EntityKind.MASTER_DATA: ClientMasterDataModel,
    EntityKind.PERMISSION: UserMasterDataPermissionModel,
    EntityKind.TEAM_MEMBER: TeamMemberModel,
    EntityKind.OUTREACH_CAMPAIGN: OutreachCampaignModel,
    EntityKind.OUTREACH_EMAIL: OutreachEmailModel,
    EntityKind.BOT_MAPPING: BotUserMappingModel,
}
