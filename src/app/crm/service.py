"""CRM business rules over the persistence gateway.

CrmService is the object the routers (and the bot API) talk to. It adds
to CrmRepository:
- visibility-filtered list views for leads, clients and projects
- lead creation with source normalization, roster-checked assignments and
  optional immediate conversion
- the shared lead -> client conversion (see conversion.py)
- verified cascading deletes for leads, clients and projects
- one-level comment threading for projects and clients
- user administration with bcrypt credentials
- dashboard statistics

Role-gated and missing-record failures are raised as CrmError subclasses;
the API layer maps them to status codes.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

import structlog

from src.app.core.security import hash_password, verify_password
from src.app.crm.conversion import convert_lead_to_client
from src.app.crm.errors import CrmError, NotFoundError, ValidationFailed
from src.app.crm.schemas import (
    ACTIVE_PROJECT_STATUSES,
    TERMINAL_CLIENT_STATUSES,
    AcceptanceStage,
    BotLeadStats,
    ClientCreate,
    ClientRead,
    ClientUpdate,
    CommentCreate,
    CommentRead,
    ConversionResult,
    DashboardStats,
    EntityKind,
    InboundSource,
    LeadCreate,
    LeadCreateResult,
    LeadRead,
    LeadUpdate,
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
    ProjectWithOwner,
    SourceType,
    ThreadedComment,
    UserCreate,
    UserRead,
    UserRole,
    UserUpdate,
)
from src.app.crm.visibility import (
    order_by_recent,
    resolve_assigned_records,
    resolve_owned_records,
    resolve_visible_records,
)

logger = structlog.get_logger(__name__)

_COMMENT_PARENT_FIELD = {
    EntityKind.PROJECT_COMMENT: "project_id",
    EntityKind.CLIENT_COMMENT: "client_id",
}


# ── Pure Helpers ────────────────────────────────────────────────────────────


def normalize_lead_sources(values: dict[str, Any]) -> dict[str, Any]:
    """Clear the source fields that do not apply to the lead's source type.

    Outbound leads carry no inbound source; inbound leads carry no
    outbound source. The custom inbound text only applies to "Others".
    """
    source_type = values.get("source_type")
    if source_type == SourceType.OUTBOUND:
        values["inbound_source"] = None
        values["custom_inbound_source"] = None
    elif source_type == SourceType.INBOUND:
        values["outbound_source"] = None
        if "inbound_source" in values and values["inbound_source"] != InboundSource.OTHERS:
            values["custom_inbound_source"] = None
    return values


def thread_comments(
    comments: Sequence[CommentRead],
    users: dict[str, UserRead],
) -> list[ThreadedComment]:
    """Nest replies one level under their top-level comment.

    ``comments`` must be in creation order. A reply to a reply is attached
    to the root of its thread; a reply whose parent is gone is shown as a
    top-level comment.
    """

    def author(user_id: str) -> str:
        user = users.get(user_id)
        return user.full_name if user and user.full_name else "Unknown User"

    by_id = {c.id: c for c in comments}
    roots: dict[str, ThreadedComment] = {}
    ordered: list[ThreadedComment] = []

    def root_of(comment: CommentRead) -> str | None:
        seen: set[str] = set()
        current = comment
        while current.parent_comment_id and current.parent_comment_id in by_id:
            if current.id in seen:
                return None
            seen.add(current.id)
            current = by_id[current.parent_comment_id]
        return current.id if current.id != comment.id else None

    for comment in comments:
        threaded = ThreadedComment(
            **comment.model_dump(),
            user_name=author(comment.user_id),
        )
        root_id = root_of(comment) if comment.parent_comment_id else None
        if root_id is not None and root_id in roots:
            roots[root_id].replies.append(threaded)
        else:
            roots[comment.id] = threaded
            ordered.append(threaded)
    return ordered


# ── Service ─────────────────────────────────────────────────────────────────


class CrmService:
    """Business operations for users, leads, clients, projects and comments.

    Args:
        repository: CrmRepository or a compatible test double.
        roster: Assignable full names, in matching priority order.
        recent_clients_limit: Size of the "recent clients" widget.
    """

    def __init__(
        self,
        repository: Any,
        roster: Sequence[str],
        recent_clients_limit: int = 5,
    ) -> None:
        self.repository = repository
        self.roster = list(roster)
        self.recent_clients_limit = recent_clients_limit

    # ── Generic Records ─────────────────────────────────────────────────────

    async def list_records(
        self,
        kind: EntityKind,
        filters: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Any]:
        return await self.repository.find(
            kind, filters, order_by=order_by, descending=descending
        )

    async def get_record(self, kind: EntityKind, record_id: str) -> Any:
        """Fetch one record or raise NotFoundError."""
        record = await self.repository.get(kind, record_id)
        if record is None:
            raise NotFoundError(f"{_label(kind)} not found: {record_id}")
        return record

    async def create_record(self, kind: EntityKind, values: dict[str, Any]) -> Any:
        return await self.repository.create(kind, values)

    async def update_record(self, kind: EntityKind, record_id: str, values: dict[str, Any]) -> Any:
        """Partial update; raises NotFoundError for a missing record."""
        record = await self.repository.update(kind, record_id, values)
        if record is None:
            raise NotFoundError(f"{_label(kind)} not found: {record_id}")
        return record

    async def delete_record(self, kind: EntityKind, record_id: str) -> None:
        """Delete one record and confirm it is gone."""
        await self.get_record(kind, record_id)
        await self.repository.delete(kind, record_id)
        await self._verify_deleted(kind, record_id)

    async def _delete_comments(self, kind: EntityKind, filters: dict[str, Any]) -> None:
        # Replies reference their parent, so they go first.
        comments = await self.repository.find(kind, filters)
        reply_ids = [c.id for c in comments if c.parent_comment_id]
        if reply_ids:
            await self.repository.delete_where(kind, {"id": reply_ids})
        if comments:
            await self.repository.delete_where(kind, filters)

    async def _verify_deleted(self, kind: EntityKind, record_id: str) -> None:
        if await self.repository.get(kind, record_id) is not None:
            logger.error("crm.delete_not_applied", kind=kind.value, record_id=record_id)
            raise CrmError(f"{_label(kind)} could not be deleted: {record_id}")

    # ── Users ───────────────────────────────────────────────────────────────

    async def _first_name(self, user_id: str) -> str | None:
        user = await self.repository.get(EntityKind.USER, user_id)
        return user.first_name if user else None

    async def _ensure_unique_login(
        self, email: str | None, username: str | None, exclude_id: str | None = None
    ) -> None:
        if email:
            for user in await self.repository.find(EntityKind.USER, {"email": email}):
                if user.id != exclude_id:
                    raise ValidationFailed("User with this email already exists")
        if username:
            for user in await self.repository.find(EntityKind.USER, {"username": username}):
                if user.id != exclude_id:
                    raise ValidationFailed("User with this username already exists")

    async def create_user(self, data: UserCreate) -> UserRead:
        """Create a user; email and username must both be unused."""
        await self._ensure_unique_login(data.email, data.username)
        values = data.model_dump(exclude={"password"})
        values["password_hash"] = hash_password(data.password)
        user = await self.repository.create(EntityKind.USER, values)
        logger.info("user.created", user_id=user.id, role=user.role.value)
        return user

    async def update_user(self, user_id: str, data: UserUpdate) -> UserRead:
        values = data.model_dump(exclude_unset=True)
        await self._ensure_unique_login(values.get("email"), values.get("username"), user_id)
        return await self.update_record(EntityKind.USER, user_id, values)

    async def authenticate(self, login: str, password: str) -> UserRead | None:
        """Check credentials by email or username; None when they do not match."""
        found = await self.repository.find_user_credentials(login.strip())
        if found is None:
            return None
        user, password_hash = found
        if not verify_password(password, password_hash):
            logger.info("auth.login_failed", user_id=user.id)
            return None
        return user

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace a user's password after checking the current one.

        Raises:
            NotFoundError: Unknown user.
            ValidationFailed: Current password does not match.
        """
        found = await self.repository.get_user_credentials(user_id)
        if found is None:
            raise NotFoundError(f"User not found: {user_id}")
        _, password_hash = found
        if not verify_password(current_password, password_hash):
            raise ValidationFailed("Current password is incorrect")
        await self.repository.update(
            EntityKind.USER, user_id, {"password_hash": hash_password(new_password)}
        )
        logger.info("user.password_changed", user_id=user_id)

    # ── Assignment Roster ───────────────────────────────────────────────────

    def _check_assignments(self, values: dict[str, Any]) -> None:
        for field, label in (("lead_assignment", "leadAssignment"), ("co_lead_assignment", "coLeadAssignment")):
            value = values.get(field)
            if value is not None and value not in self.roster:
                raise ValidationFailed(
                    f"{label} must be one of the assignable team members",
                    details={"field": label, "allowed": self.roster},
                )

    # ── Leads ───────────────────────────────────────────────────────────────

    async def list_visible_leads(self, user_id: str, role: UserRole) -> list[LeadRead]:
        """Active leads the user owns or is assigned to (all active leads for admins)."""
        leads = await self.repository.find(EntityKind.LEAD)
        first_name = await self._first_name(user_id)
        return resolve_visible_records(leads, user_id, first_name, self.roster, role)

    async def list_cold_leads(self, user_id: str, role: UserRole) -> list[LeadRead]:
        """Rejected leads: every one for admins, owned ones otherwise."""
        leads = await self.repository.find(
            EntityKind.LEAD, {"acceptance_stage": AcceptanceStage.REJECTED}
        )
        return resolve_owned_records(leads, user_id, role)

    async def list_leads_by_inbound_source(self, source: InboundSource) -> list[LeadRead]:
        leads = await self.repository.find(EntityKind.LEAD, {"inbound_source": source})
        return order_by_recent(leads)

    async def _list_by_assignment(
        self, kind: EntityKind, assignee_name: str, user_id: str, role: UserRole
    ) -> list[Any]:
        records = await self.repository.find(kind)
        first_name = await self._first_name(user_id)
        return resolve_assigned_records(
            records, assignee_name, user_id, first_name, self.roster, role
        )

    async def list_leads_by_assignment(
        self, assignee_name: str, user_id: str, role: UserRole
    ) -> list[LeadRead]:
        """Leads naming ``assignee_name`` as Lead or Co-Lead, scoped to the caller."""
        return await self._list_by_assignment(EntityKind.LEAD, assignee_name, user_id, role)

    async def create_lead(
        self,
        data: LeadCreate,
        *,
        convert_to_client: bool = False,
        entry_point: str = "lead_create",
    ) -> LeadCreateResult:
        """Create a lead, optionally converting it straight into a client."""
        values = normalize_lead_sources(data.model_dump())
        self._check_assignments(values)
        lead = await self.repository.create(EntityKind.LEAD, values)
        logger.info("lead.created", lead_id=lead.id, owner_id=lead.owner_id, entry_point=entry_point)
        if not convert_to_client:
            return LeadCreateResult(lead=lead, client=None)
        result = await convert_lead_to_client(self.repository, lead.id, entry_point=entry_point)
        return LeadCreateResult(lead=result.lead, client=result.client)

    async def update_lead(self, lead_id: str, data: LeadUpdate) -> LeadRead:
        values = data.model_dump(exclude_unset=True)
        if "source_type" in values:
            values = normalize_lead_sources(values)
        self._check_assignments(values)
        return await self.update_record(EntityKind.LEAD, lead_id, values)

    async def convert_lead(self, lead_id: str, entry_point: str = "api") -> ConversionResult:
        return await convert_lead_to_client(self.repository, lead_id, entry_point=entry_point)

    async def delete_lead(self, lead_id: str) -> None:
        """Delete a lead and the client it converted into.

        The lead's own reference is cleared before the client is removed so
        the foreign key never dangles.
        """
        lead: LeadRead = await self.get_record(EntityKind.LEAD, lead_id)
        client_id = lead.converted_client_id
        if client_id:
            await self.repository.update(EntityKind.LEAD, lead_id, {"converted_client_id": None})
            await self._delete_client_rows(client_id)
        await self.repository.delete(EntityKind.LEAD, lead_id)
        await self._verify_deleted(EntityKind.LEAD, lead_id)
        if client_id:
            await self._verify_deleted(EntityKind.CLIENT, client_id)
        logger.info("lead.deleted", lead_id=lead_id, cascaded_client_id=client_id)

    # ── Clients ─────────────────────────────────────────────────────────────

    async def list_visible_clients(self, user_id: str, role: UserRole) -> list[ClientRead]:
        """Active clients the user owns or is assigned to (all active clients for admins)."""
        clients = await self.repository.find(EntityKind.CLIENT)
        first_name = await self._first_name(user_id)
        return resolve_visible_records(clients, user_id, first_name, self.roster, role)

    async def list_past_clients(self, user_id: str, role: UserRole) -> list[ClientRead]:
        """Closed or dropped clients: every one for admins, owned ones otherwise."""
        clients = await self.repository.find(
            EntityKind.CLIENT, {"status": list(TERMINAL_CLIENT_STATUSES)}
        )
        return resolve_owned_records(clients, user_id, role)

    async def list_clients_by_assignment(
        self, assignee_name: str, user_id: str, role: UserRole
    ) -> list[ClientRead]:
        return await self._list_by_assignment(EntityKind.CLIENT, assignee_name, user_id, role)

    async def list_recent_clients(self, user_id: str, role: UserRole) -> list[ClientRead]:
        """Most recently created clients the user can see."""
        clients = await self.repository.find(
            EntityKind.CLIENT, order_by="created_at", descending=True
        )
        if UserRole(role) != UserRole.ADMIN:
            clients = [c for c in clients if c.owner_id == user_id]
        return clients[: self.recent_clients_limit]

    async def create_client(self, data: ClientCreate) -> ClientRead:
        values = data.model_dump()
        self._check_assignments(values)
        client = await self.repository.create(EntityKind.CLIENT, values)
        logger.info("client.created", client_id=client.id, owner_id=client.owner_id)
        return client

    async def update_client(self, client_id: str, data: ClientUpdate) -> ClientRead:
        values = data.model_dump(exclude_unset=True)
        self._check_assignments(values)
        return await self.update_record(EntityKind.CLIENT, client_id, values)

    async def _delete_client_rows(self, client_id: str) -> None:
        """Detach everything pointing at a client, then delete it."""
        await self.repository.update_where(
            EntityKind.LEAD, {"converted_client_id": client_id}, {"converted_client_id": None}
        )
        await self.repository.update_where(
            EntityKind.PROJECT, {"client_id": client_id}, {"client_id": None}
        )
        await self._delete_comments(EntityKind.CLIENT_COMMENT, {"client_id": client_id})
        await self.repository.delete(EntityKind.CLIENT, client_id)

    async def delete_client(self, client_id: str) -> None:
        """Delete a client after clearing every lead's reference to it."""
        await self.get_record(EntityKind.CLIENT, client_id)
        await self._delete_client_rows(client_id)
        await self._verify_deleted(EntityKind.CLIENT, client_id)
        logger.info("client.deleted", client_id=client_id)

    # ── Projects ────────────────────────────────────────────────────────────

    async def list_projects(self, user_id: str, role: UserRole) -> list[ProjectWithOwner]:
        """All projects with owner details for admins; owned projects otherwise."""
        projects = resolve_owned_records(
            await self.repository.find(EntityKind.PROJECT), user_id, role
        )
        owner_ids = sorted({p.owner_id for p in projects})
        owners = {
            u.id: u
            for u in (
                await self.repository.find(EntityKind.USER, {"id": owner_ids})
                if owner_ids else []
            )
        }
        result = []
        for project in projects:
            owner = owners.get(project.owner_id)
            result.append(ProjectWithOwner(
                **project.model_dump(),
                owner_name=owner.full_name if owner else None,
                owner_email=owner.email if owner else None,
            ))
        return result

    async def create_project(self, data: ProjectCreate) -> ProjectRead:
        values = data.model_dump()
        if values.get("client_id"):
            await self.get_record(EntityKind.CLIENT, values["client_id"])
        project = await self.repository.create(EntityKind.PROJECT, values)
        logger.info("project.created", project_id=project.id, owner_id=project.owner_id)
        return project

    async def update_project(self, project_id: str, data: ProjectUpdate) -> ProjectRead:
        values = data.model_dump(exclude_unset=True)
        if values.get("client_id"):
            await self.get_record(EntityKind.CLIENT, values["client_id"])
        return await self.update_record(EntityKind.PROJECT, project_id, values)

    async def delete_project(self, project_id: str) -> None:
        """Delete a project together with its comments and members."""
        await self.get_record(EntityKind.PROJECT, project_id)
        await self._delete_comments(EntityKind.PROJECT_COMMENT, {"project_id": project_id})
        await self.repository.delete_where(EntityKind.PROJECT_MEMBER, {"project_id": project_id})
        await self.repository.delete(EntityKind.PROJECT, project_id)
        await self._verify_deleted(EntityKind.PROJECT, project_id)
        logger.info("project.deleted", project_id=project_id)

    async def list_project_members(self, project_id: str) -> list[ProjectMemberRead]:
        await self.get_record(EntityKind.PROJECT, project_id)
        return await self.repository.find(
            EntityKind.PROJECT_MEMBER, {"project_id": project_id}, order_by="created_at"
        )

    async def add_project_member(self, project_id: str, data: ProjectMemberCreate) -> ProjectMemberRead:
        """Add a user to a project; adding an existing member returns that membership."""
        await self.get_record(EntityKind.PROJECT, project_id)
        await self.get_record(EntityKind.USER, data.user_id)
        existing = await self.repository.find(
            EntityKind.PROJECT_MEMBER, {"project_id": project_id, "user_id": data.user_id}
        )
        if existing:
            return existing[0]
        return await self.repository.create(
            EntityKind.PROJECT_MEMBER,
            {"project_id": project_id, **data.model_dump()},
        )

    async def remove_project_member(self, project_id: str, user_id: str) -> None:
        removed = await self.repository.delete_where(
            EntityKind.PROJECT_MEMBER, {"project_id": project_id, "user_id": user_id}
        )
        if not removed:
            raise NotFoundError(f"User {user_id} is not a member of project {project_id}")

    # ── Comments ────────────────────────────────────────────────────────────

    async def list_comments(self, kind: EntityKind, parent_id: str) -> list[ThreadedComment]:
        """Threaded comments for a project or client, oldest thread first."""
        parent_field = _COMMENT_PARENT_FIELD[kind]
        comments = await self.repository.find(
            kind, {parent_field: parent_id}, order_by="created_at"
        )
        user_ids = sorted({c.user_id for c in comments})
        users = {
            u.id: u
            for u in (
                await self.repository.find(EntityKind.USER, {"id": user_ids})
                if user_ids else []
            )
        }
        return thread_comments(comments, users)

    async def add_comment(self, kind: EntityKind, parent_id: str, data: CommentCreate) -> CommentRead:
        """Add a comment or a reply to a top-level comment.

        Raises:
            NotFoundError: Unknown project/client or parent comment.
            ValidationFailed: Reply to a reply, or to another record's comment.
        """
        parent_field = _COMMENT_PARENT_FIELD[kind]
        owner_kind = EntityKind.PROJECT if kind == EntityKind.PROJECT_COMMENT else EntityKind.CLIENT
        await self.get_record(owner_kind, parent_id)
        if data.parent_comment_id:
            parent: CommentRead = await self.get_record(kind, data.parent_comment_id)
            if getattr(parent, parent_field) != parent_id:
                raise ValidationFailed("Parent comment belongs to a different record")
            if parent.parent_comment_id:
                raise ValidationFailed("Replies can only be added to top-level comments")
        return await self.repository.create(kind, {parent_field: parent_id, **data.model_dump()})

    async def delete_comment(self, kind: EntityKind, comment_id: str) -> None:
        """Delete a comment and its replies."""
        await self.get_record(kind, comment_id)
        await self.repository.delete_where(kind, {"parent_comment_id": comment_id})
        await self.repository.delete(kind, comment_id)
        await self._verify_deleted(kind, comment_id)

    # ── Dashboard ───────────────────────────────────────────────────────────

    async def dashboard_stats(self, user_id: str, role: UserRole) -> DashboardStats:
        leads = await self.list_visible_leads(user_id, role)
        clients = await self.list_visible_clients(user_id, role)
        projects = await self.list_projects(user_id, role)
        return DashboardStats(
            total_leads=len(leads),
            active_clients=len(clients),
            active_projects=sum(1 for p in projects if p.status in ACTIVE_PROJECT_STATUSES),
        )

    async def lead_stats(self, user_id: str, role: UserRole) -> BotLeadStats:
        """Counts over the user's visible leads, broken down by status and acceptance."""
        leads = await self.list_visible_leads(user_id, role)
        return BotLeadStats(
            total_leads=len(leads),
            by_status=dict(Counter(lead.status.value for lead in leads)),
            by_acceptance=dict(Counter(lead.acceptance_stage.value for lead in leads)),
            converted=sum(1 for lead in leads if lead.is_converted),
        )


def _label(kind: EntityKind) -> str:
    return kind.value.replace("_", " ").capitalize()


__all__ = [
    "CrmService",
    "normalize_lead_sources",
    "thread_comments",
]
