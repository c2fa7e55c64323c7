"""Tests for CrmService business rules over the in-memory repository.

Covers source normalization, roster-checked assignments, lead creation with
conversion, cascading deletes, comment threading, users and statistics.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.app.config import DEFAULT_ASSIGNMENT_ROSTER
from src.app.crm.errors import CrmError, NotFoundError, ValidationFailed
from src.app.crm.schemas import (
    CommentCreate,
    CommentRead,
    EntityKind,
    LeadCreate,
    LeadUpdate,
    ProjectCreate,
    ProjectMemberCreate,
    UserCreate,
    UserRead,
    UserRole,
)
from src.app.crm.service import CrmService, normalize_lead_sources, thread_comments
from tests.fakes import InMemoryCrmRepository, lead_values, seed_client, seed_lead, seed_user

T0 = datetime(2025, 4, 1, tzinfo=timezone.utc)


def _lead_create(owner_id: str, **overrides) -> LeadCreate:
    values = lead_values(owner_id, **overrides)
    values.pop("is_converted")
    return LeadCreate.model_validate(values)


# ── Pure Helpers ─────────────────────────────────────────────────────────────


def test_outbound_lead_drops_inbound_fields():
    values = normalize_lead_sources({
        "source_type": "Outbound",
        "inbound_source": "LGT",
        "custom_inbound_source": "x",
        "outbound_source": "Kiran Rao",
    })
    assert values["inbound_source"] is None
    assert values["custom_inbound_source"] is None
    assert values["outbound_source"] == "Kiran Rao"


def test_inbound_lead_keeps_custom_source_only_for_others():
    values = normalize_lead_sources({
        "source_type": "Inbound",
        "inbound_source": "LGT",
        "custom_inbound_source": "stale",
        "outbound_source": "Kiran Rao",
    })
    assert values["outbound_source"] is None
    assert values["custom_inbound_source"] is None

    others = normalize_lead_sources({
        "source_type": "Inbound",
        "inbound_source": "Others",
        "custom_inbound_source": "Family friend",
    })
    assert others["custom_inbound_source"] == "Family friend"


def _comment(comment_id: str, parent: str | None = None, minutes: int = 0, user_id: str = "u-1") -> CommentRead:
    return CommentRead(
        id=comment_id,
        project_id="p-1",
        user_id=user_id,
        parent_comment_id=parent,
        comment_type="update",
        content=comment_id,
        created_at=T0 + timedelta(minutes=minutes),
    )


def test_thread_comments_nests_one_level():
    users = {"u-1": UserRead(id="u-1", email="a@x.io", username="a", first_name="Asha", last_name="Rao")}
    comments = [
        _comment("root"),
        _comment("reply", parent="root", minutes=1),
        _comment("reply-to-reply", parent="reply", minutes=2),
        _comment("orphan", parent="gone", minutes=3, user_id="u-missing"),
    ]

    threads = thread_comments(comments, users)

    assert [t.id for t in threads] == ["root", "orphan"]
    assert [r.id for r in threads[0].replies] == ["reply", "reply-to-reply"]
    assert threads[0].user_name == "Asha Rao"
    assert threads[1].user_name == "Unknown User"


# ── Leads ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_lead_normalizes_sources(crm_service, repo):
    result = await crm_service.create_lead(
        _lead_create("o-1", source_type="Outbound", inbound_source="LGT", outbound_source="Kiran Rao")
    )
    assert result.client is None
    assert result.lead.inbound_source is None
    assert result.lead.outbound_source == "Kiran Rao"


@pytest.mark.asyncio
async def test_create_lead_rejects_assignment_outside_roster(crm_service, repo):
    with pytest.raises(ValidationFailed) as exc_info:
        await crm_service.create_lead(_lead_create("o-1", lead_assignment="Someone Else"))
    assert exc_info.value.details["field"] == "leadAssignment"
    assert repo.rows[EntityKind.LEAD] == {}


@pytest.mark.asyncio
async def test_create_lead_with_conversion(crm_service, repo):
    result = await crm_service.create_lead(_lead_create("o-1"), convert_to_client=True)

    assert result.client is not None
    assert result.lead.is_converted is True
    assert result.lead.converted_client_id == result.client.id


@pytest.mark.asyncio
async def test_update_lead_switching_source_type_clears_stale_fields(crm_service, repo):
    lead = await seed_lead(repo, "o-1", inbound_source="LGT")

    updated = await crm_service.update_lead(
        lead.id, LeadUpdate(source_type="Outbound", outbound_source="Kiran Rao")
    )

    assert updated.inbound_source is None
    assert updated.outbound_source == "Kiran Rao"


@pytest.mark.asyncio
async def test_update_missing_lead_raises(crm_service):
    with pytest.raises(NotFoundError):
        await crm_service.update_lead("missing", LeadUpdate(notes="x"))


@pytest.mark.asyncio
async def test_visible_leads_match_first_name_to_roster(crm_service, repo):
    nitin = await seed_user(repo, "Nitin", "Gupta")
    other = await seed_user(repo, "Pankaj", "Karna")
    mine = await seed_lead(repo, nitin.id)
    assigned = await seed_lead(repo, other.id, co_lead_assignment="Nitin Gupta")
    await seed_lead(repo, other.id)
    await seed_lead(repo, nitin.id, acceptance_stage="Rejected")

    visible = await crm_service.list_visible_leads(nitin.id, UserRole.USER)

    assert {lead.id for lead in visible} == {mine.id, assigned.id}


@pytest.mark.asyncio
async def test_cold_leads_are_rejected_and_owned(crm_service, repo):
    rejected = await seed_lead(repo, "me", acceptance_stage="Rejected")
    await seed_lead(repo, "other", acceptance_stage="Rejected")
    await seed_lead(repo, "me")

    assert [lead.id for lead in await crm_service.list_cold_leads("me", UserRole.USER)] == [rejected.id]
    assert len(await crm_service.list_cold_leads("me", UserRole.ADMIN)) == 2


@pytest.mark.asyncio
async def test_delete_lead_cascades_to_converted_client(crm_service, repo):
    result = await crm_service.create_lead(_lead_create("o-1"), convert_to_client=True)
    client_id = result.client.id
    await repo.create(EntityKind.CLIENT_COMMENT, {
        "client_id": client_id, "user_id": "o-1", "content": "hi", "comment_type": "update",
    })

    await crm_service.delete_lead(result.lead.id)

    assert await repo.get(EntityKind.LEAD, result.lead.id) is None
    assert await repo.get(EntityKind.CLIENT, client_id) is None
    assert repo.rows[EntityKind.CLIENT_COMMENT] == {}


class DeleteIgnoringRepository(InMemoryCrmRepository):
    """A store that acknowledges deletes without removing anything."""

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        return None


@pytest.mark.asyncio
async def test_delete_that_leaves_the_row_raises():
    repo = DeleteIgnoringRepository()
    service = CrmService(repo, roster=DEFAULT_ASSIGNMENT_ROSTER)
    lead = await seed_lead(repo, "o-1")

    with pytest.raises(CrmError, match="could not be deleted"):
        await service.delete_lead(lead.id)

    assert await repo.get(EntityKind.LEAD, lead.id) is not None


# ── Clients ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_delete_client_detaches_lead_and_projects(crm_service, repo):
    result = await crm_service.create_lead(_lead_create("o-1"), convert_to_client=True)
    project = await crm_service.create_project(
        ProjectCreate(name="Series B raise", owner_id="o-1", client_id=result.client.id)
    )

    await crm_service.delete_client(result.client.id)

    lead = await repo.get(EntityKind.LEAD, result.lead.id)
    assert lead is not None
    assert lead.converted_client_id is None
    assert (await repo.get(EntityKind.PROJECT, project.id)).client_id is None


@pytest.mark.asyncio
async def test_past_and_recent_clients(crm_service, repo):
    closed = await seed_client(repo, "me", status="Transaction closed")
    await seed_client(repo, "other", status="Client Dropped")
    open_clients = [await seed_client(repo, "me") for _ in range(6)]

    past = await crm_service.list_past_clients("me", UserRole.USER)
    recent = await crm_service.list_recent_clients("me", UserRole.USER)

    assert [c.id for c in past] == [closed.id]
    assert len(recent) == 5
    assert recent[0].id == open_clients[-1].id


# ── Projects & Comments ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_project_for_unknown_client_raises(crm_service):
    with pytest.raises(NotFoundError):
        await crm_service.create_project(ProjectCreate(name="X", owner_id="o-1", client_id="nope"))


@pytest.mark.asyncio
async def test_project_members_are_idempotent(crm_service, repo):
    user = await seed_user(repo)
    project = await crm_service.create_project(ProjectCreate(name="Series B raise", owner_id=user.id))

    first = await crm_service.add_project_member(project.id, ProjectMemberCreate(user_id=user.id))
    again = await crm_service.add_project_member(project.id, ProjectMemberCreate(user_id=user.id, can_edit=True))

    assert again.id == first.id
    assert len(await crm_service.list_project_members(project.id)) == 1

    await crm_service.remove_project_member(project.id, user.id)
    with pytest.raises(NotFoundError):
        await crm_service.remove_project_member(project.id, user.id)


@pytest.mark.asyncio
async def test_comment_replies_only_on_top_level(crm_service, repo):
    user = await seed_user(repo)
    project = await crm_service.create_project(ProjectCreate(name="Series B raise", owner_id=user.id))
    kind = EntityKind.PROJECT_COMMENT

    root = await crm_service.add_comment(kind, project.id, CommentCreate(user_id=user.id, content="Kickoff done"))
    reply = await crm_service.add_comment(
        kind, project.id, CommentCreate(user_id=user.id, content="Notes shared", parent_comment_id=root.id)
    )
    with pytest.raises(ValidationFailed):
        await crm_service.add_comment(
            kind, project.id, CommentCreate(user_id=user.id, content="Nested", parent_comment_id=reply.id)
        )

    threads = await crm_service.list_comments(kind, project.id)
    assert len(threads) == 1
    assert threads[0].user_name == "Nitin Gupta"
    assert [r.id for r in threads[0].replies] == [reply.id]


@pytest.mark.asyncio
async def test_delete_project_removes_comments_and_members(crm_service, repo):
    user = await seed_user(repo)
    project = await crm_service.create_project(ProjectCreate(name="Series B raise", owner_id=user.id))
    root = await crm_service.add_comment(
        EntityKind.PROJECT_COMMENT, project.id, CommentCreate(user_id=user.id, content="a")
    )
    await crm_service.add_comment(
        EntityKind.PROJECT_COMMENT,
        project.id,
        CommentCreate(user_id=user.id, content="b", parent_comment_id=root.id),
    )
    await crm_service.add_project_member(project.id, ProjectMemberCreate(user_id=user.id))

    await crm_service.delete_project(project.id)

    assert repo.rows[EntityKind.PROJECT] == {}
    assert repo.rows[EntityKind.PROJECT_COMMENT] == {}
    assert repo.rows[EntityKind.PROJECT_MEMBER] == {}


# ── Users ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_users_authenticate_by_email_or_username(crm_service, repo):
    created = await crm_service.create_user(UserCreate(
        email="asha@maple.example",
        username="asha",
        password="pw-1",
        first_name="Asha",
        last_name="Rao",
    ))

    assert (await crm_service.authenticate("asha", "pw-1")).id == created.id
    assert (await crm_service.authenticate("asha@maple.example", "pw-1")).id == created.id
    assert await crm_service.authenticate("asha", "wrong") is None
    assert await crm_service.authenticate("nobody", "pw-1") is None


@pytest.mark.asyncio
async def test_duplicate_user_email_rejected(crm_service, repo):
    await seed_user(repo, "Asha", "Rao", username="asha")
    with pytest.raises(ValidationFailed):
        await crm_service.create_user(UserCreate(
            email="asha@maple.example",
            username="asha2",
            password="pw",
            first_name="A",
            last_name="R",
        ))


@pytest.mark.asyncio
async def test_change_password(crm_service, repo):
    user = await seed_user(repo, password="old")

    with pytest.raises(ValidationFailed):
        await crm_service.change_password(user.id, "wrong", "new")

    await crm_service.change_password(user.id, "old", "new")
    assert await crm_service.authenticate(user.username, "new") is not None
    assert await crm_service.authenticate(user.username, "old") is None


# ── Stats ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_dashboard_and_lead_stats(crm_service, repo):
    user = await seed_user(repo)
    await seed_lead(repo, user.id, status="NDA")
    await seed_lead(repo, user.id, acceptance_stage="Accepted")
    await seed_client(repo, user.id)
    await crm_service.create_project(ProjectCreate(name="Live", owner_id=user.id))
    await crm_service.create_project(ProjectCreate(name="Done", owner_id=user.id, status="completed"))

    dashboard = await crm_service.dashboard_stats(user.id, UserRole.USER)
    stats = await crm_service.lead_stats(user.id, UserRole.USER)

    assert (dashboard.total_leads, dashboard.active_clients, dashboard.active_projects) == (2, 1, 1)
    assert stats.total_leads == 2
    assert stats.by_status == {"NDA": 1, "Initial Discussion": 1}
    assert stats.by_acceptance == {"Undecided": 1, "Accepted": 1}
    assert stats.converted == 0
