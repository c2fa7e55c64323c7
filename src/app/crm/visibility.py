"""Ownership/assignment visibility for leads and clients.

Pure functions, no I/O. A non-admin sees the records they own plus the
records whose Lead or Co-Lead assignment names them. Assignments are full
names from the configured roster, so the requesting user is matched to a
roster entry by a case-insensitive prefix of their first name; the first
matching entry in roster order wins. Admins see everything. Both views
drop records that have reached a terminal state.

    visible = resolve_visible_records(
        leads, user.id, user.first_name, settings.ASSIGNMENT_ROSTER, user.role,
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from src.app.crm.schemas import (
    TERMINAL_CLIENT_STATUSES,
    AcceptanceStage,
    UserRole,
)

RecordT = TypeVar("RecordT")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_terminal_record(record: Any) -> bool:
    """True for a Rejected lead or a closed/dropped client.

    Lead and client status vocabularies do not overlap, so one predicate
    serves both record types.
    """
    if getattr(record, "acceptance_stage", None) == AcceptanceStage.REJECTED:
        return True
    return getattr(record, "status", None) in TERMINAL_CLIENT_STATUSES


def match_roster_name(first_name: str | None, roster: Sequence[str]) -> str | None:
    """Return the first roster entry starting with ``first_name`` (case-insensitive).

    An empty first name matches nothing.
    """
    needle = (first_name or "").strip().lower()
    if not needle:
        return None
    for full_name in roster:
        if full_name.lower().startswith(needle):
            return full_name
    return None


def _sort_key(record: Any) -> tuple[datetime, str]:
    stamp = getattr(record, "updated_at", None) or getattr(record, "created_at", None) or _EPOCH
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp, str(getattr(record, "id", ""))


def order_by_recent(records: Iterable[RecordT]) -> list[RecordT]:
    """Most recently updated first; ties broken by id for a stable order."""
    return sorted(records, key=_sort_key, reverse=True)


def is_assigned_to(record: Any, full_name: str) -> bool:
    return full_name in (
        getattr(record, "lead_assignment", None),
        getattr(record, "co_lead_assignment", None),
    )


def resolve_visible_records(
    records: Iterable[RecordT],
    user_id: str,
    user_first_name: str | None,
    roster: Sequence[str],
    role: UserRole | str,
    *,
    is_terminal: Callable[[Any], bool] = is_terminal_record,
) -> list[RecordT]:
    """Filter and order the records a user may see in the active list views.

    Args:
        records: Every lead (or every client) in the store.
        user_id: Requesting user's id.
        user_first_name: Requesting user's first name, used for roster matching.
        roster: Assignable full names in priority order.
        role: Requesting user's role.
        is_terminal: Predicate for records excluded from active views.

    Returns:
        Visible, non-terminal records, most recently updated first, each
        record at most once.
    """
    live = [r for r in records if not is_terminal(r)]
    if UserRole(role) == UserRole.ADMIN:
        return order_by_recent(live)

    matched_name = match_roster_name(user_first_name, roster)
    visible: dict[str, RecordT] = {}
    for record in live:
        owned = getattr(record, "owner_id", None) == user_id
        assigned = matched_name is not None and is_assigned_to(record, matched_name)
        if owned or assigned:
            visible.setdefault(str(getattr(record, "id")), record)
    return order_by_recent(visible.values())


def resolve_owned_records(
    records: Iterable[RecordT],
    user_id: str,
    role: UserRole | str,
    *,
    include: Callable[[Any], bool] = lambda record: True,
) -> list[RecordT]:
    """Admin sees every record passing ``include``; others see only their own.

    Backs the complementary views (cold leads, past clients, projects) which
    ignore roster assignment.
    """
    selected = [r for r in records if include(r)]
    if UserRole(role) != UserRole.ADMIN:
        selected = [r for r in selected if getattr(r, "owner_id", None) == user_id]
    return order_by_recent(selected)


def resolve_assigned_records(
    records: Iterable[RecordT],
    assignee_name: str,
    user_id: str,
    user_first_name: str | None,
    roster: Sequence[str],
    role: UserRole | str,
) -> list[RecordT]:
    """Records whose Lead or Co-Lead assignment is ``assignee_name``.

    Terminal records are kept. An admin gets every match. A non-admin gets
    the matches they own, plus all matches when ``assignee_name`` is their
    own roster entry.
    """
    selected = [r for r in records if is_assigned_to(r, assignee_name)]
    if UserRole(role) != UserRole.ADMIN:
        if match_roster_name(user_first_name, roster) != assignee_name:
            selected = [r for r in selected if getattr(r, "owner_id", None) == user_id]
    return order_by_recent(selected)
