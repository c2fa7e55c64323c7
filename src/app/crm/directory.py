"""Fund tracker, client master data and the master-data access workflow.

DirectoryService owns the two contact directories. Both support:
- single writes with an advisory name de-duplication check
  (``onDuplicate``: check / create / replace)
- bulk import of previewed spreadsheet rows: map, validate per row, one
  bulk insert
- bulk delete

Client master data is gated: only admins and users whose access request
was approved can list it, and only admins can delete from it. The request
and approval bookkeeping goes through the state machine in permissions.py.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from src.app.core.monitoring import record_import_rows
from src.app.crm.errors import AuthorizationError, ConflictError, NotFoundError, ValidationFailed
from src.app.crm.importing.mapping import (
    FUND_NO_VALID_ROWS_MESSAGE,
    MASTER_DATA_NO_VALID_ROWS_MESSAGE,
    NO_IMPORT_DATA_MESSAGE,
    build_fund_row,
    build_master_data_row,
    prepare_import,
)
from src.app.crm.permissions import (
    approve_transition,
    request_transition,
    revoke_transition,
)
from src.app.crm.schemas import (
    DuplicateResolution,
    EntityKind,
    FundCreate,
    FundRead,
    FundUpdate,
    ImportReport,
    MasterDataCreate,
    MasterDataRead,
    MasterDataUpdate,
    PermissionRead,
    PermissionWithUser,
    UserRole,
)

logger = structlog.get_logger(__name__)

_NAME_FIELD = {
    EntityKind.FUND: "fund_name",
    EntityKind.MASTER_DATA: "name",
}


def normalize_name(value: str | None) -> str:
    return (value or "").strip().lower()


def find_name_conflicts(
    records: Sequence[Any],
    name_field: str,
    name: str | None,
    exclude_id: str | None = None,
) -> list[Any]:
    """Records whose trimmed, case-folded name equals ``name``."""
    target = normalize_name(name)
    if not target:
        return []
    return [
        r for r in records
        if r.id != exclude_id and normalize_name(getattr(r, name_field)) == target
    ]


def _require_admin(role: UserRole | str, action: str) -> None:
    if UserRole(role) != UserRole.ADMIN:
        raise AuthorizationError(f"Only admins can {action}")


class DirectoryService:
    """Operations on the fund tracker, client master data and access permissions.

    Args:
        repository: CrmRepository or a compatible test double.
        max_row_errors: Row errors returned in an import report.
    """

    def __init__(self, repository: Any, max_row_errors: int = 10) -> None:
        self.repository = repository
        self.max_row_errors = max_row_errors

    # ── Duplicate Handling ──────────────────────────────────────────────────

    async def _save_with_duplicate_check(
        self,
        kind: EntityKind,
        values: dict[str, Any],
        on_duplicate: DuplicateResolution,
        replace_id: str | None,
    ) -> Any:
        name_field = _NAME_FIELD[kind]
        conflicts = find_name_conflicts(
            await self.repository.find(kind), name_field, values.get(name_field)
        )
        if conflicts and on_duplicate == DuplicateResolution.CHECK:
            raise ConflictError(
                f"A record named '{values.get(name_field)}' already exists",
                details={"existing": conflicts[0].model_dump(mode="json", by_alias=True)},
            )
        if conflicts and on_duplicate == DuplicateResolution.REPLACE:
            conflict_ids = [c.id for c in conflicts]
            target_id = replace_id or conflict_ids[0]
            if target_id not in conflict_ids:
                raise ValidationFailed(
                    "replaceId must be one of the records with the same name",
                    details={"replaceId": target_id, "conflicts": conflict_ids},
                )
            record = await self.repository.update(kind, target_id, values)
            if record is None:
                raise NotFoundError(f"Record to replace not found: {target_id}")
            logger.info("directory.record_replaced", kind=kind.value, record_id=target_id)
            return record
        return await self.repository.create(kind, values)

    async def _update_with_duplicate_check(
        self,
        kind: EntityKind,
        record_id: str,
        values: dict[str, Any],
        on_duplicate: DuplicateResolution,
    ) -> Any:
        name_field = _NAME_FIELD[kind]
        if name_field in values and on_duplicate == DuplicateResolution.CHECK:
            conflicts = find_name_conflicts(
                await self.repository.find(kind), name_field, values[name_field], record_id
            )
            if conflicts:
                raise ConflictError(
                    f"A record named '{values[name_field]}' already exists",
                    details={"existing": conflicts[0].model_dump(mode="json", by_alias=True)},
                )
        record = await self.repository.update(kind, record_id, values)
        if record is None:
            raise NotFoundError(f"Record not found: {record_id}")
        return record

    # ── Imports ─────────────────────────────────────────────────────────────

    async def _import(
        self,
        kind: EntityKind,
        entity: str,
        rows: Sequence[dict[str, Any]],
        build_row: Callable[[dict[str, Any]], tuple[dict[str, Any], list[str]]],
        empty_message: str,
        extra: dict[str, Any] | None = None,
    ) -> ImportReport:
        if not rows:
            raise ValidationFailed(NO_IMPORT_DATA_MESSAGE)
        prepared = prepare_import(rows, build_row)
        row_errors = prepared.row_errors[: self.max_row_errors]
        if not prepared.valid:
            record_import_rows(entity, 0, prepared.skipped)
            logger.info("import.rejected", entity=entity, rows=prepared.total)
            return ImportReport(
                message=empty_message,
                imported=0,
                skipped=prepared.skipped,
                row_errors=row_errors,
            )
        rows = [{**values, **(extra or {})} for values in prepared.valid]
        created = await self.repository.bulk_create(kind, rows)
        record_import_rows(entity, len(created), prepared.skipped)
        logger.info(
            "import.completed",
            entity=entity,
            imported=len(created),
            skipped=prepared.skipped,
        )
        return ImportReport(
            message=f"Successfully imported {len(created)} records",
            imported=len(created),
            skipped=prepared.skipped,
            row_errors=row_errors,
        )

    # ── Fund Tracker ────────────────────────────────────────────────────────

    async def list_funds(self) -> list[FundRead]:
        return await self.repository.find(EntityKind.FUND, order_by="created_at", descending=True)

    async def get_fund(self, fund_id: str) -> FundRead:
        fund = await self.repository.get(EntityKind.FUND, fund_id)
        if fund is None:
            raise NotFoundError(f"Fund not found: {fund_id}")
        return fund

    async def create_fund(
        self,
        data: FundCreate,
        on_duplicate: DuplicateResolution = DuplicateResolution.CHECK,
        replace_id: str | None = None,
    ) -> FundRead:
        return await self._save_with_duplicate_check(
            EntityKind.FUND, data.model_dump(), on_duplicate, replace_id
        )

    async def update_fund(
        self,
        fund_id: str,
        data: FundUpdate,
        on_duplicate: DuplicateResolution = DuplicateResolution.CHECK,
    ) -> FundRead:
        return await self._update_with_duplicate_check(
            EntityKind.FUND, fund_id, data.model_dump(exclude_unset=True), on_duplicate
        )

    async def delete_fund(self, fund_id: str) -> None:
        await self.get_fund(fund_id)
        await self.repository.delete(EntityKind.FUND, fund_id)

    async def bulk_delete_funds(self, ids: Sequence[str]) -> int:
        if not ids:
            raise ValidationFailed("ids must be a non-empty list")
        deleted = await self.repository.delete_where(EntityKind.FUND, {"id": list(ids)})
        logger.info("fund.bulk_deleted", requested=len(ids), deleted=deleted)
        return deleted

    async def import_funds(self, rows: Sequence[dict[str, Any]]) -> ImportReport:
        """Import fund tracker rows as returned by the spreadsheet preview."""
        return await self._import(
            EntityKind.FUND, "fund_tracker", rows, build_fund_row, FUND_NO_VALID_ROWS_MESSAGE
        )

    # ── Client Master Data ──────────────────────────────────────────────────

    async def can_view_master_data(self, user_id: str, role: UserRole | str) -> bool:
        if UserRole(role) == UserRole.ADMIN:
            return True
        permission = await self.get_permission(user_id)
        return bool(permission and permission.has_view_access)

    async def list_master_data(self, user_id: str, role: UserRole | str) -> list[MasterDataRead]:
        """All contacts, ordered by name, for admins and approved users; [] otherwise."""
        if not await self.can_view_master_data(user_id, role):
            return []
        return await self.repository.find(EntityKind.MASTER_DATA, order_by="name")

    async def get_master_data(self, record_id: str) -> MasterDataRead:
        record = await self.repository.get(EntityKind.MASTER_DATA, record_id)
        if record is None:
            raise NotFoundError(f"Client master data not found: {record_id}")
        return record

    async def create_master_data(
        self,
        data: MasterDataCreate,
        on_duplicate: DuplicateResolution = DuplicateResolution.CHECK,
        replace_id: str | None = None,
    ) -> MasterDataRead:
        return await self._save_with_duplicate_check(
            EntityKind.MASTER_DATA, data.model_dump(), on_duplicate, replace_id
        )

    async def update_master_data(
        self,
        record_id: str,
        data: MasterDataUpdate,
        on_duplicate: DuplicateResolution = DuplicateResolution.CHECK,
    ) -> MasterDataRead:
        return await self._update_with_duplicate_check(
            EntityKind.MASTER_DATA, record_id, data.model_dump(exclude_unset=True), on_duplicate
        )

    async def delete_master_data(self, record_id: str, role: UserRole | str) -> None:
        _require_admin(role, "delete client master data")
        await self.get_master_data(record_id)
        await self.repository.delete(EntityKind.MASTER_DATA, record_id)

    async def bulk_delete_master_data(self, ids: Sequence[str], role: UserRole | str) -> int:
        _require_admin(role, "delete client master data")
        if not ids:
            raise ValidationFailed("ids must be a non-empty list")
        deleted = await self.repository.delete_where(EntityKind.MASTER_DATA, {"id": list(ids)})
        logger.info("master_data.bulk_deleted", requested=len(ids), deleted=deleted)
        return deleted

    async def import_master_data(
        self, rows: Sequence[dict[str, Any]], user_id: str | None
    ) -> ImportReport:
        """Import previewed contact rows, attributed to ``user_id``."""
        if not user_id:
            raise ValidationFailed("User ID is required")
        return await self._import(
            EntityKind.MASTER_DATA,
            "client_master_data",
            rows,
            build_master_data_row,
            MASTER_DATA_NO_VALID_ROWS_MESSAGE,
            extra={"added_by": user_id},
        )

    # ── Access Permissions ──────────────────────────────────────────────────

    async def get_permission(self, user_id: str) -> PermissionRead | None:
        rows = await self.repository.find(EntityKind.PERMISSION, {"user_id": user_id})
        return rows[0] if rows else None

    async def request_access(self, user_id: str) -> PermissionRead:
        """Open (or refresh) a user's request to view client master data."""
        if await self.repository.get(EntityKind.USER, user_id) is None:
            raise NotFoundError(f"User not found: {user_id}")
        row = await self.get_permission(user_id)
        values = request_transition(row)
        if row is None:
            permission = await self.repository.create(
                EntityKind.PERMISSION, {"user_id": user_id, **values}
            )
        else:
            permission = await self.repository.update(EntityKind.PERMISSION, row.id, values)
        logger.info("permission.requested", user_id=user_id)
        return permission

    async def approve_access(
        self, user_id: str, approved_by: str, role: UserRole | str
    ) -> PermissionRead:
        row = await self.get_permission(user_id)
        values = approve_transition(row, approved_by, role)
        if await self.repository.get(EntityKind.USER, approved_by) is None:
            raise NotFoundError(f"Approver not found: {approved_by}")
        permission = await self.repository.update(EntityKind.PERMISSION, row.id, values)
        logger.info("permission.approved", user_id=user_id, approved_by=approved_by)
        return permission

    async def revoke_access(self, user_id: str, role: UserRole | str) -> PermissionRead:
        row = await self.get_permission(user_id)
        values = revoke_transition(row, role)
        permission = await self.repository.update(EntityKind.PERMISSION, row.id, values)
        logger.info("permission.revoked", user_id=user_id)
        return permission

    async def _with_users(self, rows: Sequence[PermissionRead]) -> list[PermissionWithUser]:
        user_ids = sorted({r.user_id for r in rows})
        users = {
            u.id: u
            for u in (
                await self.repository.find(EntityKind.USER, {"id": user_ids})
                if user_ids else []
            )
        }
        result = []
        for row in rows:
            user = users.get(row.user_id)
            result.append(PermissionWithUser(
                **row.model_dump(),
                user_name=user.full_name if user else None,
                user_email=user.email if user else None,
            ))
        return result

    async def list_pending_requests(self, role: UserRole | str) -> list[PermissionWithUser]:
        """Open requests, newest first (admin only)."""
        _require_admin(role, "review master data access requests")
        rows = await self.repository.find(EntityKind.PERMISSION, {"has_view_access": False})
        pending = [r for r in rows if r.requested_at is not None]
        pending.sort(key=lambda r: r.requested_at, reverse=True)
        return await self._with_users(pending)

    async def list_approved(self, role: UserRole | str) -> list[PermissionWithUser]:
        """Granted access, most recently approved first (admin only)."""
        _require_admin(role, "review master data access")
        rows = await self.repository.find(EntityKind.PERMISSION, {"has_view_access": True})
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        rows.sort(key=lambda r: r.approved_at or epoch, reverse=True)
        return await self._with_users(rows)
