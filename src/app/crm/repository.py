"""CRM persistence gateway -- async CRUD for every entity family.

Provides CrmRepository with the session_factory callable pattern. Each
public method addresses a table through its EntityKind and returns the
Pydantic read model registered for it in READ_SCHEMAS, so callers never
see ORM instances.

The gateway is deliberately thin: ordering, equality filters and bulk
writes only. Visibility, conversion and cascades live in CrmService so
they run unchanged against the in-memory test double.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import Uuid, delete, false, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.crm.errors import ConflictError
from src.app.crm.models import MODELS, UserModel
from src.app.crm.schemas import READ_SCHEMAS, EntityKind, UserRead

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_read(kind: EntityKind, model: Any) -> Any:
    """Convert an ORM instance to the read schema registered for ``kind``."""
    return READ_SCHEMAS[kind].model_validate(model, from_attributes=True)


def _plain(values: dict[str, Any]) -> dict[str, Any]:
    """Unwrap enum members so string columns receive their wire values."""
    out: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = [v.value if isinstance(v, Enum) else v for v in value]
        out[key] = value
    return out


def _is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _where(model: Any, filters: dict[str, Any] | None) -> list[Any]:
    """Build equality clauses; list/tuple/set values become IN, None becomes IS NULL.

    On UUID columns a value that is not a UUID can match no row, so it is
    dropped from an IN list and turns a scalar comparison into FALSE.
    """
    clauses = []
    for field, value in (filters or {}).items():
        column = getattr(model, field)
        uuid_column = isinstance(column.type, Uuid)
        if value is None:
            clauses.append(column.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            values = [getattr(v, "value", v) for v in value]
            if uuid_column:
                values = [v for v in values if _is_uuid(v)]
            clauses.append(column.in_(values))
        elif uuid_column and not _is_uuid(value):
            clauses.append(false())
        else:
            clauses.append(column == getattr(value, "value", value))
    return clauses


# ── Repository ──────────────────────────────────────────────────────────────


class CrmRepository:
    """Async CRUD operations for all CRM entities.

    Every method opens its own session from the factory and commits before
    returning; there is no cross-call transaction. Ids that are not valid
    UUIDs are treated as missing rather than sent to the database.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Generic Access ──────────────────────────────────────────────────────

    async def get(self, kind: EntityKind, record_id: str) -> Any | None:
        """Get one record by primary key.

        Args:
            kind: Entity family.
            record_id: UUID string.

        Returns:
            The read model, or None if no row matches.
        """
        if not _is_uuid(record_id):
            return None
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            model = await session.get(model_cls, str(record_id))
            if model is None:
                return None
            return _model_to_read(kind, model)

    async def find(
        self,
        kind: EntityKind,
        filters: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Any]:
        """List records matching equality filters.

        Args:
            kind: Entity family.
            filters: Column name -> value (list for IN, None for IS NULL).
            order_by: Optional column name to sort on.
            descending: Sort direction for ``order_by``.
            limit: Optional maximum row count.

        Returns:
            List of read models.
        """
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            stmt = select(model_cls).where(*_where(model_cls, filters))
            if order_by:
                column = getattr(model_cls, order_by)
                stmt = stmt.order_by(column.desc() if descending else column.asc())
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [_model_to_read(kind, m) for m in result.scalars().all()]

    async def create(self, kind: EntityKind, values: dict[str, Any]) -> Any:
        """Insert one record and return it with server defaults populated.

        Raises:
            ConflictError: If a unique or foreign-key constraint rejects the row.
        """
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            model = model_cls(**_plain(values))
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("crm.create_rejected", kind=kind.value, error=str(exc.orig))
                raise ConflictError(f"{kind.value} violates a database constraint") from exc
            await session.refresh(model)
            return _model_to_read(kind, model)

    async def bulk_create(self, kind: EntityKind, rows: Iterable[dict[str, Any]]) -> list[Any]:
        """Insert many records in a single commit.

        Returns:
            Read models in input order.
        """
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            models = [model_cls(**_plain(values)) for values in rows]
            if not models:
                return []
            session.add_all(models)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("crm.bulk_create_rejected", kind=kind.value, error=str(exc.orig))
                raise ConflictError(f"{kind.value} batch violates a database constraint") from exc
            for model in models:
                await session.refresh(model)
            return [_model_to_read(kind, m) for m in models]

    async def update(
        self, kind: EntityKind, record_id: str, values: dict[str, Any]
    ) -> Any | None:
        """Apply a partial update to one record.

        ``updated_at`` is refreshed whenever the table has that column.

        Returns:
            The updated read model, or None if the record does not exist.
        """
        if not _is_uuid(record_id):
            return None
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            model = await session.get(model_cls, str(record_id))
            if model is None:
                return None
            for field, value in _plain(values).items():
                setattr(model, field, value)
            if hasattr(model_cls, "updated_at"):
                model.updated_at = datetime.now(timezone.utc)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("crm.update_rejected", kind=kind.value, error=str(exc.orig))
                raise ConflictError(f"{kind.value} update violates a database constraint") from exc
            await session.refresh(model)
            return _model_to_read(kind, model)

    async def update_where(
        self, kind: EntityKind, filters: dict[str, Any], values: dict[str, Any]
    ) -> int:
        """Update every row matching ``filters``; returns the affected count."""
        model_cls = MODELS[kind]
        values = _plain(values)
        if hasattr(model_cls, "updated_at"):
            values["updated_at"] = datetime.now(timezone.utc)
        async for session in self._session_factory():
            stmt = update(model_cls).where(*_where(model_cls, filters)).values(**values)
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        """Delete one record by id. Missing rows are not an error.

        Raises:
            ConflictError: If other rows still reference the record.
        """
        if not _is_uuid(record_id):
            return
        await self.delete_where(kind, {"id": str(record_id)})

    async def delete_where(self, kind: EntityKind, filters: dict[str, Any]) -> int:
        """Delete every row matching ``filters``; returns the affected count."""
        model_cls = MODELS[kind]
        async for session in self._session_factory():
            stmt = delete(model_cls).where(*_where(model_cls, filters))
            try:
                result = await session.execute(stmt)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("crm.delete_rejected", kind=kind.value, error=str(exc.orig))
                raise ConflictError(f"{kind.value} is still referenced by other records") from exc
            return result.rowcount or 0

    # ── Credentials ─────────────────────────────────────────────────────────

    async def find_user_credentials(self, login: str) -> tuple[UserRead, str] | None:
        """Look up a user by email or username.

        Returns:
            (user, password_hash) if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(UserModel).where(
                or_(UserModel.email == login, UserModel.username == login)
            )
            result = await session.execute(stmt)
            model = result.scalars().first()
            if model is None:
                return None
            return _model_to_read(EntityKind.USER, model), model.password_hash

    async def get_user_credentials(self, user_id: str) -> tuple[UserRead, str] | None:
        """Get a user and their password hash by id."""
        if not _is_uuid(user_id):
            return None
        async for session in self._session_factory():
            model = await session.get(UserModel, str(user_id))
            if model is None:
                return None
            return _model_to_read(EntityKind.USER, model), model.password_hash
