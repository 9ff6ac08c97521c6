"""SQLAlchemy persistence for bulk imports.

Every batch runs in its own session and transaction so that import batches can
write concurrently and commit independently. Reads (reference tables, existing
natural keys) each use a short-lived session of their own.
"""
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.imports.entities.base import ImportHandler
from app.imports.references import ReferenceEntry
from app.imports.schema import Association, ReferenceSource

logger = logging.getLogger(__name__)


class SqlImportTransaction:
    """Bulk write operations bound to one open transaction."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def bulk_create(self, model, records: list[dict[str, Any]]) -> list[uuid.UUID]:
        """Insert all records in one statement; ids come back in input order."""
        if not records:
            return []
        result = await self._db.execute(
            insert(model).returning(model.id, sort_by_parameter_order=True),
            records,
        )
        return list(result.scalars().all())

    async def bulk_update(self, model, patches: list[dict[str, Any]]) -> None:
        """ORM bulk UPDATE by primary key; each patch carries its own `id`."""
        if not patches:
            return
        await self._db.execute(update(model), patches)

    async def replace_associations(
        self,
        association: Association,
        parent_ids: list[uuid.UUID],
        rows: list[dict[str, Any]],
    ) -> None:
        """Delete every join row for the parents, then insert the new set."""
        if not parent_ids:
            return
        parent_col = getattr(association.model, association.parent_column)
        await self._db.execute(delete(association.model).where(parent_col.in_(parent_ids)))
        if rows:
            await self._db.execute(insert(association.model), rows)


class SqlImportStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from app.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def fetch_reference(self, source: ReferenceSource, tenant_id: uuid.UUID) -> list[ReferenceEntry]:
        model = source.model
        alias_col = getattr(model, source.alias_column) if source.alias_column else None
        cols = [model.id, model.name] + ([alias_col] if alias_col is not None else [])
        stmt = select(*cols)
        if source.tenant_scoped:
            stmt = stmt.where(model.tenant_id == tenant_id)
        if hasattr(model, "deleted_at"):
            stmt = stmt.where(model.deleted_at.is_(None))

        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()
        return [
            ReferenceEntry(id=row[0], name=row[1], alias=row[2] if alias_col is not None else None)
            for row in rows
        ]

    async def fetch_existing(
        self,
        handler: ImportHandler,
        tenant_id: uuid.UUID,
        keys: list[str],
    ) -> dict[str, uuid.UUID]:
        """Map lower-cased natural key → id for live rows of this tenant."""
        model = handler.model
        key_col = getattr(model, handler.natural_key_column)
        stmt = select(model.id, key_col).where(
            model.tenant_id == tenant_id,
            func.lower(key_col).in_(keys),
            model.deleted_at.is_(None),
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()
        return {str(key).strip().lower(): row_id for row_id, key in rows}

    async def export_records(self, handler: ImportHandler, tenant_id: uuid.UUID) -> list[dict[str, Any]]:
        async with self._session_factory() as db:
            return await handler.export_records(db, tenant_id)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlImportTransaction]:
        """Commit on clean exit, roll back if the block raises."""
        async with self._session_factory() as db:
            async with db.begin():
                yield SqlImportTransaction(db)
