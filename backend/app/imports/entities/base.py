"""Base class for per-entity import handlers.

A handler binds an EntityImportConfig to its ORM model and knows how to turn a
validated ImportIntent into column values. The generic pipeline never looks
at entity-specific columns directly.
"""
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.imports.references import ReferenceCatalog
from app.imports.schema import Association, EntityImportConfig

if TYPE_CHECKING:
    from app.imports.validation import ImportIntent


@dataclass(frozen=True)
class ImportContext:
    tenant_id: uuid.UUID
    actor_id: uuid.UUID | None
    catalog: ReferenceCatalog


class ImportHandler:
    config: EntityImportConfig
    model: Any
    natural_key_column: str
    associations: tuple[Association, ...] = ()

    def check_row(self, values: dict[str, Any], is_update: bool = False) -> None:
        """Entity-specific checks on a coerced row. Raise RowError to reject it.

        `is_update` is True when the natural key already matches a stored row.
        """

    def build_record(self, intent: "ImportIntent", ctx: ImportContext) -> dict[str, Any]:
        """Column values for a new row. Every record in a batch must share the same keys."""
        raise NotImplementedError

    def build_patch(self, intent: "ImportIntent", ctx: ImportContext) -> dict[str, Any]:
        """Column values to change on an existing row (primary key excluded)."""
        raise NotImplementedError

    async def export_records(self, db: AsyncSession, tenant_id: uuid.UUID) -> list[dict[str, Any]]:
        """Current rows keyed by import field name, for the export workbook."""
        raise NotImplementedError
