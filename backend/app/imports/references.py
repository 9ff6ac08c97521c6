"""Reference resolution: name→id lookup tables and existing natural keys.

The catalog is built once per import with one read per reference source and
one read for existing natural keys, covering every row in the file.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from app.imports.coercion import is_blank

if TYPE_CHECKING:
    from app.imports.entities.base import ImportHandler
    from app.imports.schema import ReferenceSource
    from app.imports.workbook import RawRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceEntry:
    id: uuid.UUID
    name: str
    alias: str | None = None


def normalize_key(value: object) -> str:
    return str(value).strip().lower()


@dataclass
class ReferenceCatalog:
    lookups: dict[str, dict[str, uuid.UUID]] = field(default_factory=dict)
    names_by_id: dict[str, dict[uuid.UUID, str]] = field(default_factory=dict)
    existing: dict[str, uuid.UUID] = field(default_factory=dict)

    def add_source(self, source_name: str, entries: list[ReferenceEntry]) -> None:
        table: dict[str, uuid.UUID] = {}
        names: dict[uuid.UUID, str] = {}
        for entry in entries:
            table.setdefault(normalize_key(entry.name), entry.id)
            if entry.alias:
                table.setdefault(normalize_key(entry.alias), entry.id)
            names[entry.id] = entry.name
        self.lookups[source_name] = table
        self.names_by_id[source_name] = names

    def resolve(self, source_name: str, names: list[str]) -> tuple[list[uuid.UUID], list[str]]:
        """Return (ids, unresolved names), preserving order and dropping repeat ids."""
        table = self.lookups.get(source_name, {})
        ids: list[uuid.UUID] = []
        missing: list[str] = []
        for name in names:
            ref_id = table.get(normalize_key(name))
            if ref_id is None:
                missing.append(str(name))
            elif ref_id not in ids:
                ids.append(ref_id)
        return ids, missing

    def name_for(self, source_name: str, ref_id: uuid.UUID) -> str | None:
        return self.names_by_id.get(source_name, {}).get(ref_id)

    def existing_id(self, natural_key: object) -> uuid.UUID | None:
        return self.existing.get(normalize_key(natural_key))


def distinct_natural_keys(rows: list["RawRow"], key_field: str) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        value = row.values.get(key_field)
        if value is None or is_blank(value):
            continue
        seen.setdefault(normalize_key(value), None)
    return list(seen)


async def build_catalog(
    store,
    handler: "ImportHandler",
    rows: list["RawRow"],
    tenant_id: uuid.UUID,
) -> ReferenceCatalog:
    """Pre-fetch every lookup the import needs.

    One store read per distinct reference source and one for the natural keys
    present in the file, regardless of row count.
    """
    catalog = ReferenceCatalog()
    sources: list["ReferenceSource"] = handler.config.reference_sources()
    for source in sources:
        entries = await store.fetch_reference(source, tenant_id)
        catalog.add_source(source.name, entries)

    keys = distinct_natural_keys(rows, handler.config.natural_key)
    if keys:
        catalog.existing = await store.fetch_existing(handler, tenant_id, keys)

    logger.debug(
        "Reference catalog for %s: %s lookups, %d/%d natural keys already exist",
        handler.config.entity_type,
        {name: len(t) for name, t in catalog.lookups.items()},
        len(catalog.existing), len(keys),
    )
    return catalog
