"""Shared in-memory fakes for import tests.

FakeImportStore stands in for SqlImportStore: tables are dicts keyed by
__tablename__, each transaction buffers its writes and applies them only on
clean exit, and reads are counted so tests can assert on query volume.
"""
import io
import uuid
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, Callable

import pytest
from openpyxl import Workbook

from app.imports.references import ReferenceEntry

TENANT_ID = uuid.UUID("0b7f3a52-5d7e-4c1a-9a43-3f1f6b0c2d11")
OTHER_TENANT_ID = uuid.UUID("7c2d9e10-1f4b-4b8e-8d6a-52a3c9e0f7aa")
ACTOR_ID = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")


# ─── Helpers ──────────────────────────────────────────────────────────────────

def make_workbook(rows: list[list[Any]], title: str = "Sheet1") -> bytes:
    """Build an .xlsx file whose first sheet holds `rows` starting at A1."""
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class FakeTransaction:
    def __init__(self, store: "FakeImportStore"):
        self._store = store
        self.ops: list[tuple] = []

    async def bulk_create(self, model, records: list[dict]) -> list[uuid.UUID]:
        self._store.bulk_create_sizes.append(len(records))
        self._store.check_failure(model, records)
        ids = []
        for record in records:
            new_id = uuid.uuid4()
            self.ops.append(("insert", model.__tablename__, new_id, dict(record)))
            ids.append(new_id)
        return ids

    async def bulk_update(self, model, patches: list[dict]) -> None:
        self._store.bulk_update_sizes.append(len(patches))
        self._store.check_failure(model, patches)
        for patch in patches:
            values = {k: v for k, v in patch.items() if k != "id"}
            self.ops.append(("update", model.__tablename__, patch["id"], values))

    async def replace_associations(self, association, parent_ids: list[uuid.UUID], rows: list[dict]) -> None:
        self.ops.append(("replace", association, list(parent_ids), [dict(r) for r in rows]))


class FakeImportStore:
    def __init__(self):
        self.tables: dict[str, dict[uuid.UUID, dict]] = {}
        self.associations: dict[str, list[dict]] = {}
        self.references: dict[str, list[tuple[ReferenceEntry, uuid.UUID | None]]] = {}
        self.export_rows: list[dict] = []
        self.reference_reads: Counter = Counter()
        self.existing_reads = 0
        self.bulk_create_sizes: list[int] = []
        self.bulk_update_sizes: list[int] = []
        self.commits = 0
        self.rollbacks = 0
        # (model, records) → True to make the write raise
        self.fail_when: Callable[[Any, list[dict]], bool] | None = None

    # ─── Seeding ───

    def add_reference(self, source_name: str, name: str, alias: str | None = None,
                      tenant_id: uuid.UUID | None = TENANT_ID) -> uuid.UUID:
        ref_id = uuid.uuid4()
        self.references.setdefault(source_name, []).append((ReferenceEntry(ref_id, name, alias), tenant_id))
        return ref_id

    def add_row(self, table: str, **values) -> uuid.UUID:
        row_id = values.pop("id", None) or uuid.uuid4()
        self.tables.setdefault(table, {})[row_id] = values
        return row_id

    def rows(self, table: str) -> dict[uuid.UUID, dict]:
        return self.tables.get(table, {})

    def check_failure(self, model, records: list[dict]) -> None:
        if self.fail_when is not None and self.fail_when(model, records):
            raise RuntimeError("duplicate key value violates unique constraint\nDETAIL: simulated")

    # ─── Store protocol ───

    async def fetch_reference(self, source, tenant_id: uuid.UUID) -> list[ReferenceEntry]:
        self.reference_reads[source.name] += 1
        return [
            entry for entry, owner in self.references.get(source.name, [])
            if not source.tenant_scoped or owner == tenant_id
        ]

    async def fetch_existing(self, handler, tenant_id: uuid.UUID, keys: list[str]) -> dict[str, uuid.UUID]:
        self.existing_reads += 1
        column = handler.natural_key_column
        return {
            str(row[column]).strip().lower(): row_id
            for row_id, row in self.rows(handler.model.__tablename__).items()
            if row.get("tenant_id") == tenant_id and row.get("deleted_at") is None
            and str(row[column]).strip().lower() in keys
        }

    async def export_records(self, handler, tenant_id: uuid.UUID) -> list[dict]:
        return list(self.export_rows)

    @asynccontextmanager
    async def transaction(self):
        tx = FakeTransaction(self)
        try:
            yield tx
        except Exception:
            self.rollbacks += 1
            raise
        self._apply(tx.ops)
        self.commits += 1

    def _apply(self, ops: list[tuple]) -> None:
        for op in ops:
            if op[0] == "insert":
                _, table, row_id, values = op
                self.tables.setdefault(table, {})[row_id] = values
            elif op[0] == "update":
                _, table, row_id, values = op
                self.tables[table][row_id].update(values)
            else:
                _, assoc, parent_ids, rows = op
                table = assoc.model.__tablename__
                kept = [r for r in self.associations.get(table, []) if r[assoc.parent_column] not in parent_ids]
                self.associations[table] = kept + rows


class FakeTranslationStore:
    def __init__(self, fail_fields: set[str] | None = None):
        self.stored: list[dict] = []
        self._fail_fields = fail_fields or set()

    async def store(self, tenant_id, entity_type, entity_id, field_name, translations, source_language="en") -> int:
        if field_name in self._fail_fields:
            raise RuntimeError(f"cannot store {field_name}")
        self.stored.append({
            "tenant_id": tenant_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "field_name": field_name,
            "translations": dict(translations),
        })
        return len(translations)


class RecordingDispatcher:
    """Collects jobs instead of running them."""

    def __init__(self):
        self.jobs = []

    def dispatch(self, job) -> None:
        self.jobs.append(job)


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def store() -> FakeImportStore:
    return FakeImportStore()


@pytest.fixture
def seeded_store() -> FakeImportStore:
    """Store with the roles and branches the employee samples refer to."""
    s = FakeImportStore()
    for name, label in (("manager", "Manager"), ("cashier", "Cashier"), ("chef", "Kitchen Chef")):
        s.add_reference("roles", name, alias=label, tenant_id=None)
    s.add_reference("branches", "Main Branch")
    s.add_reference("branches", "Airport Kiosk")
    s.add_reference("branches", "Other Tenant Branch", tenant_id=OTHER_TENANT_ID)
    return s


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
