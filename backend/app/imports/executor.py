"""Batch reconciliation: persist validated intents with bounded parallelism.

Intents are split into an update set and a create set which run concurrently.
Each set is cut into fixed-size batches; batches run concurrently under a
semaphore. A batch is one transaction: one bulk write for the primary rows and,
per association table, one delete-by-parent plus one bulk insert. If the bulk
write fails the batch is replayed row by row so a single bad row only fails
itself. Every concurrent unit is joined with return_exceptions=True; one
batch blowing up never cancels its siblings.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from app.core.config import settings
from app.imports.entities.base import ImportContext, ImportHandler
from app.imports.errors import row_message
from app.imports.validation import ImportIntent

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    processed: list[tuple[ImportIntent, uuid.UUID]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> int:
        return len(self.processed)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def merge(self, other: "BatchResult") -> None:
        self.processed.extend(other.processed)
        self.errors.extend(other.errors)


def describe_write_error(exc: BaseException) -> str:
    """Short, user-facing text for a failed write (first line of the DB error)."""
    orig = getattr(exc, "orig", None)
    text = str(orig if orig is not None else exc).strip()
    return text.splitlines()[0] if text else exc.__class__.__name__


def chunk(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchExecutor:
    def __init__(
        self,
        store,
        handler: ImportHandler,
        ctx: ImportContext,
        batch_size: int | None = None,
        max_concurrency: int | None = None,
    ):
        self._store = store
        self._handler = handler
        self._ctx = ctx
        self._batch_size = batch_size or settings.import_batch_size
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.IMPORT_MAX_CONCURRENT_BATCHES)

    # ─── Public ───

    async def run(self, intents: list[ImportIntent]) -> BatchResult:
        updates = [i for i in intents if i.is_update]
        creates = [i for i in intents if not i.is_update]

        results = await asyncio.gather(
            self._run_set(updates, is_update=True),
            self._run_set(creates, is_update=False),
            return_exceptions=True,
        )

        total = BatchResult()
        for intents_in_set, result in zip((updates, creates), results):
            if isinstance(result, BaseException):
                logger.error("Import %s set failed: %s", self._handler.config.entity_type, result, exc_info=result)
                total.errors.extend(
                    row_message(i.row_number, f"Batch processing failed: {describe_write_error(result)}")
                    for i in intents_in_set
                )
            else:
                total.merge(result)
        return total

    # ─── Set / batch orchestration ───

    async def _run_set(self, intents: list[ImportIntent], is_update: bool) -> BatchResult:
        out = BatchResult()
        if not intents:
            return out
        batches = chunk(intents, self._batch_size)
        results = await asyncio.gather(
            *(self._guarded_batch(b, is_update) for b in batches),
            return_exceptions=True,
        )
        for batch, result in zip(batches, results):
            if isinstance(result, BaseException):
                logger.error("Import batch crashed (%d rows): %s", len(batch), result, exc_info=result)
                out.errors.extend(
                    row_message(i.row_number, f"Batch processing failed: {describe_write_error(result)}")
                    for i in batch
                )
            else:
                out.merge(result)
        return out

    async def _guarded_batch(self, batch: list[ImportIntent], is_update: bool) -> BatchResult:
        async with self._semaphore:
            try:
                written = await self._write(batch, is_update)
                return BatchResult(processed=written)
            except Exception as exc:
                logger.warning(
                    "Bulk %s of %d %s rows failed, retrying individually: %s",
                    "update" if is_update else "insert", len(batch),
                    self._handler.config.entity_type, describe_write_error(exc),
                )
            return await self._write_individually(batch, is_update)

    async def _write_individually(self, batch: list[ImportIntent], is_update: bool) -> BatchResult:
        out = BatchResult()
        for intent in batch:
            try:
                out.processed.extend(await self._write([intent], is_update))
            except Exception as exc:
                out.errors.append(row_message(intent.row_number, describe_write_error(exc)))
        return out

    # ─── One transaction ───

    async def _write(self, batch: list[ImportIntent], is_update: bool) -> list[tuple[ImportIntent, uuid.UUID]]:
        handler = self._handler
        async with self._store.transaction() as tx:
            if is_update:
                patches = [{**handler.build_patch(i, self._ctx), "id": i.target_id} for i in batch]
                await tx.bulk_update(handler.model, patches)
                ids = [i.target_id for i in batch]
            else:
                records = [handler.build_record(i, self._ctx) for i in batch]
                ids = await tx.bulk_create(handler.model, records)
                if len(ids) != len(batch):
                    raise RuntimeError(f"Bulk insert returned {len(ids)} ids for {len(batch)} rows")

            for assoc in handler.associations:
                owners = [(i, pid) for i, pid in zip(batch, ids) if assoc.field in i.resolved_fields]
                if not owners:
                    continue
                rows = []
                for intent, parent_id in owners:
                    rows.extend(assoc.rows(parent_id, intent.resolved_fields[assoc.field] or [], self._ctx.actor_id))
                await tx.replace_associations(assoc, [pid for _, pid in owners], rows)

        return list(zip(batch, ids))
