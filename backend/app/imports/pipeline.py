"""Bulk import pipeline: parse → resolve → validate → execute → enrich.

Only StructuralImportError propagates. Row and batch failures come back as
`Row <n>: <message>` strings on the ImportOutcome, and translation runs after
the outcome is returned, through the enrichment dispatcher.
"""
import logging
import time
import uuid

from app.imports.enrichment import EnrichmentDispatcher, build_job
from app.imports.entities.base import ImportContext, ImportHandler
from app.imports.executor import BatchExecutor
from app.imports.references import build_catalog
from app.imports.template import generate_export, generate_sample
from app.imports.validation import validate_rows
from app.imports.workbook import parse_workbook
from app.schemas.imports import ImportOutcome

logger = logging.getLogger(__name__)


async def run_import(
    handler: ImportHandler,
    content: bytes,
    *,
    tenant_id: uuid.UUID,
    store,
    dispatcher: EnrichmentDispatcher,
    actor_id: uuid.UUID | None = None,
    dry_run: bool = False,
) -> ImportOutcome:
    """Import one workbook for one tenant.

    With dry_run=True nothing is written or translated; `success` then counts
    rows that would have been written.
    """
    started = time.monotonic()
    entity_type = handler.config.entity_type

    sheet = parse_workbook(content, handler.config)
    catalog = await build_catalog(store, handler, sheet.rows, tenant_id)
    validation = validate_rows(sheet.rows, handler, catalog)

    if dry_run:
        return ImportOutcome(
            success=len(validation.intents),
            failed=len(validation.errors),
            errors=validation.errors,
        )

    ctx = ImportContext(tenant_id=tenant_id, actor_id=actor_id, catalog=catalog)
    result = await BatchExecutor(store, handler, ctx).run(validation.intents)

    outcome = ImportOutcome(
        success=result.success,
        failed=len(validation.errors) + result.failed,
        errors=validation.errors + result.errors,
    )
    logger.info(
        "Import %s for tenant %s: %d ok, %d failed in %dms",
        entity_type, tenant_id, outcome.success, outcome.failed,
        int((time.monotonic() - started) * 1000),
    )

    if result.processed and handler.config.translate_fields:
        try:
            dispatcher.dispatch(build_job(tenant_id, handler, result.processed))
        except Exception as exc:
            logger.error("Could not schedule %s translation: %s", entity_type, exc)
    return outcome


async def build_template(handler: ImportHandler, *, tenant_id: uuid.UUID, store) -> bytes:
    """Sample workbook with the tenant's current names on each reference sheet."""
    lists: dict[str, list[str]] = {}
    for sheet in handler.config.reference_sheets:
        entries = await store.fetch_reference(sheet.source, tenant_id)
        lists[sheet.title] = sorted((e.name for e in entries), key=str.lower)
    return generate_sample(handler.config, lists)


async def build_export(handler: ImportHandler, *, tenant_id: uuid.UUID, store) -> bytes:
    records = await store.export_records(handler, tenant_id)
    logger.info("Exporting %d %s records for tenant %s", len(records), handler.config.entity_type, tenant_id)
    return generate_export(handler.config, records)
