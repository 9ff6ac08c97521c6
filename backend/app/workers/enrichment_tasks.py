"""Celery task for post-import translation (ENRICHMENT_BACKEND=celery)."""
import logging

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.enrichment_tasks.translate_import_fields", bind=True, max_retries=2)
def translate_import_fields(self, payload: dict):
    """Translate every field of one import in a single call, then store per (entity, field).

    Payload is EnrichmentJob.to_payload(). A failed translation call is retried;
    a failed store for one field is logged and skipped.
    """
    from app.ai.translator import TranslationError, TranslationItem, translate_batch
    from app.db.session import get_sync_session_factory
    from app.imports.enrichment import EnrichmentJob
    from app.services.translations import store_translations

    job = EnrichmentJob.from_payload(payload)
    if not job.items:
        return {"status": "skipped", "reason": "no_items"}

    items = [TranslationItem(text=i.text, field_name=i.field_name) for i in job.items]
    try:
        results = translate_batch(items, job.target_languages, job.source_language)
    except TranslationError as exc:
        logger.warning("translate_import_fields: %s translation failed: %s", job.entity_type, exc)
        raise self.retry(exc=exc, countdown=300)

    stored = 0
    Session = get_sync_session_factory()
    with Session() as db:
        for item, translations in zip(job.items, results):
            if not translations:
                continue
            try:
                with db.begin_nested():
                    stored += store_translations(
                        db, job.tenant_id, job.entity_type, item.entity_id, item.field_name,
                        translations, job.source_language,
                    )
            except Exception as exc:
                logger.warning(
                    "translate_import_fields: store failed for %s %s.%s: %s",
                    job.entity_type, item.entity_id, item.field_name, exc,
                )
        db.commit()

    logger.info("translate_import_fields: %s — %d translations stored", job.entity_type, stored)
    return {"status": "complete", "items": len(job.items), "stored": stored}
