"""Post-import enrichment: machine translation of text fields.

Runs strictly after the import outcome has been handed back. All translatable
values of every successfully written row are flattened into one batch and sent
in a single translate call; results are stored per (entity, field). Nothing
here can alter the outcome: every failure is logged and dropped.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from app.ai.translator import TranslationItem, translate_batch
from app.core.config import settings
from app.imports.coercion import is_blank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentItem:
    entity_id: uuid.UUID
    field_name: str
    text: str


@dataclass
class EnrichmentJob:
    tenant_id: uuid.UUID
    entity_type: str
    items: list[EnrichmentItem] = field(default_factory=list)
    source_language: str = "en"
    target_languages: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form for the Celery queue."""
        return {
            "tenant_id": str(self.tenant_id),
            "entity_type": self.entity_type,
            "source_language": self.source_language,
            "target_languages": list(self.target_languages),
            "items": [
                {"entity_id": str(i.entity_id), "field_name": i.field_name, "text": i.text}
                for i in self.items
            ],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EnrichmentJob":
        return cls(
            tenant_id=uuid.UUID(payload["tenant_id"]),
            entity_type=payload["entity_type"],
            source_language=payload.get("source_language", "en"),
            target_languages=list(payload.get("target_languages", [])),
            items=[
                EnrichmentItem(uuid.UUID(i["entity_id"]), i["field_name"], i["text"])
                for i in payload.get("items", [])
            ],
        )


def build_job(tenant_id: uuid.UUID, handler, processed: list) -> EnrichmentJob:
    """Flatten translatable values of every processed (intent, entity_id) pair."""
    items: list[EnrichmentItem] = []
    for intent, entity_id in processed:
        for field_name in handler.config.translate_fields:
            value = intent.resolved_fields.get(field_name)
            if value is None or is_blank(value):
                continue
            items.append(EnrichmentItem(entity_id, field_name, str(value).strip()))
    return EnrichmentJob(
        tenant_id=tenant_id,
        entity_type=handler.config.entity_type,
        items=items,
        source_language=settings.TRANSLATION_SOURCE_LANGUAGE,
        target_languages=settings.translation_target_languages,
    )


async def run_enrichment(job: EnrichmentJob, translate: Callable, store) -> int:
    """Translate the whole job in one call and store the results. Returns rows stored."""
    items = [TranslationItem(text=i.text, field_name=i.field_name) for i in job.items]
    results = await asyncio.to_thread(translate, items, job.target_languages, job.source_language)

    stored = 0
    for item, translations in zip(job.items, results):
        if not translations:
            continue
        try:
            stored += await store.store(
                job.tenant_id, job.entity_type, item.entity_id, item.field_name,
                translations, job.source_language,
            )
        except Exception as exc:
            logger.warning(
                "Failed to store translations for %s %s.%s: %s",
                job.entity_type, item.entity_id, item.field_name, exc,
            )
    return stored


class EnrichmentDispatcher:
    """Hands enrichment jobs off without ever blocking or failing the caller.

    backend="inline" runs the job as a detached asyncio task in this process;
    backend="celery" pushes it to the worker queue.
    """

    def __init__(self, translate: Callable | None = None, store=None, backend: str | None = None):
        self._translate = translate or translate_batch
        self._store = store
        self._backend = backend or settings.ENRICHMENT_BACKEND
        self._tasks: set[asyncio.Task] = set()

    def _get_store(self):
        if self._store is None:
            from app.services.translations import SqlTranslationStore
            self._store = SqlTranslationStore()
        return self._store

    def dispatch(self, job: EnrichmentJob) -> None:
        if not job.items:
            return
        if self._backend == "celery":
            self._enqueue(job)
            return
        task = asyncio.get_running_loop().create_task(self._run_safely(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _enqueue(self, job: EnrichmentJob) -> None:
        try:
            from app.workers.enrichment_tasks import translate_import_fields
            translate_import_fields.delay(job.to_payload())
            logger.info("Queued translation of %d %s fields", len(job.items), job.entity_type)
        except Exception as exc:
            logger.error("Failed to queue %s translation job: %s", job.entity_type, exc)

    async def _run_safely(self, job: EnrichmentJob) -> None:
        try:
            stored = await run_enrichment(job, self._translate, self._get_store())
            logger.info(
                "Enrichment for %s: %d fields translated, %d translations stored",
                job.entity_type, len(job.items), stored,
            )
        except Exception as exc:
            logger.error("Enrichment for %s failed: %s", job.entity_type, exc, exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_idle(self, timeout: float | None = None) -> None:
        """Wait for in-flight inline jobs, e.g. on shutdown or in tests."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("%d enrichment jobs still running after %.1fs", len(pending), timeout or 0)


_dispatcher: EnrichmentDispatcher | None = None


def get_dispatcher() -> EnrichmentDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EnrichmentDispatcher()
    return _dispatcher
