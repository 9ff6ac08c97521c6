"""Translation storage: upserts machine translations per (entity, field, language)."""
import logging
import uuid
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

from app.models.translation import Translation

logger = logging.getLogger(__name__)


def store_translations(
    db: Session,
    tenant_id: uuid.UUID | str,
    entity_type: str,
    entity_id: uuid.UUID | str,
    field_name: str,
    translations: dict[str, str],
    source_language: str = "en",
) -> int:
    """Upsert all languages of one (entity, field). Returns rows written.

    Caller controls the transaction. Works with a sync session directly (Celery)
    or through AsyncSession.run_sync (API process).
    """
    if not translations:
        return 0
    rows: list[dict[str, Any]] = [
        {
            "tenant_id": uuid.UUID(str(tenant_id)),
            "entity_type": entity_type,
            "entity_id": uuid.UUID(str(entity_id)),
            "field_name": field_name,
            "language_code": lang,
            "source_language": source_language,
            "translated_text": text,
            "is_machine_translated": True,
        }
        for lang, text in translations.items()
    ]
    stmt = pg_insert(Translation).values(rows)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_translations_entity_field_language",
        set_={
            "translated_text": stmt.excluded.translated_text,
            "source_language": stmt.excluded.source_language,
            "is_machine_translated": True,
        },
    )
    db.execute(stmt)
    logger.debug("Stored %d translations for %s/%s.%s", len(rows), entity_type, entity_id, field_name)
    return len(rows)


class SqlTranslationStore:
    """Async adapter over store_translations, one short transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from app.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def store(
        self,
        tenant_id: uuid.UUID,
        entity_type: str,
        entity_id: uuid.UUID,
        field_name: str,
        translations: dict[str, str],
        source_language: str = "en",
    ) -> int:
        async with self._session_factory() as db:
            async with db.begin():
                return await db.run_sync(
                    store_translations,
                    tenant_id, entity_type, entity_id, field_name, translations, source_language,
                )
