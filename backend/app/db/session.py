from collections.abc import AsyncGenerator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# Import batches each open their own session, so one request may hold
# up to IMPORT_MAX_CONCURRENT_BATCHES connections at once.
AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# ─── Sync engine (Celery workers) ───

_sync_factory: sessionmaker[Session] | None = None


def get_sync_session_factory() -> sessionmaker[Session]:
    """Lazily build the sync session factory; API processes never need it."""
    global _sync_factory
    if _sync_factory is None:
        sync_engine = create_engine(settings.DATABASE_URL_SYNC, pool_pre_ping=True)
        _sync_factory = sessionmaker(bind=sync_engine, expire_on_commit=False)
    return _sync_factory
