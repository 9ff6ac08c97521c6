import uuid

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TenantMixin, TimestampMixin, UUIDMixin


class Translation(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """One translated value per (entity, field, language)."""
    __tablename__ = "translations"
    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "field_name", "language_code",
            name="uq_translations_entity_field_language",
        ),
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    language_code: Mapped[str] = mapped_column(String(10), nullable=False)
    source_language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    translated_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_machine_translated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
