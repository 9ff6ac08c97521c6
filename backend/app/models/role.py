from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin

SYSTEM_ROLES = ("owner", "admin", "manager", "cashier", "waiter", "chef", "delivery")


class Role(Base, UUIDMixin, TimestampMixin):
    """Platform-wide RBAC role. Shared by every tenant."""
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)  # localized label, e.g. "Kitchen Chef"
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
