"""Named advisory lock rows used to serialize jobs and batch continuations."""
from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class MaintenanceLock(Base):
    """One row per lock name; ``updated_at`` doubles as the heartbeat."""

    __tablename__ = "maintenance_locks"

    name: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    is_running: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


__all__ = ["MaintenanceLock"]
