"""Persisted scheduling state for registered background jobs."""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.utils.time import EPOCH

from .base import Base


class JobSetting(Base):
    """Per-job interval, toggle and last outcome."""

    __tablename__ = "job_settings"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    interval_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=EPOCH, nullable=False)
    run_now_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_success_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_failure_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_error: Mapped[str | None] = mapped_column(Text)
    last_duration_ms: Mapped[int | None] = mapped_column(BigInteger)


__all__ = ["JobSetting"]
