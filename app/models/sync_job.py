"""Tracking rows for staged entity imports."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, DateTime, Enum as SqlEnum, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class SyncJobType(str, PyEnum):
    ARTIST_IMPORT = "artist_import"
    FESTIVAL_LINEUP_IMPORT = "festival_lineup_import"


class SyncJobStatus(str, PyEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncJob(Base):
    """Progress and retry bookkeeping for one staged import."""

    __tablename__ = "sync_jobs"

    type: Mapped[SyncJobType] = mapped_column(SqlEnum(SyncJobType, name="sync_job_type"), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    status: Mapped[SyncJobStatus] = mapped_column(
        SqlEnum(SyncJobStatus, name="sync_job_status"), default=SyncJobStatus.PENDING, nullable=False, index=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)

    current_phase: Mapped[str | None] = mapped_column(String(64))
    total_steps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_step: Mapped[str | None] = mapped_column(String(255))
    items_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    progress_percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)


__all__ = ["SyncJob", "SyncJobStatus", "SyncJobType"]
