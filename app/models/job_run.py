"""Append-only execution history for background jobs."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, BigInteger, DateTime, Enum as SqlEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RunStatus(str, PyEnum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class JobRun(Base):
    """A single execution of a registered job."""

    __tablename__ = "job_runs"
    __table_args__ = (Index("ix_job_runs_name_started_at", "name", "started_at"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[RunStatus] = mapped_column(
        SqlEnum(RunStatus, name="job_run_status"), nullable=False, default=RunStatus.RUNNING
    )
    error: Mapped[str | None] = mapped_column(Text)
    duration_ms: Mapped[int | None] = mapped_column(BigInteger)
    stats: Mapped[dict | None] = mapped_column(JSON)


__all__ = ["JobRun", "RunStatus"]
