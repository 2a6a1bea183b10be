"""Schemas for the job administration endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.job_run import RunStatus


class JobSettingRead(BaseModel):
    """A registered job merged with its persisted settings row."""

    name: str
    kind: str
    enabled: bool
    interval_ms: int
    default_interval_ms: int
    min_interval_ms: int
    max_interval_ms: int
    last_run_at: datetime | None = None
    run_now_requested_at: datetime | None = None
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    last_error: str | None = None
    last_duration_ms: int | None = None


class JobSettingUpdate(BaseModel):
    interval_ms: float | None = None
    enabled: bool | None = None


class JobRunRead(BaseModel):
    id: int
    name: str
    started_at: datetime
    finished_at: datetime | None
    status: RunStatus
    error: str | None
    duration_ms: int | None
    stats: dict | None

    model_config = ConfigDict(from_attributes=True)


class JobOutcomeRead(BaseModel):
    name: str
    status: str
    duration_ms: int
    error: str | None = None
    stats: dict | None = None


class TickRead(BaseModel):
    status: str
    started_at: datetime
    jobs: list[JobOutcomeRead] = Field(default_factory=list)
    contended: list[str] = Field(default_factory=list)
