"""Schemas for import triggers and sync job progress."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.sync_job import SyncJobStatus, SyncJobType


class ArtistImportCreate(BaseModel):
    """Identify the artist by Ticketmaster attraction id or by name."""

    ticketmaster_id: str | None = None
    name: str | None = None

    @model_validator(mode="after")
    def require_identifier(self) -> "ArtistImportCreate":
        if not (self.ticketmaster_id or "").strip() and not (self.name or "").strip():
            raise ValueError("ticketmaster_id or name is required")
        return self


class LineupImportCreate(BaseModel):
    festival_name: str
    year: int | None = None
    artist_names: list[str] = Field(default_factory=list)
    batch_size: int | None = None
    prefer_source: Literal["ticketmaster", "provided"] | None = None

    @field_validator("festival_name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("festival_name cannot be blank")
        return value.strip()


class ImportTicketRead(BaseModel):
    job_id: int
    total: int
    source: str
    entity_id: int


class SyncJobRead(BaseModel):
    id: int
    type: SyncJobType
    entity_id: int | None
    priority: int
    status: SyncJobStatus
    retry_count: int
    max_retries: int
    current_phase: str | None
    total_steps: int
    completed_steps: int
    current_step: str | None
    items_processed: int
    total_items: int
    progress_percentage: float
    started_at: datetime | None
    completed_at: datetime | None
    error_message: str | None

    model_config = ConfigDict(from_attributes=True)
