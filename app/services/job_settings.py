"""Persisted per-job scheduling settings."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.job_run import RunStatus
from app.models.job_setting import JobSetting
from app.services.job_registry import (
    UNKNOWN_JOB_MAX_INTERVAL_MS,
    UNKNOWN_JOB_MIN_INTERVAL_MS,
    JobDefinition,
    clamp_interval_ms,
)
from app.utils.audit import log_audit
from app.utils.errors import error_response
from app.utils.time import EPOCH, ensure_utc, utcnow

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"


def ensure_defaults(db: Session, registry: Mapping[str, JobDefinition]) -> dict[str, int]:
    """Insert a settings row for each registered job that has none.

    Existing rows are never touched. New rows start with ``last_run_at`` at the
    epoch so a freshly registered job is due on the next tick.
    """

    existing_names = set(db.scalars(select(JobSetting.name).where(JobSetting.name.in_(list(registry)))))
    created = 0
    for name, definition in registry.items():
        if name in existing_names:
            continue
        db.add(
            JobSetting(
                name=name,
                interval_ms=definition.default_interval_ms,
                enabled=True,
                last_run_at=EPOCH,
            )
        )
        created += 1
    if created:
        db.commit()
        logger.info("Job settings defaults created", extra={"created": created})
    return {"created": created, "existing": len(existing_names)}


def get_setting(db: Session, name: str) -> JobSetting | None:
    return db.execute(select(JobSetting).where(JobSetting.name == name)).scalar_one_or_none()


def list_settings(db: Session) -> list[JobSetting]:
    return list(db.scalars(select(JobSetting).order_by(JobSetting.name)))


def _bounds(registry: Mapping[str, JobDefinition], name: str) -> tuple[int, int]:
    definition = registry.get(name)
    if definition is None:
        return UNKNOWN_JOB_MIN_INTERVAL_MS, UNKNOWN_JOB_MAX_INTERVAL_MS
    return definition.min_interval_ms, definition.max_interval_ms


def _require_setting(db: Session, name: str) -> JobSetting:
    setting = get_setting(db, name)
    if setting is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("JOB_NOT_FOUND", f"No settings for job '{name}'."),
        )
    return setting


def update_setting(
    db: Session,
    registry: Mapping[str, JobDefinition],
    name: str,
    *,
    interval_ms: Any = None,
    enabled: bool | None = None,
    actor: str,
) -> JobSetting:
    """Change a job's interval and/or toggle, clamping to the job's bounds."""

    setting = _require_setting(db, name)
    before = {"interval_ms": setting.interval_ms, "enabled": setting.enabled}

    if interval_ms is not None:
        min_ms, max_ms = _bounds(registry, name)
        setting.interval_ms = clamp_interval_ms(interval_ms, min_ms, max_ms)
    if enabled is not None:
        setting.enabled = enabled

    log_audit(
        db,
        actor=actor,
        action="JOB_SETTING_UPDATED",
        entity="JobSetting",
        entity_id=setting.id,
        data={
            "name": name,
            "before": before,
            "after": {"interval_ms": setting.interval_ms, "enabled": setting.enabled},
        },
    )
    db.commit()
    db.refresh(setting)
    logger.info(
        "Job setting updated",
        extra={"job": name, "interval_ms": setting.interval_ms, "enabled": setting.enabled, "actor": actor},
    )
    return setting


def request_run_now(db: Session, name: str, *, actor: str, now: datetime | None = None) -> JobSetting:
    """Force ``name`` to run on the next tick (and re-enable it)."""

    setting = _require_setting(db, name)
    setting.run_now_requested_at = now or utcnow()
    setting.enabled = True
    log_audit(
        db,
        actor=actor,
        action="JOB_RUN_NOW_REQUESTED",
        entity="JobSetting",
        entity_id=setting.id,
        data={"name": name},
    )
    db.commit()
    db.refresh(setting)
    logger.info("Job run-now requested", extra={"job": name, "actor": actor})
    return setting


def record_outcome(
    db: Session,
    registry: Mapping[str, JobDefinition],
    name: str,
    *,
    status: RunStatus,
    finished_at: datetime,
    duration_ms: int,
    error: str | None = None,
) -> JobSetting:
    """Write the after-run state of ``name``.

    A row deleted while the job was running is recreated with the registry
    default interval, enabled.
    """

    setting = get_setting(db, name)
    if setting is None:
        definition = registry.get(name)
        default_interval = definition.default_interval_ms if definition else UNKNOWN_JOB_MIN_INTERVAL_MS
        setting = JobSetting(name=name, interval_ms=default_interval, enabled=True, last_run_at=finished_at)
        db.add(setting)

    setting.last_run_at = finished_at
    setting.run_now_requested_at = None
    setting.last_duration_ms = duration_ms
    if status == RunStatus.SUCCESS:
        setting.last_success_at = finished_at
        setting.last_error = None
    elif status == RunStatus.FAILURE:
        setting.last_failure_at = finished_at
        setting.last_error = error or UNKNOWN_ERROR
    db.commit()
    return setting


def is_forced(setting: JobSetting) -> bool:
    requested = ensure_utc(setting.run_now_requested_at)
    if requested is None:
        return False
    return requested > ensure_utc(setting.last_run_at)


def is_due(setting: JobSetting, *, interval_ms: int, now: datetime) -> bool:
    """Due iff a run-now request is newer than the last run, or the interval elapsed."""

    if is_forced(setting):
        return True
    last_run_at = ensure_utc(setting.last_run_at) or EPOCH
    elapsed_ms = (now - last_run_at).total_seconds() * 1000
    return elapsed_ms >= interval_ms


__all__ = [
    "ensure_defaults",
    "get_setting",
    "list_settings",
    "update_setting",
    "request_run_now",
    "record_outcome",
    "is_forced",
    "is_due",
]
