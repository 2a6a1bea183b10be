"""Administration of the registered background jobs."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.runtime_state import record_tick
from app.db import get_db
from app.dependencies import get_orchestrator
from app.models.api_key import ApiKey, ApiScope
from app.models.job_setting import JobSetting
from app.schemas.jobs import JobRunRead, JobSettingRead, JobSettingUpdate, TickRead
from app.security import require_scope
from app.services import job_settings, run_history
from app.services.job_registry import JobDefinition
from app.services.orchestrator import Orchestrator
from app.utils.audit import actor_from_api_key
from app.utils.time import ensure_utc

router = APIRouter(prefix="/admin/jobs", tags=["admin-jobs"])


def _read(setting: JobSetting, definition: JobDefinition | None) -> JobSettingRead:
    if definition is None:
        # Leftover row for a job that is no longer registered.
        kind, interval, bounds = "unregistered", setting.interval_ms, (setting.interval_ms,) * 3
    else:
        kind, interval = definition.kind.value, definition.clamp(setting.interval_ms)
        bounds = (definition.default_interval_ms, definition.min_interval_ms, definition.max_interval_ms)
    return JobSettingRead(
        name=setting.name,
        kind=kind,
        enabled=setting.enabled,
        interval_ms=interval,
        default_interval_ms=bounds[0],
        min_interval_ms=bounds[1],
        max_interval_ms=bounds[2],
        last_run_at=ensure_utc(setting.last_run_at),
        run_now_requested_at=ensure_utc(setting.run_now_requested_at),
        last_success_at=ensure_utc(setting.last_success_at),
        last_failure_at=ensure_utc(setting.last_failure_at),
        last_error=setting.last_error,
        last_duration_ms=setting.last_duration_ms,
    )


@router.get("", response_model=list[JobSettingRead])
def list_jobs(
    db: Session = Depends(get_db),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    _key: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> list[JobSettingRead]:
    """Every registered job with its effective settings, in registry order."""

    job_settings.ensure_defaults(db, orchestrator.registry)
    rows = {setting.name: setting for setting in job_settings.list_settings(db)}
    return [_read(rows[name], definition) for name, definition in orchestrator.registry.items() if name in rows]


@router.get("/runs", response_model=list[JobRunRead])
def recent_runs(
    name: str | None = Query(default=None),
    limit: int = Query(default=run_history.DEFAULT_RECENT_LIMIT, ge=1, le=run_history.MAX_RECENT_LIMIT),
    db: Session = Depends(get_db),
    _key: ApiKey = Depends(require_scope({ApiScope.admin})),
):
    return run_history.get_recent_runs(db, name=name, limit=limit)


@router.post("/tick", response_model=TickRead)
def run_tick(
    db: Session = Depends(get_db),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    _key: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> dict:
    """Run one orchestrator pass synchronously."""

    result = orchestrator.tick(db)
    record_tick(result.started_at, result.status)
    return result.as_dict()


@router.patch("/{name}", response_model=JobSettingRead)
def update_job(
    name: str,
    payload: JobSettingUpdate,
    db: Session = Depends(get_db),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    key: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> JobSettingRead:
    job_settings.ensure_defaults(db, orchestrator.registry)
    setting = job_settings.update_setting(
        db,
        orchestrator.registry,
        name,
        interval_ms=payload.interval_ms,
        enabled=payload.enabled,
        actor=actor_from_api_key(key, fallback="admin"),
    )
    return _read(setting, orchestrator.registry.get(setting.name))


@router.post("/{name}/run-now", response_model=JobSettingRead)
def run_job_now(
    name: str,
    db: Session = Depends(get_db),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    key: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> JobSettingRead:
    """Force the job to run on the next tick."""

    job_settings.ensure_defaults(db, orchestrator.registry)
    setting = job_settings.request_run_now(db, name, actor=actor_from_api_key(key, fallback="admin"))
    return _read(setting, orchestrator.registry.get(setting.name))

