"""Periodic driver that dispatches due jobs from the registry.

Each tick takes the ``orchestrator`` lock, makes sure every registered job has
a settings row, then runs every enabled and due job under its own lock. A job
failure is recorded in the run history and on the settings row; it never
escapes the tick.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.job_run import RunStatus
from app.services import job_settings, run_history
from app.services.job_registry import JobContext, JobDefinition, JobKind, JobSkipped, build_registry
from app.services.locks import DEFAULT_STALE_MS, ORCHESTRATOR_LOCK, acquire_lock, release_lock
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

ContextFactory = Callable[[Session, datetime], JobContext]


@dataclass
class JobOutcome:
    name: str
    status: RunStatus
    duration_ms: int
    error: str | None = None
    stats: dict[str, Any] | None = None


@dataclass
class TickResult:
    status: str
    started_at: datetime
    outcomes: list[JobOutcome] = field(default_factory=list)
    contended: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "jobs": [
                {
                    "name": outcome.name,
                    "status": outcome.status.value,
                    "duration_ms": outcome.duration_ms,
                    "error": outcome.error,
                    "stats": outcome.stats,
                }
                for outcome in self.outcomes
            ],
            "contended": list(self.contended),
        }


def _describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class Orchestrator:
    """Holds the immutable job registry and runs ticks against a session."""

    def __init__(
        self,
        definitions: Mapping[str, JobDefinition] | list[JobDefinition],
        *,
        context_factory: Optional[ContextFactory] = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Settings | None = None,
        orchestrator_stale_ms: int = DEFAULT_STALE_MS,
    ) -> None:
        if isinstance(definitions, Mapping):
            definitions = list(definitions.values())
        self.registry: dict[str, JobDefinition] = build_registry(definitions)
        self.clock = clock
        self.settings = settings or get_settings()
        self.orchestrator_stale_ms = orchestrator_stale_ms
        self._context_factory = context_factory or self._default_context

    def _default_context(self, db: Session, now: datetime) -> JobContext:
        return JobContext(db=db, settings=self.settings, now=now)

    def make_context(self, db: Session, now: datetime) -> JobContext:
        return self._context_factory(db, now)

    def effective_interval_ms(self, name: str, stored_interval_ms: Any) -> int:
        return self.registry[name].clamp(stored_interval_ms)

    def due_jobs(self, db: Session, now: datetime) -> list[JobDefinition]:
        """Registered jobs that are enabled and due at ``now``, in registry order."""

        settings_by_name = {setting.name: setting for setting in job_settings.list_settings(db)}
        due: list[JobDefinition] = []
        for name, definition in self.registry.items():
            setting = settings_by_name.get(name)
            if setting is None:
                # Row vanished between ensure_defaults and now: treat as a fresh job.
                due.append(definition)
                continue
            if not setting.enabled:
                continue
            interval = definition.clamp(setting.interval_ms)
            if job_settings.is_due(setting, interval_ms=interval, now=now):
                due.append(definition)
        return due

    def tick(self, db: Session) -> TickResult:
        """Run one scheduling pass. Never raises for a failing job."""

        started_at = self.clock()
        if not acquire_lock(db, ORCHESTRATOR_LOCK, stale_ms=self.orchestrator_stale_ms, now=started_at):
            logger.info("Orchestrator tick skipped; another tick holds the lock")
            return TickResult(status="skipped", started_at=started_at)

        result = TickResult(status="completed", started_at=started_at)
        try:
            job_settings.ensure_defaults(db, self.registry)
            for definition in self.due_jobs(db, started_at):
                outcome = self.run_job(db, definition)
                if outcome is None:
                    result.contended.append(definition.name)
                else:
                    result.outcomes.append(outcome)
        finally:
            db.rollback()
            release_lock(db, ORCHESTRATOR_LOCK, now=self.clock())
        logger.info(
            "Orchestrator tick finished",
            extra={
                "jobs_run": len(result.outcomes),
                "failures": sum(1 for o in result.outcomes if o.status == RunStatus.FAILURE),
                "contended": len(result.contended),
            },
        )
        return result

    def run_job(self, db: Session, definition: JobDefinition) -> JobOutcome | None:
        """Run one job under its lock; ``None`` when the lock is contended."""

        now = self.clock()
        if not acquire_lock(db, definition.lock_name, stale_ms=definition.lock_stale_ms, now=now):
            logger.info("Job skipped; lock held elsewhere", extra={"job": definition.name})
            return None

        try:
            run = run_history.start_run(db, definition.name, now=now)
            logger.info("Job started", extra={"job": definition.name, "kind": definition.kind.value})
            started = time.monotonic()
            status, error, stats = self._invoke(db, definition, now)
            finished_at = self.clock()
            run_history.finish_run(db, run, status=status, error=error, stats=stats, now=finished_at)
            duration_ms = run.duration_ms or int((time.monotonic() - started) * 1000)
            job_settings.record_outcome(
                db,
                self.registry,
                definition.name,
                status=status,
                finished_at=finished_at,
                duration_ms=duration_ms,
                error=error,
            )
            logger.info(
                "Job finished",
                extra={"job": definition.name, "status": status.value, "duration_ms": duration_ms},
            )
            return JobOutcome(definition.name, status, duration_ms, error, stats)
        finally:
            db.rollback()
            release_lock(db, definition.lock_name, now=self.clock())

    def _invoke(
        self, db: Session, definition: JobDefinition, now: datetime
    ) -> tuple[RunStatus, str | None, dict[str, Any] | None]:
        ctx = self.make_context(db, now)
        try:
            stats = definition.handler(ctx)
            if definition.kind is JobKind.MUTATION:
                db.commit()
            return RunStatus.SUCCESS, None, stats
        except JobSkipped as exc:
            db.rollback()
            logger.info("Job skipped by handler", extra={"job": definition.name, "reason": str(exc)})
            return RunStatus.SKIPPED, str(exc) or None, None
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.exception("Job failed", extra={"job": definition.name})
            return RunStatus.FAILURE, _describe_error(exc), None


__all__ = ["Orchestrator", "TickResult", "JobOutcome", "ContextFactory"]
