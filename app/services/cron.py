"""Entry points run by APScheduler inside the designated scheduler process."""
from __future__ import annotations

import logging

from app.config import Settings
from app.core.runtime_state import record_tick
from app.db import session_scope
from app.services import task_queue
from app.services.jobs import TASK_HANDLERS
from app.services.locks import SCHEDULER_LOCK, acquire_lock, refresh_lock, release_lock
from app.services.orchestrator import Orchestrator
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

SCHEDULER_LOCK_STALE_MS = 5 * 60 * 1000
HEARTBEAT_SECONDS = 60


def try_acquire_scheduler_lock() -> bool:
    """Only one process may own the APScheduler loop at a time."""

    with session_scope() as db:
        return acquire_lock(db, SCHEDULER_LOCK, stale_ms=SCHEDULER_LOCK_STALE_MS)


def refresh_scheduler_lock() -> None:
    with session_scope() as db:
        if not refresh_lock(db, SCHEDULER_LOCK):
            logger.warning("Scheduler lock heartbeat found no held lock")


def release_scheduler_lock() -> None:
    with session_scope() as db:
        release_lock(db, SCHEDULER_LOCK)


def orchestrator_tick_once(orchestrator: Orchestrator) -> None:
    with session_scope() as db:
        result = orchestrator.tick(db)
    record_tick(result.started_at, result.status)


def drain_tasks_once(orchestrator: Orchestrator, settings: Settings) -> None:
    """Run due pipeline continuations (artist phases, lineup batches)."""

    now = utcnow()
    with session_scope() as db:
        task_queue.run_due_tasks(
            db,
            orchestrator.make_context(db, now),
            TASK_HANDLERS,
            now=now,
            limit=settings.TASK_DRAIN_BATCH_SIZE,
            visibility_timeout_s=settings.TASK_VISIBILITY_TIMEOUT_SECONDS,
            retry_delay_ms=settings.SYNC_RETRY_DELAY_MS,
        )


__all__ = [
    "HEARTBEAT_SECONDS",
    "try_acquire_scheduler_lock",
    "refresh_scheduler_lock",
    "release_scheduler_lock",
    "orchestrator_tick_once",
    "drain_tasks_once",
]
