"""DB-backed advisory locks with staleness-based recovery.

A lock row is ``(name, is_running, updated_at)``. A holder that crashes never
releases its lock; once ``updated_at`` is older than the caller's ``stale_ms``
the lock is presumed abandoned and can be taken over. Mutual exclusion is
therefore advisory: callers must tolerate a rare double execution and keep
their work idempotent.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.maintenance_lock import MaintenanceLock
from app.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

ORCHESTRATOR_LOCK = "orchestrator"
SCHEDULER_LOCK = "scheduler"
DEFAULT_STALE_MS = 10 * 60 * 1000


def acquire_lock(db: Session, name: str, *, stale_ms: int, now: datetime | None = None) -> bool:
    """Try to take ``name``; return ``False`` when a fresh holder exists.

    The take-over is a single conditional UPDATE so that two racing callers
    cannot both see the lock as free. Commits on every path.
    """

    if stale_ms <= 0:
        raise ValueError("stale_ms must be positive")
    now = now or utcnow()
    cutoff = now - timedelta(milliseconds=stale_ms)

    result = db.execute(
        update(MaintenanceLock)
        .where(
            MaintenanceLock.name == name,
            or_(MaintenanceLock.is_running.is_(False), MaintenanceLock.updated_at <= cutoff),
        )
        .values(is_running=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        db.commit()
        logger.debug("Lock acquired", extra={"lock": name})
        return True

    existing = db.scalar(select(MaintenanceLock.id).where(MaintenanceLock.name == name))
    if existing is not None:
        db.commit()
        logger.debug("Lock contended", extra={"lock": name})
        return False

    db.add(MaintenanceLock(name=name, is_running=True, updated_at=now))
    try:
        db.commit()
    except IntegrityError:
        # Another caller inserted the row first and holds it.
        db.rollback()
        logger.debug("Lock contended on insert", extra={"lock": name})
        return False
    logger.debug("Lock created", extra={"lock": name})
    return True


def release_lock(db: Session, name: str, *, now: datetime | None = None) -> None:
    """Mark ``name`` as not running. Missing locks are ignored."""

    db.execute(
        update(MaintenanceLock)
        .where(MaintenanceLock.name == name)
        .values(is_running=False, updated_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()


def refresh_lock(db: Session, name: str, *, now: datetime | None = None) -> bool:
    """Bump the heartbeat of a running lock; ``False`` if it is not held."""

    result = db.execute(
        update(MaintenanceLock)
        .where(MaintenanceLock.name == name, MaintenanceLock.is_running.is_(True))
        .values(updated_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


@contextmanager
def held_lock(
    db: Session, name: str, *, stale_ms: int, now: datetime | None = None
) -> Iterator[bool]:
    """Yield whether ``name`` was acquired and release it on every exit path."""

    acquired = acquire_lock(db, name, stale_ms=stale_ms, now=now)
    try:
        yield acquired
    finally:
        if acquired:
            # Drop whatever the body left half-done before touching the lock row.
            db.rollback()
            release_lock(db, name, now=now)


def describe_lock(
    db: Session, name: str, *, stale_ms: int = DEFAULT_STALE_MS, now: datetime | None = None
) -> dict[str, object]:
    """Return a lightweight description of the lock state for health checks."""

    lock = db.execute(select(MaintenanceLock).where(MaintenanceLock.name == name)).scalar_one_or_none()
    if lock is None:
        return {"name": name, "present": False, "running": False}

    now = now or utcnow()
    updated_at = ensure_utc(lock.updated_at)
    age_seconds = (now - updated_at).total_seconds()
    return {
        "name": name,
        "present": True,
        "running": lock.is_running,
        "age_seconds": age_seconds,
        "stale": lock.is_running and age_seconds * 1000 >= stale_ms,
    }


__all__ = [
    "ORCHESTRATOR_LOCK",
    "SCHEDULER_LOCK",
    "DEFAULT_STALE_MS",
    "acquire_lock",
    "release_lock",
    "refresh_lock",
    "held_lock",
    "describe_lock",
]
