"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

from datetime import datetime

_scheduler_active = False
_last_tick_at: datetime | None = None
_last_tick_status: str | None = None


def set_scheduler_active(active: bool) -> None:
    global _scheduler_active
    _scheduler_active = active


def is_scheduler_active() -> bool:
    return _scheduler_active


def record_tick(at: datetime, status: str) -> None:
    """Remember when this process last ran an orchestrator tick."""

    global _last_tick_at, _last_tick_status
    _last_tick_at = at
    _last_tick_status = status


def last_tick() -> dict[str, object]:
    return {
        "at": _last_tick_at.isoformat() if _last_tick_at else None,
        "status": _last_tick_status,
    }


__all__ = ["set_scheduler_active", "is_scheduler_active", "record_tick", "last_tick"]
