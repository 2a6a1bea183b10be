"""Typed job definitions and the context handed to job handlers."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from sqlalchemy.orm import Session

from app.config import Settings

if TYPE_CHECKING:
    from app.integrations import Integrations

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# Bounds used when an interval is set for a name the registry does not know.
UNKNOWN_JOB_MIN_INTERVAL_MS = MINUTE_MS
UNKNOWN_JOB_MAX_INTERVAL_MS = 7 * DAY_MS


class JobKind(str, Enum):
    """How the orchestrator treats a handler's database work.

    ``MUTATION`` handlers only touch the database; the orchestrator commits
    their work on success and rolls it back on failure. ``ACTION`` handlers
    talk to external services and commit their own progress as they go.
    """

    MUTATION = "mutation"
    ACTION = "action"


class JobSkipped(Exception):
    """Raised by a handler when there is nothing it can do this cycle."""


@dataclass
class JobContext:
    """Everything a job or task handler may touch."""

    db: Session
    settings: Settings
    now: datetime
    integrations: Optional["Integrations"] = None

    def clients(self) -> "Integrations":
        if self.integrations is None:
            from app.integrations import IntegrationNotConfigured

            raise IntegrationNotConfigured("No external catalog clients in this context")
        return self.integrations


JobHandler = Callable[[JobContext], Optional[dict[str, Any]]]


@dataclass(frozen=True)
class JobDefinition:
    name: str
    kind: JobKind
    handler: JobHandler = field(compare=False)
    default_interval_ms: int
    min_interval_ms: int
    max_interval_ms: int
    lock_stale_ms: int = HOUR_MS

    @property
    def lock_name(self) -> str:
        return f"job:{self.name}"

    def clamp(self, interval_ms: Any) -> int:
        return clamp_interval_ms(interval_ms, self.min_interval_ms, self.max_interval_ms)


def clamp_interval_ms(value: Any, min_ms: int, max_ms: int) -> int:
    """Clamp ``value`` into ``[min_ms, max_ms]``; non-finite or missing values map to ``min_ms``."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return min_ms
    if not math.isfinite(number):
        return min_ms
    return max(min_ms, min(max_ms, int(math.floor(number))))


def build_registry(definitions: Iterable[JobDefinition]) -> dict[str, JobDefinition]:
    """Validate definitions and index them by name, preserving order."""

    registry: dict[str, JobDefinition] = {}
    for definition in definitions:
        if definition.name in registry:
            raise ValueError(f"Duplicate job name: {definition.name}")
        if not (
            0 < definition.min_interval_ms
            <= definition.default_interval_ms
            <= definition.max_interval_ms
        ):
            raise ValueError(f"Invalid interval bounds for job {definition.name}")
        if definition.lock_stale_ms <= 0:
            raise ValueError(f"Invalid lock staleness for job {definition.name}")
        registry[definition.name] = definition
    return registry


__all__ = [
    "MINUTE_MS",
    "HOUR_MS",
    "DAY_MS",
    "UNKNOWN_JOB_MIN_INTERVAL_MS",
    "UNKNOWN_JOB_MAX_INTERVAL_MS",
    "JobKind",
    "JobSkipped",
    "JobContext",
    "JobHandler",
    "JobDefinition",
    "clamp_interval_ms",
    "build_registry",
]
