"""Health check endpoint."""
from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter
from sqlalchemy import text

from app.config import get_settings
from app.core.runtime_state import is_scheduler_active, last_tick
from app.db import get_engine, session_scope
from app.services.locks import ORCHESTRATOR_LOCK, SCHEDULER_LOCK, describe_lock

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def _db_status() -> str:
    """Return 'ok' if the DB is reachable, 'error' otherwise."""

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


def _expected_migration_head() -> str | None:
    try:
        config = Config(str(ALEMBIC_INI))
        config.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
        return ScriptDirectory.from_config(config).get_current_head()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to load Alembic head revision")
        return None


def _migrations_status() -> tuple[bool, str]:
    expected_head = _expected_migration_head()
    try:
        with get_engine().connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except Exception:  # noqa: BLE001
        logger.warning("Migration check failed; alembic_version unreadable")
        return False, "unknown"
    if expected_head is None:
        return False, "unknown"
    if current == expected_head:
        return True, "up_to_date"
    return False, "out_of_date"


def _locks() -> dict[str, object]:
    try:
        with session_scope() as db:
            return {name: describe_lock(db, name) for name in (SCHEDULER_LOCK, ORCHESTRATOR_LOCK)}
    except Exception:  # noqa: BLE001
        logger.exception("Lock description failed")
        return {}


@router.get("", summary="Health check")
def healthcheck() -> dict[str, object]:
    """Database, migrations and scheduler state."""

    settings = get_settings()
    db_status = _db_status()
    db_ok = db_status == "ok"
    if db_ok:
        migration_ok, migration_status = _migrations_status()
    else:
        migration_ok, migration_status = False, "unknown"
    return {
        "status": "ok" if db_ok and migration_ok else "degraded",
        "db_ok": db_ok,
        "db_status": db_status,
        "migrations_ok": migration_ok,
        "migrations_status": migration_status,
        "scheduler_config_enabled": bool(settings.SCHEDULER_ENABLED),
        "scheduler_running": is_scheduler_active(),
        "last_tick": last_tick(),
        "locks": _locks() if db_ok else {},
        "integrations": {
            "ticketmaster": bool(settings.TICKETMASTER_API_KEY),
            "spotify": bool(settings.SPOTIFY_CLIENT_ID and settings.SPOTIFY_CLIENT_SECRET),
            "setlistfm": bool(settings.SETLISTFM_API_KEY),
        },
    }
