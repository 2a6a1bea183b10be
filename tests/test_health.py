import pytest

from app.core import runtime_state
from app.services.locks import SCHEDULER_LOCK, acquire_lock


@pytest.mark.anyio
async def test_health_reports_components(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["db_ok"] is True
    assert body["db_status"] == "ok"
    # Tables come from create_all, so there is no alembic_version row.
    assert body["migrations_status"] == "unknown"
    assert body["status"] == "degraded"
    assert body["scheduler_running"] is False
    assert set(body["locks"]) == {"scheduler", "orchestrator"}
    assert body["locks"]["scheduler"]["present"] is False
    assert set(body["integrations"]) == {"ticketmaster", "spotify", "setlistfm"}


@pytest.mark.anyio
async def test_health_shows_scheduler_state(client, db_session):
    assert acquire_lock(db_session, SCHEDULER_LOCK, stale_ms=60_000)
    runtime_state.set_scheduler_active(True)
    try:
        body = (await client.get("/health")).json()
    finally:
        runtime_state.set_scheduler_active(False)
    assert body["scheduler_running"] is True
    assert body["locks"]["scheduler"]["running"] is True
    assert body["locks"]["scheduler"]["stale"] is False
