import pytest
from sqlalchemy import select

from app.main import app
from app.models.api_key import ApiScope
from app.models.audit import AuditLog
from app.services.job_registry import HOUR_MS, MINUTE_MS, JobDefinition, JobKind
from app.services.orchestrator import Orchestrator

DEFAULT_JOB = "update-artist-trending"


@pytest.mark.anyio
async def test_jobs_require_api_key(client):
    response = await client.get("/admin/jobs")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NO_API_KEY"


@pytest.mark.anyio
async def test_unknown_key_is_rejected(client):
    response = await client.get("/admin/jobs", headers={"X-API-Key": "nope"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_inactive_key_is_rejected(client, make_api_key):
    make_api_key(name="retired", key="retired-token", scope=ApiScope.admin, is_active=False)
    response = await client.get("/admin/jobs", headers={"X-API-Key": "retired-token"})
    assert response.status_code == 401


@pytest.mark.anyio
async def test_operator_cannot_administer_jobs(client, operator_headers):
    response = await client.get("/admin/jobs", headers=operator_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_SCOPE"


@pytest.mark.anyio
async def test_list_jobs_creates_defaults(client, admin_headers):
    response = await client.get("/admin/jobs", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    names = [job["name"] for job in body]
    assert DEFAULT_JOB in names
    assert len(names) == 8
    trending = next(job for job in body if job["name"] == DEFAULT_JOB)
    assert trending["enabled"] is True
    assert trending["kind"] == "mutation"
    assert trending["interval_ms"] == trending["default_interval_ms"]


@pytest.mark.anyio
async def test_patch_clamps_interval_and_audits(client, admin_headers, db_session):
    response = await client.patch(f"/admin/jobs/{DEFAULT_JOB}", json={"interval_ms": 5}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["interval_ms"] == body["min_interval_ms"]

    audit = db_session.scalars(select(AuditLog).where(AuditLog.action == "JOB_SETTING_UPDATED")).one()
    assert audit.actor == "apikey:test_admin"
    assert audit.data_json["name"] == DEFAULT_JOB


@pytest.mark.anyio
async def test_patch_can_disable(client, admin_headers):
    response = await client.patch(f"/admin/jobs/{DEFAULT_JOB}", json={"enabled": False}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["enabled"] is False


@pytest.mark.anyio
async def test_patch_unknown_job_is_404(client, admin_headers):
    response = await client.patch("/admin/jobs/does-not-exist", json={"enabled": True}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "JOB_NOT_FOUND"


@pytest.mark.anyio
async def test_run_now_marks_request(client, admin_headers):
    response = await client.post(f"/admin/jobs/{DEFAULT_JOB}/run-now", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["run_now_requested_at"] is not None


@pytest.mark.anyio
async def test_tick_runs_due_jobs_and_records_history(client, admin_headers, settings):
    calls = []

    def ping(ctx):
        calls.append(ctx.now)
        return {"pinged": 1}

    app.state.orchestrator = Orchestrator(
        [JobDefinition("ping", JobKind.MUTATION, ping, HOUR_MS, MINUTE_MS, 24 * HOUR_MS)],
        settings=settings,
    )

    response = await client.post("/admin/jobs/tick", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert [(job["name"], job["status"], job["stats"]) for job in body["jobs"]] == [
        ("ping", "success", {"pinged": 1})
    ]
    assert len(calls) == 1

    runs = await client.get("/admin/jobs/runs", params={"name": "ping"}, headers=admin_headers)
    assert runs.status_code == 200
    assert [(run["name"], run["status"]) for run in runs.json()] == [("ping", "success")]

    again = await client.post("/admin/jobs/tick", headers=admin_headers)
    assert again.json()["jobs"] == []


@pytest.mark.anyio
async def test_runs_limit_is_bounded(client, admin_headers):
    response = await client.get("/admin/jobs/runs", params={"limit": 501}, headers=admin_headers)
    assert response.status_code == 422

