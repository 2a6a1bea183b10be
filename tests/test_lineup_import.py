from datetime import timedelta

import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.artist import Artist
from app.models.festival import FestivalArtist
from app.models.scheduled_task import ScheduledTask
from app.models.sync_job import SyncJob, SyncJobStatus
from app.services import lineup_import, task_queue
from app.services.locks import acquire_lock
from conftest import NOW


def _seed_artists(db_session, count):
    names = [f"Band {index:02d}" for index in range(count)]
    for name in names:
        db_session.add(Artist(name=name, slug=name.lower().replace(" ", "-"), lower_name=name.lower()))
    db_session.commit()
    return names


def _start(db_session, settings, names, batch_size=10):
    festival = lineup_import.upsert_festival(db_session, "Summer Sound", year=2026)
    ticket = lineup_import.start_lineup_import(
        db_session,
        festival=festival,
        provided_names=names,
        ticketmaster=None,
        settings=settings,
        batch_size=batch_size,
        now=NOW,
    )
    return festival, ticket


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("", True),
        ("TBA", True),
        ("Summer Fest", True),
        ("Lollapalooza Festival 2026", True),
        ("Festivalia", False),
        ("Phoebe Bridgers", False),
    ],
)
def test_is_probably_festival_name(name, expected):
    assert lineup_import.is_probably_festival_name(name) is expected


def test_dedupe_names_keeps_first_spelling():
    names = ["  Wet Leg ", "wet leg", "TBD", None, "Big Thief", "Some Fest"]
    assert lineup_import.dedupe_names(names) == ["Wet Leg", "Big Thief"]


def test_clamp_batch_size():
    assert lineup_import.clamp_batch_size(None, 10) == 10
    assert lineup_import.clamp_batch_size(0, 10) == 1
    assert lineup_import.clamp_batch_size(500, 10) == 25
    assert lineup_import.clamp_batch_size("oops", 10) == 10


def test_choose_source():
    many = [f"tm {n}" for n in range(12)]
    provided = ["a", "b"]
    assert lineup_import.choose_source(many, provided, min_results=10) == ("ticketmaster", many)
    assert lineup_import.choose_source(many[:3], provided, min_results=10) == ("provided", provided)
    assert lineup_import.choose_source(many[:3], [], min_results=10) == ("ticketmaster", many[:3])
    assert lineup_import.choose_source(many, provided, min_results=10, prefer_source="provided") == (
        "provided",
        provided,
    )


def test_empty_lineup_is_rejected(db_session, settings):
    with pytest.raises(HTTPException) as exc_info:
        _start(db_session, settings, ["TBA", "Festival"])
    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["error"]["code"] == "LINEUP_EMPTY"


def test_lineup_of_37_runs_in_four_batches(db_session, settings, make_context):
    names = _seed_artists(db_session, 37)
    festival, ticket = _start(db_session, settings, names)
    assert ticket.total == 37
    assert ticket.source == "provided"

    cursors = []
    statuses = []
    now = NOW
    for _ in range(4):
        pending = task_queue.pending_tasks(db_session, lineup_import.LINEUP_TASK)
        assert len(pending) == 1
        cursors.append(pending[0].payload["cursor"])
        now = now + timedelta(seconds=2)
        result = task_queue.run_due_tasks(
            db_session, make_context(now=now), lineup_import.TASK_HANDLERS, now=now
        )
        assert result.done == 1
        job = db_session.get(SyncJob, ticket.job_id)
        db_session.refresh(job)
        statuses.append(job.status)

    assert cursors == [0, 10, 20, 30]
    assert statuses == [SyncJobStatus.RUNNING] * 3 + [SyncJobStatus.COMPLETED]
    assert task_queue.pending_tasks(db_session, lineup_import.LINEUP_TASK) == []

    job = db_session.get(SyncJob, ticket.job_id)
    assert job.items_processed == 37
    assert job.payload["batches"] == 4
    assert job.payload["counts"]["linked"] == 37
    links = db_session.scalars(select(FestivalArtist).where(FestivalArtist.festival_id == festival.id)).all()
    assert len(links) == 37


def test_continuation_is_delayed(db_session, settings, make_context):
    names = _seed_artists(db_session, 12)
    _, ticket = _start(db_session, settings, names)
    task_queue.run_due_tasks(db_session, make_context(), lineup_import.TASK_HANDLERS, now=NOW)

    follow_up = task_queue.pending_tasks(db_session, lineup_import.LINEUP_TASK)[0]
    assert follow_up.payload == {"sync_job_id": ticket.job_id, "cursor": 10}
    early = task_queue.run_due_tasks(
        db_session, make_context(), lineup_import.TASK_HANDLERS, now=NOW + timedelta(milliseconds=100)
    )
    assert early.claimed == 0


def test_stale_cursor_is_dropped(db_session, settings, make_context):
    names = _seed_artists(db_session, 12)
    _, ticket = _start(db_session, settings, names)
    ctx = make_context()
    lineup_import.process_lineup_batch(ctx, {"sync_job_id": ticket.job_id, "cursor": 0})
    lineup_import.process_lineup_batch(ctx, {"sync_job_id": ticket.job_id, "cursor": 0})

    job = db_session.get(SyncJob, ticket.job_id)
    db_session.refresh(job)
    assert job.payload["cursor"] == 10
    assert job.payload["batches"] == 1
    assert job.payload["counts"]["processed"] == 10
    assert len(task_queue.pending_tasks(db_session, lineup_import.LINEUP_TASK)) == 2


def test_batch_skipped_while_lock_held(db_session, other_session, settings, make_context):
    names = _seed_artists(db_session, 3)
    _, ticket = _start(db_session, settings, names)
    assert acquire_lock(other_session, f"lineup_import:{ticket.job_id}", stale_ms=60_000, now=NOW)

    lineup_import.process_lineup_batch(make_context(), {"sync_job_id": ticket.job_id, "cursor": 0})

    job = db_session.get(SyncJob, ticket.job_id)
    db_session.refresh(job)
    assert job.payload["cursor"] == 0
    assert job.status == SyncJobStatus.RUNNING


def test_malformed_payload_is_permanent(make_context):
    with pytest.raises(lineup_import.PermanentSyncError):
        lineup_import.process_lineup_batch(make_context(), {"cursor": "x"})


def test_unknown_names_are_imported_from_ticketmaster(db_session, settings, make_integrations, make_context):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/attractions.json"):
            keyword = request.url.params["keyword"]
            return httpx.Response(
                200,
                json={"_embedded": {"attractions": [{"id": f"tm-{keyword}", "name": keyword}]}},
            )
        return httpx.Response(404)

    _, ticket = _start(db_session, settings, ["Wet Leg"])
    ctx = make_context(make_integrations(handler))
    lineup_import.process_lineup_batch(ctx, {"sync_job_id": ticket.job_id, "cursor": 0})

    artist = db_session.scalars(select(Artist).where(Artist.ticketmaster_id == "tm-Wet Leg")).one()
    job = db_session.get(SyncJob, ticket.job_id)
    db_session.refresh(job)
    assert job.status == SyncJobStatus.COMPLETED
    assert job.payload["counts"]["imported"] == 1
    phase_tasks = db_session.scalars(
        select(ScheduledTask).where(ScheduledTask.task_name.like("artist_import.%"))
    ).all()
    assert len(phase_tasks) == 4
    assert all(task.payload["artist_id"] == artist.id for task in phase_tasks)


def test_ticketmaster_lineup_preferred_when_large(db_session, settings, make_integrations):
    lineup = [{"_embedded": {"attractions": [{"name": f"Act {n}"}]}} for n in range(12)]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"_embedded": {"events": lineup}})

    integrations = make_integrations(handler)
    festival = lineup_import.upsert_festival(db_session, "Summer Sound", year=2026)
    ticket = lineup_import.start_lineup_import(
        db_session,
        festival=festival,
        provided_names=["Only One"],
        ticketmaster=integrations.ticketmaster,
        settings=settings,
        now=NOW,
    )
    assert ticket.source == "ticketmaster"
    assert ticket.total == 12


def test_ticketmaster_failure_falls_back_to_provided(db_session, settings, make_integrations):
    integrations = make_integrations(lambda request: httpx.Response(503))
    festival = lineup_import.upsert_festival(db_session, "Summer Sound", year=2026)
    ticket = lineup_import.start_lineup_import(
        db_session,
        festival=festival,
        provided_names=["Wet Leg", "Big Thief"],
        ticketmaster=integrations.ticketmaster,
        settings=settings,
        now=NOW,
    )
    assert ticket.source == "provided"
    assert ticket.total == 2
