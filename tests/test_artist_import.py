import httpx
from sqlalchemy import select

from app.integrations.ticketmaster import Attraction
from app.models.artist import Artist
from app.models.scheduled_task import ScheduledTask
from app.models.show import Show, ShowStatus
from app.models.song import ArtistSong, Song
from app.models.sync_job import SyncJob, SyncJobStatus
from app.services import artist_import
from conftest import NOW

ATTRACTION = Attraction(id="K1", name="Phoebe Bridgers", genres=["Rock"], upcoming_events=2)

EVENTS = {
    "_embedded": {
        "events": [
            {
                "id": "E1",
                "url": "https://tickets.test/e1",
                "dates": {"start": {"localDate": "2026-07-01", "localTime": "19:30:00"}, "status": {"code": "onsale"}},
                "priceRanges": [{"min": 50, "max": 120}],
                "_embedded": {
                    "venues": [
                        {
                            "id": "V1",
                            "name": "Madison Square Garden",
                            "city": {"name": "New York"},
                            "state": {"stateCode": "NY"},
                            "country": {"countryCode": "US"},
                        }
                    ]
                },
            },
            {
                "id": "E0",
                "dates": {"start": {"localDate": "2026-03-01"}},
                "_embedded": {"venues": [{"id": "V2", "name": "The Anthem", "city": {"name": "Washington"}}]},
            },
        ]
    },
    "page": {"number": 0, "totalPages": 1},
}

SPOTIFY_ARTIST = {
    "id": "sp1",
    "name": "Phoebe Bridgers",
    "popularity": 78,
    "followers": {"total": 3_200_000},
    "genres": ["indie pop"],
    "images": [{"url": "https://img.test/pb.jpg", "width": 640}],
}


def catalog_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/events.json"):
        return httpx.Response(200, json=EVENTS)
    if path == "/api/token":
        return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
    if path == "/v1/search":
        return httpx.Response(200, json={"artists": {"items": [SPOTIFY_ARTIST]}})
    if path == "/v1/artists/sp1":
        return httpx.Response(200, json=SPOTIFY_ARTIST)
    if path == "/v1/artists/sp1/albums":
        return httpx.Response(
            200,
            json={
                "items": [
                    {"id": "al1", "name": "Punisher", "album_type": "album", "album_group": "album"},
                    {"id": "al2", "name": "Live at the Greek", "album_type": "album", "album_group": "album"},
                ],
                "next": None,
            },
        )
    if path == "/v1/albums/al1/tracks":
        return httpx.Response(
            200,
            json={
                "items": [
                    {"id": "t1", "name": "Kyoto", "duration_ms": 184000},
                    {"id": "t2", "name": "Kyoto - Live", "duration_ms": 190000},
                    {"id": "t3", "name": "Garden Song", "duration_ms": 220000},
                ],
                "next": None,
            },
        )
    return httpx.Response(404, json={"error": "not found"})


def spotify_down_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host.startswith("spotify") or request.url.path == "/api/token":
        return httpx.Response(500, text="unavailable")
    return catalog_handler(request)


def _trigger(db_session, settings):
    ticket = artist_import.trigger_artist_import(db_session, attraction=ATTRACTION, settings=settings, now=NOW)
    payload = {"artist_id": ticket.entity_id, "sync_job_id": ticket.job_id}
    return ticket, payload


def test_trigger_creates_artist_and_schedules_phases(db_session, settings):
    ticket, _ = _trigger(db_session, settings)

    artist = db_session.get(Artist, ticket.entity_id)
    assert artist.name == "Phoebe Bridgers"
    assert artist.ticketmaster_id == "K1"
    assert artist.sync_status["phase"] == "queued"

    tasks = db_session.scalars(select(ScheduledTask).order_by(ScheduledTask.run_after)).all()
    assert [task.task_name for task in tasks] == [artist_import.task_name(phase) for phase in artist_import.PHASES]
    delays = [int((task.run_after.replace(tzinfo=None) - NOW.replace(tzinfo=None)).total_seconds() * 1000) for task in tasks]
    assert delays == settings.ARTIST_PHASE_DELAYS_MS

    job = db_session.get(SyncJob, ticket.job_id)
    assert job.status == SyncJobStatus.RUNNING
    assert job.total_steps == 4


def test_second_trigger_returns_running_job(db_session, settings):
    first, _ = _trigger(db_session, settings)
    second, _ = _trigger(db_session, settings)
    assert second.job_id == first.job_id
    assert len(db_session.scalars(select(SyncJob)).all()) == 1


def test_phases_complete_in_any_order(db_session, settings, make_integrations, make_context):
    ticket, payload = _trigger(db_session, settings)
    ctx = make_context(make_integrations(catalog_handler))

    artist_import.run_counts_phase(ctx, payload)
    artist_import.run_enrichment_phase(ctx, payload)
    artist_import.run_catalog_phase(ctx, payload)
    job = db_session.get(SyncJob, ticket.job_id)
    assert job.status == SyncJobStatus.RUNNING
    assert job.completed_steps == 3

    artist_import.run_shows_phase(ctx, payload)
    db_session.refresh(job)
    assert job.status == SyncJobStatus.COMPLETED
    assert job.progress_percentage == 100.0

    artist = db_session.get(Artist, ticket.entity_id)
    db_session.refresh(artist)
    assert artist.spotify_id == "sp1"
    assert artist.followers == 3_200_000
    assert artist.sync_status["phase"] == "completed"
    assert artist.sync_status["showCount"] == 2
    assert artist.sync_status["songCount"] == 2

    titles = {song.title for song in db_session.scalars(select(Song))}
    assert titles == {"Kyoto", "Garden Song"}
    assert len(db_session.scalars(select(ArtistSong)).all()) == 2

    shows = {show.ticketmaster_id: show for show in db_session.scalars(select(Show))}
    assert shows["E1"].status == ShowStatus.UPCOMING
    assert shows["E1"].start_time == "19:30"
    assert shows["E1"].price_range == "$50-120"
    assert shows["E0"].status == ShowStatus.COMPLETED


def test_failed_phase_does_not_block_the_others(db_session, settings, make_integrations, make_context):
    ticket, payload = _trigger(db_session, settings)
    ctx = make_context(make_integrations(spotify_down_handler))

    for phase in artist_import.PHASES:
        artist_import.TASK_HANDLERS[artist_import.task_name(phase)](ctx, payload)

    job = db_session.get(SyncJob, ticket.job_id)
    db_session.refresh(job)
    assert job.status == SyncJobStatus.COMPLETED

    artist = db_session.get(Artist, ticket.entity_id)
    db_session.refresh(artist)
    assert artist.sync_status["showsImported"] is True
    assert artist.sync_status["catalogImported"] is False
    assert artist.sync_status["basicsEnriched"] is False
    assert "spotify" in artist.sync_status["error"]


def test_redelivered_phase_is_not_counted_twice(db_session, settings, make_integrations, make_context):
    ticket, payload = _trigger(db_session, settings)
    ctx = make_context(make_integrations(catalog_handler))

    artist_import.run_shows_phase(ctx, payload)
    artist_import.run_shows_phase(ctx, payload)

    job = db_session.get(SyncJob, ticket.job_id)
    db_session.refresh(job)
    assert job.completed_steps == 1
    assert len(db_session.scalars(select(Show)).all()) == 2


def test_pick_attraction_prefers_exact_name():
    candidates = [
        Attraction(id="A", name="Phoebe Bridgers Tribute"),
        Attraction(id="B", name="phoebe bridgers"),
    ]
    assert artist_import.pick_attraction("Phoebe Bridgers", candidates).id == "B"
    assert artist_import.pick_attraction("Someone Else", candidates).id == "A"
    assert artist_import.pick_attraction("Anyone", []) is None
