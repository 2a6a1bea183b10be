import httpx
import pytest

from app.integrations.base import (
    IntegrationHTTPStatusError,
    IntegrationNotConfigured,
    RateLimitedError,
    as_int,
    parse_retry_after_ms,
)
from app.integrations.setlistfm import SetlistFmClient, parse_setlist, to_setlistfm_date
from app.integrations.spotify import SpotifyClient
from app.integrations.ticketmaster import TicketmasterClient, best_image_url
from conftest import SETLISTFM_BASE, SPOTIFY_BASE, SPOTIFY_TOKEN, TM_BASE


class Sleeps(list):
    def __call__(self, seconds):
        self.append(seconds)


def _ticketmaster(handler, sleeps=None, **kwargs):
    return TicketmasterClient(
        "tm-key",
        TM_BASE,
        transport=httpx.MockTransport(handler),
        sleep=sleeps if sleeps is not None else (lambda seconds: None),
        backoff_base_ms=100,
        **kwargs,
    )


def test_rate_limit_backs_off_then_succeeds():
    responses = iter(
        [
            httpx.Response(429),
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(200, json={"_embedded": {"attractions": [{"id": "K1", "name": "Wet Leg"}]}}),
        ]
    )
    sleeps = Sleeps()
    client = _ticketmaster(lambda request: next(responses), sleeps, max_attempts=3)

    found = client.search_attractions("Wet Leg")

    assert [attraction.id for attraction in found] == ["K1"]
    assert sleeps == [0.1, 2.0]


def test_persistent_rate_limit_raises():
    client = _ticketmaster(lambda request: httpx.Response(429), max_attempts=2)
    with pytest.raises(RateLimitedError) as exc_info:
        client.trending_attractions()
    assert exc_info.value.status_code == 429


def test_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, text="bad request")

    client = _ticketmaster(handler, max_attempts=3)
    with pytest.raises(IntegrationHTTPStatusError) as exc_info:
        client.search_attractions("x")
    assert exc_info.value.status_code == 400
    assert len(calls) == 1


def test_missing_api_key_is_not_configured():
    client = TicketmasterClient(None, TM_BASE, transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with pytest.raises(IntegrationNotConfigured):
        client.search_attractions("x")


def test_get_attraction_returns_none_on_404():
    client = _ticketmaster(lambda request: httpx.Response(404))
    assert client.get_attraction("missing") is None


def test_festival_lineup_collects_unique_names():
    events = [
        {"_embedded": {"attractions": [{"name": "Wet Leg"}, {"name": "Big Thief"}]}},
        {"_embedded": {"attractions": [{"name": "Wet Leg"}]}},
    ]
    client = _ticketmaster(lambda request: httpx.Response(200, json={"_embedded": {"events": events}}))
    assert client.festival_lineup("Summer Sound") == ["Wet Leg", "Big Thief"]


def test_list_events_reports_paging():
    payload = {"_embedded": {"events": [{"id": "E1"}]}, "page": {"number": 0, "totalPages": 3}}
    client = _ticketmaster(lambda request: httpx.Response(200, json=payload))
    page = client.list_events("K1")
    assert page.has_next
    assert [event["id"] for event in page.events] == ["E1"]


def test_best_image_url_prefers_wide_16_9():
    images = [
        {"url": "small", "ratio": "16_9", "width": 100},
        {"url": "square", "ratio": "1_1", "width": 2000},
        {"url": "large", "ratio": "16_9", "width": 1024},
    ]
    assert best_image_url(images) == "large"
    assert best_image_url([]) is None


def test_setlistfm_date_conversion():
    assert to_setlistfm_date("2026-06-01") == "01-06-2026"


def test_setlistfm_404_means_no_setlist():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        seen["key"] = request.headers["x-api-key"]
        return httpx.Response(404)

    client = SetlistFmClient("sl-key", SETLISTFM_BASE, transport=httpx.MockTransport(handler))
    assert client.search_setlist("Wet Leg", "London", "2026-05-30") is None
    assert seen["date"] == "30-05-2026"
    assert seen["cityName"] == "London"
    assert seen["key"] == "sl-key"


def test_setlistfm_skips_empty_setlists():
    payload = {
        "setlist": [
            {"id": "empty", "sets": {"set": []}},
            {
                "id": "full",
                "sets": {
                    "set": [
                        {"song": [{"name": "Chaise Longue"}, {"name": ""}]},
                        {"encore": 1, "song": [{"name": "Angelica"}]},
                    ]
                },
            },
        ]
    }
    client = SetlistFmClient(
        "sl-key", SETLISTFM_BASE, transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
    )
    found = client.search_setlist("Wet Leg", None, "2026-05-30")
    assert found.id == "full"
    assert [(song.title, song.encore) for song in found.songs] == [("Chaise Longue", False), ("Angelica", True)]
    assert parse_setlist({"sets": {}}) is None


def test_spotify_token_is_cached_until_expiry():
    token_calls = []
    now = [1000.0]

    def handler(request):
        if request.url.path == "/api/token":
            token_calls.append(request)
            return httpx.Response(200, json={"access_token": f"tok{len(token_calls)}", "expires_in": 3600})
        assert request.headers["Authorization"] == f"Bearer tok{len(token_calls)}"
        return httpx.Response(200, json={"artists": {"items": [{"id": "sp1", "name": "Wet Leg"}]}})

    client = SpotifyClient(
        "id",
        "secret",
        SPOTIFY_BASE,
        token_url=SPOTIFY_TOKEN,
        clock=lambda: now[0],
        transport=httpx.MockTransport(handler),
    )
    client.search_artist("Wet Leg")
    client.search_artist("Wet Leg")
    assert len(token_calls) == 1

    now[0] += 3600
    assert client.search_artist("Wet Leg").id == "sp1"
    assert len(token_calls) == 2


def test_spotify_without_credentials_is_not_configured():
    client = SpotifyClient(None, None, SPOTIFY_BASE, token_url=SPOTIFY_TOKEN)
    with pytest.raises(IntegrationNotConfigured):
        client.search_artist("anyone")
    client.close()


def test_spotify_album_pagination_follows_next():
    pages = {
        "/v1/artists/sp1/albums": {
            "items": [{"id": "a1", "name": "One", "album_type": "album"}],
            "next": f"{SPOTIFY_BASE}/artists/sp1/albums?offset=1",
        },
    }

    def handler(request):
        if request.url.path == "/api/token":
            return httpx.Response(200, json={"access_token": "tok"})
        if request.url.params.get("offset") == "1":
            return httpx.Response(200, json={"items": [{"id": "a2", "name": "Two"}], "next": None})
        return httpx.Response(200, json=pages[request.url.path])

    client = SpotifyClient(
        "id", "secret", SPOTIFY_BASE, token_url=SPOTIFY_TOKEN, transport=httpx.MockTransport(handler)
    )
    albums = client.list_albums("sp1")
    assert [(album.id, album.album_type) for album in albums] == [("a1", "album"), ("a2", "album")]


def test_parse_helpers():
    assert parse_retry_after_ms({"Retry-After": "1.5"}) == 1500
    assert parse_retry_after_ms({"Retry-After": "soon"}) is None
    assert parse_retry_after_ms({}) is None
    assert as_int("42") == 42
    assert as_int(True) is None
    assert as_int(float("nan")) is None
