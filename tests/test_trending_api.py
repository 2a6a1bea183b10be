import pytest

from app.models.artist import Artist
from app.models.show import Show, ShowStatus
from app.models.venue import Venue
from app.utils.time import utcnow


def _seed(db_session):
    image = [{"url": "https://img.test/a.jpg", "width": 640}]
    star = Artist(
        name="Star", slug="star", lower_name="star", followers=8_000_000, popularity=88, images=image, upcoming_shows_count=4
    )
    opener = Artist(name="Opener", slug="opener", lower_name="opener", popularity=20)
    arena = Venue(name="Capital One Arena", city="Washington", country="US", capacity=20_000)
    db_session.add_all([star, opener, arena])
    db_session.flush()
    db_session.add(
        Show(
            slug="star-dc",
            artist_id=star.id,
            venue_id=arena.id,
            date=utcnow().date().isoformat(),
            status=ShowStatus.UPCOMING,
        )
    )
    db_session.commit()
    return star, opener


@pytest.mark.anyio
async def test_trending_lists_are_public_and_empty_by_default(client):
    for path in ("/trending/artists", "/trending/shows", "/trending/home/artists", "/trending/home/shows"):
        response = await client.get(path)
        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.anyio
async def test_recompute_requires_admin(client, operator_headers):
    response = await client.post("/trending/recompute", headers=operator_headers)
    assert response.status_code == 403


@pytest.mark.anyio
async def test_recompute_then_list(client, admin_headers, db_session):
    star, opener = _seed(db_session)

    response = await client.post("/trending/recompute", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["artists"] == {"scored": 2, "ranked": 2}
    assert response.json()["shows"]["ranked"] == 1

    artists = (await client.get("/trending/artists")).json()
    assert [artist["name"] for artist in artists] == ["Star", "Opener"]
    assert [artist["trending_rank"] for artist in artists] == [1, 2]

    shows = (await client.get("/trending/shows")).json()
    assert shows[0]["artist"]["name"] == "Star"
    assert shows[0]["venue"]["capacity"] == 20_000
    assert shows[0]["status"] == "upcoming"

    home = (await client.get("/trending/home/artists")).json()
    assert [artist["name"] for artist in home] == ["Star"]
    home_shows = (await client.get("/trending/home/shows")).json()
    assert [show["slug"] for show in home_shows] == ["star-dc"]


@pytest.mark.anyio
async def test_limit_is_bounded(client):
    response = await client.get("/trending/artists", params={"limit": 101})
    assert response.status_code == 422
