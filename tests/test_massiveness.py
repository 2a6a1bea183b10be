import pytest

from app.services.massiveness import (
    compute_massiveness_score,
    has_non_concert_genre,
    is_major_venue,
    is_massive_artist,
    is_massive_show,
    is_non_concert_entry,
)


@pytest.mark.parametrize(
    "name",
    [
        "Hamilton Tribute Orchestra Experience",
        "The Music of Queen - A Tribute",
        "Harry Potter Film with Live Orchestra",
        "Chicago Symphony",
        "Late Night Comedy Hour",
    ],
)
def test_non_concert_names_are_rejected(name):
    assert is_non_concert_entry(name)
    assert not is_massive_artist(name, 99, 50_000_000, 40)


def test_non_concert_genre_is_rejected():
    assert not is_massive_artist("Yo-Yo Ma", 80, 6_000_000, 10, genres=["Classical"])


def test_genre_reject_matches_whole_genres_only():
    assert has_non_concert_genre(["Opera"])
    assert not has_non_concert_genre(["neoclassical darkwave", "space opera rock"])
    assert is_massive_artist("Lebanon Hanover", 80, 6_000_000, 10, genres=["neoclassical darkwave"])


@pytest.mark.parametrize(
    ("popularity", "followers", "upcoming", "expected"),
    [
        (70, 0, 0, True),
        (20, 5_000_000, 0, True),
        (60, 1_000_000, 0, True),
        (55, 500_000, 3, True),
        (55, 500_000, 2, False),
        (59, 999_999, 0, False),
        (None, None, None, False),
        (float("nan"), float("inf"), None, False),
    ],
)
def test_artist_tiers(popularity, followers, upcoming, expected):
    assert is_massive_artist("Phoebe Bridgers", popularity, followers, upcoming) is expected


def test_major_venue_by_capacity_or_keyword():
    assert is_major_venue("The Basement", 8_000)
    assert is_major_venue("Crypto.com Arena", None)
    assert not is_major_venue("The Basement", 400)


def test_massive_show_needs_image_and_upcoming_status():
    kwargs = dict(
        artist_name="Phoebe Bridgers",
        image_url="https://img.test/pb.jpg",
        venue_name="Madison Square Garden",
        venue_capacity=19_500,
        popularity=78,
        followers=3_200_000,
        upcoming_events=12,
    )
    assert is_massive_show(status="upcoming", **kwargs)
    assert not is_massive_show(status="completed", **kwargs)
    assert not is_massive_show(status="upcoming", **{**kwargs, "image_url": None})
    assert not is_massive_show(status="upcoming", **{**kwargs, "artist_name": "Unknown Artist"})
    assert not is_massive_show(status="upcoming", **{**kwargs, "artist_name": "Unknown Artist (TBA)"})


def test_score_prefers_bigger_audiences():
    small = compute_massiveness_score(followers=10_000, popularity=40, venue_capacity=1_000)
    large = compute_massiveness_score(followers=10_000_000, popularity=85, venue_capacity=40_000)
    assert large > small
    assert compute_massiveness_score(followers=float("nan"), popularity=None) >= 0
