import pytest

from app.integrations.spotify import SpotifyAlbum, SpotifyTrack
from app.services.catalog_filters import (
    is_studio_album,
    is_studio_song,
    normalize_track_title,
    select_best_versions,
)


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Motion Sickness", True),
        ("Motion Sickness (Live at Electric Lady)", False),
        ("Kyoto - Live", False),
        ("Garden Song [Live]", False),
        ("Savior Complex - Remix", False),
        ("Scott Street (Demo)", False),
        ("Intro", False),
        ("Interlude", False),
        ("Liverpool", True),
        ("", False),
        (None, False),
        ("x" * 101, False),
    ],
)
def test_is_studio_song(title, expected):
    assert is_studio_song(title) is expected


def test_is_studio_album():
    assert is_studio_album(SpotifyAlbum(id="1", name="Punisher", album_type="album", album_group="album"))
    assert not is_studio_album(SpotifyAlbum(id="2", name="Greatest Hits", album_type="album"))
    assert not is_studio_album(SpotifyAlbum(id="3", name="Various", album_type="compilation"))
    assert not is_studio_album(SpotifyAlbum(id="4", name="Stranger", album_type="album", album_group="appears_on"))


def test_normalize_track_title():
    assert normalize_track_title("Kyoto (Remastered 2021)") == "kyoto"
    assert normalize_track_title("I Know  The End!") == "i know the end"


def _track(track_id, name, album_name, album_type, popularity=0):
    return SpotifyTrack(
        id=track_id,
        name=name,
        album_id=f"al-{track_id}",
        album_name=album_name,
        album_type=album_type,
        popularity=popularity,
    )


def test_best_version_prefers_album_then_non_deluxe():
    tracks = [
        _track("single", "Kyoto", "Kyoto", "single", popularity=90),
        _track("deluxe", "Kyoto", "Punisher (Deluxe)", "album", popularity=80),
        _track("album", "Kyoto", "Punisher", "album", popularity=10),
        _track("other", "Garden Song", "Punisher", "album"),
    ]
    chosen = {track.name: track.id for track in select_best_versions(tracks)}
    assert chosen == {"Kyoto": "album", "Garden Song": "other"}
