"""Spotify Web API client (the music catalog), client-credentials flow."""
from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from app.integrations.base import (
    BaseClient,
    IntegrationError,
    IntegrationNotConfigured,
    as_dict,
    as_int,
    as_list,
    as_str,
)

# Refresh the token a little before Spotify would reject it.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


@dataclass(slots=True)
class SpotifyArtist:
    id: str
    name: str
    popularity: int | None = None
    followers: int | None = None
    genres: list[str] = field(default_factory=list)
    images: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class SpotifyAlbum:
    id: str
    name: str
    album_type: str
    album_group: str | None = None


@dataclass(slots=True)
class SpotifyTrack:
    id: str
    name: str
    album_id: str
    album_name: str
    album_type: str
    duration_ms: int | None = None
    popularity: int = 0


def parse_artist(raw: Any) -> SpotifyArtist | None:
    data = as_dict(raw)
    artist_id = as_str(data.get("id"))
    name = as_str(data.get("name"))
    if not artist_id or not name:
        return None
    return SpotifyArtist(
        id=artist_id,
        name=name,
        popularity=as_int(data.get("popularity")),
        followers=as_int(as_dict(data.get("followers")).get("total")),
        genres=[genre for genre in as_list(data.get("genres")) if isinstance(genre, str)],
        images=[as_dict(image) for image in as_list(data.get("images"))],
    )


class SpotifyClient(BaseClient):
    service = "spotify"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        base_url: str,
        *,
        token_url: str,
        clock: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0

    def _access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise IntegrationNotConfigured("SPOTIFY_CLIENT_ID/SPOTIFY_CLIENT_SECRET are not configured")
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        response = self._request(
            "POST",
            self.token_url,
            headers={"Authorization": f"Basic {credentials}"},
            data={"grant_type": "client_credentials"},
        )
        payload = as_dict(self._decode_json(response))
        token = as_str(payload.get("access_token"))
        if not token:
            raise IntegrationError("spotify token response had no access_token")
        expires_in = as_int(payload.get("expires_in")) or 3600
        self._token = token
        self._token_expires_at = self._clock() + max(0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        return token

    def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        response = self._request("GET", url, params=params, headers=headers)
        return as_dict(self._decode_json(response))

    def search_artist(self, name: str) -> SpotifyArtist | None:
        payload = self._get("search", {"q": name, "type": "artist", "limit": 1})
        items = as_list(as_dict(payload.get("artists")).get("items"))
        return parse_artist(items[0]) if items else None

    def get_artist(self, artist_id: str) -> SpotifyArtist | None:
        return parse_artist(self._get(f"artists/{artist_id}"))

    def _paginate(self, url: str, params: dict[str, Any] | None) -> Iterator[dict[str, Any]]:
        next_url: str | None = url
        while next_url:
            payload = self._get(next_url, params)
            params = None  # the ``next`` link already carries the query string
            for item in as_list(payload.get("items")):
                yield as_dict(item)
            next_url = as_str(payload.get("next"))
            if next_url:
                self.pause()

    def list_albums(self, artist_id: str) -> list[SpotifyAlbum]:
        albums: list[SpotifyAlbum] = []
        params = {"include_groups": "album,single", "market": "US", "limit": 50}
        for item in self._paginate(f"artists/{artist_id}/albums", params):
            album_id = as_str(item.get("id"))
            name = as_str(item.get("name"))
            if not album_id or not name:
                continue
            albums.append(
                SpotifyAlbum(
                    id=album_id,
                    name=name,
                    album_type=as_str(item.get("album_type")) or "album",
                    album_group=as_str(item.get("album_group")),
                )
            )
        return albums

    def list_album_tracks(self, album: SpotifyAlbum) -> list[SpotifyTrack]:
        tracks: list[SpotifyTrack] = []
        for item in self._paginate(f"albums/{album.id}/tracks", {"limit": 50, "market": "US"}):
            track_id = as_str(item.get("id"))
            name = as_str(item.get("name"))
            if not track_id or not name:
                continue
            tracks.append(
                SpotifyTrack(
                    id=track_id,
                    name=name,
                    album_id=album.id,
                    album_name=album.name,
                    album_type=album.album_type,
                    duration_ms=as_int(item.get("duration_ms")),
                    popularity=as_int(item.get("popularity")) or 0,
                )
            )
        return tracks


__all__ = [
    "SpotifyArtist",
    "SpotifyAlbum",
    "SpotifyTrack",
    "SpotifyClient",
    "parse_artist",
]
