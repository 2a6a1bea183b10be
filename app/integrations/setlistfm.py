"""setlist.fm API client (the setlist archive)."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from app.integrations.base import BaseClient, IntegrationNotConfigured, as_dict, as_list, as_str


@dataclass(slots=True)
class SetlistSong:
    title: str
    encore: bool = False


@dataclass(slots=True)
class FoundSetlist:
    id: str
    songs: list[SetlistSong] = field(default_factory=list)
    url: str | None = None


def to_setlistfm_date(value: str) -> str:
    """Convert ``YYYY-MM-DD`` to the archive's ``dd-MM-yyyy`` format."""

    parsed = date.fromisoformat(value)
    return parsed.strftime("%d-%m-%Y")


def parse_setlist(raw: Any) -> FoundSetlist | None:
    data = as_dict(raw)
    setlist_id = as_str(data.get("id"))
    if not setlist_id:
        return None
    songs: list[SetlistSong] = []
    for set_block in as_list(as_dict(data.get("sets")).get("set")):
        block = as_dict(set_block)
        encore = bool(block.get("encore"))
        for song in as_list(block.get("song")):
            title = as_str(as_dict(song).get("name"))
            if title:
                songs.append(SetlistSong(title=title, encore=encore))
    return FoundSetlist(id=setlist_id, songs=songs, url=as_str(data.get("url")))


class SetlistFmClient(BaseClient):
    service = "setlistfm"

    def __init__(self, api_key: str | None, base_url: str, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def search_setlist(self, artist_name: str, city: str | None, show_date: str) -> FoundSetlist | None:
        """Return the first setlist with songs, or ``None`` when the archive has none.

        Raises ``RateLimitedError`` when the archive keeps answering 429.
        """

        if not self.api_key:
            raise IntegrationNotConfigured("SETLISTFM_API_KEY is not configured")
        params: dict[str, Any] = {"artistName": artist_name, "date": to_setlistfm_date(show_date)}
        if city:
            params["cityName"] = city
        response = self._request(
            "GET",
            "search/setlists",
            params=params,
            headers={"x-api-key": self.api_key, "Accept": "application/json"},
            allow_statuses=frozenset({404}),
        )
        if response.status_code == 404:
            return None
        payload = as_dict(self._decode_json(response))
        for raw in as_list(payload.get("setlist")):
            setlist = parse_setlist(raw)
            if setlist is not None and setlist.songs:
                return setlist
        return None


__all__ = ["SetlistSong", "FoundSetlist", "SetlistFmClient", "to_setlistfm_date", "parse_setlist"]
