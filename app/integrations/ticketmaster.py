"""Ticketmaster Discovery API client (the ticketing directory)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.integrations.base import (
    BaseClient,
    IntegrationNotConfigured,
    as_dict,
    as_int,
    as_list,
    as_str,
)


@dataclass(slots=True)
class Attraction:
    id: str
    name: str
    genres: list[str] = field(default_factory=list)
    images: list[dict[str, Any]] = field(default_factory=list)
    url: str | None = None
    upcoming_events: int = 0


@dataclass(slots=True)
class EventPage:
    events: list[dict[str, Any]]
    page: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


def best_image_url(images: list[Any]) -> str | None:
    """Prefer 16:9 images, then the widest one."""

    candidates = [as_dict(image) for image in images if as_str(as_dict(image).get("url"))]
    if not candidates:
        return None
    candidates.sort(
        key=lambda image: (image.get("ratio") == "16_9", as_int(image.get("width")) or 0),
        reverse=True,
    )
    return candidates[0]["url"]


def parse_attraction(raw: Any) -> Attraction | None:
    data = as_dict(raw)
    attraction_id = as_str(data.get("id"))
    name = as_str(data.get("name"))
    if not attraction_id or not name:
        return None
    genres: list[str] = []
    for classification in as_list(data.get("classifications")):
        genre = as_str(as_dict(as_dict(classification).get("genre")).get("name"))
        if genre and genre.lower() != "undefined" and genre not in genres:
            genres.append(genre)
    upcoming = as_int(as_dict(data.get("upcomingEvents")).get("_total")) or 0
    return Attraction(
        id=attraction_id,
        name=name,
        genres=genres,
        images=[as_dict(image) for image in as_list(data.get("images"))],
        url=as_str(data.get("url")),
        upcoming_events=max(0, upcoming),
    )


class TicketmasterClient(BaseClient):
    service = "ticketmaster"

    def __init__(self, api_key: str | None, base_url: str, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def _params(self, **params: Any) -> dict[str, Any]:
        if not self.api_key:
            raise IntegrationNotConfigured("TICKETMASTER_API_KEY is not configured")
        return {"apikey": self.api_key, **{k: v for k, v in params.items() if v is not None}}

    def _attractions(self, **params: Any) -> list[Attraction]:
        response = self._request("GET", "attractions.json", params=self._params(**params))
        payload = as_dict(self._decode_json(response))
        raw = as_list(as_dict(payload.get("_embedded")).get("attractions"))
        return [attraction for attraction in map(parse_attraction, raw) if attraction is not None]

    def search_attractions(self, keyword: str, *, size: int = 10) -> list[Attraction]:
        return self._attractions(keyword=keyword, classificationName="music", size=size)

    def get_attraction(self, attraction_id: str) -> Attraction | None:
        response = self._request(
            "GET",
            f"attractions/{attraction_id}.json",
            params=self._params(),
            allow_statuses=frozenset({404}),
        )
        if response.status_code == 404:
            return None
        return parse_attraction(self._decode_json(response))

    def trending_attractions(self, *, size: int = 50) -> list[Attraction]:
        return self._attractions(classificationName="music", sort="relevance,desc", size=size)

    def list_events(self, attraction_id: str, *, page: int = 0, size: int = 200) -> EventPage:
        response = self._request(
            "GET",
            "events.json",
            params=self._params(attractionId=attraction_id, page=page, size=size, sort="date,asc"),
        )
        payload = as_dict(self._decode_json(response))
        events = [as_dict(event) for event in as_list(as_dict(payload.get("_embedded")).get("events"))]
        page_info = as_dict(payload.get("page"))
        return EventPage(
            events=events,
            page=as_int(page_info.get("number")) or page,
            total_pages=as_int(page_info.get("totalPages")) or 1,
        )

    def festival_lineup(self, keyword: str, *, size: int = 100) -> list[str]:
        """Names of the attractions playing events that match ``keyword``."""

        response = self._request(
            "GET",
            "events.json",
            params=self._params(keyword=keyword, classificationName="music", size=size),
        )
        payload = as_dict(self._decode_json(response))
        names: list[str] = []
        for event in as_list(as_dict(payload.get("_embedded")).get("events")):
            for attraction in as_list(as_dict(as_dict(event).get("_embedded")).get("attractions")):
                name = as_str(as_dict(attraction).get("name"))
                if name and name not in names:
                    names.append(name)
        return names


__all__ = ["Attraction", "EventPage", "TicketmasterClient", "best_image_url", "parse_attraction"]
