"""Trending and home surface schemas."""
from pydantic import BaseModel, ConfigDict

from app.models.show import ShowStatus


class TrendingArtistRead(BaseModel):
    id: int
    slug: str
    name: str
    genres: list
    images: list
    popularity: int | None
    followers: int | None
    upcoming_shows_count: int
    trending_score: float | None
    trending_rank: int

    model_config = ConfigDict(from_attributes=True)


class VenueSummary(BaseModel):
    id: int
    name: str
    city: str
    state: str | None
    country: str
    capacity: int | None

    model_config = ConfigDict(from_attributes=True)


class ArtistSummary(BaseModel):
    id: int
    slug: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class TrendingShowRead(BaseModel):
    id: int
    slug: str
    date: str
    start_time: str | None
    status: ShowStatus
    ticket_url: str | None
    trending_score: float | None
    trending_rank: int
    artist: ArtistSummary
    venue: VenueSummary

    model_config = ConfigDict(from_attributes=True)
