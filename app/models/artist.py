"""Artist catalog records."""
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Artist(Base):
    """A touring artist, keyed by its external catalog ids."""

    __tablename__ = "artists"

    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    lower_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ticketmaster_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    spotify_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    genres: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    popularity: Mapped[int | None] = mapped_column(Integer)
    followers: Mapped[int | None] = mapped_column(Integer)
    upcoming_shows_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    trending_score: Mapped[float | None] = mapped_column(Float)
    trending_rank: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sync_status: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    shows: Mapped[list["Show"]] = relationship(back_populates="artist")  # noqa: F821


__all__ = ["Artist"]
