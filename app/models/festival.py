"""Festivals and their lineup links."""
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Festival(Base):
    __tablename__ = "festivals"

    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer)


class FestivalArtist(Base):
    __tablename__ = "festival_artists"
    __table_args__ = (UniqueConstraint("festival_id", "artist_id", name="uq_festival_artists_pair"),)

    festival_id: Mapped[int] = mapped_column(ForeignKey("festivals.id"), nullable=False, index=True)
    artist_id: Mapped[int] = mapped_column(ForeignKey("artists.id"), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)


__all__ = ["Festival", "FestivalArtist"]
