"""Studio catalog songs and their artist links."""
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Song(Base):
    __tablename__ = "songs"

    spotify_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    album: Mapped[str | None] = mapped_column(String(255))
    album_type: Mapped[str | None] = mapped_column(String(32))
    popularity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(Integer)


class ArtistSong(Base):
    __tablename__ = "artist_songs"
    __table_args__ = (UniqueConstraint("artist_id", "song_id", name="uq_artist_songs_pair"),)

    artist_id: Mapped[int] = mapped_column(ForeignKey("artists.id"), nullable=False, index=True)
    song_id: Mapped[int] = mapped_column(ForeignKey("songs.id"), nullable=False)


__all__ = ["Song", "ArtistSong"]
