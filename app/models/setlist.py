"""Setlists imported from the setlist archive."""
from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Setlist(Base):
    """Song order for a show; ``songs`` holds ``{"title", "encore"}`` entries."""

    __tablename__ = "setlists"

    show_id: Mapped[int] = mapped_column(ForeignKey("shows.id"), nullable=False, index=True)
    setlistfm_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    songs: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    source: Mapped[str] = mapped_column(String(32), default="setlistfm", nullable=False)


__all__ = ["Setlist"]
