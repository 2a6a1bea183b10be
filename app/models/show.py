"""Show (concert date) records."""
from enum import Enum as PyEnum

from sqlalchemy import Enum as SqlEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ShowStatus(str, PyEnum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SetlistImportStatus(str, PyEnum):
    PENDING = "pending"
    IMPORTING = "importing"
    COMPLETED = "completed"
    NO_SETLIST = "no_setlist"
    FAILED = "failed"


class Show(Base):
    """One artist performance at a venue on a ``YYYY-MM-DD`` date."""

    __tablename__ = "shows"

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    artist_id: Mapped[int] = mapped_column(ForeignKey("artists.id"), nullable=False, index=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False, index=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    start_time: Mapped[str | None] = mapped_column(String(5))
    status: Mapped[ShowStatus] = mapped_column(
        SqlEnum(ShowStatus, name="show_status"), default=ShowStatus.UPCOMING, nullable=False, index=True
    )
    ticketmaster_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    setlistfm_id: Mapped[str | None] = mapped_column(String(64))
    ticket_url: Mapped[str | None] = mapped_column(String(500))
    price_range: Mapped[str | None] = mapped_column(String(64))
    vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    setlist_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    trending_score: Mapped[float | None] = mapped_column(Float)
    trending_rank: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    import_status: Mapped[SetlistImportStatus | None] = mapped_column(
        SqlEnum(SetlistImportStatus, name="setlist_import_status")
    )

    artist: Mapped["Artist"] = relationship(back_populates="shows")  # noqa: F821
    venue: Mapped["Venue"] = relationship()  # noqa: F821


__all__ = ["Show", "ShowStatus", "SetlistImportStatus"]
