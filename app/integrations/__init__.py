"""Clients for the external catalogs."""
from __future__ import annotations

from dataclasses import dataclass

from app.config import Settings
from app.integrations.base import (
    IntegrationError,
    IntegrationNotConfigured,
    RateLimitedError,
)
from app.integrations.setlistfm import SetlistFmClient
from app.integrations.spotify import SpotifyClient
from app.integrations.ticketmaster import TicketmasterClient


@dataclass
class Integrations:
    ticketmaster: TicketmasterClient
    spotify: SpotifyClient
    setlistfm: SetlistFmClient

    def close(self) -> None:
        self.ticketmaster.close()
        self.spotify.close()
        self.setlistfm.close()


def build_integrations(settings: Settings) -> Integrations:
    """Construct the clients; nothing touches the network until first use."""

    common = {
        "timeout_seconds": settings.HTTP_TIMEOUT_SECONDS,
        "max_attempts": settings.HTTP_MAX_ATTEMPTS,
        "backoff_base_ms": settings.HTTP_BACKOFF_BASE_MS,
        "pacing_ms": settings.HTTP_PACING_MS,
    }
    return Integrations(
        ticketmaster=TicketmasterClient(settings.TICKETMASTER_API_KEY, settings.TICKETMASTER_BASE_URL, **common),
        spotify=SpotifyClient(
            settings.SPOTIFY_CLIENT_ID,
            settings.SPOTIFY_CLIENT_SECRET,
            settings.SPOTIFY_API_BASE_URL,
            token_url=settings.SPOTIFY_TOKEN_URL,
            **common,
        ),
        setlistfm=SetlistFmClient(settings.SETLISTFM_API_KEY, settings.SETLISTFM_BASE_URL, **common),
    )


__all__ = [
    "Integrations",
    "build_integrations",
    "IntegrationError",
    "IntegrationNotConfigured",
    "RateLimitedError",
]
