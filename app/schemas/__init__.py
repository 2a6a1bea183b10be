"""Schema package exports."""
from .apikey import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from .imports import ArtistImportCreate, ImportTicketRead, LineupImportCreate, SyncJobRead
from .jobs import JobOutcomeRead, JobRunRead, JobSettingRead, JobSettingUpdate, TickRead
from .trending import ArtistSummary, TrendingArtistRead, TrendingShowRead, VenueSummary

__all__ = [
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyRead",
    "ArtistImportCreate",
    "ImportTicketRead",
    "LineupImportCreate",
    "SyncJobRead",
    "JobOutcomeRead",
    "JobRunRead",
    "JobSettingRead",
    "JobSettingUpdate",
    "TickRead",
    "ArtistSummary",
    "TrendingArtistRead",
    "TrendingShowRead",
    "VenueSummary",
]
