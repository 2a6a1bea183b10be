"""ORM models package."""
from .api_key import ApiKey, ApiScope
from .artist import Artist
from .audit import AuditLog
from .base import Base
from .festival import Festival, FestivalArtist
from .job_run import JobRun, RunStatus
from .job_setting import JobSetting
from .maintenance_lock import MaintenanceLock
from .scheduled_task import ScheduledTask, TaskStatus
from .setlist import Setlist
from .show import SetlistImportStatus, Show, ShowStatus
from .song import ArtistSong, Song
from .sync_job import SyncJob, SyncJobStatus, SyncJobType
from .venue import Venue

__all__ = [
    "ApiKey",
    "ApiScope",
    "Artist",
    "ArtistSong",
    "AuditLog",
    "Base",
    "Festival",
    "FestivalArtist",
    "JobRun",
    "JobSetting",
    "MaintenanceLock",
    "RunStatus",
    "ScheduledTask",
    "SetlistImportStatus",
    "Setlist",
    "Show",
    "ShowStatus",
    "Song",
    "SyncJob",
    "SyncJobStatus",
    "SyncJobType",
    "TaskStatus",
    "Venue",
]
