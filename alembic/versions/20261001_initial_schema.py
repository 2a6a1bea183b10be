"""initial schema

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01 09:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "maintenance_locks",
        *_base_columns(),
        sa.Column("name", sa.String(length=160), nullable=False, unique=True),
        sa.Column("is_running", sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "job_settings",
        *_base_columns(),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("interval_ms", sa.BigInteger, nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("run_now_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("last_duration_ms", sa.BigInteger, nullable=True),
    )

    op.create_table(
        "job_runs",
        *_base_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum("RUNNING", "SUCCESS", "FAILURE", "SKIPPED", name="job_run_status"),
            nullable=False,
        ),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("duration_ms", sa.BigInteger, nullable=True),
        sa.Column("stats", sa.JSON, nullable=True),
    )
    op.create_index("ix_job_runs_name_started_at", "job_runs", ["name", "started_at"])
    op.create_index("ix_job_runs_started_at", "job_runs", ["started_at"])

    op.create_table(
        "sync_jobs",
        *_base_columns(),
        sa.Column(
            "type",
            sa.Enum("ARTIST_IMPORT", "FESTIVAL_LINEUP_IMPORT", name="sync_job_type"),
            nullable=False,
        ),
        sa.Column("entity_id", sa.Integer, nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default="5"),
        sa.Column(
            "status",
            sa.Enum("PENDING", "RUNNING", "COMPLETED", "FAILED", name="sync_job_status"),
            nullable=False,
        ),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        sa.Column("current_phase", sa.String(length=64), nullable=True),
        sa.Column("total_steps", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_steps", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_step", sa.String(length=255), nullable=True),
        sa.Column("items_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_items", sa.Integer, nullable=False, server_default="0"),
        sa.Column("progress_percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("payload", sa.JSON, nullable=False),
    )
    op.create_index("ix_sync_jobs_entity_id", "sync_jobs", ["entity_id"])
    op.create_index("ix_sync_jobs_status", "sync_jobs", ["status"])

    op.create_table(
        "scheduled_tasks",
        *_base_columns(),
        sa.Column("task_name", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("run_after", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "CLAIMED", "DONE", "FAILED", name="scheduled_task_status"),
            nullable=False,
        ),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
    )
    op.create_index("ix_scheduled_tasks_task_name", "scheduled_tasks", ["task_name"])
    op.create_index("ix_scheduled_tasks_status_run_after", "scheduled_tasks", ["status", "run_after"])

    op.create_table(
        "artists",
        *_base_columns(),
        sa.Column("slug", sa.String(length=200), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("lower_name", sa.String(length=255), nullable=False),
        sa.Column("ticketmaster_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("spotify_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("genres", sa.JSON, nullable=False),
        sa.Column("images", sa.JSON, nullable=False),
        sa.Column("popularity", sa.Integer, nullable=True),
        sa.Column("followers", sa.Integer, nullable=True),
        sa.Column("upcoming_shows_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("trending_score", sa.Float, nullable=True),
        sa.Column("trending_rank", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_status", sa.JSON, nullable=False),
    )
    op.create_index("ix_artists_lower_name", "artists", ["lower_name"])
    op.create_index("ix_artists_trending_rank", "artists", ["trending_rank"])

    op.create_table(
        "venues",
        *_base_columns(),
        sa.Column("ticketmaster_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("state", sa.String(length=120), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("capacity", sa.Integer, nullable=True),
        sa.Column("lat", sa.Float, nullable=True),
        sa.Column("lng", sa.Float, nullable=True),
    )

    op.create_table(
        "shows",
        *_base_columns(),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("artist_id", sa.Integer, sa.ForeignKey("artists.id"), nullable=False),
        sa.Column("venue_id", sa.Integer, sa.ForeignKey("venues.id"), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column(
            "status",
            sa.Enum("UPCOMING", "COMPLETED", "CANCELLED", name="show_status"),
            nullable=False,
        ),
        sa.Column("ticketmaster_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("setlistfm_id", sa.String(length=64), nullable=True),
        sa.Column("ticket_url", sa.String(length=500), nullable=True),
        sa.Column("price_range", sa.String(length=64), nullable=True),
        sa.Column("vote_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("setlist_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("trending_score", sa.Float, nullable=True),
        sa.Column("trending_rank", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "import_status",
            sa.Enum(
                "PENDING", "IMPORTING", "COMPLETED", "NO_SETLIST", "FAILED", name="setlist_import_status"
            ),
            nullable=True,
        ),
    )
    op.create_index("ix_shows_artist_id", "shows", ["artist_id"])
    op.create_index("ix_shows_venue_id", "shows", ["venue_id"])
    op.create_index("ix_shows_date", "shows", ["date"])
    op.create_index("ix_shows_status", "shows", ["status"])
    op.create_index("ix_shows_trending_rank", "shows", ["trending_rank"])

    op.create_table(
        "songs",
        *_base_columns(),
        sa.Column("spotify_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("album", sa.String(length=255), nullable=True),
        sa.Column("album_type", sa.String(length=32), nullable=True),
        sa.Column("popularity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Integer, nullable=True),
    )

    op.create_table(
        "artist_songs",
        *_base_columns(),
        sa.Column("artist_id", sa.Integer, sa.ForeignKey("artists.id"), nullable=False),
        sa.Column("song_id", sa.Integer, sa.ForeignKey("songs.id"), nullable=False),
        sa.UniqueConstraint("artist_id", "song_id", name="uq_artist_songs_pair"),
    )
    op.create_index("ix_artist_songs_artist_id", "artist_songs", ["artist_id"])

    op.create_table(
        "setlists",
        *_base_columns(),
        sa.Column("show_id", sa.Integer, sa.ForeignKey("shows.id"), nullable=False),
        sa.Column("setlistfm_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("songs", sa.JSON, nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="setlistfm"),
    )
    op.create_index("ix_setlists_show_id", "setlists", ["show_id"])

    op.create_table(
        "festivals",
        *_base_columns(),
        sa.Column("slug", sa.String(length=200), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("year", sa.Integer, nullable=True),
    )

    op.create_table(
        "festival_artists",
        *_base_columns(),
        sa.Column("festival_id", sa.Integer, sa.ForeignKey("festivals.id"), nullable=False),
        sa.Column("artist_id", sa.Integer, sa.ForeignKey("artists.id"), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.UniqueConstraint("festival_id", "artist_id", name="uq_festival_artists_pair"),
    )
    op.create_index("ix_festival_artists_festival_id", "festival_artists", ["festival_id"])

    op.create_table(
        "api_keys",
        *_base_columns(),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("key_hash", sa.String(length=128), nullable=False, unique=True),
        sa.Column("scope", sa.Enum("reader", "operator", "admin", name="apiscope"), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "audit_logs",
        *_base_columns(),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("data_json", sa.JSON, nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    for table in (
        "audit_logs",
        "api_keys",
        "festival_artists",
        "festivals",
        "setlists",
        "artist_songs",
        "songs",
        "shows",
        "venues",
        "artists",
        "scheduled_tasks",
        "sync_jobs",
        "job_runs",
        "job_settings",
        "maintenance_locks",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_name in (
        "apiscope",
        "setlist_import_status",
        "show_status",
        "scheduled_task_status",
        "sync_job_status",
        "sync_job_type",
        "job_run_status",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
