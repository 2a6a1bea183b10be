"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# --- Default env, before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SETLISTS_ENV", "test")
os.environ["DEV_API_KEY"] = "test-secret-key"
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

from app import db as app_db  # noqa: E402
from app.config import Settings  # noqa: E402
from app.db import get_db  # noqa: E402
from app.integrations import Integrations  # noqa: E402
from app.integrations.setlistfm import SetlistFmClient  # noqa: E402
from app.integrations.spotify import SpotifyClient  # noqa: E402
from app.integrations.ticketmaster import TicketmasterClient  # noqa: E402
from app.main import app  # noqa: E402
from app.models.api_key import ApiKey, ApiScope  # noqa: E402
from app.services.job_registry import JobContext  # noqa: E402
from app.utils.apikey import hash_key  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)

TM_BASE = "https://tm.test/discovery/v2"
SPOTIFY_BASE = "https://spotify.test/v1"
SPOTIFY_TOKEN = "https://accounts.spotify.test/api/token"
SETLISTFM_BASE = "https://setlistfm.test/rest/1.0"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def database() -> Iterator[None]:
    """A fresh in-memory schema for every test."""
    app_db.close_engine()
    app_db.init_engine("sqlite://")
    app_db.create_all()
    yield
    app_db.close_engine()


@pytest.fixture
def db_session(database) -> Iterator[Session]:
    session = app_db.get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def other_session(database) -> Iterator[Session]:
    session = app_db.get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)
    for attr in ("integrations", "orchestrator"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SECRET_KEY="test-secret",
        TICKETMASTER_API_KEY="tm-key",
        SPOTIFY_CLIENT_ID="sp-id",
        SPOTIFY_CLIENT_SECRET="sp-secret",
        SETLISTFM_API_KEY="sl-key",
        TICKETMASTER_BASE_URL=TM_BASE,
        SPOTIFY_API_BASE_URL=SPOTIFY_BASE,
        SPOTIFY_TOKEN_URL=SPOTIFY_TOKEN,
        SETLISTFM_BASE_URL=SETLISTFM_BASE,
    )


@pytest.fixture
def make_integrations(settings: Settings) -> Iterator[Callable[..., Integrations]]:
    """Build real clients whose HTTP calls are answered by ``handler``."""

    built: list[Integrations] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> Integrations:
        common = {
            "transport": httpx.MockTransport(handler),
            "sleep": lambda seconds: None,
            "backoff_base_ms": 1,
            "max_attempts": 3,
        }
        integrations = Integrations(
            ticketmaster=TicketmasterClient(settings.TICKETMASTER_API_KEY, TM_BASE, **common),
            spotify=SpotifyClient(
                settings.SPOTIFY_CLIENT_ID,
                settings.SPOTIFY_CLIENT_SECRET,
                SPOTIFY_BASE,
                token_url=SPOTIFY_TOKEN,
                **common,
            ),
            setlistfm=SetlistFmClient(settings.SETLISTFM_API_KEY, SETLISTFM_BASE, **common),
        )
        built.append(integrations)
        return integrations

    yield _factory
    for integrations in built:
        integrations.close()


@pytest.fixture
def make_context(db_session: Session, settings: Settings) -> Callable[..., JobContext]:
    def _factory(integrations: Integrations | None = None, now: datetime = NOW) -> JobContext:
        return JobContext(db=db_session, settings=settings, now=now, integrations=integrations)

    return _factory


@pytest.fixture
def make_api_key(db_session: Session) -> Callable[..., ApiKey]:
    def _factory(name: str, key: str, scope: ApiScope = ApiScope.reader, is_active: bool = True) -> ApiKey:
        api_key = ApiKey(
            name=name,
            prefix="test_" + scope.value,
            key_hash=hash_key(key),
            scope=scope,
            is_active=is_active,
        )
        db_session.add(api_key)
        db_session.commit()
        db_session.refresh(api_key)
        return api_key

    return _factory


@pytest.fixture
def admin_headers(make_api_key) -> dict[str, str]:
    make_api_key(name="admin", key="admin-token", scope=ApiScope.admin)
    return {"X-API-Key": "admin-token"}


@pytest.fixture
def operator_headers(make_api_key) -> dict[str, str]:
    make_api_key(name="operator", key="operator-token", scope=ApiScope.operator)
    return {"Authorization": "Bearer operator-token"}


@pytest.fixture
def reader_headers(make_api_key) -> dict[str, str]:
    make_api_key(name="reader", key="reader-token", scope=ApiScope.reader)
    return {"X-API-Key": "reader-token"}
