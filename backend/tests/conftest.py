"""
Shared fixtures for the log viewer tests.

Provides an in-memory tree store, record factories, a store context pinned to
a fixed "today", and a FastAPI test client wired to that context so tests run
without a Firebase database.
"""

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from logviewer.core.config import Settings
from logviewer.models.logs import LogRecord
from logviewer.services.context import LogStoreContext, get_context
from logviewer.services.tree_store import InMemoryTreeStore

FIXED_TODAY = date(2024, 9, 30)

# ---------------------------------------------------------------------------
# Record factory
# ---------------------------------------------------------------------------


def day_ms(day: str, offset_seconds: int = 0) -> int:
    moment = datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return int((moment + timedelta(seconds=offset_seconds)).timestamp() * 1000)


def make_record(
    log_id: str,
    *,
    project: str = "Mega",
    server: str = "PRODSERVER",
    platform: str = "Android",
    date: str = "2024-09-25",
    user_id: str = "user-1",
    nickname: str = "Player1",
    message: str = "User joined the game",
    ts: Optional[int] = None,
    seq: int = 0,
) -> LogRecord:
    return LogRecord(
        log_id=log_id,
        project=project,
        server=server,
        platform=platform,
        date=date,
        user_id=user_id,
        nickname=nickname,
        message=message,
        ts=day_ms(date, seq) if ts is None else ts,
        seq=seq,
    )


def make_settings(**overrides) -> Settings:
    values = dict(
        firebase_database_url=None,
        use_mock_store=True,
        default_project="Mega",
        default_fetch_limit=200,
        default_months_back=3,
        fetch_chunk_size=100,
        fanout_concurrency=4,
        max_fanout_days=366,
    )
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Store and context
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryTreeStore:
    return InMemoryTreeStore()


@pytest.fixture
def context(settings: Settings, store: InMemoryTreeStore) -> LogStoreContext:
    return LogStoreContext(settings=settings, store=store, today=lambda: FIXED_TODAY)


# ---------------------------------------------------------------------------
# FastAPI test client wired to the test context
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(context: LogStoreContext) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient hitting the real app with the store context overridden."""
    from logviewer.main import app

    app.dependency_overrides[get_context] = lambda: context
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
