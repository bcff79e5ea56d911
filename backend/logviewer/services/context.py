from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable

from fastapi import Request

from logviewer.core.config import Settings
from logviewer.core.logging import get_logger
from logviewer.services.record_gateway import RecordGateway
from logviewer.services.tree_store import FirebaseTreeStore, InMemoryTreeStore, TreeStore

logger = get_logger("context")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class LogStoreContext:
    """Process-wide handle on the store, built once at startup and passed down."""

    settings: Settings
    store: TreeStore
    today: Callable[[], date] = utc_today
    gateway: RecordGateway = field(init=False)

    def __post_init__(self) -> None:
        self.gateway = RecordGateway(self.store, chunk_size=self.settings.fetch_chunk_size)

    async def aclose(self) -> None:
        await self.store.aclose()


def create_context(settings: Settings) -> LogStoreContext:
    if settings.mock_store_enabled:
        from logviewer.services.mock_data import seed_mock_store

        store = InMemoryTreeStore()
        count = seed_mock_store(store, project=settings.default_project, today=utc_today())
        logger.warning(
            "⚠️ No FIREBASE_DATABASE_URL configured (or USE_MOCK_STORE set); "
            "serving %d mock records from memory",
            count,
        )
    else:
        store = FirebaseTreeStore(
            settings.firebase_database_url or "",
            root=settings.store_root,
            auth_token=settings.firebase_auth_token,
            timeout=settings.store_timeout_seconds,
        )
        logger.info("✅ Using Firebase store at %s", settings.firebase_database_url)
    return LogStoreContext(settings=settings, store=store)


def get_context(request: Request) -> LogStoreContext:
    """FastAPI dependency returning the context created in the app lifespan."""
    return request.app.state.log_context
