"""Dropdown values for the filter panel, read from shallow index listings."""

from __future__ import annotations

import asyncio
from typing import Dict, List

from logviewer.core.errors import LogStoreError
from logviewer.core.logging import get_logger
from logviewer.services.path_codec import IndexKind, index_root
from logviewer.services.tree_store import TreeStore

logger = get_logger("filter_options")


async def _list_keys(store: TreeStore, path: str) -> List[str]:
    try:
        return await store.get_keys(path)
    except LogStoreError as exc:
        logger.error("Failed to list filter options at %s: %s", path, exc)
        return []


async def load_filter_options(store: TreeStore, project: str) -> Dict[str, List[str]]:
    """Known projects, plus the servers, platforms, dates and user ids seen in ``project``."""
    projects, servers, platforms, dates, users = await asyncio.gather(
        _list_keys(store, index_root(IndexKind.PROJECT)),
        _list_keys(store, f"{index_root(IndexKind.PROJECT_SERVER)}/{project}"),
        _list_keys(store, f"{index_root(IndexKind.PROJECT_PLATFORM)}/{project}"),
        _list_keys(store, f"{index_root(IndexKind.PROJECT_DATE)}/{project}"),
        _list_keys(store, f"{index_root(IndexKind.PROJECT_USER_DATE)}/{project}"),
    )
    return {
        "projects": sorted(projects),
        "servers": sorted(servers),
        "platforms": sorted(platforms),
        "dates": sorted(dates, reverse=True),
        "users": sorted(users),
    }
