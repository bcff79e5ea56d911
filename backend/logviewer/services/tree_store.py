"""Clients for the hierarchical key-value tree that holds records and indexes.

The production store is a Firebase Realtime Database reached over its REST
API. ``InMemoryTreeStore`` implements the same contract for the mock mode and
for tests.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import httpx

from logviewer.core.errors import (
    LogStoreError,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
)
from logviewer.core.logging import get_logger

logger = get_logger("tree_store")


def split_path(path: str) -> List[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def join_path(*parts: str) -> str:
    return "/".join(segment for part in parts for segment in split_path(part))


class TreeStore:
    """Contract shared by the store implementations.

    ``get`` returns ``None`` for an absent path; ``get_range`` returns the
    children of ``path`` ordered by key, restricted to the last
    ``limit_to_last`` keys.
    """

    async def get(self, path: str) -> Any:
        raise NotImplementedError

    async def get_keys(self, path: str) -> List[str]:
        raise NotImplementedError

    async def get_range(self, path: str, limit_to_last: int) -> Dict[str, Any]:
        raise NotImplementedError

    async def remove(self, path: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class FirebaseTreeStore(TreeStore):
    """Firebase Realtime Database over REST (``<url>/<path>.json``)."""

    def __init__(
        self,
        database_url: str,
        root: str = "",
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.database_url = database_url.rstrip("/")
        self.root = root
        self.auth_token = auth_token
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": "LogViewer/1.0"},
            )
        return self._client

    def _url(self, path: str) -> str:
        full = join_path(self.root, path)
        return f"{self.database_url}/{full}.json" if full else f"{self.database_url}/.json"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        missing_ok: bool = True,
    ) -> Any:
        query = dict(params or {})
        if self.auth_token:
            query["auth"] = self.auth_token

        client = await self._get_client()
        try:
            response = await client.request(method, self._url(path), params=query)
        except httpx.TimeoutException as exc:
            raise StoreUnavailable(f"Timed out reading {path!r}", path) from exc
        except httpx.TransportError as exc:
            raise StoreUnavailable(f"Cannot reach store for {path!r}: {exc}", path) from exc

        if response.status_code in (401, 403):
            raise PermissionDenied(f"Permission denied for {path!r}", path)
        if response.status_code == 404:
            if missing_ok:
                return None
            raise NotFound(f"No data at {path!r}", path)
        if response.status_code >= 400:
            raise StoreUnavailable(
                f"Store returned HTTP {response.status_code} for {path!r}", path
            )

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def get_keys(self, path: str) -> List[str]:
        data = await self._request("GET", path, {"shallow": "true"})
        if not isinstance(data, dict):
            return []
        return sorted(data.keys())

    async def get_range(self, path: str, limit_to_last: int) -> Dict[str, Any]:
        data = await self._request(
            "GET",
            path,
            {"orderBy": '"$key"', "limitToLast": str(limit_to_last)},
        )
        if not isinstance(data, dict):
            return {}
        # The REST API does not guarantee key order in the JSON body.
        keys = sorted(data.keys())[-limit_to_last:]
        return {key: data[key] for key in keys}

    async def remove(self, path: str) -> None:
        await self._request("DELETE", path, missing_ok=False)
        logger.info("Removed store path %s", path)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class InMemoryTreeStore(TreeStore):
    """Nested-dict tree with the same read/remove semantics as the REST store."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(data) if data else {}

    def _node(self, path: str) -> Any:
        node: Any = self._data
        for segment in split_path(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        if not segments:
            raise LogStoreError("Cannot overwrite the store root", path)
        node = self._data
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(value)

    async def get(self, path: str) -> Any:
        return copy.deepcopy(self._node(path))

    async def get_keys(self, path: str) -> List[str]:
        node = self._node(path)
        if not isinstance(node, dict):
            return []
        return sorted(node.keys())

    async def get_range(self, path: str, limit_to_last: int) -> Dict[str, Any]:
        node = self._node(path)
        if not isinstance(node, dict):
            return {}
        keys = sorted(node.keys())[-limit_to_last:] if limit_to_last > 0 else []
        return {key: copy.deepcopy(node[key]) for key in keys}

    async def remove(self, path: str) -> None:
        segments = split_path(path)
        if not segments:
            self._data.clear()
            return
        parents = [self._data]
        for segment in segments[:-1]:
            child = parents[-1].get(segment)
            if not isinstance(child, dict):
                return
            parents.append(child)
        parents[-1].pop(segments[-1], None)
        # Prune containers left empty, as the real store does.
        for depth in range(len(parents) - 1, 0, -1):
            if parents[depth]:
                break
            parents[depth - 1].pop(segments[depth - 1], None)
