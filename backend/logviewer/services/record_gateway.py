"""Record Store Gateway.

Resolves index paths into ``LogRecord`` objects. Index reads fail loudly; the
per-record lookups behind them are all-settled: a lookup that errors or finds
nothing drops that record and is counted in a ``FetchReport``.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from logviewer.core.errors import InvalidDeletePath, NotFound
from logviewer.core.logging import get_logger
from logviewer.models.logs import LogRecord
from logviewer.services.path_codec import decode_index_key, record_path
from logviewer.services.tree_store import TreeStore, split_path

logger = get_logger("record_gateway")

DEFAULT_CHUNK_SIZE = 100
_FORBIDDEN_PATH_CHARS = set(".#$[]")


@dataclass
class FetchReport:
    """Diagnostics for one retrieval; never escalated to the caller."""

    index_reads: int = 0
    keys_read: int = 0
    fetched: int = 0
    stale: int = 0
    failed: int = 0

    def merge(self, other: "FetchReport") -> None:
        self.index_reads += other.index_reads
        self.keys_read += other.keys_read
        self.fetched += other.fetched
        self.stale += other.stale
        self.failed += other.failed

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def sort_key(record: LogRecord) -> tuple:
    return (record.ts, record.seq)


def validate_delete_path(path: str) -> str:
    """Normalise an operator-supplied delete path or raise ``InvalidDeletePath``."""
    if path is None or not path.strip():
        raise InvalidDeletePath("Delete path is empty", path)
    cleaned = path.strip().strip("/")
    if not cleaned:
        raise InvalidDeletePath("Refusing to delete the store root", path)
    raw_segments = cleaned.split("/")
    if any(segment.strip() == "" for segment in raw_segments):
        raise InvalidDeletePath(f"Delete path {path!r} has an empty segment", path)
    for segment in raw_segments:
        if segment != segment.strip():
            raise InvalidDeletePath(
                f"Delete path segment {segment!r} has surrounding whitespace", path
            )
        if _FORBIDDEN_PATH_CHARS.intersection(segment):
            raise InvalidDeletePath(
                f"Delete path segment {segment!r} contains a reserved character", path
            )
    return "/".join(split_path(cleaned))


class RecordGateway:
    def __init__(self, store: TreeStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.store = store
        self.chunk_size = chunk_size

    async def fetch_record_by_id(self, log_id: str) -> Optional[LogRecord]:
        raw = await self.store.get(record_path(log_id))
        if raw is None:
            return None
        return self._parse(log_id, raw)

    async def fetch_records_at_index_path(
        self,
        path: str,
        limit: int,
        report: Optional[FetchReport] = None,
    ) -> List[LogRecord]:
        """Read the last ``limit`` keys under ``path`` and resolve their records.

        An index path with no keys yields ``[]``. Store failures while reading
        the index itself propagate.
        """
        report = report if report is not None else FetchReport()
        entries = await self.store.get_range(path, limit_to_last=limit)
        report.index_reads += 1

        keys = sorted(entries.keys())[-limit:] if limit > 0 else []
        report.keys_read += len(keys)
        if not keys:
            logger.debug("No index entries at %s", path)
            return []

        # Both key encodings can point at the same record.
        ids: List[str] = []
        seen = set()
        for key in keys:
            log_id = decode_index_key(key)
            if log_id not in seen:
                seen.add(log_id)
                ids.append(log_id)

        records: List[LogRecord] = []
        for start in range(0, len(ids), self.chunk_size):
            chunk = ids[start : start + self.chunk_size]
            records.extend(await self._fetch_chunk(chunk, report))

        records.sort(key=sort_key)
        logger.debug(
            "Resolved %d/%d records at %s (stale=%d, failed=%d)",
            len(records),
            len(ids),
            path,
            report.stale,
            report.failed,
        )
        return records

    async def _fetch_chunk(
        self, ids: Sequence[str], report: FetchReport
    ) -> List[LogRecord]:
        results = await asyncio.gather(
            *(self.store.get(record_path(log_id)) for log_id in ids),
            return_exceptions=True,
        )

        records: List[LogRecord] = []
        for log_id, result in zip(ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                report.failed += 1
                logger.debug("Record %s could not be read: %s", log_id, result)
                continue
            if result is None:
                report.stale += 1
                logger.info("Stale index reference to missing record %s", log_id)
                continue
            record = self._parse(log_id, result)
            if record is None:
                report.failed += 1
                continue
            report.fetched += 1
            records.append(record)
        return records

    def _parse(self, log_id: str, raw: Any) -> Optional[LogRecord]:
        if not isinstance(raw, dict):
            logger.warning("Record %s is not an object, skipping", log_id)
            return None
        try:
            return LogRecord.from_store(log_id, raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Record %s is malformed: %s", log_id, exc)
            return None

    async def delete_by_path(self, path: str) -> str:
        """Irreversibly remove ``path``. The caller must have confirmed it."""
        cleaned = validate_delete_path(path)
        existing = await self.store.get_keys(cleaned)
        if not existing and await self.store.get(cleaned) is None:
            raise NotFound(f"Nothing stored at {cleaned!r}", cleaned)
        await self.store.remove(cleaned)
        logger.warning("Deleted store path %s", cleaned)
        return cleaned
