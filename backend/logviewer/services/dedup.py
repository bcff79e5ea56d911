from __future__ import annotations

from typing import Hashable, Iterable, List, Optional, Set

from logviewer.models.logs import DedupMode, LogRecord


def _dedup_key(record: LogRecord, mode: DedupMode) -> Optional[Hashable]:
    message = (record.message or "").strip()
    if mode is DedupMode.BY_MESSAGE:
        # Empty messages are never collapsed into one another.
        return message or None
    return (record.user_id, message)


def deduplicate(records: Iterable[LogRecord], mode: DedupMode = DedupMode.NONE) -> List[LogRecord]:
    """Keep the first record per key, preserving input order."""
    records = list(records)
    if mode is DedupMode.NONE:
        return records

    seen: Set[Hashable] = set()
    kept: List[LogRecord] = []
    for record in records:
        key = _dedup_key(record, mode)
        if key is None:
            kept.append(record)
            continue
        if key in seen:
            continue
        seen.add(key)
        kept.append(record)
    return kept
