from __future__ import annotations

import math
from typing import Any, Callable, List, Sequence, Tuple

from logviewer.models.logs import LogRecord, SortDirection, SortField

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def _sort_key(field: SortField) -> Callable[[LogRecord], Any]:
    if field is SortField.TIMESTAMP:
        return lambda record: (record.ts, record.seq)
    return lambda record: ((record.field_value(field.value) or "").lower(), record.ts, record.seq)


def sort_records(
    records: Sequence[LogRecord],
    field: SortField = SortField.TIMESTAMP,
    direction: SortDirection = SortDirection.DESC,
) -> List[LogRecord]:
    return sorted(records, key=_sort_key(field), reverse=direction is SortDirection.DESC)


def paginate(
    records: Sequence[LogRecord], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> Tuple[List[LogRecord], int]:
    """Slice one 1-based page and return it with the total page count."""
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

    total_pages = math.ceil(len(records) / page_size) if records else 0
    start = (page - 1) * page_size
    return list(records[start : start + page_size]), total_pages
