"""Mapping between filter dimensions and secondary-index paths.

Index entries live under ``indexes/<kind>/<dim>/.../<key>``. Two key encodings
coexist in stored data: the bare ``logId`` and the legacy ``<ts>_<logId>``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from logviewer.models.logs import LogRecord

RECORDS_ROOT = "logs"
INDEXES_ROOT = "indexes"

_COMPOSED_KEY_RE = re.compile(r"^(\d+)_(.+)$", re.DOTALL)


class IndexKind(str, Enum):
    PROJECT_SERVER_PLATFORM_DATE = "project_server_platform_date"
    PROJECT_SERVER_DATE = "project_server_date"
    PROJECT_PLATFORM_DATE = "project_platform_date"
    PROJECT_USER_DATE = "project_user_date"
    PROJECT_DATE = "project_date"
    USER_DATE = "user_date"
    USER = "user"
    PROJECT_SERVER_PLATFORM = "project_server_platform"
    PROJECT_SERVER = "project_server"
    PROJECT_PLATFORM = "project_platform"
    PROJECT = "project"


# Ordered dimensions that make up each index path, outermost first.
INDEX_DIMENSIONS: Dict[IndexKind, Tuple[str, ...]] = {
    IndexKind.PROJECT_SERVER_PLATFORM_DATE: ("project", "server", "platform", "date"),
    IndexKind.PROJECT_SERVER_DATE: ("project", "server", "date"),
    IndexKind.PROJECT_PLATFORM_DATE: ("project", "platform", "date"),
    IndexKind.PROJECT_USER_DATE: ("project", "userId", "date"),
    IndexKind.PROJECT_DATE: ("project", "date"),
    IndexKind.USER_DATE: ("userId", "date"),
    IndexKind.USER: ("userId",),
    IndexKind.PROJECT_SERVER_PLATFORM: ("project", "server", "platform"),
    IndexKind.PROJECT_SERVER: ("project", "server"),
    IndexKind.PROJECT_PLATFORM: ("project", "platform"),
    IndexKind.PROJECT: ("project",),
}


def index_root(kind: IndexKind) -> str:
    return f"{INDEXES_ROOT}/{kind.value}"


def encode_index_path(dimensions: Mapping[str, Optional[str]], kind: IndexKind) -> str:
    """Build the index path for ``kind`` from wire-named dimension values.

    Raises ``ValueError`` when a dimension the kind needs is missing or would
    produce an empty or nested segment.
    """
    segments = [INDEXES_ROOT, kind.value]
    for name in INDEX_DIMENSIONS[kind]:
        value = dimensions.get(name)
        if value is None or str(value).strip() == "":
            raise ValueError(f"index {kind.value} requires a value for {name!r}")
        value = str(value)
        if "/" in value:
            raise ValueError(f"{name} value {value!r} cannot contain '/'")
        segments.append(value)
    return "/".join(segments)


def decode_index_key(raw_key: str) -> str:
    """Return the record id referenced by an index key.

    ``<digits>_<suffix>`` is read as a timestamp-prefixed key and yields
    ``suffix``; anything else is already the id. A genuine id that starts with
    a purely numeric segment and an underscore is misread as composed.
    """
    match = _COMPOSED_KEY_RE.match(raw_key)
    if match:
        return match.group(2)
    return raw_key


def encode_index_key(log_id: str, ts: Optional[int] = None) -> str:
    if ts is None:
        return log_id
    return f"{ts}_{log_id}"


def record_path(log_id: str) -> str:
    return f"{RECORDS_ROOT}/{log_id}"


def index_paths_for_record(record: LogRecord) -> List[str]:
    """Every index path a record is reachable from, skipping kinds it lacks data for."""
    dimensions = {
        "project": record.project,
        "server": record.server,
        "platform": record.platform,
        "date": record.date,
        "userId": record.user_id,
    }
    paths = []
    for kind in IndexKind:
        try:
            paths.append(encode_index_path(dimensions, kind))
        except ValueError:
            continue
    return paths
