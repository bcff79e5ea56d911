"""Index Selector.

Picks the single most specific index for a sparse filter set. The rules form
an ordered table; the first rule whose predicate matches wins. The last rule
fans out over the per-date project index for a bounded window of dates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as Date, timedelta
from typing import Callable, FrozenSet, List, Optional, Tuple

from logviewer.core.logging import get_logger
from logviewer.models.logs import FilterSpec
from logviewer.services.path_codec import (
    INDEX_DIMENSIONS,
    IndexKind,
    encode_index_path,
)

logger = get_logger("index_selector")

DAYS_PER_MONTH = 30
DEFAULT_MAX_FANOUT_DAYS = 366

EXACT_DIMENSIONS = ("project", "server", "platform", "date", "userId")


def _present(filters: FilterSpec, *names: str) -> bool:
    return all(filters.dimension(name) for name in names)


def _absent(filters: FilterSpec, *names: str) -> bool:
    return not any(filters.dimension(name) for name in names)


@dataclass(frozen=True)
class IndexRule:
    name: str
    kind: IndexKind
    predicate: Callable[[FilterSpec], bool]
    fanout: bool = False


INDEX_RULES: Tuple[IndexRule, ...] = (
    IndexRule(
        "project_server_platform_date",
        IndexKind.PROJECT_SERVER_PLATFORM_DATE,
        lambda f: _present(f, "project", "server", "platform", "date"),
    ),
    IndexRule(
        "project_server_date",
        IndexKind.PROJECT_SERVER_DATE,
        lambda f: _present(f, "project", "server", "date") and _absent(f, "platform"),
    ),
    IndexRule(
        "project_platform_date",
        IndexKind.PROJECT_PLATFORM_DATE,
        lambda f: _present(f, "project", "platform", "date") and _absent(f, "server"),
    ),
    IndexRule(
        "project_user_date",
        IndexKind.PROJECT_USER_DATE,
        lambda f: _present(f, "project", "userId", "date"),
    ),
    IndexRule(
        "project_date",
        IndexKind.PROJECT_DATE,
        lambda f: _present(f, "project", "date")
        and _absent(f, "server", "platform", "userId"),
    ),
    IndexRule(
        "user_date",
        IndexKind.USER_DATE,
        lambda f: _present(f, "userId", "date"),
    ),
    IndexRule(
        "user",
        IndexKind.USER,
        lambda f: _present(f, "userId") and _absent(f, "date"),
    ),
    IndexRule(
        "project_server_platform",
        IndexKind.PROJECT_SERVER_PLATFORM,
        lambda f: _present(f, "project", "server", "platform") and _absent(f, "date"),
    ),
    IndexRule(
        "project_server",
        IndexKind.PROJECT_SERVER,
        lambda f: _present(f, "project", "server") and _absent(f, "platform", "date"),
    ),
    IndexRule(
        "project_platform",
        IndexKind.PROJECT_PLATFORM,
        lambda f: _present(f, "project", "platform") and _absent(f, "server", "date"),
    ),
    IndexRule(
        "project",
        IndexKind.PROJECT,
        lambda f: _present(f, "project")
        and _absent(f, "server", "platform", "userId", "date")
        and not f.months_back,
    ),
    IndexRule(
        "date_fanout",
        IndexKind.PROJECT_DATE,
        lambda f: _present(f, "project")
        and _absent(f, "server", "platform", "userId", "date"),
        fanout=True,
    ),
)


@dataclass(frozen=True)
class IndexPlan:
    rule: Optional[str]
    kind: Optional[IndexKind]
    paths: Tuple[str, ...]
    covered: FrozenSet[str]

    @property
    def is_empty(self) -> bool:
        return not self.paths

    def residual_dimensions(self, filters: FilterSpec) -> List[str]:
        """Exact dimensions set on the filter that the index does not enforce."""
        return [
            name
            for name in EXACT_DIMENSIONS
            if filters.dimension(name) and name not in self.covered
        ]


EMPTY_PLAN = IndexPlan(rule=None, kind=None, paths=(), covered=frozenset())


def window_start(today: Date, months_back: int) -> Date:
    """Oldest date inside a ``months_back`` window ending at ``today``."""
    return today - timedelta(days=months_back * DAYS_PER_MONTH)


def fanout_dates(
    today: Date,
    months_back: Optional[int],
    max_days: int = DEFAULT_MAX_FANOUT_DAYS,
) -> List[str]:
    """Dates from ``today - months_back*30`` through ``today``, newest first.

    Both ends are inclusive. ``months_back`` of 0 or None scans ``max_days``
    dates; every window is truncated to ``max_days``.
    """
    if months_back:
        days = months_back * DAYS_PER_MONTH + 1
    else:
        days = max_days
    days = max(0, min(days, max_days))
    return [(today - timedelta(days=offset)).isoformat() for offset in range(days)]


def _dimensions(filters: FilterSpec) -> dict:
    return {name: filters.dimension(name) for name in EXACT_DIMENSIONS}


def select_index_plan(
    filters: FilterSpec,
    today: Date,
    max_fanout_days: int = DEFAULT_MAX_FANOUT_DAYS,
) -> IndexPlan:
    """Choose the index plan for a filter set whose defaults are already applied."""
    for rule in INDEX_RULES:
        if not rule.predicate(filters):
            continue

        covered = frozenset(INDEX_DIMENSIONS[rule.kind])
        if rule.fanout:
            dims = _dimensions(filters)
            paths = []
            for day in fanout_dates(today, filters.months_back, max_fanout_days):
                dims["date"] = day
                paths.append(encode_index_path(dims, rule.kind))
            logger.debug(
                "Fan-out over %d dates for project %s", len(paths), filters.project
            )
        else:
            paths = [encode_index_path(_dimensions(filters), rule.kind)]

        return IndexPlan(
            rule=rule.name, kind=rule.kind, paths=tuple(paths), covered=covered
        )

    logger.debug("No index rule matches filters %s", filters)
    return EMPTY_PLAN
