"""Grouping Engine.

Buckets records by an exact field, by normalized error pattern, or by user and
then pattern. Within every bucket the input order is preserved.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Union

from logviewer.models.logs import EXACT_GROUP_FIELDS, GroupBy, LogRecord

UNKNOWN_KEY = "Unknown"

# Field-aware normalization ruleset, applied in this order.
HEX_RE = re.compile(r"0x[0-9a-fA-F]+")
BRACKET_INDEX_RE = re.compile(r"\[\s*-?\d+\s*\]")
KEY_NUMBER_RE = re.compile(r"(\b[A-Za-z_][\w]*\s*[:=]\s*)-?\d+(?:\.\d+)?(?![\w.])")
LONG_DIGITS_RE = re.compile(r"(?<![\w.])\d{6,}(?![\w.])")
NUMBER_RE = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)*(?!\w)")
COMPARISON_RE = re.compile(r"\bN\s*([<>=!]+)\s*(?=N\b)")
LOGICAL_RE = re.compile(r"\bN\s*(&&|\|\|)\s*(?=N\b)")

ERROR_TYPE_RE = re.compile(r"\b(\w*Exception|\w*Error)\b", re.IGNORECASE)
TAG_RE = re.compile(r"^\[(\w+)\]")


def normalize_message(message: str) -> str:
    """Structural signature of a message with its variable content replaced.

    >>> normalize_message("Error at position: 578, reading: 18")
    'Error at position: N, reading: N'
    """
    if not message:
        return ""

    normalized = message.strip()
    normalized = HEX_RE.sub("0xHEX", normalized)
    normalized = BRACKET_INDEX_RE.sub("[N]", normalized)
    normalized = KEY_NUMBER_RE.sub(r"\1N", normalized)
    normalized = LONG_DIGITS_RE.sub("ID", normalized)
    normalized = NUMBER_RE.sub("N", normalized)
    normalized = COMPARISON_RE.sub(r"N \1 ", normalized)
    normalized = LOGICAL_RE.sub(r"N \1 ", normalized)
    return normalized


def extract_error_type(message: str) -> str:
    if not message:
        return UNKNOWN_KEY
    match = ERROR_TYPE_RE.search(message)
    if match:
        return match.group(1)
    tag = TAG_RE.match(message.strip())
    if tag:
        return tag.group(1)
    return "Other"


def group_exact(records: Iterable[LogRecord], field: str) -> Dict[str, List[LogRecord]]:
    """Group by a raw field value; keys come back in lexicographic order."""
    if field not in EXACT_GROUP_FIELDS:
        raise ValueError(f"Cannot group by {field!r}")

    groups: Dict[str, List[LogRecord]] = {}
    for record in records:
        key = record.field_value(field) or UNKNOWN_KEY
        groups.setdefault(key, []).append(record)
    return {key: groups[key] for key in sorted(groups)}


def group_by_similar_errors(records: Iterable[LogRecord]) -> Dict[str, List[LogRecord]]:
    """Bucket by normalized message; buckets keep first-occurrence order."""
    groups: Dict[str, List[LogRecord]] = {}
    for record in records:
        groups.setdefault(normalize_message(record.message), []).append(record)
    return groups


def group_by_user_then_errors(
    records: Iterable[LogRecord],
) -> Dict[str, Dict[str, List[LogRecord]]]:
    by_user: Dict[str, List[LogRecord]] = {}
    for record in records:
        by_user.setdefault(record.user_id or UNKNOWN_KEY, []).append(record)
    return {user: group_by_similar_errors(logs) for user, logs in by_user.items()}


def group_by_error_type(records: Iterable[LogRecord]) -> Dict[str, List[LogRecord]]:
    groups: Dict[str, List[LogRecord]] = {}
    for record in records:
        groups.setdefault(extract_error_type(record.message), []).append(record)
    return groups


def flatten_nested_groups(
    nested: Dict[str, Dict[str, List[LogRecord]]], separator: str = " :: "
) -> Dict[str, List[LogRecord]]:
    flat: Dict[str, List[LogRecord]] = {}
    for outer, inner in nested.items():
        for pattern, logs in inner.items():
            flat[f"{outer}{separator}{pattern}"] = logs
    return flat


GroupedRecords = Union[Dict[str, List[LogRecord]], Dict[str, Dict[str, List[LogRecord]]]]


def group_records(records: Iterable[LogRecord], group_by: GroupBy) -> GroupedRecords:
    """Dispatch to the grouping mode the operator picked."""
    if group_by is GroupBy.SIMILAR_ERRORS:
        return group_by_similar_errors(records)
    if group_by is GroupBy.USER_ERRORS:
        return group_by_user_then_errors(records)
    if group_by is GroupBy.ERROR_TYPE:
        return group_by_error_type(records)
    return group_exact(records, group_by.value)
