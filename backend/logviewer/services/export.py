"""Serialisation of log records (flat or grouped) to JSON, CSV and TXT."""

from __future__ import annotations

import csv
import io
import json
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from logviewer.models.logs import ExportFormat, LogRecord

CSV_HEADERS = [
    "Timestamp",
    "Server",
    "Platform",
    "Date",
    "User ID",
    "Nickname",
    "Message",
    "Project",
    "Sequence",
    "Log ID",
]
GROUP_CSV_HEADERS = ["Group", "Group Count", "Sample Message"]
SEPARATOR = "-" * 80

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.TXT: "text/plain; charset=utf-8",
}


def _csv_row(record: LogRecord) -> List[str]:
    return [
        record.timestamp_iso,
        record.server,
        record.platform,
        record.date,
        record.user_id,
        record.nickname,
        record.message,
        record.project,
        str(record.seq),
        record.log_id,
    ]


def _writer(buffer: io.StringIO):
    return csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")


def _txt_block(record: LogRecord) -> str:
    return (
        f"[{record.timestamp_iso}] {record.nickname or 'Unknown'}: {record.message}\n"
        f"  Server: {record.server or 'N/A'} | Platform: {record.platform or 'N/A'}"
        f" | Date: {record.date or 'N/A'} | User ID: {record.user_id or 'N/A'}"
        f" | Project: {record.project or 'N/A'} | Log ID: {record.log_id}\n"
        f"  {SEPARATOR}"
    )


def _sample(logs: Sequence[LogRecord]) -> str:
    return logs[0].message if logs else ""


def export_json(records: Sequence[LogRecord]) -> str:
    return json.dumps([record.to_wire() for record in records], indent=2, ensure_ascii=False)


def export_csv(records: Sequence[LogRecord]) -> str:
    buffer = io.StringIO()
    writer = _writer(buffer)
    buffer.write(",".join(CSV_HEADERS) + "\n")
    for record in records:
        writer.writerow(_csv_row(record))
    return buffer.getvalue()


def export_txt(records: Sequence[LogRecord]) -> str:
    return "\n\n".join(_txt_block(record) for record in records)


def export_grouped_json(groups: Dict[str, List[LogRecord]]) -> str:
    payload = [
        {
            "group": key,
            "count": len(logs),
            "sample": _sample(logs),
            "logs": [record.to_wire() for record in logs],
        }
        for key, logs in groups.items()
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_grouped_csv(groups: Dict[str, List[LogRecord]]) -> str:
    buffer = io.StringIO()
    writer = _writer(buffer)
    buffer.write(",".join(GROUP_CSV_HEADERS + CSV_HEADERS) + "\n")
    for key, logs in groups.items():
        sample = _sample(logs)
        for record in logs:
            writer.writerow([key, str(len(logs)), sample] + _csv_row(record))
    return buffer.getvalue()


def export_grouped_txt(groups: Dict[str, List[LogRecord]]) -> str:
    sections = []
    for key, logs in groups.items():
        header = f"=== {key} ({len(logs)}) ===\nSample: {_sample(logs)}"
        body = "\n\n".join(_txt_block(record) for record in logs)
        sections.append(f"{header}\n\n{body}" if body else header)
    return "\n\n".join(sections)


_FLAT = {
    ExportFormat.JSON: export_json,
    ExportFormat.CSV: export_csv,
    ExportFormat.TXT: export_txt,
}
_GROUPED = {
    ExportFormat.JSON: export_grouped_json,
    ExportFormat.CSV: export_grouped_csv,
    ExportFormat.TXT: export_grouped_txt,
}


def render_export(
    fmt: ExportFormat,
    records: Sequence[LogRecord],
    groups: Optional[Dict[str, List[LogRecord]]] = None,
) -> Tuple[str, str]:
    """Return ``(body, media_type)`` for a flat or grouped export."""
    if groups is not None:
        return _GROUPED[fmt](groups), MEDIA_TYPES[fmt]
    return _FLAT[fmt](records), MEDIA_TYPES[fmt]


def export_filename(fmt: ExportFormat, grouped: bool, today: date) -> str:
    stem = "logs_grouped" if grouped else "logs"
    return f"{stem}_{today.isoformat()}.{fmt.value}"
