from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from logviewer.core.config import Settings

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Fields a record can be grouped or exactly filtered on, in wire spelling.
EXACT_GROUP_FIELDS = ("server", "platform", "date", "nickname", "userId", "project")


class LogRecord(BaseModel):
    """A single log entry as stored under ``logs/<logId>``."""

    model_config = ConfigDict(populate_by_name=True)

    log_id: str = Field(alias="logId")
    project: str = ""
    server: str = ""
    platform: str = ""
    date: str = ""
    user_id: str = Field(default="", alias="userId")
    nickname: str = ""
    message: str = ""
    ts: int = 0
    seq: int = 0

    @field_validator(
        "project", "server", "platform", "date", "user_id", "nickname", "message",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("ts", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        # Older producers wrote ISO strings instead of epoch millis.
        if value is None or value == "":
            return 0
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)
        return value

    @field_validator("seq", mode="before")
    @classmethod
    def _coerce_seq(cls, value: Any) -> Any:
        return 0 if value in (None, "") else value

    @classmethod
    def from_store(cls, key: str, raw: Dict[str, Any]) -> "LogRecord":
        data = dict(raw)
        if not data.get("logId"):
            data["logId"] = key
        return cls.model_validate(data)

    def field_value(self, field: str) -> str:
        """Return a wire-named field (``userId``, ``server``...) as a string."""
        if field == "userId":
            return self.user_id
        if field == "logId":
            return self.log_id
        value = getattr(self, field)
        return value if isinstance(value, str) else str(value)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @property
    def timestamp_iso(self) -> str:
        moment = datetime.fromtimestamp(self.ts / 1000, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FilterSpec(BaseModel):
    """Operator query. Every field is optional and independently specifiable."""

    model_config = ConfigDict(populate_by_name=True)

    project: Optional[str] = None
    server: Optional[str] = None
    platform: Optional[str] = None
    date: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    quick_user_id: Optional[str] = Field(default=None, alias="quickUserId")
    nickname: Optional[str] = None
    message: Optional[str] = None
    months_back: Optional[int] = Field(default=None, alias="monthsBack", ge=0)
    limit: Optional[int] = Field(default=None, ge=1, le=10000)

    @field_validator(
        "project", "server", "platform", "date", "user_id", "quick_user_id",
        "nickname", "message",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("project", "server", "platform", "user_id")
    @classmethod
    def _check_path_segment(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and "/" in value:
            raise ValueError("value cannot contain '/'")
        return value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not _DATE_RE.match(value):
            raise ValueError("date must be formatted YYYY-MM-DD")
        datetime.strptime(value, "%Y-%m-%d")
        return value

    def with_defaults(self, settings: Settings) -> "FilterSpec":
        """Fill the project, monthsBack and limit defaults from settings."""
        return self.model_copy(
            update={
                "project": self.project or (settings.default_project or None),
                "months_back": (
                    settings.default_months_back
                    if self.months_back is None
                    else self.months_back
                ),
                "limit": self.limit or settings.default_fetch_limit,
            }
        )

    def dimension(self, name: str) -> Optional[str]:
        if name == "userId":
            return self.user_id
        return getattr(self, name)


class DedupMode(str, Enum):
    NONE = "none"
    BY_MESSAGE = "byMessage"
    BY_USER_AND_MESSAGE = "byUserAndMessage"


class GroupBy(str, Enum):
    SERVER = "server"
    PLATFORM = "platform"
    DATE = "date"
    NICKNAME = "nickname"
    USER_ID = "userId"
    PROJECT = "project"
    SIMILAR_ERRORS = "similarErrors"
    USER_ERRORS = "userErrors"
    ERROR_TYPE = "errorType"


class SortField(str, Enum):
    TIMESTAMP = "ts"
    SERVER = "server"
    PLATFORM = "platform"
    DATE = "date"
    USER_ID = "userId"
    NICKNAME = "nickname"
    MESSAGE = "message"
    PROJECT = "project"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    TXT = "txt"


class DeleteRequest(BaseModel):
    path: str
    confirm: str = ""


class LogsResponse(BaseModel):
    logs: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int = Field(serialization_alias="pageSize")
    total_pages: int = Field(serialization_alias="totalPages")
    strategy: Optional[str] = None
    index_paths: List[str] = Field(default_factory=list, serialization_alias="indexPaths")
    diagnostics: Dict[str, int] = Field(default_factory=dict)
