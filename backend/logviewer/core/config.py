import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_enabled(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return raw not in {"0", "false", "False", ""}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    app_title: str = "Operational Log Viewer API"
    app_version: str = "1.0.0"
    firebase_database_url: Optional[str] = os.getenv("FIREBASE_DATABASE_URL")
    firebase_auth_token: Optional[str] = os.getenv("FIREBASE_AUTH_TOKEN")
    store_root: str = os.getenv("LOG_STORE_ROOT", "")
    default_project: str = os.getenv("DEFAULT_PROJECT", "StreamersMegagames")
    default_fetch_limit: int = _env_int("DEFAULT_FETCH_LIMIT", 200)
    default_months_back: int = _env_int("DEFAULT_MONTHS_BACK", 3)
    fetch_chunk_size: int = _env_int("FETCH_CHUNK_SIZE", 100)
    fanout_concurrency: int = _env_int("FANOUT_CONCURRENCY", 8)
    max_fanout_days: int = _env_int("MAX_FANOUT_DAYS", 366)
    store_timeout_seconds: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "30"))
    use_mock_store: bool = _env_enabled("USE_MOCK_STORE")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    frontend_origins: tuple[str, ...] = (
        "http://localhost:5173",
        "http://localhost:3000",
    )

    @property
    def mock_store_enabled(self) -> bool:
        return self.use_mock_store or not self.firebase_database_url


settings = Settings()
