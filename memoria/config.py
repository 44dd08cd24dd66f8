# memoria/config.py
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(os.getenv("MEMORIA_ENV_FILE") or ".env")


def _as_bool(v: Optional[str], default=False) -> bool:
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(v: Optional[str], default: int) -> int:
    try:
        return int(str(v).strip())
    except Exception:
        return default


def normalize_db_url(u: str) -> str:
    """Plain sqlite URLs get the async driver; everything else is left alone."""
    u = (u or "").strip()
    if u.startswith("sqlite:///") and "+aiosqlite" not in u:
        return u.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return u


class Settings:
    def __init__(self) -> None:
        # environment
        self.environment = (os.getenv("ENV") or os.getenv("APP_ENV") or "dev").strip().lower()

        # storage
        self.data_dir = Path((os.getenv("MEMORIA_DATA_DIR") or "./data").strip() or "./data")
        self.db_file = (os.getenv("MEMORIA_DB_FILE") or "memoria.db").strip() or "memoria.db"
        self.database_url = self._resolve_database_url()
        self.db_echo = _as_bool(os.getenv("DB_ECHO"), False)

        # paging
        self.page_size = max(1, _as_int(os.getenv("PAGE_SIZE"), 20))

        # insights: IANA zone for weekday grouping, empty -> local time
        self.insights_tz = (os.getenv("INSIGHTS_TZ") or "").strip()

        # logging
        self.log_level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
        self.log_format = (os.getenv("LOG_FORMAT") or "text").strip().lower()
        self.log_file = (os.getenv("LOG_FILE") or "").strip()

    def _resolve_database_url(self) -> str:
        # 1) explicit override (highest priority)
        explicit = (os.getenv("DATABASE_URL") or os.getenv("DB_URL") or "").strip()
        if explicit:
            return normalize_db_url(explicit)

        # 2) env-specific vars
        env_key = self.environment.upper()
        scoped = (os.getenv(f"DATABASE_URL_{env_key}") or os.getenv(f"DB_URL_{env_key}") or "").strip()
        if scoped:
            return normalize_db_url(scoped)

        # default: local file in the data dir
        return sqlite_url_for(self.data_dir / self.db_file)


def sqlite_url_for(path: Path) -> str:
    return f"sqlite+aiosqlite:///{Path(path).as_posix()}"


settings = Settings()
