from __future__ import annotations

from pathlib import Path

from memoria.config import Settings, normalize_db_url, sqlite_url_for


def _clear(monkeypatch):
    for key in ("DATABASE_URL", "DB_URL", "DATABASE_URL_PROD", "DB_URL_PROD", "ENV", "APP_ENV", "PAGE_SIZE"):
        monkeypatch.delenv(key, raising=False)


def test_plain_sqlite_urls_get_the_async_driver():
    assert normalize_db_url("sqlite:///data/x.db") == "sqlite+aiosqlite:///data/x.db"
    assert normalize_db_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert normalize_db_url(" postgresql+asyncpg://u@h/db ") == "postgresql+asyncpg://u@h/db"


def test_default_url_points_into_the_data_dir(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("MEMORIA_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("MEMORIA_DB_FILE", "journal.db")

    s = Settings()
    assert s.database_url == sqlite_url_for(Path(tmp_path) / "journal.db")
    assert s.page_size == 20


def test_explicit_url_wins_over_env_scoped(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("DATABASE_URL_PROD", "sqlite:///prod.db")
    assert Settings().database_url == "sqlite+aiosqlite:///prod.db"

    monkeypatch.setenv("DATABASE_URL", "sqlite:///explicit.db")
    assert Settings().database_url == "sqlite+aiosqlite:///explicit.db"


def test_bad_numbers_fall_back(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("PAGE_SIZE", "lots")
    monkeypatch.setenv("DB_ECHO", "yes")

    s = Settings()
    assert s.page_size == 20
    assert s.db_echo is True
