from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from memoria.config import normalize_db_url, settings
from memoria.errors import StorageError

log = logging.getLogger("memoria.db")


class Base(DeclarativeBase):
    pass


def _enable_sqlite_fk(dbapi_connection, connection_record) -> None:
    # ON DELETE CASCADE only works with foreign keys switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """
    Explicit handle on the embedded store: owns the async engine and the
    session factory. Nothing is opened at import time.

        async with Store(url) as store:
            await save_entry(store, entry)
    """

    def __init__(self, url: Optional[str] = None, *, echo: Optional[bool] = None) -> None:
        self.url = normalize_db_url(url or settings.database_url)
        self.echo = settings.db_echo if echo is None else echo
        self.engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # -------------------- lifecycle --------------------

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        database = make_url(self.url).database
        return self.is_sqlite and (not database or database == ":memory:")

    @property
    def db_path(self) -> Optional[Path]:
        if not self.is_sqlite or self.is_memory:
            return None
        return Path(make_url(self.url).database)

    async def open(self) -> "Store":
        if self.engine is not None:
            return self

        path = self.db_path
        if path is not None and path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)

        kwargs = {"echo": self.echo, "future": True}
        if self.is_memory:
            # one shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}

        self.engine = create_async_engine(self.url, **kwargs)
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_fk)

        self._sessionmaker = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )
        log.debug("store opened: %s", self.url)
        return self

    async def close(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        self._initialized = False
        log.debug("store closed: %s", self.url)

    async def __aenter__(self) -> "Store":
        await self.open()
        await self.ensure_initialized()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        await self.ensure_initialized()
        assert self._sessionmaker is not None
        async with self._sessionmaker() as s:
            yield s

    # -------------------- schema manager --------------------

    async def ensure_initialized(self) -> None:
        """
        Create all tables and indexes if absent. Idempotent and cheap after
        the first call; concurrent callers wait on the same lock and every
        statement is CREATE ... IF NOT EXISTS.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self.open()
            assert self.engine is not None

            import memoria.models  # noqa: F401  (register every table on Base.metadata)

            try:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all, checkfirst=True)
            except SQLAlchemyError as e:
                log.exception("schema creation failed for %s", self.url)
                raise StorageError(f"Schema creation failed: {e}") from e

            self._initialized = True
            log.info("schema ready: %s", self.url)

    async def reset(self) -> None:
        """
        Full wipe: close the store, delete the database file, recreate an
        empty schema. Irreversible; callers must confirm with the user first.
        """
        log.warning("resetting store: %s", self.url)
        if self.is_memory:
            await self.open()
            assert self.engine is not None
            async with self._init_lock:
                try:
                    async with self.engine.begin() as conn:
                        await conn.run_sync(Base.metadata.drop_all)
                except SQLAlchemyError as e:
                    raise StorageError(f"Reset failed: {e}") from e
                self._initialized = False
            await self.ensure_initialized()
            return

        await self.close()
        path = self.db_path
        if path is not None:
            for p in (path, Path(f"{path}-wal"), Path(f"{path}-shm"), Path(f"{path}-journal")):
                try:
                    p.unlink(missing_ok=True)
                except OSError as e:
                    raise StorageError(f"Could not delete {p}: {e}") from e
        else:
            # non-file backends: drop what we own
            await self.open()
            assert self.engine is not None
            try:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.drop_all)
            except SQLAlchemyError as e:
                raise StorageError(f"Reset failed: {e}") from e
            self._initialized = False

        await self.open()
        await self.ensure_initialized()


__all__ = ["Base", "Store"]
