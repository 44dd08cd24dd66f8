from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from memoria.config import sqlite_url_for
from memoria.db import Store


def run(coro):
    return asyncio.run(coro)


def ms(year, month, day, hour=12):
    return int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture()
def db_url(tmp_path):
    return sqlite_url_for(tmp_path / "memoria.db")


@pytest.fixture()
def with_store(db_url):
    """Run `fn(store)` inside a freshly opened store and return its result."""

    def _run(fn):
        async def main():
            async with Store(db_url) as store:
                return await fn(store)

        return asyncio.run(main())

    return _run
