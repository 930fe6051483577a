"""Integration fixtures: a throwaway PostgreSQL container and per-test tables."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator

import asyncpg
import pytest
import pytest_asyncio
from docker.errors import DockerException
from testcontainers.postgres import PostgresContainer

from pgstream import StreamSettings, TriggerProvisioner, resolve_dsn

os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")


@pytest.fixture(scope="session")
def pg_container() -> Iterator[PostgresContainer]:
    try:
        with PostgresContainer("postgres:16-alpine") as postgres:
            yield postgres
    except DockerException as exc:
        pytest.skip(f"Docker unavailable for integration test: {exc}")


@pytest.fixture(scope="session")
def dsn(pg_container: PostgresContainer) -> str:
    return resolve_dsn(pg_container.get_connection_url())


@pytest.fixture
def stream_settings(dsn: str) -> StreamSettings:
    return StreamSettings(database_url=dsn, connect_timeout=10.0)


@pytest.fixture
def provisioner() -> TriggerProvisioner:
    return TriggerProvisioner()


@pytest_asyncio.fixture
async def db(dsn: str) -> AsyncIterator[asyncpg.Connection]:
    """Writer connection with a fresh ``user`` table."""
    conn = await asyncpg.connect(dsn)
    await conn.execute('DROP TABLE IF EXISTS "user" CASCADE')
    await conn.execute('CREATE TABLE "user" (id integer PRIMARY KEY, name text, email text)')
    try:
        yield conn
    finally:
        await conn.execute('DROP TABLE IF EXISTS "user" CASCADE')
        await conn.execute('DROP FUNCTION IF EXISTS "notify_user_changes"()')
        await conn.close()
