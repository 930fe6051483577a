"""Database target resolution: PostgreSQL URLs and engines to asyncpg DSNs."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine

from pgstream.exceptions import ConfigurationError, UnsupportedBackendError

_POSTGRES_BACKENDS = frozenset({"postgresql", "postgres"})


def resolve_dsn(database_url: str | None) -> str:
    """Turn a PostgreSQL URL with any driver suffix into a plain asyncpg DSN.

    Args:
        database_url: ``postgresql://``, ``postgresql+asyncpg://``,
            ``postgresql+psycopg://`` or ``postgres://`` URL.

    Returns:
        ``postgresql://`` DSN accepted by ``asyncpg.connect``.

    Raises:
        ConfigurationError: URL missing or unparsable.
        UnsupportedBackendError: URL points at another database.
    """
    if database_url is None or not database_url.strip():
        raise ConfigurationError(
            "Database URL not set. Set PGSTREAM_DATABASE_URL or DATABASE_URL, or pass database_url."
        )
    try:
        url = make_url(database_url.strip())
    except ArgumentError as exc:
        raise ConfigurationError("Database URL could not be parsed.") from exc
    backend = url.get_backend_name()
    if backend not in _POSTGRES_BACKENDS:
        raise UnsupportedBackendError(backend)
    return url.set(drivername="postgresql").render_as_string(hide_password=False)


def dsn_from_engine(engine: Engine | AsyncEngine) -> str:
    """Derive the asyncpg DSN from a SQLAlchemy engine.

    Raises:
        UnsupportedBackendError: Engine dialect is not PostgreSQL.
    """
    if engine.dialect.name != "postgresql":
        raise UnsupportedBackendError(engine.dialect.name)
    return resolve_dsn(engine.url.render_as_string(hide_password=False))


@asynccontextmanager
async def setup_connection(dsn: str, *, timeout: float = 10.0, connect: Any = None) -> AsyncIterator[Any]:
    """Short-lived connection for one-off DDL, closed on exit."""
    conn = await (connect or asyncpg.connect)(dsn, timeout=timeout)
    try:
        yield conn
    finally:
        await conn.close()
