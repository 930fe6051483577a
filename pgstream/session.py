"""Stream sessions: one trigger installation plus one listening connection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine

from pgstream.backend import dsn_from_engine, resolve_dsn, setup_connection
from pgstream.bridge import Connect, NotificationBridge
from pgstream.config import StreamSettings, load_settings
from pgstream.entities import EntityDescriptor
from pgstream.events import ChangeEvent
from pgstream.exceptions import SessionClosedError, SessionNotOpenError
from pgstream.identifiers import WILDCARD, SubscriptionDescriptor
from pgstream.provisioner import TriggerProvisioner, default_provisioner
from pgstream.validation import validate_fields

logger = logging.getLogger(__name__)


class StreamSession:
    """Single-use subscription to row changes on one entity's table.

    Construction checks the backend and the requested fields, so invalid
    requests fail before any DDL runs. :meth:`open` installs the trigger on
    a short-lived setup connection and starts listening on a dedicated one;
    :meth:`close` reverses both. Iterate with ``async for``.
    """

    def __init__(
        self,
        entity: EntityDescriptor | Any,
        fields: Sequence[str] | None = (WILDCARD,),
        operations: Iterable[str] | None = None,
        *,
        settings: StreamSettings | None = None,
        engine: Engine | AsyncEngine | None = None,
        provisioner: TriggerProvisioner | None = None,
        connect: Connect | None = None,
    ) -> None:
        self._settings = settings or load_settings()
        self._dsn = dsn_from_engine(engine) if engine is not None else resolve_dsn(self._settings.database_url)
        self.entity = EntityDescriptor.coerce(entity)
        requested = list(fields or ())
        validate_fields(self.entity.fields, requested, entity=self.entity.name)
        self.descriptor = SubscriptionDescriptor.build(
            self.entity.name,
            self.entity.table_name,
            requested,
            operations if operations is not None else self._settings.default_operations,
        )
        self._provisioner = provisioner or default_provisioner
        self._connect = connect
        self._bridge: NotificationBridge | None = None
        self._install_attempted = False
        self._installed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bridge(self) -> NotificationBridge | None:
        return self._bridge

    async def open(self) -> StreamSession:
        """Install the trigger and start listening. Opening twice is a no-op.

        A failed open attempts to remove whatever was installed and leaves
        the session closed.

        Raises:
            SessionClosedError: The session was already closed.
            ProvisioningError: Trigger installation failed.
        """
        if self._closed:
            raise SessionClosedError(f"Stream on '{self.descriptor.table_name}' is closed")
        if self._bridge is not None:
            return self
        bridge: NotificationBridge | None = None
        self._install_attempted = True
        try:
            async with self._setup_connection() as conn:
                await self._provisioner.install(conn, self.descriptor)
            self._installed = True
            bridge = NotificationBridge(
                self._dsn,
                self.descriptor.channel,
                connect_timeout=self._settings.connect_timeout,
                log_payloads=self._settings.log_payloads,
                connect=self._connect,
            )
            await bridge.start()
        except Exception:
            logger.exception("error streaming table %s", self.descriptor.table_name)
            await self._abort(bridge)
            raise
        self._bridge = bridge
        return self

    async def _abort(self, bridge: NotificationBridge | None) -> None:
        self._closed = True
        try:
            if bridge is not None:
                await bridge.close()
            await self._teardown_trigger()
        except Exception as exc:
            logger.warning("cleanup after failed open on %s also failed: %s", self.descriptor.table_name, exc)

    async def close(self) -> None:
        """Stop the event sequence, remove the trigger and release connections."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._bridge is not None:
                await self._bridge.close()
        finally:
            await self._teardown_trigger()

    async def _teardown_trigger(self) -> None:
        if not self._install_attempted:
            return
        self._install_attempted = False
        table = self.descriptor.table_name
        if not self._installed and self._provisioner.active_count(table) > 0:
            logger.warning("install on %s failed; leaving trigger owned by other sessions", table)
            return
        async with self._setup_connection() as conn:
            await self._provisioner.uninstall(conn, self.descriptor, release=self._installed)
        self._installed = False

    def _setup_connection(self) -> Any:
        return setup_connection(self._dsn, timeout=self._settings.connect_timeout, connect=self._connect)

    def __aiter__(self) -> StreamSession:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        if self._bridge is None:
            raise SessionNotOpenError(f"Stream on '{self.descriptor.table_name}' was not opened")
        return await self._bridge.__anext__()

    async def __aenter__(self) -> StreamSession:
        return await self.open()

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()


async def stream(
    entity: EntityDescriptor | Any,
    fields: Sequence[str] | None = (WILDCARD,),
    operations: Iterable[str] | None = None,
    *,
    settings: StreamSettings | None = None,
    engine: Engine | AsyncEngine | None = None,
    provisioner: TriggerProvisioner | None = None,
) -> StreamSession:
    """Open a change stream on ``entity`` and return the session.

    Args:
        entity: :class:`EntityDescriptor` or SQLAlchemy model class.
        fields: Fields included in INSERT/UPDATE payloads; ``"*"`` or empty
            means the whole row. DELETE always carries the whole prior row.
        operations: Subset of INSERT, UPDATE, DELETE; defaults to
            ``settings.default_operations``.
        settings: Settings; loaded from YAML and environment when omitted.
        engine: SQLAlchemy engine whose URL to use instead of settings.
        provisioner: Trigger provisioner; the process-wide one by default.

    Raises:
        UnsupportedBackendError: Target database is not PostgreSQL.
        FieldNotRecognizedError: A requested field is unknown.
        ProvisioningError: Trigger installation failed.
    """
    session = StreamSession(
        entity,
        fields,
        operations,
        settings=settings,
        engine=engine,
        provisioner=provisioner,
    )
    return await session.open()
