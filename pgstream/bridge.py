"""PostgreSQL LISTEN bridge turning notifications into an async event sequence."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import asyncpg

from pgstream.channel import EventChannel
from pgstream.events import ChangeEvent
from pgstream.exceptions import BridgeError, ConnectionLostError, MalformedPayloadError

logger = logging.getLogger(__name__)

Connect = Callable[..., Awaitable[Any]]


class NotificationBridge:
    """Dedicated asyncpg connection listening on one channel.

    The connection is used only for LISTEN; every notification for the
    channel is parsed into a :class:`ChangeEvent` and buffered in FIFO order
    until consumed. There is no size limit and no timeout on waiting.
    """

    def __init__(
        self,
        dsn: str,
        channel: str,
        *,
        connect_timeout: float = 10.0,
        log_payloads: bool = False,
        connect: Connect | None = None,
    ) -> None:
        self._dsn = dsn
        self._channel = channel
        self._connect_timeout = connect_timeout
        self._log_payloads = log_payloads
        self._connect = connect or asyncpg.connect
        self._conn: Any | None = None
        self._events: EventChannel[ChangeEvent] = EventChannel()
        self._closing = False
        self.dropped_payloads = 0

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def listening(self) -> bool:
        return self._conn is not None and not self._closing

    @property
    def pending(self) -> int:
        return len(self._events)

    async def start(self) -> None:
        """Open the listening connection and subscribe to the channel.

        Raises:
            BridgeError: The bridge was already closed.
        """
        if self._closing:
            raise BridgeError(f"Bridge for channel '{self._channel}' is closed")
        if self._conn is not None:
            return
        conn = await self._connect(self._dsn, timeout=self._connect_timeout)
        try:
            conn.add_termination_listener(self._on_terminate)
            await conn.add_listener(self._channel, self._on_notify)
        except Exception:
            await conn.close()
            raise
        self._conn = conn
        logger.info("listening for change notifications on %s", self._channel)

    async def close(self) -> None:
        """Stop the sequence, unsubscribe and release the connection."""
        if self._closing:
            return
        self._closing = True
        self._events.close()
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            if not conn.is_closed():
                await conn.remove_listener(self._channel, self._on_notify)
        except Exception as exc:
            logger.warning("failed to unlisten from %s: %s", self._channel, exc)
        finally:
            conn.remove_termination_listener(self._on_terminate)
            await conn.close()
        logger.debug("stopped listening on %s", self._channel)

    def __aiter__(self) -> NotificationBridge:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._conn is None and not self._closing:
            raise BridgeError(f"Bridge for channel '{self._channel}' was not started")
        if not self._closing and not len(self._events):
            logger.debug("waiting for next event on %s", self._channel)
        return await self._events.next()

    def _on_notify(self, conn: Any, pid: int, channel: str, payload: str) -> None:  # noqa: ARG002
        if channel != self._channel:
            return
        if self._log_payloads:
            logger.debug("notification on %s from pid %s: %s", channel, pid, payload)
        try:
            event = ChangeEvent.from_payload(payload)
        except MalformedPayloadError as exc:
            self.dropped_payloads += 1
            logger.warning("skipping malformed notification on %s: %s", channel, exc)
            return
        self._events.push(event)

    def _on_terminate(self, conn: Any) -> None:  # noqa: ARG002
        if self._closing:
            return
        logger.error("listening connection for %s terminated", self._channel)
        self._events.fail(ConnectionLostError(self._channel))
