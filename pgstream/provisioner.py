"""Installation and removal of per-table notification triggers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from pgstream.exceptions import ProvisioningError
from pgstream.identifiers import SubscriptionDescriptor, sanitize_identifier

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = 'YYYY-MM-DD"T"HH24:MI:SS.MS"Z"'


class SQLExecutor(Protocol):
    """Connection able to run DDL, e.g. an ``asyncpg.Connection``."""

    async def execute(self, query: str, *args: Any) -> Any: ...

    async def fetchval(self, query: str, *args: Any) -> Any: ...

    def transaction(self) -> Any: ...


@dataclass(frozen=True, slots=True)
class ArtifactStatus:
    """Number of generated trigger and function objects present for a table."""

    triggers: int
    functions: int

    @property
    def installed(self) -> bool:
        return self.triggers > 0 and self.functions > 0

    @property
    def absent(self) -> bool:
        return self.triggers == 0 and self.functions == 0


def build_payload_expression(fields: tuple[str, ...], *, wildcard: bool) -> str:
    """SQL expression serializing the new row, or only ``fields`` of it."""
    if wildcard or not fields:
        return "row_to_json(NEW)"
    pairs = []
    for field in fields:
        name = sanitize_identifier(field)
        pairs.append(f"'{name}', NEW.\"{name}\"")
    return f"json_build_object({', '.join(pairs)})"


def build_function_sql(descriptor: SubscriptionDescriptor) -> str:
    payload = build_payload_expression(descriptor.fields, wildcard=descriptor.is_wildcard)
    return f"""
        CREATE OR REPLACE FUNCTION "{descriptor.function_name}"()
        RETURNS TRIGGER AS $$
        BEGIN
          PERFORM pg_notify(
            '{descriptor.channel}',
            json_build_object(
              'operation', TG_OP,
              'timestamp', to_char(current_timestamp AT TIME ZONE 'UTC', '{_TIMESTAMP_FORMAT}'),
              'data', CASE WHEN TG_OP = 'DELETE' THEN row_to_json(OLD) ELSE {payload} END
            )::text
          );
          IF TG_OP = 'DELETE' THEN
            RETURN OLD;
          END IF;
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """


def build_trigger_sql(descriptor: SubscriptionDescriptor) -> str:
    operations = " OR ".join(descriptor.operations)
    return f"""
        DO $$
        BEGIN
          DROP TRIGGER IF EXISTS "{descriptor.trigger_name}" ON "{descriptor.table_name}";
          CREATE TRIGGER "{descriptor.trigger_name}"
          AFTER {operations} ON "{descriptor.table_name}"
          FOR EACH ROW EXECUTE FUNCTION "{descriptor.function_name}"();
        END
        $$;
    """


def build_uninstall_sql(descriptor: SubscriptionDescriptor) -> list[str]:
    """Drop statements, trigger first since it references the function."""
    return [
        f'DROP TRIGGER IF EXISTS "{descriptor.trigger_name}" ON "{descriptor.table_name}"',
        f'DROP FUNCTION IF EXISTS "{descriptor.function_name}"()',
    ]


class TriggerProvisioner:
    """Install and remove notification triggers, counting installs per table.

    Sessions on the same table share one trigger. Every install re-issues the
    DDL, so the most recent field and operation selection wins; the objects
    are only dropped when the last session on the table uninstalls. Counts
    are kept per process only; a per-table lock covers each count update
    together with its DDL.
    """

    def __init__(self) -> None:
        self._active: dict[str, int] = {}
        self._definitions: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def active_count(self, table_name: str) -> int:
        return self._active.get(sanitize_identifier(table_name), 0)

    def _lock(self, table: str) -> asyncio.Lock:
        return self._locks.setdefault(table, asyncio.Lock())

    async def install(self, connection: SQLExecutor, descriptor: SubscriptionDescriptor) -> None:
        """Create or replace the notify function, then recreate the trigger.

        Both statements run in one transaction, so a failure leaves the
        previous definition in place.

        Raises:
            ProvisioningError: A DDL statement failed.
        """
        table = descriptor.table_name
        definition = (descriptor.fields, tuple(descriptor.operations))
        async with self._lock(table):
            previous = self._definitions.get(table)
            if self._active.get(table) and previous != definition:
                logger.warning(
                    "change trigger on %s is shared by %d session(s); replacing its definition",
                    table,
                    self._active[table],
                )
            try:
                async with connection.transaction():
                    await connection.execute(build_function_sql(descriptor))
                    await connection.execute(build_trigger_sql(descriptor))
            except Exception as exc:
                logger.error("error setting up change trigger on %s: %s", table, exc)
                raise ProvisioningError(table, "install", str(exc)) from exc
            self._active[table] = self._active.get(table, 0) + 1
            self._definitions[table] = definition
        logger.info(
            "installed change trigger %s on %s for %s",
            descriptor.trigger_name,
            table,
            ", ".join(descriptor.operations),
        )

    async def uninstall(
        self,
        connection: SQLExecutor,
        descriptor: SubscriptionDescriptor,
        *,
        force: bool = False,
        release: bool = True,
    ) -> bool:
        """Drop the trigger and function once no other session uses them.

        Returns True when the drop statements were issued. Dropping objects
        that do not exist is a no-op, so repeated calls are safe. Pass
        ``release=False`` when the caller never completed an install: the
        count is left alone and objects are dropped only if nobody holds them.

        Raises:
            ProvisioningError: A DDL statement failed.
        """
        table = descriptor.table_name
        async with self._lock(table):
            if force:
                remaining = 0
            elif release:
                remaining = self._release(table)
            else:
                remaining = self._active.get(table, 0)
            if remaining > 0:
                logger.info("change trigger on %s still used by %d session(s); keeping it", table, remaining)
                return False
            self._active.pop(table, None)
            self._definitions.pop(table, None)
            try:
                async with connection.transaction():
                    for statement in build_uninstall_sql(descriptor):
                        await connection.execute(statement)
            except Exception as exc:
                logger.error("error during change trigger cleanup on %s: %s", table, exc)
                raise ProvisioningError(table, "uninstall", str(exc)) from exc
        logger.info("cleanup completed for table %s", table)
        return True

    async def status(self, connection: SQLExecutor, descriptor: SubscriptionDescriptor) -> ArtifactStatus:
        """Count the generated trigger and function objects in the database."""
        triggers = await connection.fetchval(
            "SELECT count(*) FROM pg_trigger t JOIN pg_class c ON c.oid = t.tgrelid "
            "WHERE t.tgname = $1 AND c.relname = $2",
            descriptor.trigger_name,
            descriptor.table_name,
        )
        functions = await connection.fetchval(
            "SELECT count(*) FROM pg_proc WHERE proname = $1",
            descriptor.function_name,
        )
        return ArtifactStatus(triggers=int(triggers or 0), functions=int(functions or 0))

    def _release(self, table: str) -> int:
        count = self._active.get(table, 0)
        if count <= 1:
            return 0
        self._active[table] = count - 1
        return count - 1


default_provisioner = TriggerProvisioner()
