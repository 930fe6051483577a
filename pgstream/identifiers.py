"""Identifier sanitizing and generated object naming."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from pgstream.exceptions import ConfigurationError, UnsupportedOperationError

Operation = Literal["INSERT", "UPDATE", "DELETE"]

WILDCARD = "*"
ALL_OPERATIONS: tuple[Operation, ...] = ("INSERT", "UPDATE", "DELETE")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_identifier(value: str) -> str:
    """Strip every character outside ``[A-Za-z0-9_]``, keeping the order of the rest."""
    return _UNSAFE_CHARS.sub("", value)


def normalize_operations(operations: Iterable[str] | None) -> tuple[Operation, ...]:
    """Upper-case and de-duplicate operations; empty means all three."""
    normalized: list[Operation] = []
    for raw in operations or ():
        value = raw.strip().upper()
        if value not in ALL_OPERATIONS:
            raise UnsupportedOperationError(raw)
        if value not in normalized:
            normalized.append(value)  # type: ignore[arg-type]
    return tuple(normalized) or ALL_OPERATIONS


def normalize_fields(fields: Iterable[str] | None) -> tuple[str, ...]:
    """Sanitize requested fields; empty or containing the wildcard means all fields."""
    requested = list(fields or ())
    if not requested or WILDCARD in requested:
        return (WILDCARD,)
    sanitized = [sanitize_identifier(field) for field in requested]
    return tuple(dict.fromkeys(name for name in sanitized if name)) or (WILDCARD,)


@dataclass(frozen=True, slots=True)
class SubscriptionDescriptor:
    """Names and options of one table subscription."""

    entity_name: str
    table_name: str
    fields: tuple[str, ...] = (WILDCARD,)
    operations: tuple[Operation, ...] = ALL_OPERATIONS

    @classmethod
    def build(
        cls,
        entity_name: str,
        table_name: str,
        fields: Iterable[str] | None = None,
        operations: Iterable[str] | None = None,
    ) -> SubscriptionDescriptor:
        table = sanitize_identifier(table_name)
        if not table:
            raise ConfigurationError(f"Table name {table_name!r} has no usable identifier characters")
        return cls(
            entity_name=entity_name,
            table_name=table,
            fields=normalize_fields(fields),
            operations=normalize_operations(operations),
        )

    @property
    def is_wildcard(self) -> bool:
        return self.fields == (WILDCARD,)

    @property
    def function_name(self) -> str:
        return f"notify_{self.table_name}_changes"

    @property
    def trigger_name(self) -> str:
        return f"{self.table_name}_changes_trigger"

    @property
    def channel(self) -> str:
        return f"{self.table_name}_changes"
