"""Requested field validation."""

from __future__ import annotations

from collections.abc import Iterable

from pgstream.exceptions import FieldNotRecognizedError
from pgstream.identifiers import WILDCARD


def validate_fields(
    known_fields: Iterable[str],
    requested_fields: Iterable[str],
    *,
    entity: str | None = None,
) -> None:
    """Ensure every requested field exists on the entity.

    The wildcard marker is always accepted. Raises on the first unknown
    field without checking the rest.

    Raises:
        FieldNotRecognizedError: A requested field is not a known field.
    """
    allowed = set(known_fields)
    for field in requested_fields:
        if field == WILDCARD:
            continue
        if field not in allowed:
            raise FieldNotRecognizedError(field, entity)
