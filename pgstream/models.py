"""Declarative base and mixin giving SQLAlchemy models a ``stream`` capability."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy.orm import DeclarativeBase

from pgstream.identifiers import WILDCARD
from pgstream.session import StreamSession, stream


class StreamableMixin:
    """Adds ``await Model.stream(...)`` to a mapped model class."""

    @classmethod
    async def stream(
        cls,
        fields: Sequence[str] | None = (WILDCARD,),
        operations: Iterable[str] | None = None,
        **options: Any,
    ) -> StreamSession:
        """Open a change stream on this model's table. See :func:`pgstream.stream`."""
        return await stream(cls, fields, operations, **options)


class Base(StreamableMixin, DeclarativeBase):
    """Base class for models that can be streamed."""
