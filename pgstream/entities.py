"""Entity descriptors supplied by the surrounding data layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from pgstream.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class EntityDescriptor:
    """Name, backing table and known field names of a streamable entity."""

    name: str
    table_name: str
    fields: tuple[str, ...]

    @classmethod
    def from_model(cls, model: Any) -> EntityDescriptor:
        """Describe a SQLAlchemy declarative model class.

        Field names are column names, since they are embedded in trigger SQL.

        Raises:
            ConfigurationError: ``model`` is not a mapped class.
        """
        try:
            mapper = sa_inspect(model)
        except NoInspectionAvailable as exc:
            raise ConfigurationError(f"{model!r} is not a mapped SQLAlchemy model") from exc
        if not isinstance(mapper, Mapper):
            raise ConfigurationError(f"{model!r} is not a mapped SQLAlchemy model class")
        table = mapper.local_table
        return cls(
            name=mapper.class_.__name__,
            table_name=table.name,  # type: ignore[attr-defined]
            fields=tuple(column.name for column in table.columns),
        )

    @classmethod
    def coerce(cls, entity: Any) -> EntityDescriptor:
        if isinstance(entity, cls):
            return entity
        return cls.from_model(entity)
