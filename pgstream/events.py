"""Change event model carried on the notification channel."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pgstream.exceptions import MalformedPayloadError
from pgstream.identifiers import Operation

TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class ChangeEvent(BaseModel):
    """One row change as emitted by the generated trigger function.

    ``data`` holds the prior row image for DELETE, and the new row (or the
    requested projection of it) for INSERT and UPDATE.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    operation: Operation
    timestamp: str = Field(pattern=TIMESTAMP_PATTERN)
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: str | None) -> ChangeEvent:
        """Parse a raw NOTIFY payload.

        Raises:
            MalformedPayloadError: Payload is empty, not JSON, or not shaped
                like a change event.
        """
        if not payload:
            raise MalformedPayloadError("Empty notification payload", payload)
        try:
            return cls.model_validate_json(payload)
        except ValidationError as exc:
            raise MalformedPayloadError(
                f"Notification payload is not a change event ({exc.error_count()} error(s))",
                payload,
            ) from exc

    @property
    def occurred_at(self) -> datetime:
        """Timestamp as an aware UTC datetime."""
        return datetime.strptime(self.timestamp, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)

    def to_payload(self) -> str:
        """Render the wire payload ``{"operation", "timestamp", "data"}``."""
        return json.dumps(
            {"operation": self.operation, "timestamp": self.timestamp, "data": self.data},
            ensure_ascii=False,
        )
