"""Typed boundary between stored outbox rows and the worker."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.utils.exceptions import MalformedPayloadError, UnsupportedEventError


class EventType(str, Enum):
    """Event types the worker knows how to deliver."""

    PUSH_MESSAGE = "push_message"


class PushMessagePayload(BaseModel):
    """Payload of a ``push_message`` event.

    ``targetUserId`` and ``body`` are optional at this layer: a row missing
    either is treated as nothing to deliver rather than as a failure.
    """

    target_user_id: Optional[str] = Field(default=None, alias="targetUserId")
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")

    @property
    def is_deliverable(self) -> bool:
        return bool(self.target_user_id and self.body)


EVENT_PAYLOADS: Dict[EventType, Type[BaseModel]] = {
    EventType.PUSH_MESSAGE: PushMessagePayload,
}


@dataclass(frozen=True)
class OutboxEvent:
    """A decoded outbox row: the event type plus its validated payload."""

    event_type: EventType
    payload: BaseModel


def parse_outbox_event(event_type: str, raw_payload: str) -> OutboxEvent:
    """Decode a stored row into an :class:`OutboxEvent`.

    Raises ``UnsupportedEventError`` for unknown event types and
    ``MalformedPayloadError`` when the payload is not valid JSON or does not
    match the event's schema.
    """

    try:
        kind = EventType(event_type)
    except ValueError as exc:
        raise UnsupportedEventError(
            f"Unsupported event type: {event_type}", details={"event_type": event_type}
        ) from exc

    try:
        decoded = json.loads(raw_payload)
    except (TypeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError(f"Payload is not valid JSON: {exc}") from exc

    try:
        payload = EVENT_PAYLOADS[kind].model_validate(decoded)
    except ValidationError as exc:
        raise MalformedPayloadError(
            f"Payload does not match {kind.value} schema",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    return OutboxEvent(event_type=kind, payload=payload)
