"""Engine events about project containers, turned into compose events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Sequence

from composeops.engine import (
    LABEL_PREFIX,
    ONEOFF_LABEL,
    SERVICE_LABEL,
    EngineClient,
    project_filter,
)


@dataclass(frozen=True)
class Event:
    """A container event of a compose project."""

    timestamp: datetime
    service: str
    container: str
    status: str
    attributes: dict[str, str] = field(default_factory=dict)


def _timestamp(raw: Mapping[str, Any]) -> datetime:
    nano = raw.get("timeNano") or 0
    if nano:
        seconds, rest = divmod(int(nano), 10**9)
        return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(
            microseconds=rest // 1000
        )
    return datetime.fromtimestamp(raw.get("time") or 0, tz=timezone.utc)


def to_compose_event(raw: Mapping[str, Any], services: Sequence[str] = ()) -> Event | None:
    """Compose event for an engine event, or None when it is not of interest.

    Only container events count; one-off containers are ignored, and when
    ``services`` is given only those services are kept.
    """
    if raw.get("Type") != "container":
        return None
    attributes: Mapping[str, str] = (raw.get("Actor") or {}).get("Attributes") or {}
    if attributes.get(ONEOFF_LABEL) == "True":
        return None
    service = attributes.get(SERVICE_LABEL, "")
    if services and service not in services:
        return None
    return Event(
        timestamp=_timestamp(raw),
        service=service,
        container=raw.get("id", ""),
        status=raw.get("status", ""),
        attributes={k: v for k, v in attributes.items() if not k.startswith(LABEL_PREFIX)},
    )


def stream_events(
    client: EngineClient,
    project_name: str,
    services: Sequence[str],
    consumer: Callable[[Event], object],
) -> None:
    """Pass the project's container events to ``consumer`` as they arrive.

    Runs until the engine's event stream ends; an error from the stream or
    from the consumer ends it too and propagates.
    """
    for raw in client.events([project_filter(project_name.lower())]):
        event = to_compose_event(raw, services)
        if event is not None:
            consumer(event)