"""Structured event sinks used by the engine instead of print statements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger("anchorlink.events")

_WARNING_EVENTS = {"sync.batch_failed", "backfill.page_failed", "match.search_retry"}


class EventSink(Protocol):
    def emit(self, event: str, **fields: Any) -> None:
        ...


def _render(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in sorted(fields.items()))


class LoggingEventSink:
    """Write one log record per event; fields land in ``extra`` as well."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        self.log.log(
            level,
            "%s %s",
            event,
            _render(fields),
            extra={"event": event, "event_fields": fields},
        )


@dataclass
class RecordingEventSink:
    """Keep emitted events in memory."""

    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [fields for name, fields in self.events if name == event]

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]


class NullEventSink:
    def emit(self, event: str, **fields: Any) -> None:
        return None
