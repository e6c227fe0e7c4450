"""
Observability hook.

Components report what happens to a trip through an injectable
``EventSink`` instead of printing.  The default sink writes to the
``logging`` module; tests pass a recording sink and assert on events.

Event names
-----------
quote.issued, quote.warning, trip.created, trip.transition,
trip.transition_rejected, trip.cancelled, trip.released,
sync.started, sync.stopped, sync.failure, sync.degraded, sync.recovered
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

_WARNING_EVENTS = {"quote.warning", "sync.failure", "sync.degraded", "trip.transition_rejected"}


@dataclass(frozen=True)
class TripEvent:
    name: str
    trip_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: TripEvent) -> None: ...


class NullEventSink:
    def emit(self, event: TripEvent) -> None:
        pass


class LoggingEventSink:
    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def emit(self, event: TripEvent) -> None:
        level = logging.WARNING if event.name in _WARNING_EVENTS else logging.INFO
        self.log.log(level, "%s trip=%s %s", event.name, event.trip_id or "-", event.data)
