"""
Status Synchronizer
===================

Polls the backend for one trip's status and feeds each observation into
the :class:`~src.domain.state_machine.TripStateMachine`.

Interval
--------
* deliveries: ``DELIVERY_POLL_INTERVAL_SECONDS`` (default 30 s)
* rides: ``RIDE_POLL_INTERVAL_SECONDS`` (30 s) until the driver has
  arrived, then ``RIDE_ACTIVE_POLL_INTERVAL_SECONDS`` (5 s)

Failure handling
----------------
* A failed fetch keeps the last known state and is retried on the next
  tick; ``consecutive_failures`` counts them and ``degraded`` turns true
  once ``DEGRADED_FAILURE_THRESHOLD`` is reached.  ``on_health_change``
  is called whenever ``degraded`` flips.
* An observation the state machine refuses (missing partner or fare,
  illegal transition) is reported and retried on the next tick; the trip
  is not modified.

Lifecycle
---------
The loop stops itself as soon as a terminal state is applied.  ``stop()``
cancels it explicitly (view teardown, user cancellation).  A synchronizer
is started at most once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from src.config import Settings, settings as default_settings
from src.domain.entities import Trip
from src.domain.enums import TripKind, TripStatus
from src.domain.errors import TripError, classify_transport_error
from src.domain.ports import TransportError, TripTransport
from src.domain.state_machine import TransitionResult, TripStateMachine
from src.services.events import EventSink, LoggingEventSink, TripEvent

logger = logging.getLogger(__name__)

_ACTIVE_RIDE_STATUSES = {TripStatus.ARRIVED, TripStatus.IN_PROGRESS}

ChangeCallback = Callable[[Trip, TransitionResult], None]
HealthCallback = Callable[[Trip, bool], None]


def poll_interval(trip: Trip, cfg: Settings = default_settings) -> float:
    """Seconds to wait before the next status fetch for *trip*."""
    if trip.kind is TripKind.DELIVERY:
        return cfg.delivery_poll_interval_seconds
    if trip.status in _ACTIVE_RIDE_STATUSES:
        return cfg.ride_active_poll_interval_seconds
    return cfg.ride_poll_interval_seconds


class StatusSynchronizer:
    def __init__(
        self,
        trip: Trip,
        transport: TripTransport,
        state_machine: TripStateMachine,
        *,
        on_change: Optional[ChangeCallback] = None,
        on_health_change: Optional[HealthCallback] = None,
        sink: Optional[EventSink] = None,
        cfg: Settings = default_settings,
    ):
        self.trip = trip
        self.transport = transport
        self.state_machine = state_machine
        self.on_change = on_change
        self.on_health_change = on_health_change
        self.sink = sink or LoggingEventSink()
        self.cfg = cfg
        self.degraded_threshold = max(1, cfg.degraded_failure_threshold)

        self.consecutive_failures = 0
        self.last_error: Optional[TripError] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    # ── Public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def degraded(self) -> bool:
        return self.consecutive_failures >= self.degraded_threshold

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"Synchronizer for trip {self.trip.id} already started")
        self._task = asyncio.create_task(
            self._loop(), name=f"trip-sync-{self.trip.id}"
        )
        self.sink.emit(
            TripEvent("sync.started", self.trip.id, {"interval": poll_interval(self.trip, self.cfg)})
        )

    async def stop(self) -> None:
        self._stop_event.set()
        task = self._task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # called from inside a tick (e.g. a listener); the loop exits on its own
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def poll_now(self) -> Optional[TransitionResult]:
        """Run one fetch-and-apply cycle immediately."""
        return await self.tick()

    async def tick(self) -> Optional[TransitionResult]:
        """Fetch the remote status once and apply it.

        Returns the transition result, or ``None`` when the fetch failed or
        the observation was rejected.
        """
        if self.trip.is_terminal:
            self._stop_event.set()
            return None

        try:
            event = await self.transport.fetch_status(self.trip.id)
        except TransportError as exc:
            self._record_failure(classify_transport_error(exc))
            return None
        self._record_success()

        try:
            result = self.state_machine.apply_transition(self.trip, event)
        except TripError as exc:
            logger.warning("Rejected status %s for trip %s: %s", event.status, self.trip.id, exc)
            self.sink.emit(
                TripEvent(
                    "trip.transition_rejected",
                    self.trip.id,
                    {"status": getattr(event.status, "value", event.status), "error": exc.code},
                )
            )
            return None

        if result.changed:
            self.sink.emit(
                TripEvent(
                    "trip.transition",
                    self.trip.id,
                    {"from": result.previous.value, "to": result.status.value},
                )
            )
            if self.on_change is not None:
                self.on_change(self.trip, result)

        if self.trip.is_terminal:
            self._stop_event.set()
        return result

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: sleep for the interval, then poll once."""
        try:
            while not self._stop_event.is_set():
                # Wait for the interval or until stop is signalled
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=poll_interval(self.trip, self.cfg),
                    )
                    break
                except asyncio.TimeoutError:
                    pass  # next tick

                try:
                    await self.tick()
                except Exception:
                    logger.exception("Unhandled error while polling trip %s", self.trip.id)
        finally:
            self.sink.emit(
                TripEvent("sync.stopped", self.trip.id, {"status": self.trip.status.value})
            )

    def _record_failure(self, error: TripError) -> None:
        self.consecutive_failures += 1
        self.last_error = error
        logger.warning(
            "Status fetch failed for trip %s (%d in a row): %s",
            self.trip.id,
            self.consecutive_failures,
            error,
        )
        self.sink.emit(
            TripEvent(
                "sync.failure",
                self.trip.id,
                {"error": error.code, "consecutive": self.consecutive_failures},
            )
        )
        if self.consecutive_failures == self.degraded_threshold:
            self.sink.emit(
                TripEvent("sync.degraded", self.trip.id, {"consecutive": self.consecutive_failures})
            )
            self._health_changed()

    def _record_success(self) -> None:
        recovered = self.degraded
        if recovered:
            self.sink.emit(
                TripEvent("sync.recovered", self.trip.id, {"after": self.consecutive_failures})
            )
        self.consecutive_failures = 0
        self.last_error = None
        if recovered:
            self._health_changed()

    def _health_changed(self) -> None:
        if self.on_health_change is not None:
            self.on_health_change(self.trip, self.degraded)
