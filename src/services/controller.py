"""
Trip Controller (facade)
========================

The only entry point the view layer uses.  Owns at most one active trip
and composes the geo adapter, fare estimator, state machine,
cancellation policy and status synchronizer.

Commands / queries
------------------
* ``request(pickup, destination, category)`` -> ``Quote`` (no trip yet)
* ``confirm(quote)``        -> ``TripSnapshot``, starts polling
* ``cancel(reason=None)``   -> ``TripSnapshot``
* ``mark_completed()``      -> ``TripSnapshot``
* ``acknowledge_completion()`` releases a finished trip
* ``current_trip()``        -> ``TripSnapshot | None``

All mutation happens on the event loop thread, one transition at a time;
the single trip slot is the only exclusivity mechanism.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from src.config import Settings, settings as default_settings
from src.domain.cancellation import CancellationPolicy
from src.domain.entities import Endpoint, Quote, StatusEvent, Trip, TripCategory, TripSnapshot
from src.domain.enums import TripKind, TripStatus
from src.domain.errors import (
    CancellationNotAllowed,
    IllegalTransition,
    InvalidQuoteInput,
    RequestRejected,
    TripAlreadyActive,
    classify_transport_error,
)
from src.domain.ports import TransportError, TripRequest, TripTransport
from src.domain.pricing import FareEstimator
from src.domain.state_machine import TransitionResult, TripStateMachine
from src.services.events import EventSink, LoggingEventSink, TripEvent
from src.services.geo import GeoAdapter
from src.workers.synchronizer import StatusSynchronizer

logger = logging.getLogger(__name__)

TripListener = Callable[[TripSnapshot], None]

_COMPLETABLE = {TripStatus.IN_PROGRESS, TripStatus.IN_TRANSIT}


class TripController:
    def __init__(
        self,
        *,
        geo: GeoAdapter,
        estimator: FareEstimator,
        transport: TripTransport,
        state_machine: Optional[TripStateMachine] = None,
        policy: Optional[CancellationPolicy] = None,
        sink: Optional[EventSink] = None,
        kind: Optional[TripKind] = None,
        cfg: Settings = default_settings,
    ):
        self.geo = geo
        self.estimator = estimator
        self.transport = transport
        self.state_machine = state_machine or TripStateMachine()
        self.policy = policy or CancellationPolicy()
        self.sink = sink or LoggingEventSink()
        self.kind = kind
        self.cfg = cfg

        self._trip: Optional[Trip] = None
        self._sync: Optional[StatusSynchronizer] = None
        self._listeners: list[TripListener] = []

    # ── Queries ───────────────────────────────────────────────────────

    def current_trip(self) -> Optional[TripSnapshot]:
        if self._trip is None:
            return None
        return self._trip.snapshot(
            can_cancel=self.policy.can_cancel(self._trip),
            connection_degraded=bool(self._sync and self._sync.degraded),
        )

    @property
    def synchronizer(self) -> Optional[StatusSynchronizer]:
        return self._sync

    def add_listener(self, listener: TripListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ── Commands ──────────────────────────────────────────────────────

    async def request(
        self, pickup: Endpoint, destination: Endpoint, category: TripCategory
    ) -> Quote:
        if not isinstance(category, TripCategory):
            raise InvalidQuoteInput(f"Unknown category: {category!r}")
        if self.kind is not None and category.kind is not self.kind:
            raise InvalidQuoteInput(
                f"This controller books {self.kind.value} trips, not {category.kind.value}"
            )

        pickup_loc, warnings = await self.geo.locate(pickup)
        destination_loc, more = await self.geo.locate(destination)
        warnings.extend(more)

        distance = self.geo.distance_km(pickup_loc.point, destination_loc.point)
        fare = self.estimator.quote(distance, category)

        for warning in warnings:
            self.sink.emit(TripEvent("quote.warning", None, {"message": warning}))
        self.sink.emit(
            TripEvent(
                "quote.issued",
                None,
                {
                    "category": category.key,
                    "distance_km": round(distance, 3),
                    "amount": str(fare.amount),
                },
            )
        )
        return Quote(
            category=category,
            pickup=pickup_loc,
            destination=destination_loc,
            distance_km=distance,
            fare=fare,
            warnings=tuple(warnings),
        )

    async def confirm(self, quote: Quote) -> TripSnapshot:
        if self._trip is not None:
            raise TripAlreadyActive(
                f"Trip {self._trip.id} is {self._trip.status.value}; "
                "acknowledge it before booking again"
            )
        if self.kind is not None and quote.category.kind is not self.kind:
            raise InvalidQuoteInput(f"Quote is for {quote.category.kind.value} trips")

        request = TripRequest(
            category=quote.category,
            pickup=quote.pickup,
            destination=quote.destination,
            quoted_fare=quote.fare.amount,
            currency=quote.fare.currency,
            distance_km=quote.distance_km,
        )
        try:
            handle = await self.transport.create_trip(request)
        except TransportError as exc:
            raise classify_transport_error(exc) from exc

        # the slot may have been filled while create_trip was in flight
        if self._trip is not None:
            raise TripAlreadyActive(f"Trip {self._trip.id} was booked concurrently")

        trip = Trip(
            id=handle.id,
            tracking_code=handle.tracking_code,
            category=quote.category,
            pickup=quote.pickup,
            destination=quote.destination,
            quoted_fare=quote.fare,
            created_at=self.state_machine.now(),
        )
        self._trip = trip
        self._sync = StatusSynchronizer(
            trip,
            self.transport,
            self.state_machine,
            on_change=self._on_sync_change,
            on_health_change=self._on_sync_health,
            sink=self.sink,
            cfg=self.cfg,
        )
        self._sync.start()
        self.sink.emit(
            TripEvent(
                "trip.created",
                trip.id,
                {"tracking_code": trip.tracking_code, "category": trip.category.key},
            )
        )
        snapshot = self.current_trip()
        self._notify(snapshot)
        return snapshot

    async def cancel(self, reason: Optional[str] = None) -> TripSnapshot:
        trip = self._require_trip()
        self.policy.ensure_can_cancel(trip)

        try:
            await self.transport.request_cancel(trip.id, reason)
        except TransportError as exc:
            error = classify_transport_error(exc)
            if isinstance(error, RequestRejected):
                raise CancellationNotAllowed(str(exc) or None) from exc
            raise error from exc

        # a poll may have finished the trip while the request was in flight
        if trip.is_terminal:
            self.policy.ensure_can_cancel(trip)

        result = self.state_machine.apply_transition(
            trip, StatusEvent(TripStatus.CANCELLED, reason=reason), source="user"
        )
        await self._stop_sync()
        self.sink.emit(TripEvent("trip.cancelled", trip.id, {"reason": reason}))
        self._after_transition(result)
        return self.current_trip()

    async def mark_completed(self) -> TripSnapshot:
        """Confirm arrival/delivery on behalf of the rider or sender."""
        trip = self._require_trip()
        if trip.status not in _COMPLETABLE:
            raise IllegalTransition(
                f"Trip {trip.id} cannot be completed from {trip.status.value}"
            )

        try:
            event = await self.transport.confirm_completion(trip.id)
        except TransportError as exc:
            raise classify_transport_error(exc) from exc

        result = self.state_machine.apply_transition(trip, event, source="user")
        if trip.is_terminal:
            await self._stop_sync()
        self._after_transition(result)
        return self.current_trip()

    async def acknowledge_completion(self) -> None:
        trip = self._trip
        if trip is None:
            return
        if not trip.is_terminal:
            raise IllegalTransition(
                f"Trip {trip.id} is still {trip.status.value}; nothing to acknowledge"
            )
        await self._stop_sync()
        self._trip = None
        self._sync = None
        self.sink.emit(TripEvent("trip.released", trip.id, {"status": trip.status.value}))

    async def close(self) -> None:
        """Teardown: stop polling.  The trip itself is kept."""
        await self._stop_sync()

    # ── Internals ─────────────────────────────────────────────────────

    def _require_trip(self) -> Trip:
        if self._trip is None:
            raise IllegalTransition("There is no active trip")
        return self._trip

    async def _stop_sync(self) -> None:
        if self._sync is not None:
            await self._sync.stop()

    def _on_sync_change(self, trip: Trip, result: TransitionResult) -> None:
        self._after_transition(result)

    def _on_sync_health(self, trip: Trip, degraded: bool) -> None:
        self._notify(self.current_trip())

    def _after_transition(self, result: TransitionResult) -> None:
        if result.changed:
            self._notify(self.current_trip())

    def _notify(self, snapshot: Optional[TripSnapshot]) -> None:
        if snapshot is None:
            return
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Trip listener %r failed", listener)
