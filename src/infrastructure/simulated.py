"""
In-memory stand-in for the marketplace backend.

Each trip walks through a scripted status sequence, one step per
``fetch_status`` call, with a canned partner assigned at ``ASSIGNED`` and
the quoted fare returned as the final fare.  Used when
``TRANSPORT_MODE=simulated`` and as a test double.
"""

from __future__ import annotations

import itertools
import random
import string
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from src.domain.entities import Partner, StatusEvent, utcnow
from src.domain.enums import TripKind, TripStatus
from src.domain.ports import (
    ServerRejected,
    TransportNotFound,
    TransportUnavailable,
    TripHandle,
    TripRequest,
)

DEFAULT_SCRIPTS: dict[TripKind, tuple[TripStatus, ...]] = {
    TripKind.RIDE: (
        TripStatus.ASSIGNED,
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
        TripStatus.COMPLETED,
    ),
    TripKind.DELIVERY: (
        TripStatus.ASSIGNED,
        TripStatus.PICKED_UP,
        TripStatus.IN_TRANSIT,
        TripStatus.COMPLETED,
    ),
}

DEFAULT_PARTNER = Partner(
    name="Rajesh Kumar",
    phone="+91 98765 43210",
    vehicle="Maruti Swift • DL 01 AB 1234",
    rating=4.8,
)

_CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class _SimTrip:
    request: TripRequest
    script: tuple[TripStatus, ...]
    step: int = -1  # -1 == REQUESTED
    cancelled: bool = False
    reason: Optional[str] = None

    @property
    def status(self) -> TripStatus:
        if self.cancelled:
            return TripStatus.CANCELLED
        if self.step < 0:
            return TripStatus.REQUESTED
        return self.script[self.step]


class SimulatedTripTransport:
    def __init__(
        self,
        scripts: Optional[Mapping[TripKind, Sequence[TripStatus]]] = None,
        partner: Partner = DEFAULT_PARTNER,
        seed: Optional[int] = None,
    ):
        self.scripts = {k: tuple(v) for k, v in (scripts or DEFAULT_SCRIPTS).items()}
        self.partner = partner
        self.trips: dict[str, _SimTrip] = {}
        self._ids = itertools.count(1)
        self._rng = random.Random(seed)
        self._failures = 0

    def fail_next(self, count: int = 1) -> None:
        """Make the next *count* status fetches fail as if offline."""
        self._failures = count

    async def create_trip(self, request: TripRequest) -> TripHandle:
        trip_id = f"SIM-{next(self._ids):04d}"
        code = "".join(self._rng.choice(_CODE_ALPHABET) for _ in range(6))
        self.trips[trip_id] = _SimTrip(request, self.scripts[request.category.kind])
        return TripHandle(id=trip_id, tracking_code=code)

    async def fetch_status(self, trip_id: str) -> StatusEvent:
        sim = self._get(trip_id)
        if self._failures > 0:
            self._failures -= 1
            raise TransportUnavailable("simulated network outage")
        if not sim.cancelled and sim.step < len(sim.script) - 1:
            sim.step += 1
        return self._event(sim)

    async def request_cancel(self, trip_id: str, reason: Optional[str] = None) -> None:
        sim = self._get(trip_id)
        if sim.status is TripStatus.COMPLETED:
            raise ServerRejected("Trip already completed")
        sim.cancelled = True
        sim.reason = reason

    async def confirm_completion(self, trip_id: str) -> StatusEvent:
        sim = self._get(trip_id)
        if sim.cancelled:
            raise ServerRejected("Trip was cancelled")
        sim.step = len(sim.script) - 1
        return self._event(sim)

    def _get(self, trip_id: str) -> _SimTrip:
        try:
            return self.trips[trip_id]
        except KeyError:
            raise TransportNotFound(f"No trip {trip_id}") from None

    def _event(self, sim: _SimTrip) -> StatusEvent:
        status = sim.status
        assigned = sim.step >= 0
        return StatusEvent(
            status=status,
            partner=self.partner if assigned else None,
            final_fare=sim.request.quoted_fare if status is TripStatus.COMPLETED else None,
            reason=sim.reason,
            observed_at=utcnow(),
        )
