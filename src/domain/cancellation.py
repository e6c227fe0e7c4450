"""
Cancellation policy.

A trip may be cancelled by its requester while it is non-terminal and has
not yet reached the *irrevocable boundary* of its kind:

* rides     -- ``IN_PROGRESS`` (the passenger is on board)
* deliveries -- ``PICKED_UP`` (the package has left the pickup point)

The decision is recomputed on every call from the trip's current status.
Remote cancellations (support, the partner) are not subject to this
policy; the state machine accepts ``CANCELLED`` from any non-terminal
state.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .entities import Trip
from .enums import TRIP_PATHS, TripKind, TripStatus
from .errors import CancellationNotAllowed

DEFAULT_BOUNDARIES: dict[TripKind, TripStatus] = {
    TripKind.RIDE: TripStatus.IN_PROGRESS,
    TripKind.DELIVERY: TripStatus.PICKED_UP,
}


class CancellationPolicy:
    def __init__(self, boundaries: Optional[Mapping[TripKind, TripStatus]] = None):
        merged = dict(DEFAULT_BOUNDARIES)
        merged.update(boundaries or {})
        for kind, boundary in merged.items():
            if boundary not in TRIP_PATHS[kind] or boundary.is_terminal:
                raise ValueError(
                    f"{boundary.value} is not a valid cancellation boundary "
                    f"for {kind.value}"
                )
        self.boundaries = merged

    @classmethod
    def from_settings(cls, settings) -> "CancellationPolicy":
        return cls(
            {
                TripKind.RIDE: TripStatus(settings.ride_cancel_boundary),
                TripKind.DELIVERY: TripStatus(settings.delivery_cancel_boundary),
            }
        )

    def boundary_for(self, kind: TripKind) -> TripStatus:
        return self.boundaries[kind]

    def can_cancel(self, trip: Trip) -> bool:
        if trip.status.is_terminal:
            return False
        return trip.status.rank < self.boundary_for(trip.kind).rank

    def ensure_can_cancel(self, trip: Trip) -> None:
        """Raise :class:`CancellationNotAllowed` unless *trip* may be cancelled."""
        if self.can_cancel(trip):
            return
        if trip.status.is_terminal:
            raise CancellationNotAllowed(
                f"Trip {trip.id} is already {trip.status.value.lower()}"
            )
        boundary = self.boundary_for(trip.kind)
        exc = CancellationNotAllowed(
            f"Trip {trip.id} is {trip.status.value}; {trip.kind.value.lower()}s "
            f"cannot be cancelled once {boundary.value} is reached"
        )
        exc.user_message = _BOUNDARY_MESSAGES.get(boundary, exc.user_message)
        raise exc


_BOUNDARY_MESSAGES: dict[TripStatus, str] = {
    TripStatus.ARRIVED: (
        "Your driver has already arrived, so this ride can no longer be "
        "cancelled."
    ),
    TripStatus.IN_PROGRESS: (
        "Your ride has already started, so it can no longer be cancelled."
    ),
    TripStatus.PICKED_UP: (
        "Your package has already been picked up, so this delivery can no "
        "longer be cancelled."
    ),
    TripStatus.IN_TRANSIT: (
        "Your package is already on its way, so this delivery can no longer "
        "be cancelled."
    ),
}
