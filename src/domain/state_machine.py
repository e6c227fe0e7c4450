"""
Trip State Machine
==================

Applies status observations to a :class:`Trip` according to the
per-kind transition table in :mod:`src.domain.enums`::

    ride:      REQUESTED -> ASSIGNED -> [PARTNER_EN_ROUTE] -> ARRIVED -> IN_PROGRESS -> COMPLETED
    delivery:  REQUESTED -> ASSIGNED -> [PARTNER_EN_ROUTE] -> PICKED_UP -> IN_TRANSIT -> COMPLETED

``CANCELLED`` is reachable from every non-terminal state.

Rules
-----
* **Idempotent**: re-applying the current status is a no-op, as is a
  stale observation (a status ranked before the current one on the trip
  kind's own path) while the trip is still active.  Polling may see the
  same status many times and responses may arrive out of order.
* **Total**: anything else not in the table raises ``IllegalTransition``.
* **No guessing**: entering ``ASSIGNED`` needs partner details and
  entering ``COMPLETED`` needs the final fare; missing data raises and
  leaves the trip untouched.

Complexity: O(1) per transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from .entities import StatusChange, StatusEvent, Trip, utcnow
from .enums import TRIP_PATHS, TRIP_TRANSITIONS, TripStatus
from .errors import IllegalTransition, MissingFareData, MissingPartnerData


@dataclass(frozen=True)
class TransitionResult:
    previous: TripStatus
    status: TripStatus
    changed: bool
    stale: bool = False


class TripStateMachine:
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def allowed_next(trip: Trip) -> frozenset[TripStatus]:
        # a status outside this kind's table has no successors
        return TRIP_TRANSITIONS[trip.kind].get(trip.status, frozenset())

    def can_apply(self, trip: Trip, status: TripStatus) -> bool:
        return status in self.allowed_next(trip)

    def apply_transition(
        self, trip: Trip, event: StatusEvent, source: str = "remote"
    ) -> TransitionResult:
        """Apply *event* to *trip*; return what happened or raise."""
        current = trip.status
        target = event.status

        if not isinstance(target, TripStatus):
            raise IllegalTransition(f"Unknown status {target!r}")

        if target is current:
            return TransitionResult(current, current, changed=False)

        path = TRIP_PATHS[trip.kind]
        if (
            current in path
            and target in path
            and not current.is_terminal
            and target.rank < current.rank
        ):
            return TransitionResult(current, current, changed=False, stale=True)

        if target not in self.allowed_next(trip):
            raise IllegalTransition(
                f"Cannot transition {trip.kind.value} trip {trip.id} "
                f"from {current.value} to {target.value}"
            )

        partner = trip.assigned_partner
        if target is not TripStatus.CANCELLED and partner is None:
            # every state after REQUESTED implies an assigned partner
            if event.partner is None:
                raise MissingPartnerData(
                    f"Trip {trip.id} entered {target.value} without partner details"
                )
            partner = event.partner

        final_fare: Optional[Decimal] = None
        if target is TripStatus.COMPLETED:
            if event.final_fare is None:
                raise MissingFareData(
                    f"Trip {trip.id} completed without a final fare"
                )
            final_fare = event.final_fare

        # validated -- mutate
        at = self.now()
        trip.status = target
        trip.assigned_partner = partner
        if final_fare is not None:
            trip.final_fare = final_fare
        if target is TripStatus.CANCELLED:
            trip.cancellation_reason = event.reason
        trip.last_status_change_at = at
        trip.history.append(StatusChange(target, at, source=source))

        return TransitionResult(current, target, changed=True)
