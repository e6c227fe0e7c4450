"""Domain enumerations and state-transition rules."""

from __future__ import annotations

import enum


class TripKind(str, enum.Enum):
    RIDE = "RIDE"
    DELIVERY = "DELIVERY"


class RideClass(str, enum.Enum):
    ECONOMY = "ECONOMY"
    COMFORT = "COMFORT"
    PREMIUM = "PREMIUM"


class PackageSize(str, enum.Enum):
    DOCUMENT = "DOCUMENT"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class TripStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    ASSIGNED = "ASSIGNED"
    PARTNER_EN_ROUTE = "PARTNER_EN_ROUTE"
    ARRIVED = "ARRIVED"
    PICKED_UP = "PICKED_UP"
    IN_PROGRESS = "IN_PROGRESS"
    IN_TRANSIT = "IN_TRANSIT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        """Position along the forward path; parallel ride/delivery states share a rank."""
        return STATUS_RANK[self]

    @classmethod
    def from_remote(cls, raw: str) -> "TripStatus":
        """Parse a status string as reported by the backend, accepting legacy names."""
        key = raw.strip().upper()
        key = REMOTE_STATUS_ALIASES.get(key, key)
        return cls(key)


# Tiers belonging to each kind
TIERS_BY_KIND: dict[TripKind, type[enum.Enum]] = {
    TripKind.RIDE: RideClass,
    TripKind.DELIVERY: PackageSize,
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

STATUS_RANK: dict[TripStatus, int] = {
    TripStatus.REQUESTED: 0,
    TripStatus.ASSIGNED: 1,
    TripStatus.PARTNER_EN_ROUTE: 2,
    TripStatus.ARRIVED: 3,
    TripStatus.PICKED_UP: 3,
    TripStatus.IN_PROGRESS: 4,
    TripStatus.IN_TRANSIT: 4,
    TripStatus.COMPLETED: 5,
    TripStatus.CANCELLED: 5,
}

# Names used by the ride/delivery backends and older app builds
REMOTE_STATUS_ALIASES: dict[str, str] = {
    "PENDING": "REQUESTED",
    "ACCEPTED": "ASSIGNED",
    "DRIVER_EN_ROUTE": "PARTNER_EN_ROUTE",
    "DRIVER_ARRIVED": "ARRIVED",
    "DELIVERED": "COMPLETED",
}


# State machine: maps current status -> set of valid next statuses.
# CANCELLED is added to every non-terminal entry below.
_RIDE_FORWARD: dict[TripStatus, set[TripStatus]] = {
    TripStatus.REQUESTED: {TripStatus.ASSIGNED},
    TripStatus.ASSIGNED: {
        TripStatus.PARTNER_EN_ROUTE,
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
    },
    TripStatus.PARTNER_EN_ROUTE: {TripStatus.ARRIVED, TripStatus.IN_PROGRESS},
    TripStatus.ARRIVED: {TripStatus.IN_PROGRESS},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED},
}

_DELIVERY_FORWARD: dict[TripStatus, set[TripStatus]] = {
    TripStatus.REQUESTED: {TripStatus.ASSIGNED},
    TripStatus.ASSIGNED: {
        TripStatus.PARTNER_EN_ROUTE,
        TripStatus.PICKED_UP,
        TripStatus.IN_TRANSIT,
    },
    TripStatus.PARTNER_EN_ROUTE: {TripStatus.PICKED_UP, TripStatus.IN_TRANSIT},
    TripStatus.PICKED_UP: {TripStatus.IN_TRANSIT, TripStatus.COMPLETED},
    TripStatus.IN_TRANSIT: {TripStatus.COMPLETED},
}


def _with_cancellation(
    forward: dict[TripStatus, set[TripStatus]],
) -> dict[TripStatus, frozenset[TripStatus]]:
    table = {
        status: frozenset(nexts | {TripStatus.CANCELLED})
        for status, nexts in forward.items()
    }
    for terminal in TERMINAL_STATUSES:
        table[terminal] = frozenset()
    return table


TRIP_TRANSITIONS: dict[TripKind, dict[TripStatus, frozenset[TripStatus]]] = {
    TripKind.RIDE: _with_cancellation(_RIDE_FORWARD),
    TripKind.DELIVERY: _with_cancellation(_DELIVERY_FORWARD),
}

# Happy path per kind, used for progress rendering
TRIP_PATHS: dict[TripKind, tuple[TripStatus, ...]] = {
    TripKind.RIDE: (
        TripStatus.REQUESTED,
        TripStatus.ASSIGNED,
        TripStatus.PARTNER_EN_ROUTE,
        TripStatus.ARRIVED,
        TripStatus.IN_PROGRESS,
        TripStatus.COMPLETED,
    ),
    TripKind.DELIVERY: (
        TripStatus.REQUESTED,
        TripStatus.ASSIGNED,
        TripStatus.PARTNER_EN_ROUTE,
        TripStatus.PICKED_UP,
        TripStatus.IN_TRANSIT,
        TripStatus.COMPLETED,
    ),
}
