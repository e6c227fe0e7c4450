"""
Domain entities and value objects.

Patterns used
-------------
- **Value Objects** (frozen dataclasses) for coordinates, categories,
  partners, fares and quotes.
- **State Pattern** on ``Trip``: its status is only changed by
  :class:`src.domain.state_machine.TripStateMachine`, which enforces the
  transition table in :mod:`src.domain.enums`.
- ``TripSnapshot`` is the read-only copy handed to the view layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from .enums import (
    TIERS_BY_KIND,
    TRIP_PATHS,
    PackageSize,
    RideClass,
    TripKind,
    TripStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class Location:
    point: GeoPoint
    address: Optional[str] = None
    approximate: bool = False


@dataclass(frozen=True)
class PlaceQuery:
    """Address text plus an optional point to fall back on (map pin, GPS fix)."""

    text: str
    near: Optional[GeoPoint] = None


Endpoint = Union[Location, PlaceQuery, str]


@dataclass(frozen=True)
class TripCategory:
    kind: TripKind
    tier: str

    def __post_init__(self) -> None:
        kind = TripKind(self.kind)
        tier = str(getattr(self.tier, "value", self.tier)).upper()
        if tier not in TIERS_BY_KIND[kind].__members__:
            raise ValueError(f"{tier!r} is not a {kind.value} tier")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "tier", tier)

    @classmethod
    def ride(cls, ride_class: RideClass) -> "TripCategory":
        return cls(TripKind.RIDE, RideClass(ride_class).value)

    @classmethod
    def delivery(cls, size: PackageSize) -> "TripCategory":
        return cls(TripKind.DELIVERY, PackageSize(size).value)

    @classmethod
    def parse(cls, key: str) -> "TripCategory":
        """Build from a ``"KIND/TIER"`` key, e.g. ``"RIDE/ECONOMY"``."""
        kind, _, tier = key.upper().partition("/")
        return cls(TripKind(kind), tier)

    @property
    def key(self) -> str:
        return f"{self.kind.value}/{self.tier}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Partner:
    name: str
    phone: str
    vehicle: str
    rating: Optional[float] = None


@dataclass(frozen=True)
class Fare:
    amount: Decimal
    currency: str
    base_fare: Decimal
    distance_charge: Decimal


@dataclass(frozen=True)
class Quote:
    category: TripCategory
    pickup: Location
    destination: Location
    distance_km: float
    fare: Fare
    warnings: tuple[str, ...] = ()
    quoted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class StatusEvent:
    """A status observation, from polling or from a user command."""

    status: TripStatus
    partner: Optional[Partner] = None
    final_fare: Optional[Decimal] = None
    reason: Optional[str] = None
    observed_at: Optional[datetime] = None


@dataclass(frozen=True)
class StatusChange:
    status: TripStatus
    at: datetime
    source: str = "remote"


@dataclass(frozen=True)
class ProgressStep:
    status: TripStatus
    completed: bool
    current: bool


def progress_steps(kind: TripKind, status: TripStatus) -> list[ProgressStep]:
    """Steps of the happy path for *kind*, flagged against *status*.

    CANCELLED is not on the path; for a cancelled trip pass the last
    status it reached before cancellation.
    """
    path = TRIP_PATHS[kind]
    reached = status.rank if status in path else -1
    return [
        ProgressStep(
            status=step,
            completed=step.rank < reached or step is status is TripStatus.COMPLETED,
            current=step is status,
        )
        for step in path
    ]


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Trip:
    id: str
    tracking_code: str
    category: TripCategory
    pickup: Location
    destination: Location
    quoted_fare: Fare
    status: TripStatus = TripStatus.REQUESTED
    final_fare: Optional[Decimal] = None
    assigned_partner: Optional[Partner] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_status_change_at: Optional[datetime] = None
    history: list[StatusChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.last_status_change_at is None:
            self.last_status_change_at = self.created_at
        if not self.history:
            self.history.append(
                StatusChange(self.status, self.created_at, source="local")
            )

    @property
    def kind(self) -> TripKind:
        return self.category.kind

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def last_progress_status(self) -> TripStatus:
        """Latest status on the happy path (skips a trailing CANCELLED)."""
        for change in reversed(self.history):
            if change.status is not TripStatus.CANCELLED:
                return change.status
        return TripStatus.REQUESTED

    def snapshot(
        self, *, can_cancel: bool = False, connection_degraded: bool = False
    ) -> "TripSnapshot":
        return TripSnapshot(
            id=self.id,
            tracking_code=self.tracking_code,
            category=self.category,
            pickup=self.pickup,
            destination=self.destination,
            status=self.status,
            quoted_fare=self.quoted_fare,
            final_fare=self.final_fare,
            assigned_partner=self.assigned_partner,
            cancellation_reason=self.cancellation_reason,
            created_at=self.created_at,
            last_status_change_at=self.last_status_change_at,
            history=tuple(self.history),
            progress=tuple(progress_steps(self.kind, self.last_progress_status())),
            can_cancel=can_cancel,
            connection_degraded=connection_degraded,
        )


@dataclass(frozen=True)
class TripSnapshot:
    id: str
    tracking_code: str
    category: TripCategory
    pickup: Location
    destination: Location
    status: TripStatus
    quoted_fare: Fare
    final_fare: Optional[Decimal]
    assigned_partner: Optional[Partner]
    cancellation_reason: Optional[str]
    created_at: datetime
    last_status_change_at: Optional[datetime]
    history: tuple[StatusChange, ...]
    progress: tuple[ProgressStep, ...]
    can_cancel: bool
    connection_degraded: bool

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
