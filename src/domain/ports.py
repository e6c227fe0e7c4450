"""
Interfaces of the external collaborators the trip core depends on.

The core never talks HTTP itself.  It calls a ``TripTransport`` and a
``GeocodingService``; concrete adapters live in ``src.infrastructure``.
Adapters signal failures with the exception types declared here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from .entities import GeoPoint, Location, StatusEvent, TripCategory


# ── Transport failures ────────────────────────────────────────────────


class TransportError(Exception):
    """Base class for failures reported by a ``TripTransport``."""


class TransportUnavailable(TransportError):
    """The backend could not be reached or failed transiently."""


class TransportNotFound(TransportError):
    """The backend has no record of the requested trip."""


class ServerRejected(TransportError):
    """The backend understood the request and refused it."""


class ResolutionError(Exception):
    """An address could not be turned into coordinates (or back)."""


# ── Payloads ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TripRequest:
    category: TripCategory
    pickup: Location
    destination: Location
    quoted_fare: Decimal
    currency: str
    distance_km: float


@dataclass(frozen=True)
class TripHandle:
    id: str
    tracking_code: str


# ── Ports ─────────────────────────────────────────────────────────────


class TripTransport(Protocol):
    async def create_trip(self, request: TripRequest) -> TripHandle: ...

    async def fetch_status(self, trip_id: str) -> StatusEvent: ...

    async def request_cancel(
        self, trip_id: str, reason: Optional[str] = None
    ) -> None: ...

    async def confirm_completion(self, trip_id: str) -> StatusEvent: ...


class GeocodingService(Protocol):
    async def geocode(self, text: str) -> GeoPoint: ...

    async def reverse_geocode(self, point: GeoPoint) -> str: ...
