"""
Shared test fixtures.

Everything runs in memory: a scripted fake transport stands in for the
backend, a dictionary geocoder for the address service, and a manual
clock for timestamps.  Events emitted by the services are captured by a
recording sink so tests assert on them instead of scraping logs.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio

from src.config import Settings
from src.domain.cancellation import CancellationPolicy
from src.domain.entities import (
    Fare,
    GeoPoint,
    Location,
    Partner,
    StatusEvent,
    Trip,
    TripCategory,
)
from src.domain.enums import PackageSize, RideClass, TripStatus
from src.domain.ports import ResolutionError, TransportUnavailable, TripHandle, TripRequest
from src.domain.pricing import FareEstimator, PricingTable
from src.domain.state_machine import TripStateMachine
from src.services.controller import TripController
from src.services.events import TripEvent
from src.services.geo import GeoAdapter


# ── Doubles ───────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingSink:
    def __init__(self):
        self.events: list[TripEvent] = []

    def emit(self, event: TripEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]


class FakeTransport:
    """Backend double: ``fetch_status`` pops queued events or exceptions."""

    def __init__(self):
        self.statuses: list = []
        self.created: list[TripRequest] = []
        self.cancelled: list[tuple[str, Optional[str]]] = []
        self.create_error: Optional[Exception] = None
        self.cancel_error: Optional[Exception] = None
        self.completion: Optional[StatusEvent] = None
        self.fetches = 0
        self._next_id = 100

    def queue(self, *items) -> None:
        self.statuses.extend(items)

    async def create_trip(self, request: TripRequest) -> TripHandle:
        if self.create_error:
            raise self.create_error
        self.created.append(request)
        self._next_id += 1
        return TripHandle(id=str(self._next_id), tracking_code=f"TRK{self._next_id}")

    async def fetch_status(self, trip_id: str) -> StatusEvent:
        self.fetches += 1
        if not self.statuses:
            raise TransportUnavailable("nothing queued")
        item = self.statuses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def request_cancel(self, trip_id: str, reason: Optional[str] = None) -> None:
        if self.cancel_error:
            raise self.cancel_error
        self.cancelled.append((trip_id, reason))

    async def confirm_completion(self, trip_id: str) -> StatusEvent:
        if self.completion is None:
            raise TransportUnavailable("no completion queued")
        return self.completion


class DictGeocoder:
    def __init__(self, places: dict[str, GeoPoint]):
        self.places = places

    async def geocode(self, text: str) -> GeoPoint:
        try:
            return self.places[text]
        except KeyError:
            raise ResolutionError(f"unknown address {text!r}") from None

    async def reverse_geocode(self, point: GeoPoint) -> str:
        for name, known in self.places.items():
            if known == point:
                return name
        raise ResolutionError("no address here")


# ── Sample data ───────────────────────────────────────────────────────

CONNAUGHT_PLACE = GeoPoint(28.6315, 77.2167)
INDIA_GATE = GeoPoint(28.6129, 77.2295)
DELHI_CENTER = GeoPoint(28.6139, 77.2090)

PARTNER = Partner(name="Rajesh Kumar", phone="+91 98765 43210", vehicle="Maruti Swift", rating=4.8)

ECONOMY = TripCategory.ride(RideClass.ECONOMY)
SMALL_PACKAGE = TripCategory.delivery(PackageSize.SMALL)

TEST_PRICING = {
    "RIDE/ECONOMY": {"base_fare": 20000, "per_km_rate": 8000},
    "RIDE/COMFORT": {"base_fare": 20000, "per_km_rate": 12000},
    "DELIVERY/SMALL": {"base_fare": 40000, "per_km_rate": 8000},
}


def observed(s: TripStatus, **kwargs) -> StatusEvent:
    return StatusEvent(status=s, **kwargs)


def make_trip(
    category: TripCategory = ECONOMY,
    status: TripStatus = TripStatus.REQUESTED,
    partner: Optional[Partner] = None,
    trip_id: str = "T-1",
) -> Trip:
    if partner is None and status not in (TripStatus.REQUESTED, TripStatus.CANCELLED):
        partner = PARTNER
    return Trip(
        id=trip_id,
        tracking_code="ABC123",
        category=category,
        pickup=Location(CONNAUGHT_PLACE, "Connaught Place"),
        destination=Location(INDIA_GATE, "India Gate"),
        quoted_fare=Fare(Decimal("38000"), "IRT", Decimal("20000"), Decimal("18000")),
        status=status,
        assigned_partner=partner,
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def geocoder() -> DictGeocoder:
    return DictGeocoder(
        {
            "Connaught Place": CONNAUGHT_PLACE,
            "India Gate": INDIA_GATE,
        }
    )


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        _env_file=None,
        # long intervals: tests drive polling through poll_now()
        delivery_poll_interval_seconds=3600,
        ride_poll_interval_seconds=3600,
        ride_active_poll_interval_seconds=3600,
        degraded_failure_threshold=3,
    )


@pytest.fixture
def state_machine(clock) -> TripStateMachine:
    return TripStateMachine(clock=clock)


@pytest.fixture
def estimator() -> FareEstimator:
    return FareEstimator(PricingTable.from_mapping(TEST_PRICING))


@pytest_asyncio.fixture
async def controller(geocoder, estimator, transport, state_machine, sink, cfg):
    ctrl = TripController(
        geo=GeoAdapter(geocoder),
        estimator=estimator,
        transport=transport,
        state_machine=state_machine,
        policy=CancellationPolicy(),
        sink=sink,
        cfg=cfg,
    )
    yield ctrl
    await ctrl.close()
