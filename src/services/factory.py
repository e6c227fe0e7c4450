"""
Wiring: builds trip controllers and their collaborators from ``Settings``.

One controller is built per ``TripKind`` so a rider can hold one active
ride and one active delivery at the same time, each exclusive within its
own kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from src.config import Settings
from src.domain.cancellation import CancellationPolicy
from src.domain.enums import TripKind
from src.domain.ports import GeocodingService, TripTransport
from src.domain.pricing import FareEstimator, PricingTable
from src.domain.state_machine import TripStateMachine
from src.infrastructure.geocoding import NominatimGeocoder, SimulatedGeocoder
from src.infrastructure.simulated import SimulatedTripTransport
from src.infrastructure.transport import HttpTripTransport
from src.services.controller import TripController
from src.services.events import EventSink, LoggingEventSink
from src.services.geo import GeoAdapter

logger = logging.getLogger(__name__)


def build_pricing_table(cfg: Settings) -> PricingTable:
    if cfg.pricing_table_path:
        logger.info("Loading pricing table from %s", cfg.pricing_table_path)
        return PricingTable.from_json_file(cfg.pricing_table_path)
    return PricingTable.from_mapping(cfg.pricing_table)


def build_transport(cfg: Settings) -> TripTransport:
    if cfg.transport_mode == "http":
        return HttpTripTransport.from_settings(cfg)
    if cfg.transport_mode == "simulated":
        return SimulatedTripTransport()
    raise ValueError(f"Unknown transport mode: {cfg.transport_mode!r}")


def build_geocoder(cfg: Settings) -> GeocodingService:
    if cfg.geocoder_mode == "nominatim":
        return NominatimGeocoder.from_settings(cfg)
    if cfg.geocoder_mode == "simulated":
        return SimulatedGeocoder.from_settings(cfg)
    raise ValueError(f"Unknown geocoder mode: {cfg.geocoder_mode!r}")


@dataclass
class TripControllers:
    by_kind: dict[TripKind, TripController]
    _closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    def __getitem__(self, kind: TripKind) -> TripController:
        return self.by_kind[kind]

    async def aclose(self) -> None:
        """Stop every synchronizer, then release HTTP clients."""
        for controller in self.by_kind.values():
            await controller.close()
        for closer in self._closers:
            await closer()


def build_controllers(
    cfg: Settings,
    *,
    transport: Optional[TripTransport] = None,
    geocoder: Optional[GeocodingService] = None,
    sink: Optional[EventSink] = None,
) -> TripControllers:
    transport = transport or build_transport(cfg)
    geocoder = geocoder or build_geocoder(cfg)
    sink = sink or LoggingEventSink()

    geo = GeoAdapter(geocoder)
    estimator = FareEstimator(
        build_pricing_table(cfg),
        currency=cfg.currency,
        currency_decimals=cfg.currency_decimals,
    )
    policy = CancellationPolicy.from_settings(cfg)
    state_machine = TripStateMachine()

    controllers = {
        kind: TripController(
            geo=geo,
            estimator=estimator,
            transport=transport,
            state_machine=state_machine,
            policy=policy,
            sink=sink,
            kind=kind,
            cfg=cfg,
        )
        for kind in TripKind
    }

    closers = [
        dep.aclose
        for dep in (transport, geocoder)
        if callable(getattr(dep, "aclose", None))
    ]
    return TripControllers(controllers, closers)
