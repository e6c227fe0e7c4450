"""
HTTP trip transport.

JSON client for the marketplace backend built on ``httpx.AsyncClient``.

Endpoints
---------
POST /trips                 -- create a trip, returns ``{id, trackingCode}``
GET  /trips/{id}/status     -- current status payload
POST /trips/{id}/cancel     -- request cancellation
POST /trips/{id}/complete   -- rider/sender confirms completion

Failures are translated into the transport exceptions of
:mod:`src.domain.ports`: connection errors, timeouts, 429 and 5xx become
``TransportUnavailable``; 404 becomes ``TransportNotFound``; any other
4xx or an unreadable body becomes ``ServerRejected``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.config import Settings
from src.domain.entities import Location, Partner, StatusEvent
from src.domain.enums import TripStatus
from src.domain.ports import (
    ServerRejected,
    TransportNotFound,
    TransportUnavailable,
    TripHandle,
    TripRequest,
)

logger = logging.getLogger(__name__)


# ── Wire schemas ──────────────────────────────────────────────────────


class PartnerPayload(BaseModel):
    name: str
    phone: str
    vehicle: str = Field("", alias="vehicleDescriptor")
    rating: Optional[float] = None

    model_config = {"populate_by_name": True}


class StatusPayload(BaseModel):
    status: TripStatus
    partner: Optional[PartnerPayload] = None
    final_fare: Optional[Decimal] = Field(None, alias="finalFare")
    reason: Optional[str] = None
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> TripStatus:
        if isinstance(value, str):
            return TripStatus.from_remote(value)
        return value

    def to_event(self) -> StatusEvent:
        partner = None
        if self.partner is not None:
            partner = Partner(
                name=self.partner.name,
                phone=self.partner.phone,
                vehicle=self.partner.vehicle,
                rating=self.partner.rating,
            )
        return StatusEvent(
            status=self.status,
            partner=partner,
            final_fare=self.final_fare,
            reason=self.reason,
            observed_at=self.updated_at,
        )


class TripCreatedPayload(BaseModel):
    id: str
    tracking_code: str = Field(..., alias="trackingCode")

    model_config = {"populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> str:
        return str(value)


def _location_body(location: Location) -> dict[str, Any]:
    return {
        "latitude": location.point.latitude,
        "longitude": location.point.longitude,
        "address": location.address,
    }


# ── Client ────────────────────────────────────────────────────────────


class HttpTripTransport:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def from_settings(cls, cfg: Settings) -> "HttpTripTransport":
        return cls(
            httpx.AsyncClient(
                base_url=cfg.transport_base_url,
                timeout=cfg.transport_timeout_seconds,
            )
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def create_trip(self, request: TripRequest) -> TripHandle:
        body = {
            "category": request.category.key,
            "pickup": _location_body(request.pickup),
            "destination": _location_body(request.destination),
            "quotedFare": str(request.quoted_fare),
            "currency": request.currency,
            "distanceKm": round(request.distance_km, 3),
        }
        data = await self._send("POST", "/trips", json=body)
        created = self._parse(TripCreatedPayload, data)
        return TripHandle(id=created.id, tracking_code=created.tracking_code)

    async def fetch_status(self, trip_id: str) -> StatusEvent:
        data = await self._send("GET", f"/trips/{trip_id}/status")
        return self._parse(StatusPayload, data).to_event()

    async def request_cancel(self, trip_id: str, reason: Optional[str] = None) -> None:
        await self._send("POST", f"/trips/{trip_id}/cancel", json={"reason": reason})

    async def confirm_completion(self, trip_id: str) -> StatusEvent:
        data = await self._send("POST", f"/trips/{trip_id}/complete")
        return self._parse(StatusPayload, data).to_event()

    # ── Internals ─────────────────────────────────────────────────────

    async def _send(
        self, method: str, path: str, json: Optional[dict] = None
    ) -> dict[str, Any]:
        try:
            resp = await self.client.request(method, path, json=json)
        except httpx.TransportError as exc:
            raise TransportUnavailable(f"{method} {path}: {exc!r}") from exc

        if resp.status_code == 404:
            raise TransportNotFound(f"{method} {path}: not found")
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransportUnavailable(f"{method} {path}: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise ServerRejected(_error_detail(resp))

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise ServerRejected(f"{method} {path}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise ServerRejected(f"{method} {path}: expected a JSON object")
        # backends wrap payloads as {"data": {...}}
        inner = data.get("data")
        return inner if isinstance(inner, dict) else data

    @staticmethod
    def _parse(model: type[BaseModel], data: dict[str, Any]):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning("Malformed %s payload: %s", model.__name__, exc)
            raise ServerRejected(f"Malformed {model.__name__}: {exc.error_count()} errors") from exc


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)
