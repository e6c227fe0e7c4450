"""Pydantic request / response schemas for the view bridge API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import (
    Endpoint,
    GeoPoint,
    Location,
    PlaceQuery,
    Quote,
    TripSnapshot,
)


# ── Requests ──────────────────────────────────────────────────────────


class PointIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


class EndpointIn(BaseModel):
    """Either an address, a point, or both (the point is the fallback)."""

    address: Optional[str] = Field(None, max_length=300)
    point: Optional[PointIn] = None

    def to_domain(self) -> Endpoint:
        if self.address:
            near = self.point.to_domain() if self.point else None
            return PlaceQuery(self.address, near)
        if self.point:
            return Location(self.point.to_domain())
        return PlaceQuery("")


class QuoteRequest(BaseModel):
    pickup: EndpointIn
    destination: EndpointIn
    tier: str = Field(..., description="ECONOMY/COMFORT/PREMIUM or DOCUMENT/SMALL/MEDIUM/LARGE")


class ConfirmRequest(BaseModel):
    quote_id: str


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


# ── Responses ─────────────────────────────────────────────────────────


class LocationOut(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None
    approximate: bool = False

    @classmethod
    def from_domain(cls, location: Location) -> "LocationOut":
        return cls(
            latitude=location.point.latitude,
            longitude=location.point.longitude,
            address=location.address,
            approximate=location.approximate,
        )


class FareOut(BaseModel):
    amount: Decimal
    currency: str
    base_fare: Decimal
    distance_charge: Decimal


class QuoteResponse(BaseModel):
    quote_id: str
    category: str
    pickup: LocationOut
    destination: LocationOut
    distance_km: float
    fare: FareOut
    warnings: list[str] = []
    quoted_at: datetime

    @classmethod
    def from_domain(cls, quote_id: str, quote: Quote) -> "QuoteResponse":
        return cls(
            quote_id=quote_id,
            category=quote.category.key,
            pickup=LocationOut.from_domain(quote.pickup),
            destination=LocationOut.from_domain(quote.destination),
            distance_km=round(quote.distance_km, 3),
            fare=FareOut(
                amount=quote.fare.amount,
                currency=quote.fare.currency,
                base_fare=quote.fare.base_fare,
                distance_charge=quote.fare.distance_charge,
            ),
            warnings=list(quote.warnings),
            quoted_at=quote.quoted_at,
        )


class PartnerOut(BaseModel):
    name: str
    phone: str
    vehicle: str
    rating: Optional[float] = None


class StatusChangeOut(BaseModel):
    status: str
    at: datetime
    source: str


class ProgressStepOut(BaseModel):
    status: str
    completed: bool
    current: bool


class TripResponse(BaseModel):
    id: str
    tracking_code: str
    category: str
    status: str
    pickup: LocationOut
    destination: LocationOut
    quoted_fare: Decimal
    final_fare: Optional[Decimal] = None
    currency: str
    partner: Optional[PartnerOut] = None
    cancellation_reason: Optional[str] = None
    can_cancel: bool
    connection_degraded: bool
    created_at: datetime
    last_status_change_at: Optional[datetime] = None
    progress: list[ProgressStepOut] = []
    history: list[StatusChangeOut] = []

    @classmethod
    def from_domain(cls, snap: TripSnapshot) -> "TripResponse":
        partner = snap.assigned_partner
        return cls(
            id=snap.id,
            tracking_code=snap.tracking_code,
            category=snap.category.key,
            status=snap.status.value,
            pickup=LocationOut.from_domain(snap.pickup),
            destination=LocationOut.from_domain(snap.destination),
            quoted_fare=snap.quoted_fare.amount,
            final_fare=snap.final_fare,
            currency=snap.quoted_fare.currency,
            partner=PartnerOut(
                name=partner.name,
                phone=partner.phone,
                vehicle=partner.vehicle,
                rating=partner.rating,
            )
            if partner
            else None,
            cancellation_reason=snap.cancellation_reason,
            can_cancel=snap.can_cancel,
            connection_degraded=snap.connection_degraded,
            created_at=snap.created_at,
            last_status_change_at=snap.last_status_change_at,
            progress=[
                ProgressStepOut(status=s.status.value, completed=s.completed, current=s.current)
                for s in snap.progress
            ],
            history=[
                StatusChangeOut(status=h.status.value, at=h.at, source=h.source)
                for h in snap.history
            ],
        )


class ActiveTripSummary(BaseModel):
    kind: str
    trip_id: str
    status: str
    polling: bool
    consecutive_failures: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    code: str
    detail: str
