"""
Trip endpoints
==============

POST /api/v1/trips/{kind}/quote        -- price a pickup/destination pair
POST /api/v1/trips/{kind}/confirm      -- book a previously issued quote
GET  /api/v1/trips/{kind}/current      -- snapshot of the active trip
POST /api/v1/trips/{kind}/cancel       -- cancel the active trip
POST /api/v1/trips/{kind}/complete     -- confirm arrival / delivery
POST /api/v1/trips/{kind}/acknowledge  -- release a finished trip

``{kind}`` is ``ride`` or ``delivery``.  Domain errors are rendered by the
handler registered in :mod:`src.api.app`.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from src.api.dependencies import QuoteBook, get_controller, get_quote_book
from src.api.schemas import (
    CancelRequest,
    ConfirmRequest,
    ErrorResponse,
    QuoteRequest,
    QuoteResponse,
    TripResponse,
)
from src.domain.entities import TripCategory
from src.domain.errors import InvalidQuoteInput
from src.services.controller import TripController

router = APIRouter(prefix="/trips/{kind}", tags=["trips"])

_ERRORS = {409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}}


@router.post(
    "/quote",
    response_model=QuoteResponse,
    summary="Estimate the fare for a trip",
    responses=_ERRORS,
)
async def quote_trip(
    kind: str,
    body: QuoteRequest,
    controller: TripController = Depends(get_controller),
    quotes: QuoteBook = Depends(get_quote_book),
):
    try:
        category = TripCategory(controller.kind, body.tier)
    except ValueError as exc:
        raise InvalidQuoteInput(str(exc)) from exc

    quote = await controller.request(
        body.pickup.to_domain(), body.destination.to_domain(), category
    )
    return QuoteResponse.from_domain(quotes.add(quote), quote)


@router.post(
    "/confirm",
    status_code=201,
    response_model=TripResponse,
    summary="Book a quoted trip",
    responses=_ERRORS,
)
async def confirm_trip(
    kind: str,
    body: ConfirmRequest,
    controller: TripController = Depends(get_controller),
    quotes: QuoteBook = Depends(get_quote_book),
):
    quote = quotes.get(body.quote_id)
    if quote is None:
        raise HTTPException(status_code=404, detail="Quote not found or expired")
    snapshot = await controller.confirm(quote)
    quotes.discard(body.quote_id)
    return TripResponse.from_domain(snapshot)


@router.get(
    "/current",
    response_model=Optional[TripResponse],
    summary="Get the active trip, if any",
)
async def current_trip(
    kind: str,
    controller: TripController = Depends(get_controller),
):
    snapshot = controller.current_trip()
    return TripResponse.from_domain(snapshot) if snapshot else None


@router.post(
    "/cancel",
    response_model=TripResponse,
    summary="Cancel the active trip",
    description=(
        "Allowed until the irrevocable boundary: rides until they start, "
        "deliveries until the package is picked up."
    ),
    responses=_ERRORS,
)
async def cancel_trip(
    kind: str,
    body: Optional[CancelRequest] = None,
    controller: TripController = Depends(get_controller),
):
    snapshot = await controller.cancel(body.reason if body else None)
    return TripResponse.from_domain(snapshot)


@router.post(
    "/complete",
    response_model=TripResponse,
    summary="Confirm the ride ended or the package was delivered",
    responses=_ERRORS,
)
async def complete_trip(
    kind: str,
    controller: TripController = Depends(get_controller),
):
    snapshot = await controller.mark_completed()
    return TripResponse.from_domain(snapshot)


@router.post(
    "/acknowledge",
    status_code=204,
    summary="Release a completed or cancelled trip",
    responses=_ERRORS,
)
async def acknowledge_trip(
    kind: str,
    controller: TripController = Depends(get_controller),
):
    await controller.acknowledge_completion()
    return Response(status_code=204)
