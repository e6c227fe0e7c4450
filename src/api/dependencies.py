"""FastAPI dependency injection helpers."""

from __future__ import annotations

import uuid
from collections import OrderedDict
from typing import Optional

from fastapi import HTTPException, Request

from src.domain.entities import Quote
from src.domain.enums import TripKind
from src.services.controller import TripController
from src.services.factory import TripControllers


class QuoteBook:
    """Quotes issued to the view, kept until confirmed or evicted (oldest first)."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self._quotes: OrderedDict[str, Quote] = OrderedDict()

    def add(self, quote: Quote) -> str:
        quote_id = uuid.uuid4().hex
        self._quotes[quote_id] = quote
        while len(self._quotes) > self.max_size:
            self._quotes.popitem(last=False)
        return quote_id

    def get(self, quote_id: str) -> Optional[Quote]:
        return self._quotes.get(quote_id)

    def discard(self, quote_id: str) -> None:
        self._quotes.pop(quote_id, None)


def get_controllers(request: Request) -> TripControllers:
    return request.app.state.controllers


def get_quote_book(request: Request) -> QuoteBook:
    return request.app.state.quotes


def get_controller(kind: str, request: Request) -> TripController:
    """Resolve the ``{kind}`` path segment (``ride`` / ``delivery``)."""
    try:
        trip_kind = TripKind(kind.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown trip kind: {kind}")
    return get_controllers(request)[trip_kind]
