"""
Geocoder / distance adapter.

Wraps a :class:`~src.domain.ports.GeocodingService` with the behaviour
the trip controller needs:

* ``resolve``   -- address text -> ``Location`` or ``ResolutionError``
* ``locate``    -- any endpoint the view may pass, with best-effort
  fallback to an approximate point and a human-readable warning
* ``distance_km`` -- great-circle distance (see :mod:`src.domain.distance`)
"""

from __future__ import annotations

import logging
from typing import Callable

from src.domain.distance import distance_km as haversine_distance
from src.domain.entities import Endpoint, GeoPoint, Location, PlaceQuery
from src.domain.errors import LocationUnresolved
from src.domain.ports import GeocodingService, ResolutionError

logger = logging.getLogger(__name__)


class GeoAdapter:
    def __init__(
        self,
        geocoder: GeocodingService,
        distance: Callable[[GeoPoint, GeoPoint], float] = haversine_distance,
    ):
        self.geocoder = geocoder
        self._distance = distance

    async def resolve(self, address_text: str) -> Location:
        text = (address_text or "").strip()
        if not text:
            raise ResolutionError("Empty address")
        point = await self.geocoder.geocode(text)
        return Location(point=point, address=text)

    def distance_km(self, a: GeoPoint, b: GeoPoint) -> float:
        return self._distance(a, b)

    async def locate(self, endpoint: Endpoint) -> tuple[Location, list[str]]:
        """Turn *endpoint* into a ``Location``, collecting non-fatal warnings.

        Raises ``LocationUnresolved`` only when nothing, not even an
        approximate point, is available.
        """
        if isinstance(endpoint, Location):
            if endpoint.address:
                return endpoint, []
            try:
                address = await self.geocoder.reverse_geocode(endpoint.point)
            except ResolutionError as exc:
                logger.info("Reverse geocoding failed for %s: %s", endpoint.point, exc)
                return endpoint, [
                    "We couldn't look up the address for a pinned location; "
                    "the trip will use the pin's coordinates."
                ]
            return Location(endpoint.point, address, endpoint.approximate), []

        query = PlaceQuery(endpoint) if isinstance(endpoint, str) else endpoint
        try:
            return await self.resolve(query.text), []
        except ResolutionError as exc:
            if query.near is None:
                raise LocationUnresolved(
                    f"Could not resolve {query.text!r}: {exc}"
                ) from exc
            logger.info("Falling back to approximate location for %r: %s", query.text, exc)
            return (
                Location(point=query.near, address=query.text, approximate=True),
                [
                    f"We couldn't find {query.text!r} exactly; using an "
                    "approximate location. The fare may change slightly."
                ],
            )
