"""
Address resolution services.

``NominatimGeocoder`` queries an OpenStreetMap Nominatim instance over
``httpx``.  ``SimulatedGeocoder`` is a deterministic stand-in for local
runs and tests: known places resolve to fixed coordinates and any other
text lands at a stable offset (at most ~5 km) from the city centre.

Both raise :class:`~src.domain.ports.ResolutionError` on every failure,
including network errors, so callers only handle one exception type.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Mapping, Optional

import httpx

from src.config import Settings
from src.domain.entities import GeoPoint
from src.domain.ports import ResolutionError

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def from_settings(cls, cfg: Settings) -> "NominatimGeocoder":
        return cls(
            httpx.AsyncClient(
                base_url=cfg.geocoder_base_url,
                timeout=cfg.geocoder_timeout_seconds,
                headers={"User-Agent": cfg.geocoder_user_agent},
            )
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def geocode(self, text: str) -> GeoPoint:
        results = await self._get("/search", {"q": text, "format": "json", "limit": 1})
        if not results:
            raise ResolutionError(f"Could not geocode address: {text}")
        first = results[0]
        try:
            return GeoPoint(float(first["lat"]), float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ResolutionError(f"Unexpected geocoder result for {text!r}") from exc

    async def reverse_geocode(self, point: GeoPoint) -> str:
        result = await self._get(
            "/reverse",
            {"lat": point.latitude, "lon": point.longitude, "format": "json"},
        )
        address = result.get("display_name") if isinstance(result, dict) else None
        if not address:
            raise ResolutionError(f"No address found at {point.latitude},{point.longitude}")
        return address

    async def _get(self, path: str, params: dict):
        try:
            resp = await self.client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Geocoding provider failed: {exc!r}") from exc
        except ValueError as exc:
            raise ResolutionError("Geocoding provider returned invalid JSON") from exc


class SimulatedGeocoder:
    # ~0.05 degrees is roughly 5 km at Delhi's latitude
    SPREAD_DEGREES = 0.05

    def __init__(
        self,
        center: GeoPoint,
        places: Optional[Mapping[str, GeoPoint]] = None,
        unknown: tuple[str, ...] = (),
    ):
        self.center = center
        self.places = {k.strip().lower(): v for k, v in (places or {}).items()}
        self.unknown = {u.strip().lower() for u in unknown}

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SimulatedGeocoder":
        return cls(GeoPoint(cfg.city_center_lat, cfg.city_center_lng))

    async def geocode(self, text: str) -> GeoPoint:
        key = text.strip().lower()
        if not key or key in self.unknown:
            raise ResolutionError(f"Could not geocode address: {text}")
        if key in self.places:
            return self.places[key]
        digest = hashlib.sha256(key.encode("utf-8")).digest()
        dlat = (digest[0] / 255 - 0.5) * 2 * self.SPREAD_DEGREES
        dlng = (digest[1] / 255 - 0.5) * 2 * self.SPREAD_DEGREES
        return GeoPoint(
            round(self.center.latitude + dlat, 6),
            round(self.center.longitude + dlng, 6),
        )

    async def reverse_geocode(self, point: GeoPoint) -> str:
        for name, known in self.places.items():
            if known == point:
                return name.title()
        return f"Location at {point.latitude:.4f}, {point.longitude:.4f}"
