"""
Fare Estimator
==============

Formula
-------
Fare = Base_Fare(category) + Distance_km x Per_Km_Rate(category)

rounded half-up to the currency's smallest unit (whole Toman by default).

Rates live in a :class:`PricingTable` keyed by ``"KIND/TIER"``.  The table
is plain data: promotions or regional pricing swap the table, never the
formula.

Complexity: O(1) per quote.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Mapping

from .entities import Fare, TripCategory
from .errors import InvalidQuoteInput


def _decimal(value: float | int | str | Decimal) -> Decimal:
    # str() first so 5.2 becomes Decimal("5.2") rather than its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class PricingTier:
    base_fare: Decimal
    per_km_rate: Decimal

    def __post_init__(self) -> None:
        if self.base_fare < 0 or self.per_km_rate < 0:
            raise ValueError("fares and rates must be non-negative")


class PricingTable:
    """Immutable mapping of category key -> :class:`PricingTier`."""

    def __init__(self, tiers: Mapping[str, PricingTier]):
        self._tiers = {key.upper(): tier for key, tier in tiers.items()}

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Mapping[str, float]]) -> "PricingTable":
        """Build from ``{"RIDE/ECONOMY": {"base_fare": .., "per_km_rate": ..}}``."""
        tiers = {}
        for key, rates in raw.items():
            TripCategory.parse(key)  # reject keys that name no real category
            tiers[key] = PricingTier(
                base_fare=_decimal(rates["base_fare"]),
                per_km_rate=_decimal(rates["per_km_rate"]),
            )
        return cls(tiers)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "PricingTable":
        with open(path, encoding="utf-8") as fh:
            return cls.from_mapping(json.load(fh))

    def tier_for(self, category: TripCategory) -> PricingTier | None:
        return self._tiers.get(category.key)

    def __contains__(self, category: object) -> bool:
        return isinstance(category, TripCategory) and category.key in self._tiers

    def keys(self) -> list[str]:
        return sorted(self._tiers)


class FareEstimator:
    """High-level API used by the trip controller."""

    def __init__(
        self,
        table: PricingTable,
        currency: str = "IRT",
        currency_decimals: int = 0,
    ):
        self.table = table
        self.currency = currency
        self._unit = Decimal(1).scaleb(-currency_decimals)

    def quote(self, distance_km: float, category: TripCategory) -> Fare:
        if not isinstance(category, TripCategory):
            raise InvalidQuoteInput(f"Unknown category: {category!r}")
        if distance_km is None or not math.isfinite(distance_km) or distance_km <= 0:
            raise InvalidQuoteInput(f"Distance must be positive, got {distance_km!r}")

        tier = self.table.tier_for(category)
        if tier is None:
            raise InvalidQuoteInput(f"No pricing configured for {category.key}")

        distance_charge = _decimal(distance_km) * tier.per_km_rate
        amount = (tier.base_fare + distance_charge).quantize(
            self._unit, rounding=ROUND_HALF_UP
        )
        return Fare(
            amount=amount,
            currency=self.currency,
            base_fare=tier.base_fare,
            distance_charge=distance_charge,
        )
