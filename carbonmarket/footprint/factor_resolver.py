# -*- coding: utf-8 -*-
"""
Emission Factor Resolver

Resolves an emission factor for a ``(category, subcategory, scope, region)``
lookup key.

Resolution order:
    1. Factor cache (LRU/TTL, keyed by the composite tuple)
    2. Factor store, accepting the requested region and GLOBAL records;
       the region-specific record wins, ties broken by most recent year
    3. Built-in fallback table, only when the store is unavailable or no
       store is configured: exact region first, then GLOBAL

When the store answers with no match the fallback table is not consulted.
No match on the path taken raises ``EmissionFactorNotFound``; there is no
default factor.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from carbonmarket.exceptions import EmissionFactorNotFound, FactorStoreUnavailable
from carbonmarket.footprint.factor_cache import FactorCache, FactorKey
from carbonmarket.footprint.factor_store import (
    DEFAULT_LIST_LIMIT,
    FactorStore,
    filter_factors,
)
from carbonmarket.footprint.metrics import record_factor_resolution
from carbonmarket.footprint.models import GLOBAL_REGION, EmissionFactor
from carbonmarket.footprint.provenance import ProvenanceTracker

logger = logging.getLogger(__name__)


def _factor(category, subcategory, scope, value, unit, source, region, methodology=None):
    return EmissionFactor(
        category=category,
        subcategory=subcategory,
        scope=scope,
        emission_factor=value,
        unit=unit,
        source=source,
        region=region,
        year=2023,
        methodology=methodology,
    )


# Representative factors used when the factor store is unavailable.
# Deliberately incomplete: keys not listed here raise EmissionFactorNotFound.
FALLBACK_FACTORS: Dict[FactorKey, EmissionFactor] = {
    f.key: f for f in (
        # Scope 1 - stationary and mobile combustion (kg CO2e per unit)
        _factor("fuel", "natural_gas_commercial", 1, 53.02, "MMBtu", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "natural_gas", 1, 53.02, "MMBtu", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "gasoline_motor", 1, 19.59, "gallon", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "gasoline", 1, 19.59, "gallon", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "diesel", 1, 22.51, "gallon", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "diesel_fuel", 1, 22.51, "gallon", "EPA 2023", "US", "AP-42"),
        _factor("fuel", "propane", 1, 12.68, "gallon", "EPA 2023", "US", "AP-42"),
        _factor("transport", "passenger_car_gasoline", 1, 8.89, "gallon", "EPA 2023", "US"),
        # Scope 2 - grid electricity (kg CO2e per kWh)
        _factor("electricity", "grid_us_national", 2, 0.8554, "kWh", "EPA eGRID 2021", "US", "eGRID"),
        _factor("electricity", "grid_california", 2, 0.4578, "kWh", "EPA eGRID 2021", "US", "eGRID"),
        _factor("electricity", "grid_texas", 2, 0.8900, "kWh", "EPA eGRID 2021", "US", "eGRID"),
        _factor("electricity", "grid_uk", 2, 0.2556, "kWh", "DEFRA 2023", "GB"),
        # Scope 3 - value chain
        _factor("transport", "air_domestic_short", 3, 0.24, "passenger_km", "DEFRA 2023", GLOBAL_REGION),
        _factor("transport", "air_international_long", 3, 0.19, "passenger_km", "DEFRA 2023", GLOBAL_REGION),
        _factor("material", "steel", 3, 2.89, "kg", "DEFRA 2023", GLOBAL_REGION),
        _factor("material", "aluminum", 3, 11.46, "kg", "DEFRA 2023", GLOBAL_REGION),
        _factor("material", "concrete", 3, 0.13, "kg", "DEFRA 2023", GLOBAL_REGION),
        _factor("waste", "general_waste_landfill", 3, 0.47, "kg", "DEFRA 2023", "GB"),
    )
}


@dataclass
class FactorListing:
    """Result of a browse query: factors plus where they came from."""

    factors: List[EmissionFactor] = field(default_factory=list)
    source: str = "store"

    @property
    def from_fallback(self) -> bool:
        return self.source == "fallback"


def group_factors(factors: Sequence[EmissionFactor]) -> Dict[int, Dict[str, List[EmissionFactor]]]:
    """Group factors by scope, then by category (insertion order kept)."""
    grouped: Dict[int, Dict[str, List[EmissionFactor]]] = {}
    for factor in factors:
        grouped.setdefault(factor.scope, {}).setdefault(factor.category, []).append(factor)
    return grouped


class EmissionFactorResolver:
    """
    Resolve emission factors from a factor store with fallback and caching.

    Args:
        store: Factor store; None means no store is configured
        fallback_factors: Built-in table keyed by the composite tuple
        enable_fallback: Use the fallback table when the store is unavailable
        cache: Optional factor cache
        provenance: Optional provenance tracker recording resolutions
    """

    def __init__(
        self,
        store: Optional[FactorStore] = None,
        fallback_factors: Optional[Mapping[FactorKey, EmissionFactor]] = None,
        enable_fallback: bool = True,
        cache: Optional[FactorCache] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ):
        self.store = store
        self.fallback_factors = (
            dict(fallback_factors) if fallback_factors is not None else dict(FALLBACK_FACTORS)
        )
        self.enable_fallback = enable_fallback
        self.cache = cache
        self.provenance = provenance

    async def resolve(
        self,
        category: str,
        subcategory: str,
        scope: int,
        region: Optional[str] = None,
    ) -> EmissionFactor:
        """
        Resolve the best emission factor for a lookup key.

        Args:
            category: Factor category (fuel, electricity, transport ...)
            subcategory: Factor subcategory (natural_gas_commercial ...)
            scope: GHG scope (1, 2 or 3)
            region: Region code; None or GLOBAL accepts only GLOBAL records

        Returns:
            Resolved EmissionFactor

        Raises:
            EmissionFactorNotFound: If no record matches
            FactorStoreUnavailable: If the store is unavailable and the
                fallback table is disabled
            DataAccessError: Store failures other than unavailability
        """
        region = (region or GLOBAL_REGION).strip().upper()

        if self.cache is not None:
            cached = self.cache.get(category, subcategory, scope, region)
            if cached is not None:
                record_factor_resolution("cache")
                return cached

        factor, path = await self._resolve_uncached(category, subcategory, scope, region)
        if factor is None:
            logger.warning(
                "No emission factor for %s/%s scope %d region %s (path=%s)",
                category, subcategory, scope, region, path,
            )
            raise EmissionFactorNotFound(category, subcategory, scope, region)

        record_factor_resolution(path)
        logger.debug(
            "Resolved %s/%s scope %d region %s via %s: %s kgCO2e/%s (%s)",
            category, subcategory, scope, region, path,
            factor.emission_factor, factor.unit, factor.source,
        )

        if self.cache is not None:
            self.cache.put(category, subcategory, scope, region, factor)
        if self.provenance is not None:
            self.provenance.record(
                "emission_factor",
                "resolve",
                f"{category}/{subcategory}/{scope}/{region}",
                data=factor.model_dump(mode="json"),
                metadata={"path": path},
            )
        return factor

    async def _resolve_uncached(
        self,
        category: str,
        subcategory: str,
        scope: int,
        region: str,
    ) -> Tuple[Optional[EmissionFactor], str]:
        if self.store is not None:
            regions = [region] if region == GLOBAL_REGION else [region, GLOBAL_REGION]
            try:
                records = await self.store.query_factors(category, subcategory, scope, regions)
            except FactorStoreUnavailable as e:
                if not self.enable_fallback:
                    raise
                logger.warning(
                    "Factor store unavailable (%s), using built-in fallback factors", e,
                )
            else:
                return self.select_best(records, region), "store"

        if not self.enable_fallback:
            return None, "none"
        return self.resolve_fallback(category, subcategory, scope, region), "fallback"

    def resolve_fallback(
        self,
        category: str,
        subcategory: str,
        scope: int,
        region: str,
    ) -> Optional[EmissionFactor]:
        """Look up the built-in table: exact region, then GLOBAL."""
        region = region.upper()
        factor = self.fallback_factors.get((category, subcategory, scope, region))
        if factor is None and region != GLOBAL_REGION:
            factor = self.fallback_factors.get((category, subcategory, scope, GLOBAL_REGION))
        return factor

    @staticmethod
    def select_best(
        records: Sequence[EmissionFactor],
        region: str,
    ) -> Optional[EmissionFactor]:
        """Prefer the region-specific record over GLOBAL, then the latest year."""
        if not records:
            return None
        region = region.upper()
        return max(
            records,
            key=lambda f: (
                f.region.upper() == region and not f.is_global,
                f.year or 0,
            ),
        )

    async def list_factors(
        self,
        category: Optional[str] = None,
        scope: Optional[int] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> FactorListing:
        """
        List factors for browsing.

        Reads the store, or the fallback table when the store is unavailable
        or not configured. ``region="ALL"`` disables the region filter.
        """
        if self.store is not None:
            try:
                factors = await self.store.list_factors(category, scope, region, search, limit)
                return FactorListing(factors=factors, source="store")
            except FactorStoreUnavailable as e:
                if not self.enable_fallback:
                    raise
                logger.warning("Factor store unavailable (%s), listing fallback factors", e)

        if not self.enable_fallback:
            return FactorListing(factors=[], source="none")
        factors = filter_factors(
            self.fallback_factors.values(), category, scope, region, search, limit,
        )
        return FactorListing(factors=factors, source="fallback")


__all__ = [
    "FALLBACK_FACTORS",
    "FactorListing",
    "group_factors",
    "EmissionFactorResolver",
]
