# -*- coding: utf-8 -*-
"""
Unit Tests for EmissionFactorResolver

Resolution order: cache, store (region then GLOBAL), fallback table only
when the store is unavailable or absent.
"""

from typing import List, Optional, Sequence

import pytest

from carbonmarket.exceptions import (
    DataAccessError,
    EmissionFactorNotFound,
    FactorStoreUnavailable,
)
from carbonmarket.footprint.factor_cache import FactorCache
from carbonmarket.footprint.factor_resolver import (
    FALLBACK_FACTORS,
    EmissionFactorResolver,
    group_factors,
)
from carbonmarket.footprint.factor_store import FactorStore, InMemoryFactorStore
from carbonmarket.footprint.models import EmissionFactor
from carbonmarket.footprint.provenance import ProvenanceTracker


class RecordingStore(InMemoryFactorStore):
    """In-memory store that records the regions it was asked for."""

    def __init__(self, factors=()):
        super().__init__(factors)
        self.calls: List[Sequence[str]] = []

    async def query_factors(self, category, subcategory, scope, regions):
        self.calls.append(list(regions))
        return await super().query_factors(category, subcategory, scope, regions)


class FailingStore(FactorStore):
    """Store that raises a fixed exception on every call."""

    def __init__(self, exc: Exception):
        self.exc = exc

    async def query_factors(self, category, subcategory, scope, regions):
        raise self.exc

    async def list_factors(self, category=None, scope=None, region=None, search=None, limit=100):
        raise self.exc


def _factor(value: float, region: str, year: Optional[int] = 2023, source: str = "EPA") -> dict:
    return {
        "category": "fuel",
        "subcategory": "natural_gas",
        "scope": 1,
        "emission_factor": value,
        "unit": "MMBtu",
        "source": source,
        "region": region,
        "year": year,
    }


# ==============================================================================
# Store path
# ==============================================================================


class TestStoreResolution:
    """Resolution against a configured store"""

    @pytest.mark.asyncio
    async def test_resolves_from_store(self, resolver):
        factor = await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")
        assert factor.emission_factor == 53.06
        assert factor.source == "EPA 2023"

    @pytest.mark.asyncio
    async def test_region_specific_beats_global(self):
        store = InMemoryFactorStore([_factor(56.1, "GLOBAL", 2024), _factor(53.0, "US", 2020)])
        resolver = EmissionFactorResolver(store=store)
        factor = await resolver.resolve("fuel", "natural_gas", 1, "US")
        assert factor.region == "US"

    @pytest.mark.asyncio
    async def test_latest_year_breaks_ties(self):
        store = InMemoryFactorStore([_factor(53.0, "US", 2019), _factor(52.5, "US", 2023)])
        resolver = EmissionFactorResolver(store=store)
        factor = await resolver.resolve("fuel", "natural_gas", 1, "US")
        assert factor.year == 2023

    @pytest.mark.asyncio
    async def test_global_record_accepted_for_other_region(self):
        store = InMemoryFactorStore([_factor(56.1, "GLOBAL")])
        resolver = EmissionFactorResolver(store=store)
        factor = await resolver.resolve("fuel", "natural_gas", 1, "DE")
        assert factor.is_global

    @pytest.mark.asyncio
    async def test_region_defaults_to_global(self):
        store = RecordingStore([_factor(56.1, "GLOBAL")])
        resolver = EmissionFactorResolver(store=store)
        await resolver.resolve("fuel", "natural_gas", 1)
        assert store.calls == [["GLOBAL"]]

    @pytest.mark.asyncio
    async def test_store_queried_with_region_and_global(self):
        store = RecordingStore([_factor(53.0, "US")])
        resolver = EmissionFactorResolver(store=store)
        await resolver.resolve("fuel", "natural_gas", 1, " us ")
        assert store.calls == [["US", "GLOBAL"]]

    @pytest.mark.asyncio
    async def test_store_no_match_does_not_use_fallback(self):
        # natural_gas_commercial/US exists in the fallback table
        resolver = EmissionFactorResolver(store=InMemoryFactorStore())
        with pytest.raises(EmissionFactorNotFound):
            await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")

    @pytest.mark.asyncio
    async def test_data_access_error_propagates(self):
        resolver = EmissionFactorResolver(store=FailingStore(DataAccessError("permission denied")))
        with pytest.raises(DataAccessError):
            await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")


# ==============================================================================
# Fallback path
# ==============================================================================


class TestFallbackResolution:
    """Built-in fallback table"""

    @pytest.mark.asyncio
    async def test_unavailable_store_uses_fallback(self):
        resolver = EmissionFactorResolver(store=FailingStore(FactorStoreUnavailable("no table")))
        factor = await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")
        assert factor.emission_factor == 53.02

    @pytest.mark.asyncio
    async def test_no_store_uses_fallback(self):
        resolver = EmissionFactorResolver()
        factor = await resolver.resolve("electricity", "grid_uk", 2, "GB")
        assert factor.emission_factor == 0.2556

    @pytest.mark.asyncio
    async def test_fallback_global_for_any_region(self):
        resolver = EmissionFactorResolver()
        factor = await resolver.resolve("transport", "air_domestic_short", 3, "FR")
        assert factor.emission_factor == 0.24

    @pytest.mark.asyncio
    async def test_fallback_miss_raises(self):
        resolver = EmissionFactorResolver()
        with pytest.raises(EmissionFactorNotFound) as exc_info:
            await resolver.resolve("fuel", "unobtainium", 1, "US")
        assert exc_info.value.subcategory == "unobtainium"

    @pytest.mark.asyncio
    async def test_region_specific_fallback_not_used_for_other_region(self):
        resolver = EmissionFactorResolver()
        with pytest.raises(EmissionFactorNotFound):
            await resolver.resolve("fuel", "natural_gas_commercial", 1, "GB")

    @pytest.mark.asyncio
    async def test_disabled_fallback_reraises_unavailable(self):
        resolver = EmissionFactorResolver(
            store=FailingStore(FactorStoreUnavailable("no table")),
            enable_fallback=False,
        )
        with pytest.raises(FactorStoreUnavailable):
            await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")

    @pytest.mark.asyncio
    async def test_disabled_fallback_without_store(self):
        resolver = EmissionFactorResolver(enable_fallback=False)
        with pytest.raises(EmissionFactorNotFound):
            await resolver.resolve("fuel", "natural_gas_commercial", 1, "US")

    def test_fallback_table_contents(self):
        assert FALLBACK_FACTORS[("electricity", "grid_us_national", 2, "US")].emission_factor == 0.8554
        assert FALLBACK_FACTORS[("waste", "general_waste_landfill", 3, "GB")].emission_factor == 0.47
        for key, factor in FALLBACK_FACTORS.items():
            assert factor.key == key


# ==============================================================================
# Cache and provenance
# ==============================================================================


class TestCachingAndProvenance:
    """Cache hits and provenance records"""

    @pytest.mark.asyncio
    async def test_second_lookup_hits_cache(self):
        store = RecordingStore([_factor(53.0, "US")])
        cache = FactorCache(max_size=10)
        resolver = EmissionFactorResolver(store=store, cache=cache)

        first = await resolver.resolve("fuel", "natural_gas", 1, "US")
        second = await resolver.resolve("fuel", "natural_gas", 1, "us")

        assert first == second
        assert len(store.calls) == 1
        assert cache.get_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_warm_cache_does_not_change_lookup_result(self, cached_resolver):
        with pytest.raises(EmissionFactorNotFound):
            await cached_resolver.resolve("fuel", "Natural_Gas_Commercial", 1, "US")

        await cached_resolver.resolve("fuel", "natural_gas_commercial", 1, "US")

        with pytest.raises(EmissionFactorNotFound):
            await cached_resolver.resolve("fuel", "Natural_Gas_Commercial", 1, "US")

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self, cached_resolver):
        with pytest.raises(EmissionFactorNotFound):
            await cached_resolver.resolve("fuel", "coal", 1, "US")
        assert len(cached_resolver.cache) == 0

    @pytest.mark.asyncio
    async def test_resolution_recorded_in_provenance(self, factor_store):
        tracker = ProvenanceTracker()
        resolver = EmissionFactorResolver(store=factor_store, provenance=tracker)
        await resolver.resolve("electricity", "grid_us_national", 2, "US")

        entries = tracker.get_entries(entity_type="emission_factor")
        assert len(entries) == 1
        assert entries[0].entity_id == "electricity/grid_us_national/2/US"
        assert entries[0].metadata["path"] == "store"


# ==============================================================================
# Listing
# ==============================================================================


class TestListFactors:
    """Browse listing"""

    @pytest.mark.asyncio
    async def test_list_from_store(self, resolver):
        listing = await resolver.list_factors(scope=1)
        assert listing.source == "store"
        assert not listing.from_fallback
        assert [f.subcategory for f in listing.factors] == ["natural_gas_commercial"]

    @pytest.mark.asyncio
    async def test_list_from_fallback_when_unavailable(self):
        resolver = EmissionFactorResolver(store=FailingStore(FactorStoreUnavailable("no table")))
        listing = await resolver.list_factors(category="material", region="ALL")
        assert listing.from_fallback
        assert {f.subcategory for f in listing.factors} == {"steel", "aluminum", "concrete"}

    @pytest.mark.asyncio
    async def test_list_disabled_fallback_without_store(self):
        listing = await EmissionFactorResolver(enable_fallback=False).list_factors()
        assert listing.source == "none"
        assert listing.factors == []

    def test_group_factors(self):
        factors = [EmissionFactor.model_validate(_factor(1.0, "US")), FALLBACK_FACTORS[
            ("electricity", "grid_uk", 2, "GB")
        ]]
        grouped = group_factors(factors)
        assert set(grouped) == {1, 2}
        assert list(grouped[2]) == ["electricity"]
