# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import copy
from typing import Any, Dict, List

import pytest

from carbonmarket.footprint.config import FootprintConfig, reset_config
from carbonmarket.footprint.db_models import create_db_engine, init_db
from carbonmarket.footprint.engine import FootprintEngine
from carbonmarket.footprint.factor_cache import FactorCache
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.factor_store import InMemoryFactorStore
from carbonmarket.footprint.persistence import SQLAssessmentRepository
from carbonmarket.footprint.provenance import ProvenanceTracker
from carbonmarket.footprint.setup import reset_service


TEST_FACTORS: List[Dict[str, Any]] = [
    {
        "category": "fuel",
        "subcategory": "natural_gas_commercial",
        "scope": 1,
        "emission_factor": 53.06,
        "unit": "MMBtu",
        "source": "EPA 2023",
        "region": "US",
        "year": 2023,
    },
    {
        "category": "electricity",
        "subcategory": "grid_us_national",
        "scope": 2,
        "emission_factor": 0.386,
        "unit": "kWh",
        "source": "EPA eGRID 2021",
        "region": "US",
        "year": 2021,
    },
    {
        "category": "transport",
        "subcategory": "air_domestic_short",
        "scope": 3,
        "emission_factor": 0.115,
        "unit": "passenger_km",
        "source": "DEFRA 2023",
        "region": "GLOBAL",
        "year": 2023,
    },
]

SAMPLE_REQUEST: Dict[str, Any] = {
    "assessment": {
        "organizationName": "Acme Manufacturing",
        "assessmentYear": 2024,
        "reportingPeriodStart": "2024-01-01",
        "reportingPeriodEnd": "2024-12-31",
    },
    "scope1Data": [
        {
            "sourceCategory": "stationary_combustion",
            "fuelType": "natural_gas_commercial",
            "activityData": 1000,
            "activityUnit": "MMBtu",
        },
    ],
    "scope2Data": [
        {
            "energyType": "electricity",
            "calculationMethod": "location_based",
            "activityData": 50000,
            "activityUnit": "kWh",
        },
    ],
    "scope3Data": [
        {
            "categoryNumber": 6,
            "calculationMethod": "activity_based",
            "activityData": 100000,
            "activityUnit": "passenger_km",
            "dataQuality": 3,
        },
    ],
    "region": "US",
}


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Keep the config and service singletons out of other tests."""
    yield
    reset_service()
    reset_config()


@pytest.fixture
def config():
    """Default engine configuration."""
    return FootprintConfig()


@pytest.fixture
def factor_store():
    """In-memory store holding the reference test factors."""
    return InMemoryFactorStore(TEST_FACTORS)


@pytest.fixture
def provenance():
    return ProvenanceTracker()


@pytest.fixture
def resolver(factor_store):
    """Resolver over the test store, without cache."""
    return EmissionFactorResolver(store=factor_store)


@pytest.fixture
def cached_resolver(factor_store):
    return EmissionFactorResolver(store=factor_store, cache=FactorCache(max_size=10))


@pytest.fixture
def engine(resolver, config, provenance):
    """Footprint engine over the test store, no persistence."""
    return FootprintEngine(resolver, config=config, provenance=provenance)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all footprint tables."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(db_engine):
    return SQLAssessmentRepository(db_engine)


@pytest.fixture
def sample_request():
    """Full assessment request (camelCase payload), one entry per scope."""
    return copy.deepcopy(SAMPLE_REQUEST)
