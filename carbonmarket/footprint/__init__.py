# -*- coding: utf-8 -*-
"""
Carbon Footprint Calculation Engine
====================================

This package converts heterogeneous activity data into standardized GHG
emission totals across the three GHG Protocol scopes. It supports:

- Unit normalization across energy, volume and mass families
- Emission factor resolution from a factor store (in-memory, YAML, SQL)
  with a built-in fallback table and an LRU/TTL factor cache
- Scope 1 (direct), Scope 2 (location/market-based, RECs) and Scope 3
  (15 value-chain categories, data-quality weighting) calculators
- Confidence scoring, aggregation, insights and recommendations
- Assessment persistence over SQLAlchemy
- SHA-256 provenance chain tracking
- Prometheus metrics
- FastAPI REST API and a Typer CLI
- Configuration with the CM_FOOTPRINT_ env prefix

Key Components:
    - config: FootprintConfig with CM_FOOTPRINT_ env prefix
    - models: Pydantic v2 models for requests, factors and results
    - unit_converter: pairwise unit conversion table
    - factor_store / factor_resolver / factor_cache: factor lookup
    - scope1_calculator / scope2_calculator / scope3_calculator
    - confidence / aggregator / insights
    - persistence / db_models: assessment storage
    - engine: FootprintEngine public entrypoint
    - setup: FootprintService facade
    - api: FastAPI router

Example:
    >>> from carbonmarket.footprint import FootprintService
    >>> service = FootprintService()
    >>> result = await service.calculate_footprint(request)
    >>> print(result.summary.total_emissions)
"""

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from carbonmarket.footprint.config import (
    FootprintConfig,
    get_config,
    reset_config,
    set_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from carbonmarket.footprint.models import (
    AssessmentMetadata,
    AssessmentSummary,
    CalculationRequest,
    CalculationResult,
    EmissionFactor,
    EmissionResult,
    EnergyType,
    Insight,
    InsightType,
    Priority,
    ProvenanceTier,
    Recommendation,
    Scope1Entry,
    Scope2Entry,
    Scope2Method,
    Scope3Entry,
    Scope3Method,
    ScopeDetails,
    SourceCategory,
)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from carbonmarket.footprint.unit_converter import UnitConverter
from carbonmarket.footprint.factor_cache import FactorCache
from carbonmarket.footprint.factor_store import (
    FactorStore,
    InMemoryFactorStore,
    SQLFactorStore,
    YamlFactorStore,
)
from carbonmarket.footprint.factor_resolver import (
    FALLBACK_FACTORS,
    EmissionFactorResolver,
    group_factors,
)
from carbonmarket.footprint.scope1_calculator import Scope1Calculator
from carbonmarket.footprint.scope2_calculator import Scope2Calculator
from carbonmarket.footprint.scope3_calculator import Scope3Calculator
from carbonmarket.footprint.aggregator import summarize
from carbonmarket.footprint.insights import InsightGenerator, generate_insights
from carbonmarket.footprint.persistence import AssessmentRepository, SQLAssessmentRepository
from carbonmarket.footprint.provenance import ProvenanceTracker
from carbonmarket.footprint.engine import FootprintEngine

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from carbonmarket.footprint.setup import (
    FootprintService,
    configure_footprint_service,
    get_footprint_service,
    get_router,
)

__all__ = [
    # Configuration
    "FootprintConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Models
    "AssessmentMetadata",
    "AssessmentSummary",
    "CalculationRequest",
    "CalculationResult",
    "EmissionFactor",
    "EmissionResult",
    "EnergyType",
    "Insight",
    "InsightType",
    "Priority",
    "ProvenanceTier",
    "Recommendation",
    "Scope1Entry",
    "Scope2Entry",
    "Scope2Method",
    "Scope3Entry",
    "Scope3Method",
    "ScopeDetails",
    "SourceCategory",
    # Engines
    "UnitConverter",
    "FactorCache",
    "FactorStore",
    "InMemoryFactorStore",
    "SQLFactorStore",
    "YamlFactorStore",
    "FALLBACK_FACTORS",
    "EmissionFactorResolver",
    "group_factors",
    "Scope1Calculator",
    "Scope2Calculator",
    "Scope3Calculator",
    "summarize",
    "InsightGenerator",
    "generate_insights",
    "AssessmentRepository",
    "SQLAssessmentRepository",
    "ProvenanceTracker",
    "FootprintEngine",
    # Service
    "FootprintService",
    "configure_footprint_service",
    "get_footprint_service",
    "get_router",
]
