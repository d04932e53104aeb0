# -*- coding: utf-8 -*-
"""
Footprint Engine Data Models

Pydantic v2 data models for the carbon footprint calculation engine.
Inputs accept both snake_case field names and the camelCase names used by
the marketplace front end (``activityData``, ``fuelType`` ...); outputs
serialize with camelCase aliases via ``model_dump(by_alias=True)``.

Models:
    - Enums: SourceCategory, EnergyType, Scope2Method, Scope3Method,
        ProvenanceTier, InsightType, Priority
    - Activity entries: Scope1Entry, Scope2Entry, Scope3Entry
    - Reference data: EmissionFactor
    - Results: EmissionResult, AssessmentSummary, Insight, Recommendation,
        ScopeDetails, CalculationResult
    - Requests: AssessmentMetadata, CalculationRequest
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

GLOBAL_REGION = "GLOBAL"

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SourceCategory(str, Enum):
    """GHG Protocol Scope 1 source categories."""

    STATIONARY_COMBUSTION = "stationary_combustion"
    MOBILE_COMBUSTION = "mobile_combustion"
    PROCESS = "process"
    FUGITIVE = "fugitive"


class EnergyType(str, Enum):
    """Purchased energy types reported under Scope 2."""

    ELECTRICITY = "electricity"
    STEAM = "steam"
    HEATING = "heating"
    COOLING = "cooling"


class Scope2Method(str, Enum):
    """Scope 2 attribution method."""

    LOCATION_BASED = "location_based"
    MARKET_BASED = "market_based"


class Scope3Method(str, Enum):
    """Scope 3 calculation method."""

    SPEND_BASED = "spend_based"
    ACTIVITY_BASED = "activity_based"
    HYBRID = "hybrid"


class ProvenanceTier(str, Enum):
    """Trust tier of an emission factor source, resolved at ingestion."""

    GOVERNMENT_STANDARD = "government_standard"  # EPA, IPCC
    INDUSTRY_STANDARD = "industry_standard"  # DEFRA
    SUPPLIER_SPECIFIC = "supplier_specific"
    ESTIMATED = "estimated"


class InsightType(str, Enum):
    """Kinds of qualitative findings derived from a summary."""

    HIGH_EMISSIONS = "high_emissions"
    SCOPE_DISTRIBUTION = "scope_distribution"
    DATA_QUALITY = "data_quality"


class Priority(str, Enum):
    """Priority of an insight or recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Ordered source markers; first match wins.
_PROVENANCE_MARKERS = (
    ("SUPPLIER", ProvenanceTier.SUPPLIER_SPECIFIC),
    ("EPA", ProvenanceTier.GOVERNMENT_STANDARD),
    ("IPCC", ProvenanceTier.GOVERNMENT_STANDARD),
    ("DEFRA", ProvenanceTier.INDUSTRY_STANDARD),
)


def classify_provenance(source: str) -> ProvenanceTier:
    """Map a free-text source label (e.g. ``"EPA eGRID 2021"``) to a tier."""
    label = (source or "").upper()
    for marker, tier in _PROVENANCE_MARKERS:
        if marker in label:
            return tier
    return ProvenanceTier.ESTIMATED


# ---------------------------------------------------------------------------
# Activity entries
# ---------------------------------------------------------------------------


class _ActivityEntry(BaseModel):
    """Common fields of the three activity entry variants."""

    activity_data: float
    activity_unit: str = Field(..., min_length=1)
    notes: Optional[str] = None

    model_config = _CAMEL

    @field_validator("activity_data", mode="before")
    @classmethod
    def reject_boolean(cls, v: Any) -> Any:
        """Reject booleans, which pydantic would coerce to 0.0 / 1.0."""
        if isinstance(v, bool):
            raise ValueError("activity_data must be a number")
        return v

    @field_validator("activity_data")
    @classmethod
    def validate_activity_data(cls, v: float) -> float:
        """Activity data must be finite and non-negative."""
        if not math.isfinite(v):
            raise ValueError("activity_data must be a finite number")
        if v < 0:
            raise ValueError("activity_data must be non-negative")
        return v


class Scope1Entry(_ActivityEntry):
    """Direct emission activity (fuel burned, process, fugitive release)."""

    source_category: SourceCategory = SourceCategory.STATIONARY_COMBUSTION
    fuel_type: str = Field(..., min_length=1)
    facility_name: Optional[str] = None
    location: Optional[str] = None


class Scope2Entry(_ActivityEntry):
    """Purchased energy activity (electricity, steam, heating, cooling)."""

    energy_type: EnergyType = EnergyType.ELECTRICITY
    calculation_method: Scope2Method = Scope2Method.LOCATION_BASED
    grid_region: Optional[str] = None
    supplier_emission_factor: Optional[float] = Field(default=None, ge=0)
    renewable_energy_certificates: Optional[float] = Field(default=None, ge=0)
    facility_name: Optional[str] = None
    utility_provider: Optional[str] = None


class Scope3Entry(_ActivityEntry):
    """Value-chain activity keyed by GHG Protocol category number (1-15).

    The category number is range-checked by the Scope 3 calculator, not
    here, so an unmapped category surfaces as ``InvalidScope3Category``.
    """

    category_number: int
    category_name: Optional[str] = None
    calculation_method: Scope3Method = Scope3Method.ACTIVITY_BASED
    data_quality: int = Field(default=3, ge=1, le=5)
    estimation_method: Optional[str] = None


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class EmissionFactor(BaseModel):
    """Immutable emission factor reference record (kg CO2e per unit)."""

    category: str
    subcategory: str
    scope: int = Field(..., ge=1, le=3)
    emission_factor: float = Field(..., ge=0)
    unit: str
    source: str = "Unknown"
    region: str = GLOBAL_REGION
    year: Optional[int] = None
    methodology: Optional[str] = None
    provenance_tier: ProvenanceTier = ProvenanceTier.ESTIMATED

    model_config = {"frozen": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def resolve_provenance_tier(cls, data: Any) -> Any:
        """Derive the provenance tier from the source label when absent."""
        if isinstance(data, dict) and not data.get("provenance_tier"):
            data = dict(data)
            data["provenance_tier"] = classify_provenance(data.get("source", ""))
        return data

    @field_validator("region", mode="before")
    @classmethod
    def validate_region(cls, v: Any) -> Any:
        """Reject YAML booleans (unquoted ``NO``) and stringify other scalars."""
        if isinstance(v, bool):
            raise ValueError(
                f"region must be a region code, got boolean {v}; quote codes such as 'NO'"
            )
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @property
    def key(self) -> tuple:
        """Composite lookup key ``(category, subcategory, scope, region)``."""
        return (self.category, self.subcategory, self.scope, self.region)

    @property
    def is_global(self) -> bool:
        return self.region.upper() == GLOBAL_REGION


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class EmissionResult(BaseModel):
    """Per-entry emission result; all masses in tonnes CO2e."""

    co2_emissions: float = 0.0
    ch4_emissions: float = 0.0
    n2o_emissions: float = 0.0
    other_ghg_emissions: float = 0.0
    total_emissions: float = 0.0
    emission_factor: float
    emission_factor_source: str
    confidence_level: float

    model_config = _CAMEL

    @classmethod
    def from_kilograms(
        cls,
        total_kg: float,
        gas_split: Dict[str, float],
        emission_factor: float,
        source: str,
        confidence: float,
    ) -> EmissionResult:
        """Build a result from a kg CO2e total and a gas share profile.

        Args:
            total_kg: Total emissions in kg CO2e.
            gas_split: Shares keyed by ``co2``, ``ch4``, ``n2o``, ``other``.
            emission_factor: Factor applied.
            source: Factor provenance label.
            confidence: Confidence score (0-100).
        """
        co2 = total_kg * gas_split.get("co2", 0.0) / 1000
        ch4 = total_kg * gas_split.get("ch4", 0.0) / 1000
        n2o = total_kg * gas_split.get("n2o", 0.0) / 1000
        other = total_kg * gas_split.get("other", 0.0) / 1000
        return cls(
            co2_emissions=co2,
            ch4_emissions=ch4,
            n2o_emissions=n2o,
            other_ghg_emissions=other,
            total_emissions=co2 + ch4 + n2o + other,
            emission_factor=emission_factor,
            emission_factor_source=source,
            confidence_level=confidence,
        )


class AssessmentSummary(BaseModel):
    """Scope subtotals, grand total and percentage breakdown (tonnes)."""

    scope1_total: float = 0.0
    scope2_total: float = 0.0
    scope3_total: float = 0.0
    total_emissions: float = 0.0
    average_confidence: float = 0.0
    emissions_by_scope: Dict[str, int] = Field(
        default_factory=lambda: {"scope1": 0, "scope2": 0, "scope3": 0},
    )
    entry_count: int = 0

    model_config = _CAMEL

    def scope_total(self, scope: int) -> float:
        return {1: self.scope1_total, 2: self.scope2_total, 3: self.scope3_total}[scope]


class Insight(BaseModel):
    """Qualitative finding derived from an assessment summary."""

    type: InsightType
    message: str
    priority: Priority

    model_config = {**_CAMEL, "use_enum_values": True}


class Recommendation(BaseModel):
    """Reduction recommendation for one scope."""

    scope: int = Field(..., ge=1, le=3)
    action: str
    description: str
    potential_reduction: str
    priority: Priority

    model_config = {**_CAMEL, "use_enum_values": True}


class ScopeDetails(BaseModel):
    """Per-entry results grouped by scope."""

    scope1_results: List[EmissionResult] = Field(default_factory=list)
    scope2_results: List[EmissionResult] = Field(default_factory=list)
    scope3_results: List[EmissionResult] = Field(default_factory=list)

    model_config = _CAMEL


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class AssessmentMetadata(BaseModel):
    """Descriptive metadata of an assessment."""

    organization_name: str
    assessment_year: int = Field(default_factory=lambda: date.today().year)
    reporting_period_start: Optional[date] = None
    reporting_period_end: Optional[date] = None
    assessment_boundary: str = "Operational Control"
    methodology: str = "GHG_PROTOCOL"

    model_config = _CAMEL

    @field_validator("organization_name")
    @classmethod
    def validate_organization_name(cls, v: str) -> str:
        """Organization name must be non-empty."""
        if not v or not v.strip():
            raise ValueError("organization_name must be non-empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_reporting_period(self) -> AssessmentMetadata:
        """Reporting period start must be before its end."""
        start, end = self.reporting_period_start, self.reporting_period_end
        if start is not None and end is not None and start >= end:
            raise ValueError("reporting period start must be before end date")
        return self


class CalculationRequest(BaseModel):
    """Input of a full assessment calculation."""

    assessment: AssessmentMetadata
    scope1_data: List[Scope1Entry] = Field(default_factory=list)
    scope2_data: List[Scope2Entry] = Field(default_factory=list)
    scope3_data: List[Scope3Entry] = Field(default_factory=list)
    region: Optional[str] = None

    model_config = _CAMEL

    @property
    def entry_count(self) -> int:
        return len(self.scope1_data) + len(self.scope2_data) + len(self.scope3_data)


class CalculationResult(BaseModel):
    """Output of a full assessment calculation."""

    assessment_id: Optional[str] = None
    summary: AssessmentSummary
    details: ScopeDetails = Field(default_factory=ScopeDetails)
    insights: List[Insight] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    provenance_hash: Optional[str] = None

    model_config = _CAMEL


__all__ = [
    "GLOBAL_REGION",
    "SourceCategory",
    "EnergyType",
    "Scope2Method",
    "Scope3Method",
    "ProvenanceTier",
    "InsightType",
    "Priority",
    "classify_provenance",
    "Scope1Entry",
    "Scope2Entry",
    "Scope3Entry",
    "EmissionFactor",
    "EmissionResult",
    "AssessmentSummary",
    "Insight",
    "Recommendation",
    "ScopeDetails",
    "AssessmentMetadata",
    "CalculationRequest",
    "CalculationResult",
]
