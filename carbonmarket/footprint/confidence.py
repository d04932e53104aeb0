# -*- coding: utf-8 -*-
"""
Confidence and Data-Quality Scoring

Confidence scores are on a 0-100 scale:

- Scope 1: base 80, plus a provenance bonus (government standard +10,
  industry standard +8), plus 5 for metered activity units, capped at 95
- Scope 2: 90 market-based, 75 location-based
- Scope 3: base 70 activity-based, 50 spend-based or hybrid, adjusted by
  (data_quality - 3) x 10, clamped to [30, 90]

Scope 3 activity is also scaled by a data-quality multiplier; poor data is
inflated and good data discounted.
"""

from typing import Dict, Sequence

from carbonmarket.footprint.models import (
    EmissionFactor,
    EmissionResult,
    ProvenanceTier,
    Scope2Method,
    Scope3Method,
)

SCOPE1_BASE_CONFIDENCE = 80.0
SCOPE1_MAX_CONFIDENCE = 95.0
METERED_BONUS = 5.0

PROVENANCE_BONUS: Dict[ProvenanceTier, float] = {
    ProvenanceTier.GOVERNMENT_STANDARD: 10.0,
    ProvenanceTier.INDUSTRY_STANDARD: 8.0,
    ProvenanceTier.SUPPLIER_SPECIFIC: 0.0,
    ProvenanceTier.ESTIMATED: 0.0,
}

SCOPE2_CONFIDENCE: Dict[Scope2Method, float] = {
    Scope2Method.MARKET_BASED: 90.0,
    Scope2Method.LOCATION_BASED: 75.0,
}

SCOPE3_MIN_CONFIDENCE = 30.0
SCOPE3_MAX_CONFIDENCE = 90.0

# GHG Protocol uncertainty guidance, 1 = lowest quality
DATA_QUALITY_MULTIPLIERS: Dict[int, float] = {
    1: 1.5,
    2: 1.3,
    3: 1.0,
    4: 0.9,
    5: 0.8,
}

_METERED_MARKERS = ("meter", "exact")


def scope1_confidence(factor: EmissionFactor, activity_unit: str) -> float:
    """Confidence of a Scope 1 result from factor provenance and unit precision."""
    confidence = SCOPE1_BASE_CONFIDENCE + PROVENANCE_BONUS.get(factor.provenance_tier, 0.0)
    unit = activity_unit.lower()
    if any(marker in unit for marker in _METERED_MARKERS):
        confidence += METERED_BONUS
    return min(SCOPE1_MAX_CONFIDENCE, confidence)


def scope2_confidence(method: Scope2Method) -> float:
    return SCOPE2_CONFIDENCE[Scope2Method(method)]


def scope3_confidence(method: Scope3Method, data_quality: int) -> float:
    """Method base adjusted by data quality, clamped to [30, 90]."""
    base = 70.0 if Scope3Method(method) == Scope3Method.ACTIVITY_BASED else 50.0
    confidence = base + (data_quality - 3) * 10
    return max(SCOPE3_MIN_CONFIDENCE, min(SCOPE3_MAX_CONFIDENCE, confidence))


def data_quality_multiplier(data_quality: int) -> float:
    """Uncertainty multiplier for a 1-5 data-quality rating (1.0 if unknown)."""
    return DATA_QUALITY_MULTIPLIERS.get(data_quality, 1.0)


def overall_data_quality(results: Sequence[EmissionResult]) -> int:
    """Rounded mean confidence over all results; 0 for none."""
    if not results:
        return 0
    return round(sum(r.confidence_level for r in results) / len(results))


__all__ = [
    "DATA_QUALITY_MULTIPLIERS",
    "PROVENANCE_BONUS",
    "scope1_confidence",
    "scope2_confidence",
    "scope3_confidence",
    "data_quality_multiplier",
    "overall_data_quality",
]
