# -*- coding: utf-8 -*-
"""
Assessment Aggregator

Rolls entry-level results up into an AssessmentSummary:
- per-scope totals and grand total (tonnes CO2e)
- arithmetic mean confidence over all entries of all scopes
- whole-number percentage share per scope (all zero for a zero total)

``summarize`` keeps full precision. ``round_summary`` produces the
presentation copy: totals to 2 decimals, confidence to a whole number.
"""

import logging
import math
from typing import Dict, Sequence

from carbonmarket.footprint.models import AssessmentSummary, EmissionResult

logger = logging.getLogger(__name__)

TOTAL_PRECISION = 2


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero for non-negative values (2.5 -> 3)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def scope_percentages(scope_totals: Sequence[float]) -> Dict[str, int]:
    """Whole-number share of each scope; all zero when the total is zero."""
    total = sum(scope_totals)
    shares: Dict[str, int] = {}
    for number, scope_total in enumerate(scope_totals, start=1):
        if total > 0 and scope_total > 0:
            shares[f"scope{number}"] = int(round_half_up(scope_total / total * 100))
        else:
            shares[f"scope{number}"] = 0
    return shares


def summarize(
    scope1_results: Sequence[EmissionResult],
    scope2_results: Sequence[EmissionResult],
    scope3_results: Sequence[EmissionResult],
) -> AssessmentSummary:
    """
    Aggregate entry-level results.

    Only call with the results of entries that all succeeded.

    Args:
        scope1_results: Scope 1 entry results
        scope2_results: Scope 2 entry results
        scope3_results: Scope 3 entry results

    Returns:
        Full-precision AssessmentSummary
    """
    scope1_total = sum(r.total_emissions for r in scope1_results)
    scope2_total = sum(r.total_emissions for r in scope2_results)
    scope3_total = sum(r.total_emissions for r in scope3_results)
    total = scope1_total + scope2_total + scope3_total

    all_results = [*scope1_results, *scope2_results, *scope3_results]
    average_confidence = (
        sum(r.confidence_level for r in all_results) / len(all_results)
        if all_results else 0.0
    )

    summary = AssessmentSummary(
        scope1_total=scope1_total,
        scope2_total=scope2_total,
        scope3_total=scope3_total,
        total_emissions=total,
        average_confidence=average_confidence,
        emissions_by_scope=scope_percentages((scope1_total, scope2_total, scope3_total)),
        entry_count=len(all_results),
    )
    logger.debug(
        "Summarized %d entries: total=%.4f tCO2e, confidence=%.2f",
        summary.entry_count, total, average_confidence,
    )
    return summary


def round_summary(summary: AssessmentSummary, digits: int = TOTAL_PRECISION) -> AssessmentSummary:
    """Presentation copy of a summary."""
    return summary.model_copy(update={
        "scope1_total": round_half_up(summary.scope1_total, digits),
        "scope2_total": round_half_up(summary.scope2_total, digits),
        "scope3_total": round_half_up(summary.scope3_total, digits),
        "total_emissions": round_half_up(summary.total_emissions, digits),
        "average_confidence": round_half_up(summary.average_confidence),
    })


__all__ = ["round_half_up", "scope_percentages", "summarize", "round_summary"]
