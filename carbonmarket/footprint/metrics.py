# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Footprint Calculation Engine

Prometheus metrics for footprint engine monitoring with graceful fallback
when prometheus_client is not installed.

Metrics:
    1. cm_footprint_calculations_total (Counter, labels: scope, status)
    2. cm_footprint_factor_resolutions_total (Counter, labels: path)
    3. cm_footprint_calculation_duration_seconds (Histogram)
    4. cm_footprint_assessments_total (Counter, labels: status)
    5. cm_footprint_insights_total (Counter, labels: insight_type)
    6. cm_footprint_emissions_tco2e_total (Counter, labels: scope)
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Graceful prometheus_client import
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Histogram
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.info(
        "prometheus_client not installed; footprint engine metrics disabled"
    )


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

if PROMETHEUS_AVAILABLE:
    # 1. Entry-level calculations by scope and outcome
    footprint_calculations_total = Counter(
        "cm_footprint_calculations_total",
        "Total entry-level emission calculations",
        labelnames=["scope", "status"],
    )

    # 2. Factor resolutions by path (cache, store, fallback, supplier)
    footprint_factor_resolutions_total = Counter(
        "cm_footprint_factor_resolutions_total",
        "Total emission factor resolutions",
        labelnames=["path"],
    )

    # 3. Assessment calculation duration
    footprint_calculation_duration_seconds = Histogram(
        "cm_footprint_calculation_duration_seconds",
        "Assessment calculation duration in seconds",
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    )

    # 4. Assessments by outcome
    footprint_assessments_total = Counter(
        "cm_footprint_assessments_total",
        "Total assessments calculated",
        labelnames=["status"],
    )

    # 5. Insights generated by type
    footprint_insights_total = Counter(
        "cm_footprint_insights_total",
        "Total insights generated",
        labelnames=["insight_type"],
    )

    # 6. Emissions calculated by scope
    footprint_emissions_tco2e_total = Counter(
        "cm_footprint_emissions_tco2e_total",
        "Total emissions calculated in tonnes CO2e",
        labelnames=["scope"],
    )

else:
    # No-op placeholders
    footprint_calculations_total = None  # type: ignore[assignment]
    footprint_factor_resolutions_total = None  # type: ignore[assignment]
    footprint_calculation_duration_seconds = None  # type: ignore[assignment]
    footprint_assessments_total = None  # type: ignore[assignment]
    footprint_insights_total = None  # type: ignore[assignment]
    footprint_emissions_tco2e_total = None  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Helper functions (safe to call even without prometheus_client)
# ---------------------------------------------------------------------------


def record_calculation(scope: int, status: str, emissions: float = 0.0) -> None:
    """Record an entry-level calculation.

    Args:
        scope: GHG scope (1, 2 or 3).
        status: Outcome (success, failure).
        emissions: Entry total in tonnes CO2e.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    footprint_calculations_total.labels(scope=str(scope), status=status).inc()
    if emissions > 0:
        footprint_emissions_tco2e_total.labels(scope=str(scope)).inc(emissions)


def record_factor_resolution(path: str) -> None:
    """Record a factor resolution.

    Args:
        path: Resolution path (cache, store, fallback, supplier).
    """
    if not PROMETHEUS_AVAILABLE:
        return
    footprint_factor_resolutions_total.labels(path=path).inc()


def observe_calculation_duration(seconds: float) -> None:
    """Record the duration of an assessment calculation.

    Args:
        seconds: Wall-clock duration in seconds.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    footprint_calculation_duration_seconds.observe(seconds)


def record_assessment(status: str) -> None:
    """Record an assessment outcome (success, failure, persisted, persist_failed)."""
    if not PROMETHEUS_AVAILABLE:
        return
    footprint_assessments_total.labels(status=status).inc()


def record_insight(insight_type: str) -> None:
    """Record a generated insight."""
    if not PROMETHEUS_AVAILABLE:
        return
    footprint_insights_total.labels(insight_type=insight_type).inc()


__all__ = [
    "PROMETHEUS_AVAILABLE",
    "record_calculation",
    "record_factor_resolution",
    "observe_calculation_duration",
    "record_assessment",
    "record_insight",
]
