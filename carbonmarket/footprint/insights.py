# -*- coding: utf-8 -*-
"""
Insight & Recommendation Generator

Pure function of an AssessmentSummary. All matching rules apply:

- high_emissions (high): total at or above the large-footprint threshold
- scope_distribution (medium): the largest scope's share exceeds the
  dominance threshold; the message names the scope and its share
- data_quality: average confidence below the quality threshold gives a
  medium improvement note, otherwise a low positive note; only for
  assessments with at least one entry

Recommendations: one per scope with nonzero emissions, prioritised by the
scope's share rank (largest high, second medium, third low).
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from carbonmarket.footprint.aggregator import round_half_up
from carbonmarket.footprint.config import FootprintConfig
from carbonmarket.footprint.metrics import record_insight
from carbonmarket.footprint.models import (
    AssessmentSummary,
    Insight,
    InsightType,
    Priority,
    Recommendation,
)

logger = logging.getLogger(__name__)


class RecommendationTemplate(NamedTuple):
    action: str
    description: str
    potential_reduction: str


RECOMMENDATIONS: Dict[int, RecommendationTemplate] = {
    1: RecommendationTemplate(
        "Switch to Renewable Energy",
        "Replace fossil fuel heating with electric heat pumps powered by renewable energy.",
        "30-50%",
    ),
    2: RecommendationTemplate(
        "Energy Efficiency Upgrades",
        "Install LED lighting, smart HVAC controls, and energy-efficient equipment.",
        "15-25%",
    ),
    3: RecommendationTemplate(
        "Sustainable Travel Policy",
        "Implement video conferencing and train travel preferences over flights.",
        "20-40%",
    ),
}

SCOPE_ADVICE: Dict[int, str] = {
    1: "Consider energy efficiency improvements.",
    2: "Consider renewable energy options.",
    3: "Focus on supply chain improvements.",
}

_RANK_PRIORITY = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)


class InsightGenerator:
    """
    Derive insights and recommendations from an assessment summary.

    Args:
        high_emissions_threshold: Total tCO2e at or above which the
            footprint is reported as large
        scope_dominance_threshold: Share (percent) above which a scope is
            reported as dominant
        data_quality_threshold: Average confidence below which data
            collection improvements are suggested
    """

    def __init__(
        self,
        high_emissions_threshold: float = 10000.0,
        scope_dominance_threshold: float = 60.0,
        data_quality_threshold: float = 70.0,
    ):
        self.high_emissions_threshold = high_emissions_threshold
        self.scope_dominance_threshold = scope_dominance_threshold
        self.data_quality_threshold = data_quality_threshold

    @classmethod
    def from_config(cls, config: FootprintConfig) -> "InsightGenerator":
        return cls(
            high_emissions_threshold=config.high_emissions_threshold,
            scope_dominance_threshold=config.scope_dominance_threshold,
            data_quality_threshold=config.data_quality_threshold,
        )

    def generate(self, summary: AssessmentSummary) -> Tuple[List[Insight], List[Recommendation]]:
        """Insights and recommendations for ``summary``."""
        insights = self.generate_insights(summary)
        recommendations = self.generate_recommendations(summary)
        for insight in insights:
            record_insight(insight.type)
        logger.debug(
            "Generated %d insights and %d recommendations",
            len(insights), len(recommendations),
        )
        return insights, recommendations

    def generate_insights(self, summary: AssessmentSummary) -> List[Insight]:
        insights: List[Insight] = []
        total = summary.total_emissions

        if total >= self.high_emissions_threshold:
            insights.append(Insight(
                type=InsightType.HIGH_EMISSIONS,
                message=(
                    f"Total emissions of {total:,.2f} tCO2e exceed "
                    f"{self.high_emissions_threshold:,.0f} tCO2e. Consider setting "
                    "science-based reduction targets."
                ),
                priority=Priority.HIGH,
            ))

        dominant = self._dominant_scope(summary)
        if dominant is not None:
            scope, share = dominant
            insights.append(Insight(
                type=InsightType.SCOPE_DISTRIBUTION,
                message=(
                    f"Your emissions are primarily from Scope {scope} sources "
                    f"({int(round_half_up(share))}%). {SCOPE_ADVICE[scope]}"
                ),
                priority=Priority.MEDIUM,
            ))

        if summary.entry_count > 0 or total > 0 or summary.average_confidence > 0:
            confidence = int(round_half_up(summary.average_confidence))
            if summary.average_confidence < self.data_quality_threshold:
                insights.append(Insight(
                    type=InsightType.DATA_QUALITY,
                    message=(
                        f"Data confidence is {confidence}%. Consider improving data "
                        "collection with metered readings and supplier-specific "
                        "emission factors for more accurate results."
                    ),
                    priority=Priority.MEDIUM,
                ))
            else:
                insights.append(Insight(
                    type=InsightType.DATA_QUALITY,
                    message=(
                        f"Good data quality with {confidence}% confidence. Continue "
                        "maintaining accurate activity records."
                    ),
                    priority=Priority.LOW,
                ))

        return insights

    def generate_recommendations(self, summary: AssessmentSummary) -> List[Recommendation]:
        ranked = sorted(
            (scope for scope in (1, 2, 3) if summary.scope_total(scope) > 0),
            key=lambda scope: (-summary.scope_total(scope), scope),
        )
        recommendations = []
        for rank, scope in enumerate(ranked):
            template = RECOMMENDATIONS[scope]
            recommendations.append(Recommendation(
                scope=scope,
                action=template.action,
                description=template.description,
                potential_reduction=template.potential_reduction,
                priority=_RANK_PRIORITY[rank],
            ))
        return recommendations

    def _dominant_scope(self, summary: AssessmentSummary) -> Optional[Tuple[int, float]]:
        total = summary.total_emissions
        if total <= 0:
            return None
        scope = max((1, 2, 3), key=lambda s: (summary.scope_total(s), -s))
        share = summary.scope_total(scope) / total * 100
        if share > self.scope_dominance_threshold:
            return scope, share
        return None


def generate_insights(
    summary: AssessmentSummary,
    config: Optional[FootprintConfig] = None,
) -> Tuple[List[Insight], List[Recommendation]]:
    """Module-level convenience wrapper around InsightGenerator."""
    generator = InsightGenerator.from_config(config) if config else InsightGenerator()
    return generator.generate(summary)


__all__ = [
    "RECOMMENDATIONS",
    "RecommendationTemplate",
    "InsightGenerator",
    "generate_insights",
]
