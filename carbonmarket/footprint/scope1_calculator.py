# -*- coding: utf-8 -*-
"""
Scope 1 Calculator - Direct GHG Emissions

Handles emissions from sources owned or controlled by the organization:
1. Stationary Combustion (boilers, furnaces, generators)
2. Mobile Combustion (company vehicles, fleet)
3. Process Emissions
4. Fugitive Emissions

Mobile combustion resolves against the ``transport`` factor category,
everything else against ``fuel``. Total CO2e is split with a fixed
simplified combustion profile (98% CO2, 1% CH4, 1% N2O), not a measured
per-fuel profile.

Reference: GHG Protocol Corporate Standard
"""

import logging
from typing import Dict, Optional

from carbonmarket.exceptions import UnitConversionFailed, UnsupportedConversion
from carbonmarket.footprint.confidence import scope1_confidence
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.models import EmissionResult, Scope1Entry, SourceCategory
from carbonmarket.footprint.unit_converter import UnitConverter

logger = logging.getLogger(__name__)

SCOPE1_GAS_SPLIT: Dict[str, float] = {"co2": 0.98, "ch4": 0.01, "n2o": 0.01}


def factor_category_for(source_category: SourceCategory) -> str:
    """Factor lookup category for a Scope 1 source category."""
    if SourceCategory(source_category) == SourceCategory.MOBILE_COMBUSTION:
        return "transport"
    return "fuel"


class Scope1Calculator:
    """
    Scope 1 Direct Emissions Calculator

    Args:
        resolver: Emission factor resolver
        converter: Unit converter (auto-creates if None)
    """

    scope = 1

    def __init__(
        self,
        resolver: EmissionFactorResolver,
        converter: Optional[UnitConverter] = None,
    ):
        self.resolver = resolver
        self.converter = converter or UnitConverter()

    async def calculate(self, entry: Scope1Entry, region: str) -> EmissionResult:
        """
        Calculate emissions for one Scope 1 activity entry.

        Args:
            entry: Validated Scope 1 entry
            region: Target region for factor resolution

        Returns:
            EmissionResult in tonnes CO2e

        Raises:
            EmissionFactorNotFound: If no factor matches the fuel type
            UnitConversionFailed: If the activity unit cannot be converted
                to the factor's unit

        Example:
            >>> calc = Scope1Calculator(EmissionFactorResolver())
            >>> entry = Scope1Entry(fuel_type="diesel", activity_data=100,
            ...                     activity_unit="gallon")
            >>> result = await calc.calculate(entry, "US")
        """
        category = factor_category_for(entry.source_category)
        factor = await self.resolver.resolve(category, entry.fuel_type, self.scope, region)

        try:
            activity = self.converter.convert(entry.activity_data, entry.activity_unit, factor.unit)
        except UnsupportedConversion as e:
            raise UnitConversionFailed(entry.activity_unit, factor.unit, self.scope, cause=e) from e

        total_kg = activity * factor.emission_factor
        result = EmissionResult.from_kilograms(
            total_kg,
            SCOPE1_GAS_SPLIT,
            emission_factor=factor.emission_factor,
            source=factor.source,
            confidence=scope1_confidence(factor, entry.activity_unit),
        )

        logger.debug(
            "Scope 1 %s/%s: %s %s -> %.6f tCO2e",
            category, entry.fuel_type, entry.activity_data, entry.activity_unit,
            result.total_emissions,
        )
        return result


__all__ = ["SCOPE1_GAS_SPLIT", "factor_category_for", "Scope1Calculator"]
