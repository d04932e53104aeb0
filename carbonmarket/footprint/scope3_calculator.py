# -*- coding: utf-8 -*-
"""
Scope 3 Calculator - Value Chain Emissions

Each GHG Protocol Scope 3 category (1-15) maps to one representative
factor (category, subcategory, native unit). Spend-based entries resolve
against the ``spend_based`` factor category with the same subcategory.

Emissions are scaled by a data-quality multiplier: low-quality data is
inflated as an uncertainty penalty, high-quality data discounted.

Categories:
    1. Purchased goods & services      9. Downstream transportation
    2. Capital goods                  10. Processing of sold products
    3. Fuel & energy related          11. Use of sold products
    4. Upstream transportation        12. End-of-life treatment
    5. Waste generated in operations  13. Downstream leased assets
    6. Business travel                14. Franchises
    7. Employee commuting             15. Investments
    8. Upstream leased assets

Reference: GHG Protocol Corporate Value Chain (Scope 3) Standard
"""

import logging
from typing import Dict, NamedTuple, Optional

from carbonmarket.exceptions import (
    InvalidScope3Category,
    UnitConversionFailed,
    UnsupportedConversion,
)
from carbonmarket.footprint.confidence import data_quality_multiplier, scope3_confidence
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.models import EmissionResult, Scope3Entry, Scope3Method
from carbonmarket.footprint.unit_converter import UnitConverter

logger = logging.getLogger(__name__)

SPEND_BASED_CATEGORY = "spend_based"


class Scope3Mapping(NamedTuple):
    category: str
    subcategory: str
    unit: str


SCOPE3_CATEGORY_MAP: Dict[int, Scope3Mapping] = {
    1: Scope3Mapping("material", "steel", "kg"),
    2: Scope3Mapping("material", "steel", "kg"),
    3: Scope3Mapping("fuel_upstream", "natural_gas_upstream", "MMBtu"),
    4: Scope3Mapping("transport", "air_domestic_short", "passenger_km"),
    5: Scope3Mapping("waste", "general_waste_landfill", "kg"),
    6: Scope3Mapping("transport", "air_domestic_short", "passenger_km"),
    7: Scope3Mapping("transport", "car_commute_gasoline", "passenger_km"),
    8: Scope3Mapping("material", "steel", "kg"),
    9: Scope3Mapping("transport", "heavy_duty_truck_diesel", "km"),
    10: Scope3Mapping("waste", "general_waste_landfill", "kg"),
    11: Scope3Mapping("material", "steel", "kg"),
    12: Scope3Mapping("waste", "general_waste_landfill", "kg"),
    13: Scope3Mapping("material", "steel", "kg"),
    14: Scope3Mapping("transport", "air_domestic_short", "passenger_km"),
    15: Scope3Mapping("material", "steel", "kg"),
}

SCOPE3_GAS_SPLIT: Dict[str, float] = {"co2": 1.0}


def category_mapping(category_number: int) -> Scope3Mapping:
    """Factor mapping of a Scope 3 category number.

    Raises:
        InvalidScope3Category: If the number is outside 1-15
    """
    mapping = SCOPE3_CATEGORY_MAP.get(category_number)
    if mapping is None:
        raise InvalidScope3Category(category_number)
    return mapping


class Scope3Calculator:
    """
    Scope 3 Value Chain Emissions Calculator

    Args:
        resolver: Emission factor resolver
        converter: Unit converter (auto-creates if None)
    """

    scope = 3

    def __init__(
        self,
        resolver: EmissionFactorResolver,
        converter: Optional[UnitConverter] = None,
    ):
        self.resolver = resolver
        self.converter = converter or UnitConverter()

    async def calculate(self, entry: Scope3Entry, region: str) -> EmissionResult:
        """
        Calculate emissions for one Scope 3 activity entry.

        Args:
            entry: Validated Scope 3 entry
            region: Target region for factor resolution

        Returns:
            EmissionResult in tonnes CO2e

        Raises:
            InvalidScope3Category: If the category number has no mapping
            EmissionFactorNotFound: If no factor matches
            UnitConversionFailed: If the activity cannot be expressed in the
                category's native unit
        """
        mapping = category_mapping(entry.category_number)
        method = Scope3Method(entry.calculation_method)
        factor_category = (
            SPEND_BASED_CATEGORY if method == Scope3Method.SPEND_BASED else mapping.category
        )

        factor = await self.resolver.resolve(factor_category, mapping.subcategory, self.scope, region)

        try:
            activity = self.converter.convert(entry.activity_data, entry.activity_unit, mapping.unit)
        except UnsupportedConversion as e:
            raise UnitConversionFailed(entry.activity_unit, mapping.unit, self.scope, cause=e) from e

        total_kg = activity * factor.emission_factor * data_quality_multiplier(entry.data_quality)
        result = EmissionResult.from_kilograms(
            total_kg,
            SCOPE3_GAS_SPLIT,
            emission_factor=factor.emission_factor,
            source=factor.source,
            confidence=scope3_confidence(method, entry.data_quality),
        )

        logger.debug(
            "Scope 3 category %d (%s, quality %d): %s %s -> %.6f tCO2e",
            entry.category_number, method.value, entry.data_quality,
            entry.activity_data, entry.activity_unit, result.total_emissions,
        )
        return result


__all__ = [
    "SCOPE3_CATEGORY_MAP",
    "SPEND_BASED_CATEGORY",
    "Scope3Mapping",
    "category_mapping",
    "Scope3Calculator",
]
