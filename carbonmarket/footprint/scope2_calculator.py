# -*- coding: utf-8 -*-
"""
Scope 2 Calculator - Indirect Emissions from Purchased Energy

Supports both GHG Protocol Scope 2 methods:
- Location-based: grid-average factor for the grid region
- Market-based: supplier-specific factor when one is supplied, otherwise
  the grid-average factor

Renewable energy certificates (MWh) are netted off the activity before the
factor is applied, floored at zero. Purchased electricity is reported as
CO2 only.

Reference: GHG Protocol Scope 2 Guidance
"""

import logging
from typing import Dict, Optional

from carbonmarket.exceptions import UnitConversionFailed, UnsupportedConversion
from carbonmarket.footprint.confidence import scope2_confidence
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.metrics import record_factor_resolution
from carbonmarket.footprint.models import EmissionResult, EnergyType, Scope2Entry, Scope2Method
from carbonmarket.footprint.unit_converter import UnitConverter

logger = logging.getLogger(__name__)

SUPPLIER_SOURCE = "Supplier-specific"
DEFAULT_GRID = "grid_us_national"

# Region code -> default grid subcategory
DEFAULT_GRIDS: Dict[str, str] = {
    "US": "grid_us_national",
    "GB": "grid_uk",
    "DE": "grid_germany",
    "CN": "grid_china",
    "IN": "grid_india",
    "FR": "grid_france",
    "NO": "grid_norway",
}

SCOPE2_GAS_SPLIT: Dict[str, float] = {"co2": 1.0}


def grid_for_region(region: Optional[str], grid_region: Optional[str] = None) -> str:
    """Explicit grid region if given, else the region's default grid."""
    if grid_region:
        return grid_region
    return DEFAULT_GRIDS.get((region or "").upper(), DEFAULT_GRID)


class Scope2Calculator:
    """
    Scope 2 Purchased Energy Calculator

    Args:
        resolver: Emission factor resolver
        converter: Unit converter (auto-creates if None)
    """

    scope = 2

    def __init__(
        self,
        resolver: EmissionFactorResolver,
        converter: Optional[UnitConverter] = None,
    ):
        self.resolver = resolver
        self.converter = converter or UnitConverter()

    async def calculate(self, entry: Scope2Entry, region: str) -> EmissionResult:
        """
        Calculate emissions for one Scope 2 activity entry.

        Args:
            entry: Validated Scope 2 entry
            region: Target region for grid selection and factor resolution

        Returns:
            EmissionResult in tonnes CO2e

        Raises:
            EmissionFactorNotFound: If no grid factor matches
            UnitConversionFailed: If the activity cannot be expressed in kWh
        """
        method = Scope2Method(entry.calculation_method)

        if method == Scope2Method.MARKET_BASED and entry.supplier_emission_factor is not None:
            emission_factor = entry.supplier_emission_factor
            source = SUPPLIER_SOURCE
            record_factor_resolution("supplier")
        else:
            grid = grid_for_region(region, entry.grid_region)
            factor = await self.resolver.resolve("electricity", grid, self.scope, region)
            emission_factor = factor.emission_factor
            source = factor.source

        try:
            kwh = self.converter.convert(entry.activity_data, entry.activity_unit, "kWh")
        except UnsupportedConversion as e:
            raise UnitConversionFailed(entry.activity_unit, "kWh", self.scope, cause=e) from e

        if entry.renewable_energy_certificates:
            rec_kwh = self.converter.convert(entry.renewable_energy_certificates, "MWh", "kWh")
            kwh = max(0.0, kwh - rec_kwh)

        total_kg = kwh * emission_factor
        result = EmissionResult.from_kilograms(
            total_kg,
            SCOPE2_GAS_SPLIT,
            emission_factor=emission_factor,
            source=source,
            confidence=scope2_confidence(method),
        )

        logger.debug(
            "Scope 2 %s (%s): %.3f kWh net -> %.6f tCO2e",
            EnergyType(entry.energy_type).value, method.value, kwh, result.total_emissions,
        )
        return result


__all__ = [
    "DEFAULT_GRID",
    "DEFAULT_GRIDS",
    "SUPPLIER_SOURCE",
    "grid_for_region",
    "Scope2Calculator",
]
