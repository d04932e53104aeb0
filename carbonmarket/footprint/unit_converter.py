# -*- coding: utf-8 -*-
"""
Unit Conversion Engine

All conversions are deterministic ratio operations: scalar multiplication
only, no offsets, no rounding. Unknown pairs fail loudly with
``UnsupportedConversion``.

Supports:
- Energy: kWh, MWh, GWh, MMBtu, MJ, GJ
- Volume: gallon (US), liter, m3
- Mass: kg, tonne, lb

Every supported (from, to) pair inside a family has an entry in the
pairwise table, in both directions.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from carbonmarket.exceptions import UnsupportedConversion

logger = logging.getLogger(__name__)


class UnitConverter:
    """
    Deterministic unit converter.

    GUARANTEES:
    - Same unit → value returned unchanged (any unit string)
    - Same input → same output
    - Unknown or cross-family pairs → UnsupportedConversion
    - Factors held as Decimal; result returned as float
    """

    # Energy (to kWh as base unit)
    ENERGY_TO_KWH: Dict[str, Decimal] = {
        'kwh': Decimal('1'),
        'mwh': Decimal('1000'),
        'gwh': Decimal('1000000'),
        'mmbtu': Decimal('293.071'),  # 1 MMBtu = 293.071 kWh
        'mj': Decimal('0.277778'),  # 1 MJ = 0.277778 kWh
        'gj': Decimal('277.778'),  # 1 GJ = 277.778 kWh
    }

    # Volume (to liters as base unit)
    VOLUME_TO_LITERS: Dict[str, Decimal] = {
        'liter': Decimal('1'),
        'gallon': Decimal('3.78541'),  # US gallon
        'm3': Decimal('1000'),
    }

    # Mass (to kg as base unit)
    MASS_TO_KG: Dict[str, Decimal] = {
        'kg': Decimal('1'),
        'tonne': Decimal('1000'),
        'lb': Decimal('0.453592'),
    }

    # Accepted spellings → canonical key
    ALIASES: Dict[str, str] = {
        'kilowatt_hour': 'kwh',
        'megawatt_hour': 'mwh',
        'gigawatt_hour': 'gwh',
        'liters': 'liter',
        'litre': 'liter',
        'litres': 'liter',
        'l': 'liter',
        'gallons': 'gallon',
        'gal': 'gallon',
        'cubic_meter': 'm3',
        'cubic_meters': 'm3',
        'kilogram': 'kg',
        'kilograms': 'kg',
        'tonnes': 'tonne',
        'metric_ton': 'tonne',
        't': 'tonne',
        'lbs': 'lb',
        'pound': 'lb',
        'pounds': 'lb',
    }

    # Display names of the canonical keys
    DISPLAY_NAMES: Dict[str, str] = {
        'kwh': 'kWh', 'mwh': 'MWh', 'gwh': 'GWh', 'mmbtu': 'MMBtu',
        'mj': 'MJ', 'gj': 'GJ', 'liter': 'liter', 'gallon': 'gallon',
        'm3': 'm3', 'kg': 'kg', 'tonne': 'tonne', 'lb': 'lb',
    }

    # Target units of the lenient display helper
    STANDARD_UNITS: Dict[str, str] = {
        'energy': 'mmbtu',
        'volume': 'gallon',
        'mass': 'tonne',
    }

    def __init__(self):
        """Build the pairwise conversion table from the family tables."""
        self.families: Dict[str, Dict[str, Decimal]] = {
            'energy': self.ENERGY_TO_KWH,
            'volume': self.VOLUME_TO_LITERS,
            'mass': self.MASS_TO_KG,
        }
        self.conversions: Dict[Tuple[str, str], Decimal] = {}
        for table in self.families.values():
            for src, src_base in table.items():
                for dst, dst_base in table.items():
                    if src != dst:
                        self.conversions[(src, dst)] = src_base / dst_base

    @classmethod
    def normalize_unit(cls, unit: str) -> str:
        """Lowercase, trim, and resolve aliases (``'Liters'`` → ``'liter'``)."""
        key = unit.strip().lower().replace(' ', '_').replace('-', '_')
        return cls.ALIASES.get(key, key)

    def convert(
        self,
        value: Union[float, int, Decimal],
        from_unit: str,
        to_unit: str,
    ) -> float:
        """
        Convert value from one unit to another.

        Args:
            value: Numerical value to convert
            from_unit: Source unit (e.g., 'kWh', 'gallon')
            to_unit: Target unit (e.g., 'MMBtu', 'liter')

        Returns:
            Converted value as float

        Raises:
            UnsupportedConversion: If no entry exists for the pair
        """
        if from_unit == to_unit:
            return value if isinstance(value, float) else float(value)

        src = self.normalize_unit(from_unit)
        dst = self.normalize_unit(to_unit)
        if src == dst:
            return float(value)

        factor = self.conversions.get((src, dst))
        if factor is None:
            raise UnsupportedConversion(from_unit, to_unit)

        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return float(value * factor)

    def convert_to_standard_unit(
        self,
        value: float,
        unit: str,
        unit_type: str,
    ) -> float:
        """
        Convert a display value to its family's standard unit.

        Energy → MMBtu, volume → gallon, mass → tonne. Unlike ``convert``,
        unknown units and families return ``value`` unchanged.

        Args:
            value: Numerical value
            unit: Unit of ``value``
            unit_type: Family name ('energy', 'volume', 'mass')

        Returns:
            Value in the standard unit, or the original value
        """
        target = self.STANDARD_UNITS.get(unit_type.strip().lower())
        if target is None:
            logger.debug("Unknown unit family %r, returning value unchanged", unit_type)
            return value
        try:
            return self.convert(value, unit, target)
        except UnsupportedConversion:
            logger.debug("Unknown unit %r for %s, returning value unchanged", unit, unit_type)
            return value

    def get_unit_family(self, unit: str) -> Optional[str]:
        """Return the family of a unit ('energy', 'volume', 'mass') or None."""
        key = self.normalize_unit(unit)
        for family, table in self.families.items():
            if key in table:
                return family
        return None

    def is_supported(self, from_unit: str, to_unit: str) -> bool:
        """True when ``convert(x, from_unit, to_unit)`` would succeed."""
        if from_unit == to_unit:
            return True
        src = self.normalize_unit(from_unit)
        dst = self.normalize_unit(to_unit)
        return src == dst or (src, dst) in self.conversions

    def list_supported_units(self, family: Optional[str] = None) -> Dict[str, List[str]]:
        """
        List supported units by family.

        Args:
            family: Optional family filter ('energy', 'volume', 'mass')

        Returns:
            Dictionary mapping families to display unit names
        """
        if family:
            if family not in self.families:
                raise ValueError(f"Unknown unit family: {family}")
            selected = {family: self.families[family]}
        else:
            selected = self.families

        return {
            name: [self.DISPLAY_NAMES.get(unit, unit) for unit in table]
            for name, table in selected.items()
        }


__all__ = ["UnitConverter"]
