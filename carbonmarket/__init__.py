# -*- coding: utf-8 -*-
"""
carbonmarket: Carbon Footprint Calculation Engine
==================================================

Turns organisational activity data (fuel burned, electricity consumed,
business travel, purchased goods) into GHG Protocol Scope 1/2/3 emission
totals for a carbon-credit marketplace.

Subpackages:
    - footprint: calculation engine, factor resolution, persistence, API
    - cli: ``carbonmarket`` command-line interface
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
