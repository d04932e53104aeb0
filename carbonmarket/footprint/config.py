# -*- coding: utf-8 -*-
"""
Footprint Engine Configuration

Centralized configuration for the carbon footprint calculation engine
covering:
- Factor store connection (database URL, YAML registry path)
- Emission factor resolution (default region, fallback table, cache)
- Concurrency limit for entry-level calculations
- Insight thresholds (large footprint, scope dominance, data quality)
- Simple-mode input guard
- Provenance tracking toggle
- Logging level

All settings can be overridden via environment variables with the
``CM_FOOTPRINT_`` prefix (e.g. ``CM_FOOTPRINT_DEFAULT_REGION``).

Example:
    >>> from carbonmarket.footprint.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.default_region, cfg.high_emissions_threshold)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

_ENV_PREFIX = "CM_FOOTPRINT_"


# ---------------------------------------------------------------------------
# FootprintConfig
# ---------------------------------------------------------------------------


@dataclass
class FootprintConfig:
    """Complete configuration for the footprint calculation engine.

    Attributes:
        database_url: SQLAlchemy URL of the factor / assessment database.
            Empty means no SQL store is configured.
        factor_registry_path: Path to a YAML emission factor registry.
            Empty means no YAML store is configured.
        default_region: Region used when a request does not name one.
        enable_fallback_factors: Whether the built-in factor table is used
            when the factor store is unavailable.
        enable_factor_cache: Whether resolved factors are memoized.
        factor_cache_size: Maximum number of cached factors (LRU).
        factor_cache_ttl_seconds: Lifetime of a cached factor.
        max_concurrent_calculations: Upper bound on entry-level
            calculations in flight for one assessment.
        high_emissions_threshold: Total tCO2e at or above which a
            ``high_emissions`` insight is produced.
        scope_dominance_threshold: Share (percent) above which a single
            scope is reported as dominant.
        data_quality_threshold: Average confidence below which a data
            collection improvement note is produced.
        max_simple_consumption: Largest consumption accepted by the
            single-entry calculation mode.
        enable_provenance: Whether calculations are recorded in the
            provenance chain.
        log_level: Logging level for the engine.
    """

    # -- Factor store --------------------------------------------------------
    database_url: str = ""
    factor_registry_path: str = ""

    # -- Factor resolution ---------------------------------------------------
    default_region: str = "US"
    enable_fallback_factors: bool = True
    enable_factor_cache: bool = True
    factor_cache_size: int = 1000
    factor_cache_ttl_seconds: int = 3600

    # -- Concurrency ---------------------------------------------------------
    max_concurrent_calculations: int = 16

    # -- Insights ------------------------------------------------------------
    high_emissions_threshold: float = 10000.0
    scope_dominance_threshold: float = 60.0
    data_quality_threshold: float = 70.0

    # -- Simple mode ---------------------------------------------------------
    max_simple_consumption: float = 1_000_000.0

    # -- Provenance / logging ------------------------------------------------
    enable_provenance: bool = True
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> FootprintConfig:
        """Build a FootprintConfig from environment variables.

        Every field can be overridden via ``CM_FOOTPRINT_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Numeric values that fail to parse fall back to the default with a
        warning.

        Returns:
            Populated FootprintConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %f",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            database_url=_str("DATABASE_URL", cls.database_url),
            factor_registry_path=_str(
                "FACTOR_REGISTRY_PATH", cls.factor_registry_path,
            ),
            default_region=_str("DEFAULT_REGION", cls.default_region),
            enable_fallback_factors=_bool(
                "ENABLE_FALLBACK_FACTORS", cls.enable_fallback_factors,
            ),
            enable_factor_cache=_bool(
                "ENABLE_FACTOR_CACHE", cls.enable_factor_cache,
            ),
            factor_cache_size=_int(
                "FACTOR_CACHE_SIZE", cls.factor_cache_size,
            ),
            factor_cache_ttl_seconds=_int(
                "FACTOR_CACHE_TTL_SECONDS", cls.factor_cache_ttl_seconds,
            ),
            max_concurrent_calculations=_int(
                "MAX_CONCURRENT_CALCULATIONS",
                cls.max_concurrent_calculations,
            ),
            high_emissions_threshold=_float(
                "HIGH_EMISSIONS_THRESHOLD", cls.high_emissions_threshold,
            ),
            scope_dominance_threshold=_float(
                "SCOPE_DOMINANCE_THRESHOLD", cls.scope_dominance_threshold,
            ),
            data_quality_threshold=_float(
                "DATA_QUALITY_THRESHOLD", cls.data_quality_threshold,
            ),
            max_simple_consumption=_float(
                "MAX_SIMPLE_CONSUMPTION", cls.max_simple_consumption,
            ),
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", cls.enable_provenance,
            ),
            log_level=_str("LOG_LEVEL", cls.log_level),
        )

        logger.info(
            "FootprintConfig loaded: region=%s, fallback=%s, cache=%s(%d, %ds), "
            "concurrency=%d, high_emissions=%.1f, dominance=%.1f, "
            "data_quality=%.1f",
            config.default_region,
            config.enable_fallback_factors,
            config.enable_factor_cache,
            config.factor_cache_size,
            config.factor_cache_ttl_seconds,
            config.max_concurrent_calculations,
            config.high_emissions_threshold,
            config.scope_dominance_threshold,
            config.data_quality_threshold,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[FootprintConfig] = None
_config_lock = threading.Lock()


def get_config() -> FootprintConfig:
    """Return the singleton FootprintConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = FootprintConfig.from_env()
    return _config_instance


def set_config(config: FootprintConfig) -> None:
    """Replace the singleton FootprintConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("FootprintConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "FootprintConfig",
    "get_config",
    "set_config",
    "reset_config",
]
