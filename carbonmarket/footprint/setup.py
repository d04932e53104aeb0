# -*- coding: utf-8 -*-
"""
Footprint Service Setup

Provides ``configure_footprint_service(app)`` which wires up the footprint
engine (factor store, factor cache, resolver, assessment repository,
provenance tracker) from a FootprintConfig and mounts the REST API.

Also exposes ``get_footprint_service(app)`` for programmatic access and the
``FootprintService`` facade class.

Store selection:
    - ``database_url`` set: SQLFactorStore + SQLAssessmentRepository
    - ``factor_registry_path`` set: YamlFactorStore (no persistence)
    - neither: built-in fallback factors only (no persistence)

Usage:
    >>> from fastapi import FastAPI
    >>> from carbonmarket.footprint.setup import configure_footprint_service
    >>> app = FastAPI()
    >>> import asyncio
    >>> service = asyncio.run(configure_footprint_service(app))
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from carbonmarket.footprint.config import FootprintConfig, get_config
from carbonmarket.footprint.db_models import create_db_engine, init_db
from carbonmarket.footprint.engine import FootprintEngine, RequestLike
from carbonmarket.footprint.factor_cache import FactorCache
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver, FactorListing
from carbonmarket.footprint.factor_store import FactorStore, SQLFactorStore, YamlFactorStore
from carbonmarket.footprint.metrics import PROMETHEUS_AVAILABLE
from carbonmarket.footprint.models import CalculationResult, EmissionResult
from carbonmarket.footprint.persistence import AssessmentRepository, SQLAssessmentRepository
from carbonmarket.footprint.provenance import ProvenanceTracker

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Optional FastAPI import
# ---------------------------------------------------------------------------

try:
    from fastapi import FastAPI
    FASTAPI_AVAILABLE = True
except ImportError:
    FastAPI = None  # type: ignore[assignment, misc]
    FASTAPI_AVAILABLE = False

_singleton_lock = threading.Lock()
_singleton_instance: Optional[FootprintService] = None


def bundled_registry_path() -> Path:
    """Path of the emission factor registry shipped with the package."""
    return Path(__file__).resolve().parent.parent / "data" / "emission_factors.yaml"


# ===================================================================
# Service facade
# ===================================================================


class FootprintService:
    """Unified facade over the footprint calculation engine.

    Attributes:
        config: FootprintConfig instance.
        provenance: ProvenanceTracker shared by resolver and engine.
        store: Configured factor store, or None (fallback factors only).
        repository: Assessment repository, or None (no persistence).
        engine: FootprintEngine instance.

    Example:
        >>> service = FootprintService(FootprintConfig(database_url="sqlite://"))
        >>> service.startup()
        >>> result = await service.calculate_footprint(request, owner_id="user-1")
        >>> print(result.assessment_id, result.summary.total_emissions)
    """

    def __init__(
        self,
        config: Optional[FootprintConfig] = None,
        store: Optional[FactorStore] = None,
        repository: Optional[AssessmentRepository] = None,
        create_tables: bool = False,
    ) -> None:
        """Initialize the footprint service facade.

        Args:
            config: Optional configuration. Uses global config if None.
            store: Factor store override; built from config if None.
            repository: Repository override; built from config if None.
            create_tables: Create the SQL tables on startup.
        """
        self.config = config or get_config()
        self.create_tables = create_tables
        self.provenance = ProvenanceTracker()
        self.db_engine: Any = None

        if self.config.database_url and (store is None or repository is None):
            self.db_engine = create_db_engine(self.config.database_url)

        self.store = store if store is not None else self._build_store()
        self.repository = repository if repository is not None else self._build_repository()

        self.cache: Optional[FactorCache] = None
        if self.config.enable_factor_cache:
            self.cache = FactorCache(
                max_size=self.config.factor_cache_size,
                ttl_seconds=self.config.factor_cache_ttl_seconds,
            )

        self.resolver = EmissionFactorResolver(
            store=self.store,
            enable_fallback=self.config.enable_fallback_factors,
            cache=self.cache,
            provenance=self.provenance if self.config.enable_provenance else None,
        )
        self.engine = FootprintEngine(
            self.resolver,
            repository=self.repository,
            config=self.config,
            provenance=self.provenance,
        )
        self._started = False

        logger.info(
            "FootprintService facade created (store=%s, repository=%s)",
            type(self.store).__name__ if self.store else "fallback-only",
            type(self.repository).__name__ if self.repository else "none",
        )

    def _build_store(self) -> Optional[FactorStore]:
        if self.db_engine is not None:
            return SQLFactorStore(self.db_engine)
        if self.config.factor_registry_path:
            return YamlFactorStore(self.config.factor_registry_path)
        return None

    def _build_repository(self) -> Optional[AssessmentRepository]:
        if self.db_engine is not None:
            return SQLAssessmentRepository(self.db_engine)
        return None

    # ------------------------------------------------------------------
    # Calculations
    # ------------------------------------------------------------------

    async def calculate_footprint(
        self,
        request: RequestLike,
        owner_id: Optional[str] = None,
    ) -> CalculationResult:
        """Calculate a full assessment. See FootprintEngine.calculate_footprint."""
        return await self.engine.calculate_footprint(request, owner_id=owner_id)

    async def calculate_simple(
        self,
        fuel_type: str,
        consumption: Any,
        unit: str,
        source_category: Optional[str] = None,
        region: Optional[str] = None,
    ) -> EmissionResult:
        """Calculate a single Scope 1 entry. See FootprintEngine.calculate_simple."""
        return await self.engine.calculate_simple(
            fuel_type, consumption, unit,
            source_category=source_category or "stationary_combustion",
            region=region,
        )

    # ------------------------------------------------------------------
    # Emission factors
    # ------------------------------------------------------------------

    async def list_factors(
        self,
        category: Optional[str] = None,
        scope: Optional[int] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = 100,
    ) -> FactorListing:
        return await self.resolver.list_factors(category, scope, region, search, limit)

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    async def get_assessment(
        self,
        assessment_id: str,
        include_details: bool = False,
    ) -> Optional[Dict[str, Any]]:
        return await self._require_repository().get_assessment(assessment_id, include_details)

    async def list_assessments(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._require_repository().list_assessments(owner_id)

    async def update_verification_status(self, assessment_id: str, status: str) -> Dict[str, Any]:
        return await self._require_repository().update_verification_status(assessment_id, status)

    def _require_repository(self) -> AssessmentRepository:
        if self.repository is None:
            raise RuntimeError(
                "No assessment repository configured. "
                "Set CM_FOOTPRINT_DATABASE_URL to enable persistence."
            )
        return self.repository

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_provenance(self) -> ProvenanceTracker:
        return self.provenance

    def get_metrics(self) -> Dict[str, Any]:
        """Self-monitoring snapshot of the service."""
        return {
            "prometheus_available": PROMETHEUS_AVAILABLE,
            "started": self._started,
            "store": type(self.store).__name__ if self.store else None,
            "persistence_enabled": self.repository is not None,
            "provenance_entries": self.provenance.entry_count,
            "factor_cache": self.cache.get_stats() if self.cache else None,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the footprint service.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("FootprintService already started; skipping")
            return

        logger.info("FootprintService starting up...")
        if self.create_tables and self.db_engine is not None:
            init_db(self.db_engine)
            logger.info("Footprint tables created")
        self._started = True
        logger.info("FootprintService startup complete")

    def shutdown(self) -> None:
        """Shutdown the footprint service and release resources."""
        if not self._started:
            return

        if self.cache is not None:
            self.cache.clear()
        if self.db_engine is not None:
            self.db_engine.dispose()
        self._started = False
        logger.info("FootprintService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_service() -> FootprintService:
    """Get or create the singleton FootprintService instance."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = FootprintService()
    return _singleton_instance


def reset_service() -> None:
    """Discard the singleton instance. Intended for test teardown."""
    global _singleton_instance
    with _singleton_lock:
        if _singleton_instance is not None:
            _singleton_instance.shutdown()
        _singleton_instance = None


# ===================================================================
# FastAPI integration
# ===================================================================


async def configure_footprint_service(
    app: Any,
    config: Optional[FootprintConfig] = None,
    service: Optional[FootprintService] = None,
) -> FootprintService:
    """Configure the footprint service on a FastAPI application.

    Creates the FootprintService (unless one is given), stores it in
    app.state, mounts the carbon calculator router and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional footprint config.
        service: Optional pre-built service.

    Returns:
        FootprintService instance.
    """
    global _singleton_instance

    service = service or FootprintService(config=config)

    with _singleton_lock:
        _singleton_instance = service

    app.state.footprint_service = service

    router = get_router(service)
    if router is not None:
        app.include_router(router)
        logger.info("Carbon calculator API router mounted")
    else:
        logger.warning("FastAPI not available; carbon calculator API not mounted")

    service.startup()

    logger.info("Footprint service configured on app")
    return service


def get_footprint_service(app: Any) -> FootprintService:
    """Get the FootprintService instance from app state.

    Raises:
        RuntimeError: If the footprint service is not configured.
    """
    service = getattr(app.state, "footprint_service", None)
    if service is None:
        raise RuntimeError(
            "Footprint service not configured. "
            "Call configure_footprint_service(app) first."
        )
    return service


def get_router(service: Optional[FootprintService] = None) -> Any:
    """Get the carbon calculator API router.

    Args:
        service: Service the handlers delegate to (singleton if None).

    Returns:
        FastAPI APIRouter or None if FastAPI not available.
    """
    if not FASTAPI_AVAILABLE:
        return None
    from carbonmarket.footprint.api import create_router
    return create_router(service or get_service())


__all__ = [
    "FASTAPI_AVAILABLE",
    "FootprintService",
    "bundled_registry_path",
    "configure_footprint_service",
    "get_footprint_service",
    "get_router",
    "get_service",
    "reset_service",
]
