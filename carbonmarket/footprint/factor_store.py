# -*- coding: utf-8 -*-
"""
Emission Factor Stores

The factor store is the external collaborator the resolver queries for
emission factor records. Three implementations share one async contract:

- InMemoryFactorStore: records held in a list (tests, embedding)
- YamlFactorStore: YAML registry file loaded on first use
- SQLFactorStore: SQLAlchemy ``emission_factors`` table

Contract:
- ``query_factors(category, subcategory, scope, regions)`` returns every
  record matching the key in any of ``regions``; an empty list means the
  store answered and has no match.
- ``FactorStoreUnavailable`` is raised when the store or its dataset is
  absent (missing registry file, missing table).
- Any other failure surfaces as ``DataAccessError``.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import yaml
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from carbonmarket.exceptions import DataAccessError, FactorStoreUnavailable
from carbonmarket.footprint.db_models import (
    EmissionFactorRow,
    is_missing_table_error,
    make_session_factory,
)
from carbonmarket.footprint.models import GLOBAL_REGION, EmissionFactor

logger = logging.getLogger(__name__)

ALL_REGIONS = "ALL"
DEFAULT_LIST_LIMIT = 100


def filter_factors(
    factors: Iterable[EmissionFactor],
    category: Optional[str] = None,
    scope: Optional[int] = None,
    region: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = DEFAULT_LIST_LIMIT,
) -> List[EmissionFactor]:
    """
    Apply the browse filters to a collection of factors.

    Args:
        factors: Candidate factors
        category: Exact category match
        scope: Exact scope match
        region: Keep ``region`` and GLOBAL records; None or "ALL" keeps all
        search: Case-insensitive substring of subcategory or source
        limit: Maximum number of records returned (None for no limit)

    Returns:
        Matching factors ordered by category then subcategory
    """
    selected = list(factors)
    if category:
        selected = [f for f in selected if f.category == category]
    if scope is not None:
        selected = [f for f in selected if f.scope == scope]
    if region and region.upper() != ALL_REGIONS:
        wanted = {region.upper(), GLOBAL_REGION}
        selected = [f for f in selected if f.region.upper() in wanted]
    if search:
        needle = search.lower()
        selected = [
            f for f in selected
            if needle in f.subcategory.lower() or needle in f.source.lower()
        ]
    selected.sort(key=lambda f: (f.category, f.subcategory))
    if limit is not None:
        selected = selected[:limit]
    return selected


class FactorStore(ABC):
    """Abstract emission factor store"""

    name = "factor_store"

    @abstractmethod
    async def query_factors(
        self,
        category: str,
        subcategory: str,
        scope: int,
        regions: Sequence[str],
    ) -> List[EmissionFactor]:
        """Return every record for the key in any of ``regions``."""

    @abstractmethod
    async def list_factors(
        self,
        category: Optional[str] = None,
        scope: Optional[int] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> List[EmissionFactor]:
        """Return factors matching the browse filters."""


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryFactorStore(FactorStore):
    """Factor store over an in-memory list of records"""

    name = "memory"

    def __init__(self, factors: Iterable[Union[EmissionFactor, Dict[str, Any]]] = ()):
        self._factors: List[EmissionFactor] = []
        for factor in factors:
            self.add_factor(factor)

    def add_factor(self, factor: Union[EmissionFactor, Dict[str, Any]]) -> EmissionFactor:
        """Add one record; dictionaries are validated into EmissionFactor."""
        if not isinstance(factor, EmissionFactor):
            factor = EmissionFactor.model_validate(factor)
        self._factors.append(factor)
        return factor

    def _records(self) -> List[EmissionFactor]:
        return self._factors

    async def query_factors(
        self,
        category: str,
        subcategory: str,
        scope: int,
        regions: Sequence[str],
    ) -> List[EmissionFactor]:
        wanted = {r.upper() for r in regions}
        return [
            f for f in self._records()
            if f.category == category
            and f.subcategory == subcategory
            and f.scope == scope
            and f.region.upper() in wanted
        ]

    async def list_factors(
        self,
        category: Optional[str] = None,
        scope: Optional[int] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> List[EmissionFactor]:
        return filter_factors(self._records(), category, scope, region, search, limit)

    def __len__(self) -> int:
        return len(self._factors)


# ---------------------------------------------------------------------------
# YAML registry store
# ---------------------------------------------------------------------------


class YamlFactorStore(InMemoryFactorStore):
    """
    Factor store backed by a YAML registry file.

    File layout::

        factors:
          - category: fuel
            subcategory: natural_gas_commercial
            scope: 1
            emission_factor: 53.06
            unit: MMBtu
            source: EPA 2023
            region: US
            year: 2023

    The file is read on first use. A missing file raises
    ``FactorStoreUnavailable``; unreadable or invalid content raises
    ``DataAccessError``.
    """

    name = "yaml"

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._loaded = False

    def _load(self) -> None:
        if not os.path.exists(self.path):
            raise FactorStoreUnavailable(
                f"Emission factor registry not found: {self.path}",
                data_source=self.path,
            )
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise DataAccessError(
                f"Failed to read emission factor registry: {e}",
                data_source=self.path,
                operation="load",
                cause=e,
            ) from e

        records = document.get("factors", []) if isinstance(document, dict) else document
        if not isinstance(records, list):
            raise DataAccessError(
                "Emission factor registry must contain a 'factors' list",
                data_source=self.path,
                operation="load",
            )
        try:
            factors = [EmissionFactor.model_validate(record) for record in records]
        except PydanticValidationError as e:
            raise DataAccessError(
                f"Invalid emission factor record in registry: {e.errors()[0]['msg']}",
                data_source=self.path,
                operation="load",
                cause=e,
            ) from e

        self._factors = factors
        self._loaded = True
        logger.info("Loaded %d emission factors from %s", len(self._factors), self.path)

    def _records(self) -> List[EmissionFactor]:
        if not self._loaded:
            self._load()
        return self._factors

    def reload(self) -> int:
        """Re-read the registry file; returns the number of records."""
        self._factors = []
        self._loaded = False
        return len(self._records())


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------


class SQLFactorStore(FactorStore):
    """
    Factor store over the SQLAlchemy ``emission_factors`` table.

    Queries run in a worker thread via ``asyncio.to_thread``. A missing
    table raises ``FactorStoreUnavailable``; any other driver error is
    raised as ``DataAccessError``.
    """

    name = "sql"

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = make_session_factory(engine)

    @staticmethod
    def _to_model(row: EmissionFactorRow) -> EmissionFactor:
        return EmissionFactor(
            category=row.category,
            subcategory=row.subcategory,
            scope=row.scope,
            emission_factor=row.emission_factor,
            unit=row.unit,
            source=row.source or "Unknown",
            region=row.region or GLOBAL_REGION,
            year=row.year,
            methodology=row.methodology,
            provenance_tier=row.provenance_tier,
        )

    def _execute(self, statement, operation: str) -> List[EmissionFactor]:
        session = self._session_factory()
        try:
            rows = session.execute(statement).scalars().all()
            return [self._to_model(row) for row in rows]
        except SQLAlchemyError as e:
            if is_missing_table_error(e):
                raise FactorStoreUnavailable(
                    "emission_factors table does not exist",
                    data_source=EmissionFactorRow.__tablename__,
                ) from e
            raise DataAccessError(
                f"Emission factor query failed: {e}",
                data_source=EmissionFactorRow.__tablename__,
                operation=operation,
                cause=e,
            ) from e
        finally:
            session.close()

    async def query_factors(
        self,
        category: str,
        subcategory: str,
        scope: int,
        regions: Sequence[str],
    ) -> List[EmissionFactor]:
        statement = select(EmissionFactorRow).where(
            EmissionFactorRow.category == category,
            EmissionFactorRow.subcategory == subcategory,
            EmissionFactorRow.scope == scope,
            EmissionFactorRow.region.in_(list(regions)),
        )
        return await asyncio.to_thread(self._execute, statement, "query_factors")

    async def list_factors(
        self,
        category: Optional[str] = None,
        scope: Optional[int] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> List[EmissionFactor]:
        statement = select(EmissionFactorRow).order_by(
            EmissionFactorRow.category, EmissionFactorRow.subcategory,
        )
        if category:
            statement = statement.where(EmissionFactorRow.category == category)
        if scope is not None:
            statement = statement.where(EmissionFactorRow.scope == scope)
        if region and region.upper() != ALL_REGIONS:
            statement = statement.where(
                EmissionFactorRow.region.in_([region.upper(), GLOBAL_REGION])
            )
        if search:
            pattern = f"%{search}%"
            statement = statement.where(
                EmissionFactorRow.subcategory.ilike(pattern)
                | EmissionFactorRow.source.ilike(pattern)
            )
        if limit is not None:
            statement = statement.limit(limit)
        return await asyncio.to_thread(self._execute, statement, "list_factors")

    def add_factors(self, factors: Iterable[Union[EmissionFactor, Dict[str, Any]]]) -> int:
        """Insert records into the table; returns the number inserted."""
        session = self._session_factory()
        count = 0
        try:
            for factor in factors:
                if not isinstance(factor, EmissionFactor):
                    factor = EmissionFactor.model_validate(factor)
                session.add(EmissionFactorRow(
                    **factor.model_dump(exclude={"provenance_tier"}),
                    provenance_tier=factor.provenance_tier.value,
                ))
                count += 1
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DataAccessError(
                f"Failed to insert emission factors: {e}",
                data_source=EmissionFactorRow.__tablename__,
                operation="add_factors",
                cause=e,
            ) from e
        finally:
            session.close()
        return count


__all__ = [
    "ALL_REGIONS",
    "DEFAULT_LIST_LIMIT",
    "filter_factors",
    "FactorStore",
    "InMemoryFactorStore",
    "YamlFactorStore",
    "SQLFactorStore",
]
