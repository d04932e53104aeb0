# -*- coding: utf-8 -*-
"""
Assessment Persistence Adapter

Durable storage of calculated assessments. The repository recomputes the
totals from the entry results it is given, so it can be used
independently of a live calculation.

Lifecycle of a stored assessment: created once by ``save_assessment``;
afterwards only its verification status changes
(``update_verification_status``). The calculation engine never mutates a
stored record.

Implementation: SQLAssessmentRepository over SQLAlchemy, with blocking
work executed in a worker thread via ``asyncio.to_thread``.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from carbonmarket.exceptions import PersistenceError, ValidationError
from carbonmarket.footprint.aggregator import summarize
from carbonmarket.footprint.confidence import overall_data_quality
from carbonmarket.footprint.db_models import (
    AssessmentEmissionDetailRow,
    CarbonAssessmentRow,
    make_session_factory,
)
from carbonmarket.footprint.models import AssessmentMetadata, EmissionResult

logger = logging.getLogger(__name__)

VERIFICATION_STATUSES = ("draft", "submitted", "in_review", "verified", "rejected")


class AssessmentRepository(ABC):
    """Abstract assessment store"""

    @abstractmethod
    async def save_assessment(
        self,
        metadata: AssessmentMetadata,
        scope1_results: Sequence[EmissionResult],
        scope2_results: Sequence[EmissionResult],
        scope3_results: Sequence[EmissionResult],
        owner_id: Optional[str] = None,
    ) -> str:
        """Persist an assessment and its entry results; returns its id."""

    @abstractmethod
    async def get_assessment(
        self,
        assessment_id: str,
        include_details: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Return a stored assessment, or None if it does not exist."""

    @abstractmethod
    async def list_assessments(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return stored assessments, newest first."""

    @abstractmethod
    async def update_verification_status(self, assessment_id: str, status: str) -> Dict[str, Any]:
        """Change the verification status of a stored assessment."""


class SQLAssessmentRepository(AssessmentRepository):
    """
    Assessment repository over the ``carbon_assessments`` and
    ``assessment_emission_details`` tables.

    Args:
        engine: SQLAlchemy engine (tables created with ``init_db``)
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = make_session_factory(engine)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def save_assessment(
        self,
        metadata: AssessmentMetadata,
        scope1_results: Sequence[EmissionResult],
        scope2_results: Sequence[EmissionResult],
        scope3_results: Sequence[EmissionResult],
        owner_id: Optional[str] = None,
    ) -> str:
        return await asyncio.to_thread(
            self._save, metadata, list(scope1_results), list(scope2_results),
            list(scope3_results), owner_id,
        )

    async def get_assessment(
        self,
        assessment_id: str,
        include_details: bool = False,
    ) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get, assessment_id, include_details)

    async def list_assessments(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._list, owner_id)

    async def update_verification_status(self, assessment_id: str, status: str) -> Dict[str, Any]:
        if status not in VERIFICATION_STATUSES:
            raise ValidationError(
                f"Invalid verification status: {status}",
                component="AssessmentRepository",
                invalid_fields={"status": f"must be one of {', '.join(VERIFICATION_STATUSES)}"},
            )
        return await asyncio.to_thread(self._update_status, assessment_id, status)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _save(
        self,
        metadata: AssessmentMetadata,
        scope1_results: List[EmissionResult],
        scope2_results: List[EmissionResult],
        scope3_results: List[EmissionResult],
        owner_id: Optional[str],
    ) -> str:
        summary = summarize(scope1_results, scope2_results, scope3_results)
        all_results = [*scope1_results, *scope2_results, *scope3_results]
        assessment_id = str(uuid.uuid4())

        row = CarbonAssessmentRow(
            id=assessment_id,
            owner_id=owner_id,
            organization_name=metadata.organization_name,
            assessment_year=metadata.assessment_year,
            reporting_period_start=_iso(metadata.reporting_period_start),
            reporting_period_end=_iso(metadata.reporting_period_end),
            assessment_boundary=metadata.assessment_boundary,
            methodology=metadata.methodology,
            scope1_total=summary.scope1_total,
            scope2_total=summary.scope2_total,
            scope3_total=summary.scope3_total,
            total_emissions=summary.total_emissions,
            confidence_level=summary.average_confidence,
            data_quality_score=overall_data_quality(all_results),
            verification_status="draft",
        )
        for scope, results in ((1, scope1_results), (2, scope2_results), (3, scope3_results)):
            for index, result in enumerate(results):
                row.details.append(AssessmentEmissionDetailRow(
                    scope=scope,
                    entry_index=index,
                    co2_emissions=result.co2_emissions,
                    ch4_emissions=result.ch4_emissions,
                    n2o_emissions=result.n2o_emissions,
                    other_ghg_emissions=result.other_ghg_emissions,
                    total_emissions=result.total_emissions,
                    emission_factor=result.emission_factor,
                    emission_factor_source=result.emission_factor_source,
                    confidence_level=result.confidence_level,
                ))

        session = self._session_factory()
        try:
            session.add(row)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(
                f"Failed to save assessment: {e}", operation="save_assessment", cause=e,
            ) from e
        finally:
            session.close()

        logger.info(
            "Saved assessment %s for %s (%d entries, %.2f tCO2e)",
            assessment_id, metadata.organization_name, len(all_results),
            summary.total_emissions,
        )
        return assessment_id

    def _get(self, assessment_id: str, include_details: bool) -> Optional[Dict[str, Any]]:
        session = self._session_factory()
        try:
            row = session.get(CarbonAssessmentRow, assessment_id)
            if row is None:
                return None
            record = _assessment_to_dict(row)
            if include_details:
                details: Dict[str, List[Dict[str, Any]]] = {"scope1": [], "scope2": [], "scope3": []}
                for detail in row.details:
                    details[f"scope{detail.scope}"].append(_detail_to_dict(detail))
                record["details"] = details
            return record
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to load assessment: {e}", operation="get_assessment", cause=e,
            ) from e
        finally:
            session.close()

    def _list(self, owner_id: Optional[str]) -> List[Dict[str, Any]]:
        statement = select(CarbonAssessmentRow).order_by(CarbonAssessmentRow.created_at.desc())
        if owner_id is not None:
            statement = statement.where(CarbonAssessmentRow.owner_id == owner_id)
        session = self._session_factory()
        try:
            return [_assessment_to_dict(row) for row in session.execute(statement).scalars()]
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to list assessments: {e}", operation="list_assessments", cause=e,
            ) from e
        finally:
            session.close()

    def _update_status(self, assessment_id: str, status: str) -> Dict[str, Any]:
        session = self._session_factory()
        try:
            row = session.get(CarbonAssessmentRow, assessment_id)
            if row is None:
                raise PersistenceError(
                    f"Assessment not found: {assessment_id}",
                    operation="update_verification_status",
                )
            row.verification_status = status
            row.updated_at = datetime.utcnow()
            session.commit()
            logger.info("Assessment %s verification status -> %s", assessment_id, status)
            return _assessment_to_dict(row)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(
                f"Failed to update assessment: {e}",
                operation="update_verification_status",
                cause=e,
            ) from e
        finally:
            session.close()


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _assessment_to_dict(row: CarbonAssessmentRow) -> Dict[str, Any]:
    return {
        "id": row.id,
        "owner_id": row.owner_id,
        "organization_name": row.organization_name,
        "assessment_year": row.assessment_year,
        "reporting_period_start": row.reporting_period_start,
        "reporting_period_end": row.reporting_period_end,
        "assessment_boundary": row.assessment_boundary,
        "methodology": row.methodology,
        "scope1_total": row.scope1_total,
        "scope2_total": row.scope2_total,
        "scope3_total": row.scope3_total,
        "total_emissions": row.total_emissions,
        "confidence_level": row.confidence_level,
        "data_quality_score": row.data_quality_score,
        "verification_status": row.verification_status,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def _detail_to_dict(row: AssessmentEmissionDetailRow) -> Dict[str, Any]:
    return {
        "scope": row.scope,
        "entry_index": row.entry_index,
        "co2_emissions": row.co2_emissions,
        "ch4_emissions": row.ch4_emissions,
        "n2o_emissions": row.n2o_emissions,
        "other_ghg_emissions": row.other_ghg_emissions,
        "total_emissions": row.total_emissions,
        "emission_factor": row.emission_factor,
        "emission_factor_source": row.emission_factor_source,
        "confidence_level": row.confidence_level,
    }


__all__ = [
    "VERIFICATION_STATUSES",
    "AssessmentRepository",
    "SQLAssessmentRepository",
]
