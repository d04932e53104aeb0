# -*- coding: utf-8 -*-
"""
Footprint Engine - public calculation entrypoint

Turns an assessment request (metadata plus Scope 1/2/3 activity entries)
into a CalculationResult:

    validate -> calculate every entry concurrently -> join -> aggregate
    -> insights & recommendations -> persist (optional) -> result

Entry-level calculations for one assessment are dispatched with
``asyncio.gather`` under a semaphore and joined before aggregation. The
first failing entry aborts the whole assessment with ``CalculationFailed``
(chained to the cause); no partial totals are returned. Store and driver
errors (``DataException``) propagate unchanged.

Persistence runs only for a request with an owner and a configured
repository. A failed save is logged and the result is returned without an
assessment id.

Example:
    >>> engine = FootprintEngine(EmissionFactorResolver(store))
    >>> result = await engine.calculate_footprint({
    ...     "assessment": {"organizationName": "Acme", "assessmentYear": 2024},
    ...     "scope1Data": [{"fuelType": "diesel", "activityData": 100,
    ...                     "activityUnit": "gallon"}],
    ... })
    >>> result.summary.total_emissions
"""

import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from carbonmarket.exceptions import (
    CalculationException,
    CalculationFailed,
    DataException,
    ValidationError,
    format_exception_chain,
)
from carbonmarket.footprint.aggregator import round_summary, summarize
from carbonmarket.footprint.config import FootprintConfig, get_config
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.insights import InsightGenerator
from carbonmarket.footprint.metrics import (
    observe_calculation_duration,
    record_assessment,
    record_calculation,
)
from carbonmarket.footprint.models import (
    CalculationRequest,
    CalculationResult,
    EmissionResult,
    Scope1Entry,
    ScopeDetails,
    SourceCategory,
)
from carbonmarket.footprint.persistence import AssessmentRepository
from carbonmarket.footprint.provenance import ProvenanceTracker
from carbonmarket.footprint.scope1_calculator import Scope1Calculator
from carbonmarket.footprint.scope2_calculator import Scope2Calculator
from carbonmarket.footprint.scope3_calculator import Scope3Calculator
from carbonmarket.footprint.unit_converter import UnitConverter

logger = logging.getLogger(__name__)

RequestLike = Union[CalculationRequest, Dict[str, Any]]


class FootprintEngine:
    """
    Carbon footprint calculation engine.

    Args:
        resolver: Emission factor resolver shared by the scope calculators
        repository: Optional assessment repository
        config: Engine configuration (global config if None)
        converter: Unit converter (auto-creates if None)
        provenance: Optional provenance tracker
    """

    def __init__(
        self,
        resolver: EmissionFactorResolver,
        repository: Optional[AssessmentRepository] = None,
        config: Optional[FootprintConfig] = None,
        converter: Optional[UnitConverter] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ):
        self.config = config or get_config()
        self.resolver = resolver
        self.repository = repository
        self.converter = converter or UnitConverter()
        self.provenance = provenance
        self.insight_generator = InsightGenerator.from_config(self.config)

        self.calculators = {
            1: Scope1Calculator(resolver, self.converter),
            2: Scope2Calculator(resolver, self.converter),
            3: Scope3Calculator(resolver, self.converter),
        }

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_request(request: RequestLike) -> CalculationRequest:
        """
        Validate a request payload.

        Raises:
            ValidationError: If metadata or any activity entry is invalid
        """
        if isinstance(request, CalculationRequest):
            return request
        try:
            return CalculationRequest.model_validate(request)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, component="FootprintEngine") from e

    # ------------------------------------------------------------------
    # Full assessment
    # ------------------------------------------------------------------

    async def calculate_footprint(
        self,
        request: RequestLike,
        owner_id: Optional[str] = None,
    ) -> CalculationResult:
        """
        Calculate a complete assessment.

        Args:
            request: CalculationRequest or its camelCase / snake_case dict
            owner_id: Owner of the assessment; enables persistence

        Returns:
            CalculationResult with rounded summary, per-entry details,
            insights and recommendations

        Raises:
            ValidationError: Invalid input, before any calculation
            CalculationFailed: An entry failed; the assessment is aborted
            DataException: Factor store errors other than unavailability
        """
        request = self.validate_request(request)
        region = (request.region or self.config.default_region).strip().upper()
        start = time.perf_counter()

        try:
            scope1, scope2, scope3 = await self._calculate_entries(request, region)
        except Exception as e:
            record_assessment("failure")
            logger.error(
                "Assessment for %s aborted:\n%s",
                request.assessment.organization_name, format_exception_chain(e),
            )
            raise

        summary = summarize(scope1, scope2, scope3)
        insights, recommendations = self.insight_generator.generate(summary)

        result = CalculationResult(
            summary=round_summary(summary),
            details=ScopeDetails(
                scope1_results=scope1,
                scope2_results=scope2,
                scope3_results=scope3,
            ),
            insights=insights,
            recommendations=recommendations,
        )

        if self.provenance is not None and self.config.enable_provenance:
            entry = self.provenance.record(
                "assessment",
                "aggregate",
                request.assessment.organization_name,
                data=result.summary.model_dump(mode="json"),
                metadata={"region": region, "entries": summary.entry_count},
            )
            result.provenance_hash = entry.hash_value

        if owner_id is not None and self.repository is not None:
            result.assessment_id = await self._persist(request, scope1, scope2, scope3, owner_id)

        duration = time.perf_counter() - start
        observe_calculation_duration(duration)
        record_assessment("success")
        logger.info(
            "Calculated assessment for %s: %d entries, %.2f tCO2e, "
            "confidence %.0f, %.1f ms",
            request.assessment.organization_name, summary.entry_count,
            result.summary.total_emissions, result.summary.average_confidence,
            duration * 1000,
        )
        return result

    async def _calculate_entries(
        self,
        request: CalculationRequest,
        region: str,
    ) -> Tuple[List[EmissionResult], List[EmissionResult], List[EmissionResult]]:
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_calculations))
        jobs = [
            (scope, index, entry)
            for scope, entries in (
                (1, request.scope1_data),
                (2, request.scope2_data),
                (3, request.scope3_data),
            )
            for index, entry in enumerate(entries)
        ]
        tasks = [
            asyncio.ensure_future(self._calculate_entry(semaphore, scope, index, entry, region))
            for scope, index, entry in jobs
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # collect sibling outcomes so later failures are retrieved
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        by_scope: Dict[int, List[EmissionResult]] = {1: [], 2: [], 3: []}
        for (scope, _, _), result in zip(jobs, results):
            by_scope[scope].append(result)
        return by_scope[1], by_scope[2], by_scope[3]

    async def _calculate_entry(
        self,
        semaphore: asyncio.Semaphore,
        scope: int,
        index: int,
        entry: Any,
        region: str,
    ) -> EmissionResult:
        async with semaphore:
            try:
                result = await self.calculators[scope].calculate(entry, region)
            except CalculationException as e:
                record_calculation(scope, "failure")
                raise CalculationFailed(scope, index, e) from e
            except DataException:
                record_calculation(scope, "failure")
                raise

        record_calculation(scope, "success", result.total_emissions)
        if self.provenance is not None and self.config.enable_provenance:
            self.provenance.record(
                "calculation",
                "calculate",
                f"scope{scope}-{index}",
                data={
                    "input": entry.model_dump(mode="json"),
                    "output": result.model_dump(mode="json"),
                },
            )
        return result

    async def _persist(
        self,
        request: CalculationRequest,
        scope1: List[EmissionResult],
        scope2: List[EmissionResult],
        scope3: List[EmissionResult],
        owner_id: str,
    ) -> Optional[str]:
        try:
            assessment_id = await self.repository.save_assessment(
                request.assessment, scope1, scope2, scope3, owner_id,
            )
        except DataException as e:
            record_assessment("persist_failed")
            logger.error(
                "Failed to save assessment for %s; returning unsaved result:\n%s",
                request.assessment.organization_name, format_exception_chain(e),
            )
            return None
        record_assessment("persisted")
        return assessment_id

    # ------------------------------------------------------------------
    # Simple mode
    # ------------------------------------------------------------------

    async def calculate_simple(
        self,
        fuel_type: str,
        consumption: Any,
        unit: str,
        source_category: Union[str, SourceCategory] = SourceCategory.STATIONARY_COMBUSTION,
        region: Optional[str] = None,
    ) -> EmissionResult:
        """
        Calculate a single Scope 1 entry.

        Args:
            fuel_type: Fuel subcategory (e.g. "natural_gas")
            consumption: Activity quantity; numeric strings are accepted
            unit: Activity unit
            source_category: Scope 1 source category
            region: Target region (configured default if None)

        Returns:
            EmissionResult in tonnes CO2e

        Raises:
            ValidationError: Non-numeric, negative, non-finite or
                unreasonably large consumption, or missing fields
            EmissionFactorNotFound: If no factor matches
            UnitConversionFailed: If the unit cannot be converted
        """
        value = self._parse_consumption(consumption)
        try:
            entry = Scope1Entry(
                source_category=source_category or SourceCategory.STATIONARY_COMBUSTION,
                fuel_type=fuel_type,
                activity_data=value,
                activity_unit=unit,
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, component="FootprintEngine") from e

        region = (region or self.config.default_region).strip().upper()
        result = await self.calculators[1].calculate(entry, region)
        record_calculation(1, "success", result.total_emissions)
        logger.info(
            "Simple calculation %s: %s %s -> %.4f tCO2e",
            fuel_type, value, unit, result.total_emissions,
        )
        return result

    def _parse_consumption(self, consumption: Any) -> float:
        if isinstance(consumption, bool):
            value = math.nan
        else:
            try:
                value = float(consumption)
            except (TypeError, ValueError):
                value = math.nan

        if math.isnan(value) or value < 0:
            raise ValidationError(
                "Consumption must be a positive number",
                component="FootprintEngine",
                invalid_fields={"consumption": str(consumption)},
            )
        if value > self.config.max_simple_consumption:
            raise ValidationError(
                "Consumption value is unreasonably large. Please verify your input.",
                component="FootprintEngine",
                invalid_fields={"consumption": str(consumption)},
            )
        return value


__all__ = ["FootprintEngine"]
