# -*- coding: utf-8 -*-
"""
Integration tests for FootprintEngine

Reference assessment (US):
    Scope 1: 1000 MMBtu natural gas x 53.06  = 53.06 tCO2e, confidence 90
    Scope 2: 50000 kWh grid x 0.386          = 19.30 tCO2e, confidence 75
    Scope 3: 100000 pkm air travel x 0.115   = 11.50 tCO2e, confidence 70
    Total 83.86 tCO2e, average confidence 78
"""

import asyncio
import math

import pytest

from carbonmarket.exceptions import (
    CalculationFailed,
    DataAccessError,
    EmissionFactorNotFound,
    InvalidScope3Category,
    PersistenceError,
    UnitConversionFailed,
    ValidationError,
)
from carbonmarket.footprint.config import FootprintConfig
from carbonmarket.footprint.engine import FootprintEngine
from carbonmarket.footprint.factor_resolver import EmissionFactorResolver
from carbonmarket.footprint.factor_store import FactorStore
from carbonmarket.footprint.models import CalculationRequest
from carbonmarket.footprint.persistence import AssessmentRepository


class BrokenStore(FactorStore):
    """Store whose driver fails with a non-availability error."""

    async def query_factors(self, category, subcategory, scope, regions):
        raise DataAccessError("permission denied", data_source="emission_factors")

    async def list_factors(self, category=None, scope=None, region=None, search=None, limit=100):
        raise DataAccessError("permission denied", data_source="emission_factors")


class FailingRepository(AssessmentRepository):
    """Repository whose writes always fail."""

    async def save_assessment(self, metadata, scope1_results, scope2_results, scope3_results, owner_id=None):
        raise PersistenceError("disk full", operation="save_assessment")

    async def get_assessment(self, assessment_id, include_details=False):
        return None

    async def list_assessments(self, owner_id=None):
        return []

    async def update_verification_status(self, assessment_id, status):
        raise PersistenceError("disk full")


# ==============================================================================
# Full assessment
# ==============================================================================


class TestCalculateFootprint:
    """Full assessment calculation"""

    @pytest.mark.asyncio
    async def test_reference_assessment(self, engine, sample_request):
        result = await engine.calculate_footprint(sample_request)
        summary = result.summary

        assert summary.scope1_total == 53.06
        assert summary.scope2_total == 19.3
        assert summary.scope3_total == 11.5
        assert summary.total_emissions == 83.86
        assert summary.average_confidence == 78
        assert summary.emissions_by_scope == {"scope1": 63, "scope2": 23, "scope3": 14}
        assert summary.entry_count == 3

    @pytest.mark.asyncio
    async def test_details_per_scope(self, engine, sample_request):
        result = await engine.calculate_footprint(sample_request)
        details = result.details

        assert len(details.scope1_results) == 1
        assert details.scope1_results[0].confidence_level == 90
        assert details.scope2_results[0].total_emissions == pytest.approx(19.3)
        assert details.scope3_results[0].emission_factor == 0.115

    @pytest.mark.asyncio
    async def test_insights_and_recommendations(self, engine, sample_request):
        result = await engine.calculate_footprint(sample_request)

        assert [i.type for i in result.insights] == ["scope_distribution", "data_quality"]
        assert [r.scope for r in result.recommendations] == [1, 2, 3]
        assert result.recommendations[0].priority == "high"

    @pytest.mark.asyncio
    async def test_camel_case_output(self, engine, sample_request):
        result = await engine.calculate_footprint(sample_request)
        payload = result.model_dump(by_alias=True, mode="json")

        assert payload["summary"]["totalEmissions"] == 83.86
        assert payload["summary"]["emissionsByScope"]["scope1"] == 63
        assert "scope1Results" in payload["details"]
        assert "emissionFactorSource" in payload["details"]["scope2Results"][0]
        assert payload["recommendations"][0]["potentialReduction"] == "30-50%"

    @pytest.mark.asyncio
    async def test_accepts_model_and_snake_case(self, engine, sample_request):
        request = CalculationRequest.model_validate(sample_request)
        result = await engine.calculate_footprint(request)
        assert result.summary.total_emissions == 83.86

        snake = {
            "assessment": {"organization_name": "Acme"},
            "scope2_data": [{"activity_data": 1000, "activity_unit": "kWh"}],
            "region": "us",
        }
        result = await engine.calculate_footprint(snake)
        assert result.summary.scope2_total == 0.39

    @pytest.mark.asyncio
    async def test_default_region_from_config(self, resolver, sample_request):
        sample_request.pop("region")
        engine = FootprintEngine(resolver, config=FootprintConfig(default_region="US"))
        result = await engine.calculate_footprint(sample_request)
        assert result.summary.total_emissions == 83.86

    @pytest.mark.asyncio
    async def test_empty_assessment(self, engine):
        result = await engine.calculate_footprint({"assessment": {"organizationName": "Acme"}})
        assert result.summary.total_emissions == 0
        assert result.summary.emissions_by_scope == {"scope1": 0, "scope2": 0, "scope3": 0}
        assert result.insights == []
        assert result.recommendations == []

    @pytest.mark.asyncio
    async def test_many_entries_under_concurrency_limit(self, resolver):
        engine = FootprintEngine(resolver, config=FootprintConfig(max_concurrent_calculations=2))
        request = {
            "assessment": {"organizationName": "Acme"},
            "scope2Data": [{"activityData": 1000 * (i + 1), "activityUnit": "kWh"} for i in range(10)],
            "region": "US",
        }
        result = await engine.calculate_footprint(request)

        totals = [r.total_emissions for r in result.details.scope2_results]
        assert totals == pytest.approx([0.386 * (i + 1) for i in range(10)])
        assert result.summary.scope2_total == round(0.386 * 55, 2)

    @pytest.mark.asyncio
    async def test_deterministic(self, engine, sample_request):
        first = await engine.calculate_footprint(sample_request)
        second = await engine.calculate_footprint(sample_request)
        assert first.summary == second.summary
        assert first.details == second.details


# ==============================================================================
# Validation and failure
# ==============================================================================


class TestFailures:
    """Validation errors and aborted assessments"""

    @pytest.mark.asyncio
    async def test_negative_activity_rejected(self, engine, sample_request):
        sample_request["scope1Data"][0]["activityData"] = -5
        with pytest.raises(ValidationError) as exc_info:
            await engine.calculate_footprint(sample_request)
        assert any("scope1Data" in key for key in exc_info.value.context["invalid_fields"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_value", ["abc", True, None, math.inf])
    async def test_non_numeric_activity_rejected(self, engine, sample_request, bad_value):
        sample_request["scope2Data"][0]["activityData"] = bad_value
        with pytest.raises(ValidationError):
            await engine.calculate_footprint(sample_request)

    @pytest.mark.asyncio
    async def test_missing_organization_rejected(self, engine, sample_request):
        sample_request["assessment"]["organizationName"] = "   "
        with pytest.raises(ValidationError):
            await engine.calculate_footprint(sample_request)

    @pytest.mark.asyncio
    async def test_reversed_reporting_period_rejected(self, engine, sample_request):
        sample_request["assessment"]["reportingPeriodStart"] = "2025-01-01"
        with pytest.raises(ValidationError):
            await engine.calculate_footprint(sample_request)

    @pytest.mark.asyncio
    async def test_data_quality_out_of_range_rejected(self, engine, sample_request):
        sample_request["scope3Data"][0]["dataQuality"] = 6
        with pytest.raises(ValidationError):
            await engine.calculate_footprint(sample_request)

    @pytest.mark.asyncio
    async def test_unknown_fuel_aborts_assessment(self, engine, sample_request, provenance):
        sample_request["scope1Data"].append({
            "fuelType": "unobtainium",
            "activityData": 10,
            "activityUnit": "MMBtu",
        })
        with pytest.raises(CalculationFailed) as exc_info:
            await engine.calculate_footprint(sample_request)

        exc = exc_info.value
        assert exc.scope == 1
        assert exc.index == 1
        assert isinstance(exc.__cause__, EmissionFactorNotFound)
        assert provenance.get_entries(entity_type="assessment") == []

    @pytest.mark.asyncio
    async def test_failed_assessment_leaves_no_pending_entries(self, engine, sample_request):
        for fuel in ("unobtainium", "kryptonite"):
            sample_request["scope1Data"].append({
                "fuelType": fuel,
                "activityData": 10,
                "activityUnit": "MMBtu",
            })
        with pytest.raises(CalculationFailed):
            await engine.calculate_footprint(sample_request)

        current = asyncio.current_task()
        assert [t for t in asyncio.all_tasks() if t is not current and not t.done()] == []

    @pytest.mark.asyncio
    async def test_invalid_scope3_category_aborts(self, engine, sample_request):
        sample_request["scope3Data"][0]["categoryNumber"] = 16
        with pytest.raises(CalculationFailed) as exc_info:
            await engine.calculate_footprint(sample_request)
        assert isinstance(exc_info.value.__cause__, InvalidScope3Category)

    @pytest.mark.asyncio
    async def test_unit_mismatch_aborts(self, engine, sample_request):
        sample_request["scope2Data"][0]["activityUnit"] = "gallon"
        with pytest.raises(CalculationFailed) as exc_info:
            await engine.calculate_footprint(sample_request)
        assert isinstance(exc_info.value.__cause__, UnitConversionFailed)
        assert str(exc_info.value).startswith("Scope 2 calculation failed:")

    @pytest.mark.asyncio
    async def test_store_error_propagates_unchanged(self, sample_request, config):
        engine = FootprintEngine(EmissionFactorResolver(store=BrokenStore()), config=config)
        with pytest.raises(DataAccessError):
            await engine.calculate_footprint(sample_request)


# ==============================================================================
# Provenance and persistence
# ==============================================================================


class TestProvenanceAndPersistence:
    """Provenance chain and optional persistence"""

    @pytest.mark.asyncio
    async def test_provenance_recorded(self, engine, sample_request, provenance):
        result = await engine.calculate_footprint(sample_request)

        assert len(provenance.get_entries(entity_type="calculation")) == 3
        assessment = provenance.get_entries(entity_type="assessment")
        assert len(assessment) == 1
        assert result.provenance_hash == assessment[0].hash_value
        assert provenance.verify_chain()

    @pytest.mark.asyncio
    async def test_provenance_disabled(self, resolver, provenance, sample_request):
        engine = FootprintEngine(
            resolver, config=FootprintConfig(enable_provenance=False), provenance=provenance,
        )
        result = await engine.calculate_footprint(sample_request)
        assert result.provenance_hash is None
        assert len(provenance) == 0

    @pytest.mark.asyncio
    async def test_persisted_with_owner(self, resolver, config, repository, sample_request):
        engine = FootprintEngine(resolver, repository=repository, config=config)
        result = await engine.calculate_footprint(sample_request, owner_id="user-1")

        assert result.assessment_id is not None
        stored = await repository.get_assessment(result.assessment_id)
        assert stored["owner_id"] == "user-1"
        assert stored["total_emissions"] == pytest.approx(83.86)

    @pytest.mark.asyncio
    async def test_not_persisted_without_owner(self, resolver, config, repository, sample_request):
        engine = FootprintEngine(resolver, repository=repository, config=config)
        result = await engine.calculate_footprint(sample_request)

        assert result.assessment_id is None
        assert await repository.list_assessments() == []

    @pytest.mark.asyncio
    async def test_save_failure_returns_unsaved_result(self, resolver, config, sample_request):
        engine = FootprintEngine(resolver, repository=FailingRepository(), config=config)
        result = await engine.calculate_footprint(sample_request, owner_id="user-1")

        assert result.assessment_id is None
        assert result.summary.total_emissions == 83.86


# ==============================================================================
# Simple mode
# ==============================================================================


class TestCalculateSimple:
    """Single-entry Scope 1 calculation"""

    @pytest.mark.asyncio
    async def test_simple(self, engine):
        result = await engine.calculate_simple("natural_gas_commercial", 1000, "MMBtu")
        assert result.total_emissions == pytest.approx(53.06)
        assert result.emission_factor == 53.06

    @pytest.mark.asyncio
    async def test_numeric_string(self, engine):
        result = await engine.calculate_simple("natural_gas_commercial", "500", "MMBtu", region="us")
        assert result.total_emissions == pytest.approx(26.53)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("consumption", [-1, "abc", None, True, float("nan")])
    async def test_invalid_consumption(self, engine, consumption):
        with pytest.raises(ValidationError) as exc_info:
            await engine.calculate_simple("natural_gas_commercial", consumption, "MMBtu")
        assert exc_info.value.message == "Consumption must be a positive number"
        assert "consumption" in exc_info.value.context["invalid_fields"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("consumption", [1_000_001, float("inf")])
    async def test_unreasonably_large(self, engine, consumption):
        with pytest.raises(ValidationError) as exc_info:
            await engine.calculate_simple("natural_gas_commercial", consumption, "MMBtu")
        assert exc_info.value.message == (
            "Consumption value is unreasonably large. Please verify your input."
        )

    @pytest.mark.asyncio
    async def test_zero_is_accepted(self, engine):
        result = await engine.calculate_simple("natural_gas_commercial", 0, "MMBtu")
        assert result.total_emissions == 0

    @pytest.mark.asyncio
    async def test_unknown_fuel(self, engine):
        with pytest.raises(EmissionFactorNotFound):
            await engine.calculate_simple("unobtainium", 10, "MMBtu")

    @pytest.mark.asyncio
    async def test_missing_unit(self, engine):
        with pytest.raises(ValidationError):
            await engine.calculate_simple("natural_gas_commercial", 10, "")
