# -*- coding: utf-8 -*-
"""Tests for the carbonmarket exception hierarchy."""

import json

import pytest
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from carbonmarket.exceptions import (
    CalculationException,
    CalculationFailed,
    CarbonMarketException,
    DataAccessError,
    DataException,
    EmissionFactorNotFound,
    FactorStoreUnavailable,
    InvalidScope3Category,
    PersistenceError,
    UnitConversionFailed,
    UnsupportedConversion,
    ValidationError,
    format_exception_chain,
    is_retriable,
)


class TestErrorCodes:
    """Auto-generated error codes"""

    def test_base_prefix(self):
        assert CarbonMarketException("boom").error_code == "CM_CARBON_MARKET_EXCEPTION"

    def test_calculation_prefix(self):
        exc = EmissionFactorNotFound("fuel", "unobtainium", 1, "US")
        assert exc.error_code == "CM_CALC_EMISSION_FACTOR_NOT_FOUND"

    def test_data_prefix(self):
        assert FactorStoreUnavailable("gone").error_code == "CM_DATA_FACTOR_STORE_UNAVAILABLE"

    def test_explicit_code_wins(self):
        exc = CarbonMarketException("boom", error_code="CUSTOM")
        assert exc.error_code == "CUSTOM"


class TestHierarchy:
    """Class hierarchy"""

    @pytest.mark.parametrize("exc_type", [
        EmissionFactorNotFound,
        UnsupportedConversion,
        UnitConversionFailed,
        InvalidScope3Category,
        CalculationFailed,
    ])
    def test_calculation_errors(self, exc_type):
        assert issubclass(exc_type, CalculationException)

    @pytest.mark.parametrize("exc_type", [
        DataAccessError,
        FactorStoreUnavailable,
        PersistenceError,
    ])
    def test_data_errors(self, exc_type):
        assert issubclass(exc_type, DataException)

    def test_validation_is_neither(self):
        assert not issubclass(ValidationError, CalculationException)
        assert not issubclass(ValidationError, DataException)


class TestMessages:
    """Messages and context"""

    def test_factor_not_found_message(self):
        exc = EmissionFactorNotFound("fuel", "unobtainium", 1, "US")
        assert str(exc) == "Emission factor not found for fuel/unobtainium in scope 1 (region US)"
        assert exc.context["scope"] == 1

    def test_factor_not_found_without_region(self):
        exc = EmissionFactorNotFound("fuel", "unobtainium", 1)
        assert str(exc) == "Emission factor not found for fuel/unobtainium in scope 1"

    def test_unsupported_conversion_message(self):
        assert str(UnsupportedConversion("kWh", "kg")) == "Cannot convert from kWh to kg"

    def test_unit_conversion_failed_component(self):
        exc = UnitConversionFailed("kWh", "kg", 2, UnsupportedConversion("kWh", "kg"))
        assert exc.component == "Scope2Calculator"
        assert exc.context["cause"] == "Cannot convert from kWh to kg"

    def test_invalid_scope3_category(self):
        exc = InvalidScope3Category(16)
        assert str(exc) == "Invalid Scope 3 category: 16"
        assert exc.context["valid_range"] == [1, 15]

    def test_calculation_failed_wraps_cause(self):
        cause = EmissionFactorNotFound("fuel", "unobtainium", 1)
        exc = CalculationFailed(1, 0, cause)
        assert str(exc).startswith("Scope 1 calculation failed: ")
        assert exc.context["cause_type"] == "EmissionFactorNotFound"
        assert exc.context["entry_index"] == 0

    def test_validation_error_invalid_fields(self):
        exc = ValidationError("bad input", invalid_fields={"consumption": "negative"})
        assert exc.context["invalid_fields"] == {"consumption": "negative"}

    def test_validation_error_from_pydantic(self):
        class Sample(BaseModel):
            amount: float = Field(..., ge=0)

        with pytest.raises(PydanticValidationError) as exc_info:
            Sample(amount=-1)

        exc = ValidationError.from_pydantic(exc_info.value, prefix="entry", component="Test")
        assert "entry.amount" in exc.context["invalid_fields"]
        assert exc.message.startswith("Invalid entry.amount:")
        assert exc.component == "Test"

    def test_to_json(self):
        exc = PersistenceError("write failed", operation="save", cause=RuntimeError("disk"))
        payload = json.loads(exc.to_json())
        assert payload["error_type"] == "PersistenceError"
        assert payload["context"]["operation"] == "save"
        assert payload["context"]["cause_type"] == "RuntimeError"


class TestUtilities:
    """format_exception_chain / is_retriable"""

    def test_format_chain(self):
        cause = UnsupportedConversion("kWh", "kg")
        try:
            raise CalculationFailed(2, 3, cause) from cause
        except CalculationFailed as exc:
            text = format_exception_chain(exc)
        assert "[CM_CALC_CALCULATION_FAILED]" in text
        assert "[CM_CALC_UNSUPPORTED_CONVERSION] Cannot convert from kWh to kg" in text

    def test_format_chain_plain_exception(self):
        assert format_exception_chain(RuntimeError("x")) == "RuntimeError: x"

    def test_is_retriable(self):
        assert is_retriable(DataAccessError("timeout"))
        assert not is_retriable(ValidationError("bad"))
        assert not is_retriable(EmissionFactorNotFound("fuel", "x", 1))
        assert not is_retriable(FactorStoreUnavailable("gone"))
