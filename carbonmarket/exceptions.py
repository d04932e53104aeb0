"""CarbonMarket Exception Hierarchy.

This module provides the exception hierarchy for the carbon footprint
calculation engine with rich error context for debugging, monitoring,
and user feedback.

Exception Hierarchy:
    CarbonMarketException (base)
    ├── ValidationError
    ├── CalculationException
    │   ├── EmissionFactorNotFound
    │   ├── UnsupportedConversion
    │   ├── UnitConversionFailed
    │   ├── InvalidScope3Category
    │   └── CalculationFailed
    └── DataException
        ├── DataAccessError
        ├── FactorStoreUnavailable
        └── PersistenceError

All exceptions include rich context:
- error_code: Unique error identifier
- component: Name of the engine component that raised the error
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from carbonmarket.exceptions import EmissionFactorNotFound
    >>> raise EmissionFactorNotFound(
    ...     category="fuel",
    ...     subcategory="unobtainium",
    ...     scope=1,
    ...     region="US",
    ... )
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class CarbonMarketException(Exception):
    """Base exception for all CarbonMarket errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "CM_CALC_EMISSION_FACTOR_NOT_FOUND")
        component: Name of the component that raised the error (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "CM"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            component: Name of the component that raised the error
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate error code based on exception class.

        Returns:
            Error code like "CM_CALC_UNSUPPORTED_CONVERSION"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"component='{self.component}')"
        )


# ==============================================================================
# Validation
# ==============================================================================

class ValidationError(CarbonMarketException):
    """Input validation failed.

    Raised before any calculation is attempted when activity data is
    missing, negative or non-numeric, or when assessment metadata is
    incomplete.

    Example:
        >>> raise ValidationError(
        ...     message="activity_data must be a finite, non-negative number",
        ...     invalid_fields={"scope1_data[0].activity_data": "negative"},
        ... )
    """

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
    ):
        if invalid_fields:
            context = context or {}
            context["invalid_fields"] = invalid_fields
        super().__init__(message, component=component, context=context)

    @classmethod
    def from_pydantic(
        cls,
        exc: Any,
        prefix: str = "",
        component: Optional[str] = None,
    ) -> "ValidationError":
        """Build a ValidationError from a ``pydantic.ValidationError``.

        Args:
            exc: The pydantic validation error.
            prefix: Optional location prefix (e.g. ``scope1_data[0]``).
            component: Component name for the error context.
        """
        invalid: Dict[str, str] = {}
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            key = f"{prefix}.{loc}" if prefix and loc else (prefix or loc)
            invalid[key] = err.get("msg", "invalid")
        first = next(iter(invalid.items()), ("input", "invalid"))
        message = f"Invalid {first[0]}: {first[1]}"
        return cls(message, component=component, invalid_fields=invalid)


# ==============================================================================
# Calculation Exceptions
# ==============================================================================

class CalculationException(CarbonMarketException):
    """Base exception for errors raised inside an emission calculation."""

    ERROR_PREFIX = "CM_CALC"


class EmissionFactorNotFound(CalculationException):
    """No emission factor matches the lookup key in the store or fallback table.

    Always fatal to the enclosing scope calculation: there is no safe
    default emission factor.
    """

    def __init__(
        self,
        category: str,
        subcategory: str,
        scope: int,
        region: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.category = category
        self.subcategory = subcategory
        self.scope = scope
        self.region = region
        message = message or (
            f"Emission factor not found for {category}/{subcategory} "
            f"in scope {scope}"
            + (f" (region {region})" if region else "")
        )
        super().__init__(
            message,
            component="EmissionFactorResolver",
            context={
                "category": category,
                "subcategory": subcategory,
                "scope": scope,
                "region": region,
            },
        )


class UnsupportedConversion(CalculationException):
    """No conversion entry exists for a (from_unit, to_unit) pair."""

    def __init__(self, from_unit: str, to_unit: str):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(
            f"Cannot convert from {from_unit} to {to_unit}",
            component="UnitConverter",
            context={"from_unit": from_unit, "to_unit": to_unit},
        )


class UnitConversionFailed(CalculationException):
    """A scope calculator could not normalize activity data to the factor unit."""

    def __init__(
        self,
        from_unit: str,
        to_unit: str,
        scope: int,
        cause: Optional[Exception] = None,
    ):
        self.from_unit = from_unit
        self.to_unit = to_unit
        self.scope = scope
        context: Dict[str, Any] = {
            "from_unit": from_unit,
            "to_unit": to_unit,
            "scope": scope,
        }
        if cause is not None:
            context["cause"] = str(cause)
        super().__init__(
            f"Scope {scope} unit conversion failed: cannot convert "
            f"{from_unit} to {to_unit}",
            component=f"Scope{scope}Calculator",
            context=context,
        )


class InvalidScope3Category(CalculationException):
    """Scope 3 category number is outside 1-15 or has no mapping."""

    def __init__(self, category_number: Any):
        self.category_number = category_number
        super().__init__(
            f"Invalid Scope 3 category: {category_number}",
            component="Scope3Calculator",
            context={"category_number": category_number, "valid_range": [1, 15]},
        )


class CalculationFailed(CalculationException):
    """An entry-level calculation failed and aborted the whole assessment.

    The original error is chained as ``__cause__`` and summarised in the
    context.
    """

    def __init__(self, scope: int, index: int, cause: Exception):
        self.scope = scope
        self.index = index
        self.cause = cause
        super().__init__(
            f"Scope {scope} calculation failed: {cause}",
            component="FootprintEngine",
            context={
                "scope": scope,
                "entry_index": index,
                "cause_type": type(cause).__name__,
                "cause": str(cause),
            },
        )


# ==============================================================================
# Data Exceptions
# ==============================================================================

class DataException(CarbonMarketException):
    """Base exception for data-access errors."""

    ERROR_PREFIX = "CM_DATA"


class DataAccessError(DataException):
    """Data access failed (permissions, network, driver errors).

    Propagated unchanged through the engine; never masked by the
    fallback factor table.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        data_source: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context = context or {}
        if data_source:
            context["data_source"] = data_source
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


class FactorStoreUnavailable(DataException):
    """The factor store or its dataset is absent.

    Signals the resolver to use the built-in fallback table.
    """

    def __init__(self, message: str, data_source: Optional[str] = None):
        super().__init__(
            message,
            component="FactorStore",
            context={"data_source": data_source} if data_source else None,
        )


class PersistenceError(DataException):
    """Writing or reading an assessment record failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context: Dict[str, Any] = {}
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, component="AssessmentRepository", context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with the full ``__cause__`` chain
    """
    lines: List[str] = []
    current: Optional[BaseException] = exc

    while current is not None:
        if isinstance(current, CarbonMarketException):
            lines.append(f"[{current.error_code}] {current.message}")
            if current.context:
                lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = current.__cause__

    return "\n".join(lines)


def is_retriable(exc: BaseException) -> bool:
    """Check if an operation that raised ``exc`` may succeed on retry.

    Only data-access failures are retriable; validation and calculation
    errors are deterministic.
    """
    if isinstance(exc, (ValidationError, CalculationException)):
        return False
    return isinstance(exc, DataAccessError)


__all__ = [
    "CarbonMarketException",
    "ValidationError",
    "CalculationException",
    "EmissionFactorNotFound",
    "UnsupportedConversion",
    "UnitConversionFailed",
    "InvalidScope3Category",
    "CalculationFailed",
    "DataException",
    "DataAccessError",
    "FactorStoreUnavailable",
    "PersistenceError",
    "format_exception_chain",
    "is_retriable",
]
