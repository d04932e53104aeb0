# -*- coding: utf-8 -*-
"""
Carbon Calculator REST API

Thin FastAPI handlers over FootprintService, mounted at
``/api/carbon-calculator``:

    POST  /calculate          Full assessment or single-entry (simple) mode
    GET   /emission-factors   Browse factors (category, scope, region, search)
    POST  /emission-factors   ``{"action": "get_categories"}`` dropdown tree
    GET   /assessments        Stored assessments (``?id=`` for one)
    PATCH /assessments        Change the verification status of an assessment

Errors are returned as ``{"error": message}``. The caller identity used for
persistence is taken from the ``X-User-Id`` header; anonymous calculations
are computed but not stored.
"""

import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from carbonmarket.exceptions import (
    CalculationFailed,
    DataException,
    PersistenceError,
    ValidationError,
)
from carbonmarket.footprint.factor_resolver import group_factors
from carbonmarket.footprint.factor_store import ALL_REGIONS
from carbonmarket.footprint.models import GLOBAL_REGION, EmissionFactor

logger = logging.getLogger(__name__)

API_PREFIX = "/api/carbon-calculator"

SCOPE_NAMES: Dict[int, str] = {
    1: "Scope 1 - Direct Emissions",
    2: "Scope 2 - Indirect Energy",
    3: "Scope 3 - Other Indirect",
}

CATEGORY_NAMES: Dict[str, str] = {
    "fuel": "Fuels & Combustion",
    "transport": "Transportation",
    "refrigerant": "Refrigerants & Gases",
    "electricity": "Electricity",
    "energy": "Other Energy",
    "material": "Materials & Products",
    "fuel_upstream": "Upstream Fuel Activities",
    "electricity_upstream": "Upstream Electricity",
    "waste": "Waste Management",
    "utilities": "Water & Utilities",
}

# Applied in order after title-casing
_SUBCATEGORY_REPLACEMENTS = (
    ("No2", "No. 2"),
    ("Hfc", "HFC"),
    ("Lpg", "LPG"),
    ("Us", "US"),
    ("Uk", "UK"),
)

FALLBACK_NOTE = (
    "Using mock data - emission_factors table not found. "
    "Please run setup-carbon-calculator.sql"
)
ASSESSMENT_REQUIRED = (
    "Assessment organization name and year are required for full assessment mode"
)
PERIOD_ORDER = "Reporting period start must be before end date"


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def _capitalize_words(text: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text.replace("_", " "))


def format_category_name(category: str) -> str:
    """Display name of a factor category (``fuel`` -> ``Fuels & Combustion``)."""
    return CATEGORY_NAMES.get(category) or _capitalize_words(category)


def format_subcategory_name(subcategory: str) -> str:
    """Display name of a subcategory (``fuel_oil_no2`` -> ``Fuel Oil No. 2``)."""
    label = _capitalize_words(subcategory)
    for old, new in _SUBCATEGORY_REPLACEMENTS:
        label = label.replace(old, new)
    return label


def build_category_tree(factors: List[EmissionFactor]) -> Dict[int, Dict[str, Any]]:
    """Scope -> category -> unique subcategories, for selection dropdowns."""
    scopes: Dict[int, Dict[str, Any]] = {
        scope: {"name": name, "categories": {}} for scope, name in SCOPE_NAMES.items()
    }
    ordered = sorted(factors, key=lambda f: (f.scope, f.category, f.subcategory))
    for factor in ordered:
        categories = scopes[factor.scope]["categories"]
        entry = categories.setdefault(factor.category, {
            "name": format_category_name(factor.category),
            "subcategories": [],
        })
        if any(s["value"] == factor.subcategory for s in entry["subcategories"]):
            continue
        entry["subcategories"].append({
            "value": factor.subcategory,
            "label": format_subcategory_name(factor.subcategory),
            "unit": factor.unit,
        })
    return scopes


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _first(mapping: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if mapping.get(name) not in (None, ""):
            return mapping[name]
    return None


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def check_assessment_header(assessment: Any) -> Optional[str]:
    """Error message for missing metadata or a reversed period, else None."""
    if not isinstance(assessment, dict):
        return ASSESSMENT_REQUIRED
    if not _first(assessment, "organizationName", "organization_name"):
        return ASSESSMENT_REQUIRED
    if not _first(assessment, "assessmentYear", "assessment_year"):
        return ASSESSMENT_REQUIRED
    start = _parse_date(_first(assessment, "reportingPeriodStart", "reporting_period_start"))
    end = _parse_date(_first(assessment, "reportingPeriodEnd", "reporting_period_end"))
    if start is not None and end is not None and start >= end:
        return PERIOD_ORDER
    return None


def _is_simple_request(body: Dict[str, Any]) -> bool:
    return bool(
        _first(body, "fuelType", "fuel_type")
        and body.get("consumption") is not None
        and body.get("unit")
    )


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def create_router(service: Any) -> APIRouter:
    """Build the carbon calculator router bound to ``service``.

    Args:
        service: FootprintService (or any object with the same methods).

    Returns:
        FastAPI APIRouter.
    """
    router = APIRouter(prefix=API_PREFIX, tags=["carbon-calculator"])

    # ------------------------------------------------------------------
    # POST /calculate
    # ------------------------------------------------------------------
    @router.post("/calculate")
    async def post_calculate(
        request: Dict[str, Any],
        x_user_id: Optional[str] = Header(None),
    ) -> Any:
        """Calculate a full assessment, or a single Scope 1 entry."""
        if _is_simple_request(request):
            return await _simple(request)

        message = check_assessment_header(request.get("assessment"))
        if message:
            return _error(message, 400)

        try:
            result = await service.calculate_footprint(request, owner_id=x_user_id)
        except ValidationError as exc:
            return _error(exc.message, 400)
        except CalculationFailed as exc:
            return _error(str(exc), 400)
        except Exception:
            logger.exception("Carbon calculation error")
            return _error("Internal server error during calculation", 500)
        return result.model_dump(by_alias=True, mode="json")

    async def _simple(request: Dict[str, Any]) -> Any:
        try:
            result = await service.calculate_simple(
                _first(request, "fuelType", "fuel_type"),
                request.get("consumption"),
                request["unit"],
                source_category=_first(request, "sourceCategory", "source_category"),
                region=request.get("region"),
            )
        except ValidationError as exc:
            if "consumption" in exc.context.get("invalid_fields", {}):
                return _error(exc.message, 400)
            return _error(f"Calculation failed: {exc.message}", 400)
        except Exception as exc:
            logger.warning("Simple calculation failed: %s", exc)
            return _error(f"Calculation failed: {exc}", 400)

        calculation = result.model_dump(by_alias=True, mode="json")
        return {
            "totalEmissions": result.total_emissions,
            "emissionFactor": result.emission_factor,
            "calculation": calculation,
            "note": "Simple calculation mode",
        }

    # ------------------------------------------------------------------
    # GET /emission-factors
    # ------------------------------------------------------------------
    @router.get("/emission-factors")
    async def get_emission_factors(
        category: Optional[str] = Query(None),
        scope: Optional[int] = Query(None),
        region: str = Query(GLOBAL_REGION),
        search: Optional[str] = Query(None),
    ) -> Any:
        """Browse emission factors, grouped by scope then category."""
        try:
            listing = await service.list_factors(category, scope, region, search)
        except DataException as exc:
            logger.error("Error fetching emission factors: %s", exc)
            return _error("Failed to fetch emission factors", 500)

        factors = [f.model_dump(mode="json") for f in listing.factors]
        grouped = {
            str(scope_number): {
                cat: [f.model_dump(mode="json") for f in items]
                for cat, items in categories.items()
            }
            for scope_number, categories in group_factors(listing.factors).items()
        }
        body: Dict[str, Any] = {
            "factors": factors,
            "grouped": grouped,
            "total": len(factors),
        }
        if listing.from_fallback:
            body["note"] = FALLBACK_NOTE
        return body

    # ------------------------------------------------------------------
    # POST /emission-factors
    # ------------------------------------------------------------------
    @router.post("/emission-factors")
    async def post_emission_factors(request: Dict[str, Any]) -> Any:
        """Category and subcategory tree for selection dropdowns."""
        if request.get("action") != "get_categories":
            return _error("Invalid action", 400)
        try:
            listing = await service.list_factors(region=ALL_REGIONS, limit=None)
        except DataException as exc:
            logger.error("Error fetching categories: %s", exc)
            return _error("Failed to fetch categories", 500)
        tree = build_category_tree(listing.factors)
        return {"scopes": {str(scope): data for scope, data in tree.items()}}

    # ------------------------------------------------------------------
    # GET /assessments
    # ------------------------------------------------------------------
    @router.get("/assessments")
    async def get_assessments(
        assessment_id: Optional[str] = Query(None, alias="id"),
        details: bool = Query(False),
        x_user_id: Optional[str] = Header(None),
    ) -> Any:
        """Stored assessments of the caller, or one by id.

        Anonymous callers own nothing: the list is empty and lookups by id
        answer 404.
        """
        if service.repository is None:
            return _error("Assessment storage is not configured", 503)
        try:
            if assessment_id:
                assessment = None
                if x_user_id:
                    assessment = await service.get_assessment(
                        assessment_id, include_details=details,
                    )
                if assessment is None or assessment["owner_id"] != x_user_id:
                    return _error("Assessment not found", 404)
                return {"assessment": assessment}
            if not x_user_id:
                return {"assessments": []}
            return {"assessments": await service.list_assessments(owner_id=x_user_id)}
        except DataException as exc:
            logger.error("Assessments API error: %s", exc)
            return _error("Internal server error", 500)

    # ------------------------------------------------------------------
    # PATCH /assessments
    # ------------------------------------------------------------------
    @router.patch("/assessments")
    async def patch_assessment(
        request: Dict[str, Any],
        x_user_id: Optional[str] = Header(None),
    ) -> Any:
        """Change the verification status of one of the caller's assessments."""
        if service.repository is None:
            return _error("Assessment storage is not configured", 503)
        if not x_user_id:
            return _error("Unauthorized", 401)
        assessment_id = _first(request, "assessmentId", "assessment_id")
        status = request.get("status")
        if not assessment_id or not status:
            return _error("Assessment ID and status are required", 400)
        try:
            existing = await service.get_assessment(assessment_id)
            if existing is None or existing["owner_id"] != x_user_id:
                return _error("Assessment not found", 404)
            assessment = await service.update_verification_status(assessment_id, status)
        except ValidationError as exc:
            return _error(exc.message, 400)
        except PersistenceError as exc:
            if "not found" in exc.message.lower():
                return _error("Assessment not found", 404)
            logger.error("Assessment update error: %s", exc)
            return _error("Internal server error", 500)
        except DataException as exc:
            logger.error("Assessment update error: %s", exc)
            return _error("Internal server error", 500)
        return {"assessment": assessment}

    return router


__all__ = [
    "API_PREFIX",
    "CATEGORY_NAMES",
    "SCOPE_NAMES",
    "build_category_tree",
    "check_assessment_header",
    "create_router",
    "format_category_name",
    "format_subcategory_name",
]
