"""
Ingestion boundary: raw request payload -> CalculationRequest.

Everything loosely typed is resolved here (pydantic validation, product-set
shape detection, numeric coercion). The engine only sees domain objects.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Union

from pydantic import ValidationError

from ..domain.errors import PricingInputError
from ..domain.models import (
    ApplicationMethod,
    Area,
    CalculationRequest,
    Dimensions,
    LaborItem,
    LegacySurface,
    MeasurementUnit,
    PricingScheme,
    TaxBase,
    Tier,
)
from ..schemas.calculation_input_v1 import AreaV1, CalculationRequestV1, LaborItemV1, LegacySurfaceV1
from .normalizer import normalize_product_sets

D = Decimal


def _labor_item(v: LaborItemV1) -> LaborItem:
    dims = None
    if v.dimensions is not None:
        dims = Dimensions(length=v.dimensions.length, width=v.dimensions.width, height=v.dimensions.height)
    return LaborItem(
        category_name=v.category_name.strip(),
        measurement_unit=MeasurementUnit(v.measurement_unit),
        quantity=v.quantity,
        labor_rate=v.labor_rate if v.labor_rate is not None and v.labor_rate > 0 else D("0"),
        number_of_coats=v.number_of_coats,
        selected=v.selected,
        dimensions=dims,
    )


def _surface(v: LegacySurfaceV1) -> LegacySurface:
    return LegacySurface(
        type=v.type.strip(),
        sqft=v.sqft,
        selected=v.selected,
        condition=v.condition,
        needs_prep=v.needs_prep,
        textured=v.textured,
        high_ceiling=v.high_ceiling,
        vaulted=v.vaulted,
        units=v.units,
    )


def _area(v: AreaV1) -> Area:
    return Area(
        name=v.name,
        id=v.id,
        items=tuple(_labor_item(i) for i in v.items),
        surfaces=tuple(_surface(s) for s in v.surfaces),
    )


def build_request(payload: Union[CalculationRequestV1, Mapping[str, Any]]) -> CalculationRequest:
    """
    Raises PricingInputError (or its ProductSetValidationError subclass)
    when the payload cannot be interpreted.
    """
    if isinstance(payload, CalculationRequestV1):
        v = payload
    else:
        try:
            v = CalculationRequestV1.model_validate(payload)
        except ValidationError as e:
            raise PricingInputError(
                "INVALID_REQUEST",
                "calculation request failed validation",
                {"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    return CalculationRequest(
        scheme=PricingScheme(type=v.scheme_type, pricing_rules=dict(v.pricing_rules), id=v.scheme_id),
        areas=tuple(_area(a) for a in v.areas),
        product_sets=tuple(normalize_product_sets(v.product_sets)),
        home_sqft=v.home_sqft,
        job_type=v.job_type,
        selected_tier=Tier(v.selected_tier),
        include_materials=v.include_materials,
        coverage=v.coverage,
        application_method=ApplicationMethod(v.application_method) if v.application_method else None,
        coats=v.coats,
        condition_modifier=v.condition_modifier,
        tax_base=TaxBase(v.tax_base) if v.tax_base else None,
        debug_trace=v.debug_trace,
    )
