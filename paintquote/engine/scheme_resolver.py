from __future__ import annotations

from typing import Dict, Optional

from ..domain.errors import CalculationSkipped
from ..domain.models import PricingModel

# canonical + legacy scheme types -> canonical model
SCHEME_ALIASES: Dict[str, PricingModel] = {
    "turnkey": PricingModel.TURNKEY,
    "sqft_turnkey": PricingModel.TURNKEY,
    "rate_based_sqft": PricingModel.RATE_BASED_SQFT,
    "sqft_labor_paint": PricingModel.RATE_BASED_SQFT,
    "production_based": PricingModel.PRODUCTION_BASED,
    "hourly_time_materials": PricingModel.PRODUCTION_BASED,
    "flat_rate_unit": PricingModel.FLAT_RATE_UNIT,
    "unit_pricing": PricingModel.FLAT_RATE_UNIT,
    "room_flat_rate": PricingModel.FLAT_RATE_UNIT,
}

DISPLAY_NAMES: Dict[PricingModel, str] = {
    PricingModel.TURNKEY: "Standard Turnkey Pricing",
    PricingModel.RATE_BASED_SQFT: "Rate-Based Pricing (Labor + Materials)",
    PricingModel.PRODUCTION_BASED: "Production-Based Pricing (Time & Materials)",
    PricingModel.FLAT_RATE_UNIT: "Flat Rate Unit Pricing",
}


def resolve_model(scheme_type: Optional[str]) -> Optional[PricingModel]:
    """Canonical model for a scheme type, or None when the type is unknown."""
    if not scheme_type:
        return None
    return SCHEME_ALIASES.get(str(scheme_type).strip().lower())


def resolve_model_for_job(
    scheme_type: Optional[str], *, has_areas: bool, has_product_sets: bool
) -> PricingModel:
    """
    Best-effort resolution: unknown/missing types price as rate_based_sqft
    when the job has areas and product selections; otherwise there is
    nothing sensible to price and the calculation is skipped.
    """
    model = resolve_model(scheme_type)
    if model is not None:
        return model
    if has_areas and has_product_sets:
        return PricingModel.RATE_BASED_SQFT
    raise CalculationSkipped(
        "unknown_scheme_without_data",
        {
            "scheme_type": scheme_type,
            "has_areas": has_areas,
            "has_product_sets": has_product_sets,
        },
    )


def model_display_name(model: PricingModel) -> str:
    return DISPLAY_NAMES[model]
