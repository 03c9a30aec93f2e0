"""
Pricing for areas stored in the pre-labor-item shape: a list of painted
surfaces measured in square feet, with prep and add-on flags.

Surface labor reads the scheme's pricingRules directly: the rule for the
surface type, else the `walls` rule. Tenant labor rates and good/better/best
rates apply to labor items only. Prep and add-ons are reported separately
and enter layering before overhead.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from ..domain.models import (
    GallonRounding,
    LegacySurface,
    MeasurementUnit,
    PricingModel,
    ProductConfig,
    ProductSetEntry,
)
from ..domain.results import ItemBreakdown, MaterialSettings
from ..engine.coercion import to_positive_decimal, to_positive_int
from ..engine.rate_tables import RateTables
from ..engine.scheme_resolver import resolve_model
from .labor import LaborLine, LaborRates, ceil_to_tenth, scheme_rule
from .materials import calculate_item_material

D = Decimal


def _rule_price(rule: Mapping[str, Any], default: D) -> Tuple[D, str]:
    price = to_positive_decimal(rule.get("price"))
    if price is None:
        return default, "legacy_default"
    return price, "scheme_rule"


def _nested(rules: Mapping[str, Any], key: str, field: str) -> Any:
    value = rules.get(key)
    return value.get(field) if isinstance(value, Mapping) else None


def surface_labor(
    model: PricingModel,
    scheme_type: Optional[str],
    surface: LegacySurface,
    rules: Mapping[str, Any],
    tables: RateTables,
) -> Tuple[LaborLine, MeasurementUnit, D]:
    """
    Labor for one surface + the unit and quantity it was charged on.

    rate_based_sqft     sqft x (rule price or 0.55)
    production_based    ceil_0.1(sqft / productivity_rate) x hourly_rate x crew_size
    flat_rate_unit      units (default 1) x (rule price or 85)
    room_flat_rate      rule price or 325, once per surface
    unknown type        sqft x (rule price or 0.75)
    """
    defaults = tables.legacy.labor
    rule = scheme_rule(rules, surface.type)
    sqft = surface.sqft
    type_key = str(scheme_type or model.value).strip().lower()

    if resolve_model(type_key) is None:
        rate, source = _rule_price(rule, defaults.fallback_sqft_rate)
        return LaborLine(cost=sqft * rate, rate=rate, rate_source=source), MeasurementUnit.SQFT, sqft

    if model == PricingModel.PRODUCTION_BASED:
        productivity = to_positive_decimal(rules.get("productivity_rate"))
        source = "scheme_rule"
        if productivity is None:
            productivity, source = defaults.productivity_rate, "legacy_default"
        hourly = to_positive_decimal(_nested(rules, "hourly_rate", "price"), defaults.hourly_rate)
        crew = to_positive_int(_nested(rules, "crew_size", "value"), defaults.crew_size)
        hours = ceil_to_tenth(sqft / productivity)
        line = LaborLine(cost=hours * hourly * D(crew), rate=productivity, rate_source=source, hours=hours)
        return line, MeasurementUnit.SQFT, sqft

    if model == PricingModel.FLAT_RATE_UNIT:
        if type_key == "room_flat_rate":
            price, source = _rule_price(rule, defaults.room_flat_rate)
            return LaborLine(cost=price, rate=price, rate_source=source), MeasurementUnit.UNIT, D("1")
        units = D(surface.units or 1)
        price, source = _rule_price(rule, defaults.unit_price)
        return LaborLine(cost=units * price, rate=price, rate_source=source), MeasurementUnit.UNIT, units

    if model == PricingModel.RATE_BASED_SQFT:
        rate, source = _rule_price(rule, defaults.sqft_rate)
        return LaborLine(cost=sqft * rate, rate=rate, rate_source=source), MeasurementUnit.SQFT, sqft

    raise ValueError(f"legacy surfaces are not priced under {model.value}")


def prep_cost(surface: LegacySurface, rule: Mapping[str, Any], tables: RateTables) -> D:
    if (surface.condition or "").strip().lower() != "damaged" and not surface.needs_prep:
        return D("0")
    rate = to_positive_decimal(rule.get("prep_rate"), tables.legacy.prep_rate)
    return surface.sqft * rate


def add_on_cost(surface: LegacySurface, tables: RateTables) -> D:
    cost = D("0")
    if surface.textured:
        cost += surface.sqft * tables.legacy.textured_rate
    if surface.high_ceiling or surface.vaulted:
        cost += surface.sqft * tables.legacy.high_ceiling_rate
    return cost


def price_legacy_surface(
    model: PricingModel,
    surface: LegacySurface,
    entry: Optional[ProductSetEntry],
    *,
    rates: LaborRates,
    material_settings: MaterialSettings,
    products: Mapping[str, ProductConfig],
    scheme_type: Optional[str] = None,
    rounding: GallonRounding | str = GallonRounding.QUARTER,
) -> Optional[ItemBreakdown]:
    """
    None for unselected surfaces and surfaces without square footage.
    scheme_type is the raw type from the scheme (None => the model's own name).
    """
    if not surface.selected or surface.sqft <= 0:
        return None

    tables = rates.tables
    labor, unit, quantity = surface_labor(model, scheme_type, surface, rates.pricing_rules, tables)

    line = ItemBreakdown(
        category_name=surface.type,
        measurement_unit=unit.value,
        quantity=quantity,
        number_of_coats=material_settings.coats,
        labor_cost=labor.cost,
        prep_cost=prep_cost(surface, scheme_rule(rates.pricing_rules, surface.type), tables),
        add_on_cost=add_on_cost(surface, tables),
        rate=labor.rate,
        rate_source=labor.rate_source,
        hours=labor.hours,
    )

    if material_settings.include_materials and model != PricingModel.FLAT_RATE_UNIT:
        mat = calculate_item_material(
            surface.sqft,
            entry,
            rates.tier,
            products,
            material_settings,
            tables.materials,
            rounding=rounding,
        )
        line.material_cost = mat.cost
        line.gallons = mat.gallons
        line.coverage = mat.coverage
        line.number_of_coats = mat.coats
        line.price_per_gallon = mat.price_per_gallon
        line.product_id = mat.product_id
        line.tier_used = mat.tier_used.value if mat.tier_used else None
        line.unconfigured = mat.unconfigured
        line.unconfigured_reason = mat.reason

    return line
