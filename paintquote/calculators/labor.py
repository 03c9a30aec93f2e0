from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Any, Mapping, Optional

from ..domain.models import ContractorSettings, LaborItem, MeasurementUnit, PricingModel, Tier
from ..engine.coercion import to_positive_decimal
from ..engine.rate_tables import RateTables

D = Decimal

TENTH = D("0.1")


@dataclass(frozen=True)
class LaborRates:
    """Rate sources for one calculation. Built once, shared by every item."""

    tables: RateTables
    settings: ContractorSettings
    tier: Tier = Tier.BETTER
    labor_rates: Mapping[str, D] = field(default_factory=dict)
    pricing_rules: Mapping[str, Any] = field(default_factory=dict)
    turnkey_rate: Optional[D] = None


@dataclass(frozen=True)
class LaborLine:
    cost: D
    rate: Optional[D]
    rate_source: str
    hours: Optional[D] = None


def ceil_to_tenth(value: D) -> D:
    """Round up to one decimal: 3.01 -> 3.1, 3.0 -> 3.0."""
    return ((value / TENTH).to_integral_value(rounding=ROUND_CEILING) * TENTH).quantize(TENTH)


def category_key(category_name: str) -> str:
    """'Accent Wall' -> 'accent_wall'"""
    return "_".join((category_name or "").strip().lower().split())


def scheme_rule(rules: Mapping[str, Any], category_name: str) -> Mapping[str, Any]:
    """pricingRules entry for a category; `walls` stands in for unknown ones."""
    for key in (category_key(category_name), "walls"):
        rule = rules.get(key)
        if isinstance(rule, Mapping):
            return rule
    return {}


# -----------------------------
# Per model
# -----------------------------


def _turnkey(item: LaborItem, quantity: D, rates: LaborRates) -> LaborLine:
    if rates.turnkey_rate is None:
        raise ValueError("turnkey labor requires an adjusted turnkey rate")
    return LaborLine(cost=quantity * rates.turnkey_rate, rate=rates.turnkey_rate, rate_source="turnkey_adjusted")


def _gbb_category_rate(rules: Mapping[str, Any], category_name: str, tier: Tier) -> Optional[D]:
    rule = scheme_rule(rules, category_name)
    gbb = rule.get("gbbRates")
    if not isinstance(gbb, Mapping):
        return None
    return to_positive_decimal(gbb.get(tier.value))


def _rate_based(item: LaborItem, quantity: D, rates: LaborRates) -> LaborLine:
    rate = rates.labor_rates.get((item.category_name or "").strip().lower())
    source = "labor_rates"
    if rate is None:
        rate, source = item.labor_rate, "inline"

    gbb = _gbb_category_rate(rates.pricing_rules, item.category_name, rates.tier)
    if gbb is not None:
        rate, source = gbb, "gbb_rules"

    return LaborLine(cost=quantity * rate, rate=rate, rate_source=source)


def _production(item: LaborItem, quantity: D, rates: LaborRates) -> LaborLine:
    hourly = rates.settings.hourly_labor_rate
    crew = D(rates.settings.crew_size)

    if item.measurement_unit == MeasurementUnit.HOUR:
        return LaborLine(cost=quantity * hourly * crew, rate=hourly, rate_source="hourly", hours=quantity)

    if item.measurement_unit in (MeasurementUnit.SQFT, MeasurementUnit.LINEAR_FOOT):
        category = rates.tables.classify_production(item.category_name)
        production_rate, source = rates.tables.production_rate(category, rates.settings)
        hours = ceil_to_tenth(quantity / production_rate)
        return LaborLine(cost=hours * hourly * crew, rate=production_rate, rate_source=source, hours=hours)

    return LaborLine(cost=quantity * item.labor_rate, rate=item.labor_rate, rate_source="inline")


def _flat_rate(item: LaborItem, quantity: D, rates: LaborRates) -> LaborLine:
    category = rates.tables.classify(item.category_name)
    found = rates.tables.flat_rate_price(category, item.category_name, rates.settings)
    if found is not None:
        price, source = found
    elif item.labor_rate > 0:
        price, source = item.labor_rate, "inline"
    else:
        price, source = D("0"), "none"
    return LaborLine(cost=quantity * price, rate=price, rate_source=source)


_DISPATCH = {
    PricingModel.TURNKEY: _turnkey,
    PricingModel.RATE_BASED_SQFT: _rate_based,
    PricingModel.PRODUCTION_BASED: _production,
    PricingModel.FLAT_RATE_UNIT: _flat_rate,
}


def calculate_item_labor(model: PricingModel, item: LaborItem, quantity: D, rates: LaborRates) -> LaborLine:
    """
    Labor cost of one selected item with a positive quantity.
    The caller filters unselected and zero-quantity items.
    """
    if quantity < 0:
        raise ValueError(f"quantity must be non-negative, got {quantity}")
    return _DISPATCH[PricingModel(model)](item, quantity, rates)
