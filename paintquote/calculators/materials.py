from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any, Mapping, Optional

from ..domain.models import (
    ApplicationMethod,
    GallonRounding,
    ProductConfig,
    ProductSetEntry,
    Tier,
)
from ..domain.results import MaterialSettings
from ..engine.coercion import to_decimal, to_positive_decimal, to_positive_int
from ..engine.rate_tables import MaterialDefaults
from ..engine.tier_selector import select_tier_product

D = Decimal

QUARTER = D("0.25")


@dataclass(frozen=True)
class MaterialLine:
    cost: D
    gallons: D
    raw_gallons: D
    coats: int
    coverage: D
    price_per_gallon: D
    product_id: Optional[str] = None
    tier_used: Optional[Tier] = None
    unconfigured: bool = False
    reason: Optional[str] = None


# -----------------------------
# Rounding policies
# -----------------------------


def round_gallons_whole(gallons: D) -> D:
    """Per-item path: whole gallons, always up."""
    return gallons.to_integral_value(rounding=ROUND_CEILING)


def round_gallons_quarter(gallons: D) -> D:
    """Legacy whole-surface path: up to the next quarter gallon."""
    return (gallons / QUARTER).to_integral_value(rounding=ROUND_CEILING) * QUARTER


_ROUNDING = {
    GallonRounding.WHOLE: round_gallons_whole,
    GallonRounding.QUARTER: round_gallons_quarter,
}


def round_gallons(gallons: D, policy: GallonRounding | str) -> D:
    return _ROUNDING[GallonRounding(policy)](gallons)


# -----------------------------
# Settings resolution
# -----------------------------


def _rule_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def resolve_material_settings(
    defaults: MaterialDefaults,
    rules: Optional[Mapping[str, Any]] = None,
    *,
    include_materials: Optional[bool] = None,
    coverage: Optional[D] = None,
    application_method: Optional[ApplicationMethod | str] = None,
    coats: Optional[int] = None,
) -> MaterialSettings:
    """
    request value -> scheme rule -> table default, for each setting.
    Spray caps coverage, then coverage is clamped to the allowed range.
    """
    rules = rules or {}

    include = include_materials
    if include is None:
        include = _rule_bool(rules.get("includeMaterials"))
    if include is None:
        include = True

    cov = coverage if coverage is not None and coverage > 0 else None
    if cov is None:
        cov = to_positive_decimal(rules.get("coverage"), defaults.coverage)

    method_raw = application_method or rules.get("applicationMethod") or ApplicationMethod.ROLL.value
    try:
        method = ApplicationMethod(str(getattr(method_raw, "value", method_raw)).strip().lower())
    except ValueError:
        method = ApplicationMethod.ROLL

    if method == ApplicationMethod.SPRAY and cov > defaults.spray_coverage_cap:
        cov = defaults.spray_coverage_cap
    cov = defaults.clamp_coverage(cov)

    n_coats = coats if coats is not None and coats > 0 else None
    if n_coats is None:
        n_coats = to_positive_int(rules.get("coats"), defaults.coats)

    return MaterialSettings(
        include_materials=include,
        coverage=cov,
        application_method=method.value,
        coats=n_coats,
        cost_per_gallon=to_positive_decimal(rules.get("costPerGallon"), defaults.cost_per_gallon),
    )


# -----------------------------
# Per item
# -----------------------------


def gallons_needed(quantity: D, coats: int, coverage: D, waste_factor: D) -> D:
    return quantity * D(coats) / coverage * waste_factor


def calculate_item_material(
    quantity: D,
    entry: Optional[ProductSetEntry],
    tier: Tier | str,
    products: Mapping[str, ProductConfig],
    material_settings: MaterialSettings,
    defaults: MaterialDefaults,
    *,
    item_coats: Optional[int] = None,
    rounding: GallonRounding | str = GallonRounding.WHOLE,
) -> MaterialLine:
    """
    Gallons and paint cost for one sqft item.
    A missing selection or product prices at 0 and is flagged unconfigured.
    """
    coats = item_coats if item_coats is not None and item_coats > 0 else material_settings.coats
    coverage = material_settings.coverage
    price = material_settings.cost_per_gallon

    def unconfigured(reason: str, product_id: Optional[str] = None, tier_used: Optional[Tier] = None) -> MaterialLine:
        return MaterialLine(
            cost=D("0"),
            gallons=D("0"),
            raw_gallons=D("0"),
            coats=coats,
            coverage=coverage,
            price_per_gallon=D("0"),
            product_id=product_id,
            tier_used=tier_used,
            unconfigured=True,
            reason=reason,
        )

    if entry is None:
        return unconfigured("no_product_selection")

    selection = select_tier_product(entry.products, tier)
    if not selection.configured:
        return unconfigured(selection.reason or "unconfigured_tier")

    product = products.get(selection.product_id)
    if product is None:
        return unconfigured("product_not_found", selection.product_id, selection.tier_used)

    if product.sheens:
        sheen_price = to_decimal(product.sheens[0].price)
        if sheen_price is not None and sheen_price > 0:
            price = sheen_price
    if product.default_coats:
        coats = product.default_coats
    if product.coverage_sqft_per_gal:
        coverage = defaults.clamp_coverage(product.coverage_sqft_per_gal)

    raw = gallons_needed(quantity, coats, coverage, defaults.waste_factor)
    gallons = round_gallons(raw, rounding)
    return MaterialLine(
        cost=gallons * price,
        gallons=gallons,
        raw_gallons=raw,
        coats=coats,
        coverage=coverage,
        price_per_gallon=price,
        product_id=selection.product_id,
        tier_used=selection.tier_used,
    )
