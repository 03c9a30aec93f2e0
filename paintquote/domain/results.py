from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .models import PricingModel, TaxBase

D = Decimal


# -----------------------------
# Per-item / per-area trace
# -----------------------------


@dataclass
class ItemBreakdown:
    """
    One priced line inside an area. Numbers are unrounded here; the output
    contract quantizes them.
    """

    category_name: str
    measurement_unit: str
    quantity: D
    number_of_coats: int = 0
    labor_cost: D = D("0")
    material_cost: D = D("0")
    prep_cost: D = D("0")
    add_on_cost: D = D("0")
    rate: Optional[D] = None
    rate_source: Optional[str] = None
    hours: Optional[D] = None
    gallons: D = D("0")
    coverage: Optional[D] = None
    price_per_gallon: Optional[D] = None
    product_id: Optional[str] = None
    tier_used: Optional[str] = None
    unconfigured: bool = False
    unconfigured_reason: Optional[str] = None


@dataclass
class AreaBreakdown:
    area_name: str
    area_id: Optional[str] = None
    items: List[ItemBreakdown] = field(default_factory=list)

    @property
    def labor_cost(self) -> D:
        return sum((i.labor_cost for i in self.items), D("0"))

    @property
    def material_cost(self) -> D:
        return sum((i.material_cost for i in self.items), D("0"))


@dataclass(frozen=True)
class MarkupBreakdown:
    percent: D
    amount: D
    with_markup: D


@dataclass(frozen=True)
class MaterialSettings:
    include_materials: bool
    coverage: D
    application_method: str
    coats: int
    cost_per_gallon: D


# -----------------------------
# Final result
# -----------------------------


@dataclass(frozen=True)
class PricingResult:
    model: PricingModel
    currency: str

    labor_total: D
    material_total: D
    prep_total: D
    add_ons_total: D

    labor_markup: MarkupBreakdown
    material_markup: MarkupBreakdown

    overhead_percent: D
    overhead: D
    subtotal_before_profit: D
    profit_percent: D
    profit_amount: D

    subtotal: D
    tax_base: TaxBase
    tax_percent: D
    tax: D
    total: D

    deposit_percent: D
    deposit: D
    balance: D

    material_settings: MaterialSettings
    breakdown: List[AreaBreakdown] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    quote_validity_days: int = 30
    turnkey: Optional[Dict[str, Any]] = None
    trace: Optional[List[Dict[str, Any]]] = None

    @property
    def unconfigured_items(self) -> List[ItemBreakdown]:
        return [i for a in self.breakdown for i in a.items if i.unconfigured]
