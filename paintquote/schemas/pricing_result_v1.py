# paintquote/schemas/pricing_result_v1.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..domain.results import AreaBreakdown, ItemBreakdown, MarkupBreakdown, PricingResult
from ..engine.scheme_resolver import model_display_name

D = Decimal

CENT = D("0.01")


def _cents(v: D) -> D:
    return v.quantize(CENT, rounding=ROUND_HALF_UP)


def _opt_cents(v: Optional[D]) -> Optional[D]:
    return None if v is None else _cents(v)


def _jsonable(v: Any) -> Any:
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, dict):
        return {str(k): _jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    return v


class _OutModel(BaseModel):
    """Proposal renderer and quote store read camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid", protected_namespaces=()
    )


class MarkupV1(_OutModel):
    percent: Decimal
    amount: Decimal
    with_markup: Decimal

    @classmethod
    def from_breakdown(cls, m: MarkupBreakdown) -> "MarkupV1":
        return cls(percent=m.percent, amount=_cents(m.amount), with_markup=_cents(m.with_markup))


class MaterialSettingsV1(_OutModel):
    include_materials: bool
    coverage: Decimal
    application_method: Literal["roll", "spray"]
    coats: int
    cost_per_gallon: Decimal


class BreakdownItemV1(_OutModel):
    category_name: str
    measurement_unit: str
    quantity: Decimal
    number_of_coats: int
    labor_cost: Decimal
    material_cost: Decimal
    prep_cost: Decimal
    add_on_cost: Decimal
    rate: Optional[Decimal] = None
    rate_source: Optional[str] = None
    hours: Optional[Decimal] = None
    gallons: Decimal
    coverage: Optional[Decimal] = None
    price_per_gallon: Optional[Decimal] = None
    product_id: Optional[str] = None
    tier_used: Optional[str] = None
    unconfigured: bool = False
    unconfigured_reason: Optional[str] = None

    @classmethod
    def from_item(cls, i: ItemBreakdown) -> "BreakdownItemV1":
        return cls(
            category_name=i.category_name,
            measurement_unit=i.measurement_unit,
            quantity=i.quantity,
            number_of_coats=i.number_of_coats,
            labor_cost=_cents(i.labor_cost),
            material_cost=_cents(i.material_cost),
            prep_cost=_cents(i.prep_cost),
            add_on_cost=_cents(i.add_on_cost),
            rate=i.rate,
            rate_source=i.rate_source,
            hours=i.hours,
            gallons=i.gallons,
            coverage=i.coverage,
            price_per_gallon=_opt_cents(i.price_per_gallon),
            product_id=i.product_id,
            tier_used=i.tier_used,
            unconfigured=i.unconfigured,
            unconfigured_reason=i.unconfigured_reason,
        )


class BreakdownAreaV1(_OutModel):
    area_name: str
    area_id: Optional[str] = None
    labor_cost: Decimal
    material_cost: Decimal
    items: List[BreakdownItemV1]

    @classmethod
    def from_area(cls, a: AreaBreakdown) -> "BreakdownAreaV1":
        return cls(
            area_name=a.area_name,
            area_id=a.area_id,
            labor_cost=_cents(a.labor_cost),
            material_cost=_cents(a.material_cost),
            items=[BreakdownItemV1.from_item(i) for i in a.items],
        )


class PricingResultV1(_OutModel):
    """
    Result contract v1. Money is quantized to cents. The layer totals are
    already cent-exact, so deposit + balance == total holds here too.
    """

    version: Literal["v1"] = "v1"
    model: str
    model_display_name: str
    currency: str

    labor_total: Decimal
    material_total: Decimal
    prep_total: Decimal
    add_ons_total: Decimal
    labor_markup: MarkupV1
    material_markup: MarkupV1

    overhead_percent: Decimal
    overhead: Decimal
    subtotal_before_profit: Decimal
    profit_percent: Decimal
    profit_amount: Decimal
    subtotal: Decimal

    tax_base: Literal["materials_only", "subtotal"]
    tax_percent: Decimal
    tax: Decimal
    total: Decimal

    deposit_percent: Decimal
    deposit: Decimal
    balance: Decimal

    material_settings: MaterialSettingsV1
    breakdown: List[BreakdownAreaV1]
    warnings: List[Dict[str, Any]]
    quote_validity_days: int
    turnkey: Optional[Dict[str, Any]] = None
    trace: Optional[List[Dict[str, Any]]] = None

    @classmethod
    def from_result(cls, r: PricingResult) -> "PricingResultV1":
        ms = r.material_settings
        return cls(
            model=r.model.value,
            model_display_name=model_display_name(r.model),
            currency=r.currency,
            labor_total=_cents(r.labor_total),
            material_total=_cents(r.material_total),
            prep_total=_cents(r.prep_total),
            add_ons_total=_cents(r.add_ons_total),
            labor_markup=MarkupV1.from_breakdown(r.labor_markup),
            material_markup=MarkupV1.from_breakdown(r.material_markup),
            overhead_percent=r.overhead_percent,
            overhead=_cents(r.overhead),
            subtotal_before_profit=_cents(r.subtotal_before_profit),
            profit_percent=r.profit_percent,
            profit_amount=_cents(r.profit_amount),
            subtotal=_cents(r.subtotal),
            tax_base=r.tax_base.value,
            tax_percent=r.tax_percent,
            tax=_cents(r.tax),
            total=_cents(r.total),
            deposit_percent=r.deposit_percent,
            deposit=_cents(r.deposit),
            balance=_cents(r.balance),
            material_settings=MaterialSettingsV1(
                include_materials=ms.include_materials,
                coverage=ms.coverage,
                application_method=ms.application_method,
                coats=ms.coats,
                cost_per_gallon=ms.cost_per_gallon,
            ),
            breakdown=[BreakdownAreaV1.from_area(a) for a in r.breakdown],
            warnings=[_jsonable(w) for w in r.warnings],
            quote_validity_days=r.quote_validity_days,
            turnkey=_jsonable(r.turnkey) if r.turnkey is not None else None,
            trace=r.trace,
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys; decimals serialize as strings."""
        return self.model_dump(mode="json", by_alias=True)
