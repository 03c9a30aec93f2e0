from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..domain.models import ContractorSettings, TaxBase
from ..domain.results import MarkupBreakdown

D = Decimal

CENT = D("0.01")
HUNDRED = D("100")


def money(value: D) -> D:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _pct(amount: D, percent: D) -> D:
    return money(amount * percent / HUNDRED)


@dataclass(frozen=True)
class Percentages:
    labor_markup: D = D("0")
    material_markup: D = D("0")
    overhead: D = D("0")
    profit: D = D("0")
    tax: D = D("0")
    deposit: D = D("0")

    @classmethod
    def from_settings(cls, s: ContractorSettings) -> "Percentages":
        return cls(
            labor_markup=s.labor_markup_percent,
            material_markup=s.material_markup_percent,
            overhead=s.overhead_percent,
            profit=s.net_profit_percent,
            tax=s.tax_rate_percentage,
            deposit=s.deposit_percentage,
        )


@dataclass(frozen=True)
class LayeredTotals:
    labor_base: D
    material_base: D
    labor: MarkupBreakdown
    material: MarkupBreakdown
    prep_total: D
    add_ons_total: D
    subtotal_before_overhead: D
    overhead: D
    subtotal_before_profit: D
    profit: D
    subtotal: D
    tax_base: TaxBase
    taxable_amount: D
    tax: D
    total: D
    deposit: D
    balance: D


def apply_layers(
    base_labor: D,
    base_material: D,
    percentages: Percentages,
    *,
    include_materials: bool = True,
    tax_base: TaxBase | str = TaxBase.MATERIALS_ONLY,
    prep_total: D = D("0"),
    add_ons_total: D = D("0"),
) -> LayeredTotals:
    """
    markup -> overhead -> profit -> tax -> deposit.

    Every layer amount is rounded to cents before it is added, so each
    subtotal is the exact sum of the amounts shown and
    deposit + balance == total.
    """
    for name, value in (
        ("base_labor", base_labor),
        ("base_material", base_material),
        ("prep_total", prep_total),
        ("add_ons_total", add_ons_total),
    ):
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")

    mode = TaxBase(tax_base)

    # 1. labor markup
    labor_base = money(base_labor)
    labor_markup = _pct(labor_base, percentages.labor_markup)
    labor = MarkupBreakdown(percent=percentages.labor_markup, amount=labor_markup, with_markup=labor_base + labor_markup)

    # 2. material markup (dropped entirely for labor-only quotes)
    material_base = money(base_material) if include_materials else D("0.00")
    material_markup = _pct(material_base, percentages.material_markup)
    material = MarkupBreakdown(
        percent=percentages.material_markup,
        amount=material_markup,
        with_markup=material_base + material_markup,
    )

    # 3. prep / add-ons
    prep = money(prep_total)
    add_ons = money(add_ons_total)
    before_overhead = labor.with_markup + material.with_markup + prep + add_ons

    # 4-5. overhead
    overhead = _pct(before_overhead, percentages.overhead)
    before_profit = before_overhead + overhead

    # 6-7. profit
    profit = _pct(before_profit, percentages.profit)
    subtotal = before_profit + profit

    # 8-9. tax
    taxable = material.with_markup if mode == TaxBase.MATERIALS_ONLY else subtotal
    tax = _pct(taxable, percentages.tax)
    total = subtotal + tax

    # 10. deposit; balance is derived so the split never drifts
    deposit = _pct(total, min(percentages.deposit, HUNDRED))
    balance = total - deposit

    return LayeredTotals(
        labor_base=labor_base,
        material_base=material_base,
        labor=labor,
        material=material,
        prep_total=prep,
        add_ons_total=add_ons,
        subtotal_before_overhead=before_overhead,
        overhead=overhead,
        subtotal_before_profit=before_profit,
        profit=profit,
        subtotal=subtotal,
        tax_base=mode,
        taxable_amount=taxable,
        tax=tax,
        total=total,
        deposit=deposit,
        balance=balance,
    )
