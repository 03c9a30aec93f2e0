from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from ..calculators.labor import LaborRates, calculate_item_labor
from ..calculators.layering import Percentages, apply_layers
from ..calculators.legacy_surfaces import price_legacy_surface
from ..calculators.materials import calculate_item_material, resolve_material_settings
from ..calculators.turnkey import adjust_turnkey_rate, split_turnkey_total
from ..core.settings import EngineSettings, settings as default_settings
from ..domain.models import (
    Area,
    CalculationRequest,
    GallonRounding,
    LaborItem,
    MeasurementUnit,
    PricingModel,
    ProductSetEntry,
    TaxBase,
)
from ..domain.results import AreaBreakdown, ItemBreakdown, MaterialSettings, PricingResult
from .context import CalculationContext, PricingData
from .normalizer import area_key, enrich_product_sets, find_entry_for_item, normalize_product_sets
from .quantities import effective_quantity
from .rate_tables import RateTables
from .scheme_resolver import resolve_model, resolve_model_for_job
from .tier_selector import select_tier_product
from .trace import CalculationTrace

D = Decimal

logger = structlog.get_logger(__name__)


class _Warnings:
    """Warnings for the result, mirrored into the trace."""

    def __init__(self, trace: CalculationTrace):
        self.items: List[Dict[str, Any]] = []
        self._trace = trace

    def add(self, code: str, message: str, **meta: Any) -> None:
        self.items.append({"code": code, "message": message, **meta})
        self._trace.warning(code, message=message, **meta)


class PricingEngine:
    """
    Quote calculation for the four pricing models.
    Holds only immutable tables; one instance can serve every tenant.
    """

    def __init__(self, tables: RateTables, engine_settings: Optional[EngineSettings] = None):
        self.tables = tables
        self.settings = engine_settings or default_settings

    @classmethod
    def from_yaml_file(
        cls, path: Optional[str | Path] = None, engine_settings: Optional[EngineSettings] = None
    ) -> "PricingEngine":
        cfg = engine_settings or default_settings
        return cls(RateTables.from_yaml_file(path or cfg.rules_path), cfg)

    # -----------------
    # entry point
    # -----------------

    def calculate(self, ctx: CalculationContext, request: CalculationRequest, data: PricingData) -> PricingResult:
        log = logger.bind(**ctx.log_fields())
        trace = CalculationTrace(enabled=request.debug_trace or self.settings.trace_enabled)
        warnings = _Warnings(trace)

        entries = normalize_product_sets(list(request.product_sets))
        has_areas = any(a.items or a.surfaces for a in request.areas)
        model = resolve_model_for_job(
            request.scheme.type, has_areas=has_areas, has_product_sets=bool(entries)
        )
        if resolve_model(request.scheme.type) is None:
            warnings.add(
                "SCHEME_FALLBACK",
                "unknown pricing scheme, priced as rate_based_sqft",
                scheme_type=request.scheme.type,
            )
            log.warning("pricing_scheme_fallback", scheme_type=request.scheme.type)

        rules = request.scheme.pricing_rules or {}
        material_settings = resolve_material_settings(
            self.tables.materials,
            rules,
            include_materials=request.include_materials,
            coverage=request.coverage,
            application_method=request.application_method,
            coats=request.coats,
        )
        tax_base = request.tax_base or TaxBase(self.settings.default_tax_base)
        trace.meta(
            "INPUT",
            model=model,
            tier=request.selected_tier,
            tax_base=tax_base,
            include_materials=material_settings.include_materials,
            coverage=material_settings.coverage,
            coats=material_settings.coats,
            application_method=material_settings.application_method,
        )

        turnkey_info: Optional[Dict[str, Any]] = None
        prep_total = D("0")
        add_ons_total = D("0")

        if model == PricingModel.TURNKEY:
            base_labor, base_material, breakdown, turnkey_info = self._turnkey(
                request, data, entries, material_settings, warnings, trace
            )
        else:
            breakdown = self._area_wise(model, request, data, entries, material_settings, warnings, trace)
            base_labor = sum((a.labor_cost for a in breakdown), D("0"))
            base_material = sum((a.material_cost for a in breakdown), D("0"))
            prep_total = sum((i.prep_cost for a in breakdown for i in a.items), D("0"))
            add_ons_total = sum((i.add_on_cost for a in breakdown for i in a.items), D("0"))

        percentages = Percentages.from_settings(data.settings)
        layered = apply_layers(
            base_labor,
            base_material,
            percentages,
            include_materials=material_settings.include_materials,
            tax_base=tax_base,
            prep_total=prep_total,
            add_ons_total=add_ons_total,
        )
        trace.step(
            "LAYERS",
            labor_with_markup=layered.labor.with_markup,
            material_with_markup=layered.material.with_markup,
            overhead=layered.overhead,
            profit=layered.profit,
            subtotal=layered.subtotal,
            taxable_amount=layered.taxable_amount,
            tax=layered.tax,
            total=layered.total,
            deposit=layered.deposit,
            balance=layered.balance,
        )

        result = PricingResult(
            model=model,
            currency=self.settings.currency,
            labor_total=layered.labor_base,
            material_total=layered.material_base,
            prep_total=layered.prep_total,
            add_ons_total=layered.add_ons_total,
            labor_markup=layered.labor,
            material_markup=layered.material,
            overhead_percent=percentages.overhead,
            overhead=layered.overhead,
            subtotal_before_profit=layered.subtotal_before_profit,
            profit_percent=percentages.profit,
            profit_amount=layered.profit,
            subtotal=layered.subtotal,
            tax_base=layered.tax_base,
            tax_percent=percentages.tax,
            tax=layered.tax,
            total=layered.total,
            deposit_percent=percentages.deposit,
            deposit=layered.deposit,
            balance=layered.balance,
            material_settings=material_settings,
            breakdown=breakdown,
            warnings=warnings.items,
            quote_validity_days=data.settings.quote_validity_days,
            turnkey=turnkey_info,
            trace=trace.export(),
        )

        log.info(
            "pricing_calculated",
            model=model.value,
            total=str(result.total),
            areas=len(breakdown),
            unconfigured_items=len(result.unconfigured_items),
            warnings=len(result.warnings),
        )
        return result

    # -----------------
    # turnkey
    # -----------------

    def _turnkey(
        self,
        request: CalculationRequest,
        data: PricingData,
        entries: Sequence[ProductSetEntry],
        material_settings: MaterialSettings,
        warnings: _Warnings,
        trace: CalculationTrace,
    ) -> Tuple[D, D, List[AreaBreakdown], Dict[str, Any]]:
        rules = request.scheme.pricing_rules or {}
        adj = adjust_turnkey_rate(
            rules,
            data.settings,
            self.tables,
            job_type=request.job_type,
            tier=request.selected_tier,
            condition=request.condition_modifier,
        )
        trace.step(
            "TURNKEY_RATE",
            base_rate=adj.base_rate,
            base_rate_source=adj.base_rate_source,
            tier_rate=adj.tier_rate,
            condition_multiplier=adj.condition_multiplier,
            adjusted_rate=adj.adjusted_rate,
        )

        home_sqft = request.home_sqft if request.home_sqft is not None else D("0")
        if home_sqft <= 0:
            warnings.add("TURNKEY_HOME_SQFT_MISSING", "turnkey pricing needs a positive home square footage")
            home_sqft = D("0")

        rates = LaborRates(
            tables=self.tables,
            settings=data.settings,
            tier=request.selected_tier,
            pricing_rules=rules,
            turnkey_rate=adj.adjusted_rate,
        )
        home = LaborItem(category_name="Whole Home", quantity=home_sqft)
        base_total = calculate_item_labor(PricingModel.TURNKEY, home, home_sqft, rates).cost
        labor, material = split_turnkey_total(
            base_total, material_settings.include_materials, self.tables.turnkey.labor_share
        )
        trace.step("TURNKEY_SPLIT", base_total=base_total, labor=labor, material=material)

        selections = []
        for e in entries:
            sel = select_tier_product(e.products, request.selected_tier)
            selections.append(
                {
                    "surface_type": e.surface_type,
                    "product_id": sel.product_id,
                    "tier_used": sel.tier_used.value if sel.tier_used else None,
                    "unconfigured": not sel.configured,
                }
            )
            if not sel.configured:
                warnings.add(
                    "PRODUCT_UNCONFIGURED",
                    "no product configured for any tier",
                    surface_type=e.surface_type,
                    reason=sel.reason,
                )

        line = ItemBreakdown(
            category_name="Whole Home",
            measurement_unit=MeasurementUnit.SQFT.value,
            quantity=home_sqft,
            labor_cost=labor,
            material_cost=material,
            rate=adj.adjusted_rate,
            rate_source=adj.base_rate_source,
        )
        breakdown = [AreaBreakdown(area_name="Whole Home", items=[line])] if home_sqft > 0 else []

        info = {
            "home_sqft": home_sqft,
            "job_type": request.job_type,
            "base_rate": adj.base_rate,
            "base_rate_source": adj.base_rate_source,
            "tier_rate": adj.tier_rate,
            "tier_applied": adj.tier_applied,
            "condition": adj.condition,
            "condition_multiplier": adj.condition_multiplier,
            "adjusted_rate": adj.adjusted_rate,
            "base_total": base_total,
            "products": selections,
        }
        return labor, material, breakdown, info

    # -----------------
    # area-wise models
    # -----------------

    def _area_wise(
        self,
        model: PricingModel,
        request: CalculationRequest,
        data: PricingData,
        entries: Sequence[ProductSetEntry],
        material_settings: MaterialSettings,
        warnings: _Warnings,
        trace: CalculationTrace,
    ) -> List[AreaBreakdown]:
        rules = request.scheme.pricing_rules or {}
        rates = LaborRates(
            tables=self.tables,
            settings=data.settings,
            tier=request.selected_tier,
            labor_rates=data.labor_rates,
            pricing_rules=rules,
        )
        prices_materials = material_settings.include_materials and model != PricingModel.FLAT_RATE_UNIT

        enriched = enrich_product_sets(entries, request.areas)
        if prices_materials:
            for s in enriched.skipped:
                warnings.add(
                    "PRODUCT_SELECTION_MISSING",
                    "selected surface has no product selection",
                    area_id=s.area_id,
                    area_name=s.area_name,
                    category_name=s.category_name,
                    reason=s.reason,
                )

        breakdown: List[AreaBreakdown] = []
        for index, area in enumerate(request.areas):
            aid = area_key(area, index)
            ab = AreaBreakdown(area_name=area.name, area_id=aid)
            if area.items:
                self._price_items(model, area, aid, ab, enriched.entries, rates, data, material_settings, prices_materials, warnings, trace)
            else:
                self._price_surfaces(model, request, area, aid, ab, enriched.entries, rates, data, material_settings, warnings, trace)
            if ab.items:
                breakdown.append(ab)
        return breakdown

    def _price_items(
        self,
        model: PricingModel,
        area: Area,
        aid: str,
        ab: AreaBreakdown,
        entries: Sequence[ProductSetEntry],
        rates: LaborRates,
        data: PricingData,
        material_settings: MaterialSettings,
        prices_materials: bool,
        warnings: _Warnings,
        trace: CalculationTrace,
    ) -> None:
        for item in area.selected_items:
            quantity, source = effective_quantity(item, self.tables)
            if quantity is None:
                warnings.add(
                    "ITEM_SKIPPED",
                    "item has no positive quantity",
                    area_id=aid,
                    category_name=item.category_name,
                    reason=source,
                )
                continue

            labor = calculate_item_labor(model, item, quantity, rates)
            line = ItemBreakdown(
                category_name=item.category_name,
                measurement_unit=item.measurement_unit.value,
                quantity=quantity,
                number_of_coats=item.number_of_coats or material_settings.coats,
                labor_cost=labor.cost,
                rate=labor.rate,
                rate_source=labor.rate_source,
                hours=labor.hours,
            )

            if prices_materials and item.measurement_unit == MeasurementUnit.SQFT:
                entry = find_entry_for_item(entries, aid, item.category_name)
                mat = calculate_item_material(
                    quantity,
                    entry,
                    rates.tier,
                    data.products,
                    material_settings,
                    self.tables.materials,
                    item_coats=item.number_of_coats,
                    rounding=GallonRounding(self.settings.item_gallon_rounding),
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
                if mat.unconfigured and mat.reason != "no_product_selection":
                    warnings.add(
                        "PRODUCT_UNCONFIGURED",
                        "material priced at 0, product not configured",
                        area_id=aid,
                        category_name=item.category_name,
                        reason=mat.reason,
                    )
                trace.step(
                    "MATERIAL_ITEM",
                    area_id=aid,
                    category_name=item.category_name,
                    raw_gallons=mat.raw_gallons,
                    gallons=mat.gallons,
                    price_per_gallon=mat.price_per_gallon,
                    cost=mat.cost,
                )

            trace.step(
                "LABOR_ITEM",
                area_id=aid,
                category_name=item.category_name,
                quantity=quantity,
                quantity_source=source,
                rate=labor.rate,
                rate_source=labor.rate_source,
                hours=labor.hours,
                cost=labor.cost,
            )
            ab.items.append(line)

    def _price_surfaces(
        self,
        model: PricingModel,
        request: CalculationRequest,
        area: Area,
        aid: str,
        ab: AreaBreakdown,
        entries: Sequence[ProductSetEntry],
        rates: LaborRates,
        data: PricingData,
        material_settings: MaterialSettings,
        warnings: _Warnings,
        trace: CalculationTrace,
    ) -> None:
        for surface in area.surfaces:
            if not surface.selected:
                continue
            entry = find_entry_for_item(entries, aid, surface.type)
            line = price_legacy_surface(
                model,
                surface,
                entry,
                rates=rates,
                material_settings=material_settings,
                products=data.products,
                scheme_type=request.scheme.type,
                rounding=GallonRounding(self.settings.legacy_surface_gallon_rounding),
            )
            if line is None:
                warnings.add(
                    "ITEM_SKIPPED",
                    "surface has no square footage",
                    area_id=aid,
                    category_name=surface.type,
                    reason="non_positive_quantity",
                )
                continue
            if line.unconfigured:
                warnings.add(
                    "PRODUCT_UNCONFIGURED",
                    "material priced at 0, product not configured",
                    area_id=aid,
                    category_name=surface.type,
                    reason=line.unconfigured_reason,
                )
            trace.step(
                "SURFACE_ITEM",
                area_id=aid,
                category_name=surface.type,
                sqft=surface.sqft,
                labor=line.labor_cost,
                material=line.material_cost,
                prep=line.prep_cost,
                add_ons=line.add_on_cost,
            )
            ab.items.append(line)
