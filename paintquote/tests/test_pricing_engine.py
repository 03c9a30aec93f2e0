from decimal import Decimal

import pytest

from paintquote.domain.errors import CalculationSkipped
from paintquote.domain.models import (
    Area,
    CalculationRequest,
    ContractorSettings,
    LaborItem,
    LegacySurface,
    MeasurementUnit,
    PricingModel,
    PricingScheme,
    ProductSetEntry,
    TaxBase,
    Tier,
)
from paintquote.engine.context import PricingData

D = Decimal


def _codes(result):
    return [w["code"] for w in result.warnings]


# -----------------------------
# Turnkey
# -----------------------------


def test_turnkey_scenario(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="turnkey", pricing_rules={"interiorRate": 3.50}),
        home_sqft=D("2000"),
        job_type="interior",
        condition_modifier="good",
    )

    result = engine.calculate(ctx, request, data)

    assert result.model == PricingModel.TURNKEY
    assert result.turnkey["adjusted_rate"] == D("3.325")
    assert result.turnkey["base_total"] == D("6650")
    assert result.labor_total == D("3990")
    assert result.material_total == D("2660")
    # zero layers in the fixture settings
    assert result.total == D("6650")
    assert result.deposit == D("3325")
    assert result.balance == D("3325")


def test_turnkey_with_layers(engine, ctx, layered_settings):
    request = CalculationRequest(
        scheme=PricingScheme(type="sqft_turnkey", pricing_rules={"interiorRate": 3.50}),
        home_sqft=D("2000"),
        condition_modifier="good",
    )

    result = engine.calculate(ctx, request, PricingData(settings=layered_settings))

    assert result.labor_markup.with_markup == D("5386.50")
    assert result.material_markup.with_markup == D("3192.00")
    assert result.overhead == D("857.85")
    assert result.profit_amount == D("471.82")
    assert result.subtotal == D("9908.17")
    assert result.tax_base == TaxBase.MATERIALS_ONLY
    assert result.tax == D("263.34")
    assert result.total == D("10171.51")
    assert result.deposit + result.balance == result.total


def test_turnkey_without_home_sqft_prices_zero_with_warning(engine, ctx, data):
    request = CalculationRequest(scheme=PricingScheme(type="turnkey"))
    result = engine.calculate(ctx, request, data)

    assert result.total == D("0")
    assert result.breakdown == []
    assert "TURNKEY_HOME_SQFT_MISSING" in _codes(result)


def test_turnkey_reports_product_resolution(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="turnkey"),
        home_sqft=D("1500"),
        product_sets=(
            ProductSetEntry(surface_type="Walls", products={"good": "11", "best": "13"}),
            ProductSetEntry(surface_type="Trim"),
        ),
    )
    result = engine.calculate(ctx, request, data)

    products = {p["surface_type"]: p for p in result.turnkey["products"]}
    assert products["Walls"]["product_id"] == "11"
    assert products["Walls"]["tier_used"] == "good"
    assert products["Trim"]["unconfigured"] is True
    assert "PRODUCT_UNCONFIGURED" in _codes(result)


# -----------------------------
# Area-wise models
# -----------------------------


def test_flat_rate_doors_scenario(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="flat_rate_unit"),
        areas=(
            Area(
                name="Hallway",
                items=(LaborItem(category_name="Doors", measurement_unit=MeasurementUnit.UNIT, quantity=D("3")),),
            ),
        ),
    )
    result = engine.calculate(ctx, request, data)

    item = result.breakdown[0].items[0]
    assert item.labor_cost == D("255")
    assert item.material_cost == D("0")
    assert result.labor_total == D("255")
    assert result.material_total == D("0")


def test_flat_rate_ignores_sqft_materials(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="unit_pricing"),
        areas=(Area(name="Den", items=(LaborItem(category_name="Walls", quantity=D("400")),)),),
    )
    result = engine.calculate(ctx, request, data)

    assert result.material_total == D("0")
    assert result.labor_total == D("1000")
    assert "PRODUCT_SELECTION_MISSING" not in _codes(result)


def test_production_scenario(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="production_based"),
        areas=(Area(name="Living Room", items=(LaborItem(category_name="Interior Walls", quantity=D("900")),)),),
        include_materials=False,
    )
    result = engine.calculate(ctx, request, data)

    item = result.breakdown[0].items[0]
    assert item.hours == D("3.0")
    assert item.labor_cost == D("300")
    assert result.total == D("300")


def test_rate_based_area_with_materials(engine, ctx, catalog):
    settings = ContractorSettings(
        material_markup_percent=D("30"),
        tax_rate_percentage=D("8.25"),
        deposit_percentage=D("50"),
    )
    data = PricingData(settings=settings, products=catalog, labor_rates={"walls": D("0.75")})
    request = CalculationRequest(
        scheme=PricingScheme(type="sqft_labor_paint"),
        areas=(
            Area(
                name="Kitchen",
                id="a1",
                items=(
                    LaborItem(category_name="Walls", quantity=D("700")),
                    LaborItem(category_name="Trim", quantity=D("60"), measurement_unit=MeasurementUnit.LINEAR_FOOT, labor_rate=D("1.5")),
                    LaborItem(category_name="Ceiling", quantity=D("200"), selected=False),
                ),
            ),
        ),
        product_sets=(ProductSetEntry(surface_type="Walls", products={"good": "11"}, area_id="a1"),),
        selected_tier=Tier.BETTER,
    )

    result = engine.calculate(ctx, request, data)

    walls, trim = result.breakdown[0].items
    assert walls.labor_cost == D("525")
    # 700 * 2 / 350 * 1.10 = 4.4 -> 5 gallons at $40
    assert walls.gallons == D("5")
    assert walls.material_cost == D("200")
    assert walls.tier_used == "good"
    # linear feet never take paint
    assert trim.labor_cost == D("90")
    assert trim.material_cost == D("0")

    assert result.labor_total == D("615")
    assert result.material_markup.with_markup == D("260.00")
    assert result.tax == D("21.45")
    assert result.total == D("896.45")
    assert result.deposit + result.balance == result.total


def test_unconfigured_product_is_flagged_not_dropped(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="rate_based_sqft"),
        areas=(
            Area(
                name="Bedroom",
                items=(
                    LaborItem(category_name="Walls", quantity=D("300"), labor_rate=D("1")),
                    LaborItem(category_name="Ceiling", quantity=D("120"), labor_rate=D("1")),
                ),
            ),
        ),
        product_sets=(ProductSetEntry(surface_type="Walls", products={"better": "404"}, area_id="0"),),
    )
    result = engine.calculate(ctx, request, data)

    reasons = {i.category_name: i.unconfigured_reason for i in result.unconfigured_items}
    assert reasons == {"Walls": "product_not_found", "Ceiling": "no_product_selection"}
    assert result.material_total == D("0")
    assert len(result.breakdown[0].items) == 2
    assert "PRODUCT_UNCONFIGURED" in _codes(result)
    assert "PRODUCT_SELECTION_MISSING" in _codes(result)


def test_zero_quantity_items_are_skipped_with_warning(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="rate_based_sqft"),
        areas=(
            Area(
                name="Garage",
                items=(
                    LaborItem(category_name="Walls", quantity=D("0"), labor_rate=D("1")),
                    LaborItem(category_name="Doors", measurement_unit=MeasurementUnit.UNIT, labor_rate=D("50")),
                ),
            ),
        ),
        include_materials=False,
    )
    result = engine.calculate(ctx, request, data)

    assert result.breakdown == []
    assert result.total == D("0")
    assert _codes(result).count("ITEM_SKIPPED") == 2


def test_legacy_surfaces_feed_prep_and_add_ons(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="rate_based_sqft", pricing_rules={"walls": {"price": 0.5}}),
        areas=(
            Area(
                name="Basement",
                surfaces=(LegacySurface(type="Walls", sqft=D("400"), needs_prep=True, textured=True),),
            ),
        ),
        include_materials=False,
    )
    result = engine.calculate(ctx, request, data)

    assert result.labor_total == D("200")
    assert result.prep_total == D("100")
    assert result.add_ons_total == D("40")
    assert result.total == D("340")


@pytest.mark.parametrize(
    "scheme_type, rules, surface, labor",
    [
        ("unit_pricing", {"doors": {"price": 100}}, LegacySurface(type="Doors", sqft=D("20"), units=4), D("400")),
        (
            "hourly_time_materials",
            {"productivity_rate": 200, "hourly_rate": {"price": 60}, "crew_size": {"value": 3}},
            LegacySurface(type="Walls", sqft=D("600")),
            D("540"),
        ),
        ("room_flat_rate", {}, LegacySurface(type="Walls", sqft=D("600")), D("325")),
        ("sqft_labor_paint", {}, LegacySurface(type="Walls", sqft=D("600")), D("330")),
    ],
)
def test_legacy_surfaces_follow_scheme_rules(engine, ctx, data, scheme_type, rules, surface, labor):
    request = CalculationRequest(
        scheme=PricingScheme(type=scheme_type, pricing_rules=rules),
        areas=(Area(name="Den", surfaces=(surface,)),),
        include_materials=False,
    )
    result = engine.calculate(ctx, request, data)
    assert result.labor_total == labor
    assert result.total == labor


def test_legacy_surfaces_under_unknown_scheme_use_fallback_rate(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="mystery"),
        areas=(Area(name="Den", id="1", surfaces=(LegacySurface(type="Walls", sqft=D("200")),)),),
        product_sets=(ProductSetEntry(surface_type="Walls", products={"good": "11"}, area_id="1"),),
        include_materials=False,
    )
    result = engine.calculate(ctx, request, data)

    assert result.model == PricingModel.RATE_BASED_SQFT
    assert result.labor_total == D("150")
    assert "SCHEME_FALLBACK" in _codes(result)


def test_unknown_scheme_falls_back_with_warning(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="mystery"),
        areas=(Area(name="Den", items=(LaborItem(category_name="Walls", quantity=D("100"), labor_rate=D("1")),)),),
        product_sets=(ProductSetEntry(surface_type="Walls", products={"good": "11"}),),
    )
    result = engine.calculate(ctx, request, data)

    assert result.model == PricingModel.RATE_BASED_SQFT
    assert "SCHEME_FALLBACK" in _codes(result)


def test_unknown_scheme_without_data_is_skipped(engine, ctx, data):
    with pytest.raises(CalculationSkipped):
        engine.calculate(ctx, CalculationRequest(scheme=PricingScheme(type=None)), data)


def test_trace_is_opt_in(engine, ctx, data):
    base = CalculationRequest(
        scheme=PricingScheme(type="production_based"),
        areas=(Area(name="Den", items=(LaborItem(category_name="Interior Walls", quantity=D("600")),)),),
        include_materials=False,
    )
    assert engine.calculate(ctx, base, data).trace is None

    traced = CalculationRequest(
        scheme=base.scheme, areas=base.areas, include_materials=False, debug_trace=True
    )
    trace = engine.calculate(ctx, traced, data).trace
    codes = [e["code"] for e in trace]
    assert codes[0] == "INPUT"
    assert "LABOR_ITEM" in codes
    assert codes[-1] == "LAYERS"
    labor = next(e for e in trace if e["code"] == "LABOR_ITEM")
    assert labor["data"]["hours"] == "2.0"


def test_quote_validity_days_carried_through(engine, ctx):
    data = PricingData(settings=ContractorSettings(quote_validity_days=45))
    result = engine.calculate(ctx, CalculationRequest(scheme=PricingScheme(type="turnkey"), home_sqft=D("100")), data)
    assert result.quote_validity_days == 45
