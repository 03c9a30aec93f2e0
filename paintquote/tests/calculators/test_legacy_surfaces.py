from decimal import Decimal

import pytest

from paintquote.calculators.labor import LaborRates
from paintquote.calculators.legacy_surfaces import price_legacy_surface
from paintquote.calculators.materials import resolve_material_settings
from paintquote.domain.models import ContractorSettings, LegacySurface, PricingModel, ProductSetEntry, Tier

D = Decimal


@pytest.fixture
def rates(tables):
    return LaborRates(
        tables=tables,
        settings=ContractorSettings(),
        tier=Tier.GOOD,
        pricing_rules={"walls": {"price": 0.55, "prep_rate": 0.30}},
    )


@pytest.fixture
def material_settings(tables):
    return resolve_material_settings(tables.materials)


def test_rate_based_surface_with_prep_and_add_ons(rates, material_settings, catalog):
    surface = LegacySurface(type="Walls", sqft=D("700"), condition="damaged", textured=True, vaulted=True)
    entry = ProductSetEntry(surface_type="Walls", products={"good": "11"})

    line = price_legacy_surface(
        PricingModel.RATE_BASED_SQFT, surface, entry, rates=rates, material_settings=material_settings, products=catalog
    )

    assert line.labor_cost == D("385")
    assert line.prep_cost == D("210")
    # textured 0.10 + vaulted 0.20 per sqft
    assert line.add_on_cost == D("210")
    # 4.4 gallons -> 4.5 (quarter) at $40
    assert line.gallons == D("4.5")
    assert line.material_cost == D("180")


def test_needs_prep_uses_table_rate_without_rule(tables, material_settings, catalog):
    rates = LaborRates(tables=tables, settings=ContractorSettings(), tier=Tier.GOOD)
    surface = LegacySurface(type="Ceiling", sqft=D("100"), needs_prep=True)

    line = price_legacy_surface(
        PricingModel.PRODUCTION_BASED, surface, None, rates=rates, material_settings=material_settings, products=catalog
    )

    assert line.prep_cost == D("25")
    assert line.hours == D("0.4")
    assert line.unconfigured is True
    assert line.material_cost == D("0")


def _price(model, surface, rules, tables, material_settings, catalog, scheme_type=None):
    rates = LaborRates(tables=tables, settings=ContractorSettings(), tier=Tier.GOOD, pricing_rules=rules)
    return price_legacy_surface(
        model,
        surface,
        None,
        rates=rates,
        material_settings=material_settings,
        products=catalog,
        scheme_type=scheme_type,
    )


def test_unit_pricing_uses_surface_rule_price(tables, material_settings, catalog):
    surface = LegacySurface(type="Doors", sqft=D("20"), units=4)
    line = _price(
        PricingModel.FLAT_RATE_UNIT, surface, {"doors": {"price": 100}}, tables, material_settings, catalog, "unit_pricing"
    )
    assert line.quantity == D("4")
    assert line.measurement_unit == "unit"
    assert line.labor_cost == D("400")
    assert line.rate_source == "scheme_rule"
    assert line.material_cost == D("0")
    assert not line.unconfigured


def test_unit_pricing_defaults_to_one_unit_at_85(tables, material_settings, catalog):
    line = _price(PricingModel.FLAT_RATE_UNIT, LegacySurface(type="Doors", sqft=D("20")), {}, tables, material_settings, catalog)
    assert line.quantity == D("1")
    assert line.labor_cost == D("85")
    assert line.rate_source == "legacy_default"


def test_unit_pricing_borrows_walls_rule(rates, material_settings, catalog):
    surface = LegacySurface(type="Doors", sqft=D("20"), units=4)
    line = price_legacy_surface(
        PricingModel.FLAT_RATE_UNIT, surface, None, rates=rates, material_settings=material_settings, products=catalog
    )
    assert line.labor_cost == D("2.20")


def test_room_flat_rate_charges_once_per_surface(tables, material_settings, catalog):
    surface = LegacySurface(type="Walls", sqft=D("800"), units=3)

    default = _price(PricingModel.FLAT_RATE_UNIT, surface, {}, tables, material_settings, catalog, "room_flat_rate")
    assert default.labor_cost == D("325")
    assert default.quantity == D("1")

    priced = _price(
        PricingModel.FLAT_RATE_UNIT, surface, {"walls": {"price": 410}}, tables, material_settings, catalog, "room_flat_rate"
    )
    assert priced.labor_cost == D("410")


def test_hourly_scheme_reads_productivity_rate_and_crew(tables, material_settings, catalog):
    rules = {"productivity_rate": 200, "hourly_rate": {"price": 60}, "crew_size": {"value": 3}}
    line = _price(
        PricingModel.PRODUCTION_BASED,
        LegacySurface(type="Walls", sqft=D("600")),
        rules,
        tables,
        material_settings,
        catalog,
        "hourly_time_materials",
    )
    # 600 / 200 = 3.0 h x $60 x 3 painters
    assert line.hours == D("3.0")
    assert line.labor_cost == D("540")
    assert line.rate == D("200")
    assert line.rate_source == "scheme_rule"


def test_hourly_scheme_ignores_tenant_production_settings(tables, material_settings, catalog):
    settings = ContractorSettings(production_rates={"interior_walls": D("1000")}, hourly_labor_rate=D("90"), crew_size=4)
    rates = LaborRates(tables=tables, settings=settings)
    line = price_legacy_surface(
        PricingModel.PRODUCTION_BASED,
        LegacySurface(type="Interior Walls", sqft=D("500")),
        None,
        rates=rates,
        material_settings=material_settings,
        products=catalog,
    )
    # 500 / 250 = 2.0 h x $50 x 2
    assert line.labor_cost == D("200")


@pytest.mark.parametrize(
    "scheme_type, rules, expected",
    [
        ("sqft_labor_paint", {"walls": {"price": 0.65}}, D("65")),
        ("sqft_labor_paint", {}, D("55")),
        ("rate_based_sqft", {"ceiling": {"price": 0.40}}, D("55")),
        ("mystery", {}, D("75")),
        ("mystery", {"walls": {"price": 0.9}}, D("90")),
    ],
)
def test_sqft_rates_by_scheme_type(tables, material_settings, catalog, scheme_type, rules, expected):
    line = _price(
        PricingModel.RATE_BASED_SQFT,
        LegacySurface(type="Walls", sqft=D("100")),
        rules,
        tables,
        material_settings,
        catalog,
        scheme_type,
    )
    assert line.labor_cost == expected


def test_surface_labor_ignores_tenant_labor_rates(tables, material_settings, catalog):
    rates = LaborRates(tables=tables, settings=ContractorSettings(), labor_rates={"walls": D("2")})
    line = price_legacy_surface(
        PricingModel.RATE_BASED_SQFT,
        LegacySurface(type="Walls", sqft=D("100")),
        None,
        rates=rates,
        material_settings=resolve_material_settings(tables.materials, include_materials=False),
        products=catalog,
    )
    assert line.labor_cost == D("55")


@pytest.mark.parametrize("surface", [LegacySurface(type="Walls", sqft=D("0")), LegacySurface(type="Walls", sqft=D("50"), selected=False)])
def test_skipped_surfaces(rates, material_settings, catalog, surface):
    assert (
        price_legacy_surface(
            PricingModel.RATE_BASED_SQFT, surface, None, rates=rates, material_settings=material_settings, products=catalog
        )
        is None
    )
