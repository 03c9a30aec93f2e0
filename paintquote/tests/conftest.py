from __future__ import annotations

from decimal import Decimal

import pytest

from paintquote.core.settings import EngineSettings
from paintquote.domain.models import ContractorSettings, ProductConfig, Sheen
from paintquote.engine.context import CalculationContext, PricingData
from paintquote.engine.pricing_engine import PricingEngine
from paintquote.engine.rate_tables import load_rate_tables

D = Decimal


@pytest.fixture
def tables():
    # bundled YAML, validated against the JSON schema
    return load_rate_tables()


@pytest.fixture
def engine_settings():
    return EngineSettings(_env_file=None)


@pytest.fixture
def engine(tables, engine_settings):
    return PricingEngine(tables, engine_settings)


@pytest.fixture
def ctx():
    return CalculationContext(tenant_id="tenant_1", quote_id="quote_1", trace_id="trace_1")


@pytest.fixture
def zero_settings():
    # no layers: totals equal the base amounts
    return ContractorSettings(
        labor_markup_percent=D("0"),
        material_markup_percent=D("0"),
        overhead_percent=D("0"),
        net_profit_percent=D("0"),
        tax_rate_percentage=D("0"),
        deposit_percentage=D("50"),
    )


@pytest.fixture
def layered_settings():
    return ContractorSettings(
        labor_markup_percent=D("35"),
        material_markup_percent=D("20"),
        overhead_percent=D("10"),
        net_profit_percent=D("5"),
        tax_rate_percentage=D("8.25"),
        deposit_percentage=D("33"),
    )


@pytest.fixture
def catalog():
    return {
        "11": ProductConfig(id="11", name="ProMar 200", sheens=(Sheen("Eggshell", D("40")),)),
        "12": ProductConfig(
            id="12",
            name="Duration",
            sheens=(Sheen("Satin", D("52")), Sheen("Semi-Gloss", D("55"))),
            default_coats=2,
            coverage_sqft_per_gal=D("400"),
        ),
        "13": ProductConfig(id="13", name="Emerald", sheens=(Sheen("Matte", D("68")),), default_coats=1),
    }


@pytest.fixture
def data(zero_settings, catalog):
    return PricingData(settings=zero_settings, products=catalog)

