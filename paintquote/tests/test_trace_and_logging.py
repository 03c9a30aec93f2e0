from decimal import Decimal

import pytest
import structlog
from structlog.testing import capture_logs

from paintquote.core.logging_config import setup_logging
from paintquote.domain.models import Area, CalculationRequest, LaborItem, PricingScheme
from paintquote.engine.trace import CalculationTrace, TraceKind

D = Decimal


# -----------------------------
# Trace
# -----------------------------


def test_disabled_trace_keeps_nothing():
    trace = CalculationTrace()
    trace.step("LABOR_ITEM", cost=D("1"))
    assert len(trace) == 0
    assert trace.export() is None


def test_enabled_trace_is_ordered_and_json_safe():
    trace = CalculationTrace(enabled=True)
    trace.meta("INPUT", kind=TraceKind.META)
    trace.step("LABOR_ITEM", cost=D("12.50"), parts=[D("1"), D("2")])
    trace.warning("ITEM_SKIPPED", reason="non_positive_quantity")

    out = trace.export()
    assert [e["seq"] for e in out] == [1, 2, 3]
    assert [e["kind"] for e in out] == ["META", "STEP", "WARNING"]
    assert out[0]["data"] == {"kind": "META"}
    assert out[1]["data"] == {"cost": "12.50", "parts": ["1", "2"]}


@pytest.mark.parametrize("code", ["labor_item", "X", "HAS SPACE", "9LIVES"])
def test_invalid_codes_rejected_even_when_disabled(code):
    with pytest.raises(ValueError):
        CalculationTrace().step(code)


# -----------------------------
# Logging
# -----------------------------


def test_setup_logging_configures_structlog():
    try:
        setup_logging(level="debug", json_logs=False)
        config = structlog.get_config()
        assert isinstance(config["processors"][-1], structlog.dev.ConsoleRenderer)
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger

        setup_logging(json_logs=True)
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
    finally:
        structlog.reset_defaults()


def test_calculation_logs_tenant_and_outcome(engine, ctx, data):
    request = CalculationRequest(
        scheme=PricingScheme(type="rate_based_sqft"),
        areas=(Area(name="Den", items=(LaborItem(category_name="Walls", quantity=D("100"), labor_rate=D("1")),)),),
        include_materials=False,
    )
    with capture_logs() as logs:
        engine.calculate(ctx, request, data)

    done = [e for e in logs if e["event"] == "pricing_calculated"]
    assert len(done) == 1
    assert done[0]["tenant_id"] == "tenant_1"
    assert done[0]["quote_id"] == "quote_1"
    assert done[0]["model"] == "rate_based_sqft"
    assert done[0]["total"] == "100.00"
