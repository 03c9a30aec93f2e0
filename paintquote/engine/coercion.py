"""
Single place where loosely typed numbers (JSON, DB decimals, form strings)
become Decimals. Every percentage, rate and quantity read by the engine
goes through here.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..domain.models import ContractorSettings

D = Decimal

# ContractorSettings record field -> (dataclass attribute)
_PERCENT_FIELDS = {
    "laborMarkupPercent": "labor_markup_percent",
    "materialMarkupPercent": "material_markup_percent",
    "overheadPercent": "overhead_percent",
    "netProfitPercent": "net_profit_percent",
    "taxRatePercentage": "tax_rate_percentage",
    "depositPercentage": "deposit_percentage",
}

# ContractorSettings production columns -> category keys of the rules table
PRODUCTION_RATE_FIELDS = {
    "productionInteriorWalls": "interior_walls",
    "productionInteriorCeilings": "ceilings",
    "productionInteriorTrim": "interior_trim",
    "productionExteriorWalls": "exterior_walls",
    "productionExteriorTrim": "exterior_trim",
    "productionSoffitFascia": "soffit_fascia",
    "productionGutters": "gutters",
    "productionDoors": "doors",
    "productionCabinets": "cabinets",
}


def to_decimal(value: Any, default: Optional[D] = None) -> Optional[D]:
    """
    Decimal(str(x)) with a default for None, empty strings, NaN/Infinity
    and anything that does not parse. Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        d = value
    else:
        s = str(value).strip()
        if not s:
            return default
        try:
            d = D(s)
        except (InvalidOperation, ValueError):
            return default
    if not d.is_finite():
        return default
    return d


def to_positive_decimal(value: Any, default: Optional[D] = None) -> Optional[D]:
    """Like to_decimal, but zero and negatives count as absent."""
    d = to_decimal(value, None)
    if d is None or d <= 0:
        return default
    return d


def to_positive_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    d = to_positive_decimal(value, None)
    if d is None:
        return default
    n = int(d)
    return n if n > 0 else default


def to_percent(value: Any, default: D) -> D:
    """
    Percent fields: absent/NaN -> default, negative -> 0.
    An explicit 0 stays 0.
    """
    d = to_decimal(value, None)
    if d is None:
        return default
    return d if d > 0 else D("0")


def _decimal_map(raw: Any) -> dict:
    out = {}
    if not isinstance(raw, Mapping):
        return out
    for k, v in raw.items():
        d = to_positive_decimal(v)
        if d is not None:
            out[str(k)] = d
    return out


def settings_from_record(record: Optional[Mapping[str, Any]]) -> ContractorSettings:
    """
    Build ContractorSettings from a raw tenant settings record
    (camelCase keys as stored by the settings collaborator).
    None => all defaults.
    """
    base = ContractorSettings()
    if not record:
        return base

    kwargs: dict = {}
    for src, attr in _PERCENT_FIELDS.items():
        kwargs[attr] = to_percent(record.get(src), getattr(base, attr))

    # legacy single markup field feeds material markup when the split field is absent
    if to_decimal(record.get("materialMarkupPercent")) is None:
        kwargs["material_markup_percent"] = to_percent(
            record.get("defaultMarkupPercentage"), base.material_markup_percent
        )

    kwargs["turnkey_interior_rate"] = to_positive_decimal(record.get("turnkeyInteriorRate"))
    kwargs["turnkey_exterior_rate"] = to_positive_decimal(record.get("turnkeyExteriorRate"))

    kwargs["hourly_labor_rate"] = to_positive_decimal(
        record.get("defaultLaborHourRate", record.get("hourlyLaborRate")),
        base.hourly_labor_rate,
    )
    kwargs["crew_size"] = to_positive_int(record.get("crewSize"), base.crew_size)

    production: dict = {}
    for src, key in PRODUCTION_RATE_FIELDS.items():
        d = to_positive_decimal(record.get(src))
        if d is not None:
            production[key] = d
    kwargs["production_rates"] = production

    kwargs["flat_rate_unit_prices"] = _decimal_map(record.get("flatRateUnitPrices"))
    kwargs["quote_validity_days"] = to_positive_int(
        record.get("quoteValidityDays"), base.quote_validity_days
    )

    return ContractorSettings(**kwargs)
