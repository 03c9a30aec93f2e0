from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from ..domain.models import ContractorSettings, Tier
from ..engine.coercion import to_positive_decimal
from ..engine.rate_tables import RateTables

D = Decimal


@dataclass(frozen=True)
class TurnkeyAdjustment:
    base_rate: D
    base_rate_source: str
    tier_rate: D
    tier_applied: bool
    condition: Optional[str]
    condition_multiplier: D
    adjusted_rate: D


def _base_rate(
    rules: Mapping[str, Any], settings: ContractorSettings, tables: RateTables, job_type: str
) -> Tuple[D, str]:
    """
    Chain: scheme interior/exterior rate -> tenant turnkey rate for the
    job type -> scheme turnkeyRate -> table default.
    """
    exterior = (job_type or "").strip().lower() == "exterior"

    scheme_rate = to_positive_decimal(rules.get("exteriorRate" if exterior else "interiorRate"))
    if scheme_rate is not None:
        return scheme_rate, "scheme_exterior_rate" if exterior else "scheme_interior_rate"

    tenant_rate = settings.turnkey_exterior_rate if exterior else settings.turnkey_interior_rate
    if tenant_rate is not None and tenant_rate > 0:
        return tenant_rate, "settings_turnkey_rate"

    generic = to_positive_decimal(rules.get("turnkeyRate"))
    if generic is not None:
        return generic, "scheme_turnkey_rate"

    return tables.turnkey.default_rate, "table_default"


def adjust_turnkey_rate(
    rules: Optional[Mapping[str, Any]],
    settings: ContractorSettings,
    tables: RateTables,
    *,
    job_type: str,
    tier: Tier | str,
    condition: Optional[str],
) -> TurnkeyAdjustment:
    """
    Per-sqft turnkey rate after the GBB tier override and the property
    condition multiplier: adjusted = tier_rate x multiplier.
    """
    rules = rules or {}
    t = Tier(tier)
    base, source = _base_rate(rules, settings, tables, job_type)

    tier_rate = base
    tier_applied = False
    gbb = rules.get("gbbRates")
    if isinstance(gbb, Mapping) and t != Tier.SINGLE:
        override = to_positive_decimal(gbb.get(t.value))
        if override is not None:
            tier_rate = override
            tier_applied = True

    multiplier = tables.condition_multiplier(condition)
    return TurnkeyAdjustment(
        base_rate=base,
        base_rate_source=source,
        tier_rate=tier_rate,
        tier_applied=tier_applied,
        condition=condition,
        condition_multiplier=multiplier,
        adjusted_rate=tier_rate * multiplier,
    )


def split_turnkey_total(total: D, include_materials: bool, labor_share: D = D("0.60")) -> Tuple[D, D]:
    """(labor, material). Labor-only quotes book the whole amount as labor."""
    if not include_materials:
        return total, D("0")
    labor = total * labor_share
    return labor, total - labor
