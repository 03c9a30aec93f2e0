from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence, Union

import structlog

from ..domain.models import ContractorSettings, ProductConfig, ProductSetEntry, Sheen
from .coercion import settings_from_record, to_decimal, to_positive_decimal, to_positive_int
from .normalizer import collect_product_ids

D = Decimal

logger = structlog.get_logger(__name__)


# -----------------------------
# Execution context
# -----------------------------


@dataclass(frozen=True)
class CalculationContext:
    """Who the calculation runs for. Passed explicitly into every call."""

    tenant_id: str
    quote_id: Optional[str] = None
    trace_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def log_fields(self) -> Dict[str, Any]:
        return {"tenant_id": self.tenant_id, "quote_id": self.quote_id, "trace_id": self.trace_id}


# -----------------------------
# Collaborator contracts
# -----------------------------


ProductRecord = Union[ProductConfig, Mapping[str, Any]]


class ProductLookup(Protocol):
    def bulk_get(self, tenant_id: str, ids: Sequence[str]) -> Mapping[Any, ProductRecord]:
        ...


class LaborRateLookup(Protocol):
    def rates_for(self, tenant_id: str) -> Mapping[str, Any]:
        ...


class SettingsLookup(Protocol):
    def settings_for(self, tenant_id: str) -> Optional[Mapping[str, Any]]:
        ...


# -----------------------------
# Record conversion
# -----------------------------


def product_from_record(record: ProductRecord) -> ProductConfig:
    """ProductConfig from a camelCase product record (or pass-through)."""
    if isinstance(record, ProductConfig):
        return record

    sheens = []
    for s in record.get("sheens") or ():
        if not isinstance(s, Mapping):
            continue
        sheens.append(
            Sheen(
                sheen_name=str(s.get("sheenName") or s.get("name") or ""),
                price=to_decimal(s.get("price"), D("0")),
                coverage=to_positive_decimal(s.get("coverage")),
            )
        )

    return ProductConfig(
        id=str(record.get("id")),
        sheens=tuple(sheens),
        default_coats=to_positive_int(record.get("defaultCoats")),
        coverage_sqft_per_gal=to_positive_decimal(record.get("coverageSqftPerGal")),
        name=record.get("name"),
    )


def labor_rates_from_records(raw: Optional[Mapping[str, Any]]) -> Dict[str, D]:
    """categoryName -> rate, keyed lower-case. Non-positive rates are dropped."""
    out: Dict[str, D] = {}
    for name, rate in (raw or {}).items():
        d = to_positive_decimal(rate)
        if d is not None:
            out[str(name).strip().lower()] = d
    return out


# -----------------------------
# Pre-resolved data bundle
# -----------------------------


@dataclass(frozen=True)
class PricingData:
    """
    Everything the engine reads from collaborators, fetched up front.
    products: product id -> ProductConfig
    labor_rates: lower-cased category name -> rate
    """

    settings: ContractorSettings = field(default_factory=ContractorSettings)
    products: Mapping[str, ProductConfig] = field(default_factory=dict)
    labor_rates: Mapping[str, D] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        settings_record: Optional[Mapping[str, Any]] = None,
        products: Iterable[ProductRecord] = (),
        labor_rates: Optional[Mapping[str, Any]] = None,
    ) -> "PricingData":
        configs = [product_from_record(p) for p in products]
        return cls(
            settings=settings_from_record(settings_record),
            products={p.id: p for p in configs},
            labor_rates=labor_rates_from_records(labor_rates),
        )


def load_pricing_data(
    ctx: CalculationContext,
    product_sets: Sequence[ProductSetEntry],
    *,
    products: ProductLookup,
    labor_rates: LaborRateLookup,
    settings: SettingsLookup,
) -> PricingData:
    """
    One bulk call per collaborator. The product lookup receives every id
    referenced by the normalized product sets.
    """
    ids = collect_product_ids(product_sets)
    fetched = products.bulk_get(ctx.tenant_id, ids) if ids else {}

    data = PricingData.build(
        settings_record=settings.settings_for(ctx.tenant_id),
        products=fetched.values(),
        labor_rates=labor_rates.rates_for(ctx.tenant_id),
    )

    missing = sorted(set(ids) - set(data.products))
    logger.info(
        "pricing_data_loaded",
        **ctx.log_fields(),
        requested_products=len(ids),
        loaded_products=len(data.products),
        missing_products=missing,
        labor_rates=len(data.labor_rates),
    )
    return data
