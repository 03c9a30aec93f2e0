from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

D = Decimal


# -----------------------------
# Enums
# -----------------------------


class PricingModel(str, Enum):
    TURNKEY = "turnkey"
    RATE_BASED_SQFT = "rate_based_sqft"
    PRODUCTION_BASED = "production_based"
    FLAT_RATE_UNIT = "flat_rate_unit"


class Tier(str, Enum):
    GOOD = "good"
    BETTER = "better"
    BEST = "best"
    SINGLE = "single"


class MeasurementUnit(str, Enum):
    SQFT = "sqft"
    LINEAR_FOOT = "linear_foot"
    UNIT = "unit"
    HOUR = "hour"


class ApplicationMethod(str, Enum):
    ROLL = "roll"
    SPRAY = "spray"


class TaxBase(str, Enum):
    """Which amount sales tax is charged on."""

    MATERIALS_ONLY = "materials_only"
    SUBTOTAL = "subtotal"


class GallonRounding(str, Enum):
    WHOLE = "whole"
    QUARTER = "quarter"


# -----------------------------
# Scheme / job input
# -----------------------------


@dataclass(frozen=True)
class PricingScheme:
    type: Optional[str]
    pricing_rules: Mapping[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Dimensions:
    length: D
    width: D
    height: D = D("0")


@dataclass(frozen=True)
class LaborItem:
    category_name: str
    measurement_unit: MeasurementUnit = MeasurementUnit.SQFT
    quantity: Optional[D] = None
    labor_rate: D = D("0")
    number_of_coats: Optional[int] = None
    selected: bool = True
    dimensions: Optional[Dimensions] = None


@dataclass(frozen=True)
class LegacySurface:
    """
    Old area shape (before labor items): one row per painted surface,
    always measured in square feet.
    """

    type: str
    sqft: D = D("0")
    selected: bool = True
    condition: Optional[str] = None
    needs_prep: bool = False
    textured: bool = False
    high_ceiling: bool = False
    vaulted: bool = False
    units: Optional[int] = None


@dataclass(frozen=True)
class Area:
    name: str
    id: Optional[str] = None
    items: Tuple[LaborItem, ...] = ()
    surfaces: Tuple[LegacySurface, ...] = ()

    @property
    def selected_items(self) -> Tuple[LaborItem, ...]:
        return tuple(i for i in self.items if i.selected)


@dataclass(frozen=True)
class ProductSetEntry:
    """
    Canonical product selection for one surface.
    area_id None => global (turnkey) selection, not scoped to an area.
    products: tier name -> product config id
    """

    surface_type: str
    products: Mapping[str, str] = field(default_factory=dict)
    area_id: Optional[str] = None
    area_name: str = ""
    quantity: Optional[D] = None
    unit: Optional[str] = None
    overridden: bool = False

    @property
    def is_global(self) -> bool:
        return self.area_id is None


# -----------------------------
# Collaborator records (read-only)
# -----------------------------


@dataclass(frozen=True)
class Sheen:
    sheen_name: str
    price: D
    coverage: Optional[D] = None


@dataclass(frozen=True)
class ProductConfig:
    id: str
    sheens: Tuple[Sheen, ...] = ()
    default_coats: Optional[int] = None
    coverage_sqft_per_gal: Optional[D] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ContractorSettings:
    """
    Tenant pricing configuration. Absent fields already carry their
    defaults here (see engine.coercion for the raw-record conversion).

    production_rates: category key -> units per hour (overrides table defaults)
    flat_rate_unit_prices: price key -> unit price (overrides table defaults)
    """

    labor_markup_percent: D = D("0")
    material_markup_percent: D = D("30")
    overhead_percent: D = D("0")
    net_profit_percent: D = D("0")
    tax_rate_percentage: D = D("8.25")
    deposit_percentage: D = D("50")

    turnkey_interior_rate: Optional[D] = None
    turnkey_exterior_rate: Optional[D] = None

    hourly_labor_rate: D = D("50")
    crew_size: int = 2

    production_rates: Mapping[str, D] = field(default_factory=dict)
    flat_rate_unit_prices: Mapping[str, D] = field(default_factory=dict)

    quote_validity_days: int = 30


# -----------------------------
# Request (after ingestion)
# -----------------------------


@dataclass(frozen=True)
class CalculationRequest:
    scheme: PricingScheme
    areas: Tuple[Area, ...] = ()
    product_sets: Tuple[ProductSetEntry, ...] = ()
    home_sqft: Optional[D] = None
    job_type: str = "interior"
    selected_tier: Tier = Tier.BETTER
    include_materials: Optional[bool] = None
    coverage: Optional[D] = None
    application_method: Optional[ApplicationMethod] = None
    coats: Optional[int] = None
    condition_modifier: Optional[str] = None
    tax_base: Optional[TaxBase] = None
    debug_trace: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)
