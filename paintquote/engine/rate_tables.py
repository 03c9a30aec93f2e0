from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import structlog
import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from ..core.settings import DEFAULT_RULES_PATH
from ..domain.errors import RulesConfigError
from ..domain.models import ContractorSettings

D = Decimal

logger = structlog.get_logger(__name__)


class SurfaceCategory(str, Enum):
    INTERIOR_WALLS = "interior_walls"
    EXTERIOR_WALLS = "exterior_walls"
    CEILINGS = "ceilings"
    INTERIOR_TRIM = "interior_trim"
    EXTERIOR_TRIM = "exterior_trim"
    SOFFIT_FASCIA = "soffit_fascia"
    GUTTERS = "gutters"
    DECK = "deck"
    DOORS = "doors"
    WINDOWS = "windows"
    CABINETS = "cabinets"
    OTHER = "other"


class QuantityFormula(str, Enum):
    PERIMETER_HEIGHT = "perimeter_height"  # 2 x (L + W) x H
    AREA = "area"  # L x W
    PERIMETER = "perimeter"  # 2 x (L + W)


@dataclass(frozen=True)
class KeywordRule:
    category: SurfaceCategory
    all_of: Tuple[str, ...] = ()
    any_of: Tuple[str, ...] = ()

    def matches(self, name_lower: str) -> bool:
        if any(k not in name_lower for k in self.all_of):
            return False
        if self.any_of and not any(k in name_lower for k in self.any_of):
            return False
        return True

    @classmethod
    def keywords(cls, r: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "category": SurfaceCategory(r["key"]),
            "all_of": tuple(str(k).lower() for k in r.get("all_of") or ()),
            "any_of": tuple(str(k).lower() for k in r.get("any_of") or ()),
        }


@dataclass(frozen=True)
class CategoryRule(KeywordRule):
    formula: QuantityFormula = QuantityFormula.AREA


def _first_match(rules: Tuple[KeywordRule, ...], category_name: Optional[str]) -> SurfaceCategory:
    name = (category_name or "").strip().lower()
    if not name:
        return SurfaceCategory.OTHER
    for rule in rules:
        if rule.matches(name):
            return rule.category
    return SurfaceCategory.OTHER


@dataclass(frozen=True)
class MaterialDefaults:
    cost_per_gallon: D
    coverage: D
    coats: int
    waste_factor: D
    coverage_min: D
    coverage_max: D
    spray_coverage_cap: D

    def clamp_coverage(self, coverage: D) -> D:
        return min(max(coverage, self.coverage_min), self.coverage_max)


@dataclass(frozen=True)
class TurnkeyDefaults:
    default_rate: D
    labor_share: D


@dataclass(frozen=True)
class LegacyLaborDefaults:
    sqft_rate: D
    fallback_sqft_rate: D
    unit_price: D
    room_flat_rate: D
    productivity_rate: D
    hourly_rate: D
    crew_size: int


@dataclass(frozen=True)
class LegacySurfaceRates:
    prep_rate: D
    textured_rate: D
    high_ceiling_rate: D
    labor: LegacyLaborDefaults


@dataclass(frozen=True)
class RateTables:
    """
    Category classification + default rate tables, built once from YAML.
    Every lookup after classify() is keyed by SurfaceCategory, never by
    the free-text category name.
    """

    version: str
    rules: Tuple[CategoryRule, ...]
    production_rules: Tuple[KeywordRule, ...]
    production_default: D
    production_rates: Mapping[SurfaceCategory, D]
    flat_rate_keys: Mapping[SurfaceCategory, str]
    flat_rate_defaults: Mapping[SurfaceCategory, D]
    condition_multipliers: Mapping[str, D]
    materials: MaterialDefaults
    turnkey: TurnkeyDefaults
    legacy: LegacySurfaceRates

    # -----------------
    # classification
    # -----------------

    def classify(self, category_name: Optional[str]) -> SurfaceCategory:
        return _first_match(self.rules, category_name)

    def classify_production(self, category_name: Optional[str]) -> SurfaceCategory:
        """
        Stricter match used for production rates: walls and trim need an
        interior/exterior qualifier, bare "Walls" takes the default rate.
        """
        return _first_match(self.production_rules, category_name)

    def quantity_formula(self, category: SurfaceCategory) -> QuantityFormula:
        for rule in self.rules:
            if rule.category == category:
                return rule.formula
        return QuantityFormula.AREA

    # -----------------
    # lookups
    # -----------------

    def production_rate(
        self, category: SurfaceCategory, settings: ContractorSettings
    ) -> Tuple[D, str]:
        """Units per labor-hour + where the number came from."""
        tenant = settings.production_rates.get(category.value)
        if tenant is not None and tenant > 0:
            return tenant, "settings"
        rate = self.production_rates.get(category)
        if rate is not None:
            return rate, "table_default"
        return self.production_default, "fallback_default"

    def flat_rate_price(
        self, category: SurfaceCategory, category_name: str, settings: ContractorSettings
    ) -> Optional[Tuple[D, str]]:
        """
        Unit price for the flat-rate model, or None when neither the
        category table nor the tenant's free-form keys know the item.
        """
        prices = settings.flat_rate_unit_prices
        price_key = self.flat_rate_keys.get(category)
        if price_key is not None:
            tenant = prices.get(price_key)
            if tenant is not None and tenant > 0:
                return tenant, "settings"
            return self.flat_rate_defaults[category], "table_default"

        # free-form key, e.g. "Accent Wall" -> "accent_wall"
        direct_key = "_".join((category_name or "").lower().split())
        tenant = prices.get(direct_key)
        if tenant is not None and tenant > 0:
            return tenant, "settings_key"
        return None

    def condition_multiplier(self, condition: Optional[str]) -> D:
        if not condition:
            return D("1")
        return self.condition_multipliers.get(str(condition).strip().lower(), D("1"))

    # -----------------
    # construction
    # -----------------

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RateTables":
        rules = tuple(
            CategoryRule(formula=QuantityFormula(r["formula"]), **KeywordRule.keywords(r))
            for r in d["categories"]
        )
        production_rules = tuple(
            KeywordRule(**KeywordRule.keywords(r)) for r in d.get("production_categories") or ()
        )

        prod = d["production_rates"]
        flat = d["flat_rate_prices"]
        mat = d["materials"]
        tk = d["turnkey"]
        legacy = d["legacy_surfaces"]
        ll = legacy["labor"]

        materials = MaterialDefaults(
            cost_per_gallon=D(str(mat["cost_per_gallon"])),
            coverage=D(str(mat["coverage"])),
            coats=int(mat["coats"]),
            waste_factor=D(str(mat["waste_factor"])),
            coverage_min=D(str(mat["coverage_min"])),
            coverage_max=D(str(mat["coverage_max"])),
            spray_coverage_cap=D(str(mat["spray_coverage_cap"])),
        )
        if materials.coverage_min > materials.coverage_max:
            raise RulesConfigError(
                "materials.coverage_min must not exceed coverage_max",
                {"coverage_min": str(materials.coverage_min), "coverage_max": str(materials.coverage_max)},
            )

        return cls(
            version=str(d.get("version") or "1"),
            rules=rules,
            production_rules=production_rules,
            production_default=D(str(prod["default"])),
            production_rates={
                SurfaceCategory(k): D(str(v)) for k, v in (prod.get("rates") or {}).items()
            },
            flat_rate_keys={SurfaceCategory(k): str(v["price_key"]) for k, v in flat.items()},
            flat_rate_defaults={SurfaceCategory(k): D(str(v["default"])) for k, v in flat.items()},
            condition_multipliers={
                str(k).lower(): D(str(v)) for k, v in d["condition_multipliers"].items()
            },
            materials=materials,
            turnkey=TurnkeyDefaults(
                default_rate=D(str(tk["default_rate"])),
                labor_share=D(str(tk["labor_share"])),
            ),
            legacy=LegacySurfaceRates(
                prep_rate=D(str(legacy["prep_rate"])),
                textured_rate=D(str(legacy["textured_rate"])),
                high_ceiling_rate=D(str(legacy["high_ceiling_rate"])),
                labor=LegacyLaborDefaults(
                    sqft_rate=D(str(ll["sqft_rate"])),
                    fallback_sqft_rate=D(str(ll["fallback_sqft_rate"])),
                    unit_price=D(str(ll["unit_price"])),
                    room_flat_rate=D(str(ll["room_flat_rate"])),
                    productivity_rate=D(str(ll["productivity_rate"])),
                    hourly_rate=D(str(ll["hourly_rate"])),
                    crew_size=int(ll["crew_size"]),
                ),
            ),
        )

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> "RateTables":
        tables_path = Path(path)

        try:
            with tables_path.open("r", encoding="utf-8") as f:
                d = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise RulesConfigError(f"Rate tables not found: {tables_path}") from e
        except yaml.YAMLError as e:
            raise RulesConfigError(f"Rate tables are not valid YAML: {tables_path}") from e

        schema_path = Path(__file__).resolve().parents[1] / "schemas" / "surface_categories.schema.json"
        with schema_path.open("r", encoding="utf-8") as f:
            schema = json.load(f)

        try:
            validate(instance=d, schema=schema)
        except SchemaValidationError as e:
            raise RulesConfigError(
                f"Rate tables failed validation: {e.message}",
                {"path": "/".join(str(p) for p in e.absolute_path), "file": str(tables_path)},
            ) from e

        tables = cls.from_dict(d)
        logger.info(
            "rate_tables_loaded",
            path=str(tables_path),
            version=tables.version,
            category_rules=len(tables.rules),
        )
        return tables


@lru_cache(maxsize=8)
def load_rate_tables(path: Optional[str] = None) -> RateTables:
    """Load (once per path) and validate the rate tables."""
    return RateTables.from_yaml_file(path or DEFAULT_RULES_PATH)
