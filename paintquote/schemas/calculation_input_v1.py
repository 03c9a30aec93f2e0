# paintquote/schemas/calculation_input_v1.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """
    Request payloads arrive camelCase from the quote builder.
    Unknown keys are ignored: stored quotes carry UI-only fields.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _id_to_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


class DimensionsV1(_CamelModel):
    length: Decimal = Field(ge=0)
    width: Decimal = Field(ge=0)
    height: Decimal = Field(default=Decimal("0"), ge=0)


class LaborItemV1(_CamelModel):
    category_name: str = Field(min_length=1)
    # negative / zero quantities are skipped by the engine, not rejected here
    quantity: Optional[Decimal] = None
    measurement_unit: Literal["sqft", "linear_foot", "unit", "hour"] = "sqft"
    labor_rate: Optional[Decimal] = None
    number_of_coats: Optional[int] = Field(default=None, ge=1)
    selected: bool = True
    dimensions: Optional[DimensionsV1] = None


class LegacySurfaceV1(_CamelModel):
    type: str = Field(min_length=1)
    sqft: Decimal = Decimal("0")
    selected: bool = True
    condition: Optional[str] = None
    needs_prep: bool = False
    textured: bool = False
    high_ceiling: bool = False
    vaulted: bool = False
    units: Optional[int] = Field(default=None, ge=0)


class AreaV1(_CamelModel):
    id: Optional[str] = None
    name: str = ""
    items: List[LaborItemV1] = Field(
        default_factory=list, validation_alias=AliasChoices("laborItems", "items")
    )
    surfaces: List[LegacySurfaceV1] = Field(default_factory=list)

    normalize_id = field_validator("id", mode="before")(_id_to_str)


class CalculationRequestV1(_CamelModel):
    # scheme
    scheme_type: Optional[str] = None
    scheme_id: Optional[str] = None
    pricing_rules: Dict[str, Any] = Field(default_factory=dict)

    # job
    areas: List[AreaV1] = Field(default_factory=list)
    # any of the stored shapes; resolved by the normalizer at ingestion
    product_sets: Any = None
    home_sqft: Optional[Decimal] = None
    job_type: Literal["interior", "exterior"] = "interior"
    selected_tier: Literal["good", "better", "best", "single"] = "better"

    # material overrides
    include_materials: Optional[bool] = None
    coverage: Optional[Decimal] = Field(default=None, gt=0)
    application_method: Optional[Literal["roll", "spray"]] = None
    coats: Optional[int] = Field(default=None, ge=1)

    condition_modifier: Optional[str] = None
    tax_base: Optional[Literal["materials_only", "subtotal"]] = None
    debug_trace: bool = False

    normalize_scheme_id = field_validator("scheme_id", mode="before")(_id_to_str)

    @field_validator("job_type", "selected_tier", "application_method", "tax_base", mode="before")
    @classmethod
    def lower_choices(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("condition_modifier", mode="before")
    @classmethod
    def blank_condition(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v
