"""
Product-set normalization.

Three input shapes exist in stored quotes:

- canonical: ``[{"areaId": 1, "areaName": "Kitchen", "surfaceType": "Walls",
  "products": {"good": 11, "better": 12}}, ...]``
- surface keyed (turnkey): ``{"Walls": {"products": {...}}, ...}``
- area keyed: ``{"1": {"areaName": "Kitchen", "surfaces": {"Walls": {...}}}}``

The shape is detected once (``detect_shape``) and everything downstream
works on ``ProductSetEntry`` tuples only.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..domain.errors import ProductSetValidationError
from ..domain.models import Area, ProductSetEntry, Tier
from .coercion import to_decimal
from .tier_selector import select_tier_product

_TIER_KEYS = tuple(t.value for t in Tier)


class ProductSetShape(str, Enum):
    EMPTY = "empty"
    CANONICAL = "canonical"
    SURFACE_KEYED = "surface_keyed"
    AREA_KEYED = "area_keyed"


@dataclass(frozen=True)
class SkippedSurface:
    area_id: Optional[str]
    area_name: str
    category_name: str
    reason: str


@dataclass(frozen=True)
class EnrichmentResult:
    entries: Tuple[ProductSetEntry, ...]
    skipped: Tuple[SkippedSurface, ...] = ()


# -----------------------------
# Shape detection
# -----------------------------


def _is_canonical_element(x: Any) -> bool:
    if isinstance(x, ProductSetEntry):
        return True
    return isinstance(x, Mapping) and ("surfaceType" in x or "surface_type" in x)


def detect_shape(raw: Any) -> ProductSetShape:
    if raw is None:
        return ProductSetShape.EMPTY

    if isinstance(raw, (str, bytes)):
        raise ProductSetValidationError(
            "product sets must be a list or an object, got an encoded string",
            {"type": type(raw).__name__},
        )

    if isinstance(raw, Mapping):
        if not raw:
            return ProductSetShape.EMPTY
        values = list(raw.values())
        if not all(isinstance(v, Mapping) for v in values):
            raise ProductSetValidationError(
                "every product-set object value must be an object",
                {"keys": sorted(str(k) for k in raw.keys())},
            )
        with_surfaces = [isinstance(v.get("surfaces"), Mapping) for v in values]
        if all(with_surfaces):
            return ProductSetShape.AREA_KEYED
        if not any(with_surfaces):
            return ProductSetShape.SURFACE_KEYED
        raise ProductSetValidationError(
            "product-set object mixes area-keyed and surface-keyed entries"
        )

    if isinstance(raw, (list, tuple)):
        if not raw:
            return ProductSetShape.EMPTY
        bad = [i for i, x in enumerate(raw) if not _is_canonical_element(x)]
        if bad:
            raise ProductSetValidationError(
                "product-set list entries must carry a surfaceType",
                {"invalid_indexes": bad},
            )
        return ProductSetShape.CANONICAL

    raise ProductSetValidationError(
        "unsupported product-set input", {"type": type(raw).__name__}
    )


# -----------------------------
# Conversion helpers
# -----------------------------


def _product_ref(value: Any) -> Optional[str]:
    # legacy payloads sometimes embed the whole product object
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    return s or None


def _parse_products(data: Mapping[str, Any]) -> Dict[str, str]:
    raw = data.get("products")
    if not isinstance(raw, Mapping):
        # legacy surface rows put tier products directly on the row
        raw = {k: data.get(k) for k in _TIER_KEYS if k in data}

    out: Dict[str, str] = {}
    for tier, ref in raw.items():
        key = str(tier).strip().lower()
        pid = _product_ref(ref)
        if key and pid is not None:
            out[key] = pid
    return out


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _entry_from_mapping(data: Mapping[str, Any]) -> ProductSetEntry:
    surface_type = _optional_str(data.get("surfaceType", data.get("surface_type")))
    if surface_type is None:
        raise ProductSetValidationError("product-set entry has an empty surfaceType")
    return ProductSetEntry(
        surface_type=surface_type,
        products=_parse_products(data),
        area_id=_optional_str(data.get("areaId", data.get("area_id"))),
        area_name=str(data.get("areaName", data.get("area_name")) or ""),
        quantity=to_decimal(data.get("quantity")),
        unit=_optional_str(data.get("unit")),
        overridden=bool(data.get("overridden", False)),
    )


# -----------------------------
# Public API
# -----------------------------


def normalize_product_sets(raw: Any) -> List[ProductSetEntry]:
    """
    Any supported shape -> flat canonical list. Idempotent:
    normalize_product_sets(normalize_product_sets(x)) == normalize_product_sets(x)
    """
    shape = detect_shape(raw)

    if shape == ProductSetShape.EMPTY:
        return []

    if shape == ProductSetShape.CANONICAL:
        if all(isinstance(x, ProductSetEntry) for x in raw):
            return list(raw)
        return [x if isinstance(x, ProductSetEntry) else _entry_from_mapping(x) for x in raw]

    converted: List[ProductSetEntry] = []

    if shape == ProductSetShape.SURFACE_KEYED:
        for surface_type, data in raw.items():
            converted.append(
                _entry_from_mapping({**data, "surfaceType": str(surface_type), "areaId": None})
            )
        return converted

    # AREA_KEYED
    for area_key, area_data in raw.items():
        area_id = _optional_str(area_data.get("areaId")) or str(area_key)
        area_name = str(area_data.get("areaName") or f"Area {area_id}")
        for surface_type, surface_data in area_data["surfaces"].items():
            if not isinstance(surface_data, Mapping):
                raise ProductSetValidationError(
                    "surface entry must be an object",
                    {"area_id": area_id, "surface_type": str(surface_type)},
                )
            converted.append(
                _entry_from_mapping(
                    {
                        **surface_data,
                        "surfaceType": str(surface_type),
                        "areaId": area_id,
                        "areaName": area_name,
                    }
                )
            )
    return converted


def area_key(area: Area, index: int) -> str:
    """Areas without an id are addressed by their position."""
    return area.id if area.id is not None else str(index)


def find_entry_for_item(
    entries: Sequence[ProductSetEntry], area_id: Optional[str], category_name: str
) -> Optional[ProductSetEntry]:
    """
    Lookup order: same area exact, global exact, same area/global
    substring, then any area exact.
    """
    name = (category_name or "").strip().lower()
    if not name:
        return None

    def exact(e: ProductSetEntry) -> bool:
        return e.surface_type.strip().lower() == name

    def scoped(e: ProductSetEntry) -> bool:
        return e.is_global or (area_id is not None and e.area_id == area_id)

    for e in entries:
        if area_id is not None and e.area_id == area_id and exact(e):
            return e
    for e in entries:
        if e.is_global and exact(e):
            return e
    for e in entries:
        if scoped(e) and name in e.surface_type.lower():
            return e
    for e in entries:
        if exact(e):
            return e
    return None


def enrich_product_sets(
    entries: Sequence[ProductSetEntry], areas: Sequence[Area]
) -> EnrichmentResult:
    """
    Cross-check every selected labor item against the product selections:
    - matched area entries get quantity/unit/area name filled from the item
    - selected surfaces without any entry are reported, never dropped silently
    """
    out: List[ProductSetEntry] = list(entries)
    skipped: List[SkippedSurface] = []

    for index, area in enumerate(areas):
        aid = area_key(area, index)
        for item in area.selected_items:
            match = find_entry_for_item(out, aid, item.category_name)
            if match is None:
                skipped.append(
                    SkippedSurface(
                        area_id=aid,
                        area_name=area.name,
                        category_name=item.category_name,
                        reason="no_product_selection",
                    )
                )
                continue
            if match.is_global or match.area_id != aid:
                continue

            filled = replace(
                match,
                quantity=match.quantity if match.quantity is not None else item.quantity,
                unit=match.unit or item.measurement_unit.value,
                area_name=match.area_name or area.name,
            )
            if filled != match:
                out[out.index(match)] = filled

    return EnrichmentResult(entries=tuple(out), skipped=tuple(skipped))


def collect_product_ids(
    entries: Iterable[ProductSetEntry], tier: Optional[Tier] = None
) -> Tuple[str, ...]:
    """
    Every product id referenced by the selections, for one bulk fetch.
    With a tier: only the ids the tier selector can actually resolve to.
    """
    ids = set()
    for e in entries:
        if tier is None:
            ids.update(e.products.values())
            continue
        sel = select_tier_product(e.products, tier)
        if sel.product_id is not None:
            ids.add(sel.product_id)
    return tuple(sorted(ids))


def entries_to_payload(entries: Iterable[ProductSetEntry]) -> List[Dict[str, Any]]:
    """Canonical entries -> JSON-ready dicts (persistence / API responses)."""
    out: List[Dict[str, Any]] = []
    for e in entries:
        out.append(
            {
                "areaId": e.area_id,
                "areaName": e.area_name,
                "surfaceType": e.surface_type,
                "products": dict(e.products),
                "quantity": str(e.quantity) if e.quantity is not None else None,
                "unit": e.unit,
                "overridden": e.overridden,
            }
        )
    return out
