from __future__ import annotations

from decimal import ROUND_CEILING, Decimal
from typing import Optional, Tuple

from ..domain.models import Dimensions, LaborItem
from .rate_tables import QuantityFormula, RateTables

D = Decimal


def derive_quantity(category_name: str, dimensions: Optional[Dimensions], tables: RateTables) -> Optional[D]:
    """
    Quantity from room dimensions, rounded up to a whole unit.
    Returns None when the dimensions cannot produce a positive quantity.
    """
    if dimensions is None:
        return None

    length, width, height = dimensions.length, dimensions.width, dimensions.height
    if length < 0 or width < 0 or height < 0:
        return None

    formula = tables.quantity_formula(tables.classify(category_name))
    if formula == QuantityFormula.PERIMETER_HEIGHT:
        raw = D("2") * (length + width) * height
    elif formula == QuantityFormula.PERIMETER:
        raw = D("2") * (length + width)
    else:
        raw = length * width

    if raw <= 0:
        return None
    return raw.to_integral_value(rounding=ROUND_CEILING)


def effective_quantity(item: LaborItem, tables: RateTables) -> Tuple[Optional[D], str]:
    """
    (quantity, source). An explicit quantity wins over dimensions.
    None means the item has nothing to price and is skipped.
    """
    if item.quantity is not None:
        if item.quantity <= 0:
            return None, "non_positive_quantity"
        return item.quantity, "input"

    derived = derive_quantity(item.category_name, item.dimensions, tables)
    if derived is None:
        return None, "underivable_quantity"
    return derived, "dimensions"
