from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from ..domain.models import Tier

# Fixed contract: tried in this order after the requested tier.
FALLBACK_ORDER: Tuple[Tier, ...] = (Tier.BETTER, Tier.GOOD, Tier.BEST, Tier.SINGLE)


@dataclass(frozen=True)
class TierSelection:
    product_id: Optional[str]
    tier_used: Optional[Tier]
    requested: Tier
    reason: Optional[str] = None

    @property
    def configured(self) -> bool:
        return self.product_id is not None

    @property
    def is_fallback(self) -> bool:
        return self.configured and self.tier_used != self.requested

    @staticmethod
    def unconfigured(requested: Tier, reason: str) -> "TierSelection":
        return TierSelection(product_id=None, tier_used=None, requested=requested, reason=reason)


def _product_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    return s or None


def select_tier_product(products: Optional[Mapping[str, Any]], requested: Tier | str) -> TierSelection:
    """
    Resolve the product id for the requested tier, falling back along
    better -> good -> best -> single. Never raises for missing data:
    returns an unconfigured selection instead.
    """
    tier = Tier(requested)
    if not products:
        return TierSelection.unconfigured(tier, "no_products")

    for candidate in (tier, *FALLBACK_ORDER):
        pid = _product_id(products.get(candidate.value))
        if pid is not None:
            return TierSelection(product_id=pid, tier_used=candidate, requested=tier)

    return TierSelection.unconfigured(tier, "no_product_for_any_tier")
