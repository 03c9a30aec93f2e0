from __future__ import annotations

from typing import Any, Dict, Optional


class PricingError(Exception):
    """
    Base error for the pricing core.
    - code: stable UPPER_SNAKE identifier (for API mapping / tests)
    - message: human readable
    - meta: extra context for the caller
    """

    def __init__(self, code: str, message: str, meta: Optional[Dict[str, Any]] = None):
        self.code = str(code)
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


class PricingInputError(PricingError, ValueError):
    """Raised at the ingestion boundary when a request cannot be interpreted."""


class ProductSetValidationError(PricingInputError):
    """Raised when product-set input has none of the supported shapes."""

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_PRODUCT_SETS", message, meta)


class CalculationSkipped(PricingError):
    """
    The scheme could not be resolved and there is not enough data for the
    rate-based fallback. The caller decides whether to surface this.
    """

    def __init__(self, reason: str, meta: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__("CALCULATION_SKIPPED", reason, meta)


class RulesConfigError(PricingError):
    """Raised when the category/rate tables fail validation."""

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_RULES_CONFIG", message, meta)
