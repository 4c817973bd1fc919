"""Domain exceptions."""
from typing import List, Optional


class MarketplaceError(Exception):
    """Base class for marketplace errors."""


class ValidationError(MarketplaceError):
    """Malformed or missing input. Raised before any side effect."""


class NotFoundError(MarketplaceError):
    """A referenced product, cart line or order does not exist."""


class ExternalServiceUnavailable(MarketplaceError):
    """Routing or geocoding provider failed. Absorbed by fallbacks."""


class InvalidStatusTransition(ValidationError):
    """Order status change outside the allowed transitions."""


class CheckoutError(MarketplaceError):
    """A checkout phase failed and the transaction was rolled back."""

    def __init__(self, phase: str, reason: str):
        self.phase = phase
        self.reason = reason
        super().__init__(f"Checkout failed during {phase}: {reason}")


class PartialCompletionError(CheckoutError):
    """
    A checkout phase failed and rollback did not succeed.

    Orders listed in ``order_ids`` may exist without their stock decrement or
    cart clearing having been applied.
    """

    def __init__(
        self,
        phase: str,
        reason: str,
        order_ids: Optional[List[str]] = None,
        completed_sellers: Optional[List[str]] = None,
    ):
        super().__init__(phase, reason)
        self.order_ids = order_ids or []
        self.completed_sellers = completed_sellers or []

    def to_detail(self) -> dict:
        """Reconciliation payload for operators."""
        return {
            "error": "partial_completion",
            "phase": self.phase,
            "reason": self.reason,
            "order_ids": self.order_ids,
            "completed_sellers": self.completed_sellers,
        }
