"""Exception taxonomy for the order fulfillment engine."""

from __future__ import annotations

from typing import Optional


class AutoChefError(Exception):
    """Root of every error raised by the engine."""


class TransientBackendError(AutoChefError):
    """Network, HTTP or payload failure while talking to the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CatalogUnavailable(AutoChefError):
    """Catalog bootstrap exhausted its retries; the engine is non-operational."""


class OrderAlreadyInFlight(AutoChefError):
    pass


class OrderCancelled(AutoChefError):
    """Normal terminal path: the order was dropped, not failed."""


class OrderProcessingError(AutoChefError):
    """Failure confined to the current order."""

    kind = "Failed"


class NoRecipesAvailable(OrderProcessingError):
    kind = "NoRecipesAvailable"


class InvalidRecipeIndex(OrderProcessingError):
    kind = "InvalidRecipeIndex"


class ActuatorBusy(OrderProcessingError):
    kind = "ActuatorBusy"


class ActuatorFailed(OrderProcessingError):
    kind = "ActuatorFailed"


class ActuatorTimeout(OrderProcessingError):
    kind = "TimedOut"


class StatusPushFailed(OrderProcessingError):
    kind = "StatusPushFailed"


__all__ = [
    "AutoChefError",
    "TransientBackendError",
    "CatalogUnavailable",
    "OrderAlreadyInFlight",
    "OrderCancelled",
    "OrderProcessingError",
    "NoRecipesAvailable",
    "InvalidRecipeIndex",
    "ActuatorBusy",
    "ActuatorFailed",
    "ActuatorTimeout",
    "StatusPushFailed",
]
