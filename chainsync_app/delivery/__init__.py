"""Publishing of operation outcomes and account snapshots."""

from .base import BaseEventDelivery, DeliveryResult, DeliveryStatus
from .callback_delivery import CallbackEventDelivery
from .stdout_delivery import StdoutEventDelivery

__all__ = [
    "BaseEventDelivery",
    "DeliveryResult",
    "DeliveryStatus",
    "CallbackEventDelivery",
    "StdoutEventDelivery",
]
