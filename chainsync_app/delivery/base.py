"""Base classes for engine event delivery mechanisms."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import structlog


class DeliveryStatus(Enum):
    """Event delivery status."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryResult:
    """Result of one event delivery attempt."""
    status: DeliveryStatus
    message: Optional[str] = None
    error: Optional[Exception] = None


class BaseEventDelivery(ABC):
    """Base class for event delivery mechanisms."""

    def __init__(self, name: str, config: Any = None,
                 events_filter: Optional[list[str]] = None):
        self.name = name
        self.config = config
        self.events_filter = set(events_filter) if events_filter else None
        self.logger = structlog.get_logger(f"event.delivery.{name}")
        self._delivery_count = 0
        self._error_count = 0

    def accepts(self, event: dict[str, Any]) -> bool:
        return self.events_filter is None or event.get("event") in self.events_filter

    def publish(self, events: list[dict[str, Any]]) -> list[DeliveryResult]:
        """
        Deliver the events this destination accepts and keep statistics.

        Args:
            events: Event envelopes ``{"event": type, "payload": {...}}``

        Returns:
            One result per input event, SKIPPED for filtered events
        """
        results = []
        for event in events:
            if not self.accepts(event):
                results.append(DeliveryResult(status=DeliveryStatus.SKIPPED))
                continue

            result = self.deliver([event])[0]
            if result.status == DeliveryStatus.SUCCESS:
                self._delivery_count += 1
            else:
                self._error_count += 1
            results.append(result)
        return results

    @abstractmethod
    def deliver(self, events: list[dict[str, Any]]) -> list[DeliveryResult]:
        """
        Deliver events to the configured destination.

        Args:
            events: List of event envelopes

        Returns:
            List of delivery results for each event
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if delivery mechanism is healthy."""
        pass

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        return {
            "name": self.name,
            "delivery_count": self._delivery_count,
            "error_count": self._error_count,
            "success_rate": (
                self._delivery_count / (self._delivery_count + self._error_count)
                if (self._delivery_count + self._error_count) > 0 else 0.0
            )
        }

    def reset_stats(self):
        """Reset delivery statistics."""
        self._delivery_count = 0
        self._error_count = 0
