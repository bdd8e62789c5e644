"""In-process callback delivery, for presentation layers running in the same process."""

from typing import Any, Callable, Optional

from .base import BaseEventDelivery, DeliveryResult, DeliveryStatus

EventCallback = Callable[[dict[str, Any]], Any]


class CallbackEventDelivery(BaseEventDelivery):
    """Hands each event to a Python callable."""

    def __init__(self, name: str, callback: EventCallback,
                 events_filter: Optional[list[str]] = None):
        super().__init__(name, None, events_filter)
        self.callback = callback

    def deliver(self, events: list[dict[str, Any]]) -> list[DeliveryResult]:
        results = []
        for event in events:
            try:
                self.callback(event)
                results.append(DeliveryResult(status=DeliveryStatus.SUCCESS))
            except Exception as e:
                self.logger.error(
                    "Event callback failed",
                    delivery_name=self.name,
                    event_type=event.get("event"),
                    error=str(e),
                    error_type=type(e).__name__
                )
                results.append(DeliveryResult(
                    status=DeliveryStatus.FAILED,
                    message=f"Callback error: {str(e)}",
                    error=e
                ))
        return results

    def health_check(self) -> bool:
        return callable(self.callback)
