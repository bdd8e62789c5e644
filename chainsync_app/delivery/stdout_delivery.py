"""Standard output event delivery mechanism."""

import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

import orjson

from ..config.delivery import StdoutDeliveryConfig
from .base import BaseEventDelivery, DeliveryResult, DeliveryStatus


class StdoutEventDelivery(BaseEventDelivery):
    """Writes one line per event to stdout."""

    def __init__(self, name: str, config: Optional[StdoutDeliveryConfig] = None,
                 events_filter: Optional[list[str]] = None, stream: Optional[TextIO] = None):
        super().__init__(name, config or StdoutDeliveryConfig(), events_filter)
        self.config: StdoutDeliveryConfig
        self.stream = stream

    def _output(self) -> TextIO:
        return self.stream or sys.stdout

    def deliver(self, events: list[dict[str, Any]]) -> list[DeliveryResult]:
        """Deliver events to stdout."""
        results = []

        for event in events:
            try:
                print(self._format_event(event), file=self._output(), flush=True)
                results.append(DeliveryResult(
                    status=DeliveryStatus.SUCCESS,
                    message="Printed to stdout"
                ))

            except Exception as e:
                self.logger.error(
                    "Failed to print event to stdout",
                    delivery_name=self.name,
                    event_type=event.get("event"),
                    error=str(e)
                )
                results.append(DeliveryResult(
                    status=DeliveryStatus.FAILED,
                    message=f"Stdout error: {str(e)}",
                    error=e
                ))

        return results

    def _format_event(self, event: dict[str, Any]) -> str:
        """Format event for stdout output."""
        payload = event.get("payload", {})
        if self.config.format == "pretty":
            output = f"[{datetime.now(timezone.utc).isoformat()}] {event.get('event', 'event').upper()}"
            if "status" in payload:
                output += f": {payload.get('method_name', '')} -> {payload['status']}"
            error = payload.get("error")
            if error:
                output += f" ({error['kind']}: {error['message']})"
            return output

        if self.config.include_timestamp:
            event = {**event, "stdout_timestamp": datetime.now(timezone.utc).isoformat()}
        return orjson.dumps(event).decode()

    def health_check(self) -> bool:
        """Check if stdout is available."""
        try:
            return self._output().writable()
        except Exception:
            return False
