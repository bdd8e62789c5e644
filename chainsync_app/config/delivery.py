"""Configuration for publishing engine events to the presentation layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class DeliveryMethod(Enum):
    """Supported event delivery methods."""
    STDOUT = "stdout"
    CALLBACK = "callback"


class EventType(str, Enum):
    """Events the engine publishes."""
    OPERATION_OUTCOME = "operation_outcome"
    ACCOUNT_STATE = "account_state"
    SESSION_STATUS = "session_status"


@dataclass(frozen=True)
class StdoutDeliveryConfig:
    """Configuration for stdout delivery."""
    format: str = "json"  # json, pretty
    include_timestamp: bool = True


@dataclass(frozen=True)
class DeliveryDestination:
    """Single event delivery destination."""
    name: str
    method: DeliveryMethod
    config: Any = None
    enabled: bool = True
    events_filter: Optional[list[str]] = None  # Only deliver these event types


@dataclass(frozen=True)
class EventDeliveryConfig:
    """Complete event delivery configuration."""
    destinations: list[DeliveryDestination] = field(default_factory=list)
    enabled: bool = True


def get_default_delivery_config() -> EventDeliveryConfig:
    """Default: JSON lines on stdout for every event."""
    return EventDeliveryConfig(
        destinations=[
            DeliveryDestination(
                name="stdout",
                method=DeliveryMethod.STDOUT,
                config=StdoutDeliveryConfig(format="json", include_timestamp=True),
                enabled=True
            )
        ],
        enabled=True
    )


def delivery_config_from_dict(data: dict[str, Any]) -> EventDeliveryConfig:
    """Build stdout destinations from a ``delivery:`` config section."""
    destinations = []
    for entry in data.get("destinations", []):
        method = DeliveryMethod(entry.get("method", "stdout"))
        if method != DeliveryMethod.STDOUT:
            # Callback destinations need a callable and are registered in code
            raise ValueError(f"Destination {entry.get('name')!r}: {method.value} cannot be configured from a file")
        destinations.append(DeliveryDestination(
            name=entry["name"],
            method=method,
            config=StdoutDeliveryConfig(**entry.get("config", {})),
            enabled=entry.get("enabled", True),
            events_filter=entry.get("events_filter"),
        ))
    return EventDeliveryConfig(destinations=destinations, enabled=data.get("enabled", True))
