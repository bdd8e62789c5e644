"""Default configuration parameters for the contract operation engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryParams:
    """Retry budget for transient network failures."""
    max_attempts: int = 3                # Total attempts, first one included
    base_backoff_ms: int = 1000          # Delay before attempt n+1 is base * (n+1)


@dataclass(frozen=True)
class GasParams:
    """Safety margin applied to gas estimates."""
    pad_numerator: int = 120             # 20% pad against estimate drift
    pad_denominator: int = 100


@dataclass(frozen=True)
class ConfirmationParams:
    """Waiting for a submitted transaction to be mined."""
    timeout_seconds: float = 120.0
    poll_latency_seconds: float = 1.0


@dataclass(frozen=True)
class UnitParams:
    """Amount conversion."""
    decimals: int = 18


@dataclass(frozen=True)
class SyncParams:
    """Account state refresh behavior."""
    enabled: bool = True                 # Refresh after each successful mutation
    refresh_after_connect: bool = True   # Initial snapshot once a wallet connects


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    retry: RetryParams
    gas: GasParams
    confirmation: ConfirmationParams
    units: UnitParams
    sync: SyncParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        retry=RetryParams(),
        gas=GasParams(),
        confirmation=ConfirmationParams(),
        units=UnitParams(),
        sync=SyncParams(),
    )


def config_from_dict(data: dict) -> DefaultConfig:
    """Build a ``DefaultConfig`` from a merged configuration dictionary."""
    return DefaultConfig(
        retry=RetryParams(**data.get("retry", {})),
        gas=GasParams(**data.get("gas", {})),
        confirmation=ConfirmationParams(**data.get("confirmation", {})),
        units=UnitParams(**data.get("units", {})),
        sync=SyncParams(**data.get("sync", {})),
    )
