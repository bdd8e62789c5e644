"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .defaults import DefaultConfig, config_from_dict, get_default_config
from .deployments import ConfigError, DeploymentConfig, deployment_from_dict

DEPLOYMENTS_FILE = "deployments.yaml"


@dataclass(frozen=True)
class ConfigLoader:
    """Manages deployment and engine configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_deployments_file(self) -> dict[str, Any]:
        """Raw ``deployments`` mapping from the YAML file, empty if absent."""
        deployments_file = self.config_dir / DEPLOYMENTS_FILE

        if not deployments_file.exists():
            return {}

        with open(deployments_file) as f:
            data = yaml.safe_load(f) or {}

        return data.get("deployments", {}) or {}

    def list_deployments(self) -> list[str]:
        return sorted(self.load_deployments_file())

    def load_deployment(self, name: str) -> DeploymentConfig:
        """Parse one named deployment."""
        raw = self.load_deployments_file()
        if name not in raw:
            raise ConfigError(
                f"Unknown deployment {name!r}; known: {', '.join(sorted(raw)) or 'none'}"
            )
        return deployment_from_dict(name, raw[name])

    def merge_config(
        self,
        deployment_name: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge engine configuration with 3-tier precedence.

        Priority order:
        1. Per-call overrides (highest priority)
        2. Deployment-specific ``engine`` overrides
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        if deployment_name:
            deployment_engine = self.load_deployments_file().get(deployment_name, {}).get("engine", {})
            config = self._deep_merge(config, deployment_engine or {})

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def engine_config(
        self,
        deployment_name: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None
    ) -> DefaultConfig:
        """Typed view of ``merge_config``."""
        return config_from_dict(self.merge_config(deployment_name, overrides))

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
