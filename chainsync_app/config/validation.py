"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any

from eth_utils import is_address

from ..gateway.abi import SignatureError, parse_signature
from .deployments import ArgKind, SyncFieldMap


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration or input validation error."""
    field: str
    message: str
    value: Any


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_retry_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate retry parameters."""
        errors = []

        if "max_attempts" in params and not _positive_int(params["max_attempts"]):
            errors.append(ValidationError(
                field="retry.max_attempts",
                message="Must be a positive integer",
                value=params["max_attempts"]
            ))

        if "base_backoff_ms" in params:
            value = params["base_backoff_ms"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="retry.base_backoff_ms",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_gas_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate gas padding parameters."""
        errors = []

        numerator = params.get("pad_numerator")
        denominator = params.get("pad_denominator")

        if "pad_denominator" in params and not _positive_int(denominator):
            errors.append(ValidationError(
                field="gas.pad_denominator",
                message="Must be a positive integer",
                value=denominator
            ))

        if "pad_numerator" in params and not _positive_int(numerator):
            errors.append(ValidationError(
                field="gas.pad_numerator",
                message="Must be a positive integer",
                value=numerator
            ))
        elif _positive_int(numerator) and _positive_int(denominator) and numerator < denominator:
            # A pad below 1.0 would submit less gas than estimated
            errors.append(ValidationError(
                field="gas.pad_numerator",
                message="Must not be smaller than pad_denominator",
                value=numerator
            ))

        return errors

    @staticmethod
    def validate_confirmation_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate confirmation wait parameters."""
        errors = []

        for key in ("timeout_seconds", "poll_latency_seconds"):
            if key in params:
                value = params[key]
                if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=f"confirmation.{key}",
                        message="Must be a positive number",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_deployment(name: str, data: dict[str, Any]) -> list[ValidationError]:
        """Validate one raw deployment entry."""
        errors = []
        prefix = f"deployments.{name}"

        address = data.get("address")
        if not isinstance(address, str) or not is_address(address):
            errors.append(ValidationError(
                field=f"{prefix}.address",
                message="Must be a 20-byte hex address",
                value=address
            ))

        chain_id = data.get("chain_id")
        if not _positive_int(chain_id):
            errors.append(ValidationError(
                field=f"{prefix}.chain_id",
                message="Must be a positive integer",
                value=chain_id
            ))

        methods = data.get("methods") or []
        if not methods:
            errors.append(ValidationError(
                field=f"{prefix}.methods",
                message="At least one method is required",
                value=methods
            ))

        method_names = set()
        for index, entry in enumerate(methods):
            text = entry.get("signature") if isinstance(entry, dict) else entry
            try:
                signature = parse_signature(str(text))
            except SignatureError as e:
                errors.append(ValidationError(
                    field=f"{prefix}.methods[{index}]",
                    message=str(e),
                    value=text
                ))
                continue

            method_names.add(signature.name)
            if isinstance(entry, dict) and entry.get("args") is not None:
                kinds = entry["args"]
                valid_kinds = {kind.value for kind in ArgKind}
                if len(kinds) != len(signature.inputs):
                    errors.append(ValidationError(
                        field=f"{prefix}.methods[{index}].args",
                        message=f"Expected {len(signature.inputs)} argument kinds",
                        value=kinds
                    ))
                bad = [kind for kind in kinds if kind not in valid_kinds]
                if bad:
                    errors.append(ValidationError(
                        field=f"{prefix}.methods[{index}].args",
                        message=f"Unknown argument kinds: {bad}",
                        value=kinds
                    ))

        sync = data.get("sync") or {}
        defaults = SyncFieldMap()
        for field_name in SyncFieldMap.__dataclass_fields__:
            method = sync.get(field_name, getattr(defaults, field_name))
            if method and method_names and method not in method_names:
                errors.append(ValidationError(
                    field=f"{prefix}.sync.{field_name}",
                    message=f"Read method {method!r} is not in the method list",
                    value=method
                ))
        for field_name in sync:
            if field_name not in SyncFieldMap.__dataclass_fields__:
                errors.append(ValidationError(
                    field=f"{prefix}.sync.{field_name}",
                    message="Unknown account state field",
                    value=sync[field_name]
                ))

        errors.extend(ConfigValidator.validate_config(data.get("engine") or {}))
        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete engine configuration."""
        errors = []

        if "retry" in config:
            errors.extend(ConfigValidator.validate_retry_params(config["retry"]))

        if "gas" in config:
            errors.extend(ConfigValidator.validate_gas_params(config["gas"]))

        if "confirmation" in config:
            errors.extend(ConfigValidator.validate_confirmation_params(config["confirmation"]))

        if "units" in config:
            decimals = config["units"].get("decimals")
            if not isinstance(decimals, int) or isinstance(decimals, bool) or not 0 <= decimals <= 77:
                errors.append(ValidationError(
                    field="units.decimals",
                    message="Must be an integer between 0 and 77",
                    value=decimals
                ))

        return errors
