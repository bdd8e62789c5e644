"""
User input validation.

Raw arguments arrive from the presentation layer as strings. Each is checked
and converted according to the argument kind its deployment method declares,
before any session or endpoint is touched.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import orjson
import structlog
from eth_utils import is_address, to_checksum_address

from ..config.deployments import ArgKind, DeploymentConfig, MethodConfig
from ..errors import InvalidInputError
from ..gateway.abi import AbiParam
from ..gateway.models import OperationSpec
from ..utils.units import parse_units

logger = structlog.get_logger(__name__)

_UINT_PATTERN = re.compile(r"^\d+$")
_TRUE_WORDS = frozenset({"true", "1", "yes"})
_FALSE_WORDS = frozenset({"false", "0", "no"})


class _SignerSlot:
    """Placeholder for an argument bound to the session's signer."""

    def __repr__(self) -> str:
        return "<signer>"


SIGNER_SLOT = _SignerSlot()


@dataclass(frozen=True)
class PreparedCall:
    """Validated arguments waiting for a signer."""
    method: MethodConfig
    args: tuple[Any, ...]
    value: Optional[int] = None

    @property
    def needs_signer(self) -> bool:
        return any(arg is SIGNER_SLOT for arg in self.args)

    def to_spec(self, signer: Optional[str] = None) -> OperationSpec:
        """Build the ``OperationSpec``, filling signer-bound arguments."""
        if self.needs_signer and not signer:
            raise InvalidInputError(f"{self.method.name} requires a connected signer",
                                    field="signer")
        args = tuple(signer if arg is SIGNER_SLOT else arg for arg in self.args)
        return OperationSpec(
            method_name=self.method.name,
            args=args,
            value=self.value,
            is_mutating=self.method.is_mutating,
        )


class InputValidator:
    """Validates raw arguments for the methods of one deployment."""

    def __init__(self, deployment: DeploymentConfig, decimals: int = 18):
        self.deployment = deployment
        self.decimals = decimals
        self.logger = logger.bind(deployment=deployment.name)

    def validate(self, method_name: str, raw_args: Sequence[Any]) -> PreparedCall:
        """
        Check ``raw_args`` against ``method_name`` and convert them.

        Raises:
            InvalidInputError: Unknown method, wrong argument count, or a
                malformed, empty, non-numeric or non-positive argument
        """
        method = self.deployment.method(method_name)
        if method is None:
            raise InvalidInputError(f"Unknown method: {method_name}",
                                    field="method_name", value=method_name)

        raw = list(raw_args or ())
        if len(raw) != method.user_arg_count:
            raise InvalidInputError(
                f"{method_name} expects {method.user_arg_count} arguments, got {len(raw)}",
                field="args",
                value=raw,
            )

        remaining = iter(raw)
        args = []
        for param, kind in zip(method.signature.inputs, method.arg_kinds):
            if kind == ArgKind.SIGNER:
                args.append(SIGNER_SLOT)
                continue
            field = f"{method_name}.{param.name or param.type}"
            args.append(self._convert(next(remaining), kind, param, field))

        value = None
        if method.requires_value:
            value = self._amount(next(remaining), f"{method_name}.value")

        return PreparedCall(method=method, args=tuple(args), value=value)

    def _convert(self, raw: Any, kind: ArgKind, param: AbiParam, field: str) -> Any:
        text = _text(raw, field)

        if kind == ArgKind.AMOUNT:
            return self._amount(text, field)
        if kind == ArgKind.UINT:
            return _uint(text, field)
        if kind == ArgKind.ADDRESS:
            return _address(text, field)
        if kind == ArgKind.ADDRESS_LIST:
            return [_address(item, field) for item in _split(text, field)]
        if kind == ArgKind.UINT_LIST:
            return [_uint(item, field) for item in _split(text, field)]
        if kind == ArgKind.JSON:
            return _json_array(text, param, field)
        if kind == ArgKind.BOOL:
            lowered = text.lower()
            if lowered in _TRUE_WORDS:
                return True
            if lowered in _FALSE_WORDS:
                return False
            raise InvalidInputError(f"{field} must be true or false", field=field, value=text)
        return text

    def _amount(self, raw: Any, field: str) -> int:
        text = _text(raw, field)
        try:
            amount = parse_units(text, self.decimals)
        except InvalidInputError as e:
            raise InvalidInputError(f"{field}: {e.reason}", field=field, value=text) from e
        if amount <= 0:
            raise InvalidInputError(f"{field} must be greater than zero", field=field, value=text)
        return amount


def _text(raw: Any, field: str) -> str:
    text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    text = text.strip()
    if not text:
        raise InvalidInputError(f"{field} is required", field=field, value=raw)
    return text


def _uint(text: str, field: str) -> int:
    text = text.strip()
    if not _UINT_PATTERN.match(text):
        raise InvalidInputError(f"{field} must be a non-negative integer", field=field, value=text)
    return int(text)


def _address(text: str, field: str) -> str:
    text = text.strip()
    if not is_address(text):
        raise InvalidInputError(f"{field} is not a valid address", field=field, value=text)
    return to_checksum_address(text)


def _split(text: str, field: str) -> list[str]:
    items = [item.strip() for item in text.split(",")]
    if any(not item for item in items):
        raise InvalidInputError(f"{field} contains an empty entry", field=field, value=text)
    return items


def _json_array(text: str, param: AbiParam, field: str) -> list[Any]:
    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise InvalidInputError(f"{field} is not valid JSON: {e}", field=field, value=text) from e
    if not isinstance(data, list):
        raise InvalidInputError(f"{field} must be a JSON array", field=field, value=text)
    if param.type.startswith("tuple"):
        return [_as_tuple(item, param, field) for item in data]
    return data


def _as_tuple(item: Any, param: AbiParam, field: str) -> tuple[Any, ...]:
    """Tuple components given either positionally or as an object."""
    if isinstance(item, dict):
        names = [c.name for c in param.components]
        if all(names) and set(names) == set(item):
            return tuple(item[name] for name in names)
        item = list(item.values())
    if not isinstance(item, list):
        raise InvalidInputError(f"{field} entries must be arrays or objects", field=field, value=item)
    if param.components and len(item) != len(param.components):
        raise InvalidInputError(
            f"{field} entries need {len(param.components)} fields, got {len(item)}",
            field=field,
            value=item,
        )
    return tuple(item)
