"""Per-deployment configuration: endpoint address, chain and method list."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from eth_utils import is_address, to_checksum_address

from ..gateway.abi import AbiParam, MethodSignature, parse_signature


class ConfigError(ValueError):
    """Raised when a deployment definition is unusable."""
    pass


class ArgKind(str, Enum):
    """How a user-entered string becomes a contract argument."""
    SIGNER = "signer"                # Filled with the session's address, no user input
    AMOUNT = "amount"                # Decimal string scaled to base units, must be > 0
    UINT = "uint"                    # Plain non-negative integer
    ADDRESS = "address"
    ADDRESS_LIST = "address_list"    # Comma-separated addresses
    UINT_LIST = "uint_list"          # Comma-separated non-negative integers
    JSON = "json"                    # JSON array, e.g. tuple[] arguments
    STRING = "string"
    BOOL = "bool"


def infer_arg_kind(param: AbiParam) -> ArgKind:
    """Default argument kind for an ABI parameter."""
    if param.type.startswith("tuple"):
        return ArgKind.JSON
    if param.type == "address[]":
        return ArgKind.ADDRESS_LIST
    if param.is_array and param.base_type.startswith(("uint", "int")):
        return ArgKind.UINT_LIST
    if param.is_array:
        return ArgKind.JSON
    if param.type == "address":
        return ArgKind.ADDRESS
    if param.type.startswith(("uint", "int")):
        return ArgKind.AMOUNT
    if param.type == "bool":
        return ArgKind.BOOL
    return ArgKind.STRING


@dataclass(frozen=True)
class MethodConfig:
    """A contract method plus how to build its arguments from user input."""
    signature: MethodSignature
    arg_kinds: tuple[ArgKind, ...]

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def is_mutating(self) -> bool:
        return self.signature.is_mutating

    @property
    def requires_value(self) -> bool:
        """Payable methods take the native amount as their last user argument."""
        return self.signature.is_payable

    @property
    def user_arg_count(self) -> int:
        count = sum(1 for kind in self.arg_kinds if kind != ArgKind.SIGNER)
        return count + (1 if self.requires_value else 0)


@dataclass(frozen=True)
class SyncFieldMap:
    """Read methods backing each AccountState field; ``None`` skips the field."""
    balance: Optional[str] = "balanceOf"
    total_supply: Optional[str] = "totalSupply"
    max_supply: Optional[str] = None
    owner: Optional[str] = None
    staked_balance: Optional[str] = None
    pending_rewards: Optional[str] = None
    contract_balance: Optional[str] = None

    def methods(self) -> dict[str, str]:
        return {name: method for name, method in self.__dict__.items() if method}


@dataclass(frozen=True)
class DeploymentConfig:
    """Everything the gateway needs to talk to one deployed contract."""
    name: str
    address: str
    chain_id: int
    methods: tuple[MethodConfig, ...]
    sync: SyncFieldMap = field(default_factory=SyncFieldMap)
    chain_name: Optional[str] = None
    rpc_url: Optional[str] = None
    max_supply: Optional[str] = None     # Static cap shown when no read method exists
    engine: dict[str, Any] = field(default_factory=dict, compare=False)

    def method(self, name: str) -> Optional[MethodConfig]:
        for method in self.methods:
            if method.name == name:
                return method
        return None

    @property
    def signatures(self) -> list[MethodSignature]:
        return [m.signature for m in self.methods]


def build_method_config(entry: Union[str, dict[str, Any]]) -> MethodConfig:
    """Build a method from ``"sig"`` or ``{"signature": "sig", "args": [...]}``."""
    if isinstance(entry, str):
        signature = parse_signature(entry)
        kinds = tuple(infer_arg_kind(p) for p in signature.inputs)
        return MethodConfig(signature=signature, arg_kinds=kinds)

    if "signature" not in entry:
        raise ConfigError(f"Method entry missing 'signature': {entry}")

    signature = parse_signature(entry["signature"])
    raw_kinds = entry.get("args")
    if raw_kinds is None:
        kinds = tuple(infer_arg_kind(p) for p in signature.inputs)
    else:
        if len(raw_kinds) != len(signature.inputs):
            raise ConfigError(
                f"{signature.name}: {len(raw_kinds)} arg kinds for "
                f"{len(signature.inputs)} parameters"
            )
        try:
            kinds = tuple(ArgKind(kind) for kind in raw_kinds)
        except ValueError as e:
            raise ConfigError(f"{signature.name}: {e}") from e

    return MethodConfig(signature=signature, arg_kinds=kinds)


def deployment_from_dict(name: str, data: dict[str, Any]) -> DeploymentConfig:
    """Build a ``DeploymentConfig`` from a YAML deployment entry."""
    address = data.get("address")
    if not address or not is_address(address):
        raise ConfigError(f"Deployment {name!r} has an invalid address: {address!r}")

    try:
        chain_id = int(data["chain_id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Deployment {name!r} has an invalid chain_id") from e

    methods = tuple(build_method_config(entry) for entry in data.get("methods", []))

    sync_data = data.get("sync", {})
    unknown = set(sync_data) - set(SyncFieldMap.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Deployment {name!r} has unknown sync fields: {sorted(unknown)}")

    max_supply = data.get("max_supply")
    return DeploymentConfig(
        name=name,
        address=to_checksum_address(address),
        chain_id=chain_id,
        methods=methods,
        sync=SyncFieldMap(**sync_data),
        chain_name=data.get("chain_name"),
        rpc_url=data.get("rpc_url"),
        max_supply=str(max_supply) if max_supply is not None else None,
        engine=data.get("engine", {}),
    )
