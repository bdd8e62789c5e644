"""
Human-readable method signatures.

Deployments list their contract methods as text, either in Solidity style
(``function mint(address to, uint256 amount) public``) or in the compact form
``balanceOf(address)->uint256`` / ``stake() payable``. This module parses them
into ``MethodSignature`` objects and renders the JSON ABI that web3 expects.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

MUTABILITIES = ("pure", "view", "nonpayable", "payable")

# Solidity keywords that may appear around parameter and method declarations
_IGNORED_WORDS = {
    "function", "public", "external", "internal", "private",
    "memory", "calldata", "storage", "virtual", "override", "returns",
}

_TYPE_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}


class SignatureError(ValueError):
    """Raised when a method signature cannot be parsed."""
    pass


@dataclass(frozen=True)
class AbiParam:
    """One input or output parameter."""
    type: str
    name: str = ""
    components: tuple["AbiParam", ...] = ()

    @property
    def canonical_type(self) -> str:
        if self.type.startswith("tuple"):
            inner = ",".join(c.canonical_type for c in self.components)
            return f"({inner}){self.type[len('tuple'):]}"
        return self.type

    @property
    def is_array(self) -> bool:
        return self.type.endswith("]")

    @property
    def base_type(self) -> str:
        """Element type with any array suffix removed."""
        return self.type.split("[", 1)[0]

    def to_abi(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.components:
            entry["components"] = [c.to_abi() for c in self.components]
        return entry


@dataclass(frozen=True)
class MethodSignature:
    """A parsed contract method."""
    name: str
    inputs: tuple[AbiParam, ...] = ()
    outputs: tuple[AbiParam, ...] = ()
    state_mutability: str = "nonpayable"
    source: str = field(default="", compare=False)

    @property
    def is_mutating(self) -> bool:
        return self.state_mutability not in ("view", "pure")

    @property
    def is_payable(self) -> bool:
        return self.state_mutability == "payable"

    @property
    def canonical(self) -> str:
        return f"{self.name}({','.join(p.canonical_type for p in self.inputs)})"

    def to_abi(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "inputs": [p.to_abi() for p in self.inputs],
            "outputs": [p.to_abi() for p in self.outputs],
            "stateMutability": self.state_mutability,
        }


def _matching_paren(text: str, start: int) -> int:
    """Index of the ')' closing the '(' at ``start``."""
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return index
    raise SignatureError(f"Unbalanced parentheses in {text!r}")


def _split_top_level(text: str) -> list[str]:
    parts, depth, current = [], 0, []
    for char in text:
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _parse_param(text: str) -> AbiParam:
    text = text.strip()
    if text.startswith("tuple("):
        text = text[len("tuple"):]

    if text.startswith("("):
        close = _matching_paren(text, 0)
        components = tuple(_parse_param(p) for p in _split_top_level(text[1:close]))
        rest = text[close + 1:].split()
        suffix = ""
        if rest and rest[0].startswith("["):
            suffix = rest.pop(0)
        names = [w for w in rest if w not in _IGNORED_WORDS]
        return AbiParam(type=f"tuple{suffix}", name=names[0] if names else "", components=components)

    words = [w for w in text.split() if w not in _IGNORED_WORDS]
    if not words:
        raise SignatureError(f"Empty parameter in {text!r}")

    raw_type = words[0]
    base, bracket, suffix = raw_type.partition("[")
    type_name = _TYPE_ALIASES.get(base, base) + (bracket + suffix if bracket else "")
    return AbiParam(type=type_name, name=words[1] if len(words) > 1 else "")


def _parse_params(text: str) -> tuple[AbiParam, ...]:
    return tuple(_parse_param(p) for p in _split_top_level(text))


def parse_signature(text: str) -> MethodSignature:
    """
    Parse one human-readable method signature.

    Args:
        text: Signature such as ``"function burn(uint256 amount) public"``,
            ``"totalSupply()->uint256"`` or ``"stake() payable"``

    Returns:
        Parsed method signature

    Raises:
        SignatureError: If the text is not a recognizable signature
    """
    source = text.strip()
    body = source
    solidity_style = body.startswith("function ")
    if solidity_style:
        body = body[len("function "):].strip()

    open_index = body.find("(")
    if open_index <= 0:
        raise SignatureError(f"Missing method name or parameter list: {text!r}")

    name = body[:open_index].strip()
    if not name.isidentifier():
        raise SignatureError(f"Invalid method name {name!r} in {text!r}")

    close_index = _matching_paren(body, open_index)
    inputs = _parse_params(body[open_index + 1:close_index])
    rest = body[close_index + 1:].strip()

    outputs: tuple[AbiParam, ...] = ()
    output_text: Optional[str] = None
    if "->" in rest:
        rest, output_text = rest.split("->", 1)
    elif "returns" in rest:
        rest, output_text = rest.split("returns", 1)

    if output_text is not None:
        output_text = output_text.strip()
        if output_text.startswith("("):
            close = _matching_paren(output_text, 0)
            outputs = _parse_params(output_text[1:close])
        elif output_text:
            outputs = (_parse_param(output_text),)

    modifiers = set(rest.replace(",", " ").split())
    mutability = next((m for m in MUTABILITIES if m in modifiers), None)
    if mutability is None:
        # Solidity defaults to nonpayable; the compact form reads when it returns data
        if outputs and not solidity_style:
            mutability = "view"
            logger.warning("Inferred view mutability for compact signature",
                           signature=source, hint="add view, pure or nonpayable to be explicit")
        else:
            mutability = "nonpayable"

    return MethodSignature(
        name=name,
        inputs=inputs,
        outputs=outputs,
        state_mutability=mutability,
        source=source,
    )


def build_abi(signatures: list[MethodSignature]) -> list[dict[str, Any]]:
    """JSON ABI for a list of parsed methods."""
    return [signature.to_abi() for signature in signatures]
