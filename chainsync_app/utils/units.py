"""
Exact conversion between decimal strings and integer base units.

The endpoint counts amounts in base units (10**18 per whole token or ether).
Parsing and formatting are inverses for every value with at most ``decimals``
fractional digits; no floating point is involved.
"""

import re
from decimal import Decimal
from typing import Union

from ..errors import InvalidInputError

DEFAULT_DECIMALS = 18

_AMOUNT_RE = re.compile(r"^(?P<sign>-)?(?P<whole>\d*)(?:\.(?P<frac>\d*))?$")


def parse_units(text: str, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Parse a decimal amount string into integer base units.

    Args:
        text: Amount such as "100", "100.0" or "0.000000000000000001"
        decimals: Number of fractional digits in one whole unit

    Returns:
        Amount in base units

    Raises:
        InvalidInputError: If the text is not a plain decimal number or has
            more fractional digits than ``decimals``
    """
    if not isinstance(text, str):
        raise InvalidInputError(f"Amount must be a string, got {type(text).__name__}", value=text)

    candidate = text.strip().replace("_", "")
    match = _AMOUNT_RE.match(candidate)
    if not candidate or not match:
        raise InvalidInputError(f"Not a decimal amount: {text!r}", value=text)

    whole = match.group("whole") or ""
    frac = match.group("frac") or ""
    if not whole and not frac:
        raise InvalidInputError(f"Not a decimal amount: {text!r}", value=text)

    # Trailing zeros never change the value
    frac = frac.rstrip("0")
    if len(frac) > decimals:
        raise InvalidInputError(
            f"Too many fractional digits in {text!r} (max {decimals})", value=text
        )

    base = int(whole or "0") * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")
    return -base if match.group("sign") else base


def format_units(value: Union[int, str], decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Format integer base units as a decimal string at full precision.

    Whole amounts keep one fractional digit ("100.0"), matching what
    wallets and block explorers display.
    """
    amount = int(value)
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10 ** decimals)

    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_text or '0'}"


def to_decimal(value: Union[int, str], decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Base units to an exact ``Decimal`` of whole units."""
    return Decimal(format_units(value, decimals))
