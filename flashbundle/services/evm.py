"""Unit conversions and hex quantity helpers for EVM values."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Optional, Union

WEI_PER_GWEI = 10**9
WEI_PER_ETHER = 10**18
MAX_UINT256 = 2**256 - 1

# Enough significant digits for a uint256 times any configured factor
_EXACT_PRECISION = 160

Number = Union[int, float, str, Decimal]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise into the result
    return Decimal(str(value))


def _floor_product(value: Decimal, factor: Number) -> int:
    with localcontext() as ctx:
        ctx.prec = _EXACT_PRECISION
        return int((value * _to_decimal(factor)).to_integral_value(rounding=ROUND_DOWN))


def gwei_to_wei(gwei: Number) -> int:
    return _floor_product(_to_decimal(gwei), WEI_PER_GWEI)


def parse_ether(ether: Number) -> int:
    """Convert a human ETH amount (``"0.002"``) to wei, truncating dust."""

    try:
        amount = _to_decimal(ether)
    except ArithmeticError as exc:
        raise ValueError(f"invalid number format: {ether}") from exc
    if not amount.is_finite():
        raise ValueError(f"invalid number format: {ether}")
    return _floor_product(amount, WEI_PER_ETHER)


def wei_to_gwei(wei: int) -> Decimal:
    return Decimal(wei) / WEI_PER_GWEI


def wei_to_eth(wei: Union[int, str, None]) -> str:
    """Format wei as ETH with six decimals; unparseable input renders as ``"0"``."""

    if wei is None:
        return "0"
    try:
        value = int(wei, 0) if isinstance(wei, str) else int(wei)
    except ValueError:
        return "0"
    return f"{Decimal(value) / WEI_PER_ETHER:.6f}"


def format_token_amount(amount: int, decimals: int = 18) -> str:
    return f"{Decimal(amount) / (Decimal(10) ** decimals):.6f}"


def scale(value: int, multiplier: Number) -> int:
    """Multiply an integer amount by a decimal factor, flooring the result exactly."""

    return _floor_product(Decimal(value), multiplier)


def to_hex_quantity(value: int) -> str:
    return hex(value)


def from_hex_quantity(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)


__all__ = [
    "WEI_PER_GWEI",
    "WEI_PER_ETHER",
    "MAX_UINT256",
    "gwei_to_wei",
    "parse_ether",
    "wei_to_gwei",
    "wei_to_eth",
    "format_token_amount",
    "scale",
    "to_hex_quantity",
    "from_hex_quantity",
]
