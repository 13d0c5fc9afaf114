"""
Square-root price (Q64.96) encoding.

Pools store sqrt(token1/token0) as a fixed-point integer with 96 fractional
bits. Reserve ratios routinely span many orders of magnitude, so everything
here runs on Decimal with 40 fractional digits rather than floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP, localcontext
from typing import Union

from ...core.exceptions import InvalidInputError, ZeroReserveError
from .types import OrderedPair

Q96 = 2 ** 96

# Fractional digits kept by division and sqrt before scaling to Q96
DECIMAL_PLACES = 40

# Working precision (significant digits); wide enough for uint256 reserves
# plus DECIMAL_PLACES fractional digits
_PRECISION = 250

_QUANTUM = Decimal(1).scaleb(-DECIMAL_PLACES)

Numeric = Union[int, str, float, Decimal]


def to_decimal(value: Numeric, label: str = "value") -> Decimal:
    """Convert an int/str/float/Decimal to a finite Decimal"""
    try:
        # floats go through str() so 0.1 stays 0.1
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(f"Invalid {label}: {value!r}") from None
    if not result.is_finite():
        raise InvalidInputError(f"Invalid {label}: {value!r}")
    return result


def _plain(value: Decimal) -> str:
    """Decimal as a plain string, no exponent and no trailing zeros"""
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def encode_sqrt_price_x96(reserve1: Numeric, reserve0: Numeric) -> int:
    """
    Encode a reserve ratio as sqrtPriceX96.

    floor(sqrt(reserve1 / reserve0) * 2**96), where the division and the
    square root are each rounded half-up to 40 decimal places.

    Args:
        reserve1: Amount of token1 (same units as reserve0, usually base units)
        reserve0: Amount of token0

    Returns:
        sqrtPriceX96 as an int

    Raises:
        ZeroReserveError: reserve0 is zero
        InvalidInputError: a reserve is negative or not a number
    """
    r1 = to_decimal(reserve1, "reserve1")
    r0 = to_decimal(reserve0, "reserve0")

    if r0 == 0:
        raise ZeroReserveError(f"reserve0 must be non-zero (reserve1={reserve1}, reserve0={reserve0})")
    if r0 < 0 or r1 < 0:
        raise InvalidInputError(f"Reserves must be positive (reserve1={reserve1}, reserve0={reserve0})")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_HALF_UP

        ratio = (r1 / r0).quantize(_QUANTUM)
        root = ratio.sqrt().quantize(_QUANTUM)
        return int((root * Q96).to_integral_value(rounding=ROUND_FLOOR))


def decode_sqrt_price_x96(sqrt_price_x96: Numeric) -> str:
    """
    Decode sqrtPriceX96 to a token1/token0 ratio string.

    For display only; accurate to roughly 15 significant digits for any
    realistic price.
    """
    value = to_decimal(sqrt_price_x96, "sqrtPriceX96")
    if value < 0:
        raise InvalidInputError(f"sqrtPriceX96 must be non-negative: {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_HALF_UP

        root = (value / Q96).quantize(_QUANTUM)
        return _plain(root * root)


def encode_price_from_reserves(pair: OrderedPair) -> int:
    """sqrtPriceX96 for an ordered pair whose payloads are token reserves"""
    return encode_sqrt_price_x96(pair[1].info, pair[0].info)


def parse_units(amount: Numeric, decimals: int) -> int:
    """
    Convert a human-readable amount to base units.

    parse_units("1.5", 18) == 1500000000000000000

    Raises:
        InvalidInputError: negative amount, or more fractional digits than
            the token has decimals
    """
    value = to_decimal(amount, "amount")
    if value < 0:
        raise InvalidInputError(f"Amount must be non-negative: {amount}")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = value.scaleb(int(decimals))
        if scaled != scaled.to_integral_value():
            raise InvalidInputError(
                f"Amount {amount} has more fractional digits than {decimals} decimals"
            )
        return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Base units to a human-readable amount string"""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return _plain(Decimal(int(value)).scaleb(-int(decimals)))
