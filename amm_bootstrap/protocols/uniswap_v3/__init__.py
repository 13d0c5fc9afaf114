"""Uniswap V3 protocol implementation"""

from .config import UniswapV3Config
from .types import (
    FeeAmount,
    MintAmounts,
    OrderedPair,
    PoolState,
    Position,
    SwapRoute,
    TokenDescriptor,
    sort_token_pair,
)
from .price import decode_sqrt_price_x96, encode_sqrt_price_x96, parse_units
from .encoding import decode_path, encode_path
from .position import BOOTSTRAP_TICK_WIDTH, NARROW_TICK_WIDTH, calculate_position

__all__ = [
    "UniswapV3Config",
    "FeeAmount",
    "MintAmounts",
    "OrderedPair",
    "PoolState",
    "Position",
    "SwapRoute",
    "TokenDescriptor",
    "sort_token_pair",
    "decode_sqrt_price_x96",
    "encode_sqrt_price_x96",
    "parse_units",
    "decode_path",
    "encode_path",
    "BOOTSTRAP_TICK_WIDTH",
    "NARROW_TICK_WIDTH",
    "calculate_position",
]
