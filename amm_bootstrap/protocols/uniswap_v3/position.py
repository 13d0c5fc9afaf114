"""Position sizing: tick range and deposit amounts from a single input amount"""

from __future__ import annotations

from ...core.exceptions import InvalidInputError
from .math import (
    MAX_TICK,
    MAX_UINT256,
    MIN_TICK,
    get_sqrt_ratio_at_tick,
    max_liquidity_for_amounts,
    mint_amounts,
    nearest_usable_tick,
)
from .price import Numeric, parse_units
from .types import FeeAmount, MintAmounts, PoolState, Position, TokenDescriptor, sort_token_pair

# Range half-width in tick spacings. Bootstrap pools use a wide range so the
# seed position survives large moves before the market settles.
BOOTSTRAP_TICK_WIDTH = 200
NARROW_TICK_WIDTH = 2


def tick_range(tick: int, tick_spacing: int, width_multiplier: int):
    """
    (tick_lower, tick_upper) centered on the usable tick nearest `tick`,
    `width_multiplier` spacings to each side.
    """
    if int(width_multiplier) != width_multiplier or width_multiplier <= 0:
        raise InvalidInputError(f"Width multiplier must be a positive integer: {width_multiplier}")

    center = nearest_usable_tick(tick, tick_spacing)
    tick_lower = center - tick_spacing * width_multiplier
    tick_upper = center + tick_spacing * width_multiplier

    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise InvalidInputError(
            f"Tick range [{tick_lower}, {tick_upper}] for width {width_multiplier} "
            f"exceeds bounds [{MIN_TICK}, {MAX_TICK}]"
        )
    return tick_lower, tick_upper


def _check_pool_state(pool_state: PoolState, fee: FeeAmount):
    if pool_state.tick_spacing != fee.tick_spacing:
        raise InvalidInputError(
            f"Tick spacing {pool_state.tick_spacing} does not match fee tier {int(fee)} "
            f"(expected {fee.tick_spacing})"
        )
    lower = get_sqrt_ratio_at_tick(pool_state.tick)
    upper = get_sqrt_ratio_at_tick(pool_state.tick + 1) if pool_state.tick < MAX_TICK else lower
    if not lower <= pool_state.sqrt_price_x96 <= upper:
        raise InvalidInputError(
            f"sqrtPriceX96 {pool_state.sqrt_price_x96} is not within tick {pool_state.tick}"
        )


def calculate_position(
    chain_id: int,
    pool_state: PoolState,
    token0_info: TokenDescriptor,
    token1_info: TokenDescriptor,
    input_token0_amount: Numeric,
    width_multiplier: int,
) -> Position:
    """
    Size a position around the pool's current tick from one token amount.

    The amount of `token0_info` (the caller's token0, which need not be the
    pool's token0) is fixed; the other side is whatever the current price
    and the tick range require.

    Args:
        chain_id: Chain the tokens live on
        pool_state: Current on-chain pool state
        token0_info: Token whose amount is given
        token1_info: The other token
        input_token0_amount: Amount of token0_info in display units
        width_multiplier: Range half-width in tick spacings
            (BOOTSTRAP_TICK_WIDTH, NARROW_TICK_WIDTH, ...)

    Returns:
        Position with ticks and mint amounts in the pool's canonical order

    Raises:
        InvalidFeeTierError: pool fee is not a supported tier
        IdenticalTokensError: both descriptors have the same address
        InvalidInputError: inconsistent pool state or out-of-range ticks
    """
    # Reject unknown fee tiers before any tick or price math
    fee = FeeAmount.parse(pool_state.fee)

    pair = sort_token_pair(token0_info.address, token0_info, token1_info.address, token1_info)
    _check_pool_state(pool_state, fee)

    tick_lower, tick_upper = tick_range(pool_state.tick, pool_state.tick_spacing, width_multiplier)
    sqrt_lower = get_sqrt_ratio_at_tick(tick_lower)
    sqrt_upper = get_sqrt_ratio_at_tick(tick_upper)

    if pair.index_of(token0_info.address) == 0:
        amount0 = parse_units(input_token0_amount, pair[0].info.decimals)
        amount1 = MAX_UINT256
    else:
        amount0 = MAX_UINT256
        amount1 = parse_units(input_token0_amount, pair[1].info.decimals)

    liquidity = max_liquidity_for_amounts(
        pool_state.sqrt_price_x96, sqrt_lower, sqrt_upper, amount0, amount1,
        use_full_precision=True,
    )
    amounts = mint_amounts(pool_state.tick, pool_state.sqrt_price_x96, tick_lower, tick_upper, liquidity)

    return Position(
        chain_id=chain_id,
        pool=pool_state,
        token0=pair[0].info,
        token1=pair[1].info,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        liquidity=liquidity,
        mint_amounts=MintAmounts(*amounts),
    )
