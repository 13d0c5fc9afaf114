"""
Math utilities for Uniswap V3 calculations.

The integer functions mirror the on-chain libraries (TickMath, FullMath,
SqrtPriceMath, LiquidityAmounts) exactly, so amounts computed here match
what the position manager will pull. The float helpers at the bottom are
for display only.
"""

from ...core.exceptions import InvalidInputError

Q96 = 2 ** 96
MAX_UINT256 = 2 ** 256 - 1

MIN_TICK = -887272
MAX_TICK = -MIN_TICK

MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# sqrt(1.0001^-(2^i)) in Q128.128, applied for each set bit i >= 1 of |tick|
_TICK_MULTIPLIERS = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


def get_sqrt_ratio_at_tick(tick):
    """
    sqrt(1.0001^tick) * 2^96, rounded up, as computed by TickMath.

    Raises:
        InvalidInputError: tick outside [MIN_TICK, MAX_TICK]
    """
    if not MIN_TICK <= tick <= MAX_TICK:
        raise InvalidInputError(f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = abs(tick)
    if abs_tick & 0x1:
        ratio = 0xfffcb933bd6fad37aa2d162d1a594001
    else:
        ratio = 0x100000000000000000000000000000000

    for bit, multiplier in _TICK_MULTIPLIERS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, rounding up
    return (ratio >> 32) + (1 if ratio % (1 << 32) else 0)


def get_tick_at_sqrt_ratio(sqrt_ratio_x96):
    """
    Greatest tick whose sqrt ratio is <= sqrt_ratio_x96, as computed by
    TickMath. This is the tick a pool initialized at this price reports.

    Raises:
        InvalidInputError: sqrt_ratio_x96 outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if not MIN_SQRT_RATIO <= sqrt_ratio_x96 < MAX_SQRT_RATIO:
        raise InvalidInputError(
            f"sqrtPriceX96 {sqrt_ratio_x96} out of bounds [{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO})"
        )

    ratio = sqrt_ratio_x96 << 32
    msb = ratio.bit_length() - 1
    r = ratio >> (msb - 127) if msb >= 128 else ratio << (127 - msb)

    log_2 = (msb - 128) << 64
    for i in range(14):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << (63 - i)
        r >>= f

    log_sqrt10001 = log_2 * 255738958999603826347141

    tick_low = (log_sqrt10001 - 3402992956809132418596140100660247210) >> 128
    tick_high = (log_sqrt10001 + 291339464771989622907027621153398088495) >> 128

    if tick_low == tick_high:
        return tick_low
    return tick_high if get_sqrt_ratio_at_tick(tick_high) <= sqrt_ratio_x96 else tick_low


def nearest_usable_tick(tick, tick_spacing):
    """
    Round a tick to the nearest multiple of tick_spacing (halves round up),
    staying inside the tick bounds.
    """
    if tick_spacing <= 0:
        raise InvalidInputError(f"Tick spacing must be positive: {tick_spacing}")
    if not MIN_TICK <= tick <= MAX_TICK:
        raise InvalidInputError(f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]")

    rounded = ((2 * tick + tick_spacing) // (2 * tick_spacing)) * tick_spacing
    if rounded < MIN_TICK:
        return rounded + tick_spacing
    if rounded > MAX_TICK:
        return rounded - tick_spacing
    return rounded


def mul_div(a, b, denominator):
    return a * b // denominator


def mul_div_rounding_up(a, b, denominator):
    return -(-(a * b) // denominator)


def get_amount0_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, round_up):
    """Token0 amount between two prices for a given liquidity"""
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    numerator1 = liquidity << 96
    numerator2 = sqrt_ratio_b_x96 - sqrt_ratio_a_x96

    if round_up:
        return mul_div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, sqrt_ratio_b_x96),
            1,
            sqrt_ratio_a_x96,
        )
    return mul_div(numerator1, numerator2, sqrt_ratio_b_x96) // sqrt_ratio_a_x96


def get_amount1_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, round_up):
    """Token1 amount between two prices for a given liquidity"""
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)
    return mul_div(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)


def max_liquidity_for_amount0_imprecise(sqrt_ratio_a_x96, sqrt_ratio_b_x96, amount0):
    """Liquidity for amount0, rounding the price product down first as the periphery contract does"""
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    intermediate = sqrt_ratio_a_x96 * sqrt_ratio_b_x96 // Q96
    return amount0 * intermediate // (sqrt_ratio_b_x96 - sqrt_ratio_a_x96)


def max_liquidity_for_amount0_precise(sqrt_ratio_a_x96, sqrt_ratio_b_x96, amount0):
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    numerator = amount0 * sqrt_ratio_a_x96 * sqrt_ratio_b_x96
    denominator = Q96 * (sqrt_ratio_b_x96 - sqrt_ratio_a_x96)
    return numerator // denominator


def max_liquidity_for_amount1(sqrt_ratio_a_x96, sqrt_ratio_b_x96, amount1):
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    return amount1 * Q96 // (sqrt_ratio_b_x96 - sqrt_ratio_a_x96)


def max_liquidity_for_amounts(sqrt_ratio_current_x96, sqrt_ratio_a_x96, sqrt_ratio_b_x96,
                              amount0, amount1, use_full_precision):
    """
    Largest liquidity that the given amounts can back for a price range.

    Args:
        sqrt_ratio_current_x96: Current pool sqrt price
        sqrt_ratio_a_x96: sqrt price at one range boundary
        sqrt_ratio_b_x96: sqrt price at the other boundary
        amount0: Available token0 (base units)
        amount1: Available token1 (base units)
        use_full_precision: Use the exact amount0 formula instead of the
            periphery contract's truncating one

    Returns:
        Liquidity as int
    """
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    for_amount0 = (max_liquidity_for_amount0_precise if use_full_precision
                   else max_liquidity_for_amount0_imprecise)

    if sqrt_ratio_current_x96 <= sqrt_ratio_a_x96:
        return for_amount0(sqrt_ratio_a_x96, sqrt_ratio_b_x96, amount0)
    if sqrt_ratio_current_x96 < sqrt_ratio_b_x96:
        liquidity0 = for_amount0(sqrt_ratio_current_x96, sqrt_ratio_b_x96, amount0)
        liquidity1 = max_liquidity_for_amount1(sqrt_ratio_a_x96, sqrt_ratio_current_x96, amount1)
        return min(liquidity0, liquidity1)
    return max_liquidity_for_amount1(sqrt_ratio_a_x96, sqrt_ratio_b_x96, amount1)


def mint_amounts(tick_current, sqrt_ratio_x96, tick_lower, tick_upper, liquidity):
    """
    Amounts (amount0, amount1) the pool takes to mint `liquidity` in the
    range, rounded up in the pool's favor.
    """
    sqrt_lower = get_sqrt_ratio_at_tick(tick_lower)
    sqrt_upper = get_sqrt_ratio_at_tick(tick_upper)

    if tick_current < tick_lower:
        return get_amount0_delta(sqrt_lower, sqrt_upper, liquidity, True), 0
    if tick_current < tick_upper:
        return (
            get_amount0_delta(sqrt_ratio_x96, sqrt_upper, liquidity, True),
            get_amount1_delta(sqrt_lower, sqrt_ratio_x96, liquidity, True),
        )
    return 0, get_amount1_delta(sqrt_lower, sqrt_upper, liquidity, True)


def sqrt_price_x96_to_price(sqrt_price_x96, decimals0, decimals1):
    """Convert sqrtPriceX96 to human-readable price"""
    price = (sqrt_price_x96 / Q96) ** 2
    return price * (10 ** decimals0) / (10 ** decimals1)


def calculate_slippage_amounts(amount0, amount1, slippage_bps):
    """
    Calculate minimum amounts with slippage protection.

    Args:
        amount0: Desired amount0 in wei
        amount1: Desired amount1 in wei
        slippage_bps: Slippage in basis points (50 = 0.5%)

    Returns:
        (amount0_min, amount1_min) in wei
    """
    if not 0 <= slippage_bps <= 10000:
        raise InvalidInputError(f"Slippage must be between 0 and 10000 bps: {slippage_bps}")
    multiplier = 10000 - int(slippage_bps)
    return amount0 * multiplier // 10000, amount1 * multiplier // 10000
