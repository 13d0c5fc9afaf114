"""Uniswap V3 type definitions and helpers"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Generic, Iterator, Optional, Sequence, Tuple, TypeVar

from ...core.exceptions import (
    IdenticalTokensError,
    InvalidFeeTierError,
    InvalidInputError,
)

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class FeeAmount(IntEnum):
    """Fee tiers in hundredths of a bip (3000 = 0.30%)"""

    LOWEST = 100
    LOW = 500
    MEDIUM = 3000
    HIGH = 10000

    @classmethod
    def parse(cls, value) -> "FeeAmount":
        """Return the fee tier for `value` or raise InvalidFeeTierError"""
        try:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return cls(int(value))
        except (TypeError, ValueError):
            raise InvalidFeeTierError(value, valid=[f.value for f in cls]) from None

    @property
    def tick_spacing(self) -> int:
        return TICK_SPACINGS[self]


TICK_SPACINGS = {
    FeeAmount.LOWEST: 1,
    FeeAmount.LOW: 10,
    FeeAmount.MEDIUM: 60,
    FeeAmount.HIGH: 200,
}


@dataclass(frozen=True)
class TokenDescriptor:
    """
    ERC20 metadata needed by the math layer.

    Attributes:
        address: Token address (compared case-insensitively)
        decimals: Token decimals, 0-255
        symbol: Display symbol
        name: Display name
    """

    address: str
    decimals: int
    symbol: str = ""
    name: str = ""

    def __post_init__(self):
        if not 0 <= int(self.decimals) <= 255:
            raise InvalidInputError(
                f"Token {self.symbol or self.address} has invalid decimals: {self.decimals}"
            )

    def same_address(self, address: str) -> bool:
        return self.address.lower() == address.lower()

    def __str__(self):
        return f"{self.symbol or '?'} ({self.address})"


@dataclass(frozen=True)
class PoolState:
    """Snapshot of a pool's on-chain state"""

    tick: int
    tick_spacing: int
    fee: int
    sqrt_price_x96: int
    liquidity: int
    address: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return self.sqrt_price_x96 != 0


@dataclass(frozen=True)
class PairMember(Generic[T]):
    address: str
    info: T


@dataclass(frozen=True)
class OrderedPair(Generic[T]):
    """
    Two tokens in canonical (ascending address) order.

    Only produced by sort_token_pair(). Indexes like the 2-element sequence
    the position manager expects: pair[0] is token0, pair[1] is token1.
    """

    token0: PairMember[T]
    token1: PairMember[T]

    def __getitem__(self, index: int) -> PairMember[T]:
        return (self.token0, self.token1)[index]

    def __iter__(self) -> Iterator[PairMember[T]]:
        return iter((self.token0, self.token1))

    def __len__(self) -> int:
        return 2

    @property
    def addresses(self) -> Tuple[str, str]:
        return self.token0.address, self.token1.address

    def index_of(self, address: str) -> int:
        """0 or 1 for the given address, ValueError if it is not in the pair"""
        for i, member in enumerate(self):
            if member.address.lower() == address.lower():
                return i
        raise ValueError(f"{address} is not part of pair {self.addresses}")


def sort_token_pair(address_a: str, info_a: T, address_b: str, info_b: T) -> OrderedPair[T]:
    """
    Sort a token pair by address, ascending.

    The position manager only accepts canonically ordered pairs, so every
    pool creation, position and mint call goes through here first.

    Raises:
        IdenticalTokensError: If both addresses are the same (case-insensitive)
    """
    a, b = address_a.lower(), address_b.lower()
    if a == b:
        raise IdenticalTokensError(address_a, address_b)
    if a < b:
        return OrderedPair(PairMember(address_a, info_a), PairMember(address_b, info_b))
    return OrderedPair(PairMember(address_b, info_b), PairMember(address_a, info_a))


@dataclass(frozen=True)
class MintAmounts:
    """Token amounts (base units) in canonical order"""

    amount0: int
    amount1: int


@dataclass(frozen=True)
class Position:
    """
    A sized liquidity position, ready to be minted.

    token0/token1 and mint_amounts follow the pool's canonical order, not
    the order the caller supplied the tokens in; use amounts_for() to map
    back to the caller's labels.
    """

    chain_id: int
    pool: PoolState
    token0: TokenDescriptor
    token1: TokenDescriptor
    tick_lower: int
    tick_upper: int
    liquidity: int
    mint_amounts: MintAmounts

    def amounts_for(self, address: str) -> Tuple[int, int]:
        """(amount of `address`, amount of the other token)"""
        if self.token0.same_address(address):
            return self.mint_amounts.amount0, self.mint_amounts.amount1
        if self.token1.same_address(address):
            return self.mint_amounts.amount1, self.mint_amounts.amount0
        raise ValueError(f"{address} is not part of position {self.token0} / {self.token1}")

    def to_dict(self) -> dict:
        return {
            "chain_id": self.chain_id,
            "pool": self.pool.address,
            "fee": self.pool.fee,
            "token0": {"address": self.token0.address, "symbol": self.token0.symbol},
            "token1": {"address": self.token1.address, "symbol": self.token1.symbol},
            "tick_lower": self.tick_lower,
            "tick_upper": self.tick_upper,
            "liquidity": str(self.liquidity),
            "amount0": str(self.mint_amounts.amount0),
            "amount1": str(self.mint_amounts.amount1),
        }


@dataclass(frozen=True)
class SwapRoute:
    """Tokens and per-hop fees of a multi-hop swap, in declaration order"""

    tokens: Tuple[str, ...]
    fees: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, tokens: Sequence[str], fees: Sequence[int]) -> "SwapRoute":
        return cls(tuple(tokens), tuple(int(f) for f in fees))
