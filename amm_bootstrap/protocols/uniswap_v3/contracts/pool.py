"""Uniswap V3 Pool contract wrapper"""

from ..math import sqrt_price_x96_to_price
from ..price import decode_sqrt_price_x96
from ..types import PoolState


class Pool:
    """Wrapper for Uniswap V3 Pool reads"""

    def __init__(self, manager, address):
        """
        Args:
            manager: Web3Manager instance
            address: Pool contract address
        """
        self.manager = manager
        self.address = manager.checksum(address)
        self.contract = manager.get_contract(self.address, "uniswap_v3_pool")

    def slot0(self):
        """
        Get slot0 data (current state).
        Returns: (sqrtPriceX96, tick, observationIndex, ...)
        """
        return self.contract.functions.slot0().call()

    @property
    def sqrt_price_x96(self):
        """Current sqrt price (0 while the pool is uninitialized)"""
        return self.slot0()[0]

    @property
    def token0(self):
        return self.contract.functions.token0().call()

    @property
    def token1(self):
        return self.contract.functions.token1().call()

    def state(self):
        """Read the pool's current state as a PoolState snapshot"""
        tick_spacing = self.contract.functions.tickSpacing().call()
        fee = self.contract.functions.fee().call()
        liquidity = self.contract.functions.liquidity().call()
        slot0 = self.slot0()

        return PoolState(
            tick=slot0[1],
            tick_spacing=tick_spacing,
            fee=fee,
            sqrt_price_x96=slot0[0],
            liquidity=liquidity,
            address=self.address,
        )

    def describe(self, decimals0=None, decimals1=None):
        """Pool state as a dict for display"""
        state = self.state()
        info = {
            "address": self.address,
            "token0": self.token0,
            "token1": self.token1,
            "fee": state.fee,
            "fee_percent": f"{state.fee / 10000}%",
            "liquidity": str(state.liquidity),
            "tick": state.tick,
            "tick_spacing": state.tick_spacing,
            "sqrt_price_x96": str(state.sqrt_price_x96),
            "price_raw": decode_sqrt_price_x96(state.sqrt_price_x96),
        }
        if decimals0 is not None and decimals1 is not None:
            info["price"] = sqrt_price_x96_to_price(state.sqrt_price_x96, decimals0, decimals1)
        return info
