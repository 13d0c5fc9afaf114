"""Uniswap V3 Factory contract wrapper"""

from ..config import UniswapV3Config
from ..types import ZERO_ADDRESS, FeeAmount

# Order in which fee tiers are tried when looking up a pair's pool
FEE_SEARCH_ORDER = (FeeAmount.HIGH, FeeAmount.MEDIUM, FeeAmount.LOW, FeeAmount.LOWEST)


class Factory:
    """Pool lookups against the Uniswap V3 Factory"""

    def __init__(self, manager, address=None):
        """
        Args:
            manager: Web3Manager instance
            address: Factory address (resolved from the registry if None)
        """
        self.manager = manager
        if address is None:
            address = UniswapV3Config().get_address("factory", manager.chain_id)
        self.address = manager.checksum(address)
        self.contract = manager.get_contract(self.address, "uniswap_v3_factory")

    def get_pool(self, token_a, token_b, fee):
        """Pool address for a pair and fee, ZERO_ADDRESS if there is none"""
        return self.contract.functions.getPool(
            self.manager.checksum(token_a),
            self.manager.checksum(token_b),
            int(fee),
        ).call()

    def pool_exists(self, token_a, token_b, fee):
        return self.get_pool(token_a, token_b, fee) != ZERO_ADDRESS

    def find_pool_for_pair(self, token_a, token_b):
        """
        First existing pool for the pair, trying fee tiers from highest to
        lowest.

        Returns:
            (pool_address, fee); (ZERO_ADDRESS, FeeAmount.LOW) if no tier has a pool
        """
        for fee in FEE_SEARCH_ORDER:
            pool_address = self.get_pool(token_a, token_b, fee)
            if pool_address != ZERO_ADDRESS:
                return pool_address, fee
        return ZERO_ADDRESS, FeeAmount.LOW
