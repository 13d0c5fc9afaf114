"""Swap route checks against deployed pools"""

import structlog

from ....contracts.erc20 import ERC20
from ....core.connection import Web3Manager
from ....core.exceptions import PoolError
from ..contracts.factory import Factory
from ..encoding import validate_path_lengths, encode_path
from ..types import ZERO_ADDRESS

logger = structlog.get_logger()


class RouteManager:
    """Resolve and verify multi-hop swap routes"""

    def __init__(self, manager=None, factory_address=None):
        """
        Args:
            manager: Web3Manager instance (read-only is enough; created if None)
            factory_address: Factory address (resolved from the registry if None)
        """
        self.manager = manager or Web3Manager(require_signer=False)
        self.factory = Factory(self.manager, factory_address)

    def _symbol(self, address):
        return ERC20(self.manager, address).symbol

    def check_swap_path_exists(self, tokens, fees):
        """
        Verify every hop of a route has a deployed pool.

        Returns:
            List of pool addresses, one per hop

        Raises:
            PathLengthError: Inconsistent tokens/fees
            PoolError: A hop has no pool
        """
        validate_path_lengths(tokens, fees)

        pools = []
        for token_in, token_out, fee in zip(tokens, tokens[1:], fees):
            pool_address = self.factory.get_pool(token_in, token_out, fee)
            if pool_address == ZERO_ADDRESS:
                raise PoolError(
                    f"Swap path with fee {fee} does not exist for pair "
                    f"{self._symbol(token_in)}-{self._symbol(token_out)} ({token_in}, {token_out})"
                )
            pools.append(pool_address)

        logger.info("swap_path_verified", hops=len(pools), pools=pools)
        return pools

    def build_swap_path(self, tokens, fees, is_exact_input):
        """Check that every hop exists, then encode the path"""
        self.check_swap_path_exists(tokens, fees)
        return encode_path(tokens, fees, is_exact_input)

    def find_pool(self, token_a, token_b):
        """Pool for a pair on the highest fee tier that has one"""
        pool_address, fee = self.factory.find_pool_for_pair(token_a, token_b)
        return {
            "pool": pool_address,
            "fee": int(fee),
            "exists": pool_address != ZERO_ADDRESS,
        }
