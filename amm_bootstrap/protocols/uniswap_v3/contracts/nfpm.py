"""Uniswap V3 NonfungiblePositionManager contract wrapper"""

import time

from web3 import Web3

from ..config import UniswapV3Config
from ....utils.gas import GasManager
from ....utils.transactions import TransactionBuilder


class NFPM:
    """Wrapper for NonfungiblePositionManager pool creation and minting"""

    def __init__(self, manager, address=None, gas_manager=None):
        """
        Args:
            manager: Web3Manager instance (with signer for transactions)
            address: Position manager address (resolved from the registry if None)
            gas_manager: GasManager instance (created if None)
        """
        self.manager = manager
        if address is None:
            address = UniswapV3Config().get_address("position_manager", manager.chain_id)
        self.address = manager.checksum(address)
        self.contract = manager.get_contract(self.address, "uniswap_v3_nfpm")

        self.gas_manager = gas_manager or GasManager(manager)
        self.tx_builder = TransactionBuilder(manager, self.gas_manager)

    def create_and_initialize_pool(self, token0, token1, fee, sqrt_price_x96, gas_limit=None):
        """
        Create the pool and set its initial price.

        A no-op on-chain for a pool that already exists and is initialized.
        token0/token1 must already be in canonical order.

        Returns:
            Transaction receipt
        """
        contract_func = self.contract.functions.createAndInitializePoolIfNecessary(
            Web3.to_checksum_address(token0),
            Web3.to_checksum_address(token1),
            int(fee),
            int(sqrt_price_x96),
        )
        return self.tx_builder.build_and_send(
            contract_func,
            operation_type="createPool",
            gas_limit=gas_limit,
        )

    def mint(self, params, gas_limit=None):
        """
        Mint new liquidity position.

        Args:
            params: dict with token0, token1, fee, tick_lower, tick_upper,
                   amount0_desired, amount1_desired, amount0_min, amount1_min,
                   recipient, deadline
            gas_limit: Fixed gas limit (estimated if None)

        Returns:
            Dict with receipt, token_id, liquidity, amount0, amount1
        """
        mint_params = (
            Web3.to_checksum_address(params["token0"]),
            Web3.to_checksum_address(params["token1"]),
            int(params["fee"]),
            params["tick_lower"],
            params["tick_upper"],
            params["amount0_desired"],
            params["amount1_desired"],
            params["amount0_min"],
            params["amount1_min"],
            Web3.to_checksum_address(params["recipient"]),
            params.get("deadline", int(time.time()) + 1800),
        )

        contract_func = self.contract.functions.mint(mint_params)
        receipt = self.tx_builder.build_and_send(
            contract_func,
            operation_type="mint",
            gas_limit=gas_limit,
        )

        # Parse minted amounts from event
        events = self.contract.events.IncreaseLiquidity().process_receipt(receipt)
        args = events[0]["args"] if events else {}

        return {
            "receipt": receipt,
            "token_id": args.get("tokenId"),
            "liquidity": args.get("liquidity"),
            "amount0": args.get("amount0"),
            "amount1": args.get("amount1"),
        }
