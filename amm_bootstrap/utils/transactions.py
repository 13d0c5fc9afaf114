"""Transaction utilities with EIP-1559 support"""

import structlog

from .gas import GasManager
from ..core.exceptions import TransactionError

logger = structlog.get_logger()


class TransactionBuilder:
    """Build and send EIP-1559 transactions, one confirmed transaction at a time"""

    def __init__(self, manager, gas_manager=None):
        """
        Args:
            manager: Web3Manager instance (must have a signer to send)
            gas_manager: GasManager instance (created if None, loads from gas_config.json)
        """
        self.manager = manager
        self.gas_manager = gas_manager or GasManager(manager)

    def build(self, contract_func, operation_type=None, gas_buffer=1.2, gas_limit=None, value=0):
        """
        Build an EIP-1559 transaction for a contract function.

        Args:
            contract_func: Contract function to call
            operation_type: Type of operation for gas limit lookup
            gas_buffer: Multiplier applied to the estimate (default 1.2 = +20%)
            gas_limit: Fixed gas limit, skips estimation when given
            value: ETH value to send in wei (default 0)

        Returns:
            Transaction dictionary ready for signing
        """
        gas_params = self.gas_manager.getGasParams()

        if gas_limit is None:
            estimated_gas = self.gas_manager.estimateGas(
                contract_func, self.manager.address, operation_type
            )
            gas_limit = int(estimated_gas * gas_buffer)

        tx = {
            "from": self.manager.address,
            "nonce": self.manager.get_nonce(),
            "gas": gas_limit,
            "maxFeePerGas": gas_params["maxFeePerGas"],
            "maxPriorityFeePerGas": gas_params["maxPriorityFeePerGas"],
            "chainId": self.manager.chain_id,
            "type": 2,  # EIP-1559 transaction type
        }

        if value > 0:
            tx["value"] = value

        return contract_func.build_transaction(tx)

    def build_and_send(self, contract_func, operation_type=None, gas_buffer=1.2,
                       gas_limit=None, value=0):
        """
        Build, sign and send a transaction, then wait for its receipt.

        Returns:
            Transaction receipt

        Raises:
            TransactionError: If the transaction reverted
            GasPriceTooHighError: If base fee exceeds maxFeePerGas
        """
        if self.manager.account is None:
            raise TransactionError(f"No signer configured for {operation_type or 'transaction'}")

        tx = self.build(contract_func, operation_type, gas_buffer, gas_limit, value)

        signed = self.manager.account.sign_transaction(tx)
        tx_hash = self.manager.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("tx_sent", operation=operation_type, tx_hash=tx_hash.hex(), gas=tx["gas"])

        receipt = self.manager.w3.eth.wait_for_transaction_receipt(tx_hash)

        if receipt.status != 1:
            raise TransactionError(
                f"{operation_type or 'Transaction'} failed: {receipt.transactionHash.hex()}"
            )

        logger.debug(
            "tx_confirmed",
            operation=operation_type,
            tx_hash=receipt.transactionHash.hex(),
            gas_used=receipt.gasUsed,
        )
        return receipt
