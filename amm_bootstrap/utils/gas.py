"""EIP-1559 Gas management with user-configurable limits"""

import json
from pathlib import Path

import structlog

from ..core.exceptions import TransactionError

logger = structlog.get_logger()


class GasPriceTooHighError(TransactionError):
    """Raised when current base fee exceeds the user-specified maximum"""
    pass


class GasConfig:
    """Load and manage gas configuration from JSON file"""

    DEFAULT_GAS_LIMITS = {
        "approve": 65000,
        "createPool": 5000000,
        "mint": 1000000,
        "default": 500000,
    }

    def __init__(self, config_path=None):
        """
        Load gas configuration from JSON file.

        Args:
            config_path: Path to gas_config.json (searches default locations if None)
        """
        self._config = self._load_config(config_path)

    def _load_config(self, config_path=None):
        """Load config from file or return defaults"""
        search_paths = [
            config_path,
            Path.cwd() / "gas_config.json",
            Path.home() / ".amm-bootstrap" / "gas_config.json",
        ]

        for path in search_paths:
            if path and Path(path).exists():
                with open(path) as f:
                    return json.load(f)

        return {
            "maxFeePerGas": None,
            "maxPriorityFeePerGas": 1.5,
            "gasLimit": self.DEFAULT_GAS_LIMITS.copy(),
        }

    @property
    def maxFeePerGas(self):
        """Max fee per gas in Gwei (None = no limit)"""
        return self._config.get("maxFeePerGas")

    @property
    def maxPriorityFeePerGas(self):
        """Priority fee (tip) in Gwei"""
        return self._config.get("maxPriorityFeePerGas", 1.5)

    def getGasLimit(self, operation_type):
        """Gas limit in units for an operation type ("approve", "mint", ...)"""
        gas_limits = {**self.DEFAULT_GAS_LIMITS, **self._config.get("gasLimit", {})}
        return gas_limits.get(operation_type, gas_limits["default"])


class GasManager:
    """
    EIP-1559 fee parameters for outgoing transactions.

    maxFeePerGas caps base + priority fee; maxPriorityFeePerGas is the tip.
    """

    def __init__(self, manager, maxFeePerGas=None, maxPriorityFeePerGas=None, config=None):
        """
        Args:
            manager: Web3Manager instance
            maxFeePerGas: Max fee per gas in Gwei (overrides config)
            maxPriorityFeePerGas: Priority fee in Gwei (overrides config)
            config: GasConfig instance (created if None)
        """
        self.manager = manager
        self.config = config or GasConfig()

        # CLI overrides take precedence over config file
        self._maxFeePerGas = maxFeePerGas
        self._maxPriorityFeePerGas = maxPriorityFeePerGas

    @property
    def maxFeePerGas(self):
        """Get maxFeePerGas in Gwei (CLI override > config > None)"""
        if self._maxFeePerGas is not None:
            return self._maxFeePerGas
        return self.config.maxFeePerGas

    @property
    def maxPriorityFeePerGas(self):
        """Get maxPriorityFeePerGas in Gwei (CLI override > config)"""
        if self._maxPriorityFeePerGas is not None:
            return self._maxPriorityFeePerGas
        return self.config.maxPriorityFeePerGas

    def getGasLimit(self, operation_type=None):
        """Get gas limit for operation type"""
        return self.config.getGasLimit(operation_type or "default")

    def getBaseFee(self):
        """Base fee of the latest block in Wei"""
        latest_block = self.manager.w3.eth.get_block("latest")
        return latest_block.get("baseFeePerGas", 0)

    def getGasParams(self):
        """
        Get EIP-1559 fee parameters for a transaction.

        Returns:
            Dict with maxFeePerGas and maxPriorityFeePerGas in Wei

        Raises:
            GasPriceTooHighError: If base fee exceeds maxFeePerGas
        """
        base_fee = self.getBaseFee()

        priority_fee_wei = int((self.maxPriorityFeePerGas or 1.5) * 1e9)

        if self.maxFeePerGas is not None:
            max_fee_wei = int(self.maxFeePerGas * 1e9)

            # maxFeePerGas must cover the base fee for the tx to be included
            if max_fee_wei < base_fee:
                raise GasPriceTooHighError(
                    f"Current base fee ({base_fee / 1e9:.2f} Gwei) exceeds your "
                    f"maxFeePerGas ({self.maxFeePerGas} Gwei). Transaction cannot be included."
                )
        else:
            max_fee_wei = int((base_fee + priority_fee_wei) * 1.2)

        return {
            "maxFeePerGas": max_fee_wei,
            "maxPriorityFeePerGas": min(priority_fee_wei, max_fee_wei),
        }

    def estimateGas(self, contract_func, from_address, operation_type=None):
        """Estimate gas for a contract call, falling back to the configured limit"""
        fallback = self.getGasLimit(operation_type)

        try:
            return contract_func.estimate_gas({"from": from_address})
        except Exception as e:
            logger.warning(
                "gas_estimate_failed",
                operation=operation_type,
                fallback=fallback,
                error=str(e),
            )
            return fallback
