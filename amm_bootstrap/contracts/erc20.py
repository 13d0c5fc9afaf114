"""ERC20 token contract wrapper"""

import structlog

from ..protocols.uniswap_v3.price import format_units, parse_units
from ..protocols.uniswap_v3.types import TokenDescriptor
from ..utils.gas import GasManager
from ..utils.transactions import TransactionBuilder

logger = structlog.get_logger()

MAX_UINT256 = 2 ** 256 - 1


class ERC20:
    """Wrapper for ERC20 token interactions"""

    def __init__(self, manager, address, gas_manager=None):
        """
        Args:
            manager: Web3Manager instance
            address: Token contract address
            gas_manager: GasManager instance (created if None)
        """
        self.manager = manager
        self.address = manager.checksum(address)
        self.contract = manager.get_contract(self.address, "erc20")
        self._descriptor = None

        self.gas_manager = gas_manager or GasManager(manager)
        self.tx_builder = TransactionBuilder(manager, self.gas_manager)

    @property
    def descriptor(self):
        """Token metadata as a TokenDescriptor (cached)"""
        if self._descriptor is None:
            self._descriptor = TokenDescriptor(
                address=self.address,
                decimals=self.contract.functions.decimals().call(),
                symbol=self._read_string("symbol", "UNKNOWN"),
                name=self._read_string("name", "Unknown Token"),
            )
        return self._descriptor

    def _read_string(self, field, default):
        """Read symbol()/name(), handling tokens like MKR that return bytes32"""
        try:
            raw = getattr(self.contract.functions, field)().call()
        except Exception as e:
            logger.warning("erc20_metadata_unreadable", token=self.address, field=field, error=str(e))
            return default
        if isinstance(raw, bytes):
            return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
        return str(raw)

    @property
    def symbol(self):
        return self.descriptor.symbol

    @property
    def decimals(self):
        return self.descriptor.decimals

    def balance_of(self, address=None):
        """Get token balance in wei"""
        addr = address or self.manager.address
        return self.contract.functions.balanceOf(addr).call()

    def allowance(self, spender, owner=None):
        """Get allowance for spender"""
        owner_addr = owner or self.manager.address
        return self.contract.functions.allowance(owner_addr, spender).call()

    def to_wei(self, amount):
        """Convert human amount to base units"""
        return parse_units(amount, self.decimals)

    def from_wei(self, amount):
        """Convert base units to a human amount string"""
        return format_units(amount, self.decimals)

    def ensure_allowance(self, spender, required, amount=MAX_UINT256, gas_limit=None):
        """
        Approve `spender` for `amount` unless the current allowance already
        covers `required`.

        Returns:
            Transaction receipt, or None if no approval was needed

        Raises:
            TransactionError: If the approval transaction reverted
        """
        current_allowance = self.allowance(spender)
        if current_allowance >= required:
            logger.info(
                "allowance_sufficient",
                token=self.symbol,
                spender=spender,
                allowance=str(current_allowance),
            )
            return None

        contract_func = self.contract.functions.approve(spender, amount)
        receipt = self.tx_builder.build_and_send(
            contract_func,
            operation_type="approve",
            gas_limit=gas_limit,
        )
        logger.info(
            "allowance_granted",
            token=self.symbol,
            spender=spender,
            amount=str(amount),
            tx_hash=receipt.transactionHash.hex(),
            gas_used=receipt.gasUsed,
        )
        return receipt
