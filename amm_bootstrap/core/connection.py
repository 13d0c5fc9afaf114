"""Web3 connection management"""

import os
from web3 import Web3
from dotenv import load_dotenv
from .config import Config
from .exceptions import ConnectionError, ConfigError

# Role -> environment variable holding that role's key. PRIVATE_KEY is the
# fallback for every role so a single-account setup keeps working.
SIGNER_KEYS = {
    "deployer": "DEPLOYER_PRIVATE_KEY",
    "liquidity_adder": "LIQUIDITY_ADDER_PRIVATE_KEY",
}


class Web3Manager:
    """Manages Web3 connection and account"""

    def __init__(self, require_signer=False, role=None, w3=None):
        """
        Initialize Web3 connection.

        Args:
            require_signer: If True, loads private key for signing transactions
            role: Signer role ("deployer", "liquidity_adder") selecting the key
            w3: Existing Web3 instance to reuse instead of connecting to RPC_URL
        """
        load_dotenv()
        load_dotenv("wallet.env")

        self.config = Config()
        self.role = role
        if w3 is not None:
            self.w3 = w3
        else:
            self._setup_web3()

        self.account = None
        if require_signer:
            self._setup_account()

    def _setup_web3(self):
        """Setup Web3 connection"""
        rpc_url = os.getenv("RPC_URL")
        if not rpc_url:
            raise ConfigError("RPC_URL not found in environment")

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))

        if not self.w3.is_connected():
            raise ConnectionError(f"Failed to connect to {rpc_url}")

    def _setup_account(self):
        """Setup signing account from private key"""
        env_name = SIGNER_KEYS.get(self.role)
        private_key = (os.getenv(env_name) if env_name else None) or os.getenv("PRIVATE_KEY")
        if not private_key:
            wanted = f"{env_name} or PRIVATE_KEY" if env_name else "PRIVATE_KEY"
            raise ConfigError(f"{wanted} not found in wallet.env")

        self.account = self.w3.eth.account.from_key(private_key)

    def for_role(self, role):
        """Another manager on the same connection, signing as `role`"""
        return Web3Manager(require_signer=True, role=role, w3=self.w3)

    @property
    def address(self):
        """Get account address (from signer or PUBLIC_KEY in wallet.env)"""
        if self.account:
            return self.account.address
        # Fall back to PUBLIC_KEY for read-only operations
        public_key = os.getenv("PUBLIC_KEY")
        return public_key if public_key else None

    @property
    def chain_id(self):
        """Get current chain ID"""
        return self.w3.eth.chain_id

    def get_nonce(self, address=None):
        """Get transaction count (nonce)"""
        addr = address or self.address
        if not addr:
            raise ValueError("No address provided")
        return self.w3.eth.get_transaction_count(addr)

    def get_contract(self, address, abi_name):
        """Create contract instance"""
        abi = self.config.get_abi(abi_name)
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=abi
        )

    def checksum(self, address):
        """Convert address to checksum format"""
        return Web3.to_checksum_address(address)
