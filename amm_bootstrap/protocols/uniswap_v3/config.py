"""Uniswap V3 specific configuration: deployment registry and ABIs"""

import json
from pathlib import Path

from ...core.config import Config
from ...core.exceptions import ConfigError


# Chain ID to network name mapping
CHAIN_NAMES = {
    1: "mainnet",
    10: "optimism",
    137: "polygon",
    252: "fraxtal",
    2522: "fraxtal_testnet",
    8453: "base",
    31337: "localhost",
    42161: "arbitrum",
}

# Logical contract names accepted by get_address()
CONTRACT_ALIASES = {
    "factory": "factory",
    "position_manager": "position_manager",
    "nfpm": "position_manager",
    "router": "router",
    "quoter": "quoter",
}


class UniswapV3Config:
    """Configuration manager for Uniswap V3 protocol"""

    _instance = None
    _addresses = None
    _abis = None

    # Package files (not user-configurable)
    ADDRESSES_FILE = Path(__file__).parent / "addresses.json"
    ABIS_FILE = Path(__file__).parent / "abis.json"

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if UniswapV3Config._addresses is None:
            self._load()

    @classmethod
    def reset(cls):
        """Drop cached configuration so the next instance reloads from disk"""
        cls._instance = None
        cls._addresses = None
        cls._abis = None

    def _load(self):
        """Load packaged addresses/ABIs, then user address overrides"""
        if not self.ADDRESSES_FILE.exists():
            raise ConfigError(f"V3 addresses not found: {self.ADDRESSES_FILE}")
        with open(self.ADDRESSES_FILE) as f:
            addresses = json.load(f)

        if not self.ABIS_FILE.exists():
            raise ConfigError(f"V3 ABIs not found: {self.ABIS_FILE}")
        with open(self.ABIS_FILE) as f:
            UniswapV3Config._abis = json.load(f)

        # Per-network overrides for self-deployed contracts
        config_dir = Config.find_config_dir()
        if config_dir:
            overrides_file = config_dir / "uniswap_v3" / "addresses.json"
            if overrides_file.exists():
                with open(overrides_file) as f:
                    for network, contracts in json.load(f).items():
                        addresses.setdefault(network, {}).update(contracts)

        UniswapV3Config._addresses = addresses

    @staticmethod
    def network_name(chain_id):
        """Network name for a chain ID"""
        if chain_id not in CHAIN_NAMES:
            raise ConfigError(f"Unsupported chain ID: {chain_id}. Known: {CHAIN_NAMES}")
        return CHAIN_NAMES[chain_id]

    def get_contracts(self, chain_id):
        """Get contract addresses for a specific chain"""
        network = self.network_name(chain_id)
        return UniswapV3Config._addresses.get(network, {})

    def get_address(self, name, chain_id):
        """
        Resolve a logical contract name to its deployed address.

        Args:
            name: "factory", "position_manager" (or "nfpm"), "router", "quoter"
            chain_id: Chain ID of the active network

        Raises:
            ConfigError: Unknown name, unsupported chain, or no address configured
        """
        key = CONTRACT_ALIASES.get(name)
        if key is None:
            raise ConfigError(f"Unknown contract name: {name}. Valid: {list(CONTRACT_ALIASES)}")

        address = self.get_contracts(chain_id).get(key)
        if not address:
            network = self.network_name(chain_id)
            raise ConfigError(
                f"No {key} address configured for {network}. "
                f"Add it to config/uniswap_v3/addresses.json"
            )
        return address

    def get_abi(self, name):
        """
        Get V3-specific ABI by name.

        Supports both short names ("nfpm", "pool") and prefixed names ("uniswap_v3_nfpm").
        """
        short_name = name[len("uniswap_v3_"):] if name.startswith("uniswap_v3_") else name

        if short_name in UniswapV3Config._abis:
            return UniswapV3Config._abis[short_name]

        raise ConfigError(f"V3 ABI not found: {name}")
