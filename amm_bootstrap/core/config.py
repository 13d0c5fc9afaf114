"""Configuration loading and management"""

import os
import json
from pathlib import Path
from .exceptions import ConfigError


class Config:
    """Centralized configuration manager for shared settings"""

    _instance = None
    _tokens = None
    _abis = None

    # Shared ABIs are inside the package (not user-configurable)
    PACKAGE_ABIS = Path(__file__).parent.parent / "abis.json"

    # Constants (shared across protocols)
    Q96 = 2 ** 96
    MAX_UINT256 = 2 ** 256 - 1

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if Config._abis is None:
            self._load()

    @classmethod
    def reset(cls):
        """Drop cached configuration so the next instance reloads from disk"""
        cls._instance = None
        cls._tokens = None
        cls._abis = None

    @staticmethod
    def find_config_dir():
        """Find user config directory, or None if there is none"""
        # Check environment variable first
        env_path = os.getenv("AMM_CONFIG_DIR")
        if env_path:
            path = Path(env_path)
            if path.exists():
                return path

        # Check common locations
        locations = [
            Path.cwd() / "config",                              # Current directory
            Path(__file__).parent.parent.parent / "config",     # Package parent
            Path.home() / ".amm-bootstrap" / "config",          # Home directory
        ]

        for path in locations:
            if path.exists():
                return path

        return None

    def _load(self):
        """Load configuration files"""
        # tokens.json is optional: addresses are always accepted directly
        Config._tokens = {}
        config_dir = self.find_config_dir()
        if config_dir:
            tokens_path = config_dir / "tokens.json"
            if tokens_path.exists():
                with open(tokens_path) as f:
                    Config._tokens = {k.upper(): v for k, v in json.load(f).items()}

        # Load shared ABIs from package
        if not self.PACKAGE_ABIS.exists():
            raise ConfigError(f"Shared ABIs not found: {self.PACKAGE_ABIS}")
        with open(self.PACKAGE_ABIS) as f:
            Config._abis = json.load(f)

    @property
    def common_tokens(self):
        """Common token symbol -> address mapping"""
        return Config._tokens or {}

    def get_abi(self, name):
        """
        Get ABI by name.

        First checks shared ABIs, then delegates to protocol-specific configs
        for protocol-prefixed names (e.g., "uniswap_v3_pool").
        """
        if name in Config._abis:
            return Config._abis[name]

        if name.startswith("uniswap_v3_"):
            from ..protocols.uniswap_v3.config import UniswapV3Config
            return UniswapV3Config().get_abi(name)

        raise ConfigError(f"ABI not found: {name}")

    def get_token_address(self, symbol_or_address):
        """Resolve token symbol to address, or validate address"""
        token = symbol_or_address.upper()

        if token in self.common_tokens:
            return self.common_tokens[token]

        if symbol_or_address.startswith("0x") and len(symbol_or_address) == 42:
            return symbol_or_address

        raise ConfigError(f"Unknown token: {symbol_or_address}")
