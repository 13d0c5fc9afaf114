"""Tests for configuration, signer selection and gas settings."""

import json
from unittest.mock import MagicMock

import pytest

from amm_bootstrap.core.config import Config
from amm_bootstrap.core.connection import Web3Manager
from amm_bootstrap.core.exceptions import ConfigError
from amm_bootstrap.protocols.uniswap_v3.config import UniswapV3Config
from amm_bootstrap.utils.gas import GasConfig, GasManager, GasPriceTooHighError

FRAXTAL_FACTORY = "0x1111111111111111111111111111111111111111"
FRAXTAL_NFPM = "0x2222222222222222222222222222222222222222"


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Empty user config directory selected through AMM_CONFIG_DIR"""
    monkeypatch.setenv("AMM_CONFIG_DIR", str(tmp_path))
    return tmp_path


class TestUniswapV3Config:
    def test_packaged_mainnet_addresses(self, config_dir):
        config = UniswapV3Config()
        assert config.get_address("factory", 1) == "0x1F98431c8aD98523631AE4a59f267346ea31F984"
        assert config.get_address("nfpm", 1) == config.get_address("position_manager", 1)

    def test_unknown_chain(self, config_dir):
        with pytest.raises(ConfigError, match="Unsupported chain ID"):
            UniswapV3Config().get_address("factory", 999999)

    def test_unknown_contract_name(self, config_dir):
        with pytest.raises(ConfigError, match="Unknown contract name"):
            UniswapV3Config().get_address("pool_deployer", 1)

    def test_missing_address_points_at_override_file(self, config_dir):
        with pytest.raises(ConfigError, match="uniswap_v3/addresses.json"):
            UniswapV3Config().get_address("factory", 252)

    def test_user_override_adds_network(self, config_dir):
        (config_dir / "uniswap_v3").mkdir()
        (config_dir / "uniswap_v3" / "addresses.json").write_text(json.dumps({
            "fraxtal": {"factory": FRAXTAL_FACTORY, "position_manager": FRAXTAL_NFPM},
        }))

        config = UniswapV3Config()

        assert config.get_address("factory", 252) == FRAXTAL_FACTORY
        assert config.get_address("position_manager", 252) == FRAXTAL_NFPM
        # Packaged networks are untouched
        assert config.get_address("factory", 1) == "0x1F98431c8aD98523631AE4a59f267346ea31F984"

    def test_network_names(self):
        assert UniswapV3Config.network_name(2522) == "fraxtal_testnet"
        assert UniswapV3Config.network_name(31337) == "localhost"

    def test_abis(self, config_dir):
        config = UniswapV3Config()
        assert config.get_abi("uniswap_v3_pool") == config.get_abi("pool")
        names = {entry.get("name") for entry in config.get_abi("nfpm")}
        assert {"createAndInitializePoolIfNecessary", "mint"} <= names
        with pytest.raises(ConfigError):
            config.get_abi("router")


class TestConfig:
    def test_shared_and_protocol_abis(self, config_dir):
        config = Config()
        assert any(entry.get("name") == "approve" for entry in config.get_abi("erc20"))
        assert config.get_abi("uniswap_v3_factory") == UniswapV3Config().get_abi("factory")
        with pytest.raises(ConfigError):
            config.get_abi("nonexistent")

    def test_token_symbols(self, config_dir):
        (config_dir / "tokens.json").write_text(json.dumps({"dusd": "0xD56e6F296352B03C3c3386543185E9B8c2e5Fd0b"}))

        config = Config()

        assert config.get_token_address("DUSD") == "0xD56e6F296352B03C3c3386543185E9B8c2e5Fd0b"
        assert config.get_token_address("0x" + "ab" * 20) == "0x" + "ab" * 20
        with pytest.raises(ConfigError):
            config.get_token_address("NOPE")


class TestSignerRoles:
    @pytest.fixture
    def w3(self):
        w3 = MagicMock()
        w3.eth.account.from_key.side_effect = lambda key: MagicMock(address=f"addr-{key}")
        return w3

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, config_dir, tmp_path):
        # Keep any local .env / wallet.env out of the way
        monkeypatch.chdir(tmp_path)
        for name in ("PRIVATE_KEY", "DEPLOYER_PRIVATE_KEY", "LIQUIDITY_ADDER_PRIVATE_KEY", "PUBLIC_KEY"):
            monkeypatch.delenv(name, raising=False)

    def test_role_keys(self, w3, monkeypatch):
        monkeypatch.setenv("DEPLOYER_PRIVATE_KEY", "deployer")
        monkeypatch.setenv("LIQUIDITY_ADDER_PRIVATE_KEY", "adder")

        deployer = Web3Manager(require_signer=True, role="deployer", w3=w3)
        adder = deployer.for_role("liquidity_adder")

        assert deployer.address == "addr-deployer"
        assert adder.address == "addr-adder"
        assert adder.w3 is deployer.w3

    def test_fallback_to_private_key(self, w3, monkeypatch):
        monkeypatch.setenv("PRIVATE_KEY", "shared")
        manager = Web3Manager(require_signer=True, role="liquidity_adder", w3=w3)
        assert manager.address == "addr-shared"

    def test_missing_key(self, w3):
        with pytest.raises(ConfigError, match="DEPLOYER_PRIVATE_KEY"):
            Web3Manager(require_signer=True, role="deployer", w3=w3)

    def test_read_only_uses_public_key(self, w3, monkeypatch):
        monkeypatch.setenv("PUBLIC_KEY", "0xabc")
        assert Web3Manager(w3=w3).address == "0xabc"

    def test_missing_rpc_url(self, monkeypatch):
        monkeypatch.delenv("RPC_URL", raising=False)
        with pytest.raises(ConfigError, match="RPC_URL"):
            Web3Manager()


class TestGas:
    @pytest.fixture(autouse=True)
    def no_local_gas_config(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)

    def test_limits_merge_with_defaults(self, tmp_path):
        path = tmp_path / "gas_config.json"
        path.write_text(json.dumps({"gasLimit": {"mint": 750000}}))

        config = GasConfig(path)

        assert config.getGasLimit("mint") == 750000
        assert config.getGasLimit("createPool") == 5000000
        assert config.getGasLimit("unknown") == 500000

    def _manager(self, base_fee):
        manager = MagicMock()
        manager.w3.eth.get_block.return_value = {"baseFeePerGas": base_fee}
        return manager

    def test_gas_params_without_cap(self, tmp_path):
        config = GasConfig(tmp_path / "missing.json")
        params = GasManager(self._manager(10 ** 9), config=config).getGasParams()

        assert params["maxPriorityFeePerGas"] == 1_500_000_000
        assert params["maxFeePerGas"] == int((10 ** 9 + 1_500_000_000) * 1.2)

    def test_cap_below_base_fee(self, tmp_path):
        config = GasConfig(tmp_path / "missing.json")
        gas = GasManager(self._manager(50 * 10 ** 9), maxFeePerGas=20, config=config)
        with pytest.raises(GasPriceTooHighError):
            gas.getGasParams()

    def test_estimate_falls_back_to_configured_limit(self, tmp_path, logs):
        config = GasConfig(tmp_path / "missing.json")
        contract_func = MagicMock()
        contract_func.estimate_gas.side_effect = ValueError("execution reverted")

        gas = GasManager(self._manager(0), config=config)

        assert gas.estimateGas(contract_func, "0xabc", "createPool") == 5000000
        assert logs[-1]["event"] == "gas_estimate_failed"
