"""Pytest configuration and fixtures."""

from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from amm_bootstrap.core.config import Config
from amm_bootstrap.core.exceptions import TransactionError
from amm_bootstrap.protocols.uniswap_v3.config import UniswapV3Config
from amm_bootstrap.protocols.uniswap_v3.operations import provisioning
from amm_bootstrap.protocols.uniswap_v3.price import format_units
from amm_bootstrap.protocols.uniswap_v3.types import ZERO_ADDRESS, FeeAmount, PoolState, TokenDescriptor

USDT = "0x0D92d35D311E54aB8EEA0394d7E773Fc5144491a"
DUSD = "0xD56e6F296352B03C3c3386543185E9B8c2e5Fd0b"
FRAX = "0xFc00000000000000000000000000000000000001"

ADDER = "0x00000000000000000000000000000000000000Ad"
NFPM_ADDRESS = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"

# sqrt(0.2) in Q64.96 and the tick it falls in
SQRT_PRICE_1_5 = 35431911422859142059220343232
TICK_1_5 = -16096


@pytest.fixture(autouse=True)
def logs():
    """Structured log events emitted during the test, as dicts"""
    with capture_logs() as captured:
        yield captured


@pytest.fixture(autouse=True)
def fresh_config():
    Config.reset()
    UniswapV3Config.reset()
    yield
    Config.reset()
    UniswapV3Config.reset()


@pytest.fixture
def usdt():
    return TokenDescriptor(USDT, 18, "USDT", "TestingToken")


@pytest.fixture
def dusd():
    return TokenDescriptor(DUSD, 18, "DUSD", "TestingToken")


@pytest.fixture
def pool_1_5():
    """fee 500 pool priced at 1 USDT = 0.2 DUSD"""
    return PoolState(tick=TICK_1_5, tick_spacing=10, fee=500, sqrt_price_x96=SQRT_PRICE_1_5, liquidity=0)


def make_manager(chain_id=31337, address=ADDER):
    manager = MagicMock()
    manager.chain_id = chain_id
    manager.address = address
    manager.checksum.side_effect = lambda a: a
    return manager


def make_receipt(tag=0x11, gas_used=21000):
    receipt = MagicMock()
    receipt.transactionHash = bytes([tag]) * 32
    receipt.gasUsed = gas_used
    receipt.status = 1
    return receipt


class FakeChain:
    """
    In-memory stand-in for the factory, pools, position manager and tokens.

    `calls` records every state-changing call in order as (name, args).
    """

    def __init__(self):
        self.pools = {}
        self.pool_states = {}
        self.tokens = {}
        self.calls = []
        self.created_tick = TICK_1_5
        self.fail_on = set()

    # setup helpers

    def add_token(self, address, symbol, decimals=18, balance=10 ** 40, allowance=0):
        self.tokens[address.lower()] = {
            "descriptor": TokenDescriptor(address, decimals, symbol),
            "balance": balance,
            "allowance": allowance,
        }

    def add_pool(self, token_a, token_b, fee, sqrt_price_x96=SQRT_PRICE_1_5, tick=TICK_1_5, tick_spacing=10):
        address = "0x" + format(len(self.pools) + 1, "040x")
        self.pools[self._key(token_a, token_b, fee)] = address
        self.pool_states[address] = PoolState(
            tick=tick,
            tick_spacing=tick_spacing,
            fee=int(fee),
            sqrt_price_x96=sqrt_price_x96,
            liquidity=0,
            address=address,
        )
        return address

    @staticmethod
    def _key(token_a, token_b, fee):
        return frozenset((token_a.lower(), token_b.lower())), int(fee)

    def calls_named(self, name):
        return [args for call, args in self.calls if call == name]

    # contract fakes

    def factory(self, manager, address=None):
        chain = self

        class FakeFactory:
            def get_pool(self, token_a, token_b, fee):
                return chain.pools.get(chain._key(token_a, token_b, fee), ZERO_ADDRESS)

        return FakeFactory()

    def nfpm(self, manager, address=None):
        chain = self

        class FakeNFPM:
            def __init__(self):
                self.address = address or NFPM_ADDRESS

            def create_and_initialize_pool(self, token0, token1, fee, sqrt_price_x96, gas_limit=None):
                chain.calls.append(("create", (token0, token1, int(fee), sqrt_price_x96, gas_limit)))
                if "create" in chain.fail_on:
                    raise TransactionError("Transaction reverted: createAndInitializePoolIfNecessary")
                chain.add_pool(token0, token1, fee, sqrt_price_x96, chain.created_tick, FeeAmount(fee).tick_spacing)
                return make_receipt(0x22, 4_500_000)

            def mint(self, params, gas_limit=None):
                chain.calls.append(("mint", (params, gas_limit)))
                if "mint" in chain.fail_on:
                    raise TransactionError("Transaction reverted: mint")
                return {
                    "receipt": make_receipt(0x33, 450_000),
                    "token_id": 42,
                    "liquidity": 1,
                    "amount0": params["amount0_desired"],
                    "amount1": params["amount1_desired"],
                }

        return FakeNFPM()

    def pool(self, manager, address):
        chain = self

        class FakePool:
            def __init__(self):
                self.address = address

            @property
            def sqrt_price_x96(self):
                return chain.pool_states[address].sqrt_price_x96

            def state(self):
                return chain.pool_states[address]

        return FakePool()

    def erc20(self, manager, address, gas_manager=None):
        chain = self
        token = chain.tokens[address.lower()]

        class FakeERC20:
            def __init__(self):
                self.address = address
                self._descriptor = token["descriptor"]

            @property
            def descriptor(self):
                return self._descriptor

            @property
            def symbol(self):
                return self._descriptor.symbol

            def balance_of(self, owner=None):
                return token["balance"]

            def from_wei(self, amount):
                return format_units(amount, self._descriptor.decimals)

            def ensure_allowance(self, spender, required, amount=2 ** 256 - 1, gas_limit=None):
                if token["allowance"] >= required:
                    return None
                chain.calls.append(("approve", (self._descriptor.symbol, spender, amount)))
                token["allowance"] = amount
                return make_receipt(0x44, 46_000)

        return FakeERC20()


@pytest.fixture
def chain(monkeypatch):
    """FakeChain with USDT, DUSD and FRAX, wired into the provisioning module"""
    fake = FakeChain()
    fake.add_token(USDT, "USDT")
    fake.add_token(DUSD, "DUSD")
    fake.add_token(FRAX, "FRAX")
    monkeypatch.setattr(provisioning, "Factory", fake.factory)
    monkeypatch.setattr(provisioning, "NFPM", fake.nfpm)
    monkeypatch.setattr(provisioning, "Pool", fake.pool)
    monkeypatch.setattr(provisioning, "ERC20", fake.erc20)
    return fake


@pytest.fixture
def provisioner(chain):
    return provisioning.PoolProvisioner(make_manager(), make_manager())
