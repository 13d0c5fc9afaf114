"""Tests for the pool provisioning state machine."""

import json
from dataclasses import replace

import pytest

from amm_bootstrap.core.exceptions import (
    ConfigError,
    IdenticalTokensError,
    InsufficientBalanceError,
    InvalidFeeTierError,
    InvalidInputError,
    PoolError,
    ProvisioningError,
    TransactionError,
)
from amm_bootstrap.protocols.uniswap_v3.operations import provisioning
from amm_bootstrap.protocols.uniswap_v3.operations.provisioning import (
    GasLimits,
    InitPrice,
    PoolRequest,
    ProvisioningState,
)
from amm_bootstrap.protocols.uniswap_v3.math import get_sqrt_ratio_at_tick
from amm_bootstrap.protocols.uniswap_v3.price import Q96

from .conftest import DUSD, FRAX, NFPM_ADDRESS, SQRT_PRICE_1_5, TICK_1_5, USDT

MAX_UINT256 = 2 ** 256 - 1


def usdt_dusd_request(**overrides):
    """fee 500 USDT/DUSD at 5 USDT = 1 DUSD, seeded with 1M USDT"""
    values = dict(
        token0=USDT,
        token1=DUSD,
        fee=500,
        init_price=InitPrice(5, 1),
        input_token0_amount=10 ** 6,
        deadline_in_seconds=600,
        gas_limits=GasLimits(deploy_pool=5_000_000, add_liquidity=1_000_000),
    )
    values.update(overrides)
    return PoolRequest(**values)


class TestPoolRequest:
    def test_from_dict_camel_case(self):
        request = PoolRequest.from_dict({
            "token0Address": USDT,
            "token1Address": DUSD,
            "fee": 3000,
            "initPrice": {"amount0": "1", "amount1": "3800"},
            "inputToken0Amount": "10",
            "deadlineInSeconds": 600,
            "gasLimits": {"deployPool": 5000000, "addLiquidity": 1000000},
        })

        assert request.token0 == USDT
        assert request.fee == 3000
        assert request.init_price == InitPrice("1", "3800")
        assert request.gas_limits == GasLimits(deploy_pool=5000000, add_liquidity=1000000)
        assert request.width_multiplier == 200
        assert request.slippage_bps is None

    def test_from_dict_snake_case_and_fee_name(self):
        request = PoolRequest.from_dict({
            "token0": USDT,
            "token1": DUSD,
            "fee": "medium",
            "init_price": {"amount0": 1, "amount1": 1},
            "input_token0_amount": 5,
            "deadline_in_seconds": 60,
            "width_multiplier": 2,
            "slippage_bps": 50,
        })

        assert request.fee == 3000
        assert request.gas_limits == GasLimits()
        assert request.width_multiplier == 2
        assert request.slippage_bps == 50

    def test_from_dict_missing_token(self):
        with pytest.raises(InvalidInputError):
            PoolRequest.from_dict({"token0": USDT, "fee": 500})

    def test_from_dict_missing_price(self):
        with pytest.raises(InvalidInputError):
            PoolRequest.from_dict({
                "token0": USDT,
                "token1": DUSD,
                "fee": 500,
                "inputToken0Amount": 1,
                "deadlineInSeconds": 60,
            })

    def test_from_dict_converts_numeric_strings(self):
        request = PoolRequest.from_dict({
            "token0": USDT,
            "token1": DUSD,
            "fee": "500",
            "initPrice": {"amount0": "5", "amount1": "1"},
            "inputToken0Amount": "10",
            "deadlineInSeconds": "600",
            "gasLimits": {"deployPool": "5000000"},
            "slippageBps": "50",
        })

        assert request.slippage_bps == 50
        assert request.gas_limits == GasLimits(deploy_pool=5000000)
        assert (request.fee, request.deadline_in_seconds) == (500, 600)

    def test_from_dict_bad_slippage(self):
        with pytest.raises(InvalidInputError):
            PoolRequest.from_dict({
                "token0": USDT,
                "token1": DUSD,
                "fee": 500,
                "initPrice": {"amount0": 1, "amount1": 1},
                "inputToken0Amount": 1,
                "deadlineInSeconds": 60,
                "slippageBps": "half a percent",
            })

    def test_from_dict_resolves_token_symbols(self, tmp_path, monkeypatch):
        (tmp_path / "tokens.json").write_text(json.dumps({"USDT": USDT, "dusd": DUSD}))
        monkeypatch.setenv("AMM_CONFIG_DIR", str(tmp_path))

        request = PoolRequest.from_dict({
            "token0": "usdt",
            "token1": "DUSD",
            "fee": 500,
            "initPrice": {"amount0": 5, "amount1": 1},
            "inputToken0Amount": 1,
            "deadlineInSeconds": 60,
        })

        assert (request.token0, request.token1) == (USDT, DUSD)

    def test_from_dict_unknown_symbol(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AMM_CONFIG_DIR", str(tmp_path))
        with pytest.raises(ConfigError, match="Unknown token: FRAX"):
            PoolRequest.from_dict({
                "token0": USDT,
                "token1": "FRAX",
                "fee": 500,
                "initPrice": {"amount0": 1, "amount1": 1},
                "inputToken0Amount": 1,
                "deadlineInSeconds": 60,
            })


class TestValidate:
    def test_valid_request(self, provisioner):
        provisioner.validate(usdt_dusd_request())

    def test_bad_fee(self, provisioner):
        with pytest.raises(InvalidFeeTierError):
            provisioner.validate(usdt_dusd_request(fee=250))

    def test_identical_tokens(self, provisioner):
        with pytest.raises(IdenticalTokensError):
            provisioner.validate(usdt_dusd_request(token1=USDT.lower()))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"init_price": InitPrice(0, 1)},
            {"init_price": InitPrice(1, -1)},
            {"input_token0_amount": 0},
            {"deadline_in_seconds": 0},
            {"width_multiplier": 0},
            {"slippage_bps": 10001},
        ],
    )
    def test_rejects_non_positive_values(self, provisioner, overrides):
        with pytest.raises(InvalidInputError):
            provisioner.validate(usdt_dusd_request(**overrides))


class TestPreflight:
    def test_new_pool_centres_on_requested_price(self, provisioner, chain):
        checked = provisioner.preflight(usdt_dusd_request())

        assert checked["state"] is ProvisioningState.NOT_FOUND
        assert checked["sqrt_price_x96"] == SQRT_PRICE_1_5
        assert checked["tick"] == TICK_1_5
        assert chain.calls == []

    def test_existing_pool_centres_on_pool_tick(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 500, sqrt_price_x96=Q96, tick=0)
        checked = provisioner.preflight(usdt_dusd_request())
        assert checked["state"] is ProvisioningState.CREATED_INITIALIZED
        assert checked["tick"] == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"input_token0_amount": "0." + "0" * 30 + "1"},
            {"init_price": InitPrice("0." + "0" * 18 + "1", 1)},
            {"init_price": InitPrice(1, "0." + "0" * 18 + "1")},
        ],
    )
    def test_amount_finer_than_decimals_sends_nothing(self, provisioner, chain, overrides):
        with pytest.raises(InvalidInputError, match="fractional digits"):
            provisioner.provision(usdt_dusd_request(**overrides))
        assert chain.calls == []

    def test_range_beyond_tick_bounds_sends_nothing(self, provisioner, chain):
        with pytest.raises(InvalidInputError, match="exceeds bounds"):
            provisioner.provision(usdt_dusd_request(width_multiplier=100000))
        assert chain.calls == []

    def test_range_checked_at_pool_price(self, provisioner, chain):
        # Fits around the requested price but not around the pool's
        chain.add_pool(USDT, DUSD, 500, sqrt_price_x96=get_sqrt_ratio_at_tick(880000), tick=880000)
        request = usdt_dusd_request(width_multiplier=1000)

        with pytest.raises(InvalidInputError, match="exceeds bounds"):
            provisioner.add_liquidity_to_existing(request)
        assert chain.calls == []

    def test_batch_checks_every_request_before_sending(self, provisioner, chain):
        requests = [
            usdt_dusd_request(),
            usdt_dusd_request(token1=FRAX, width_multiplier=100000),
        ]

        with pytest.raises(InvalidInputError):
            provisioner.provision_all(requests)
        assert chain.calls == []

    def test_plan_rejects_range_beyond_tick_bounds(self, provisioner, chain):
        with pytest.raises(InvalidInputError):
            provisioner.plan(usdt_dusd_request(width_multiplier=100000))


class TestDetectState:
    def test_missing_pool(self, provisioner):
        assert provisioner.detect_state(USDT, DUSD, 500) == (ProvisioningState.NOT_FOUND, None)

    def test_uninitialized_pool_counts_as_not_found(self, provisioner, chain):
        address = chain.add_pool(USDT, DUSD, 500, sqrt_price_x96=0)
        assert provisioner.detect_state(USDT, DUSD, 500) == (ProvisioningState.NOT_FOUND, address)

    def test_initialized_pool(self, provisioner, chain):
        address = chain.add_pool(USDT, DUSD, 500)
        state, pool = provisioner.detect_state(DUSD, USDT, 500)
        assert state is ProvisioningState.CREATED_INITIALIZED
        assert pool == address

    def test_other_fee_tier_is_separate(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 3000, tick=TICK_1_5, tick_spacing=60)
        assert provisioner.detect_state(USDT, DUSD, 500)[0] is ProvisioningState.NOT_FOUND


class TestProvision:
    def test_new_pool_goes_through_every_state(self, provisioner, chain, monkeypatch):
        monkeypatch.setattr(provisioning.time, "time", lambda: 1_700_000_000)

        result = provisioner.provision(usdt_dusd_request())

        assert result["state"] == ProvisioningState.LIQUIDITY_ADDED.value
        assert result["deployment"]["created"] is True
        assert result["deployment"]["sqrt_price_x96"] == str(SQRT_PRICE_1_5)
        assert [name for name, _ in chain.calls] == ["create", "approve", "approve", "mint"]

        (create_args,) = chain.calls_named("create")
        assert create_args == (USDT, DUSD, 500, SQRT_PRICE_1_5, 5_000_000)

        ((params, gas_limit),) = chain.calls_named("mint")
        assert gas_limit == 1_000_000
        assert (params["token0"], params["token1"], params["fee"]) == (USDT, DUSD, 500)
        assert (params["tick_lower"], params["tick_upper"]) == (-18100, -14100)
        assert params["amount0_desired"] == 1000000000000000000000000
        assert params["amount1_desired"] == 200917979363517164388486
        assert params["amount0_min"] == params["amount1_min"] == 0
        assert params["deadline"] == 1_700_000_600
        assert params["recipient"] == provisioner.liquidity_adder.address

    def test_caller_order_does_not_change_the_pool(self, provisioner, chain):
        # Same pool described from the DUSD side
        request = usdt_dusd_request(token0=DUSD, token1=USDT, init_price=InitPrice(1, 5),
                                    input_token0_amount="200917.979363517164388486")
        provisioner.provision(request)

        (create_args,) = chain.calls_named("create")
        assert create_args[:4] == (USDT, DUSD, 500, SQRT_PRICE_1_5)
        ((params, _),) = chain.calls_named("mint")
        assert (params["token0"], params["token1"]) == (USDT, DUSD)

    def test_existing_pool_is_not_recreated(self, provisioner, chain, logs):
        address = chain.add_pool(USDT, DUSD, 500)

        result = provisioner.provision(usdt_dusd_request(init_price=InitPrice(1, 1)))

        assert chain.calls_named("create") == []
        assert result["pool"] == address
        assert result["deployment"]["created"] is False
        assert result["deployment"]["tx_hash"] is None
        assert any(e["event"] == "pool_already_initialized" for e in logs)

    def test_uninitialized_pool_is_initialized(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 500, sqrt_price_x96=0)

        result = provisioner.provision(usdt_dusd_request())

        assert len(chain.calls_named("create")) == 1
        assert result["deployment"]["created"] is True

    def test_zero_minimums_are_logged(self, provisioner, chain, logs):
        provisioner.provision(usdt_dusd_request())
        warnings = [e for e in logs if e["event"] == "mint_without_slippage_protection"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"

    def test_slippage_minimums(self, provisioner, chain):
        provisioner.provision(usdt_dusd_request(slippage_bps=100))

        ((params, _),) = chain.calls_named("mint")
        assert params["amount0_min"] == params["amount0_desired"] * 9900 // 10000
        assert params["amount1_min"] == params["amount1_desired"] * 9900 // 10000

    def test_sufficient_allowance_skips_approve(self, provisioner, chain):
        chain.tokens[USDT.lower()]["allowance"] = MAX_UINT256
        chain.tokens[DUSD.lower()]["allowance"] = MAX_UINT256

        provisioner.provision(usdt_dusd_request())

        assert chain.calls_named("approve") == []

    def test_approves_position_manager_for_max(self, provisioner, chain):
        provisioner.provision(usdt_dusd_request())
        assert chain.calls_named("approve") == [
            ("USDT", NFPM_ADDRESS, MAX_UINT256),
            ("DUSD", NFPM_ADDRESS, MAX_UINT256),
        ]

    def test_insufficient_balance_stops_before_mint(self, provisioner, chain):
        chain.tokens[DUSD.lower()]["balance"] = 10 ** 18

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.provision(usdt_dusd_request())

        error = exc_info.value
        assert error.step == "add_liquidity"
        assert isinstance(error.__cause__, InsufficientBalanceError)
        assert "Insufficient balance of DUSD" in str(error)
        assert chain.calls_named("mint") == []
        assert chain.calls_named("approve") == []

    def test_pool_with_wrong_fee_rejected(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 500)
        address = chain.pools[chain._key(USDT, DUSD, 500)]
        chain.pool_states[address] = replace(chain.pool_states[address], tick_spacing=60, fee=3000)

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.provision(usdt_dusd_request())
        assert isinstance(exc_info.value.__cause__, PoolError)

    def test_create_failure_reports_step(self, provisioner, chain):
        chain.fail_on.add("create")

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.provision(usdt_dusd_request())

        assert exc_info.value.step == "deploy_pool"
        assert isinstance(exc_info.value.__cause__, TransactionError)
        assert "USDT" in str(exc_info.value) and "DUSD" in str(exc_info.value)


class TestAddLiquidityToExisting:
    def test_seeds_existing_pool(self, provisioner, chain):
        address = chain.add_pool(USDT, DUSD, 500)

        result = provisioner.add_liquidity_to_existing(usdt_dusd_request())

        assert result["pool"] == address
        assert chain.calls_named("create") == []
        assert len(chain.calls_named("mint")) == 1

    def test_missing_pool_fails(self, provisioner, chain):
        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.add_liquidity_to_existing(usdt_dusd_request())

        assert exc_info.value.step == "detect_state"
        assert isinstance(exc_info.value.__cause__, PoolError)
        assert chain.calls == []


class TestProvisionAll:
    def _dusd_frax_request(self):
        # DUSD sorts before FRAX; 5 DUSD = 1 FRAX is the same 0.2 pool price
        return usdt_dusd_request(token0=DUSD, token1=FRAX, init_price=InitPrice(5, 1))

    def test_runs_in_order(self, provisioner, chain):
        results = provisioner.provision_all([usdt_dusd_request(), self._dusd_frax_request()])

        assert len(results) == 2
        created = [args[:2] for args in chain.calls_named("create")]
        assert created == [(USDT, DUSD), (DUSD, FRAX)]

    def test_invalid_request_stops_batch_before_any_transaction(self, provisioner, chain):
        with pytest.raises(InvalidFeeTierError):
            provisioner.provision_all([usdt_dusd_request(), usdt_dusd_request(fee=42)])
        assert chain.calls == []

    def test_failure_stops_batch_and_keeps_earlier_results(self, provisioner, chain):
        chain.tokens[FRAX.lower()]["balance"] = 0
        third = usdt_dusd_request(fee=3000)

        with pytest.raises(ProvisioningError) as exc_info:
            provisioner.provision_all([usdt_dusd_request(), self._dusd_frax_request(), third])

        error = exc_info.value
        assert error.step == "add_liquidity"
        assert error.request.token1 == FRAX
        assert len(error.completed) == 1
        assert error.completed[0]["state"] == ProvisioningState.LIQUIDITY_ADDED.value
        # The first pool stays provisioned and the third is never touched
        created = [args[:3] for args in chain.calls_named("create")]
        assert created == [(USDT, DUSD, 500), (DUSD, FRAX, 500)]
        assert len(chain.calls_named("mint")) == 1

    def test_add_only_batch(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 500)
        chain.add_pool(DUSD, FRAX, 500)

        results = provisioner.provision_all([usdt_dusd_request(), self._dusd_frax_request()], add_only=True)

        assert [r["deployment"]["created"] for r in results] == [False, False]
        assert chain.calls_named("create") == []


class TestPlan:
    def test_new_pool(self, provisioner, chain):
        plan = provisioner.plan(usdt_dusd_request())

        assert plan["state"] == ProvisioningState.NOT_FOUND.value
        assert plan["sqrt_price_x96"] == str(SQRT_PRICE_1_5)
        assert plan["token0"] == {"address": USDT, "reserve": str(5 * 10 ** 18)}
        assert "position" not in plan
        assert chain.calls == []

    def test_existing_pool_includes_position(self, provisioner, chain):
        chain.add_pool(USDT, DUSD, 500, sqrt_price_x96=Q96, tick=0)

        plan = provisioner.plan(usdt_dusd_request(input_token0_amount=100 * 10 ** 18))

        assert plan["state"] == ProvisioningState.CREATED_INITIALIZED.value
        assert plan["position"]["amount0"] == "100000000000000000000000000000000000000"
        assert chain.calls == []
