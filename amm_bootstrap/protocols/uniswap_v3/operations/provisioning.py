"""
Pool provisioning: create, initialize and seed Uniswap V3 pools.

Each pool moves through NOT_FOUND -> CREATED_INITIALIZED -> LIQUIDITY_ADDED.
Every transaction is confirmed before the next one is sent. A batch runs
pools one after another and stops at the first failure; pools completed
before it are left as they are.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import structlog

from ....contracts.erc20 import ERC20
from ....core.config import Config
from ....core.exceptions import (
    InsufficientBalanceError,
    InvalidInputError,
    PoolError,
    ProvisioningError,
)
from ..contracts.factory import Factory
from ..contracts.nfpm import NFPM
from ..contracts.pool import Pool
from ..math import calculate_slippage_amounts, get_tick_at_sqrt_ratio
from ..position import BOOTSTRAP_TICK_WIDTH, calculate_position, tick_range
from ..price import Numeric, encode_price_from_reserves, parse_units, to_decimal
from ..types import ZERO_ADDRESS, FeeAmount, sort_token_pair

logger = structlog.get_logger()


class ProvisioningState(Enum):
    NOT_FOUND = "NotFound"
    CREATED_INITIALIZED = "Created+Initialized"
    LIQUIDITY_ADDED = "LiquidityAdded"


@dataclass(frozen=True)
class InitPrice:
    """Initial price as a pair of reserves in display units"""

    amount0: Numeric
    amount1: Numeric


@dataclass(frozen=True)
class GasLimits:
    """Fixed gas limits per step; None means estimate"""

    deploy_pool: Optional[int] = None
    add_liquidity: Optional[int] = None


@dataclass(frozen=True)
class PoolRequest:
    """
    One pool to provision.

    token0/token1 are the caller's labels and need not be in canonical
    order. init_price.amount0 belongs to token0 and input_token0_amount is
    the amount of token0 to deposit; the other side is derived.
    """

    token0: str
    token1: str
    fee: int
    init_price: InitPrice
    input_token0_amount: Numeric
    deadline_in_seconds: int
    gas_limits: GasLimits = field(default_factory=GasLimits)
    width_multiplier: int = BOOTSTRAP_TICK_WIDTH
    slippage_bps: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        """
        Build a request from a batch-file entry (camelCase or snake_case keys).

        Tokens may be addresses or symbols listed in tokens.json.
        """

        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        if not pick("token0Address", "token0") or not pick("token1Address", "token1"):
            raise InvalidInputError(f"Pool request needs token0 and token1: {data}")

        # Fee may be given by tier name, e.g. "MEDIUM"
        fee = pick("fee")
        if isinstance(fee, str) and fee.upper() in FeeAmount.__members__:
            fee = FeeAmount[fee.upper()]

        def optional_int(value):
            return None if value is None else int(value)

        try:
            init_price = pick("initPrice", "init_price")
            gas_limits = pick("gasLimits", "gas_limits", default={}) or {}
            config = Config()
            return cls(
                token0=config.get_token_address(pick("token0Address", "token0")),
                token1=config.get_token_address(pick("token1Address", "token1")),
                fee=int(fee),
                init_price=InitPrice(init_price["amount0"], init_price["amount1"]),
                input_token0_amount=pick("inputToken0Amount", "input_token0_amount"),
                deadline_in_seconds=int(pick("deadlineInSeconds", "deadline_in_seconds")),
                gas_limits=GasLimits(
                    deploy_pool=optional_int(gas_limits.get("deployPool", gas_limits.get("deploy_pool"))),
                    add_liquidity=optional_int(gas_limits.get("addLiquidity", gas_limits.get("add_liquidity"))),
                ),
                width_multiplier=int(pick("widthMultiplier", "width_multiplier",
                                          default=BOOTSTRAP_TICK_WIDTH)),
                slippage_bps=optional_int(pick("slippageBps", "slippage_bps")),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid pool request {data}: {e!r}") from None

    @property
    def label(self):
        return f"{self.token0}/{self.token1} fee {self.fee}"


class PoolProvisioner:
    """Create, initialize and seed pools through the position manager"""

    def __init__(self, deployer, liquidity_adder=None, factory_address=None, nfpm_address=None):
        """
        Args:
            deployer: Web3Manager (with signer) that creates pools
            liquidity_adder: Web3Manager (with signer) that funds positions
                (defaults to deployer)
            factory_address: Factory address (resolved from the registry if None)
            nfpm_address: Position manager address (resolved from the registry if None)
        """
        self.deployer = deployer
        self.liquidity_adder = liquidity_adder or deployer
        self.chain_id = deployer.chain_id

        self.factory = Factory(deployer, factory_address)
        self.deployer_nfpm = NFPM(deployer, nfpm_address)
        self.adder_nfpm = NFPM(self.liquidity_adder, self.deployer_nfpm.address)

        self._tokens = {}

    def _token(self, address):
        """ERC20 wrapper bound to the liquidity adder (cached per address)"""
        key = address.lower()
        if key not in self._tokens:
            self._tokens[key] = ERC20(self.liquidity_adder, address)
        return self._tokens[key]

    def _describe(self, request):
        """Symbols, addresses and fee of a request, from whatever metadata is cached"""
        parts = []
        for address in (request.token0, request.token1):
            token = self._tokens.get(str(address).lower())
            symbol = token._descriptor.symbol if token and token._descriptor else None
            parts.append(f"{symbol} ({address})" if symbol else str(address))
        return f"{parts[0]} / {parts[1]} fee {request.fee}"

    # ── validation ─────────────────────────────────────────────────────

    def validate(self, request):
        """
        Check a request without touching the chain.

        Raises:
            InvalidInputError (or a subclass) describing the first problem
        """
        FeeAmount.parse(request.fee)
        sort_token_pair(request.token0, None, request.token1, None)

        for label, value in (
            ("initPrice.amount0", request.init_price.amount0),
            ("initPrice.amount1", request.init_price.amount1),
            ("inputToken0Amount", request.input_token0_amount),
        ):
            if to_decimal(value, label) <= 0:
                raise InvalidInputError(f"{label} must be positive for {request.label}: {value}")

        if request.deadline_in_seconds <= 0:
            raise InvalidInputError(f"deadlineInSeconds must be positive for {request.label}")
        if request.width_multiplier <= 0:
            raise InvalidInputError(f"widthMultiplier must be positive for {request.label}")
        if request.slippage_bps is not None and not 0 <= request.slippage_bps <= 10000:
            raise InvalidInputError(f"slippageBps must be within 0-10000 for {request.label}")

    def preflight(self, request, add_only=False):
        """
        Check a request against token metadata and pool state. Reads only.

        Beyond validate(), this rejects amounts with more fractional digits
        than their token has decimals, and widths whose tick range would
        leave [MIN_TICK, MAX_TICK] at the price the pool will have: the
        current price of an initialized pool, otherwise the requested one.

        Returns:
            Dict with the fee, ordered pair, encoded price, state, pool and
            the tick the position will be centred on (None for an add-only
            request whose pool is missing)

        Raises:
            InvalidInputError (or a subclass) describing the first problem
        """
        self.validate(request)
        fee = FeeAmount.parse(request.fee)
        token0 = self._token(request.token0).descriptor
        token1 = self._token(request.token1).descriptor

        pair = sort_token_pair(
            token0.address, parse_units(request.init_price.amount0, token0.decimals),
            token1.address, parse_units(request.init_price.amount1, token1.decimals),
        )
        parse_units(request.input_token0_amount, token0.decimals)
        sqrt_price_x96 = encode_price_from_reserves(pair)

        state, pool_address = self.detect_state(pair[0].address, pair[1].address, fee)
        if state is ProvisioningState.CREATED_INITIALIZED:
            tick = Pool(self.deployer, pool_address).state().tick
        elif add_only:
            # Reported by the detect_state step of the run itself
            tick = None
        else:
            tick = get_tick_at_sqrt_ratio(sqrt_price_x96)

        if tick is not None:
            tick_range(tick, fee.tick_spacing, request.width_multiplier)

        return {
            "fee": fee,
            "pair": pair,
            "sqrt_price_x96": sqrt_price_x96,
            "state": state,
            "pool": pool_address,
            "tick": tick,
        }

    # ── state machine steps ────────────────────────────────────────────

    def detect_state(self, token_a, token_b, fee):
        """
        Current provisioning state of a pool.

        A pool that exists but has no price yet counts as NOT_FOUND, since
        createAndInitializePoolIfNecessary() will initialize it.

        Returns:
            (ProvisioningState, pool address or None)
        """
        pool_address = self.factory.get_pool(token_a, token_b, fee)
        if pool_address == ZERO_ADDRESS:
            return ProvisioningState.NOT_FOUND, None
        if Pool(self.deployer, pool_address).sqrt_price_x96 == 0:
            return ProvisioningState.NOT_FOUND, pool_address
        return ProvisioningState.CREATED_INITIALIZED, pool_address

    def deploy_pool(self, request):
        """
        NOT_FOUND -> CREATED_INITIALIZED.

        Encodes the initial price from the request's reserves and creates and
        initializes the pool. An already initialized pool is left untouched:
        no transaction is sent and its price is kept.

        Returns:
            Dict with pool address, encoded price and transaction details
        """
        fee = FeeAmount.parse(request.fee)
        token0 = self._token(request.token0).descriptor
        token1 = self._token(request.token1).descriptor

        pair = sort_token_pair(
            token0.address, parse_units(request.init_price.amount0, token0.decimals),
            token1.address, parse_units(request.init_price.amount1, token1.decimals),
        )
        sqrt_price_x96 = encode_price_from_reserves(pair)

        state, pool_address = self.detect_state(pair[0].address, pair[1].address, fee)
        result = {
            "token0": pair[0].address,
            "token1": pair[1].address,
            "fee": int(fee),
            "sqrt_price_x96": str(sqrt_price_x96),
            "created": False,
            "tx_hash": None,
            "gas_used": None,
        }

        if state is ProvisioningState.CREATED_INITIALIZED:
            logger.info(
                "pool_already_initialized",
                pair=f"{token0.symbol}-{token1.symbol}",
                fee=int(fee),
                pool=pool_address,
            )
            result["pool"] = pool_address
            result["state"] = state.value
            return result

        logger.info(
            "pool_deploying",
            pair=f"{token0.symbol}-{token1.symbol}",
            fee=int(fee),
            token0=pair[0].address,
            token1=pair[1].address,
            sqrt_price_x96=str(sqrt_price_x96),
        )
        receipt = self.deployer_nfpm.create_and_initialize_pool(
            pair[0].address,
            pair[1].address,
            fee,
            sqrt_price_x96,
            gas_limit=request.gas_limits.deploy_pool,
        )

        pool_address = self.factory.get_pool(pair[0].address, pair[1].address, fee)
        if pool_address == ZERO_ADDRESS:
            raise PoolError(
                f"Pool for {token0.symbol}-{token1.symbol} fee {int(fee)} not found after creation"
            )

        result.update({
            "pool": pool_address,
            "state": ProvisioningState.CREATED_INITIALIZED.value,
            "created": True,
            "tx_hash": receipt.transactionHash.hex(),
            "gas_used": receipt.gasUsed,
        })
        logger.info(
            "pool_deployed",
            pool=pool_address,
            tx_hash=result["tx_hash"],
            gas_used=receipt.gasUsed,
        )
        return result

    def _check_balance(self, token, required):
        available = token.balance_of()
        if available < required:
            raise InsufficientBalanceError(
                f"Insufficient balance of {token.symbol} ({token.address}). "
                f"Required: {token.from_wei(required)}, available: {token.from_wei(available)}"
            )

    def add_liquidity(self, request, pool_address):
        """
        CREATED_INITIALIZED -> LIQUIDITY_ADDED.

        Sizes the position against the pool's on-chain state (not the
        requested initial price), grants the position manager an unlimited
        allowance where needed and mints.

        Returns:
            Dict with token id, ticks, liquidity and amounts
        """
        fee = FeeAmount.parse(request.fee)
        token0 = self._token(request.token0)
        token1 = self._token(request.token1)

        pool_state = Pool(self.liquidity_adder, pool_address).state()
        if not pool_state.initialized:
            raise PoolError(f"Pool {pool_address} is not initialized")
        if pool_state.fee != fee:
            raise PoolError(f"Pool {pool_address} has fee {pool_state.fee}, expected {int(fee)}")

        position = calculate_position(
            self.chain_id,
            pool_state,
            token0.descriptor,
            token1.descriptor,
            request.input_token0_amount,
            request.width_multiplier,
        )
        amount0 = position.mint_amounts.amount0
        amount1 = position.mint_amounts.amount1

        canonical0 = self._token(position.token0.address)
        canonical1 = self._token(position.token1.address)
        self._check_balance(canonical0, amount0)
        self._check_balance(canonical1, amount1)

        canonical0.ensure_allowance(self.adder_nfpm.address, amount0)
        canonical1.ensure_allowance(self.adder_nfpm.address, amount1)

        if request.slippage_bps is None:
            amount0_min, amount1_min = 0, 0
            logger.warning(
                "mint_without_slippage_protection",
                pool=pool_address,
                reason="bootstrap liquidity accepts any resulting ratio",
            )
        else:
            amount0_min, amount1_min = calculate_slippage_amounts(amount0, amount1, request.slippage_bps)

        params = {
            "token0": position.token0.address,
            "token1": position.token1.address,
            "fee": int(fee),
            "tick_lower": position.tick_lower,
            "tick_upper": position.tick_upper,
            "amount0_desired": amount0,
            "amount1_desired": amount1,
            "amount0_min": amount0_min,
            "amount1_min": amount1_min,
            "recipient": self.liquidity_adder.address,
            "deadline": int(time.time()) + request.deadline_in_seconds,
        }

        logger.info(
            "liquidity_adding",
            pool=pool_address,
            tick_lower=position.tick_lower,
            tick_upper=position.tick_upper,
            amount0=f"{canonical0.from_wei(amount0)} {position.token0.symbol}",
            amount1=f"{canonical1.from_wei(amount1)} {position.token1.symbol}",
            recipient=params["recipient"],
            deadline=params["deadline"],
        )
        minted = self.adder_nfpm.mint(params, gas_limit=request.gas_limits.add_liquidity)
        receipt = minted["receipt"]
        logger.info(
            "liquidity_added",
            pool=pool_address,
            token_id=minted["token_id"],
            tx_hash=receipt.transactionHash.hex(),
            gas_used=receipt.gasUsed,
        )

        return {
            "state": ProvisioningState.LIQUIDITY_ADDED.value,
            "pool": pool_address,
            "token_id": minted["token_id"],
            "position": position.to_dict(),
            "amount0_min": str(amount0_min),
            "amount1_min": str(amount1_min),
            "deadline": params["deadline"],
            "tx_hash": receipt.transactionHash.hex(),
            "gas_used": receipt.gasUsed,
        }

    # ── pipelines ──────────────────────────────────────────────────────

    def _provision_one(self, request, add_only=False, completed=()):
        """Run one validated request to LIQUIDITY_ADDED, wrapping any failure with its step"""
        step = "detect_state"
        try:
            if add_only:
                fee = FeeAmount.parse(request.fee)
                state, pool_address = self.detect_state(request.token0, request.token1, fee)
                if state is ProvisioningState.NOT_FOUND:
                    raise PoolError(
                        f"Pool does not exist or is not initialized for {self._describe(request)}"
                    )
                deployment = {"pool": pool_address, "state": state.value, "created": False}
            else:
                step = "deploy_pool"
                deployment = self.deploy_pool(request)

            step = "add_liquidity"
            liquidity = self.add_liquidity(request, deployment["pool"])
        except Exception as e:
            logger.error("pool_provisioning_failed", request=request.label, step=step, error=str(e))
            raise ProvisioningError(
                f"Provisioning {self._describe(request)} failed at {step}: {e}",
                request=request,
                step=step,
                completed=completed,
            ) from e

        return {
            "pool": deployment["pool"],
            "state": ProvisioningState.LIQUIDITY_ADDED.value,
            "deployment": deployment,
            "liquidity": liquidity,
        }

    def provision(self, request):
        """Run one pool through the full state machine"""
        self.preflight(request)
        return self._provision_one(request)

    def add_liquidity_to_existing(self, request):
        """Seed an already initialized pool, skipping creation"""
        self.preflight(request, add_only=True)
        return self._provision_one(request, add_only=True)

    def provision_all(self, requests, add_only=False):
        """
        Provision a batch of pools sequentially.

        Every request is validated and preflighted before the first
        transaction is sent. The first failure stops the batch.

        Returns:
            List of per-pool results

        Raises:
            InvalidInputError: A request is invalid (nothing was sent)
            ProvisioningError: A pool failed; .completed holds earlier results
        """
        requests = list(requests)
        for request in requests:
            self.validate(request)
        for request in requests:
            self.preflight(request, add_only)

        completed: List[dict] = []
        for index, request in enumerate(requests, start=1):
            logger.info("pool_provisioning", index=index, total=len(requests), request=request.label)
            result = self._provision_one(request, add_only, completed)
            completed.append(result)

        logger.info("provisioning_complete", pools=len(completed))
        return completed

    def plan(self, request):
        """Preflight a request and report what provisioning would do, sending nothing"""
        checked = self.preflight(request)
        pair = checked["pair"]
        state = checked["state"]

        result = {
            "token0": {"address": pair[0].address, "reserve": str(pair[0].info)},
            "token1": {"address": pair[1].address, "reserve": str(pair[1].info)},
            "fee": int(checked["fee"]),
            "sqrt_price_x96": str(checked["sqrt_price_x96"]),
            "state": state.value,
            "pool": checked["pool"],
        }
        if state is ProvisioningState.CREATED_INITIALIZED:
            position = calculate_position(
                self.chain_id,
                Pool(self.deployer, checked["pool"]).state(),
                self._token(request.token0).descriptor,
                self._token(request.token1).descriptor,
                request.input_token0_amount,
                request.width_multiplier,
            )
            result["position"] = position.to_dict()
        return result
