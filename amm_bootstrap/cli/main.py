"""Main CLI entry point"""

import sys
import json
import logging
import argparse
from pathlib import Path

import structlog

from ..core.config import Config
from ..core.connection import Web3Manager
from ..core.exceptions import AMMError, ProvisioningError
from ..contracts.erc20 import ERC20
from ..protocols.uniswap_v3.contracts.pool import Pool
from ..protocols.uniswap_v3.encoding import decode_path, encode_path_hex
from ..protocols.uniswap_v3.operations import PoolProvisioner, PoolRequest, RouteManager
from ..protocols.uniswap_v3.position import BOOTSTRAP_TICK_WIDTH, calculate_position
from ..protocols.uniswap_v3.price import decode_sqrt_price_x96, encode_sqrt_price_x96

logger = structlog.get_logger()


def configure_logging(verbose=False):
    """Route structlog output to stderr, INFO by default"""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def get_results_dir():
    """Get results directory, create if needed"""
    results_dir = Path.cwd() / "results"
    results_dir.mkdir(exist_ok=True)
    return results_dir


def save_result(filename, data):
    """Save result to JSON file in results directory"""
    filepath = get_results_dir() / filename
    with open(filepath, "w") as f:
        json.dump(data, f, indent=2, default=str)
    return filepath


def resolve_tokens(*tokens):
    """Token symbols from tokens.json to addresses; addresses pass through"""
    config = Config()
    return [config.get_token_address(token) for token in tokens]


def print_result(result, filename=None):
    print(json.dumps(result, indent=2, default=str))
    if filename:
        filepath = save_result(filename, result)
        print(f"\nSaved to {filepath}", file=sys.stderr)


def cmd_price_encode(args):
    """Encode a reserve ratio as sqrtPriceX96"""
    sqrt_price_x96 = encode_sqrt_price_x96(args.reserve1, args.reserve0)
    print_result({
        "reserve1": args.reserve1,
        "reserve0": args.reserve0,
        "sqrt_price_x96": str(sqrt_price_x96),
        "price": decode_sqrt_price_x96(sqrt_price_x96),
    })


def cmd_price_decode(args):
    """Decode sqrtPriceX96 to a token1/token0 ratio"""
    print_result({
        "sqrt_price_x96": args.sqrt_price_x96,
        "price": decode_sqrt_price_x96(args.sqrt_price_x96),
    })


def cmd_path_encode(args):
    """Encode a swap route"""
    tokens = resolve_tokens(*args.tokens)
    print_result({
        "tokens": tokens,
        "fees": args.fees,
        "exact_input": args.exact_input,
        "path": encode_path_hex(tokens, args.fees, args.exact_input),
    })


def cmd_path_decode(args):
    """Decode a packed swap path"""
    route = decode_path(args.path, args.exact_input)
    print_result({"tokens": list(route.tokens), "fees": list(route.fees), "exact_input": args.exact_input})


def cmd_path_check(args):
    """Check every hop of a route has a pool, then encode it"""
    tokens = resolve_tokens(*args.tokens)
    routes = RouteManager()
    pools = routes.check_swap_path_exists(tokens, args.fees)
    print_result({
        "tokens": tokens,
        "fees": args.fees,
        "pools": pools,
        "path": encode_path_hex(tokens, args.fees, args.exact_input),
    })


def cmd_pool_find(args):
    """Find the pool for a pair across fee tiers"""
    result = RouteManager().find_pool(*resolve_tokens(args.token_a, args.token_b))
    print_result(result)


def cmd_pool_describe(args):
    """Show a pool's on-chain state"""
    manager = Web3Manager(require_signer=False)
    pool = Pool(manager, args.address)
    token0 = ERC20(manager, pool.token0)
    token1 = ERC20(manager, pool.token1)
    result = pool.describe(token0.decimals, token1.decimals)
    result["pair"] = f"{token0.symbol}/{token1.symbol}"
    print_result(result, f"pool_{args.address[:10]}.json")


def cmd_position_quote(args):
    """Size a position against a pool's current state (read-only)"""
    token0_address, token1_address = resolve_tokens(args.token0, args.token1)
    manager = Web3Manager(require_signer=False)
    routes = RouteManager(manager)
    pool_address = routes.factory.get_pool(token0_address, token1_address, args.fee)
    if pool_address == "0x0000000000000000000000000000000000000000":
        raise AMMError(f"Pool does not exist for {args.token0}/{args.token1} with fee {args.fee}")

    token0 = ERC20(manager, token0_address).descriptor
    token1 = ERC20(manager, token1_address).descriptor
    position = calculate_position(
        manager.chain_id,
        Pool(manager, pool_address).state(),
        token0,
        token1,
        args.amount,
        args.width,
    )

    own, other = position.amounts_for(token0.address)
    result = position.to_dict()
    result["you_deposit"] = {
        token0.symbol: ERC20(manager, token0.address).from_wei(own),
        token1.symbol: ERC20(manager, token1.address).from_wei(other),
    }
    print_result(result)


def _load_requests(path):
    with open(path) as f:
        data = json.load(f)
    # Accept a bare list or {"initialPools": [...]}
    if isinstance(data, dict):
        data = data.get("initialPools", data.get("pools", []))
    return [PoolRequest.from_dict(entry) for entry in data]


def cmd_provision(args):
    """Create, initialize and seed every pool in a batch file"""
    requests = _load_requests(args.batch_file)
    if not requests:
        print("No pools to provision", file=sys.stderr)
        return

    deployer = Web3Manager(require_signer=True, role="deployer")
    liquidity_adder = deployer.for_role("liquidity_adder")
    provisioner = PoolProvisioner(deployer, liquidity_adder)

    if args.plan:
        for request in requests:
            provisioner.validate(request)
        print_result([provisioner.plan(request) for request in requests])
        return

    try:
        results = provisioner.provision_all(requests, add_only=args.add_only)
    except ProvisioningError as e:
        if e.completed:
            filepath = save_result("provisioning_partial.json", e.completed)
            print(f"Completed pools before the failure saved to {filepath}", file=sys.stderr)
        raise

    print_result(results, "provisioning.json")


def main():
    parser = argparse.ArgumentParser(
        prog="amm-bootstrap",
        description="Create, initialize and seed Uniswap V3 style pools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  amm-bootstrap price encode 3800 1
  amm-bootstrap path encode --tokens 0xA... 0xB... --fees 3000 --exact-input
  amm-bootstrap position quote 0xA... 0xB... 3000 0.5 --width 200
  amm-bootstrap provision config/pools.json --dry-run
  amm-bootstrap provision config/pools.json
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # ── price ──────────────────────────────────────────────────────────
    price_parser = subparsers.add_parser("price", help="sqrtPriceX96 encoding")
    price_sub = price_parser.add_subparsers(dest="price_command")

    price_encode_parser = price_sub.add_parser("encode", help="Encode reserve1/reserve0 as sqrtPriceX96")
    price_encode_parser.add_argument("reserve1", help="Token1 reserve")
    price_encode_parser.add_argument("reserve0", help="Token0 reserve")
    price_encode_parser.set_defaults(func=cmd_price_encode)

    price_decode_parser = price_sub.add_parser("decode", help="Decode sqrtPriceX96 to a ratio")
    price_decode_parser.add_argument("sqrt_price_x96", help="sqrtPriceX96 value")
    price_decode_parser.set_defaults(func=cmd_price_decode)

    # ── path ───────────────────────────────────────────────────────────
    path_parser = subparsers.add_parser("path", help="Multi-hop swap path encoding")
    path_sub = path_parser.add_subparsers(dest="path_command")

    path_encode_parser = path_sub.add_parser("encode", help="Encode tokens and fees into a path")
    path_encode_parser.add_argument("--tokens", nargs="+", required=True, help="Token addresses or symbols in route order")
    path_encode_parser.add_argument("--fees", nargs="+", type=int, required=True, help="Fee of each hop")
    path_encode_parser.add_argument("--exact-input", action="store_true", help="Encode for an exact-input swap")
    path_encode_parser.set_defaults(func=cmd_path_encode)

    path_decode_parser = path_sub.add_parser("decode", help="Decode a packed path")
    path_decode_parser.add_argument("path", help="0x-prefixed packed path")
    path_decode_parser.add_argument("--exact-input", action="store_true", help="Path was encoded for exact input")
    path_decode_parser.set_defaults(func=cmd_path_decode)

    path_check_parser = path_sub.add_parser("check", help="Verify each hop has a pool (needs RPC_URL)")
    path_check_parser.add_argument("--tokens", nargs="+", required=True, help="Token addresses or symbols in route order")
    path_check_parser.add_argument("--fees", nargs="+", type=int, required=True, help="Fee of each hop")
    path_check_parser.add_argument("--exact-input", action="store_true", help="Encode for an exact-input swap")
    path_check_parser.set_defaults(func=cmd_path_check)

    # ── pool ───────────────────────────────────────────────────────────
    pool_parser = subparsers.add_parser("pool", help="Pool lookups (needs RPC_URL)")
    pool_sub = pool_parser.add_subparsers(dest="pool_command")

    pool_find_parser = pool_sub.add_parser("find", help="Find a pair's pool, highest fee tier first")
    pool_find_parser.add_argument("token_a", help="First token address or symbol")
    pool_find_parser.add_argument("token_b", help="Second token address or symbol")
    pool_find_parser.set_defaults(func=cmd_pool_find)

    pool_describe_parser = pool_sub.add_parser("describe", help="Show pool state")
    pool_describe_parser.add_argument("address", help="Pool address")
    pool_describe_parser.set_defaults(func=cmd_pool_describe)

    # ── position ───────────────────────────────────────────────────────
    position_parser = subparsers.add_parser("position", help="Position sizing")
    position_sub = position_parser.add_subparsers(dest="position_command")

    quote_parser = position_sub.add_parser("quote", help="Size a position from one token amount")
    quote_parser.add_argument("token0", help="Token (address or symbol) whose amount is given")
    quote_parser.add_argument("token1", help="The other token")
    quote_parser.add_argument("fee", type=int, help="Fee tier (100, 500, 3000, 10000)")
    quote_parser.add_argument("amount", help="Amount of token0 in display units")
    quote_parser.add_argument("--width", type=int, default=BOOTSTRAP_TICK_WIDTH,
                              help=f"Range half-width in tick spacings (default: {BOOTSTRAP_TICK_WIDTH})")
    quote_parser.set_defaults(func=cmd_position_quote)

    # ── provision ──────────────────────────────────────────────────────
    provision_parser = subparsers.add_parser("provision", help="Create, initialize and seed pools from a batch file")
    provision_parser.add_argument("batch_file", help="JSON list of pool requests")
    provision_parser.add_argument("--add-only", action="store_true", help="Only add liquidity to existing pools")
    provision_parser.add_argument("--dry-run", dest="plan", action="store_true",
                                  help="Validate and show what would happen, send nothing")
    provision_parser.set_defaults(func=cmd_provision)

    # ── Parse and dispatch ─────────────────────────────────────────────
    args = parser.parse_args()
    configure_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    nested = {
        "price": (price_parser, "price_command"),
        "path": (path_parser, "path_command"),
        "pool": (pool_parser, "pool_command"),
        "position": (position_parser, "position_command"),
    }
    if args.command in nested:
        sub_parser, dest = nested[args.command]
        if not getattr(args, dest):
            sub_parser.print_help()
            sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(1)
    except AMMError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
