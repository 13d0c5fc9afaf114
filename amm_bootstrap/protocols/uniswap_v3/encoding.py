"""Swap path encoding for multi-hop router calls"""

from __future__ import annotations

from typing import List, Sequence, Union

from eth_abi.packed import encode_packed
from web3 import Web3

from ...core.exceptions import InvalidInputError, PathLengthError
from .types import SwapRoute

ADDRESS_SIZE = 20
FEE_SIZE = 3
MAX_UINT24 = 2 ** 24 - 1


def _checksum(token: str) -> str:
    try:
        return Web3.to_checksum_address(token)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid token address in swap path: {token!r}") from None


def validate_path_lengths(tokens: Sequence[str], fees: Sequence[int]):
    if len(tokens) < 2:
        raise PathLengthError("Token paths must have at least 2 tokens")
    if len(fees) != len(tokens) - 1:
        raise PathLengthError(
            f"Token paths must have one more token than fee paths: "
            f"{list(tokens)} vs {list(fees)}"
        )


def encode_path(tokens: Sequence[str], fees: Sequence[int], is_exact_input: bool) -> bytes:
    """
    Pack a route into the router's path format.

    The route is interleaved as token0, fee0, token1, fee1, ..., tokenN and
    tightly packed (20-byte addresses, 3-byte fees). Exact-input paths are
    packed in reverse order.

    Args:
        tokens: Token addresses in route order (at least 2)
        fees: Fee of each hop, len(tokens) - 1 entries
        is_exact_input: Reverse the interleaved sequence before packing

    Returns:
        Packed path bytes

    Raises:
        PathLengthError: Fewer than 2 tokens or fees/tokens length mismatch
        InvalidInputError: Bad address or fee outside uint24
    """
    validate_path_lengths(tokens, fees)

    types: List[str] = ["address"]
    values: List[Union[str, int]] = [_checksum(tokens[0])]
    for fee, token in zip(fees, tokens[1:]):
        fee = int(fee)
        if not 0 <= fee <= MAX_UINT24:
            raise InvalidInputError(f"Fee {fee} does not fit in uint24")
        types.extend(["uint24", "address"])
        values.extend([fee, _checksum(token)])

    if is_exact_input:
        types.reverse()
        values.reverse()

    return encode_packed(types, values)


def encode_path_hex(tokens: Sequence[str], fees: Sequence[int], is_exact_input: bool) -> str:
    """encode_path() as a 0x-prefixed hex string"""
    return "0x" + encode_path(tokens, fees, is_exact_input).hex()


def decode_path(path: Union[bytes, str], is_exact_input: bool) -> SwapRoute:
    """
    Unpack a router path back into its route.

    Inverse of encode_path(): with is_exact_input the packed sequence is
    reversed again, so the returned route is in the order it was declared.
    """
    if isinstance(path, str):
        try:
            path = bytes.fromhex(path[2:] if path.startswith("0x") else path)
        except ValueError:
            raise InvalidInputError(f"Swap path is not valid hex: {path}") from None

    hop_size = FEE_SIZE + ADDRESS_SIZE
    if len(path) < ADDRESS_SIZE + hop_size or (len(path) - ADDRESS_SIZE) % hop_size:
        raise PathLengthError(f"Invalid swap path length: {len(path)} bytes")

    tokens = [Web3.to_checksum_address("0x" + path[:ADDRESS_SIZE].hex())]
    fees = []
    offset = ADDRESS_SIZE
    while offset < len(path):
        fees.append(int.from_bytes(path[offset:offset + FEE_SIZE], "big"))
        offset += FEE_SIZE
        tokens.append(Web3.to_checksum_address("0x" + path[offset:offset + ADDRESS_SIZE].hex()))
        offset += ADDRESS_SIZE

    if is_exact_input:
        tokens.reverse()
        fees.reverse()

    return SwapRoute.of(tokens, fees)
