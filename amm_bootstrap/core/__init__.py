"""Core module - configuration, connection and exceptions"""

from .config import Config
from .connection import Web3Manager
from .exceptions import (
    AMMError,
    ConfigError,
    ConnectionError,
    TransactionError,
    InsufficientBalanceError,
    PoolError,
    InvalidInputError,
    IdenticalTokensError,
    InvalidFeeTierError,
    PathLengthError,
    ZeroReserveError,
    ProvisioningError,
)

__all__ = [
    "Config",
    "Web3Manager",
    "AMMError",
    "ConfigError",
    "ConnectionError",
    "TransactionError",
    "InsufficientBalanceError",
    "PoolError",
    "InvalidInputError",
    "IdenticalTokensError",
    "InvalidFeeTierError",
    "PathLengthError",
    "ZeroReserveError",
    "ProvisioningError",
]
