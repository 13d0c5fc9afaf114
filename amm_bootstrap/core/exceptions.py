"""Custom exceptions for AMM Bootstrap"""


class AMMError(Exception):
    """Base exception for all AMM errors"""
    pass


class ConfigError(AMMError):
    """Configuration-related errors"""
    pass


class ConnectionError(AMMError):
    """Web3 connection errors"""
    pass


class TransactionError(AMMError):
    """Transaction execution errors"""
    pass


class InsufficientBalanceError(AMMError):
    """Insufficient token balance"""
    pass


class PoolError(AMMError):
    """Pool-related errors (not found, not initialized, etc.)"""
    pass


class InvalidInputError(AMMError, ValueError):
    """Input rejected before any on-chain call is attempted"""
    pass


class IdenticalTokensError(InvalidInputError):
    """Both sides of a token pair resolve to the same address"""

    def __init__(self, address_a, address_b):
        self.address_a = address_a
        self.address_b = address_b
        super().__init__(f"Token pair has identical addresses: {address_a} and {address_b}")


class InvalidFeeTierError(InvalidInputError):
    """Fee is not one of the supported fee tiers"""

    def __init__(self, fee, valid=None):
        self.fee = fee
        message = f"Invalid fee amount: {fee}"
        if valid:
            message += f". Valid: {list(valid)}"
        super().__init__(message)


class PathLengthError(InvalidInputError):
    """Swap path token/fee sequences have inconsistent lengths"""
    pass


class ZeroReserveError(InvalidInputError):
    """Price ratio with a zero denominator"""
    pass


class ProvisioningError(AMMError):
    """
    A pool in a provisioning batch failed.

    Carries the failing request, the step it failed at and the results of
    every pool completed before it. The original exception is chained.
    """

    def __init__(self, message, request=None, step=None, completed=None):
        super().__init__(message)
        self.request = request
        self.step = step
        self.completed = list(completed or [])
