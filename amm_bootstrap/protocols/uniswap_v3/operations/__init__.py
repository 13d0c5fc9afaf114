"""Uniswap V3 operations"""

from .provisioning import (
    GasLimits,
    InitPrice,
    PoolProvisioner,
    PoolRequest,
    ProvisioningState,
)
from .routes import RouteManager

__all__ = [
    "GasLimits",
    "InitPrice",
    "PoolProvisioner",
    "PoolRequest",
    "ProvisioningState",
    "RouteManager",
]
