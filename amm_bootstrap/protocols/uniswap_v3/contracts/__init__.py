"""Uniswap V3 contract wrappers"""

from .factory import Factory
from .nfpm import NFPM
from .pool import Pool

__all__ = ["Factory", "NFPM", "Pool"]
