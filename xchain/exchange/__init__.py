"""
XChain Exchange Layer

Swap routing consumed by the destination step of a cross-chain swap.
"""

from .router import (
    DEFAULT_USD_PRICES,
    ReferenceSwapRouter,
    SwapQuote,
    SwapResult,
    SwapRouter,
)

__all__ = [
    "DEFAULT_USD_PRICES",
    "ReferenceSwapRouter",
    "SwapQuote",
    "SwapResult",
    "SwapRouter",
]
