"""
XChain Cross-Chain Swaps

Bridge transfer + destination swap, executed as a resumable saga.
"""

from .types import (
    SAGA_TRANSITIONS,
    CrossChainSwapQuote,
    PollPolicy,
    SagaOutcome,
    SagaState,
    SagaStep,
    TotalFee,
)
from .saga import (
    CrossChainSwapCoordinator,
    CrossChainSwapSaga,
)
from .service import (
    CrossChainService,
    build_service,
)

__all__ = [
    "SAGA_TRANSITIONS",
    "CrossChainSwapQuote",
    "PollPolicy",
    "SagaOutcome",
    "SagaState",
    "SagaStep",
    "TotalFee",
    "CrossChainSwapCoordinator",
    "CrossChainSwapSaga",
    "CrossChainService",
    "build_service",
]
