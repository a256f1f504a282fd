"""
XChain Cross-Chain Swap Types

Defines:
  - TotalFee: fees summed per currency, never converted across currencies
  - CrossChainSwapQuote: bridge quote plus optional destination swap quote
  - SagaState and the SAGA_TRANSITIONS graph
  - SagaStep: last successfully completed step, for reconciliation
  - SagaOutcome: what a saga run reports back
  - PollPolicy: bounded exponential backoff for bridge polling
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

from ..bridge.networks import Network
from ..bridge.types import BridgeQuote, BridgeStatus
from ..constants import (
    DEFAULT_POLL_INITIAL_INTERVAL,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MULTIPLIER,
    DEFAULT_POLL_TIMEOUT,
)
from ..exchange.router import SwapQuote, SwapResult


# ══════════════════════════════════════════════════════════════════════
#  FEES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TotalFee:
    """
    Fees keyed by currency.

    A single entry when every step charges in the same currency; one
    entry per currency otherwise.
    """
    amounts: Tuple[Tuple[str, Decimal], ...]

    @classmethod
    def combine(cls, *fees: Tuple[Decimal, str]) -> "TotalFee":
        totals: Dict[str, Decimal] = {}
        for amount, currency in fees:
            totals[currency] = totals.get(currency, Decimal("0")) + amount
        return cls(tuple(totals.items()))

    @property
    def is_single_currency(self) -> bool:
        return len(self.amounts) == 1

    @property
    def currency(self) -> Optional[str]:
        return self.amounts[0][0] if self.is_single_currency else None

    @property
    def amount(self) -> Optional[Decimal]:
        return self.amounts[0][1] if self.is_single_currency else None

    def as_dict(self) -> Dict[str, Decimal]:
        return dict(self.amounts)

    def to_dict(self) -> Dict[str, str]:
        return {currency: str(amount) for currency, amount in self.amounts}


# ══════════════════════════════════════════════════════════════════════
#  QUOTE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CrossChainSwapQuote:
    """
    Bridge transfer composed with an optional swap on the destination.

    ``swap_quote`` is None when input and output token are the same,
    making the operation bridge-only.
    """
    quote_id: str
    source_network: Network
    dest_network: Network
    input_token: str
    output_token: str
    input_amount: Decimal
    estimated_output_amount: Decimal
    bridge_quote: BridgeQuote
    swap_quote: Optional[SwapQuote]
    total_fee: TotalFee
    estimated_time_seconds: int

    def requires_swap(self) -> bool:
        return self.swap_quote is not None

    @property
    def fee_currency(self) -> Optional[str]:
        """Fee currency, or None when fees are charged in more than one."""
        return self.total_fee.currency

    @property
    def is_expired(self) -> bool:
        """True once either leg's quote is past its expiry."""
        return self.bridge_quote.is_expired or (
            self.swap_quote is not None and self.swap_quote.is_expired
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_id": self.quote_id,
            "from_chain": self.source_network.value,
            "to_chain": self.dest_network.value,
            "from_token": self.input_token,
            "to_token": self.output_token,
            "input_amount": str(self.input_amount),
            "output_amount": str(self.estimated_output_amount),
            "bridge_fee": str(self.bridge_quote.fee),
            "swap_fee": str(self.swap_quote.fee) if self.swap_quote else None,
            "total_fee": self.total_fee.to_dict(),
            "fee_currency": self.fee_currency,
            "estimated_time_seconds": self.estimated_time_seconds,
            "requires_swap": self.requires_swap(),
            "route": self.route_steps(),
            "bridge_quote": self.bridge_quote.to_dict(),
            "swap_quote": self.swap_quote.to_dict() if self.swap_quote else None,
        }

    def route_steps(self) -> List[str]:
        steps = [
            f"bridge {self.input_token} {self.source_network.value} → "
            f"{self.dest_network.value} via {self.bridge_quote.route.provider.value}"
        ]
        if self.swap_quote is not None:
            steps.append(
                f"swap {self.input_token} → {self.output_token} on {self.dest_network.value}"
            )
        return steps


# ══════════════════════════════════════════════════════════════════════
#  SAGA STATE MACHINE
# ══════════════════════════════════════════════════════════════════════

class SagaState(str, Enum):
    STARTED            = "started"
    BRIDGE_IN_PROGRESS = "bridge_in_progress"
    BRIDGE_COMPLETE    = "bridge_complete"
    BRIDGE_FAILED      = "bridge_failed"
    SWAP_IN_PROGRESS   = "swap_in_progress"
    SWAP_COMPLETE      = "swap_complete"
    SWAP_FAILED        = "swap_failed"
    DONE               = "done"
    DONE_FAILED        = "done_failed"
    DONE_PARTIAL       = "done_partial"

    @property
    def is_terminal(self) -> bool:
        return self in SAGA_TERMINAL_STATES


SAGA_TERMINAL_STATES: FrozenSet[SagaState] = frozenset({
    SagaState.DONE,
    SagaState.DONE_FAILED,
    SagaState.DONE_PARTIAL,
})

SAGA_TRANSITIONS: Dict[SagaState, FrozenSet[SagaState]] = {
    SagaState.STARTED:            frozenset({SagaState.BRIDGE_IN_PROGRESS}),
    SagaState.BRIDGE_IN_PROGRESS: frozenset({SagaState.BRIDGE_COMPLETE, SagaState.BRIDGE_FAILED}),
    SagaState.BRIDGE_COMPLETE:    frozenset({SagaState.SWAP_IN_PROGRESS, SagaState.DONE}),
    SagaState.BRIDGE_FAILED:      frozenset({SagaState.DONE_FAILED}),
    SagaState.SWAP_IN_PROGRESS:   frozenset({SagaState.SWAP_COMPLETE, SagaState.SWAP_FAILED}),
    SagaState.SWAP_COMPLETE:      frozenset({SagaState.DONE}),
    SagaState.SWAP_FAILED:        frozenset({SagaState.DONE_PARTIAL}),
    SagaState.DONE:               frozenset(),
    SagaState.DONE_FAILED:        frozenset(),
    SagaState.DONE_PARTIAL:       frozenset(),
}


class SagaStep(str, Enum):
    """Irreversible steps, in order."""
    BRIDGE_INITIATED = "bridge_initiated"
    BRIDGE_SETTLED   = "bridge_settled"
    SWAP_EXECUTED    = "swap_executed"


# ══════════════════════════════════════════════════════════════════════
#  OUTCOME
# ══════════════════════════════════════════════════════════════════════

@dataclass
class SagaOutcome:
    """
    Report of a saga run.

    For DONE_FAILED and DONE_PARTIAL the outcome carries everything an
    operator needs to reconcile by hand: the last completed step, the
    bridge transaction id and the bridged amount.
    """
    saga_id: str
    state: SagaState
    quote_id: str
    wallet_address: str
    last_completed_step: Optional[SagaStep] = None
    bridge_transaction_id: Optional[str] = None
    bridge_status: Optional[BridgeStatus] = None
    bridged_amount: Optional[Decimal] = None
    bridged_token: Optional[str] = None
    swap_result: Optional[SwapResult] = None
    error: Optional[str] = None
    history: List[Tuple[SagaState, float]] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def succeeded(self) -> bool:
        return self.state == SagaState.DONE

    @property
    def partial(self) -> bool:
        return self.state == SagaState.DONE_PARTIAL

    @property
    def final_amount(self) -> Optional[Decimal]:
        """Amount the wallet ends up holding on the destination."""
        if self.swap_result is not None:
            return self.swap_result.output_amount
        if self.state in (SagaState.DONE, SagaState.DONE_PARTIAL):
            return self.bridged_amount
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saga_id": self.saga_id,
            "state": self.state.value,
            "is_terminal": self.is_terminal,
            "succeeded": self.succeeded,
            "partial": self.partial,
            "quote_id": self.quote_id,
            "wallet_address": self.wallet_address,
            "last_completed_step": self.last_completed_step.value if self.last_completed_step else None,
            "bridge_tx_id": self.bridge_transaction_id,
            "bridge_status": self.bridge_status.value if self.bridge_status else None,
            "bridged_amount": str(self.bridged_amount) if self.bridged_amount is not None else None,
            "bridged_token": self.bridged_token,
            "swap": self.swap_result.to_dict() if self.swap_result else None,
            "error": self.error,
            "history": [{"state": s.value, "timestamp": ts} for s, ts in self.history],
        }


# ══════════════════════════════════════════════════════════════════════
#  POLLING
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PollPolicy:
    """
    Exponential backoff for bridge polling.

    Intervals start at ``initial_interval`` and grow by ``multiplier``
    up to ``max_interval``; ``timeout`` bounds the whole wait.
    """
    initial_interval: float = DEFAULT_POLL_INITIAL_INTERVAL
    max_interval: float = DEFAULT_POLL_MAX_INTERVAL
    multiplier: float = DEFAULT_POLL_MULTIPLIER
    timeout: float = DEFAULT_POLL_TIMEOUT

    def __post_init__(self):
        if self.initial_interval <= 0:
            raise ValueError("initial_interval must be positive")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.timeout < 0:
            raise ValueError("timeout must be non-negative")

    def intervals(self) -> Iterator[float]:
        interval = self.initial_interval
        while True:
            yield interval
            interval = min(interval * self.multiplier, self.max_interval)
