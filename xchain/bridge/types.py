"""
XChain Bridge Types

Core data structures for bridge quoting and transfer tracking.

Defines:
  - BridgeStatus and the BRIDGE_TRANSITIONS state graph
  - BridgeRoute, one possible path for a (source, dest, token) triple
  - BridgeQuote, an immutable time-boxed price for a route
  - BridgeTransaction, the tracked lifecycle record of a transfer
  - MultiChainBalance, a read-only reporting value
  - parse_amount, strict Decimal parsing for caller-supplied amounts
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .networks import BridgeProvider, Network
from ..exceptions import InvalidAmountError


# ══════════════════════════════════════════════════════════════════════
#  AMOUNTS
# ══════════════════════════════════════════════════════════════════════

def parse_amount(value: Any) -> Decimal:
    """
    Parse a caller-supplied amount into a positive, finite Decimal.

    Floats are rejected; amounts travel as strings or Decimals so no
    binary rounding leaks into fees.

    Raises:
        InvalidAmountError: if the value is not a positive finite number
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(f"Amount must be a string or Decimal, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(f"Amount must be positive: {value!r}")
    return amount


# ══════════════════════════════════════════════════════════════════════
#  STATUS STATE MACHINE
# ══════════════════════════════════════════════════════════════════════

class BridgeStatus(str, Enum):
    """Lifecycle status of a bridge transfer."""
    INITIATED  = "initiated"
    BRIDGING   = "bridging"
    CONFIRMING = "confirming"
    COMPLETED  = "completed"
    FAILED     = "failed"
    REFUNDED   = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_pending(self) -> bool:
        return not self.is_terminal


TERMINAL_STATUSES: FrozenSet[BridgeStatus] = frozenset({
    BridgeStatus.COMPLETED,
    BridgeStatus.FAILED,
    BridgeStatus.REFUNDED,
})

BRIDGE_TRANSITIONS: Dict[BridgeStatus, FrozenSet[BridgeStatus]] = {
    BridgeStatus.INITIATED:  frozenset({BridgeStatus.BRIDGING}),
    BridgeStatus.BRIDGING:   frozenset({BridgeStatus.CONFIRMING}),
    BridgeStatus.CONFIRMING: TERMINAL_STATUSES,
    BridgeStatus.COMPLETED:  frozenset(),
    BridgeStatus.FAILED:     frozenset(),
    BridgeStatus.REFUNDED:   frozenset(),
}

# Pending statuses in the order a transfer passes through them
PENDING_PATH: Tuple[BridgeStatus, ...] = (
    BridgeStatus.INITIATED,
    BridgeStatus.BRIDGING,
    BridgeStatus.CONFIRMING,
)


def is_legal_transition(current: BridgeStatus, new: BridgeStatus) -> bool:
    return new in BRIDGE_TRANSITIONS[current]


def path_to(current: BridgeStatus, target: BridgeStatus) -> Optional[List[BridgeStatus]]:
    """
    Statuses to apply, in order, to move from *current* to *target*.

    Returns [] when target == current, None when *target* is not ahead of
    *current* on the lifecycle path.
    """
    if current == target:
        return []
    if current.is_terminal:
        return None
    start = PENDING_PATH.index(current)
    if target.is_terminal:
        return list(PENDING_PATH[start + 1:]) + [target]
    end = PENDING_PATH.index(target)
    if end <= start:
        return None
    return list(PENDING_PATH[start + 1:end + 1])


# ══════════════════════════════════════════════════════════════════════
#  ROUTES & QUOTES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BridgeRoute:
    """
    One possible path for moving *token* from *source_network* to
    *dest_network* through *provider*.
    """
    source_network: Network
    dest_network: Network
    token: str
    provider: BridgeProvider
    estimated_time_seconds: int
    base_fee: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "from_chain": self.source_network.value,
            "to_chain": self.dest_network.value,
            "token": self.token,
            "estimated_time_seconds": self.estimated_time_seconds,
            "base_fee": str(self.base_fee),
        }


def new_quote_id(prefix: str = "bq") -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class BridgeQuote:
    """
    Priced, time-boxed offer to execute a transfer along a route.

    Attributes:
        quote_id: Unique per request
        route: The route this quote prices
        input_amount: Amount debited on the source network
        output_amount: Amount credited on the destination network
        fee: Provider fee
        fee_currency: Currency the fee is denominated in
        estimated_time_seconds: Expected settlement time
        expires_at: Unix timestamp after which the quote is void
    """
    quote_id: str
    route: BridgeRoute
    input_amount: Decimal
    output_amount: Decimal
    fee: Decimal
    fee_currency: str
    estimated_time_seconds: int
    expires_at: float

    @property
    def provider(self) -> BridgeProvider:
        return self.route.provider

    @property
    def is_expired(self) -> bool:
        return self.expired_at(time.time())

    def expired_at(self, now: float) -> bool:
        return now > self.expires_at

    @property
    def effective_value(self) -> Decimal:
        """Ranking value: output less fee, in the quote's fee currency."""
        return self.output_amount - self.fee

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_id": self.quote_id,
            "provider": self.route.provider.value,
            "from_chain": self.route.source_network.value,
            "to_chain": self.route.dest_network.value,
            "token": self.route.token,
            "amount": str(self.input_amount),
            "fee": str(self.fee),
            "fee_currency": self.fee_currency,
            "estimated_time_seconds": self.estimated_time_seconds,
            "output_amount": str(self.output_amount),
            "expires_at": self.expires_at,
        }


# ══════════════════════════════════════════════════════════════════════
#  TRACKED TRANSACTION
# ══════════════════════════════════════════════════════════════════════

@dataclass
class BridgeTransaction:
    """
    Lifecycle record of one bridge transfer.

    Only the tracker mutates ``status``; everything else holds the
    ``transaction_id`` as a back-reference.

    Attributes:
        transaction_id: Unique, assigned at initiation, never reused
        source_network / dest_network / token / amount / provider: route metadata
        sender_address / recipient_address: Endpoints of the transfer
        status: Current BridgeStatus
        provider_reference: Adapter-side transfer reference used for polling
        failure_reason: Set when moving into FAILED or REFUNDED
        source_tx_hash / destination_tx_hash: On-chain hashes once known
        created_at / updated_at: Unix seconds
        history: (status, timestamp) for every applied status
    """
    transaction_id: str
    source_network: Network
    dest_network: Network
    token: str
    amount: Decimal
    provider: BridgeProvider
    sender_address: str
    recipient_address: str
    status: BridgeStatus = BridgeStatus.INITIATED
    provider_reference: str = ""
    quote_id: str = ""
    output_amount: Optional[Decimal] = None
    failure_reason: Optional[str] = None
    source_tx_hash: Optional[str] = None
    destination_tx_hash: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0
    history: List[Tuple[BridgeStatus, float]] = field(default_factory=list)

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = self.created_at
        if not self.history:
            self.history.append((self.status, self.created_at))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def snapshot(self) -> "BridgeTransaction":
        """Detached copy safe to hand to callers."""
        return replace(self, history=list(self.history))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "from_chain": self.source_network.value,
            "to_chain": self.dest_network.value,
            "token": self.token,
            "amount": str(self.amount),
            "output_amount": str(self.output_amount) if self.output_amount is not None else None,
            "provider": self.provider.value,
            "sender_address": self.sender_address,
            "recipient_address": self.recipient_address,
            "failure_reason": self.failure_reason,
            "source_tx_hash": self.source_tx_hash,
            "destination_tx_hash": self.destination_tx_hash,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "history": [
                {"status": status.value, "timestamp": ts} for status, ts in self.history
            ],
        }


# ══════════════════════════════════════════════════════════════════════
#  REPORTING
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MultiChainBalance:
    """Balance of one token on one network, with its USD equivalent."""
    network: Network
    token: str
    balance: Decimal
    usd_value: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network.value,
            "token": self.token,
            "balance": str(self.balance),
            "usd_value": str(self.usd_value),
        }
