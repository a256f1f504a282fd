"""
XChain Bridge Transaction Tracker

The single writer of ``BridgeTransaction.status``. Every status change
goes through ``update_status``, which checks the requested transition
against ``BRIDGE_TRANSITIONS`` and applies it atomically per
transaction id:

  - repeating the current status is an idempotent no-op
  - a transition outside the graph raises IllegalTransitionError and
    leaves the record untouched
  - two callers racing with conflicting transitions produce exactly one
    winner; the loser sees IllegalTransitionError

Records are kept behind a ``BridgeTransactionStore`` so the surrounding
application can choose its own persistence.
"""

import threading
import time
from typing import Dict, List, Optional, Protocol, TYPE_CHECKING, runtime_checkable

from .types import (
    BridgeQuote,
    BridgeStatus,
    BridgeTransaction,
    is_legal_transition,
    path_to,
)
from ..exceptions import (
    DuplicateTransactionError,
    IllegalTransitionError,
    TransactionNotFoundError,
)
from ..logger import get_logger

if TYPE_CHECKING:
    from .adapters import BaseBridgeAdapter
    from ..metrics import BridgeMetrics

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  STORAGE
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class BridgeTransactionStore(Protocol):
    """
    Persistence interface for tracked transactions.

    Implementations need not be thread-safe per key; the tracker
    serialises writes to one transaction id.
    """

    def get(self, transaction_id: str) -> Optional[BridgeTransaction]:
        ...

    def put(self, transaction: BridgeTransaction) -> None:
        ...

    def all(self) -> List[BridgeTransaction]:
        ...


class InMemoryBridgeTransactionStore:
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self):
        self._records: Dict[str, BridgeTransaction] = {}
        self._lock = threading.Lock()

    def get(self, transaction_id: str) -> Optional[BridgeTransaction]:
        with self._lock:
            return self._records.get(transaction_id)

    def put(self, transaction: BridgeTransaction) -> None:
        with self._lock:
            self._records[transaction.transaction_id] = transaction

    def all(self) -> List[BridgeTransaction]:
        with self._lock:
            return list(self._records.values())


# ══════════════════════════════════════════════════════════════════════
#  TRACKER
# ══════════════════════════════════════════════════════════════════════

class BridgeTransactionTracker:
    """
    Authoritative state-machine store for bridge transactions.

    Callers receive detached snapshots; the stored record is only ever
    modified under the transaction's lock.
    """

    def __init__(
        self,
        store: Optional[BridgeTransactionStore] = None,
        metrics: Optional["BridgeMetrics"] = None,
    ):
        self._store = store or InMemoryBridgeTransactionStore()
        self._metrics = metrics
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, transaction_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(transaction_id)
            if lock is None:
                lock = self._locks[transaction_id] = threading.Lock()
            return lock

    def _forget_lock(self, transaction_id: str) -> None:
        # Terminal records never change again
        with self._locks_guard:
            self._locks.pop(transaction_id, None)

    @property
    def lock_count(self) -> int:
        with self._locks_guard:
            return len(self._locks)

    def _load(self, transaction_id: str) -> BridgeTransaction:
        transaction = self._store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Bridge transaction not found: {transaction_id}")
        return transaction

    # ── Creation ────────────────────────────────────────────────────

    def record(
        self,
        transaction_id: str,
        quote: BridgeQuote,
        sender_address: str,
        recipient_address: str,
        provider_reference: str = "",
    ) -> BridgeTransaction:
        """
        Start tracking a transfer in INITIATED.

        Args:
            transaction_id: New, never-used id
            quote: Quote the transfer was executed from (route metadata)
            sender_address: Source-side address
            recipient_address: Destination-side address
            provider_reference: Adapter reference for polling

        Raises:
            DuplicateTransactionError: if the id is already tracked
        """
        with self._lock_for(transaction_id):
            if self._store.get(transaction_id) is not None:
                raise DuplicateTransactionError(
                    f"Bridge transaction already tracked: {transaction_id}"
                )
            route = quote.route
            transaction = BridgeTransaction(
                transaction_id=transaction_id,
                source_network=route.source_network,
                dest_network=route.dest_network,
                token=route.token,
                amount=quote.input_amount,
                provider=route.provider,
                sender_address=sender_address,
                recipient_address=recipient_address,
                provider_reference=provider_reference,
                quote_id=quote.quote_id,
                output_amount=quote.output_amount,
            )
            self._store.put(transaction)

        if self._metrics is not None:
            self._metrics.pending_transfers.inc()
        logger.info(
            f"Tracking {transaction_id} INITIATED via {route.provider.value}: "
            f"{quote.input_amount} {route.token} "
            f"{route.source_network.value} → {route.dest_network.value}"
        )
        return transaction.snapshot()

    # ── Transitions ─────────────────────────────────────────────────

    def update_status(
        self,
        transaction_id: str,
        new_status: BridgeStatus,
        failure_reason: Optional[str] = None,
    ) -> BridgeTransaction:
        """
        Apply ``current → new_status`` if the state graph permits it.

        Moving into the current status is a no-op. ``failure_reason`` is
        only recorded when moving into FAILED or REFUNDED.

        Raises:
            TransactionNotFoundError: unknown id
            IllegalTransitionError: transition not in the graph
        """
        new_status = BridgeStatus(new_status)
        transaction = self._load(transaction_id)
        try:
            with self._lock_for(transaction_id):
                transaction = self._load(transaction_id)
                self._apply(transaction, new_status, failure_reason)
                return transaction.snapshot()
        finally:
            if transaction.is_terminal:
                self._forget_lock(transaction_id)

    def _apply(
        self,
        transaction: BridgeTransaction,
        new_status: BridgeStatus,
        failure_reason: Optional[str] = None,
    ) -> bool:
        """Apply one transition to a loaded record. Caller holds the lock."""
        current = transaction.status
        if new_status == current:
            return False
        if not is_legal_transition(current, new_status):
            raise IllegalTransitionError(
                f"{transaction.transaction_id}: illegal transition "
                f"{current.name} → {new_status.name}"
            )

        now = time.time()
        transaction.status = new_status
        transaction.updated_at = now
        transaction.history.append((new_status, now))
        if failure_reason and new_status in (BridgeStatus.FAILED, BridgeStatus.REFUNDED):
            transaction.failure_reason = failure_reason
        self._store.put(transaction)

        if self._metrics is not None:
            self._metrics.status_transitions.inc(new_status)
            if new_status.is_terminal:
                self._metrics.pending_transfers.dec()

        if new_status == BridgeStatus.COMPLETED:
            logger.info(f"{transaction.transaction_id} {current.name} → COMPLETED")
        elif new_status.is_terminal:
            logger.error(
                f"{transaction.transaction_id} {current.name} → {new_status.name}"
                + (f": {failure_reason}" if failure_reason else "")
            )
        else:
            logger.info(f"{transaction.transaction_id} {current.name} → {new_status.name}")
        return True

    # ── Queries ─────────────────────────────────────────────────────

    def status_of(self, transaction_id: str) -> BridgeTransaction:
        """
        Current record for *transaction_id*.

        Raises:
            TransactionNotFoundError: unknown id
        """
        transaction = self._load(transaction_id)
        if transaction.is_terminal:
            return transaction.snapshot()
        with self._lock_for(transaction_id):
            return self._load(transaction_id).snapshot()

    def list_transactions(self, status: Optional[BridgeStatus] = None) -> List[BridgeTransaction]:
        records = self._store.all()
        if status is not None:
            records = [t for t in records if t.status == status]
        return sorted((t.snapshot() for t in records), key=lambda t: t.created_at)

    def pending_transactions(self) -> List[BridgeTransaction]:
        return [t for t in self.list_transactions() if not t.is_terminal]

    # ── Polling ─────────────────────────────────────────────────────

    def refresh(self, transaction_id: str, adapter: "BaseBridgeAdapter") -> BridgeStatus:
        """
        Poll *adapter* for the transaction and apply what it reports.

        A reported status further along the lifecycle is reached through
        each intermediate status in turn; a reported status behind the
        stored one is ignored. Terminal transactions are not polled.

        Returns:
            The stored status after the refresh

        Raises:
            TransactionNotFoundError: unknown id
            ProviderExecutionError: propagated from the adapter
        """
        transaction = self._load(transaction_id)
        if transaction.is_terminal:
            return transaction.status

        reported = BridgeStatus(adapter.poll_status(transaction.provider_reference))
        source_hash, dest_hash = adapter.transfer_hashes(transaction.provider_reference)

        with self._lock_for(transaction_id):
            transaction = self._load(transaction_id)
            steps = path_to(transaction.status, reported)
            if steps is None:
                logger.debug(
                    f"{transaction_id}: ignoring stale provider status "
                    f"{reported.name} (stored {transaction.status.name})"
                )
                return transaction.status

            if source_hash and not transaction.source_tx_hash:
                transaction.source_tx_hash = source_hash
            if dest_hash and not transaction.destination_tx_hash:
                transaction.destination_tx_hash = dest_hash

            reason = None
            if reported in (BridgeStatus.FAILED, BridgeStatus.REFUNDED):
                reason = f"{transaction.provider.value} reported {reported.value}"
            for step in steps:
                self._apply(transaction, step, reason if step == reported else None)
            if not steps:
                self._store.put(transaction)
            status = transaction.status

        if status.is_terminal:
            self._forget_lock(transaction_id)
            adapter.release(transaction.provider_reference)
        return status
