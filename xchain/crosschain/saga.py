"""
XChain Cross-Chain Swap Saga

A cross-chain swap spans two independent systems: a bridge transfer
(via the orchestrator) followed by an optional swap on the destination
network (via a swap router). There is no atomic commit across them, so
the sequence is driven by an explicit state machine:

    STARTED → BRIDGE_IN_PROGRESS → BRIDGE_COMPLETE → SWAP_IN_PROGRESS → SWAP_COMPLETE → DONE
                       │                   │                 │
                       │                   └──→ DONE         └──→ SWAP_FAILED → DONE_PARTIAL
                       └──→ BRIDGE_FAILED → DONE_FAILED

Compensation:
  - Bridge failure: nothing reached the destination, the saga ends DONE_FAILED.
  - Swap failure: the bridged funds stay at the destination address and
    the saga ends DONE_PARTIAL. No reverse bridge is attempted.

``CrossChainSwapSaga.advance()`` performs exactly one step.
``run()`` polls the bridge with bounded exponential backoff until a
terminal state, the timeout, or a cancellation signal; timeout and
cancellation leave the saga where it was so ``resume()`` can continue.
"""

import dataclasses
import threading
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .types import (
    CrossChainSwapQuote,
    PollPolicy,
    SAGA_TRANSITIONS,
    SagaOutcome,
    SagaState,
    SagaStep,
    TotalFee,
)
from ..bridge.addresses import validate_transfer_addresses
from ..bridge.networks import network_from_id
from ..bridge.orchestrator import BridgeOrchestrator
from ..bridge.types import BridgeStatus, new_quote_id
from ..constants import DEFAULT_SLIPPAGE_TOLERANCE
from ..exceptions import (
    IllegalTransitionError,
    QuoteExpiredError,
    RouteUnsupportedError,
    SagaNotFoundError,
    SwapExecutionError,
    TransientUpstreamError,
)
from ..exchange.router import SwapQuote, SwapRouter
from ..logger import get_logger

if TYPE_CHECKING:
    from ..metrics import BridgeMetrics

logger = get_logger(__name__)


def new_saga_id() -> str:
    return f"saga-{uuid.uuid4().hex}"


def _same_asset(from_token: str, to_token: str) -> bool:
    return from_token.strip().upper() == to_token.strip().upper()


# ══════════════════════════════════════════════════════════════════════
#  SAGA
# ══════════════════════════════════════════════════════════════════════

class CrossChainSwapSaga:
    """
    One cross-chain swap, from bridge initiation to its terminal state.

    Args:
        quote: Composed quote to execute
        wallet_address: Source-side sender; also the destination recipient
            unless ``recipient_address`` is given
        orchestrator: Bridge orchestrator (owns the tracker)
        swap_router: Router for the destination swap step
        poll_policy: Backoff and overall timeout for bridge polling
        recipient_address: Destination-side address, for pairs whose
            address families differ
        slippage_tolerance: Used to re-quote a swap whose quote expired
            while the bridge settled
        metrics: Optional shared BridgeMetrics
    """

    def __init__(
        self,
        quote: CrossChainSwapQuote,
        wallet_address: str,
        orchestrator: BridgeOrchestrator,
        swap_router: Optional[SwapRouter] = None,
        poll_policy: Optional[PollPolicy] = None,
        recipient_address: Optional[str] = None,
        saga_id: Optional[str] = None,
        slippage_tolerance: Decimal = DEFAULT_SLIPPAGE_TOLERANCE,
        metrics: Optional["BridgeMetrics"] = None,
    ):
        if quote.requires_swap() and swap_router is None:
            raise RouteUnsupportedError("Quote requires a swap but no swap router is configured")

        self.saga_id = saga_id or new_saga_id()
        self.quote = quote
        self.wallet_address = wallet_address
        self.recipient_address = recipient_address or wallet_address
        self.orchestrator = orchestrator
        self.swap_router = swap_router
        self.poll_policy = poll_policy or PollPolicy()
        self.slippage_tolerance = Decimal(slippage_tolerance)
        self._metrics = metrics
        self._lock = threading.RLock()
        self._outcome = SagaOutcome(
            saga_id=self.saga_id,
            state=SagaState.STARTED,
            quote_id=quote.quote_id,
            wallet_address=wallet_address,
            bridged_token=quote.input_token,
            history=[(SagaState.STARTED, time.time())],
        )

    # ── State ───────────────────────────────────────────────────────

    @property
    def state(self) -> SagaState:
        return self._outcome.state

    @property
    def is_terminal(self) -> bool:
        return self._outcome.state.is_terminal

    def outcome(self) -> SagaOutcome:
        """Detached copy of the current outcome."""
        with self._lock:
            return dataclasses.replace(self._outcome, history=list(self._outcome.history))

    def _transition(self, new_state: SagaState) -> None:
        current = self._outcome.state
        if new_state not in SAGA_TRANSITIONS[current]:
            raise IllegalTransitionError(
                f"{self.saga_id}: illegal saga transition {current.name} → {new_state.name}"
            )
        self._outcome.state = new_state
        self._outcome.history.append((new_state, time.time()))

        if new_state == SagaState.DONE_PARTIAL:
            logger.warning(
                f"{self.saga_id} DONE_PARTIAL: {self._outcome.bridged_amount} "
                f"{self._outcome.bridged_token} left unswapped at "
                f"{self.recipient_address} on {self.quote.dest_network.value}"
            )
        elif new_state in (SagaState.BRIDGE_FAILED, SagaState.DONE_FAILED):
            logger.error(f"{self.saga_id} {current.name} → {new_state.name}")
        else:
            logger.info(f"{self.saga_id} {current.name} → {new_state.name}")

        if new_state.is_terminal and self._metrics is not None:
            self._metrics.saga_outcomes.inc(new_state)

    # ── Steps ───────────────────────────────────────────────────────

    def advance(self) -> SagaState:
        """
        Perform one step and return the resulting state.

        In BRIDGE_IN_PROGRESS one step is one poll of the bridge, which
        may leave the state unchanged. Terminal states are a no-op.

        Raises:
            QuoteExpiredError: bridge or swap quote expired before initiation
            InputError, TransientUpstreamError: initiation or poll failure;
                the saga stays in its current state
        """
        with self._lock:
            state = self._outcome.state
            if state == SagaState.STARTED:
                self._initiate_bridge()
            elif state == SagaState.BRIDGE_IN_PROGRESS:
                self._poll_bridge()
            elif state == SagaState.BRIDGE_COMPLETE:
                if self.quote.requires_swap():
                    self._transition(SagaState.SWAP_IN_PROGRESS)
                else:
                    self._transition(SagaState.DONE)
            elif state == SagaState.BRIDGE_FAILED:
                self._transition(SagaState.DONE_FAILED)
            elif state == SagaState.SWAP_IN_PROGRESS:
                self._execute_swap()
            elif state == SagaState.SWAP_COMPLETE:
                self._transition(SagaState.DONE)
            elif state == SagaState.SWAP_FAILED:
                self._transition(SagaState.DONE_PARTIAL)
            return self._outcome.state

    def _initiate_bridge(self) -> None:
        bridge_quote = self.quote.bridge_quote
        if self.quote.is_expired:
            raise QuoteExpiredError(
                f"Quote {self.quote.quote_id} has expired; request a new quote"
            )
        transaction_id = self.orchestrator.initiate_bridge(
            bridge_quote, self.wallet_address, self.recipient_address,
        )
        self._outcome.bridge_transaction_id = transaction_id
        self._outcome.bridge_status = BridgeStatus.INITIATED
        self._outcome.last_completed_step = SagaStep.BRIDGE_INITIATED
        self._transition(SagaState.BRIDGE_IN_PROGRESS)

    def _poll_bridge(self) -> None:
        transaction_id = self._outcome.bridge_transaction_id
        status = self.orchestrator.refresh_status(transaction_id)
        self._outcome.bridge_status = status
        if status == BridgeStatus.COMPLETED:
            transaction = self.orchestrator.tracker.status_of(transaction_id)
            self._outcome.bridged_amount = transaction.output_amount or transaction.amount
            self._outcome.last_completed_step = SagaStep.BRIDGE_SETTLED
            self._transition(SagaState.BRIDGE_COMPLETE)
        elif status.is_terminal:
            transaction = self.orchestrator.tracker.status_of(transaction_id)
            self._outcome.error = transaction.failure_reason or f"bridge {status.value}"
            self._transition(SagaState.BRIDGE_FAILED)

    def _fresh_swap_quote(self) -> SwapQuote:
        """
        The quoted swap, or a re-quote for the bridged amount if the
        original deadline passed while the bridge settled. A re-quote
        never lowers the minimum output the caller accepted.
        """
        original = self.quote.swap_quote
        if not original.is_expired:
            return original
        requote = self.swap_router.find_best_route(
            self.quote.dest_network,
            original.from_token,
            original.to_token,
            self._outcome.bridged_amount or original.input_amount,
            self.slippage_tolerance,
        )
        if requote.min_output_amount < original.min_output_amount:
            raise SwapExecutionError(
                f"Re-quoted swap minimum {requote.min_output_amount} {requote.to_token} "
                f"is below the accepted minimum {original.min_output_amount}"
            )
        logger.info(f"{self.saga_id} swap quote {original.quote_id} expired; re-quoted as {requote.quote_id}")
        return requote

    def _execute_swap(self) -> None:
        try:
            swap_quote = self._fresh_swap_quote()
            result = self.swap_router.execute_swap(swap_quote, self.recipient_address)
        except Exception as exc:
            # Any router failure ends the swap step; the bridge is already settled
            self._outcome.error = str(exc)
            self._transition(SagaState.SWAP_FAILED)
            return
        self._outcome.swap_result = result
        self._outcome.last_completed_step = SagaStep.SWAP_EXECUTED
        self._transition(SagaState.SWAP_COMPLETE)

    # ── Driving ─────────────────────────────────────────────────────

    def run(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SagaOutcome:
        """
        Advance until terminal, ``timeout`` elapses or ``cancel_event`` is set.

        Transient errors while polling the bridge are retried on the next
        interval; any other error propagates. Timeout and cancellation
        return the current, non-terminal outcome.

        Args:
            timeout: Seconds to wait for the bridge (default: poll policy timeout)
            cancel_event: Cooperative cancellation signal
        """
        timeout = self.poll_policy.timeout if timeout is None else timeout
        cancel_event = cancel_event or threading.Event()
        deadline = time.monotonic() + timeout
        intervals = self.poll_policy.intervals()

        while True:
            if cancel_event.is_set():
                logger.warning(f"{self.saga_id} cancelled in {self.state.name}")
                return self.outcome()

            try:
                state = self.advance()
            except TransientUpstreamError as exc:
                if self.state != SagaState.BRIDGE_IN_PROGRESS:
                    raise
                logger.warning(f"{self.saga_id} bridge poll failed, retrying: {exc}")
                state = self.state

            if state.is_terminal:
                return self.outcome()
            if state != SagaState.BRIDGE_IN_PROGRESS:
                continue

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    f"{self.saga_id} still {state.name} after {timeout}s "
                    f"({self._outcome.bridge_transaction_id} "
                    f"{self._outcome.bridge_status.value if self._outcome.bridge_status else 'unknown'})"
                )
                return self.outcome()
            cancel_event.wait(min(next(intervals), remaining))


# ══════════════════════════════════════════════════════════════════════
#  COORDINATOR
# ══════════════════════════════════════════════════════════════════════

class CrossChainSwapCoordinator:
    """
    Builds cross-chain swap quotes and owns the sagas executing them.

    Args:
        orchestrator: Bridge orchestrator
        swap_router: Router for destination-side swaps
        poll_policy: Default polling policy for new sagas
        slippage_tolerance: Slippage passed to the router when quoting
        metrics: Optional shared BridgeMetrics
    """

    def __init__(
        self,
        orchestrator: BridgeOrchestrator,
        swap_router: Optional[SwapRouter] = None,
        poll_policy: Optional[PollPolicy] = None,
        slippage_tolerance: Decimal = DEFAULT_SLIPPAGE_TOLERANCE,
        metrics: Optional["BridgeMetrics"] = None,
    ):
        self.orchestrator = orchestrator
        self.swap_router = swap_router
        self.poll_policy = poll_policy or PollPolicy()
        self.slippage_tolerance = Decimal(slippage_tolerance)
        self._metrics = metrics
        self._sagas: Dict[str, CrossChainSwapSaga] = {}
        self._lock = threading.Lock()

    # ── Quoting ─────────────────────────────────────────────────────

    def build_quote(
        self,
        source_network: Any,
        dest_network: Any,
        from_token: str,
        to_token: str,
        amount: Any,
    ) -> CrossChainSwapQuote:
        """
        Compose the best bridge quote with a destination swap quote.

        The swap is quoted on the destination network for the bridge
        quote's output amount, and only when the tokens differ.

        Raises:
            NoRouteAvailableError: no bridge quote for the route
            SwapQuoteUnavailableError: the router cannot quote the swap
            RouteUnsupportedError: a swap is needed but no router is configured
        """
        source = network_from_id(source_network)
        dest = network_from_id(dest_network)
        from_token = (from_token or "").strip()
        to_token = (to_token or "").strip() or from_token

        bridge_quote = self.orchestrator.get_best_quote(source, dest, from_token, amount)

        swap_quote = None
        if not _same_asset(from_token, to_token):
            if self.swap_router is None:
                raise RouteUnsupportedError(
                    f"Swap {from_token} → {to_token} requested but no swap router is configured"
                )
            swap_quote = self.swap_router.find_best_route(
                dest, from_token, to_token, bridge_quote.output_amount, self.slippage_tolerance,
            )

        fees = [(bridge_quote.fee, bridge_quote.fee_currency)]
        estimated_time = bridge_quote.estimated_time_seconds
        estimated_output = bridge_quote.output_amount
        if swap_quote is not None:
            fees.append((swap_quote.fee, swap_quote.fee_currency))
            estimated_time += swap_quote.estimated_time_seconds
            estimated_output = swap_quote.output_amount

        quote = CrossChainSwapQuote(
            quote_id=new_quote_id("xq"),
            source_network=source,
            dest_network=dest,
            input_token=from_token,
            output_token=to_token,
            input_amount=bridge_quote.input_amount,
            estimated_output_amount=estimated_output,
            bridge_quote=bridge_quote,
            swap_quote=swap_quote,
            total_fee=TotalFee.combine(*fees),
            estimated_time_seconds=estimated_time,
        )
        logger.info(
            f"Cross-chain quote {quote.quote_id}: {quote.input_amount} {from_token} "
            f"{source.value} → ~{estimated_output} {to_token} {dest.value} "
            f"via {bridge_quote.route.provider.value}"
            + (" + swap" if swap_quote is not None else "")
        )
        return quote

    # ── Execution ───────────────────────────────────────────────────

    def start(
        self,
        quote: CrossChainSwapQuote,
        wallet_address: str,
        recipient_address: Optional[str] = None,
    ) -> CrossChainSwapSaga:
        """
        Register a saga for *quote* without driving it.

        Raises:
            QuoteExpiredError: bridge or swap quote already expired
            InvalidAddressError: wallet or recipient invalid for its network
        """
        if quote.is_expired:
            raise QuoteExpiredError(
                f"Quote {quote.quote_id} has expired; request a new quote"
            )
        validate_transfer_addresses(
            quote.bridge_quote, wallet_address, recipient_address or wallet_address,
        )
        saga = CrossChainSwapSaga(
            quote,
            wallet_address,
            self.orchestrator,
            swap_router=self.swap_router,
            poll_policy=self.poll_policy,
            recipient_address=recipient_address,
            slippage_tolerance=self.slippage_tolerance,
            metrics=self._metrics,
        )
        with self._lock:
            self._sagas[saga.saga_id] = saga
        logger.info(f"{saga.saga_id} STARTED for quote {quote.quote_id}")
        return saga

    def execute(
        self,
        quote: CrossChainSwapQuote,
        wallet_address: str,
        recipient_address: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SagaOutcome:
        """
        Execute *quote* for *wallet_address* and drive the saga.

        Returns the terminal outcome, or the last observed outcome when
        ``timeout`` elapses or ``cancel_event`` is set.
        """
        saga = self.start(quote, wallet_address, recipient_address)
        return saga.run(timeout=timeout, cancel_event=cancel_event)

    def resume(
        self,
        saga_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SagaOutcome:
        """Continue driving a saga left non-terminal by a timeout or cancel."""
        saga = self._saga(saga_id)
        if saga.is_terminal:
            return saga.outcome()
        logger.info(f"Resuming {saga_id} from {saga.state.name}")
        return saga.run(timeout=timeout, cancel_event=cancel_event)

    # ── Queries ─────────────────────────────────────────────────────

    def _saga(self, saga_id: str) -> CrossChainSwapSaga:
        with self._lock:
            saga = self._sagas.get(saga_id)
        if saga is None:
            raise SagaNotFoundError(f"Saga not found: {saga_id}")
        return saga

    def get(self, saga_id: str) -> SagaOutcome:
        return self._saga(saga_id).outcome()

    def prune(self, older_than: float = 0.0) -> int:
        """
        Drop terminal sagas that finished more than *older_than* seconds ago.

        Returns:
            Number of sagas removed
        """
        cutoff = time.time() - older_than
        with self._lock:
            finished = [
                saga_id for saga_id, saga in self._sagas.items()
                if saga.is_terminal and saga.outcome().history[-1][1] <= cutoff
            ]
            for saga_id in finished:
                del self._sagas[saga_id]
        if finished:
            logger.debug(f"Pruned {len(finished)} finished sagas")
        return len(finished)

    def list_sagas(self, include_terminal: bool = True) -> List[SagaOutcome]:
        with self._lock:
            sagas = list(self._sagas.values())
        outcomes = [s.outcome() for s in sagas]
        if not include_terminal:
            outcomes = [o for o in outcomes if not o.is_terminal]
        return outcomes
