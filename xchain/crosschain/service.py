"""
XChain Cross-Chain Service

The synchronous call surface an RPC/HTTP layer marshals:

  list_supported_chains()                                    → [NetworkInfo]
  get_bridge_quotes(src, dst, token, amount)                 → BridgeQuoteSet
  initiate_bridge(quote, sender, recipient)                  → transaction id
  get_bridge_status(transaction_id)                          → BridgeTransaction
  get_cross_chain_swap_quote(src, dst, from, to, amount)     → CrossChainSwapQuote
  execute_cross_chain_swap(quote, wallet)                    → SagaOutcome
  resume_cross_chain_swap(saga_id)                           → SagaOutcome
  prune_finished_swaps(older_than)                            → removed count

``build_service(config)`` wires the whole engine from an XChainConfig.
"""

import threading
from typing import Any, List, Optional

from .saga import CrossChainSwapCoordinator
from .types import CrossChainSwapQuote, PollPolicy, SagaOutcome
from ..bridge.adapters import DemoBridgeAdapter
from ..bridge.networks import NetworkInfo, list_networks
from ..bridge.orchestrator import BridgeOrchestrator, BridgeQuoteSet
from ..bridge.tracker import BridgeTransactionStore, BridgeTransactionTracker
from ..bridge.types import BridgeQuote, BridgeTransaction
from ..config import XChainConfig
from ..exceptions import NoRouteAvailableError, TransientUpstreamError
from ..exchange.router import ReferenceSwapRouter, SwapRouter
from ..logger import get_logger
from ..metrics import BridgeMetrics

logger = get_logger(__name__)


class CrossChainService:
    """Facade over the orchestrator, tracker and saga coordinator."""

    def __init__(
        self,
        orchestrator: BridgeOrchestrator,
        coordinator: CrossChainSwapCoordinator,
        metrics: Optional[BridgeMetrics] = None,
    ):
        self.orchestrator = orchestrator
        self.coordinator = coordinator
        self.metrics = metrics

    @property
    def tracker(self) -> BridgeTransactionTracker:
        return self.orchestrator.tracker

    def close(self) -> None:
        self.orchestrator.close()

    def __enter__(self) -> "CrossChainService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Catalog ─────────────────────────────────────────────────────

    def list_supported_chains(self) -> List[NetworkInfo]:
        return list_networks()

    # ── Bridging ────────────────────────────────────────────────────

    def get_bridge_quotes(self, source_network: Any, dest_network: Any, token: str, amount: Any) -> BridgeQuoteSet:
        return self.orchestrator.quotes_for(source_network, dest_network, token, amount)

    def initiate_bridge(self, quote: BridgeQuote, sender_address: str, recipient_address: str) -> str:
        return self.orchestrator.initiate_bridge(quote, sender_address, recipient_address)

    def get_bridge_status(self, transaction_id: str) -> BridgeTransaction:
        """
        Refresh *transaction_id* from its provider and return the record.

        A provider that cannot answer right now does not fail the query;
        the last stored status is returned instead.

        Raises:
            TransactionNotFoundError: unknown id
        """
        try:
            self.orchestrator.refresh_status(transaction_id)
        except (TransientUpstreamError, NoRouteAvailableError) as exc:
            logger.warning(f"{transaction_id}: status refresh failed, returning stored status: {exc}")
        return self.tracker.status_of(transaction_id)

    # ── Cross-chain swaps ───────────────────────────────────────────

    def get_cross_chain_swap_quote(
        self,
        source_network: Any,
        dest_network: Any,
        from_token: str,
        to_token: str,
        amount: Any,
    ) -> CrossChainSwapQuote:
        return self.coordinator.build_quote(source_network, dest_network, from_token, to_token, amount)

    def execute_cross_chain_swap(
        self,
        quote: CrossChainSwapQuote,
        wallet_address: str,
        recipient_address: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SagaOutcome:
        return self.coordinator.execute(
            quote,
            wallet_address,
            recipient_address=recipient_address,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    def resume_cross_chain_swap(
        self,
        saga_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SagaOutcome:
        return self.coordinator.resume(saga_id, timeout=timeout, cancel_event=cancel_event)

    def get_cross_chain_swap(self, saga_id: str) -> SagaOutcome:
        return self.coordinator.get(saga_id)

    def prune_finished_swaps(self, older_than: float = 0.0) -> int:
        return self.coordinator.prune(older_than)


def build_service(
    config: Optional[XChainConfig] = None,
    swap_router: Optional[SwapRouter] = None,
    store: Optional[BridgeTransactionStore] = None,
    metrics: Optional[BridgeMetrics] = None,
) -> CrossChainService:
    """
    Wire a CrossChainService from *config*.

    The demo adapter is registered when ``config.demo.enabled``; other
    adapters are registered by the caller on ``service.orchestrator``.
    """
    config = config or XChainConfig()
    config.validate()
    metrics = metrics or BridgeMetrics()

    tracker = BridgeTransactionTracker(store=store, metrics=metrics)
    orchestrator = BridgeOrchestrator(
        tracker=tracker,
        adapter_timeout=config.bridge.adapter_timeout_seconds,
        max_workers=config.bridge.max_quote_workers,
        cache_ttl=config.bridge.cache_ttl_seconds,
        metrics=metrics,
    )
    if config.demo.enabled:
        orchestrator.register_adapter(
            DemoBridgeAdapter(
                completion_delay=config.demo.completion_delay,
                quote_ttl=config.bridge.quote_ttl_seconds,
            )
        )

    if swap_router is None:
        swap_router = ReferenceSwapRouter(
            fee_bps=config.swap.fee_bps,
            deadline_seconds=config.swap.deadline_seconds,
        )

    coordinator = CrossChainSwapCoordinator(
        orchestrator,
        swap_router=swap_router,
        poll_policy=PollPolicy(
            initial_interval=config.saga.poll_initial_interval,
            max_interval=config.saga.poll_max_interval,
            multiplier=config.saga.poll_multiplier,
            timeout=config.saga.poll_timeout,
        ),
        slippage_tolerance=config.saga.slippage_tolerance,
        metrics=metrics,
    )
    return CrossChainService(orchestrator, coordinator, metrics=metrics)
