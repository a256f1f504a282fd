"""
XChain Bridge Orchestrator

Hides the set of registered bridge adapters behind one call surface:

  - quotes_for():      fan a quote request out to every eligible adapter
                       in parallel and rank the answers deterministically
  - get_best_quote():  the top-ranked quote, or NoRouteAvailableError
  - initiate_bridge(): execute a quote through its adapter and register
                       the transfer with the tracker
  - refresh_status():  poll the owning adapter for a tracked transfer

Ranking: descending effective value (output_amount - fee), then
ascending estimated time, then provider id.

Aggregations that succeeded for every adapter are cached for a short,
explicit TTL keyed by (source, dest, token, amount).
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

from .adapters import BaseBridgeAdapter
from .networks import BridgeProvider, Network, eligible_providers, network_from_id
from .tracker import BridgeTransactionTracker
from .types import BridgeQuote, BridgeStatus, parse_amount
from ..constants import (
    DEFAULT_ADAPTER_TIMEOUT_SECONDS,
    DEFAULT_MAX_QUOTE_WORKERS,
    DEFAULT_QUOTE_CACHE_TTL_SECONDS,
)
from ..exceptions import (
    AdapterTimeoutError,
    NoRouteAvailableError,
    QuoteExpiredError,
    RouteUnsupportedError,
)
from ..logger import get_logger

if TYPE_CHECKING:
    from ..metrics import BridgeMetrics

logger = get_logger(__name__)

CacheKey = Tuple[Network, Network, str, Decimal]


def new_transaction_id() -> str:
    return f"bridge-tx-{uuid.uuid4().hex}"


def quote_rank_key(quote: BridgeQuote):
    return (-quote.effective_value, quote.estimated_time_seconds, quote.route.provider.value)


# ══════════════════════════════════════════════════════════════════════
#  QUOTE SET
# ══════════════════════════════════════════════════════════════════════

class BridgeQuoteSet:
    """
    Ranked quotes for one request plus the non-fatal adapter errors.

    Behaves as a read-only list of BridgeQuote. A partial failure is not
    an error: the quotes that succeeded are returned and the failures
    are reported in ``errors``.
    """

    def __init__(
        self,
        quotes: List[BridgeQuote],
        errors: Optional[Dict[BridgeProvider, Exception]] = None,
    ):
        self._quotes: Tuple[BridgeQuote, ...] = tuple(sorted(quotes, key=quote_rank_key))
        self.errors: Dict[BridgeProvider, Exception] = dict(errors or {})

    def __iter__(self) -> Iterator[BridgeQuote]:
        return iter(self._quotes)

    def __len__(self) -> int:
        return len(self._quotes)

    def __getitem__(self, index):
        return self._quotes[index]

    def __bool__(self) -> bool:
        return bool(self._quotes)

    @property
    def quotes(self) -> List[BridgeQuote]:
        return list(self._quotes)

    @property
    def best(self) -> Optional[BridgeQuote]:
        return self._quotes[0] if self._quotes else None

    @property
    def has_expired_quote(self) -> bool:
        now = time.time()
        return any(q.expired_at(now) for q in self._quotes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quotes": [q.to_dict() for q in self._quotes],
            "errors": {p.value: str(exc) for p, exc in self.errors.items()},
        }


# ══════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════

class BridgeOrchestrator:
    """
    Aggregates quotes across adapters and dispatches transfers.

    Args:
        tracker: Tracker that owns transaction lifecycle state
        adapter_timeout: Seconds to wait for the quote fan-out to join
        max_workers: Size of the quote thread pool (never below the number of providers)
        cache_ttl: Seconds a fully successful aggregation is reused (0 disables)
        metrics: Optional shared BridgeMetrics
    """

    def __init__(
        self,
        tracker: Optional[BridgeTransactionTracker] = None,
        adapter_timeout: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_MAX_QUOTE_WORKERS,
        cache_ttl: float = DEFAULT_QUOTE_CACHE_TTL_SECONDS,
        metrics: Optional["BridgeMetrics"] = None,
    ):
        self.tracker = tracker or BridgeTransactionTracker(metrics=metrics)
        self.adapter_timeout = adapter_timeout
        self.cache_ttl = cache_ttl
        self._metrics = metrics
        self._adapters: Dict[BridgeProvider, BaseBridgeAdapter] = {}
        self._registry_lock = threading.Lock()
        self._cache: Dict[CacheKey, Tuple[float, BridgeQuoteSet]] = {}
        self._cache_lock = threading.Lock()
        # Quote calls that outlived adapter_timeout and still hold a worker
        self._stuck: Dict[BridgeProvider, Future] = {}
        self._stuck_lock = threading.Lock()
        # One worker per provider at least: a stuck call holds one worker per
        # provider, leaving room for the healthy ones
        self._executor = ThreadPoolExecutor(
            max_workers=max(max_workers, len(BridgeProvider)),
            thread_name_prefix="xchain-quote",
        )

    # ── Lifecycle ───────────────────────────────────────────────────

    def close(self) -> None:
        """Stop the quote pool without waiting for stragglers."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "BridgeOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Adapter registry ────────────────────────────────────────────

    def register_adapter(self, adapter: BaseBridgeAdapter) -> None:
        """Add or replace the adapter for ``adapter.provider()``."""
        provider = adapter.provider()
        with self._registry_lock:
            replaced = provider in self._adapters
            self._adapters[provider] = adapter
        self.clear_cache()
        logger.info(
            f"{'Replaced' if replaced else 'Registered'} bridge adapter: {provider.value}"
        )

    def unregister_adapter(self, provider: Any) -> bool:
        with self._registry_lock:
            removed = self._adapters.pop(BridgeProvider(provider), None) is not None
        if removed:
            self.clear_cache()
        return removed

    def registered_providers(self) -> List[BridgeProvider]:
        with self._registry_lock:
            return sorted(self._adapters, key=lambda p: p.value)

    def adapter_for(self, provider: Any) -> BaseBridgeAdapter:
        """
        Raises:
            NoRouteAvailableError: if no adapter is registered for *provider*
        """
        provider = BridgeProvider(provider)
        with self._registry_lock:
            adapter = self._adapters.get(provider)
        if adapter is None:
            raise NoRouteAvailableError(f"No adapter registered for {provider.value}")
        return adapter

    def _eligible_adapters(self, source: Network, dest: Network) -> Dict[BridgeProvider, BaseBridgeAdapter]:
        eligible = eligible_providers(source, dest)
        with self._registry_lock:
            return {p: a for p, a in self._adapters.items() if p in eligible}

    # ── Quote cache ─────────────────────────────────────────────────

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def _cached(self, key: CacheKey) -> Optional[BridgeQuoteSet]:
        if self.cache_ttl <= 0:
            return None
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            stored_at, quote_set = entry
            if time.monotonic() - stored_at > self.cache_ttl or quote_set.has_expired_quote:
                del self._cache[key]
                return None
        return quote_set

    def _store(self, key: CacheKey, quote_set: BridgeQuoteSet) -> None:
        if self.cache_ttl <= 0 or quote_set.errors:
            return
        with self._cache_lock:
            self._cache[key] = (time.monotonic(), quote_set)

    # ── Quoting ─────────────────────────────────────────────────────

    def quotes_for(
        self,
        source_network: Any,
        dest_network: Any,
        token: str,
        amount: Any,
    ) -> BridgeQuoteSet:
        """
        Ranked quotes from every registered adapter eligible for the route.

        Adapters raising RouteUnsupportedError are skipped silently; any
        other failure, including not answering within ``adapter_timeout``,
        is reported in the returned set's ``errors``.

        Raises:
            UnknownNetworkError, RouteUnsupportedError, InvalidAmountError: bad request
            NoRouteAvailableError: no registered adapter is eligible for the pair
        """
        source = network_from_id(source_network)
        dest = network_from_id(dest_network)
        token = (token or "").strip()
        if source == dest:
            raise RouteUnsupportedError(f"Source and destination are both {source.value}")
        if not token:
            raise RouteUnsupportedError("Token symbol is required")
        amount = parse_amount(amount)

        adapters = self._eligible_adapters(source, dest)
        if not adapters:
            raise NoRouteAvailableError(
                f"No registered bridge serves {source.value} → {dest.value}"
            )

        if self._metrics is not None:
            self._metrics.quote_requests.inc()

        key: CacheKey = (source, dest, token, amount)
        cached = self._cached(key)
        if cached is not None:
            logger.debug(f"Quote cache hit: {token} {source.value} → {dest.value} {amount}")
            if self._metrics is not None:
                self._metrics.quote_cache_hits.inc()
            return cached

        started = time.monotonic()
        quotes: List[BridgeQuote] = []
        errors: Dict[BridgeProvider, Exception] = {}

        # A provider whose previous call is still running gets no second
        # worker, so hung adapters cannot starve the pool
        futures: Dict[Future, BridgeProvider] = {}
        with self._stuck_lock:
            stuck = set(self._stuck)
        for provider, adapter in adapters.items():
            if provider in stuck:
                logger.warning(f"{provider.value} still busy with an earlier quote; skipped")
                errors[provider] = AdapterTimeoutError(
                    f"{provider.value} has not answered an earlier quote request"
                )
                continue
            futures[self._executor.submit(adapter.quote, source, dest, token, amount)] = provider
        done, not_done = wait(futures, timeout=self.adapter_timeout)
        for future in done:
            provider = futures[future]
            try:
                quote = future.result()
            except RouteUnsupportedError:
                continue
            except Exception as exc:
                # Adapters are plug-ins; any failure is reported, not raised
                logger.warning(f"{provider.value} quote failed: {exc}")
                errors[provider] = exc
                continue
            if quote.route.provider != provider:
                errors[provider] = RouteUnsupportedError(
                    f"{provider.value} returned a quote for {quote.route.provider.value}"
                )
                continue
            quotes.append(quote)

        for future in not_done:
            provider = futures[future]
            if not future.cancel():
                self._mark_stuck(provider, future)
            logger.warning(f"{provider.value} quote timed out after {self.adapter_timeout}s")
            errors[provider] = AdapterTimeoutError(
                f"{provider.value} did not quote within {self.adapter_timeout}s"
            )

        if self._metrics is not None:
            self._metrics.quote_latency.observe(time.monotonic() - started)
            for provider in errors:
                self._metrics.adapter_quote_errors.inc(provider)

        quote_set = BridgeQuoteSet(quotes, errors)
        self._store(key, quote_set)
        return quote_set

    def _mark_stuck(self, provider: BridgeProvider, future: Future) -> None:
        with self._stuck_lock:
            self._stuck[provider] = future

        def _release(done: Future) -> None:
            with self._stuck_lock:
                if self._stuck.get(provider) is done:
                    del self._stuck[provider]
            logger.debug(f"{provider.value} late quote call finished")

        future.add_done_callback(_release)

    def busy_providers(self) -> List[BridgeProvider]:
        """Providers with a timed-out quote call still occupying a worker."""
        with self._stuck_lock:
            return sorted(self._stuck, key=lambda p: p.value)

    def get_best_quote(
        self,
        source_network: Any,
        dest_network: Any,
        token: str,
        amount: Any,
    ) -> BridgeQuote:
        """
        Top-ranked quote for the route.

        Raises:
            NoRouteAvailableError: if no adapter produced a quote (carries the errors)
        """
        quote_set = self.quotes_for(source_network, dest_network, token, amount)
        if quote_set.best is None:
            raise NoRouteAvailableError(
                f"No bridge quote available for {token} "
                f"{network_from_id(source_network).value} → {network_from_id(dest_network).value}",
                errors=quote_set.errors,
            )
        return quote_set.best

    # ── Execution ───────────────────────────────────────────────────

    def initiate_bridge(
        self,
        quote: BridgeQuote,
        sender_address: str,
        recipient_address: str,
    ) -> str:
        """
        Execute *quote* through its provider's adapter.

        The transfer is registered with the tracker in INITIATED only
        after the adapter accepted it; an adapter failure propagates and
        leaves no tracked record.

        Returns:
            The new transaction id

        Raises:
            QuoteExpiredError: quote is past ``expires_at``
            NoRouteAvailableError: the quote's provider is not registered
            InvalidAddressError, ProviderExecutionError: from the adapter
        """
        if quote.is_expired:
            raise QuoteExpiredError(f"Quote {quote.quote_id} has expired; request a new quote")

        adapter = self.adapter_for(quote.route.provider)
        provider_reference = adapter.initiate_transfer(quote, sender_address, recipient_address)

        transaction_id = new_transaction_id()
        self.tracker.record(
            transaction_id,
            quote,
            sender_address,
            recipient_address,
            provider_reference=provider_reference,
        )
        if self._metrics is not None:
            self._metrics.transfers_initiated.inc(quote.route.provider)
        return transaction_id

    def refresh_status(self, transaction_id: str) -> BridgeStatus:
        """
        Poll the adapter that owns *transaction_id* and apply its answer.

        Raises:
            TransactionNotFoundError: unknown id
            ProviderExecutionError: adapter failed to report
        """
        transaction = self.tracker.status_of(transaction_id)
        if transaction.is_terminal:
            return transaction.status
        adapter = self.adapter_for(transaction.provider)
        return self.tracker.refresh(transaction_id, adapter)
