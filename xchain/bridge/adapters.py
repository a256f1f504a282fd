"""
XChain Bridge Provider Adapters - Provider Interface Layer

Each adapter wraps one bridge protocol (Wormhole, LayerZero, Axelar, ...)
behind a uniform interface for:
  - Quoting a transfer along a (source, dest, token) route
  - Initiating a transfer from a previously issued quote
  - Polling the provider for the transfer's progress

Only the demo adapter is implemented in full here; production adapters
live with their provider SDKs and plug into the orchestrator registry.
"""

import hashlib
import threading
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple

from .addresses import validate_transfer_addresses
from .networks import (
    BridgeProvider,
    Network,
    eligible_providers,
    network_from_id,
    network_info,
    provider_info,
)
from .types import BridgeQuote, BridgeRoute, BridgeStatus, new_quote_id, parse_amount
from ..constants import DEFAULT_DEMO_COMPLETION_DELAY, DEFAULT_QUOTE_TTL_SECONDS
from ..exceptions import (
    ProviderExecutionError,
    QuoteExpiredError,
    QuoteUnavailableError,
    RouteUnsupportedError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  BASE BRIDGE ADAPTER  (Abstract)
# ══════════════════════════════════════════════════════════════════════

class BaseBridgeAdapter(ABC):
    """
    Abstract interface for one bridge protocol.

    Error contract:
        quote()             RouteUnsupportedError, QuoteUnavailableError
        initiate_transfer() QuoteExpiredError, InvalidAddressError,
                            ProviderExecutionError
        poll_status()       ProviderExecutionError; on ambiguity it must
                            return the last known pending status, never
                            a guessed terminal one
    """

    def __init__(self, quote_ttl: float = DEFAULT_QUOTE_TTL_SECONDS):
        self.quote_ttl = quote_ttl

    # ── Identity ────────────────────────────────────────────────────

    @abstractmethod
    def provider(self) -> BridgeProvider:
        """Provider this adapter speaks for."""
        ...

    @property
    def name(self) -> str:
        return provider_info(self.provider()).display_name

    def serves(self, source: Network, dest: Network, token: str) -> bool:
        """Whether this adapter can carry *token* between the two networks."""
        return (
            source != dest
            and bool(token)
            and self.provider() in eligible_providers(source, dest)
        )

    # ── Operations ──────────────────────────────────────────────────

    @abstractmethod
    def quote(
        self,
        source_network: Network,
        dest_network: Network,
        token: str,
        amount: Decimal,
    ) -> BridgeQuote:
        """
        Price a transfer.

        Returns:
            BridgeQuote expiring ``quote_ttl`` seconds from now
        """
        ...

    @abstractmethod
    def initiate_transfer(
        self,
        quote: BridgeQuote,
        sender_address: str,
        recipient_address: str,
    ) -> str:
        """
        Start a transfer priced by *quote*.

        Returns:
            Provider-side transfer reference for poll_status()
        """
        ...

    @abstractmethod
    def poll_status(self, provider_reference: str) -> BridgeStatus:
        """Best-effort status of a transfer started by this adapter."""
        ...

    def transfer_hashes(self, provider_reference: str) -> Tuple[Optional[str], Optional[str]]:
        """(source_tx_hash, destination_tx_hash) once the provider exposes them."""
        return None, None

    def release(self, provider_reference: str) -> None:
        """Called once the tracker holds a terminal status for the transfer."""

    # ── Helpers for subclasses ──────────────────────────────────────

    def _check_route(self, source: Network, dest: Network, token: str) -> None:
        if not self.serves(source, dest, token):
            raise RouteUnsupportedError(
                f"{self.name} does not serve {token} "
                f"{source.value} → {dest.value}"
            )

    def _check_quote_for_execution(self, quote: BridgeQuote) -> None:
        if quote.route.provider != self.provider():
            raise ProviderExecutionError(
                f"Quote {quote.quote_id} was issued by {quote.route.provider.value}, "
                f"not {self.provider().value}"
            )
        if quote.is_expired:
            raise QuoteExpiredError(f"Quote {quote.quote_id} has expired")


# ══════════════════════════════════════════════════════════════════════
#  DEMO ADAPTER
# ══════════════════════════════════════════════════════════════════════

class DemoBridgeAdapter(BaseBridgeAdapter):
    """
    Reference adapter that moves no funds.

    Quotes charge the source network's configured ``bridge_base_fee`` and
    promise the demo provider's average transfer time. Transfers settle
    after a fixed ``completion_delay`` and always resolve to COMPLETED:

        elapsed < delay / 3   → BRIDGING
        elapsed < delay       → CONFIRMING
        otherwise             → COMPLETED
    """

    def __init__(
        self,
        completion_delay: float = DEFAULT_DEMO_COMPLETION_DELAY,
        quote_ttl: float = DEFAULT_QUOTE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(quote_ttl=quote_ttl)
        self.completion_delay = completion_delay
        self._clock = clock
        self._transfers: Dict[str, float] = {}
        self._lock = threading.Lock()

    def provider(self) -> BridgeProvider:
        return BridgeProvider.DEMO

    def quote(
        self,
        source_network: Network,
        dest_network: Network,
        token: str,
        amount: Decimal,
    ) -> BridgeQuote:
        source = network_from_id(source_network)
        dest = network_from_id(dest_network)
        self._check_route(source, dest, token)
        amount = parse_amount(amount)

        fee = network_info(source).bridge_base_fee
        if amount <= fee:
            raise QuoteUnavailableError(
                f"Amount {amount} {token} does not cover the {fee} {token} bridge fee"
            )

        estimated = provider_info(BridgeProvider.DEMO).average_transfer_time
        route = BridgeRoute(
            source_network=source,
            dest_network=dest,
            token=token,
            provider=BridgeProvider.DEMO,
            estimated_time_seconds=estimated,
            base_fee=fee,
        )
        return BridgeQuote(
            quote_id=new_quote_id(),
            route=route,
            input_amount=amount,
            output_amount=amount - fee,
            fee=fee,
            fee_currency=token,
            estimated_time_seconds=estimated,
            expires_at=time.time() + self.quote_ttl,
        )

    def initiate_transfer(
        self,
        quote: BridgeQuote,
        sender_address: str,
        recipient_address: str,
    ) -> str:
        self._check_quote_for_execution(quote)
        validate_transfer_addresses(quote, sender_address, recipient_address)

        reference = "demo-" + hashlib.sha256(
            f"{quote.quote_id}:{sender_address}:{recipient_address}:{time.time_ns()}".encode()
        ).hexdigest()[:32]
        with self._lock:
            self._transfers[reference] = self._clock()

        logger.info(
            f"Demo transfer {reference} started: {quote.input_amount} {quote.route.token} "
            f"{quote.route.source_network.value} → {quote.route.dest_network.value}"
        )
        return reference

    def poll_status(self, provider_reference: str) -> BridgeStatus:
        with self._lock:
            started = self._transfers.get(provider_reference)
        if started is None:
            raise ProviderExecutionError(f"Unknown demo transfer: {provider_reference}")

        elapsed = self._clock() - started
        if elapsed >= self.completion_delay:
            return BridgeStatus.COMPLETED
        if elapsed >= self.completion_delay / 3:
            return BridgeStatus.CONFIRMING
        return BridgeStatus.BRIDGING

    def transfer_hashes(self, provider_reference: str) -> Tuple[Optional[str], Optional[str]]:
        with self._lock:
            started = self._transfers.get(provider_reference)
        if started is None:
            return None, None
        source_hash = "0x" + hashlib.sha256(b"demo_src_" + provider_reference.encode()).hexdigest()
        if self._clock() - started < self.completion_delay:
            return source_hash, None
        dest_hash = "0x" + hashlib.sha256(b"demo_dst_" + provider_reference.encode()).hexdigest()
        return source_hash, dest_hash

    def release(self, provider_reference: str) -> None:
        with self._lock:
            self._transfers.pop(provider_reference, None)

    @property
    def active_transfers(self) -> int:
        with self._lock:
            return len(self._transfers)
