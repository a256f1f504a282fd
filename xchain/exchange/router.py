"""
XChain Swap Router Interface & Reference Router

The swap step of a cross-chain swap runs on the destination network
through a DEX router. The engine consumes routers through the
``SwapRouter`` protocol:

  - find_best_route(network, from_token, to_token, amount, slippage) → SwapQuote
  - execute_swap(quote, wallet_address)                               → SwapResult

``ReferenceSwapRouter`` is an in-process implementation over a static
USD price table, used by the CLI and tests. It keeps the safety rules a
production router enforces:
  - Read-only quoting (find_best_route does not mutate state)
  - Slippage enforcement (min_output_amount re-checked at execution)
  - Deadline enforcement (expired quotes are rejected)
  - Emergency pause
"""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from ..bridge.addresses import validate_address
from ..bridge.networks import Network, network_from_id
from ..bridge.types import new_quote_id, parse_amount
from ..constants import (
    DEFAULT_SLIPPAGE_TOLERANCE,
    DEFAULT_SWAP_DEADLINE_SECONDS,
    DEFAULT_SWAP_FEE_BPS,
    DEFAULT_SWAP_TIME_SECONDS,
)
from ..exceptions import SwapExecutionError, SwapQuoteUnavailableError
from ..logger import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
BPS = Decimal("10000")
AMOUNT_QUANTUM = Decimal("0.00000001")
DEFAULT_POOL_DEPTH_USD = Decimal("10000000")  # 10M USD per pair

DEFAULT_USD_PRICES: Dict[str, Decimal] = {
    "USDC": Decimal("1"),
    "USDT": Decimal("1"),
    "DAI": Decimal("1"),
    "ETH": Decimal("3000"),
    "WETH": Decimal("3000"),
    "BTC": Decimal("60000"),
    "WBTC": Decimal("60000"),
    "MATIC": Decimal("0.70"),
    "BNB": Decimal("600"),
    "SOL": Decimal("150"),
    "TRX": Decimal("0.12"),
}


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapQuote:
    """Priced offer to swap on one network."""
    quote_id: str
    network: Network
    from_token: str
    to_token: str
    input_amount: Decimal
    output_amount: Decimal
    min_output_amount: Decimal
    fee: Decimal
    fee_currency: str
    estimated_time_seconds: int
    price_impact: Decimal
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.time() > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_id": self.quote_id,
            "network": self.network.value,
            "from_token": self.from_token,
            "to_token": self.to_token,
            "input_amount": str(self.input_amount),
            "output_amount": str(self.output_amount),
            "min_output_amount": str(self.min_output_amount),
            "fee": str(self.fee),
            "fee_currency": self.fee_currency,
            "estimated_time_seconds": self.estimated_time_seconds,
            "price_impact": str(self.price_impact),
            "expires_at": self.expires_at,
        }


@dataclass(frozen=True)
class SwapResult:
    """Outcome of an executed swap."""
    tx_hash: str
    input_amount: Decimal
    output_amount: Decimal
    price_impact: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "input_amount": str(self.input_amount),
            "output_amount": str(self.output_amount),
            "price_impact": str(self.price_impact),
        }


@runtime_checkable
class SwapRouter(Protocol):
    """DEX routing collaborator consumed by the cross-chain saga."""

    def find_best_route(
        self,
        network: Network,
        from_token: str,
        to_token: str,
        amount: Decimal,
        slippage_tolerance: Decimal,
    ) -> SwapQuote:
        ...

    def execute_swap(self, quote: SwapQuote, wallet_address: str) -> SwapResult:
        ...


# ---------------------------------------------------------------------------
# Reference router
# ---------------------------------------------------------------------------

class ReferenceSwapRouter:
    """
    Constant-price router over a USD price table.

    Output = (amount - fee) * price_in / price_out, rounded down to 1e-8.
    Price impact grows linearly with trade size against a fixed pool depth.
    """

    def __init__(
        self,
        prices: Optional[Dict[str, Decimal]] = None,
        fee_bps: int = DEFAULT_SWAP_FEE_BPS,
        deadline_seconds: float = DEFAULT_SWAP_DEADLINE_SECONDS,
        pool_depth_usd: Decimal = DEFAULT_POOL_DEPTH_USD,
    ):
        self._prices: Dict[str, Decimal] = {
            k.upper(): Decimal(v) for k, v in (prices or DEFAULT_USD_PRICES).items()
        }
        self.fee_bps = fee_bps
        self.deadline_seconds = deadline_seconds
        self.pool_depth_usd = pool_depth_usd
        self._paused = False
        self._lock = threading.Lock()
        self._sequence = 0

    # -- Emergency controls -------------------------------------------------

    def pause(self) -> None:
        self._paused = True

    def unpause(self) -> None:
        self._paused = False

    @property
    def is_paused(self) -> bool:
        return self._paused

    # -- Prices -------------------------------------------------------------

    def set_price(self, token: str, usd_price: Decimal) -> None:
        with self._lock:
            self._prices[token.upper()] = Decimal(usd_price)

    def _price(self, token: str) -> Decimal:
        with self._lock:
            price = self._prices.get(token.upper())
        if price is None or price <= ZERO:
            raise SwapQuoteUnavailableError(f"No price for token {token}")
        return price

    def _price_out(self, from_token: str, to_token: str, amount: Decimal):
        """(amount_out, fee, price_impact) at current prices. Read-only."""
        price_in = self._price(from_token)
        price_out = self._price(to_token)
        fee = (amount * self.fee_bps / BPS).quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)
        amount_out = ((amount - fee) * price_in / price_out).quantize(
            AMOUNT_QUANTUM, rounding=ROUND_DOWN,
        )
        impact = min(ONE, (amount * price_in) / self.pool_depth_usd)
        amount_out = (amount_out * (ONE - impact)).quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)
        return amount_out, fee, impact.quantize(Decimal("0.000001"))

    # -- Quoting ------------------------------------------------------------

    def find_best_route(
        self,
        network: Network,
        from_token: str,
        to_token: str,
        amount: Decimal,
        slippage_tolerance: Decimal = DEFAULT_SLIPPAGE_TOLERANCE,
    ) -> SwapQuote:
        """
        Quote a swap on *network*.

        Raises:
            SwapQuoteUnavailableError: unknown token, identical tokens or no output
        """
        net = network_from_id(network)
        amount = parse_amount(amount)
        slippage = Decimal(slippage_tolerance)
        if not ZERO <= slippage < ONE:
            raise SwapQuoteUnavailableError(f"Slippage tolerance out of range: {slippage}")
        if from_token.upper() == to_token.upper():
            raise SwapQuoteUnavailableError(f"Nothing to swap: {from_token} → {to_token}")

        amount_out, fee, impact = self._price_out(from_token, to_token, amount)
        if amount_out <= ZERO:
            raise SwapQuoteUnavailableError(f"Amount {amount} {from_token} too small to swap")

        min_out = (amount_out * (ONE - slippage)).quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)
        return SwapQuote(
            quote_id=new_quote_id("sq"),
            network=net,
            from_token=from_token,
            to_token=to_token,
            input_amount=amount,
            output_amount=amount_out,
            min_output_amount=min_out,
            fee=fee,
            fee_currency=from_token,
            estimated_time_seconds=DEFAULT_SWAP_TIME_SECONDS,
            price_impact=impact,
            expires_at=time.time() + self.deadline_seconds,
        )

    # -- Execution ----------------------------------------------------------

    def execute_swap(self, quote: SwapQuote, wallet_address: str) -> SwapResult:
        """
        Execute *quote* for *wallet_address* at current prices.

        Raises:
            SwapExecutionError: paused, deadline passed or slippage exceeded
            InvalidAddressError: wallet not valid on the quote's network
        """
        if self._paused:
            raise SwapExecutionError("Router is paused")
        if quote.is_expired:
            raise SwapExecutionError(f"Swap quote {quote.quote_id} deadline passed")
        validate_address(quote.network, wallet_address, "wallet address")

        amount_out, _, impact = self._price_out(
            quote.from_token, quote.to_token, quote.input_amount,
        )
        if amount_out < quote.min_output_amount:
            raise SwapExecutionError(
                f"Slippage exceeded: {amount_out} {quote.to_token} "
                f"< minimum {quote.min_output_amount}"
            )

        with self._lock:
            self._sequence += 1
            sequence = self._sequence
        tx_hash = "0x" + hashlib.sha256(
            f"{quote.quote_id}:{wallet_address}:{sequence}".encode()
        ).hexdigest()

        logger.info(
            f"Swapped {quote.input_amount} {quote.from_token} → {amount_out} "
            f"{quote.to_token} on {quote.network.value} ({tx_hash[:18]}...)"
        )
        return SwapResult(
            tx_hash=tx_hash,
            input_amount=quote.input_amount,
            output_amount=amount_out,
            price_impact=impact,
        )
