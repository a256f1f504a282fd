"""
Shared fixtures for the XChain test suite.

``ScriptedBridgeAdapter`` stands in for a production bridge integration:
its fee, output, timing, failures and the sequence of statuses it
reports are all set by the test.
"""

import itertools
import os
import sys
import threading
import time
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from xchain.bridge.adapters import BaseBridgeAdapter, DemoBridgeAdapter
from xchain.bridge.networks import BridgeProvider, Network, network_from_id
from xchain.bridge.orchestrator import BridgeOrchestrator
from xchain.bridge.tracker import BridgeTransactionTracker
from xchain.bridge.types import BridgeQuote, BridgeRoute, BridgeStatus, new_quote_id, parse_amount
from xchain.metrics import BridgeMetrics


# ── Addresses ─────────────────────────────────────────────────────────
EVM_SENDER = "0x1111111111111111111111111111111111111111"
EVM_RECIPIENT = "0x2222222222222222222222222222222222222222"
SOLANA_ADDRESS = "So11111111111111111111111111111111111111112"
BITCOIN_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
TRON_ADDRESS = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"


class ScriptedBridgeAdapter(BaseBridgeAdapter):
    """
    Adapter whose behaviour is fixed up front.

    ``statuses`` are reported one per poll; the last one repeats. An
    exception instance in the list is raised instead of returned.
    """

    _refs = itertools.count(1)

    def __init__(
        self,
        provider,
        fee="1",
        output=None,
        estimated_time=60,
        statuses=None,
        delay=0.0,
        quote_error=None,
        initiate_error=None,
        check_route=True,
        quote_ttl=300,
    ):
        super().__init__(quote_ttl=quote_ttl)
        self._provider = BridgeProvider(provider)
        self.fee = Decimal(fee)
        self.output = Decimal(output) if output is not None else None
        self.estimated_time = estimated_time
        self.statuses = list(statuses or [BridgeStatus.COMPLETED])
        self.delay = delay
        self.quote_error = quote_error
        self.initiate_error = initiate_error
        self.check_route = check_route
        self.quote_calls = 0
        self.poll_calls = 0
        self.initiated = []
        self._lock = threading.Lock()

    def provider(self):
        return self._provider

    def quote(self, source_network, dest_network, token, amount):
        with self._lock:
            self.quote_calls += 1
        source = network_from_id(source_network)
        dest = network_from_id(dest_network)
        if self.check_route:
            self._check_route(source, dest, token)
        if self.delay:
            time.sleep(self.delay)
        if self.quote_error is not None:
            raise self.quote_error
        amount = parse_amount(amount)
        output = self.output if self.output is not None else amount - self.fee
        route = BridgeRoute(source, dest, token, self._provider, self.estimated_time, self.fee)
        return BridgeQuote(
            quote_id=new_quote_id(),
            route=route,
            input_amount=amount,
            output_amount=output,
            fee=self.fee,
            fee_currency=token,
            estimated_time_seconds=self.estimated_time,
            expires_at=time.time() + self.quote_ttl,
        )

    def initiate_transfer(self, quote, sender_address, recipient_address):
        self._check_quote_for_execution(quote)
        if self.initiate_error is not None:
            raise self.initiate_error
        reference = f"{self._provider.value}-ref-{next(self._refs)}"
        self.initiated.append(reference)
        return reference

    def poll_status(self, provider_reference):
        with self._lock:
            self.poll_calls += 1
            item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ── Fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def scripted_adapter():
    return ScriptedBridgeAdapter


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def metrics():
    return BridgeMetrics()


@pytest.fixture
def tracker(metrics):
    return BridgeTransactionTracker(metrics=metrics)


@pytest.fixture
def orchestrator(tracker, metrics):
    orch = BridgeOrchestrator(tracker=tracker, adapter_timeout=2.0, metrics=metrics)
    yield orch
    orch.close()


@pytest.fixture
def demo_quote():
    """A 100 USDC ethereum → polygon demo quote."""
    return DemoBridgeAdapter().quote(Network.ETHEREUM, Network.POLYGON, "USDC", Decimal("100"))
