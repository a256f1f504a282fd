"""
Bridge Orchestrator Test Suite

Coverage:
  - Adapter registry
  - Quote fan-out: eligibility filtering, ranking, error collection,
    slow adapters, request validation
  - Quote cache
  - initiate_bridge(): expiry, adapter failure, tracker registration
  - refresh_status()
"""

import dataclasses
import time
from decimal import Decimal

import pytest

from xchain.bridge.adapters import DemoBridgeAdapter
from xchain.bridge.networks import BridgeProvider, Network, eligible_providers
from xchain.bridge.orchestrator import BridgeOrchestrator, BridgeQuoteSet, quote_rank_key
from xchain.bridge.types import BridgeStatus
from xchain.exceptions import (
    AdapterTimeoutError,
    InvalidAddressError,
    InvalidAmountError,
    NoRouteAvailableError,
    ProviderExecutionError,
    QuoteExpiredError,
    QuoteUnavailableError,
    RouteUnsupportedError,
    UnknownNetworkError,
)

from conftest import EVM_RECIPIENT, EVM_SENDER, SOLANA_ADDRESS


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class TestRegistry:

    def test_register_and_lookup(self, orchestrator):
        adapter = DemoBridgeAdapter()
        orchestrator.register_adapter(adapter)
        assert orchestrator.adapter_for("demo") is adapter
        assert orchestrator.registered_providers() == [BridgeProvider.DEMO]

    def test_register_twice_overwrites(self, orchestrator, scripted_adapter):
        first = scripted_adapter("wormhole")
        second = scripted_adapter("wormhole")
        orchestrator.register_adapter(first)
        orchestrator.register_adapter(second)
        assert orchestrator.adapter_for(BridgeProvider.WORMHOLE) is second
        assert orchestrator.registered_providers() == [BridgeProvider.WORMHOLE]

    def test_unregister(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        assert orchestrator.unregister_adapter("demo")
        assert not orchestrator.unregister_adapter("demo")
        with pytest.raises(NoRouteAvailableError):
            orchestrator.adapter_for("demo")

    def test_context_manager(self):
        with BridgeOrchestrator() as orch:
            orch.register_adapter(DemoBridgeAdapter())
            assert len(orch.quotes_for("ethereum", "polygon", "USDC", "10")) == 1


# ══════════════════════════════════════════════════════════════════════
#  QUOTING
# ══════════════════════════════════════════════════════════════════════

class TestQuotesFor:

    def test_demo_only_scenario(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        quotes = orchestrator.quotes_for(Network.ETHEREUM, Network.POLYGON, "USDC", "1000.00")
        assert len(quotes) == 1
        quote = quotes[0]
        assert quote.route.provider is BridgeProvider.DEMO
        assert quote.estimated_time_seconds == 5
        assert quote.output_amount == quote.input_amount - quote.fee
        assert quotes.errors == {}

    def test_ranking(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(scripted_adapter("wormhole", fee="1", estimated_time=10))
        orchestrator.register_adapter(scripted_adapter("layerzero", fee="0.5", estimated_time=300))
        orchestrator.register_adapter(scripted_adapter("axelar", fee="0.5", estimated_time=100))
        quotes = orchestrator.quotes_for("ethereum", "arbitrum", "USDC", "1000")
        assert [q.route.provider for q in quotes] == [
            BridgeProvider.AXELAR, BridgeProvider.LAYERZERO, BridgeProvider.WORMHOLE,
        ]
        assert quotes.best.route.provider is BridgeProvider.AXELAR

    def test_full_tie_broken_by_provider_id(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(scripted_adapter("wormhole", fee="1", estimated_time=60))
        orchestrator.register_adapter(scripted_adapter("axelar", fee="1", estimated_time=60))
        orchestrator.register_adapter(scripted_adapter("layerzero", fee="1", estimated_time=60))
        quotes = orchestrator.quotes_for("ethereum", "arbitrum", "USDC", "1000")
        assert [q.route.provider.value for q in quotes] == ["axelar", "layerzero", "wormhole"]

    def test_rank_key_orders_by_effective_value_first(self, scripted_adapter):
        cheap_slow = scripted_adapter("wormhole", fee="0.1", estimated_time=900).quote(
            "ethereum", "base", "USDC", "100")
        dear_fast = scripted_adapter("layerzero", fee="5", estimated_time=1).quote(
            "ethereum", "base", "USDC", "100")
        assert sorted([dear_fast, cheap_slow], key=quote_rank_key) == [cheap_slow, dear_fast]

    def test_only_eligible_providers_are_asked(self, orchestrator, scripted_adapter):
        layerzero = scripted_adapter("layerzero")
        wormhole = scripted_adapter("wormhole")
        orchestrator.register_adapter(layerzero)
        orchestrator.register_adapter(wormhole)
        orchestrator.register_adapter(DemoBridgeAdapter())

        quotes = orchestrator.quotes_for("ethereum", "solana", "USDC", "100")
        assert {q.route.provider for q in quotes} == {BridgeProvider.WORMHOLE, BridgeProvider.DEMO}
        assert layerzero.quote_calls == 0

    def test_no_quote_outside_catalog_eligibility(self, scripted_adapter):
        with BridgeOrchestrator(cache_ttl=0) as orch:
            for provider in ("wormhole", "layerzero", "axelar", "demo"):
                orch.register_adapter(scripted_adapter(provider, check_route=False))
            for source in Network:
                for dest in Network:
                    if source == dest:
                        continue
                    allowed = eligible_providers(source, dest)
                    for quote in orch.quotes_for(source, dest, "USDC", "100"):
                        assert quote.route.provider in allowed

    def test_route_unsupported_skipped_silently(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(
            scripted_adapter("wormhole", quote_error=RouteUnsupportedError("no USDC pool")))
        orchestrator.register_adapter(DemoBridgeAdapter())
        quotes = orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert [q.route.provider for q in quotes] == [BridgeProvider.DEMO]
        assert quotes.errors == {}

    def test_partial_failure_collected(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(
            scripted_adapter("axelar", quote_error=QuoteUnavailableError("pricing API down")))
        orchestrator.register_adapter(DemoBridgeAdapter())
        quotes = orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert [q.route.provider for q in quotes] == [BridgeProvider.DEMO]
        assert isinstance(quotes.errors[BridgeProvider.AXELAR], QuoteUnavailableError)
        assert quotes.to_dict()["errors"] == {"axelar": "pricing API down"}

    def test_unexpected_adapter_exception_collected(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(scripted_adapter("wormhole", quote_error=KeyError("boom")))
        quotes = orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert len(quotes) == 0
        assert BridgeProvider.WORMHOLE in quotes.errors

    def test_slow_adapter_does_not_block(self, metrics, scripted_adapter):
        with BridgeOrchestrator(adapter_timeout=0.2, metrics=metrics) as orch:
            orch.register_adapter(scripted_adapter("wormhole", delay=3.0))
            orch.register_adapter(DemoBridgeAdapter())

            started = time.monotonic()
            quotes = orch.quotes_for("ethereum", "polygon", "USDC", "100")
            elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert [q.route.provider for q in quotes] == [BridgeProvider.DEMO]
        assert isinstance(quotes.errors[BridgeProvider.WORMHOLE], AdapterTimeoutError)
        assert isinstance(quotes.errors[BridgeProvider.WORMHOLE], QuoteUnavailableError)
        assert metrics.adapter_quote_errors.value(BridgeProvider.WORMHOLE) == 1

    def test_hung_adapter_does_not_starve_later_requests(self, scripted_adapter):
        hung = scripted_adapter("wormhole", delay=3.0)
        with BridgeOrchestrator(adapter_timeout=0.3, max_workers=1, cache_ttl=0) as orch:
            orch.register_adapter(hung)
            orch.register_adapter(DemoBridgeAdapter())

            first = orch.quotes_for("ethereum", "polygon", "USDC", "100")
            assert orch.busy_providers() == [BridgeProvider.WORMHOLE]

            started = time.monotonic()
            second = orch.quotes_for("ethereum", "polygon", "USDC", "100")
            elapsed = time.monotonic() - started

        for quotes in (first, second):
            assert [q.route.provider for q in quotes] == [BridgeProvider.DEMO]
            assert set(quotes.errors) == {BridgeProvider.WORMHOLE}
        assert isinstance(second.errors[BridgeProvider.WORMHOLE], AdapterTimeoutError)
        assert hung.quote_calls == 1
        assert elapsed < 0.3

    def test_late_adapter_asked_again_once_finished(self, scripted_adapter):
        slow = scripted_adapter("wormhole", delay=0.3)
        with BridgeOrchestrator(adapter_timeout=0.05, cache_ttl=0) as orch:
            orch.register_adapter(slow)
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
            time.sleep(0.6)
            assert orch.busy_providers() == []
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
        assert slow.quote_calls == 2

    def test_no_eligible_adapter(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(scripted_adapter("layerzero"))
        with pytest.raises(NoRouteAvailableError):
            orchestrator.quotes_for("ethereum", "bitcoin", "WBTC", "1")

    def test_empty_registry(self, orchestrator):
        with pytest.raises(NoRouteAvailableError):
            orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")

    def test_same_network_rejected(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        with pytest.raises(RouteUnsupportedError):
            orchestrator.quotes_for("polygon", "polygon", "USDC", "100")

    def test_unknown_network(self, orchestrator):
        with pytest.raises(UnknownNetworkError):
            orchestrator.quotes_for("ethereum", "fantom", "USDC", "100")

    def test_bad_amount(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        with pytest.raises(InvalidAmountError):
            orchestrator.quotes_for("ethereum", "polygon", "USDC", "-5")

    def test_missing_token(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        with pytest.raises(RouteUnsupportedError):
            orchestrator.quotes_for("ethereum", "polygon", "  ", "5")


class TestBestQuote:

    def test_best(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(scripted_adapter("wormhole", fee="0.01"))
        orchestrator.register_adapter(DemoBridgeAdapter())
        best = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        assert best.route.provider is BridgeProvider.WORMHOLE

    def test_all_failed_carries_errors(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(
            scripted_adapter("wormhole", quote_error=QuoteUnavailableError("down")))
        with pytest.raises(NoRouteAvailableError) as info:
            orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        assert BridgeProvider.WORMHOLE in info.value.errors
        assert info.value.to_dict()["provider_errors"] == {"wormhole": "down"}


# ══════════════════════════════════════════════════════════════════════
#  CACHE
# ══════════════════════════════════════════════════════════════════════

class TestQuoteCache:

    def test_repeat_request_served_from_cache(self, orchestrator, scripted_adapter, metrics):
        adapter = scripted_adapter("wormhole")
        orchestrator.register_adapter(adapter)
        first = orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        second = orchestrator.quotes_for("ethereum", "polygon", "USDC", Decimal("100"))
        assert second is first
        assert adapter.quote_calls == 1
        assert metrics.quote_cache_hits.value == 1
        assert metrics.quote_requests.value == 2

    def test_ttl_zero_disables(self, scripted_adapter):
        adapter = scripted_adapter("wormhole")
        with BridgeOrchestrator(cache_ttl=0) as orch:
            orch.register_adapter(adapter)
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
        assert adapter.quote_calls == 2

    def test_ttl_elapsed(self, scripted_adapter):
        adapter = scripted_adapter("wormhole")
        with BridgeOrchestrator(cache_ttl=0.05) as orch:
            orch.register_adapter(adapter)
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
            time.sleep(0.1)
            orch.quotes_for("ethereum", "polygon", "USDC", "100")
        assert adapter.quote_calls == 2

    def test_partial_failures_not_cached(self, orchestrator, scripted_adapter):
        failing = scripted_adapter("axelar", quote_error=QuoteUnavailableError("down"))
        orchestrator.register_adapter(failing)
        orchestrator.register_adapter(DemoBridgeAdapter())
        orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert failing.quote_calls == 2

    def test_expired_quote_evicted(self, orchestrator, scripted_adapter):
        adapter = scripted_adapter("wormhole", quote_ttl=0.05)
        orchestrator.register_adapter(adapter)
        orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        time.sleep(0.1)
        orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert adapter.quote_calls == 2

    def test_registration_clears_cache(self, orchestrator, scripted_adapter):
        adapter = scripted_adapter("wormhole")
        orchestrator.register_adapter(adapter)
        orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        orchestrator.register_adapter(DemoBridgeAdapter())
        quotes = orchestrator.quotes_for("ethereum", "polygon", "USDC", "100")
        assert len(quotes) == 2
        assert adapter.quote_calls == 2


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION
# ══════════════════════════════════════════════════════════════════════

class TestInitiateBridge:

    def test_registers_initiated_transaction(self, orchestrator, metrics):
        orchestrator.register_adapter(DemoBridgeAdapter())
        quote = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        transaction_id = orchestrator.initiate_bridge(quote, EVM_SENDER, EVM_RECIPIENT)

        assert transaction_id.startswith("bridge-tx-")
        tx = orchestrator.tracker.status_of(transaction_id)
        assert tx.status is BridgeStatus.INITIATED
        assert tx.provider_reference.startswith("demo-")
        assert tx.sender_address == EVM_SENDER
        assert metrics.transfers_initiated.value(BridgeProvider.DEMO) == 1

    def test_expired_quote_rejected(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        quote = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        stale = dataclasses.replace(quote, expires_at=time.time() - 1)
        with pytest.raises(QuoteExpiredError):
            orchestrator.initiate_bridge(stale, EVM_SENDER, EVM_RECIPIENT)
        assert orchestrator.tracker.list_transactions() == []

    def test_adapter_failure_leaves_no_record(self, orchestrator, scripted_adapter):
        orchestrator.register_adapter(
            scripted_adapter("wormhole", initiate_error=ProviderExecutionError("relayer offline")))
        quote = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        with pytest.raises(ProviderExecutionError):
            orchestrator.initiate_bridge(quote, EVM_SENDER, EVM_RECIPIENT)
        assert orchestrator.tracker.list_transactions() == []

    def test_invalid_recipient_leaves_no_record(self, orchestrator):
        orchestrator.register_adapter(DemoBridgeAdapter())
        quote = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        with pytest.raises(InvalidAddressError):
            orchestrator.initiate_bridge(quote, EVM_SENDER, SOLANA_ADDRESS)
        assert orchestrator.tracker.list_transactions() == []

    def test_unregistered_provider(self, orchestrator, scripted_adapter):
        quote = scripted_adapter("axelar").quote("ethereum", "polygon", "USDC", "100")
        with pytest.raises(NoRouteAvailableError):
            orchestrator.initiate_bridge(quote, EVM_SENDER, EVM_RECIPIENT)


class TestRefreshStatus:

    def test_refresh_through_owning_adapter(self, orchestrator, scripted_adapter):
        adapter = scripted_adapter("wormhole", statuses=[BridgeStatus.BRIDGING, BridgeStatus.COMPLETED])
        orchestrator.register_adapter(adapter)
        quote = orchestrator.get_best_quote("ethereum", "polygon", "USDC", "100")
        transaction_id = orchestrator.initiate_bridge(quote, EVM_SENDER, EVM_RECIPIENT)

        assert orchestrator.refresh_status(transaction_id) is BridgeStatus.BRIDGING
        assert orchestrator.refresh_status(transaction_id) is BridgeStatus.COMPLETED
        assert orchestrator.refresh_status(transaction_id) is BridgeStatus.COMPLETED
        assert adapter.poll_calls == 2


class TestQuoteSet:

    def test_list_behaviour(self, scripted_adapter):
        quote = scripted_adapter("wormhole").quote("ethereum", "polygon", "USDC", "100")
        quote_set = BridgeQuoteSet([quote])
        assert list(quote_set) == [quote]
        assert quote_set.quotes == [quote]
        assert bool(quote_set)
        assert not BridgeQuoteSet([])
        assert BridgeQuoteSet([]).best is None
