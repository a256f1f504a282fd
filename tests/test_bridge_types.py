"""
Bridge Types Test Suite

Coverage:
  - parse_amount strictness
  - BridgeStatus graph, terminal statuses, path_to
  - BridgeQuote expiry, effective value and payload
  - BridgeTransaction snapshots and payload
  - MultiChainBalance payload
"""

import dataclasses
import time
from decimal import Decimal

import pytest

from xchain.bridge.networks import BridgeProvider, Network
from xchain.bridge.types import (
    BRIDGE_TRANSITIONS,
    TERMINAL_STATUSES,
    BridgeStatus,
    BridgeTransaction,
    MultiChainBalance,
    is_legal_transition,
    parse_amount,
    path_to,
)
from xchain.exceptions import InvalidAmountError


# ══════════════════════════════════════════════════════════════════════
#  AMOUNTS
# ══════════════════════════════════════════════════════════════════════

class TestParseAmount:

    def test_string(self):
        assert parse_amount("1000.00") == Decimal("1000.00")

    def test_decimal_passthrough(self):
        assert parse_amount(Decimal("0.5")) == Decimal("0.5")

    def test_int(self):
        assert parse_amount(7) == Decimal("7")

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "", "NaN", "Infinity", None])
    def test_rejected(self, value):
        with pytest.raises(InvalidAmountError):
            parse_amount(value)

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError, match="string or Decimal"):
            parse_amount(1.5)

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmountError):
            parse_amount(True)


# ══════════════════════════════════════════════════════════════════════
#  STATUS GRAPH
# ══════════════════════════════════════════════════════════════════════

class TestStatusGraph:

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {BridgeStatus.COMPLETED, BridgeStatus.FAILED, BridgeStatus.REFUNDED}
        for status in BridgeStatus:
            assert status.is_terminal == (status in TERMINAL_STATUSES)
            assert status.is_pending == (not status.is_terminal)

    def test_linear_pending_path(self):
        assert is_legal_transition(BridgeStatus.INITIATED, BridgeStatus.BRIDGING)
        assert is_legal_transition(BridgeStatus.BRIDGING, BridgeStatus.CONFIRMING)
        for terminal in TERMINAL_STATUSES:
            assert is_legal_transition(BridgeStatus.CONFIRMING, terminal)

    def test_no_skipping(self):
        assert not is_legal_transition(BridgeStatus.INITIATED, BridgeStatus.COMPLETED)
        assert not is_legal_transition(BridgeStatus.BRIDGING, BridgeStatus.FAILED)

    def test_terminal_has_no_exits(self):
        for terminal in TERMINAL_STATUSES:
            assert BRIDGE_TRANSITIONS[terminal] == frozenset()

    def test_path_to_same(self):
        assert path_to(BridgeStatus.BRIDGING, BridgeStatus.BRIDGING) == []

    def test_path_to_terminal_walks_pending(self):
        assert path_to(BridgeStatus.INITIATED, BridgeStatus.COMPLETED) == [
            BridgeStatus.BRIDGING, BridgeStatus.CONFIRMING, BridgeStatus.COMPLETED,
        ]

    def test_path_to_pending(self):
        assert path_to(BridgeStatus.INITIATED, BridgeStatus.CONFIRMING) == [
            BridgeStatus.BRIDGING, BridgeStatus.CONFIRMING,
        ]

    def test_path_backwards_is_none(self):
        assert path_to(BridgeStatus.CONFIRMING, BridgeStatus.BRIDGING) is None

    def test_path_from_terminal_is_none(self):
        assert path_to(BridgeStatus.COMPLETED, BridgeStatus.FAILED) is None

    def test_every_path_step_is_legal(self):
        for start in BridgeStatus:
            for target in BridgeStatus:
                steps = path_to(start, target)
                if not steps:
                    continue
                current = start
                for step in steps:
                    assert is_legal_transition(current, step)
                    current = step
                assert current == target


# ══════════════════════════════════════════════════════════════════════
#  QUOTES
# ══════════════════════════════════════════════════════════════════════

class TestBridgeQuote:

    def test_effective_value(self, demo_quote):
        assert demo_quote.effective_value == demo_quote.output_amount - demo_quote.fee

    def test_not_expired_when_fresh(self, demo_quote):
        assert not demo_quote.is_expired

    def test_expired(self, demo_quote):
        stale = dataclasses.replace(demo_quote, expires_at=time.time() - 1)
        assert stale.is_expired
        assert demo_quote.expired_at(demo_quote.expires_at + 1)

    def test_provider_shortcut(self, demo_quote):
        assert demo_quote.provider is BridgeProvider.DEMO

    def test_payload_keys(self, demo_quote):
        data = demo_quote.to_dict()
        assert data["provider"] == "demo"
        assert data["from_chain"] == "ethereum"
        assert data["to_chain"] == "polygon"
        assert data["token"] == "USDC"
        assert data["amount"] == "100"
        assert data["fee"] == "2.50"
        assert data["output_amount"] == "97.50"
        assert data["estimated_time_seconds"] == 5

    def test_route_payload(self, demo_quote):
        data = demo_quote.route.to_dict()
        assert data["base_fee"] == "2.50"
        assert data["provider"] == "demo"


# ══════════════════════════════════════════════════════════════════════
#  TRANSACTIONS
# ══════════════════════════════════════════════════════════════════════

def _transaction():
    return BridgeTransaction(
        transaction_id="bridge-tx-abc",
        source_network=Network.ETHEREUM,
        dest_network=Network.POLYGON,
        token="USDC",
        amount=Decimal("100"),
        provider=BridgeProvider.DEMO,
        sender_address="0x1111111111111111111111111111111111111111",
        recipient_address="0x2222222222222222222222222222222222222222",
    )


class TestBridgeTransaction:

    def test_defaults(self):
        tx = _transaction()
        assert tx.status is BridgeStatus.INITIATED
        assert tx.updated_at == tx.created_at
        assert tx.history == [(BridgeStatus.INITIATED, tx.created_at)]
        assert not tx.is_terminal

    def test_snapshot_is_detached(self):
        tx = _transaction()
        snap = tx.snapshot()
        tx.status = BridgeStatus.BRIDGING
        tx.history.append((BridgeStatus.BRIDGING, time.time()))
        assert snap.status is BridgeStatus.INITIATED
        assert len(snap.history) == 1

    def test_payload(self):
        data = _transaction().to_dict()
        assert data["transaction_id"] == "bridge-tx-abc"
        assert data["status"] == "initiated"
        assert data["from_chain"] == "ethereum"
        assert data["amount"] == "100"
        assert data["output_amount"] is None
        assert data["history"][0]["status"] == "initiated"


class TestMultiChainBalance:

    def test_payload(self):
        balance = MultiChainBalance(Network.BASE, "USDC", Decimal("12.5"), Decimal("12.5"))
        assert balance.to_dict() == {
            "network": "base",
            "token": "USDC",
            "balance": "12.5",
            "usd_value": "12.5",
        }
