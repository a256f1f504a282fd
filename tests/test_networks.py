"""
Network & Provider Catalog Test Suite

Coverage:
  - Network / BridgeProvider identifiers and case-insensitive lookup
  - Catalog data: chain ids, address families, native currencies, fees
  - Provider eligibility per network and per (source, dest) pair
  - list_networks() payload
"""

from decimal import Decimal

import pytest

from xchain.bridge.networks import (
    AddressFamily,
    BridgeProvider,
    NETWORKS,
    Network,
    PROVIDERS,
    average_transfer_time,
    chain_id,
    eligible_providers,
    is_evm,
    list_networks,
    network_from_id,
    network_info,
    provider_from_id,
    provider_info,
    supported_bridge_providers,
)
from xchain.exceptions import InputError, UnknownNetworkError, UnknownProviderError


EVM_NETWORKS = [
    Network.ETHEREUM, Network.POLYGON, Network.BSC,
    Network.ARBITRUM, Network.OPTIMISM, Network.BASE,
]
ALL_PROVIDERS = frozenset(BridgeProvider)


# ══════════════════════════════════════════════════════════════════════
#  IDENTIFIERS
# ══════════════════════════════════════════════════════════════════════

class TestIdentifiers:
    """Symbolic ids and lookups."""

    def test_nine_networks(self):
        assert len(Network) == 9
        assert set(NETWORKS) == set(Network)

    def test_four_providers(self):
        assert {p.value for p in BridgeProvider} == {"wormhole", "layerzero", "axelar", "demo"}
        assert set(PROVIDERS) == set(BridgeProvider)

    def test_network_from_id_case_insensitive(self):
        assert network_from_id("Ethereum") is Network.ETHEREUM
        assert network_from_id("  SOLANA ") is Network.SOLANA
        assert network_from_id(Network.TRON) is Network.TRON

    def test_unknown_network(self):
        with pytest.raises(UnknownNetworkError, match="dogechain"):
            network_from_id("dogechain")

    def test_unknown_network_is_input_error(self):
        with pytest.raises(InputError):
            chain_id("avalanche")

    def test_provider_from_id(self):
        assert provider_from_id("LayerZero") is BridgeProvider.LAYERZERO

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            provider_from_id("hop")


# ══════════════════════════════════════════════════════════════════════
#  CATALOG DATA
# ══════════════════════════════════════════════════════════════════════

class TestCatalog:
    """Static network and provider data."""

    @pytest.mark.parametrize("network,expected", [
        (Network.ETHEREUM, 1),
        (Network.POLYGON, 137),
        (Network.BSC, 56),
        (Network.ARBITRUM, 42161),
        (Network.OPTIMISM, 10),
        (Network.BASE, 8453),
        (Network.BITCOIN, None),
        (Network.SOLANA, None),
        (Network.TRON, None),
    ])
    def test_chain_ids(self, network, expected):
        assert chain_id(network) == expected

    def test_evm_family(self):
        for network in EVM_NETWORKS:
            assert is_evm(network)
            assert network_info(network).family is AddressFamily.EVM
        for network in (Network.BITCOIN, Network.SOLANA, Network.TRON):
            assert not is_evm(network)

    def test_native_currencies(self):
        assert network_info("polygon").native_currency == "MATIC"
        assert network_info("bsc").native_currency == "BNB"
        assert network_info("arbitrum").native_currency == "ETH"
        assert network_info("tron").native_currency == "TRX"

    def test_bridge_base_fees(self):
        assert network_info(Network.ETHEREUM).bridge_base_fee == Decimal("2.50")
        assert network_info(Network.POLYGON).bridge_base_fee == Decimal("0.10")
        assert network_info(Network.BITCOIN).bridge_base_fee == Decimal("0.0001")

    def test_provider_transfer_times(self):
        assert average_transfer_time(BridgeProvider.WORMHOLE) == 900
        assert average_transfer_time(BridgeProvider.LAYERZERO) == 300
        assert average_transfer_time(BridgeProvider.AXELAR) == 600
        assert average_transfer_time(BridgeProvider.DEMO) == 5

    def test_demo_never_production(self):
        assert not provider_info("demo").production_ready
        assert provider_info("wormhole").production_ready

    def test_provider_to_dict(self):
        data = provider_info(BridgeProvider.AXELAR).to_dict()
        assert data == {
            "provider": "axelar",
            "display_name": "Axelar",
            "average_transfer_time": 600,
            "production_ready": True,
        }


# ══════════════════════════════════════════════════════════════════════
#  ELIGIBILITY
# ══════════════════════════════════════════════════════════════════════

class TestEligibility:
    """Which providers may serve which routes."""

    def test_evm_networks_list_every_provider(self):
        for network in EVM_NETWORKS:
            assert supported_bridge_providers(network) == ALL_PROVIDERS

    def test_non_evm_providers(self):
        assert supported_bridge_providers("solana") == {BridgeProvider.WORMHOLE, BridgeProvider.DEMO}
        assert supported_bridge_providers("tron") == {BridgeProvider.LAYERZERO, BridgeProvider.DEMO}
        assert supported_bridge_providers("bitcoin") == {BridgeProvider.AXELAR, BridgeProvider.DEMO}

    def test_pair_is_intersection(self):
        assert eligible_providers("ethereum", "solana") == {BridgeProvider.WORMHOLE, BridgeProvider.DEMO}
        assert eligible_providers("solana", "tron") == {BridgeProvider.DEMO}
        assert eligible_providers("ethereum", "polygon") == ALL_PROVIDERS

    def test_demo_serves_every_pair(self):
        for source in Network:
            for dest in Network:
                assert BridgeProvider.DEMO in eligible_providers(source, dest)


# ══════════════════════════════════════════════════════════════════════
#  LISTING
# ══════════════════════════════════════════════════════════════════════

class TestListNetworks:

    def test_declaration_order(self):
        assert [info.network for info in list_networks()] == list(Network)

    def test_chain_payload(self):
        data = network_info(Network.SOLANA).to_dict()
        assert data == {
            "network": "solana",
            "chain_id": None,
            "is_evm": False,
            "native_currency": "SOL",
            "bridge_providers": ["demo", "wormhole"],
        }
