"""
XChain Network & Bridge Provider Catalog

Pure data tables describing the chains the engine can move value between
and the bridge protocols that connect them. Nothing here performs I/O;
every lookup is deterministic.

Defines:
  - Network enum and the NETWORKS table (chain id, address family,
    native currency, demo base fee, eligible providers)
  - BridgeProvider enum and the PROVIDERS table (display name, average
    transfer time, production readiness)
  - Lookup helpers: supported_bridge_providers, is_evm, chain_id,
    eligible_providers
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from ..exceptions import UnknownNetworkError, UnknownProviderError


# ══════════════════════════════════════════════════════════════════════
#  IDENTIFIERS
# ══════════════════════════════════════════════════════════════════════

class Network(str, Enum):
    """Supported blockchain networks, keyed by symbolic name."""
    ETHEREUM = "ethereum"
    POLYGON  = "polygon"
    BSC      = "bsc"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    BASE     = "base"
    BITCOIN  = "bitcoin"
    SOLANA   = "solana"
    TRON     = "tron"


class BridgeProvider(str, Enum):
    """Bridge protocols the orchestrator can route through."""
    WORMHOLE  = "wormhole"
    LAYERZERO = "layerzero"
    AXELAR    = "axelar"
    DEMO      = "demo"


class AddressFamily(str, Enum):
    EVM = "evm"
    NON_EVM = "non_evm"


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER TABLE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProviderInfo:
    """
    Static description of a bridge provider.

    Attributes:
        provider: Provider identifier
        display_name: Human-readable name
        average_transfer_time: Typical end-to-end seconds; ranking hint only
        production_ready: False for providers that must never move real funds
    """
    provider: BridgeProvider
    display_name: str
    average_transfer_time: int
    production_ready: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "display_name": self.display_name,
            "average_transfer_time": self.average_transfer_time,
            "production_ready": self.production_ready,
        }


PROVIDERS: Dict[BridgeProvider, ProviderInfo] = {
    BridgeProvider.WORMHOLE:  ProviderInfo(BridgeProvider.WORMHOLE, "Wormhole", 900, True),
    BridgeProvider.LAYERZERO: ProviderInfo(BridgeProvider.LAYERZERO, "LayerZero", 300, True),
    BridgeProvider.AXELAR:    ProviderInfo(BridgeProvider.AXELAR, "Axelar", 600, True),
    BridgeProvider.DEMO:      ProviderInfo(BridgeProvider.DEMO, "Demo Bridge", 5, False),
}


# ══════════════════════════════════════════════════════════════════════
#  NETWORK TABLE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NetworkInfo:
    """
    Static description of a network.

    Attributes:
        network: Network identifier
        chain_id: EIP-155 chain id; None for non-EVM families
        family: Address / execution family
        native_currency: Gas token symbol
        bridge_base_fee: Flat fee (in the bridged token) charged by the demo provider
        bridge_providers: Providers that have a deployment on this network
    """
    network: Network
    chain_id: Optional[int]
    family: AddressFamily
    native_currency: str
    bridge_base_fee: Decimal
    bridge_providers: FrozenSet[BridgeProvider]

    @property
    def is_evm(self) -> bool:
        return self.family is AddressFamily.EVM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network.value,
            "chain_id": self.chain_id,
            "is_evm": self.is_evm,
            "native_currency": self.native_currency,
            "bridge_providers": [p.value for p in _sorted_providers(self.bridge_providers)],
        }


_EVM_PROVIDERS = frozenset({
    BridgeProvider.WORMHOLE,
    BridgeProvider.LAYERZERO,
    BridgeProvider.AXELAR,
    BridgeProvider.DEMO,
})

NETWORKS: Dict[Network, NetworkInfo] = {
    Network.ETHEREUM: NetworkInfo(
        Network.ETHEREUM, 1, AddressFamily.EVM, "ETH", Decimal("2.50"), _EVM_PROVIDERS,
    ),
    Network.POLYGON: NetworkInfo(
        Network.POLYGON, 137, AddressFamily.EVM, "MATIC", Decimal("0.10"), _EVM_PROVIDERS,
    ),
    Network.BSC: NetworkInfo(
        Network.BSC, 56, AddressFamily.EVM, "BNB", Decimal("0.20"), _EVM_PROVIDERS,
    ),
    Network.ARBITRUM: NetworkInfo(
        Network.ARBITRUM, 42161, AddressFamily.EVM, "ETH", Decimal("0.25"), _EVM_PROVIDERS,
    ),
    Network.OPTIMISM: NetworkInfo(
        Network.OPTIMISM, 10, AddressFamily.EVM, "ETH", Decimal("0.25"), _EVM_PROVIDERS,
    ),
    Network.BASE: NetworkInfo(
        Network.BASE, 8453, AddressFamily.EVM, "ETH", Decimal("0.15"), _EVM_PROVIDERS,
    ),
    Network.BITCOIN: NetworkInfo(
        Network.BITCOIN, None, AddressFamily.NON_EVM, "BTC", Decimal("0.0001"),
        frozenset({BridgeProvider.AXELAR, BridgeProvider.DEMO}),
    ),
    Network.SOLANA: NetworkInfo(
        Network.SOLANA, None, AddressFamily.NON_EVM, "SOL", Decimal("0.01"),
        frozenset({BridgeProvider.WORMHOLE, BridgeProvider.DEMO}),
    ),
    Network.TRON: NetworkInfo(
        Network.TRON, None, AddressFamily.NON_EVM, "TRX", Decimal("1.00"),
        frozenset({BridgeProvider.LAYERZERO, BridgeProvider.DEMO}),
    ),
}


# ══════════════════════════════════════════════════════════════════════
#  LOOKUPS
# ══════════════════════════════════════════════════════════════════════

def _sorted_providers(providers) -> List[BridgeProvider]:
    return sorted(providers, key=lambda p: p.value)


def network_from_id(value: Any) -> Network:
    """
    Resolve a network from its symbolic id (case-insensitive) or enum member.

    Raises:
        UnknownNetworkError: if the id is not in the catalog
    """
    if isinstance(value, Network):
        return value
    try:
        return Network(str(value).strip().lower())
    except ValueError:
        raise UnknownNetworkError(f"Unknown network: {value!r}") from None


def provider_from_id(value: Any) -> BridgeProvider:
    """Resolve a bridge provider from its id (case-insensitive) or enum member."""
    if isinstance(value, BridgeProvider):
        return value
    try:
        return BridgeProvider(str(value).strip().lower())
    except ValueError:
        raise UnknownProviderError(f"Unknown bridge provider: {value!r}") from None


def network_info(network: Any) -> NetworkInfo:
    return NETWORKS[network_from_id(network)]


def provider_info(provider: Any) -> ProviderInfo:
    return PROVIDERS[provider_from_id(provider)]


def supported_bridge_providers(network: Any) -> FrozenSet[BridgeProvider]:
    """Providers with a deployment on *network*."""
    return network_info(network).bridge_providers


def is_evm(network: Any) -> bool:
    return network_info(network).is_evm


def chain_id(network: Any) -> Optional[int]:
    """EIP-155 chain id, or None for non-EVM networks."""
    return network_info(network).chain_id


def eligible_providers(source: Any, dest: Any) -> FrozenSet[BridgeProvider]:
    """Providers listed for both ends of a route."""
    return supported_bridge_providers(source) & supported_bridge_providers(dest)


def average_transfer_time(provider: Any) -> int:
    return provider_info(provider).average_transfer_time


def list_networks() -> List[NetworkInfo]:
    """All catalog networks in declaration order."""
    return [NETWORKS[n] for n in Network]
