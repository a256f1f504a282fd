"""
XChain Bridge Layer

Provides:
  - networks: Network and provider catalog (chain ids, eligibility, fees)
  - addresses: Address-family validation per network
  - types: BridgeStatus state graph, BridgeRoute, BridgeQuote, BridgeTransaction
  - adapters: BaseBridgeAdapter interface and the DemoBridgeAdapter
  - orchestrator: Parallel quote aggregation and transfer dispatch
  - tracker: Single writer of bridge transaction status
"""

from .networks import (
    AddressFamily,
    BridgeProvider,
    Network,
    NetworkInfo,
    ProviderInfo,
    NETWORKS,
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

from .addresses import (
    is_valid_address,
    validate_address,
    validate_transfer_addresses,
)

from .types import (
    BRIDGE_TRANSITIONS,
    TERMINAL_STATUSES,
    BridgeQuote,
    BridgeRoute,
    BridgeStatus,
    BridgeTransaction,
    MultiChainBalance,
    is_legal_transition,
    parse_amount,
    path_to,
)

from .adapters import (
    BaseBridgeAdapter,
    DemoBridgeAdapter,
)

from .tracker import (
    BridgeTransactionStore,
    BridgeTransactionTracker,
    InMemoryBridgeTransactionStore,
)

from .orchestrator import (
    BridgeOrchestrator,
    BridgeQuoteSet,
    new_transaction_id,
)

__all__ = [
    # Catalog
    "AddressFamily",
    "BridgeProvider",
    "Network",
    "NetworkInfo",
    "ProviderInfo",
    "NETWORKS",
    "PROVIDERS",
    "average_transfer_time",
    "chain_id",
    "eligible_providers",
    "is_evm",
    "list_networks",
    "network_from_id",
    "network_info",
    "provider_from_id",
    "provider_info",
    "supported_bridge_providers",
    # Addresses
    "is_valid_address",
    "validate_address",
    "validate_transfer_addresses",
    # Types
    "BRIDGE_TRANSITIONS",
    "TERMINAL_STATUSES",
    "BridgeQuote",
    "BridgeRoute",
    "BridgeStatus",
    "BridgeTransaction",
    "MultiChainBalance",
    "is_legal_transition",
    "parse_amount",
    "path_to",
    # Adapters
    "BaseBridgeAdapter",
    "DemoBridgeAdapter",
    # Tracker
    "BridgeTransactionStore",
    "BridgeTransactionTracker",
    "InMemoryBridgeTransactionStore",
    # Orchestrator
    "BridgeOrchestrator",
    "BridgeQuoteSet",
    "new_transaction_id",
]
