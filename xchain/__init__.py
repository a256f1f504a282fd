"""
XChain Cross-Chain Bridge & Swap Engine

Subpackages are imported on demand:

    from xchain.bridge import BridgeOrchestrator, DemoBridgeAdapter
    from xchain.crosschain import build_service
    from xchain.exceptions import NoRouteAvailableError
"""

__version__ = "0.1.0"
