"""
XChain Exceptions

Custom exception classes for the cross-chain bridge and swap engine.

The hierarchy mirrors how callers are expected to react:
  - InputError            : malformed request, never retried
  - TransientUpstreamError: provider hiccup, retried only while polling
  - StateIntegrityError   : programming / race signal, always surfaced
  - QuoteExpiredError     : caller must re-quote
"""

from typing import Any, Dict, Optional


class XChainException(Exception):
    """Base exception for XChain."""
    code = "ERR_CROSSCHAIN_000"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


# ── Input errors ─────────────────────────────────────────────────────

class InputError(XChainException):
    """Request is malformed and must not be retried."""
    pass


class UnknownNetworkError(InputError):
    """Network identifier is not in the catalog."""
    code = "ERR_CROSSCHAIN_010"


class UnknownProviderError(InputError):
    """Bridge provider identifier is not known."""
    code = "ERR_CROSSCHAIN_011"


class RouteUnsupportedError(InputError):
    """Adapter does not serve this (source, dest, token) triple."""
    code = "ERR_CROSSCHAIN_012"


class InvalidAddressError(InputError):
    """Address does not match the network's address family."""
    code = "ERR_CROSSCHAIN_013"


class InvalidAmountError(InputError):
    """Amount is not a positive, finite decimal."""
    code = "ERR_CROSSCHAIN_014"


# ── Transient upstream errors ────────────────────────────────────────

class TransientUpstreamError(XChainException):
    """Upstream failure that may succeed on a later attempt."""
    pass


class QuoteUnavailableError(TransientUpstreamError):
    """Provider pricing could not be obtained."""
    code = "ERR_CROSSCHAIN_001"


class AdapterTimeoutError(QuoteUnavailableError):
    """Adapter did not answer within the per-adapter timeout."""
    code = "ERR_CROSSCHAIN_020"


class ProviderExecutionError(TransientUpstreamError):
    """Provider failed to execute or report on a transfer."""
    code = "ERR_CROSSCHAIN_002"


class SwapQuoteUnavailableError(TransientUpstreamError):
    """Swap router has no route for the pair."""
    code = "ERR_CROSSCHAIN_004"


class SwapExecutionError(TransientUpstreamError):
    """Swap router failed to execute the swap."""
    code = "ERR_CROSSCHAIN_005"


# ── State integrity errors ───────────────────────────────────────────

class StateIntegrityError(XChainException):
    """Stored state was about to be violated."""
    pass


class IllegalTransitionError(StateIntegrityError):
    """Requested transition is not in the state graph."""
    code = "ERR_CROSSCHAIN_030"


class DuplicateTransactionError(StateIntegrityError):
    """Transaction id is already tracked."""
    code = "ERR_CROSSCHAIN_031"


class TransactionNotFoundError(StateIntegrityError):
    """Transaction id is not tracked."""
    code = "ERR_CROSSCHAIN_003"


class SagaNotFoundError(StateIntegrityError):
    """Saga id is not known to the coordinator."""
    code = "ERR_CROSSCHAIN_032"


# ── Other ────────────────────────────────────────────────────────────

class QuoteExpiredError(XChainException):
    """Quote is past its expiry and must be re-requested."""
    code = "ERR_CROSSCHAIN_040"


class NoRouteAvailableError(XChainException):
    """No bridge adapter can serve the requested route."""
    code = "ERR_CROSSCHAIN_041"

    def __init__(self, message: str, errors: Optional[Dict[Any, Exception]] = None):
        super().__init__(message)
        self.errors = dict(errors or {})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["provider_errors"] = {
            str(getattr(provider, "value", provider)): str(exc)
            for provider, exc in self.errors.items()
        }
        return data


class ConfigurationError(XChainException):
    """Configuration error."""
    code = "ERR_CROSSCHAIN_050"
