"""
Execution error taxonomy.

Approval-level and estimation failures are contained by the layer that
raises them; submission-level failures propagate to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from .models import AllowanceRequirement


class RpcErrorKind(str, Enum):
    """Structured classification of node errors."""
    GAS_SHORTFALL = "gas_shortfall"
    NONCE = "nonce"
    UNDERPRICED = "underpriced"
    REVERTED = "reverted"
    OTHER = "other"


# Compatibility signatures for gateways that only surface a message.
GAS_SHORTFALL_SIGNATURES = (
    "gas limit",
    "unpredictable_gas_limit",
    "out of gas",
    "intrinsic gas too low",
    "gas required exceeds",
)

_NONCE_SIGNATURES = ("nonce too low", "nonce too high", "already known", "replacement transaction")
_UNDERPRICED_SIGNATURES = ("underpriced", "fee too low", "max fee per gas less than")


class ExecutionError(Exception):
    """Base exception for execution errors."""
    pass


class ConfigError(ExecutionError):
    """Required configuration is missing or invalid."""
    pass


class ServiceError(ExecutionError):
    """The quote/rebalancing service was unreachable or rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedRequirement(ExecutionError):
    """An allowance requirement lacks its token, spender or needed amount."""

    def __init__(self, index: int, missing: Sequence[str], requirement: Optional["AllowanceRequirement"] = None):
        super().__init__(
            f"Incomplete allowance data at index {index}: missing or invalid {', '.join(missing)}"
        )
        self.index = index
        self.missing = tuple(missing)
        self.requirement = requirement


class ApprovalFailure(ExecutionError):
    """An approval transaction could not be granted."""

    def __init__(self, requirement: "AllowanceRequirement", reason: str):
        label = requirement.symbol or requirement.token
        super().__init__(f"Approval of {label} for spender {requirement.spender} failed: {reason}")
        self.requirement = requirement
        self.reason = reason


class EstimationFailure(ExecutionError):
    """The node could not estimate gas for a call."""
    pass


class RpcError(ExecutionError):
    """A JSON-RPC call returned an error object."""

    def __init__(self, message: str, kind: RpcErrorKind = RpcErrorKind.OTHER, code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.code = code


class BroadcastFailure(ExecutionError):
    """The network rejected a signed transaction."""

    def __init__(self, message: str, kind: RpcErrorKind = RpcErrorKind.OTHER):
        super().__init__(message)
        self.kind = kind


class GasShortfallFailure(BroadcastFailure):
    """Broadcast failed because the gas limit was too low."""

    def __init__(self, message: str):
        super().__init__(message, kind=RpcErrorKind.GAS_SHORTFALL)


class SigningFailure(ExecutionError):
    """The signer could not produce a signed transaction."""
    pass


class ConfirmationTimeout(ExecutionError):
    """No receipt arrived within the configured confirmation timeout."""

    def __init__(self, tx_hash: str, timeout_seconds: float):
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout_seconds}s")
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds


class NoExecutableTransaction(ExecutionError):
    """The plan carries no transaction payload."""
    pass


class PlanExpired(ExecutionError):
    """The plan's expiry passed before submission."""
    pass


def classify_rpc_error(code: Optional[int], message: str) -> RpcErrorKind:
    """Map a node error (code + message) to an RpcErrorKind."""

    text = (message or "").lower()
    if any(sig in text for sig in GAS_SHORTFALL_SIGNATURES):
        return RpcErrorKind.GAS_SHORTFALL
    if any(sig in text for sig in _NONCE_SIGNATURES):
        return RpcErrorKind.NONCE
    if any(sig in text for sig in _UNDERPRICED_SIGNATURES):
        return RpcErrorKind.UNDERPRICED
    if code == 3 or "execution reverted" in text:
        return RpcErrorKind.REVERTED
    return RpcErrorKind.OTHER


def is_gas_shortfall(exc: BaseException) -> bool:
    """Return True when an error belongs to the gas-shortfall class.

    Structured kinds win; the message match only covers unclassified errors
    and gateways that raise plain exceptions.
    """

    if isinstance(exc, SigningFailure):
        return False
    if isinstance(exc, GasShortfallFailure):
        return True
    kind = getattr(exc, "kind", None)
    if isinstance(kind, RpcErrorKind) and kind != RpcErrorKind.OTHER:
        return kind == RpcErrorKind.GAS_SHORTFALL
    text = str(exc).lower()
    return any(sig in text for sig in GAS_SHORTFALL_SIGNATURES)
