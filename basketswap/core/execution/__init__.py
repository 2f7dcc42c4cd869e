"""
Transaction Execution Layer

Turns a quoted swap or rebalancing plan into a confirmed on-chain
transaction:
- ApprovalReconciler: grants the approvals a plan is missing, concurrently
- GasEstimator: simulation-based gas limit with a static fallback
- TransactionSubmitter: signs, broadcasts, confirms, retries once on gas shortfall
- SwapFlow / RebalanceFlow: one execute() entry point per flow

Usage:
    from basketswap.core.execution.factory import (
        build_gateway,
        build_provider,
        build_rebalance_flow,
        build_signer,
    )

    gateway = build_gateway()
    flow = build_rebalance_flow(build_provider(), gateway, build_signer())
    receipt = await flow.execute(request)
"""

from .models import (
    AllowanceRequirement,
    ExecutionPlan,
    PendingTransaction,
    PlanKind,
    Receipt,
    ReceiptStatus,
    RebalancePlan,
    SingleSwapPlan,
    SubmissionState,
    TokenAmount,
    TokenBalance,
    TradeSummary,
    TransactionRequest,
)

from .errors import (
    ApprovalFailure,
    BroadcastFailure,
    ConfigError,
    ConfirmationTimeout,
    EstimationFailure,
    ExecutionError,
    GasShortfallFailure,
    MalformedRequirement,
    NoExecutableTransaction,
    PlanExpired,
    RpcError,
    RpcErrorKind,
    ServiceError,
    SigningFailure,
    is_gas_shortfall,
)

from .gateway import ChainGateway, JsonRpcGateway
from .signer import LocalAccountSigner, Signer
from .nonce_manager import NonceManager, NonceState
from .tx_builder import MAX_UINT256, TransactionBuilder
from .gas import GasEstimator, GasLimits
from .submitter import GasRetryPolicy, TransactionSubmitter
from .allowances import ApprovalReconciler
from .executor import PlanExecutor, RebalanceFlow, SwapFlow, read_balances

__all__ = [
    # Models
    "AllowanceRequirement",
    "ExecutionPlan",
    "PendingTransaction",
    "PlanKind",
    "Receipt",
    "ReceiptStatus",
    "RebalancePlan",
    "SingleSwapPlan",
    "SubmissionState",
    "TokenAmount",
    "TokenBalance",
    "TradeSummary",
    "TransactionRequest",
    # Errors
    "ApprovalFailure",
    "BroadcastFailure",
    "ConfigError",
    "ConfirmationTimeout",
    "EstimationFailure",
    "ExecutionError",
    "GasShortfallFailure",
    "MalformedRequirement",
    "NoExecutableTransaction",
    "PlanExpired",
    "RpcError",
    "RpcErrorKind",
    "ServiceError",
    "SigningFailure",
    "is_gas_shortfall",
    # Chain access
    "ChainGateway",
    "JsonRpcGateway",
    "LocalAccountSigner",
    "Signer",
    "NonceManager",
    "NonceState",
    "MAX_UINT256",
    "TransactionBuilder",
    # Engine
    "GasEstimator",
    "GasLimits",
    "GasRetryPolicy",
    "TransactionSubmitter",
    "ApprovalReconciler",
    "PlanExecutor",
    "RebalanceFlow",
    "SwapFlow",
    "read_balances",
]
