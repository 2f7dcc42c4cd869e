"""
Wiring of execution components from settings.

Only this module reads the global settings; the components themselves take
every constant as a constructor argument.
"""

from typing import Optional

from ...config import Settings, settings as default_settings
from ...providers.thirtyone import ThirtyOneThirdConfig, ThirtyOneThirdProvider
from .allowances import ApprovalReconciler
from .errors import ConfigError
from .executor import PlanExecutor, RebalanceFlow, SwapFlow
from .gas import GasEstimator, GasLimits
from .gateway import ChainGateway, JsonRpcGateway
from .nonce_manager import NonceManager
from .signer import LocalAccountSigner, Signer
from .submitter import TransactionSubmitter


def gas_limits_from_settings(config: Settings) -> GasLimits:
    return GasLimits(
        approval=config.approval_gas_limit,
        single_swap=config.single_swap_gas_limit,
        rebalance=config.rebalance_gas_limit,
    )


def build_gateway(config: Optional[Settings] = None) -> JsonRpcGateway:
    config = config or default_settings
    if not config.rpc_url:
        raise ConfigError("RPC_URL is not configured")
    return JsonRpcGateway(
        config.rpc_url,
        timeout_s=config.rpc_timeout_seconds,
        poll_interval_s=config.confirmation_poll_seconds,
    )


def build_signer(config: Optional[Settings] = None) -> LocalAccountSigner:
    config = config or default_settings
    if not config.private_key:
        raise ConfigError("PRIVATE_KEY is not configured")
    try:
        return LocalAccountSigner(config.private_key)
    except (ValueError, TypeError) as exc:
        # Never echo the key itself
        raise ConfigError("PRIVATE_KEY is not a valid private key") from exc


def build_provider(config: Optional[Settings] = None) -> ThirtyOneThirdProvider:
    config = config or default_settings
    if not config.has_api_key:
        raise ConfigError("THIRTYONE_API_KEY (or API_KEY) is not configured")
    return ThirtyOneThirdProvider(
        ThirtyOneThirdConfig(
            api_key=config.thirtyone_api_key,
            base_url=config.thirtyone_base_url,
            chain_id=config.thirtyone_chain_id,
            timeout_s=config.thirtyone_timeout_seconds,
        )
    )


def build_executor(gateway: ChainGateway, config: Optional[Settings] = None) -> PlanExecutor:
    config = config or default_settings
    submitter = TransactionSubmitter(
        gateway,
        NonceManager(gateway),
        confirmations=config.required_confirmations,
        confirmation_timeout_seconds=config.confirmation_timeout_seconds,
    )
    reconciler = ApprovalReconciler(
        gateway,
        submitter,
        approval_gas_limit=config.approval_gas_limit,
        approve_unlimited=config.approve_unlimited,
    )
    estimator = GasEstimator(gateway, buffer_percent=config.gas_buffer_percent)
    return PlanExecutor(reconciler, estimator, submitter)


def build_swap_flow(
    provider: ThirtyOneThirdProvider,
    gateway: ChainGateway,
    signer: Signer,
    config: Optional[Settings] = None,
) -> SwapFlow:
    config = config or default_settings
    return SwapFlow(
        provider,
        build_executor(gateway, config),
        signer,
        gas_limits=gas_limits_from_settings(config),
        retry_gas_limit=config.single_swap_retry_gas_limit,
    )


def build_rebalance_flow(
    provider: ThirtyOneThirdProvider,
    gateway: ChainGateway,
    signer: Signer,
    config: Optional[Settings] = None,
) -> RebalanceFlow:
    config = config or default_settings
    return RebalanceFlow(
        provider,
        build_executor(gateway, config),
        signer,
        gas_limits=gas_limits_from_settings(config),
        retry_multiplier_percent=config.gas_retry_multiplier_percent,
    )
