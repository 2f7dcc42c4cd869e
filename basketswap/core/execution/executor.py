"""
Plan execution flows.

Handles the full lifecycle of a quoted operation:
- Plan checks (transaction payload, expiry)
- Allowance reconciliation
- Gas estimation
- Submission, confirmation and the gas-shortfall retry
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

import structlog

from ...logging_config import bind_plan, execution_context
from ...types.requests import RebalanceRequest, SwapQuoteRequest
from .allowances import ApprovalReconciler
from .errors import NoExecutableTransaction, PlanExpired
from .gas import GasEstimator, GasLimits
from .gateway import ChainGateway
from .models import ExecutionPlan, Receipt, RebalancePlan, SingleSwapPlan, TokenBalance
from .signer import Signer
from .submitter import GasRetryPolicy, TransactionSubmitter

if TYPE_CHECKING:
    from ...providers.base import QuoteProvider


logger = structlog.stdlib.get_logger("execution.executor")


class PlanExecutor:
    """
    Runs one ExecutionPlan: approvals, gas, submission.

    The plan is consumed once and not retained.
    """

    def __init__(
        self,
        reconciler: ApprovalReconciler,
        estimator: GasEstimator,
        submitter: TransactionSubmitter,
        *,
        enforce_expiry: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.reconciler = reconciler
        self.estimator = estimator
        self.submitter = submitter
        self.enforce_expiry = enforce_expiry
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute_plan(
        self,
        plan: ExecutionPlan,
        signer: Signer,
        fallback_gas_limit: int,
        retry: Optional[GasRetryPolicy] = None,
    ) -> Receipt:
        """
        Execute a plan and return the receipt of its transaction.

        Args:
            plan: The plan produced by the quote service
            signer: Signing account
            fallback_gas_limit: Gas limit used when estimation fails
            retry: Gas-shortfall retry policy for the plan transaction

        Returns:
            Receipt of the confirmed transaction
        """
        if not plan.has_transaction():
            raise NoExecutableTransaction(
                "No valid transaction data in the plan. Cannot execute the swap."
            )
        self._check_expiry(plan)

        approvals = await self.reconciler.reconcile(plan.allowance_requirements(), signer)
        if approvals:
            logger.info("approvals_granted", count=approvals)

        # Approvals can take several blocks; re-check before spending gas
        self._check_expiry(plan)

        request = plan.transaction_request()
        gas_limit = await self.estimator.estimate(request, fallback_gas_limit, from_address=signer.address)
        logger.info(
            "plan_transaction",
            to=request.to,
            value=request.value,
            data=request.data,
            gas_limit=gas_limit,
            fallback=fallback_gas_limit,
        )

        receipt = await self.submitter.submit(request, signer, gas_limit, retry=retry)
        logger.info(
            "plan_executed",
            tx_hash=receipt.transaction_hash,
            block=receipt.block_number,
            gas_used=receipt.gas_used,
            status=receipt.status.value,
        )
        return receipt

    def _check_expiry(self, plan: ExecutionPlan) -> None:
        if not self.enforce_expiry:
            return
        now = self._clock()
        if plan.is_expired(now):
            raise PlanExpired(f"Plan expired at {plan.expires_at.isoformat()} (now {now.isoformat()})")


class SwapFlow:
    """Single token swap: quote, approve the sell token, swap."""

    def __init__(
        self,
        provider: "QuoteProvider",
        executor: PlanExecutor,
        signer: Signer,
        *,
        gas_limits: Optional[GasLimits] = None,
        retry_gas_limit: int = 750_000,
    ):
        self.provider = provider
        self.executor = executor
        self.signer = signer
        self.gas_limits = gas_limits or GasLimits()
        self.retry = GasRetryPolicy.fixed(retry_gas_limit)

    async def execute(self, request: SwapQuoteRequest) -> Receipt:
        with execution_context("swap"):
            plan = await self.provider.get_swap_quote(request)
            bind_plan(plan.plan_id)
            _report_swap_plan(plan)
            return await self.executor.execute_plan(
                plan,
                self.signer,
                self.gas_limits.single_swap,
                retry=self.retry,
            )


class RebalanceFlow:
    """Batch wallet rebalancing: plan, approve all sold tokens, execute batch."""

    def __init__(
        self,
        provider: "QuoteProvider",
        executor: PlanExecutor,
        signer: Signer,
        *,
        gas_limits: Optional[GasLimits] = None,
        retry_multiplier_percent: int = 150,
    ):
        self.provider = provider
        self.executor = executor
        self.signer = signer
        self.gas_limits = gas_limits or GasLimits()
        self.retry = GasRetryPolicy.multiplier(retry_multiplier_percent)

    async def execute(self, request: RebalanceRequest) -> Receipt:
        with execution_context("rebalance"):
            plan = await self.provider.request_wallet_rebalancing(request)
            bind_plan(plan.plan_id)
            _report_rebalance_plan(plan)
            return await self.executor.execute_plan(
                plan,
                self.signer,
                self.gas_limits.rebalance,
                retry=self.retry,
            )


async def read_balances(
    gateway: ChainGateway,
    tokens: Sequence[str],
    owner: str,
) -> List[TokenBalance]:
    """Read balance, decimals and symbol of several tokens concurrently."""

    async def _one(token: str) -> TokenBalance:
        balance, decimals, symbol = await asyncio.gather(
            gateway.balance_of(token, owner),
            gateway.decimals(token),
            gateway.symbol(token),
        )
        return TokenBalance(
            token_address=token,
            owner=owner,
            balance=balance,
            decimals=decimals,
            symbol=symbol,
        )

    balances = list(await asyncio.gather(*(_one(token) for token in tokens)))
    for balance in balances:
        logger.info("token_balance", token=balance.label, balance=balance.formatted)
    return balances


def _report_swap_plan(plan: SingleSwapPlan) -> None:
    logger.info(
        "swap_quote",
        sell_token=plan.sell_symbol or plan.sell_token,
        buy_token=plan.buy_symbol or plan.buy_token,
        sell_amount=plan.sell_amount,
        buy_amount=plan.buy_amount,
        price=plan.price,
        expires_at=plan.expires_at.isoformat() if plan.expires_at else None,
    )
    if plan.issues:
        logger.warning("quote_has_issues", issues=plan.issues)


def _report_rebalance_plan(plan: RebalancePlan) -> None:
    logger.info(
        "rebalancing_plan",
        sell_value_usd=plan.sell_value_usd,
        estimated_value_loss_usd=plan.estimated_value_loss_usd,
        estimated_receive_value_usd=plan.estimated_receive_value_usd,
        min_receive_value_usd=plan.min_receive_value_usd,
        estimated_gas_fees_wei=plan.estimated_gas_fees_wei,
        estimated_gas_fees_usd=plan.estimated_gas_fees_usd,
        estimated_protocol_fees_usd=plan.estimated_protocol_fees_usd,
        expires_at=plan.expires_at.isoformat() if plan.expires_at else None,
        trades=len(plan.trades),
    )
    for index, trade in enumerate(plan.trades, 1):
        logger.info(
            "rebalancing_trade",
            trade=index,
            sell_token=trade.sell_label,
            sell_amount=trade.sell_amount_formatted,
            buy_token=trade.buy_label,
            buy_amount=trade.buy_amount_formatted,
            rate=trade.price,
            tx_handler=trade.tx_handler,
        )
    if plan.executable is False:
        logger.warning("plan_not_executable")
    if plan.tokens_without_price_pair:
        logger.warning("tokens_without_price_pair", tokens=plan.tokens_without_price_pair)
