"""
Allowance reconciliation.

Compares the approvals a plan needs with the signer's on-chain allowances
and grants exactly the missing ones, concurrently.
"""

import asyncio
import logging
from typing import Sequence

from .errors import ApprovalFailure, MalformedRequirement
from .gateway import ChainGateway
from .models import AllowanceRequirement
from .signer import Signer
from .submitter import TransactionSubmitter
from .tx_builder import MAX_UINT256, TransactionBuilder


logger = logging.getLogger(__name__)


class ApprovalReconciler:
    """
    Grants the approvals a plan is missing.

    By default an under-approved pair is approved for MAX_UINT256 rather
    than the needed amount, so later plans for the same token and spender
    need no approval. This leaves a standing unlimited allowance; pass
    ``approve_unlimited=False`` to approve exact amounts instead.

    Approvals run concurrently and the reconciliation fails as a whole on
    the first failure. Approvals already broadcast are not rolled back.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        submitter: TransactionSubmitter,
        *,
        approval_gas_limit: int = 100_000,
        approve_unlimited: bool = True,
    ):
        self._gateway = gateway
        self._submitter = submitter
        self.approval_gas_limit = approval_gas_limit
        self.approve_unlimited = approve_unlimited

    def approval_amount(self, requirement: AllowanceRequirement) -> int:
        return MAX_UINT256 if self.approve_unlimited else requirement.needed_amount

    async def reconcile(
        self,
        requirements: Sequence[AllowanceRequirement],
        signer: Signer,
    ) -> int:
        """
        Ensure every requirement is covered by an on-chain allowance.

        Args:
            requirements: Approvals the plan needs
            signer: Owner of the tokens, signs the approvals

        Returns:
            Number of approval transactions issued
        """
        if not requirements:
            logger.info("No token allowances required")
            return 0

        # Validate everything before touching the chain
        for index, requirement in enumerate(requirements):
            missing = requirement.missing_fields()
            if missing:
                logger.error(f"Missing required allowance data at index {index}: {requirement}")
                raise MalformedRequirement(index, missing, requirement)

        issued = await asyncio.gather(
            *(self._ensure_allowance(requirement, signer) for requirement in requirements)
        )
        approved = sum(issued)
        logger.info(f"All required token approvals completed ({approved} issued)")
        return approved

    async def _ensure_allowance(self, requirement: AllowanceRequirement, signer: Signer) -> int:
        label = requirement.symbol or requirement.token
        logger.info(f"Checking allowance for {label} to spender {requirement.spender}")

        try:
            current = await self._gateway.allowance(requirement.token, signer.address, requirement.spender)
        except Exception as exc:
            raise ApprovalFailure(requirement, f"allowance read failed: {exc}") from exc

        if current >= requirement.needed_amount:
            logger.info(f"Token allowance is sufficient for {label} ({current} >= {requirement.needed_amount})")
            return 0

        amount = self.approval_amount(requirement)
        logger.info(f"Setting approval for {label}: current {current}, needed {requirement.needed_amount}")
        request = TransactionBuilder.build_erc20_approve(requirement.token, requirement.spender, amount)

        try:
            receipt = await self._submitter.submit(request, signer, self.approval_gas_limit)
        except Exception as exc:
            raise ApprovalFailure(requirement, str(exc)) from exc

        if not receipt.is_success:
            raise ApprovalFailure(requirement, f"approval {receipt.transaction_hash} reverted")

        logger.info(f"Approval for {label} confirmed in block {receipt.block_number}")
        return 1

