"""
Transaction submission: build, sign, broadcast and confirm.

Lifecycle of one submission::

    BUILDING -> SIGNED -> SENT -> CONFIRMED
                            \\-> FAILED --(gas shortfall, once)--> SIGNED -> SENT -> CONFIRMED | FAILED

The retried attempt keeps the nonce and destination and only raises the
gas limit; it is re-signed from scratch.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import SigningFailure, is_gas_shortfall
from .gateway import ChainGateway
from .models import PendingTransaction, Receipt, SubmissionState, TransactionRequest
from .nonce_manager import NonceManager
from .signer import Signer
from .tx_builder import TransactionBuilder


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GasRetryPolicy:
    """How the single retry after a gas shortfall raises the gas limit.

    Either a fixed limit (``fixed_limit``) or a percentage of the previous
    attempt (``multiplier_percent``, 150 meaning 1.5x).
    """
    multiplier_percent: Optional[int] = 150
    fixed_limit: Optional[int] = None

    def __post_init__(self):
        if self.fixed_limit is None and self.multiplier_percent is None:
            raise ValueError("GasRetryPolicy needs a multiplier or a fixed limit")
        if self.multiplier_percent is not None and self.multiplier_percent <= 100:
            raise ValueError("multiplier_percent must increase the gas limit")

    @classmethod
    def multiplier(cls, percent: int = 150) -> "GasRetryPolicy":
        return cls(multiplier_percent=percent)

    @classmethod
    def fixed(cls, gas_limit: int) -> "GasRetryPolicy":
        return cls(multiplier_percent=None, fixed_limit=gas_limit)

    def next_limit(self, previous: int) -> int:
        if self.fixed_limit is not None and self.fixed_limit > previous:
            return self.fixed_limit
        # A fixed limit at or below the first attempt falls back to 1.5x
        percent = self.multiplier_percent or 150
        return previous * percent // 100


class TransactionSubmitter:
    """
    Signs, broadcasts and confirms transactions for a signer.

    Responsibilities:
    - Assemble a PendingTransaction from a request, a reserved nonce, the
      connected chain id and a gas price
    - Retry exactly once with a higher gas limit on a gas shortfall
    - Wait for the configured confirmation depth and return the Receipt
    """

    def __init__(
        self,
        gateway: ChainGateway,
        nonce_manager: Optional[NonceManager] = None,
        *,
        confirmations: int = 1,
        confirmation_timeout_seconds: Optional[float] = None,
    ):
        self._gateway = gateway
        self.nonce_manager = nonce_manager or NonceManager(gateway)
        self.confirmations = confirmations
        self.confirmation_timeout_seconds = confirmation_timeout_seconds

    async def build(
        self,
        request: TransactionRequest,
        signer: Signer,
        gas_limit: int,
    ) -> PendingTransaction:
        """Fix gas price, nonce and chain id for a request."""
        gas_price = request.gas_price
        if gas_price is None:
            gas_price = await self._gateway.gas_price()
        chain_id = await self._gateway.chain_id()
        nonce = await self.nonce_manager.get_next_nonce(signer.address)

        try:
            return TransactionBuilder.build_pending(
                request,
                gas_limit=gas_limit,
                gas_price=gas_price,
                nonce=nonce,
                chain_id=chain_id,
            )
        except ValueError:
            await self.nonce_manager.release_nonce(signer.address, nonce)
            raise

    async def submit(
        self,
        request: TransactionRequest,
        signer: Signer,
        gas_limit: int,
        retry: Optional[GasRetryPolicy] = None,
    ) -> Receipt:
        """
        Submit a transaction and wait for its confirmation.

        Args:
            request: The call to send
            signer: Signing account
            gas_limit: Gas limit of the first attempt
            retry: Policy for the single gas-shortfall retry (None disables it)

        Returns:
            Receipt of the attempt that was mined
        """
        self._log_state(SubmissionState.BUILDING, request.to)
        pending = await self.build(request, signer, gas_limit)
        logger.info(
            f"Transaction prepared: to={pending.to}, nonce={pending.nonce}, "
            f"gas={pending.gas_limit}, gas_price={pending.gas_price}, chain={pending.chain_id}"
        )

        try:
            tx_hash = await self._sign_and_send(pending, signer)
        except Exception as exc:
            if retry is None or not is_gas_shortfall(exc):
                self._log_state(SubmissionState.FAILED, pending.to, error=str(exc))
                await self.nonce_manager.release_nonce(signer.address, pending.nonce)
                raise

            pending = pending.with_gas_limit(retry.next_limit(pending.gas_limit))
            logger.warning(
                f"Gas shortfall ({exc}); retrying once with gas limit {pending.gas_limit}"
            )
            try:
                tx_hash = await self._sign_and_send(pending, signer)
            except Exception as retry_exc:
                self._log_state(SubmissionState.FAILED, pending.to, error=str(retry_exc))
                await self.nonce_manager.release_nonce(signer.address, pending.nonce)
                raise

        receipt = await self._gateway.wait_for_confirmation(
            tx_hash,
            confirmations=self.confirmations,
            timeout_seconds=self.confirmation_timeout_seconds,
        )
        await self.nonce_manager.confirm_nonce(signer.address, pending.nonce)

        if receipt.is_success:
            self._log_state(SubmissionState.CONFIRMED, pending.to, tx_hash=tx_hash)
        else:
            self._log_state(SubmissionState.FAILED, pending.to, tx_hash=tx_hash, error="reverted")
        logger.info(
            f"Transaction {tx_hash} mined in block {receipt.block_number}, gas used {receipt.gas_used}"
        )
        return receipt

    async def _sign_and_send(self, pending: PendingTransaction, signer: Signer) -> str:
        try:
            signed_tx = signer.sign_transaction(pending)
        except Exception as exc:
            raise SigningFailure(f"Failed to sign transaction: {exc}") from exc
        self._log_state(SubmissionState.SIGNED, pending.to)

        tx_hash = await self._gateway.send_raw_transaction(signed_tx)
        self._log_state(SubmissionState.SENT, pending.to, tx_hash=tx_hash)
        return tx_hash

    @staticmethod
    def _log_state(
        state: SubmissionState,
        to: str,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        message = f"Transaction to {to}: {state.value}"
        if tx_hash:
            message += f" ({tx_hash})"
        if error:
            message += f": {error}"
        if state == SubmissionState.FAILED:
            logger.error(message)
        else:
            logger.debug(message)
