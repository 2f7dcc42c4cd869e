"""
Gas limit estimation with a static fallback.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import EstimationFailure
from .gateway import ChainGateway
from .models import TransactionRequest


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GasLimits:
    """Static fallback limits per kind of transaction.

    Batch rebalances carry far more call data than a single swap, which in
    turn costs more than an approve().
    """
    approval: int = 100_000
    single_swap: int = 500_000
    rebalance: int = 3_000_000


class GasEstimator:
    """
    Produces a gas limit from an on-chain simulation plus a safety buffer.

    Estimation failure is never fatal: the caller's fallback limit is
    returned unchanged and the failure is logged.
    """

    def __init__(self, gateway: ChainGateway, buffer_percent: int = 120):
        if buffer_percent < 100:
            raise ValueError("buffer_percent must be at least 100")
        self._gateway = gateway
        self.buffer_percent = buffer_percent

    def apply_buffer(self, gas: int) -> int:
        # Integer arithmetic, truncating
        return gas * self.buffer_percent // 100

    async def estimate(
        self,
        request: TransactionRequest,
        fallback_limit: int,
        from_address: Optional[str] = None,
    ) -> int:
        """
        Estimate the gas limit for a request.

        Args:
            request: The call to simulate
            fallback_limit: Limit to use when the simulation fails
            from_address: Sender used for the simulation

        Returns:
            Buffered estimate, or fallback_limit on any estimation error
        """
        call = request.to_call(from_address)

        try:
            estimated = await self._gateway.estimate_gas(call)
        except EstimationFailure as e:
            logger.warning(f"Gas estimation failed, using default gas limit {fallback_limit}: {e}")
            return fallback_limit
        except Exception as e:
            logger.warning(
                f"Gas estimation raised {type(e).__name__}, using default gas limit {fallback_limit}: {e}"
            )
            return fallback_limit

        gas_limit = self.apply_buffer(int(estimated))
        logger.info(f"Estimated gas {estimated}, limit with buffer {gas_limit}")
        return gas_limit
