from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from ..core.execution.models import RebalancePlan, SingleSwapPlan
    from ..types.requests import RebalanceRequest, SwapQuoteRequest


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class QuoteProvider(Provider):
    """Provider of executable swap and rebalancing plans"""

    @abstractmethod
    async def get_swap_quote(self, request: "SwapQuoteRequest") -> "SingleSwapPlan":
        """Quote a single swap, including its transaction payload"""
        pass

    @abstractmethod
    async def request_wallet_rebalancing(self, request: "RebalanceRequest") -> "RebalancePlan":
        """Plan a batch rebalancing of a wallet"""
        pass
