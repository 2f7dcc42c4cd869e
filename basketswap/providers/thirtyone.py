"""Async client for the 31Third swap quote and wallet rebalancing API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..core.execution.errors import ServiceError
from ..core.execution.models import RebalancePlan, SingleSwapPlan
from ..types.requests import RebalanceRequest, SwapQuoteRequest
from .base import QuoteProvider

logger = logging.getLogger(__name__)


@dataclass
class ThirtyOneThirdConfig:
    """Quote service configuration."""
    api_key: str
    base_url: str = "https://api.31third.com/0.1"
    chain_id: str = "0x1"                       # Hex chain id header
    timeout_s: float = 30.0


class ThirtyOneThirdProvider(QuoteProvider):
    """Thin wrapper around the /swap/quote and /rebalancing/wallet endpoints."""

    name = "31third"

    def __init__(
        self,
        config: ThirtyOneThirdConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self.timeout_s = config.timeout_s
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._config.api_key,
            "chain-id": self._config.chain_id,
            "accept": "application/json",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                timeout=self._config.timeout_s,
            )
        return self._client

    async def ready(self) -> bool:
        return bool(self._config.api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "API key not configured"}
        return {"status": "configured", "base_url": self._config.base_url, "chain_id": self._config.chain_id}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not await self.ready():
            raise ServiceError("31Third API key is not configured")

        try:
            response = await self._get_client().request(method, path, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _response_body(exc.response)
            raise ServiceError(
                f"31Third API error: {body}",
                status_code=exc.response.status_code,
                body=body,
            ) from exc
        except httpx.RequestError as exc:
            logger.error(f"31Third request failed: {exc}")
            raise ServiceError(f"31Third API error: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError(
                f"31Third API returned a non-JSON body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    async def get_swap_quote(self, request: SwapQuoteRequest) -> SingleSwapPlan:
        """Request a single swap quote and ingest it as a plan."""

        data = await self._request("GET", "/swap/quote", params=request.to_params())
        plan = SingleSwapPlan.from_quote(data)
        logger.info(
            f"Quote received: {plan.sell_symbol or plan.sell_token} -> {plan.buy_symbol or plan.buy_token}, "
            f"sell {plan.sell_amount}, buy {plan.buy_amount}, expires {plan.expires_at}"
        )
        return plan

    async def request_wallet_rebalancing(self, request: RebalanceRequest) -> RebalancePlan:
        """Request a wallet rebalancing and ingest it as a plan."""

        data = await self._request("POST", "/rebalancing/wallet", json=request.to_body())
        plan = RebalancePlan.from_response(data)
        logger.info(
            f"Rebalancing {plan.rebalancing_id or 'N/A'}: {len(plan.trades)} trades, "
            f"{len(plan.required_allowances)} required allowances, executable={plan.executable}"
        )
        return plan

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
