"""
Chain gateway: the node operations the execution core depends on.

`ChainGateway` is the abstract surface; `JsonRpcGateway` implements it over
plain JSON-RPC with httpx.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from .errors import (
    BroadcastFailure,
    ConfirmationTimeout,
    EstimationFailure,
    GasShortfallFailure,
    RpcError,
    RpcErrorKind,
    classify_rpc_error,
)
from .models import Receipt
from .tx_builder import TransactionBuilder, decode_string, decode_uint256


logger = logging.getLogger(__name__)


class ChainGateway(ABC):
    """Node operations consumed by the execution core."""

    @abstractmethod
    async def chain_id(self) -> int:
        """Chain id of the connected network."""

    @abstractmethod
    async def gas_price(self) -> int:
        """Current network gas price in wei."""

    @abstractmethod
    async def get_transaction_count(self, address: str, block: str = "latest") -> int:
        """Next unused nonce of an address."""

    @abstractmethod
    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        """Simulate a call. Raises EstimationFailure when the node cannot estimate."""

    @abstractmethod
    async def allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC20 allowance granted by owner to spender."""

    @abstractmethod
    async def balance_of(self, token: str, owner: str) -> int:
        """ERC20 balance of owner."""

    @abstractmethod
    async def decimals(self, token: str) -> int:
        """ERC20 decimals of a token."""

    @abstractmethod
    async def symbol(self, token: str) -> str:
        """ERC20 symbol of a token."""

    @abstractmethod
    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Broadcast a signed transaction and return its hash.

        Raises GasShortfallFailure or BroadcastFailure on rejection.
        """

    @abstractmethod
    async def wait_for_confirmation(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout_seconds: Optional[float] = None,
    ) -> Receipt:
        """Suspend until the transaction has the given number of confirmations."""

    async def close(self) -> None:
        return None


class JsonRpcGateway(ChainGateway):
    """
    ChainGateway backed by a JSON-RPC endpoint.

    Responsibilities:
    - ERC20 reads through eth_call with hand-encoded call data
    - Gas price, estimation and nonce reads
    - Raw transaction broadcast with structured error classification
    - Receipt polling until the requested confirmation depth
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_s: float = 60.0,
        poll_interval_s: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not rpc_url:
            raise ValueError("rpc_url is required")
        self.rpc_url = rpc_url
        self.poll_interval_s = poll_interval_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._chain_id: Optional[int] = None
        self._request_id = 0

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the node."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        response = await self._client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        result = response.json()

        if "error" in result:
            error = result["error"] or {}
            if isinstance(error, dict):
                code = error.get("code")
                message = str(error.get("message", error))
                if error.get("data"):
                    message = f"{message}: {error['data']}"
            else:
                code, message = None, str(error)
            raise RpcError(
                f"RPC error in {method}: {message}",
                kind=classify_rpc_error(code, message),
                code=code,
            )

        return result.get("result")

    async def _quantity(self, method: str, params: List[Any]) -> int:
        value = await self._rpc_call(method, params)
        if value is None:
            raise RpcError(f"RPC {method} returned no result")
        return int(value, 16) if isinstance(value, str) else int(value)

    async def chain_id(self) -> int:
        # Chain id is fixed for the lifetime of a connection
        if self._chain_id is None:
            self._chain_id = await self._quantity("eth_chainId", [])
        return self._chain_id

    async def gas_price(self) -> int:
        return await self._quantity("eth_gasPrice", [])

    async def get_transaction_count(self, address: str, block: str = "latest") -> int:
        return await self._quantity("eth_getTransactionCount", [address, block])

    async def block_number(self) -> int:
        return await self._quantity("eth_blockNumber", [])

    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        try:
            return await self._quantity("eth_estimateGas", [call])
        except (RpcError, httpx.HTTPError, ValueError) as exc:
            raise EstimationFailure(f"Failed to estimate gas: {exc}") from exc

    async def _eth_call(self, to: str, data: str) -> str:
        return await self._rpc_call("eth_call", [{"to": to, "data": data}, "latest"])

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        data = TransactionBuilder.encode_allowance_call(owner, spender)
        return decode_uint256(await self._eth_call(token, data))

    async def balance_of(self, token: str, owner: str) -> int:
        data = TransactionBuilder.encode_balance_of_call(owner)
        return decode_uint256(await self._eth_call(token, data))

    async def decimals(self, token: str) -> int:
        return decode_uint256(await self._eth_call(token, TransactionBuilder.encode_decimals_call()))

    async def symbol(self, token: str) -> str:
        return decode_string(await self._eth_call(token, TransactionBuilder.encode_symbol_call()))

    async def send_raw_transaction(self, raw_tx: str) -> str:
        try:
            tx_hash = await self._rpc_call("eth_sendRawTransaction", [raw_tx])
        except RpcError as exc:
            if exc.kind == RpcErrorKind.GAS_SHORTFALL:
                raise GasShortfallFailure(str(exc)) from exc
            raise BroadcastFailure(str(exc), kind=exc.kind) from exc
        except httpx.HTTPError as exc:
            raise BroadcastFailure(f"Broadcast request failed: {exc}") from exc
        logger.info(f"Transaction submitted: {tx_hash}")
        return tx_hash

    async def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        raw = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        if not raw or not raw.get("blockNumber"):
            return None
        return Receipt.from_rpc(raw)

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout_seconds: Optional[float] = None,
    ) -> Receipt:
        start = time.monotonic()

        while True:
            if timeout_seconds is not None and time.monotonic() - start > timeout_seconds:
                raise ConfirmationTimeout(tx_hash, timeout_seconds)

            try:
                receipt = await self.get_receipt(tx_hash)
                if receipt is not None:
                    # A reverted receipt is final regardless of depth
                    if not receipt.is_success:
                        return receipt
                    current_block = await self.block_number()
                    depth = current_block - receipt.block_number + 1
                    if depth >= confirmations:
                        logger.info(
                            f"Transaction confirmed: {tx_hash} "
                            f"(block {receipt.block_number}, {depth} confirmations)"
                        )
                        return receipt
            except (RpcError, httpx.HTTPError) as e:
                logger.warning(f"Error checking transaction status: {e}")

            await asyncio.sleep(self.poll_interval_s)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
