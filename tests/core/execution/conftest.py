"""
Fakes shared by the execution tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from basketswap.core.execution.gateway import ChainGateway
from basketswap.core.execution.models import PendingTransaction, Receipt, ReceiptStatus
from basketswap.core.execution.signer import Signer


SIGNER_ADDRESS = "0x1111111111111111111111111111111111111111"


class FakeGateway(ChainGateway):
    """In-memory chain: allowances, a nonce counter and scripted broadcast results."""

    def __init__(self):
        self.chain = 1
        self.price = 10
        self.tx_count = 7
        self.allowances: Dict[tuple, int] = {}
        self.balances: Dict[str, int] = {}
        self.token_decimals: Dict[str, int] = {}
        self.token_symbols: Dict[str, str] = {}
        self.estimate_result: Any = 100_000
        self.send_errors: List[Optional[Exception]] = []
        self.revert_to: set = set()
        self.sent: List[str] = []
        self.estimate_calls: List[Dict[str, Any]] = []
        self.waited: List[str] = []
        self.events: List[str] = []
        self.allowance_error: Optional[Exception] = None
        self._to_by_hash: Dict[str, str] = {}
        self._in_flight_reads = 0
        self.max_in_flight_reads = 0

    def set_allowance(self, token: str, spender: str, amount: int) -> None:
        self.allowances[(token.lower(), spender.lower())] = amount

    async def chain_id(self) -> int:
        return self.chain

    async def gas_price(self) -> int:
        return self.price

    async def get_transaction_count(self, address: str, block: str = "latest") -> int:
        return self.tx_count

    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        self.estimate_calls.append(call)
        self.events.append("estimate")
        if isinstance(self.estimate_result, Exception):
            raise self.estimate_result
        return self.estimate_result

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        self.events.append(f"allowance:{token.lower()}")
        self._in_flight_reads += 1
        self.max_in_flight_reads = max(self.max_in_flight_reads, self._in_flight_reads)
        try:
            await asyncio.sleep(0)
            if self.allowance_error is not None:
                raise self.allowance_error
            return self.allowances.get((token.lower(), spender.lower()), 0)
        finally:
            self._in_flight_reads -= 1

    async def balance_of(self, token: str, owner: str) -> int:
        return self.balances.get(token.lower(), 0)

    async def decimals(self, token: str) -> int:
        return self.token_decimals.get(token.lower(), 18)

    async def symbol(self, token: str) -> str:
        return self.token_symbols.get(token.lower(), "")

    async def send_raw_transaction(self, raw_tx: str) -> str:
        self.sent.append(raw_tx)
        to = "0x" + raw_tx[-40:]
        self.events.append(f"send:{to}")
        if self.send_errors:
            error = self.send_errors.pop(0)
            if error is not None:
                raise error
        tx_hash = f"0x{len(self.sent):064x}"
        self._to_by_hash[tx_hash] = to
        return tx_hash

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout_seconds: Optional[float] = None,
    ) -> Receipt:
        self.waited.append(tx_hash)
        self.tx_count += 1
        reverted = self._to_by_hash.get(tx_hash) in self.revert_to
        return Receipt(
            transaction_hash=tx_hash,
            block_number=100 + len(self.waited),
            gas_used=50_000,
            status=ReceiptStatus.REVERTED if reverted else ReceiptStatus.SUCCESS,
        )


class FakeSigner(Signer):
    """Deterministic signer: the payload encodes nonce, gas limit and destination."""

    def __init__(self, address: str = SIGNER_ADDRESS):
        self._address = address
        self.signed: List[PendingTransaction] = []
        self.error: Optional[Exception] = None

    @property
    def address(self) -> str:
        return self._address

    def sign_transaction(self, tx: PendingTransaction) -> str:
        if self.error is not None:
            raise self.error
        self.signed.append(tx)
        return f"0x{tx.nonce:08x}{tx.gas_limit:016x}{tx.to.lower()[2:]}"


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()
