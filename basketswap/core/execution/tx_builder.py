"""
Transaction builder for ERC-20 calls and plan transactions.
"""

from typing import Optional

from ...services.address import normalize_address
from .models import PendingTransaction, TransactionRequest


# Common contract selectors (minimal for encoding)
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)
ERC20_DECIMALS_SELECTOR = "0x313ce567"  # decimals()
ERC20_SYMBOL_SELECTOR = "0x95d89b41"  # symbol()

# Maximum uint256 for unlimited approval
MAX_UINT256 = 2**256 - 1


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = address.lower().replace("0x", "")
    return addr.zfill(64)


def decode_uint256(data: Optional[str]) -> int:
    """Decode the first 32-byte word of an eth_call result."""
    if not data or data == "0x":
        return 0
    word = data[2:66] if data.startswith("0x") else data[:64]
    return int(word, 16)


def decode_string(data: Optional[str]) -> str:
    """Decode an ABI string return value.

    Some early tokens return symbol() as a NUL-padded bytes32 instead.
    """
    if not data or data == "0x":
        return ""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    offset = int.from_bytes(raw[:32], "big")
    length = int.from_bytes(raw[offset:offset + 32], "big")
    return raw[offset + 32:offset + 32 + length].decode("utf-8", errors="replace")


class TransactionBuilder:
    """
    Builds call data and transactions.

    Handles:
    - ERC20 approvals
    - ERC20 read calls (allowance, balanceOf, decimals)
    - Pending transactions from plan requests
    """

    @staticmethod
    def build_erc20_approve(
        token_address: str,
        spender_address: str,
        amount: int = MAX_UINT256,
    ) -> TransactionRequest:
        """
        Build an ERC20 approval request.

        Args:
            token_address: The ERC20 token contract
            spender_address: The address being approved to spend
            amount: The amount to approve (default: unlimited)

        Returns:
            TransactionRequest addressed to the token contract
        """
        calldata = (
            ERC20_APPROVE_SELECTOR +
            _encode_address(spender_address) +
            _encode_uint256(amount)
        )
        return TransactionRequest(to=normalize_address(token_address), data=calldata, value=0)

    @staticmethod
    def encode_allowance_call(owner_address: str, spender_address: str) -> str:
        return (
            ERC20_ALLOWANCE_SELECTOR +
            _encode_address(owner_address) +
            _encode_address(spender_address)
        )

    @staticmethod
    def encode_balance_of_call(owner_address: str) -> str:
        return ERC20_BALANCE_OF_SELECTOR + _encode_address(owner_address)

    @staticmethod
    def encode_decimals_call() -> str:
        return ERC20_DECIMALS_SELECTOR

    @staticmethod
    def encode_symbol_call() -> str:
        return ERC20_SYMBOL_SELECTOR

    @staticmethod
    def build_pending(
        request: TransactionRequest,
        *,
        gas_limit: int,
        gas_price: int,
        nonce: int,
        chain_id: int,
    ) -> PendingTransaction:
        """
        Fix gas, nonce and chain for a request.

        Args:
            request: The call parameters
            gas_limit: Gas limit for this attempt
            gas_price: Gas price in wei
            nonce: Reserved nonce of the signer
            chain_id: Chain id read from the connected network

        Returns:
            PendingTransaction ready to be signed
        """
        if gas_limit <= 0:
            raise ValueError("Gas limit must be positive")
        return PendingTransaction(
            to=request.to,
            data=request.data,
            value=request.value,
            gas_limit=gas_limit,
            gas_price=gas_price,
            nonce=nonce,
            chain_id=chain_id,
        )
