"""
Transaction execution models and types.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import to_checksum_address

from ...services.address import is_hex_data, is_valid_evm_address, parse_quantity


# Address the quote service uses for the chain's native currency
NATIVE_PLACEHOLDER = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"


class ReceiptStatus(str, Enum):
    """Outcome of a mined transaction."""
    SUCCESS = "success"
    REVERTED = "reverted"


class SubmissionState(str, Enum):
    """Submission lifecycle of a single transaction."""
    BUILDING = "building"
    SIGNED = "signed"
    SENT = "sent"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PlanKind(str, Enum):
    SINGLE_SWAP = "single_swap"
    REBALANCE = "rebalance"


@dataclass(frozen=True)
class TokenAmount:
    """An amount of a token in base units."""
    token_address: str
    amount: int

    def __post_init__(self):
        if not is_valid_evm_address(self.token_address):
            raise ValueError(f"Invalid token address: {self.token_address!r}")
        if self.amount < 0:
            raise ValueError("Token amount must be non-negative")


@dataclass(frozen=True)
class AllowanceRequirement:
    """An approval the plan needs before its transaction can succeed.

    Fields are optional because they come straight from the service
    response; completeness is checked by the reconciler.
    """
    token: Optional[str]
    spender: Optional[str]
    needed_amount: Optional[int]
    symbol: str = ""                            # Display only

    def missing_fields(self) -> List[str]:
        """Fields that are absent or not usable (addresses must be well formed)."""
        missing = []
        if not is_valid_evm_address(self.token):
            missing.append("token")
        if not is_valid_evm_address(self.spender):
            missing.append("spender")
        if self.needed_amount is None:
            missing.append("needed_amount")
        return missing

    @classmethod
    def from_api(cls, raw: Any) -> "AllowanceRequirement":
        if not isinstance(raw, dict):
            return cls(token=None, spender=None, needed_amount=None)
        token = raw.get("token") or {}
        if isinstance(token, str):
            token_address, symbol = token, ""
        else:
            token_address, symbol = token.get("address"), token.get("symbol") or ""
        return cls(
            token=token_address or None,
            spender=raw.get("allowanceTarget") or raw.get("spender") or None,
            needed_amount=_quantity_or_none(raw.get("neededAllowance")),
            symbol=symbol,
        )


@dataclass(frozen=True)
class TransactionRequest:
    """Call parameters of a transaction before gas, nonce and chain are fixed."""
    to: str
    data: str
    value: int = 0
    gas_price: Optional[int] = None             # None means current network price

    def to_call(self, from_address: Optional[str] = None) -> Dict[str, Any]:
        """Call object for eth_estimateGas / eth_call."""
        call: Dict[str, Any] = {"to": self.to, "data": self.data}
        if from_address:
            call["from"] = from_address
        if self.value:
            call["value"] = hex(self.value)
        return call


@dataclass(frozen=True)
class PendingTransaction:
    """A fully determined transaction, ready to be signed."""
    to: str
    data: str
    value: int
    gas_limit: int
    gas_price: int
    nonce: int
    chain_id: int

    def with_gas_limit(self, gas_limit: int) -> "PendingTransaction":
        return replace(self, gas_limit=gas_limit)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the legacy transaction dict used for signing."""
        return {
            "to": to_checksum_address(self.to),
            "data": self.data,
            "value": self.value,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price,
            "nonce": self.nonce,
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class Receipt:
    """Terminal artifact of a submitted transaction."""
    transaction_hash: str
    block_number: int
    gas_used: int
    status: ReceiptStatus
    effective_gas_price: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Receipt":
        status = parse_quantity(raw.get("status", "0x1"))
        return cls(
            transaction_hash=raw["transactionHash"],
            block_number=parse_quantity(raw["blockNumber"]),
            gas_used=parse_quantity(raw.get("gasUsed")) or 0,
            status=ReceiptStatus.SUCCESS if status == 1 else ReceiptStatus.REVERTED,
            effective_gas_price=parse_quantity(raw.get("effectiveGasPrice")),
        )


@dataclass
class ExecutionPlan:
    """Service-computed transaction plus the approvals it needs.

    Consumed once by the executor and discarded.
    """
    to: Optional[str]
    data: Optional[str]
    value: int = 0
    gas_price_hint: Optional[int] = None
    expires_at: Optional[datetime] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False)

    kind = None

    @property
    def plan_id(self) -> Optional[str]:
        return None

    def has_transaction(self) -> bool:
        if not self.data or not is_valid_evm_address(self.to):
            return False
        return is_hex_data(_prefixed(self.data))

    def allowance_requirements(self) -> Tuple[AllowanceRequirement, ...]:
        return ()

    def transaction_request(self) -> TransactionRequest:
        if not self.has_transaction():
            raise ValueError("Plan has no transaction payload")
        return TransactionRequest(
            to=self.to,
            data=_prefixed(self.data),
            value=self.value,
            gas_price=self.gas_price_hint,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at


@dataclass
class SingleSwapPlan(ExecutionPlan):
    """Plan returned by the swap quote endpoint."""
    quote_id: Optional[str] = None
    sell_token: Optional[str] = None
    sell_symbol: str = ""
    sell_decimals: Optional[int] = None
    sell_amount: Optional[int] = None
    buy_token: Optional[str] = None
    buy_symbol: str = ""
    buy_decimals: Optional[int] = None
    buy_amount: Optional[int] = None
    price: Optional[str] = None
    allowance_target: Optional[str] = None
    issues: Optional[Any] = None                 # Balance/allowance checks reported by the service

    kind = PlanKind.SINGLE_SWAP

    @property
    def plan_id(self) -> Optional[str]:
        return self.quote_id

    def allowance_requirements(self) -> Tuple[AllowanceRequirement, ...]:
        # Native sells and quotes without a transaction need no approval
        if not self.sell_token or not self.has_transaction():
            return ()
        if self.sell_token.lower() == NATIVE_PLACEHOLDER:
            return ()
        return (
            AllowanceRequirement(
                token=self.sell_token,
                spender=self.allowance_target or self.to,
                needed_amount=self.sell_amount,
                symbol=self.sell_symbol,
            ),
        )

    @classmethod
    def from_quote(cls, raw: Dict[str, Any]) -> "SingleSwapPlan":
        tx = raw.get("transaction") or {}
        sell = raw.get("sellToken") or {}
        buy = raw.get("buyToken") or {}
        return cls(
            to=tx.get("to") or None,
            data=tx.get("data") or None,
            value=_quantity_or_none(tx.get("value")) or 0,
            gas_price_hint=_quantity_or_none(tx.get("gasPrice")),
            expires_at=parse_expiry(raw.get("expiresAt")),
            raw=raw,
            quote_id=raw.get("id") or raw.get("quoteId"),
            sell_token=_token_address(sell),
            sell_symbol=_token_field(sell, "symbol") or "",
            sell_decimals=_quantity_or_none(_token_field(sell, "decimals")),
            sell_amount=_quantity_or_none(raw.get("sellAmount")),
            buy_token=_token_address(buy),
            buy_symbol=_token_field(buy, "symbol") or "",
            buy_decimals=_quantity_or_none(_token_field(buy, "decimals")),
            buy_amount=_quantity_or_none(raw.get("buyAmount")),
            price=str(raw["price"]) if raw.get("price") is not None else None,
            allowance_target=raw.get("allowanceTarget") or None,
            issues=raw.get("issues") or None,
        )


@dataclass
class RebalancePlan(ExecutionPlan):
    """Plan returned by the wallet rebalancing endpoint."""
    rebalancing_id: Optional[str] = None
    required_allowances: List[AllowanceRequirement] = field(default_factory=list)
    trades: List[TradeSummary] = field(default_factory=list)
    executable: Optional[bool] = None
    tokens_without_price_pair: List[str] = field(default_factory=list)

    # Service estimates (reporting only)
    sell_value_usd: Optional[float] = None
    estimated_value_loss_usd: Optional[float] = None
    estimated_receive_value_usd: Optional[float] = None
    min_receive_value_usd: Optional[float] = None
    estimated_gas_fees_wei: Optional[int] = None
    estimated_gas_fees_usd: Optional[float] = None
    estimated_protocol_fees_usd: Optional[float] = None

    kind = PlanKind.REBALANCE

    @property
    def plan_id(self) -> Optional[str]:
        return self.rebalancing_id

    def allowance_requirements(self) -> Tuple[AllowanceRequirement, ...]:
        return tuple(self.required_allowances)

    @classmethod
    def from_response(cls, raw: Dict[str, Any]) -> "RebalancePlan":
        allowances = raw.get("requiredAllowances") or []
        return cls(
            to=raw.get("txHandler") or None,
            data=raw.get("txData") or None,
            value=_quantity_or_none(raw.get("txValue")) or 0,
            gas_price_hint=_quantity_or_none(raw.get("gasPrice")),
            expires_at=parse_expiry(raw.get("expirationTimestamp")),
            raw=raw,
            rebalancing_id=raw.get("id"),
            required_allowances=[AllowanceRequirement.from_api(a) for a in allowances],
            trades=[TradeSummary.from_api(t) for t in raw.get("trades") or [] if isinstance(t, dict)],
            executable=raw.get("executable"),
            tokens_without_price_pair=list(raw.get("tokensWithoutPricePair") or []),
            sell_value_usd=_float_or_none(raw.get("sellValueInUsd")),
            estimated_value_loss_usd=_float_or_none(raw.get("estimatedValueLossInUsd")),
            estimated_receive_value_usd=_float_or_none(raw.get("estimatedReceiveValueInUsd")),
            min_receive_value_usd=_float_or_none(raw.get("minReceiveValueInUsd")),
            estimated_gas_fees_wei=_quantity_or_none(raw.get("estimatedGasFees")),
            estimated_gas_fees_usd=_float_or_none(raw.get("estimatedGasFeesInUsd")),
            estimated_protocol_fees_usd=_float_or_none(raw.get("estimatedProtocolFeesInUsd")),
        )


@dataclass(frozen=True)
class TokenBalance:
    """Balance of a token held by an owner."""
    token_address: str
    owner: str
    balance: int
    decimals: Optional[int] = None
    symbol: str = ""

    @property
    def label(self) -> str:
        return self.symbol or self.token_address

    @property
    def formatted(self) -> str:
        if self.decimals is None:
            return str(self.balance)
        return format_units(self.balance, self.decimals)


@dataclass(frozen=True)
class TradeSummary:
    """One trade of a rebalancing plan, for reporting."""
    sell_token: Optional[str] = None
    sell_symbol: str = ""
    sell_decimals: Optional[int] = None
    sell_amount: Optional[int] = None
    buy_token: Optional[str] = None
    buy_symbol: str = ""
    buy_decimals: Optional[int] = None
    buy_amount: Optional[int] = None
    price: Optional[str] = None
    tx_handler: Optional[str] = None

    @property
    def sell_label(self) -> str:
        return self.sell_symbol or self.sell_token or "Unknown"

    @property
    def buy_label(self) -> str:
        return self.buy_symbol or self.buy_token or "Unknown"

    @property
    def sell_amount_formatted(self) -> Optional[str]:
        return _format_amount(self.sell_amount, self.sell_decimals)

    @property
    def buy_amount_formatted(self) -> Optional[str]:
        return _format_amount(self.buy_amount, self.buy_decimals)

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "TradeSummary":
        # Trades carry either token objects or bare *TokenAddress fields
        sell = raw.get("sellToken") or raw.get("sellTokenAddress")
        buy = raw.get("buyToken") or raw.get("buyTokenAddress")
        return cls(
            sell_token=_token_address(sell),
            sell_symbol=_token_field(sell, "symbol") or "",
            sell_decimals=_quantity_or_none(_token_field(sell, "decimals")),
            sell_amount=_quantity_or_none(raw.get("sellAmount")),
            buy_token=_token_address(buy),
            buy_symbol=_token_field(buy, "symbol") or "",
            buy_decimals=_quantity_or_none(_token_field(buy, "decimals")),
            buy_amount=_quantity_or_none(raw.get("buyAmount")),
            price=str(raw["price"]) if raw.get("price") is not None else None,
            tx_handler=raw.get("txHandler") or None,
        )


def format_units(amount: int, decimals: int) -> str:
    """Render a base-unit amount as a decimal string without trailing zeros."""
    whole, frac = divmod(amount, 10 ** decimals)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).zfill(decimals).rstrip('0')}"


def parse_expiry(value: Any) -> Optional[datetime]:
    """Parse an expiry given as ISO-8601 text or unix seconds/milliseconds."""

    if value is None or value == "":
        return None
    if isinstance(value, str) and not value.strip().isdigit():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        return None
    if timestamp > 1e12:
        timestamp /= 1000.0
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _quantity_or_none(value: Any) -> Optional[int]:
    try:
        return parse_quantity(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _token_field(token: Any, name: str) -> Any:
    if isinstance(token, dict):
        return token.get(name)
    return None


def _token_address(token: Any) -> Optional[str]:
    if isinstance(token, str):
        return token or None
    return _token_field(token, "address") or None


def _format_amount(amount: Optional[int], decimals: Optional[int]) -> Optional[str]:
    if amount is None:
        return None
    # Unknown decimals are reported as 18, the ERC20 default
    return format_units(amount, 18 if decimals is None else decimals)


def _prefixed(data: str) -> str:
    return data if data.startswith("0x") else f"0x{data}"
