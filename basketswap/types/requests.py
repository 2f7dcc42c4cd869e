from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..services.address import is_valid_evm_address


def _check_address(value: str) -> str:
    if not is_valid_evm_address(value):
        raise ValueError(f"Invalid EVM address: {value!r}")
    return value


class SwapQuoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sell_token: str = Field(alias="sellToken", description="Token to sell")
    buy_token: str = Field(alias="buyToken", description="Token to buy")
    sell_amount: int = Field(alias="sellAmount", gt=0, description="Amount to sell in base units")
    taker: str = Field(description="Address that holds the sell token (wallet or vault)")
    tx_origin: str = Field(alias="txOrigin", description="Address that signs and sends the transaction")
    max_slippage_bps: int = Field(default=500, alias="maxSlippageBps", ge=0)
    max_price_impact_bps: int = Field(default=10_000, alias="maxPriceImpactBps", ge=0)
    min_expiry_sec: int = Field(default=60, alias="minExpirySec", ge=0)
    skip_simulation: bool = Field(default=False, alias="skipSimulation")
    skip_checks: bool = Field(default=True, alias="skipChecks")
    encoding_type: str = Field(default="basic", alias="encodingType", description="Call data encoding, e.g. basic")

    @field_validator("sell_token", "buy_token", "taker", "tx_origin")
    @classmethod
    def check_addresses(cls, value: str) -> str:
        return _check_address(value)

    def to_params(self) -> Dict[str, Any]:
        params = self.model_dump(by_alias=True)
        params["sellAmount"] = str(self.sell_amount)
        # Query strings carry booleans as lowercase words
        for key, value in params.items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
        return params


class BaseEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_address: str = Field(alias="tokenAddress", description="Token to sell")
    amount: int = Field(gt=0, description="Amount to sell in base units")

    @field_validator("token_address")
    @classmethod
    def check_address(cls, value: str) -> str:
        return _check_address(value)


class TargetEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_address: str = Field(alias="tokenAddress", description="Token to buy")
    allocation: float = Field(gt=0, le=1, description="Share of the sold value, 0.5 = 50%")

    @field_validator("token_address")
    @classmethod
    def check_address(cls, value: str) -> str:
        return _check_address(value)


class RebalanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signer: str = Field(description="Address that signs the rebalancing transaction")
    wallet: str = Field(description="Wallet whose holdings are rebalanced")
    base_entries: List[BaseEntry] = Field(alias="baseEntries", min_length=1)
    target_entries: List[TargetEntry] = Field(alias="targetEntries", min_length=1)
    max_deviation_from_target: float = Field(default=0.005, alias="maxDeviationFromTarget", ge=0)
    max_slippage: float = Field(default=0.01, alias="maxSlippage", ge=0)
    max_price_impact: float = Field(default=0.05, alias="maxPriceImpact", ge=0)
    batch_trade: bool = Field(default=True, alias="batchTrade")
    revert_on_error: bool = Field(default=True, alias="revertOnError")
    skip_balance_validation: bool = Field(default=False, alias="skipBalanceValidation")
    fail_on_missing_price_pair: bool = Field(default=True, alias="failOnMissingPricePair")
    run_async: bool = Field(default=False, alias="async")

    @field_validator("signer", "wallet")
    @classmethod
    def check_addresses(cls, value: str) -> str:
        return _check_address(value)

    @field_validator("target_entries")
    @classmethod
    def allocations_sum_to_one(cls, entries: List[TargetEntry]) -> List[TargetEntry]:
        total = sum(entry.allocation for entry in entries)
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Target allocations must sum to 1, got {total}")
        return entries

    def to_body(self) -> Dict[str, Any]:
        body = self.model_dump(by_alias=True)
        for entry in body["baseEntries"]:
            entry["amount"] = str(entry["amount"])
        return body
