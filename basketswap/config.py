import os

from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.thirtyone_api_key:
            fallback = os.getenv("API_KEY")
            if fallback:
                object.__setattr__(self, "thirtyone_api_key", fallback)

    log_level: str = Field(default="INFO", description="Logging level")

    # Quote / rebalancing service
    thirtyone_api_key: str = Field(default="", description="31Third API key")
    thirtyone_base_url: str = Field(
        default="https://api.31third.com/0.1",
        description="Base URL of the quote and rebalancing API",
    )
    thirtyone_chain_id: str = Field(
        default="0x1",
        description="Hex chain id sent in the chain-id header",
    )
    thirtyone_timeout_seconds: int = Field(default=30, description="Quote request timeout")

    # Node
    rpc_url: str = Field(default="", description="JSON-RPC endpoint of the node")
    rpc_timeout_seconds: int = Field(default=60, description="JSON-RPC request timeout")

    # Signer
    private_key: str = Field(default="", description="Hex private key of the signing account")

    # Gas policy
    approval_gas_limit: int = Field(default=100_000, ge=21_000, description="Gas limit for approve() transactions")
    single_swap_gas_limit: int = Field(
        default=500_000,
        ge=21_000,
        description="Fallback gas limit when a single swap cannot be estimated",
    )
    single_swap_retry_gas_limit: int = Field(
        default=750_000,
        ge=21_000,
        description="Gas limit used when a single swap is retried after a gas shortfall",
    )
    rebalance_gas_limit: int = Field(
        default=3_000_000,
        ge=21_000,
        description="Fallback gas limit for batch rebalancing transactions",
    )
    gas_buffer_percent: int = Field(default=120, ge=100, description="Safety buffer applied to estimates")
    gas_retry_multiplier_percent: int = Field(
        default=150,
        gt=100,
        description="Gas limit multiplier for the single retry after a gas shortfall",
    )

    # Confirmation
    required_confirmations: int = Field(default=1, ge=1, description="Blocks to wait for")
    confirmation_poll_seconds: float = Field(default=2.0, gt=0, description="Receipt polling interval")
    confirmation_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Give up waiting for a receipt after this many seconds (None waits forever)",
    )

    # Approval policy
    approve_unlimited: bool = Field(
        default=True,
        description="Approve the maximum uint256 instead of the exact amount a plan needs",
    )

    # Swap request defaults
    max_slippage_bps: int = Field(default=500, ge=0, description="Default swap slippage tolerance")
    max_price_impact_bps: int = Field(default=10_000, ge=0, description="Default swap price impact tolerance")
    min_expiry_sec: int = Field(default=60, ge=0, description="Minimum quote validity requested")

    @property
    def has_api_key(self) -> bool:
        return bool(self.thirtyone_api_key)


# Global settings instance
settings = Settings()
