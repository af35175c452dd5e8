from decimal import Decimal
from pathlib import Path
from typing import Literal

from eth_utils import is_hex_address, to_checksum_address
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.evm import gwei_to_wei, parse_ether


BASE_DIR = Path(__file__).resolve().parents[1]

PLACEHOLDER_EOA_KEY = "YOUR_EOA_PRIVATE_KEY"
PLACEHOLDER_SIGNER_KEY = "YOUR_FLASHBOTS_SIGNER_KEY"


class Settings(BaseSettings):
    """Immutable run configuration.

    One instance is built per invocation and handed to every component;
    nothing in the package reads configuration from module state.
    """

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Endpoints
    rpc_url: str = Field(default="https://eth.llamarpc.com", description="Chain JSON-RPC endpoint")
    relay_url: str = Field(default="https://relay.flashbots.net", description="Bundle relay endpoint")
    log_level: str = Field(default="INFO", description="Logging level")

    # Keys
    eoa_private_key: str = Field(
        default=PLACEHOLDER_EOA_KEY,
        description="Key of the account paying for and sending the bundle",
        validation_alias=AliasChoices("eoa_private_key", "EOA_PRIVATE_KEY", "EOA_KEY"),
    )
    flashbots_signer_key: str = Field(
        default=PLACEHOLDER_SIGNER_KEY,
        description="Relay identity key used only to sign relay requests",
        validation_alias=AliasChoices("flashbots_signer_key", "FLASHBOTS_SIGNER_KEY", "FLASHBOTS_KEY"),
    )

    # Contracts (mainnet)
    router_address: str = Field(default="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D", description="Uniswap V2 router")
    weth_address: str = Field(default="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", description="Wrapped ETH")
    token_address: str = Field(default="0xF7285d17dded63A4480A0f1F0a8cc706F02dDa0a", description="Target token")

    # Operation parameters
    eth_amount: Decimal = Field(default=Decimal("0.002"), gt=0, description="Total ETH budget for the bundle")
    slippage: float = Field(default=0.01, description="Slippage tolerance as a fraction")
    deadline_seconds: int = Field(default=120, gt=0, description="Router deadline offset from now")
    liquidity_funding: Literal["split", "reserve_ratio"] = Field(
        default="split",
        description="How the liquidity leg's ETH share is funded",
    )
    reserve_ratio_haircut_percent: int = Field(default=80, gt=0, le=100)

    # Fee market
    priority_fee_multiplier: float = Field(default=3.0, gt=0)
    base_fee_multiplier: float = Field(default=2.5, gt=0)
    legacy_gas_price_multiplier: float = Field(default=1.5, gt=0)
    min_priority_fee_gwei: Decimal = Field(default=Decimal("2"), ge=0)
    max_priority_fee_gwei: Decimal = Field(default=Decimal("50"), ge=0)

    # Gas limits
    gas_limit_buffer_percent: int = Field(default=30, ge=0)
    gas_estimate_attempts: int = Field(default=3, ge=1)
    gas_estimate_backoff_seconds: float = Field(default=0.5, ge=0)
    approve_gas_limit: int = Field(default=60_000, gt=0)
    swap_gas_limit: int = Field(default=300_000, gt=0)
    add_liquidity_gas_limit: int = Field(default=400_000, gt=0)
    fallback_gas_limit: int = Field(default=200_000, gt=0)

    # Relay
    simulate_method: str = Field(default="eth_callBundle")
    send_method: str = Field(default="eth_sendBundle")
    send_max_retries: int = Field(default=3, ge=1)
    send_backoff_seconds: float = Field(default=1.0, ge=0)
    relay_timeout_seconds: float = Field(default=30.0, gt=0)
    rpc_timeout_seconds: float = Field(default=30.0, gt=0)

    # Inclusion monitoring
    inclusion_timeout_seconds: float = Field(default=60.0, gt=0)
    inclusion_poll_seconds: float = Field(default=1.0, gt=0)
    progress_interval_seconds: float = Field(default=5.0, gt=0)

    @field_validator("router_address", "weth_address", "token_address")
    @classmethod
    def _checksum(cls, value: str) -> str:
        if not is_hex_address(value):
            raise ValueError(f"invalid address: {value}")
        return to_checksum_address(value)

    @field_validator("slippage")
    @classmethod
    def _slippage_range(cls, value: float) -> float:
        if not 0 <= value < 1:
            raise ValueError("slippage must be in [0, 1)")
        return value

    @model_validator(mode="after")
    def _priority_bounds(self) -> "Settings":
        if self.min_priority_fee_gwei > self.max_priority_fee_gwei:
            raise ValueError("min_priority_fee_gwei must not exceed max_priority_fee_gwei")
        return self

    @property
    def eth_amount_wei(self) -> int:
        return parse_ether(self.eth_amount)

    @property
    def min_priority_fee_wei(self) -> int:
        return gwei_to_wei(self.min_priority_fee_gwei)

    @property
    def max_priority_fee_wei(self) -> int:
        return gwei_to_wei(self.max_priority_fee_gwei)

    @property
    def has_keys(self) -> bool:
        """True when both keys were supplied and are not the placeholders."""
        return (
            bool(self.eoa_private_key)
            and bool(self.flashbots_signer_key)
            and self.eoa_private_key != PLACEHOLDER_EOA_KEY
            and self.flashbots_signer_key != PLACEHOLDER_SIGNER_KEY
        )

    def default_gas_limit(self, operation: str) -> int:
        limits = {
            "approve": self.approve_gas_limit,
            "swap": self.swap_gas_limit,
            "add_liquidity": self.add_liquidity_gas_limit,
        }
        return limits.get(operation, self.fallback_gas_limit)

    def buffered(self, gas_limit: int) -> int:
        """Apply the configured percentage buffer to a gas limit."""
        return gas_limit * (100 + self.gas_limit_buffer_percent) // 100
