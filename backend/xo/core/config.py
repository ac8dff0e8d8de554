from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """Endpoints and well-known addresses for one TRON network."""

    key: str
    name: str
    full_host: str
    explorer_url: str
    token_address: str


NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(
        key="mainnet",
        name="Mainnet",
        full_host="https://api.trongrid.io",
        explorer_url="https://tronscan.org",
        token_address="TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t",
    ),
    "shasta": NetworkConfig(
        key="shasta",
        name="Shasta Testnet",
        full_host="https://api.shasta.trongrid.io",
        explorer_url="https://shasta.tronscan.org",
        token_address="",
    ),
    "nile": NetworkConfig(
        key="nile",
        name="Nile Testnet",
        full_host="https://nile.trongrid.io",
        explorer_url="https://nile.tronscan.org",
        token_address="",
    ),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    network: str = Field(
        default="shasta",
        description="TRON network key (mainnet|shasta|nile)",
    )
    trongrid_api_key: str | None = Field(
        default=None,
        description="Optional TronGrid API key sent as TRON-PRO-API-KEY",
    )
    prediction_market_address: str = Field(
        default="",
        description="Base58 address of the deployed prediction market contract",
    )
    token_address: str | None = Field(
        default=None,
        description="Base58 address of the stake token; defaults to the network's USDT",
    )
    private_key: str | None = Field(
        default=None,
        description="Hex private key used by the local signing provider",
    )
    fee_limit: int = Field(
        default=100_000_000,
        description="Fee ceiling in sun attached to every mutating call",
        gt=0,
    )
    min_bet_amount: Decimal = Field(
        default=Decimal("1"),
        description="Minimum stake in whole token units",
    )
    max_bet_amount: Decimal = Field(
        default=Decimal("10000"),
        description="Maximum stake in whole token units",
    )
    expiry_options_hours: tuple[int, ...] | str = Field(
        default=(1, 6, 12, 24, 48, 168),
        description="Durations (hours) a creator may pick; comma-separated in the environment",
    )
    open_refresh_interval_seconds: float = Field(
        default=30.0,
        description="Interval between Open view refreshes while a session is connected",
        gt=0,
    )
    balance_refresh_interval_seconds: float = Field(
        default=15.0,
        description="Interval between balance refreshes while connected through a real provider",
        gt=0,
    )
    predictions_page_size: int = Field(
        default=20,
        description="Default page size for the Open and Matched views",
        ge=1,
    )
    platform_fee_percent: Decimal = Field(
        default=Decimal("2"),
        description="Display-only default fee percent shown before the live value is read",
        ge=0,
        le=100,
    )
    over_authorization_multiple: int = Field(
        default=10,
        description="Approvals request this multiple of the amount an action needs",
        ge=1,
    )
    provider_ready_attempts: int = Field(default=10, ge=1)
    provider_ready_interval_seconds: float = Field(default=0.1, ge=0)
    wallet_ready_attempts: int = Field(default=20, ge=1)
    wallet_ready_interval_seconds: float = Field(default=0.25, ge=0)
    initial_balance_refresh_delay_seconds: float = Field(default=0.5, ge=0)
    approval_visibility_attempts: int = Field(
        default=20,
        description="Allowance reads made while waiting for a submitted approval to land",
        ge=1,
    )
    approval_poll_interval_seconds: float = Field(default=1.0, ge=0)
    view_fetch_concurrency: int = Field(
        default=5,
        description="Maximum concurrent record fetches during a view refresh",
        ge=1,
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for TronGrid requests",
        gt=0,
    )

    @field_validator("network")
    @classmethod
    def _validate_network(cls, value: str) -> str:
        key = value.strip().lower()
        if key not in NETWORKS:
            raise ValueError(
                f"network must be one of {', '.join(sorted(NETWORKS))}"
            )
        return key

    @field_validator("expiry_options_hours", mode="before")
    @classmethod
    def _parse_expiry_options(cls, value: Any) -> tuple[int, ...]:
        if value in (None, "", ()):
            return (1, 6, 12, 24, 48, 168)
        if isinstance(value, str):
            value = [token.strip() for token in value.split(",") if token.strip()]
        if isinstance(value, (list, tuple, set)):
            hours: set[int] = set()
            for item in value:
                try:
                    parsed = int(item)
                except (TypeError, ValueError) as exc:
                    raise ValueError("EXPIRY_OPTIONS_HOURS entries must be integers") from exc
                if parsed <= 0:
                    raise ValueError("EXPIRY_OPTIONS_HOURS entries must be positive")
                hours.add(parsed)
            if not hours:
                raise ValueError("EXPIRY_OPTIONS_HOURS must contain at least one value")
            return tuple(sorted(hours))
        raise ValueError(
            "EXPIRY_OPTIONS_HOURS must be provided as a comma-separated string or list of integers"
        )

    @model_validator(mode="after")
    def _validate_bet_bounds(self) -> "Settings":
        if self.min_bet_amount <= 0:
            raise ValueError("min_bet_amount must be positive")
        if self.max_bet_amount < self.min_bet_amount:
            raise ValueError("max_bet_amount must not be below min_bet_amount")
        return self

    @property
    def network_config(self) -> NetworkConfig:
        return NETWORKS[self.network]

    @property
    def resolved_token_address(self) -> str:
        return self.token_address or self.network_config.token_address

    @property
    def fee_rate(self) -> Decimal:
        return self.platform_fee_percent / Decimal(100)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
