import os

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field
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
        """Pick up the Vite-era environment variable names."""

        super().model_post_init(__context)

        if not self.mee_api_key:
            fallback = os.getenv("VITE_BICONOMY_API_KEY") or os.getenv("BICONOMY_API_KEY")
            if fallback:
                object.__setattr__(self, "mee_api_key", fallback)

    log_level: str = Field(default="INFO", description="Logging level")

    # Network
    network_mode: str = Field(
        default="testnet",
        description="testnet or mainnet; selects the default supported chain set",
        validation_alias=AliasChoices("network_mode", "VITE_NETWORK_MODE"),
    )
    supported_chain_ids: Optional[List[int]] = Field(
        default=None,
        description="Override the supported chain ids for the current network mode",
    )

    # Execution relay (Biconomy MEE)
    mee_base_url: str = Field(
        default="https://network.biconomy.io",
        description="Base URL of the execution relay",
    )
    mee_api_key: str = Field(default="", description="Relay API key (required for mainnet sponsorship)")
    mee_timeout_seconds: float = Field(default=30.0, description="Per-request relay timeout")
    explorer_base_url: str = Field(
        default="https://meescan.biconomy.io/details",
        description="Explorer base URL used to build supertransaction links",
    )
    validate_supported_chains: bool = Field(
        default=True,
        description="Ask the relay which chains it serves before requesting a quote",
    )

    # Delegation
    delegate_contract_address: str = Field(
        default="0x000000004F43C49e93C970E84001853a70923B03",
        description="Smart account implementation the user's EOA delegates to",
    )
    use_universal_authorization: bool = Field(
        default=False,
        description="Sign one chainId=0 authorization instead of one per chain",
    )

    # Confirmation / status
    receipt_timeout_seconds: float = Field(
        default=300.0,
        ge=1,
        description="How long to wait for a terminal receipt before reporting the bundle as still processing",
    )
    receipt_poll_interval_seconds: float = Field(default=2.0, gt=0, description="Receipt polling interval")
    status_reset_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Cool-down before a finished flow returns to idle",
    )

    # Bridge policy
    bridge_fill_deadline_seconds: int = Field(
        default=3600,
        ge=60,
        description="Across fill deadline, relative to the quote timestamp",
    )
    bridge_exclusivity_deadline: int = Field(default=0, ge=0, description="Across exclusivity window")

    # Address book overrides
    marketplace_addresses: Dict[int, str] = Field(
        default_factory=dict,
        description="Per-chain marketplace contract overrides, merged over the built-in table",
    )

    @property
    def is_testnet(self) -> bool:
        return self.network_mode.lower() != "mainnet"

    @property
    def has_mee_api_key(self) -> bool:
        return bool(self.mee_api_key)


# Global settings instance
settings = Settings()
