from pathlib import Path
from typing import Any, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

MIN_BALANCE_CHECK_INTERVAL_MS = 5_000
MAX_BALANCE_CHECK_INTERVAL_MS = 300_000
DEFAULT_BALANCE_CHECK_INTERVAL_MS = 30_000


def clamp_interval_ms(value: int) -> int:
    """Clamp a monitor interval into the supported [5s, 300s] window."""

    return max(MIN_BALANCE_CHECK_INTERVAL_MS, min(MAX_BALANCE_CHECK_INTERVAL_MS, int(value)))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # RPC endpoint pools (JSON lists when supplied through the environment)
    solana_rpc_urls: List[str] = Field(
        default_factory=lambda: [
            "https://api.mainnet-beta.solana.com",
            "https://solana-rpc.publicnode.com",
            "https://solana.drpc.org",
        ],
        description="Public Solana mainnet JSON-RPC endpoints",
    )
    ethereum_rpc_urls: List[str] = Field(
        default_factory=lambda: [
            "https://ethereum-rpc.publicnode.com",
            "https://eth.llamarpc.com",
            "https://rpc.ankr.com/eth",
            "https://cloudflare-eth.com",
        ],
        description="Public Ethereum mainnet JSON-RPC endpoints",
    )
    arbitrum_rpc_urls: List[str] = Field(
        default_factory=lambda: [
            "https://arb1.arbitrum.io/rpc",
            "https://arbitrum-one-rpc.publicnode.com",
            "https://arbitrum.drpc.org",
        ],
        description="Public Arbitrum One JSON-RPC endpoints",
    )
    avalanche_rpc_urls: List[str] = Field(
        default_factory=lambda: [
            "https://api.avax.network/ext/bc/C/rpc",
            "https://avalanche-c-chain-rpc.publicnode.com",
            "https://avalanche.drpc.org",
        ],
        description="Public Avalanche C-Chain JSON-RPC endpoints",
    )

    # Retry policy overrides
    rpc_max_retries: int = Field(default=3, ge=1, description="Attempts per RPC call")
    rpc_retry_delay_ms: int = Field(default=3000, ge=0, description="Base backoff delay in milliseconds")
    rpc_request_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout per RPC request")

    # Balance monitor
    balance_check_interval_ms: int = Field(
        default=DEFAULT_BALANCE_CHECK_INTERVAL_MS,
        description="Balance monitor tick interval; clamped to 5000-300000",
        validation_alias=AliasChoices(
            "balance_check_interval_ms",
            "BALANCE_CHECK_INTERVAL_MS",
            "VITE_BALANCE_CHECK_INTERVAL_MS",
        ),
    )
    balance_monitor_wallet_pause_ms: int = Field(
        default=500,
        ge=0,
        description="Pause between wallets within one monitor tick",
    )

    # Privacy orchestrator
    blockhash_max_attempts: int = Field(default=3, ge=1, description="Attempts per SDK call on blockhash expiry")
    blockhash_retry_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Wait multiplied by the attempt number after a blockhash expiry",
    )
    deposit_settle_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Initial wait after a deposit before polling the indexer",
    )
    indexing_max_polls: int = Field(default=15, ge=1, description="Private balance polls before giving up")
    indexing_tolerance: float = Field(
        default=0.9,
        gt=0,
        le=1,
        description="Fraction of the deposited amount that counts as arrived",
    )
    indexing_fast_poll_count: int = Field(default=3, ge=0, description="Polls using the longer spacing")
    indexing_fast_poll_interval_seconds: float = Field(default=5.0, ge=0)
    indexing_poll_interval_seconds: float = Field(default=3.0, ge=0)
    circuit_base_path: str = Field(
        default="circuit2/transaction2",
        description="Base path of the proving circuit assets handed to the privacy SDK",
    )

    # Storage
    storage_path: Optional[Path] = Field(
        default=None,
        description="JSON file backing the key/value store; in-memory when unset",
    )

    @field_validator("solana_rpc_urls", "ethereum_rpc_urls", "arbitrum_rpc_urls", "avalanche_rpc_urls")
    @classmethod
    def _strip_urls(cls, value: List[str]) -> List[str]:
        return [url.strip() for url in value if url and url.strip()]

    @property
    def monitor_interval_seconds(self) -> float:
        return clamp_interval_ms(self.balance_check_interval_ms) / 1000.0

    @property
    def rpc_retry_delay_seconds(self) -> float:
        return self.rpc_retry_delay_ms / 1000.0

    def rpc_urls_for(self, network: Any) -> List[str]:
        """Return the configured endpoint list for a network slug or enum."""

        slug = getattr(network, "value", network)
        urls = getattr(self, f"{slug}_rpc_urls", None)
        if urls is None:
            raise KeyError(f"No RPC endpoints configured for network '{slug}'")
        return list(urls)


# Global settings instance
settings = Settings()
