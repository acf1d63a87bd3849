"""
Configuration management via environment variables.

This module loads configuration from .env file using python-dotenv.
All configuration values are accessed through the Settings class.

Provider credentials and chain credentials are optional: a missing
provider key makes that adapter fail per call (which triggers fallback),
and missing chain settings disable minting (placeholder tx hash).
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load .env file from project root
# This must happen before accessing os.environ
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    frozen=True makes the dataclass immutable; tests derive variants
    with dataclasses.replace().

    Attributes:
        app_name: Application identifier for logging
        app_env: Environment name (development, staging, production)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        data_dir: Root directory of the JSON stores
        default_model: Provider used when the request names none
        provider_timeout_seconds: Hard deadline for one provider call
        gated_context: Context name subject to the free-use quota
        free_uses: Free requests per wallet before the subscription check
        default_recipient: Wallet credited when the request carries none
    """
    # Application settings
    app_name: str
    app_env: str
    log_level: str
    log_dir: Path
    data_dir: Path

    # Mistral
    mistral_api_key: str
    mistral_model: str
    mistral_api_url: str
    mistral_max_tokens: int

    # Anthropic
    anthropic_api_key: str
    anthropic_model: str
    anthropic_api_url: str
    anthropic_api_version: str
    anthropic_max_tokens: int

    # Shared LLM settings
    llm_temperature: float
    provider_timeout_seconds: float
    default_model: str
    system_prompt: str

    # Rate limiting
    rate_limit_requests: int
    rate_limit_period_seconds: int

    # Access gate
    gated_context: str
    free_uses: int
    nonce_ttl_seconds: int

    # Mint side effect
    default_recipient: str
    rpc_url: str
    private_key: str
    token_address: str
    network_name: str
    explorer_tx_url: str
    mint_timeout_seconds: float

    # Uploads and middleware
    max_upload_bytes: int
    enable_audit_logging: bool

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def minting_enabled(self) -> bool:
        return bool(self.rpc_url and self.private_key and self.token_address)


def _get_env(key: str, default: Optional[str] = None) -> str:
    """
    Get environment variable with optional default.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value

    Raises:
        ValueError: If required variable is not set and no default provided
    """
    value = os.environ.get(key, default)
    if value is None:
        raise ValueError(
            f"Required environment variable '{key}' is not set. "
            f"Please check your .env file."
        )
    return value


def _get_path(key: str, default: str) -> Path:
    path = Path(_get_env(key, default))
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once at startup; call get_settings.cache_clear()
    after changing the environment (tests do this).

    Returns:
        Settings instance with all configuration values
    """
    return Settings(
        # Application
        app_name=_get_env("APP_NAME", "Rukh"),
        app_env=_get_env("APP_ENV", "development"),
        log_level=_get_env("LOG_LEVEL", "INFO"),
        log_dir=_get_path("LOG_DIR", "logs"),
        data_dir=_get_path("DATA_DIR", "data"),

        # Mistral
        mistral_api_key=_get_env("MISTRAL_API_KEY", ""),
        mistral_model=_get_env("MISTRAL_MODEL", "mistral-large-2411"),
        mistral_api_url=_get_env(
            "MISTRAL_API_URL", "https://api.mistral.ai/v1/chat/completions"
        ),
        mistral_max_tokens=int(_get_env("MISTRAL_MAX_TOKENS", "1000")),

        # Anthropic
        anthropic_api_key=_get_env("ANTHROPIC_API_KEY", ""),
        anthropic_model=_get_env("ANTHROPIC_MODEL", "claude-3-7-sonnet-20250219"),
        anthropic_api_url=_get_env(
            "ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages"
        ),
        anthropic_api_version=_get_env("ANTHROPIC_API_VERSION", "2023-06-01"),
        anthropic_max_tokens=int(_get_env("ANTHROPIC_MAX_TOKENS", "64000")),

        # Shared LLM
        llm_temperature=float(_get_env("LLM_TEMPERATURE", "0.3")),
        provider_timeout_seconds=float(_get_env("PROVIDER_TIMEOUT_SECONDS", "300")),
        default_model=_get_env("DEFAULT_MODEL", "anthropic"),
        system_prompt=_get_env("SYSTEM_PROMPT", ""),

        # Rate limiting
        rate_limit_requests=int(_get_env("RATE_LIMIT_REQUESTS", "50")),
        rate_limit_period_seconds=int(_get_env("RATE_LIMIT_PERIOD_SECONDS", "3600")),

        # Access gate
        gated_context=_get_env("GATED_CONTEXT", "rukh"),
        free_uses=int(_get_env("FREE_USES", "3")),
        nonce_ttl_seconds=int(_get_env("NONCE_TTL_SECONDS", "900")),

        # Mint
        default_recipient=_get_env(
            "DEFAULT_RECIPIENT", "0x446200cB329592134989B615d4C02f9f3c9E970F"
        ),
        rpc_url=_get_env("RPC_URL", ""),
        private_key=_get_env("PRIVATE_KEY", ""),
        token_address=_get_env("TOKEN_ADDRESS", ""),
        network_name=_get_env("NETWORK_NAME", "arbitrum-sepolia"),
        explorer_tx_url=_get_env("EXPLORER_TX_URL", "https://sepolia.arbiscan.io/tx/"),
        mint_timeout_seconds=float(_get_env("MINT_TIMEOUT_SECONDS", "30")),

        # Uploads and middleware
        max_upload_bytes=int(_get_env("MAX_UPLOAD_BYTES", str(1024 * 1024))),
        enable_audit_logging=_get_env("ENABLE_AUDIT_LOGGING", "true").lower() == "true",
    )
