"""
Device Auth Server Configuration

Centralized configuration management using Pydantic Settings.
All environment variables are loaded here and accessed through the global `settings` instance.
"""

import logging
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.config_loader import get_products_config


class DeviceAuthSettings(BaseSettings):
    """Device auth server settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # ==================== Identity Provider ====================
    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = "https://localhost:3000/authresponse"
    authorize_url: str = "https://www.amazon.com/ap/oa"
    token_url: str = "https://api.amazon.com/auth/o2/token"
    oauth_scope: str = "alexa:all"

    # Disable only for self-signed identity provider chains in development
    validate_cert_chain: bool = True
    token_request_timeout_seconds: float = 30.0

    # ==================== Registration Settings ====================
    registration_ttl_seconds: int = 900  # 15 minutes
    min_poll_interval_ms: int = 1000
    max_pending_registrations: int = 50000
    expiry_check_interval_seconds: float = 5.0

    regcode_num_bytes: int = 12
    state_num_bytes: int = 32

    product_min_length: int = 1
    product_max_length: int = 384
    dsn_min_length: int = 1

    # ==================== Products ====================
    products_config_path: str | None = None

    # ==================== Server ====================
    host: str = "0.0.0.0"
    port: int = 3000
    ssl_keyfile: str | None = None
    ssl_certfile: str | None = None
    ssl_keyfile_password: str | None = None

    # ==================== Logging Settings ====================
    log_level: str = (
        "INFO"  # Default to INFO, can be overridden by LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    )
    log_format: str = "%(asctime)s,p%(process)s,{%(filename)s:%(lineno)d},%(levelname)s,%(message)s"

    @field_validator(
        "registration_ttl_seconds",
        "min_poll_interval_ms",
        "max_pending_registrations",
        "expiry_check_interval_seconds",
        "regcode_num_bytes",
        "state_num_bytes",
        "token_request_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def validate_product_lengths(self) -> "DeviceAuthSettings":
        if self.product_max_length < self.product_min_length:
            raise ValueError(
                f"product_max_length ({self.product_max_length}) must not be smaller than "
                f"product_min_length ({self.product_min_length})"
            )
        return self

    @property
    def products_file_path(self) -> Path:
        """Get path to products.yml file."""
        if self.products_config_path:
            return Path(self.products_config_path)
        return Path(__file__).parent.parent / "products.yml"

    @property
    def products(self) -> dict[str, list[str]]:
        """Get the product -> allowed serial numbers whitelist."""
        return get_products_config(self.products_file_path)

    def configure_logging(self) -> None:
        """Configure application-wide logging with consistent format and level.

        This should be called once at application startup. Individual modules
        use logging.getLogger(__name__) without calling basicConfig again.
        """
        numeric_level = getattr(logging, self.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=numeric_level,
            format=self.log_format,
            force=True,  # Override any existing configuration
        )


# Global settings instance
settings = DeviceAuthSettings()
