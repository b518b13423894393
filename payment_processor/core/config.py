"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports three modes:
    - DEVELOPMENT: Uses the in-memory mock processor (no API keys needed)
    - STAGING: Uses Stripe with test keys (sk_test_...)
    - PRODUCTION: Uses Stripe with live keys (sk_live_...)

The ENV_MODE variable controls which payment processor the factory builds,
enabling seamless switching between local testing and a real Stripe account.

Usage:
    from payment_processor.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Mock processor
    else:
        # Stripe processor
"""

import logging
import sys
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with the mock processor
        PRODUCTION: Live Stripe account
        STAGING: Stripe account in test mode
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Processor settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Sensitive values (API keys) should NEVER be committed to version control.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging, including request/response snapshots

        # Stripe
        stripe_secret_key: Stripe API secret key
        stripe_api_version: Pinned Stripe API version
        stripe_currency: Default ISO 4217 currency for charges
        stripe_max_network_retries: Retries performed by the Stripe SDK itself

        # Normalization
        processor_label: Display label used when a charge has no descriptor

        # Mock
        mock_failure_rate: Probability of a simulated decline (0.0-1.0)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # STRIPE PAYMENT GATEWAY
    # ==========================================================================

    stripe_secret_key: Optional[str] = Field(
        default=None,
        description="Stripe API secret key (sk_live_... or sk_test_...)"
    )
    stripe_api_version: str = Field(
        default="2023-10-16",
        description="Stripe API version pinned for every request"
    )
    stripe_currency: str = Field(
        default="usd",
        description="Default currency for charges"
    )
    stripe_max_network_retries: int = Field(
        default=2,
        ge=0,
        description="Network retries handled by the Stripe SDK"
    )

    # ==========================================================================
    # RESPONSE NORMALIZATION
    # ==========================================================================

    processor_label: str = Field(
        default="Stripe",
        description="Processor label used when a charge carries no statement descriptor"
    )

    # ==========================================================================
    # MOCK PROCESSOR
    # ==========================================================================

    mock_failure_rate: float = Field(
        default=0.0,
        description="Probability of a simulated decline in development mode"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("mock_failure_rate")
    @classmethod
    def validate_failure_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("mock_failure_rate must be between 0.0 and 1.0")
        return v

    @field_validator("stripe_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Stripe expects lowercase ISO 4217 codes."""
        return v.strip().lower()

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def is_staging(self) -> bool:
        """Check if running in staging mode."""
        return self.env_mode == EnvironmentMode.STAGING

    @property
    def use_real_services(self) -> bool:
        """Check if the real Stripe API should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.stripe_secret_key:
                missing.append("STRIPE_SECRET_KEY")
            elif self.is_production and self.stripe_secret_key.startswith("sk_test_"):
                missing.append("STRIPE_SECRET_KEY (live key required in production)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded only once so every processor built by the factory
    sees the same configuration.

    Returns:
        Settings: Configured application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.env_mode)
        EnvironmentMode.DEVELOPMENT
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    # Debug mode enables the request/response snapshots in the processors
    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger("payment_processor")


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
