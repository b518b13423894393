"""
Payment Processor Factory

Provides a single entry point for obtaining the payment processor instance.
The rest of the application depends on the PaymentProcessorInterface
contract only and stays agnostic about which adapter is active.

Usage:
    from payment_processor.processors import get_payment_processor

    # Returns MockPaymentProcessor or StripePaymentProcessor based on ENV_MODE
    processor = get_payment_processor()

    response = processor.charge(amount=2999, source="tok_visa")

Environment Switching:
    - ENV_MODE=development → MockPaymentProcessor (no API calls)
    - ENV_MODE=staging → StripePaymentProcessor (test keys)
    - ENV_MODE=production → StripePaymentProcessor (live keys)
"""

import logging
from functools import lru_cache

from payment_processor.core.config import get_settings
from payment_processor.processors.base import (
    BasePaymentProcessor,
    PaymentProcessorInterface,
    ProcessorNotImplementedError,
    ProcessorResponse,
    from_unix_seconds,
)
from payment_processor.processors.mock import MockPaymentProcessor
from payment_processor.processors.stripe import StripePaymentProcessor

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_processor() -> BasePaymentProcessor:
    """
    Get the configured payment processor instance.

    The instance is cached, so every caller shares one long-lived,
    stateless adapter (the mock keeps its in-memory data behind a lock).

    Returns:
        BasePaymentProcessor: Configured payment processor

    Raises:
        ValueError: If staging/production mode but no Stripe key is configured

    Example:
        >>> processor = get_payment_processor()
        >>> processor.get_name()
        'Mock'  # In development mode
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Processor: Using MockPaymentProcessor (development mode)")
        return MockPaymentProcessor(settings=settings)

    logger.info(
        f"Payment Processor: Using StripePaymentProcessor "
        f"({settings.env_mode.value} mode)"
    )

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"Payment Processor: Missing production config: {missing}")

    return StripePaymentProcessor(settings=settings)


def reset_payment_processor() -> None:
    """
    Clear the cached payment processor instance.

    Useful for testing or when configuration changes at runtime.
    The next call to get_payment_processor() will create a new instance.
    """
    get_payment_processor.cache_clear()
    logger.debug("Payment processor cache cleared")


__all__ = [
    "get_payment_processor",
    "reset_payment_processor",
    "PaymentProcessorInterface",
    "BasePaymentProcessor",
    "ProcessorResponse",
    "ProcessorNotImplementedError",
    "from_unix_seconds",
    "MockPaymentProcessor",
    "StripePaymentProcessor",
]
