"""Test configuration and fixtures."""

import logging
from unittest.mock import MagicMock

import pytest

from payment_processor.core.config import Settings, get_settings
from payment_processor.processors import (
    MockPaymentProcessor,
    StripePaymentProcessor,
    reset_payment_processor,
)

CREATED_EPOCH = 1700000000
CREATED_ISO = "2023-11-14T22:13:20Z"


@pytest.fixture(autouse=True)
def clear_caches():
    """Never leak cached settings or processors between tests."""
    get_settings.cache_clear()
    reset_payment_processor()
    yield
    get_settings.cache_clear()
    reset_payment_processor()


@pytest.fixture
def settings():
    """Staging settings with a test key; .env files are ignored."""
    return Settings(
        _env_file=None,
        env_mode="staging",
        stripe_secret_key="sk_test_123",
        stripe_currency="usd",
    )


@pytest.fixture
def dev_settings():
    return Settings(_env_file=None, env_mode="development", mock_failure_rate=0.0)


@pytest.fixture
def stripe_sdk():
    """Fake Stripe SDK exposing the resource classes the processor uses."""
    return MagicMock(name="stripe")


@pytest.fixture
def test_logger():
    return logging.getLogger("tests.processor")


@pytest.fixture
def processor(settings, stripe_sdk, test_logger):
    return StripePaymentProcessor(settings=settings, sdk=stripe_sdk, logger=test_logger)


@pytest.fixture
def mock_processor(dev_settings):
    return MockPaymentProcessor(settings=dev_settings)


def make_charge(**overrides):
    """Stripe-shaped charge payload."""
    charge = {
        "id": "ch_test_123",
        "object": "charge",
        "amount": 2999,
        "currency": "usd",
        "captured": True,
        "balance_transaction": "txn_test_123",
        "created": CREATED_EPOCH,
        "statement_descriptor": None,
        "status": "succeeded",
        "metadata": {},
    }
    charge.update(overrides)
    return charge


def make_customer(**overrides):
    customer = {
        "id": "cus_test_123",
        "object": "customer",
        "email": "jane@example.com",
        "created": CREATED_EPOCH,
        "invoice_settings": {"default_payment_method": "pm_test_123"},
        "metadata": {},
    }
    customer.update(overrides)
    return customer


def make_subscription(**overrides):
    subscription = {
        "id": "sub_test_123",
        "object": "subscription",
        "customer": "cus_test_123",
        "status": "active",
        "cancel_at_period_end": False,
        "items": {
            "object": "list",
            "data": [{"id": "si_test_123", "price": {"id": "price_basic"}, "quantity": 1}],
        },
    }
    subscription.update(overrides)
    return subscription
