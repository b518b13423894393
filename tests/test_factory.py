"""
Factory, settings and module metadata tests.
"""

import logging

import pytest
import stripe
from pydantic import ValidationError

import payment_processor
from payment_processor.core.config import EnvironmentMode, Settings
from payment_processor.processors import (
    MockPaymentProcessor,
    StripePaymentProcessor,
    get_payment_processor,
)


def test_development_mode_uses_mock(monkeypatch):
    monkeypatch.setenv("ENV_MODE", "development")

    processor = get_payment_processor()

    assert isinstance(processor, MockPaymentProcessor)
    assert get_payment_processor() is processor


def test_staging_mode_uses_stripe(monkeypatch):
    monkeypatch.setenv("ENV_MODE", "staging")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_factory")
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(stripe, "api_version", stripe.api_version)
    monkeypatch.setattr(stripe, "max_network_retries", stripe.max_network_retries)

    processor = get_payment_processor()

    assert isinstance(processor, StripePaymentProcessor)
    assert processor.get_processor().api_key == "sk_test_factory"


def test_production_with_test_key_warns(monkeypatch, caplog):
    monkeypatch.setenv("ENV_MODE", "production")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_factory")
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(stripe, "api_version", stripe.api_version)
    monkeypatch.setattr(stripe, "max_network_retries", stripe.max_network_retries)

    with caplog.at_level(logging.WARNING, logger="payment_processor.processors"):
        processor = get_payment_processor()

    assert isinstance(processor, StripePaymentProcessor)
    assert any(
        "Missing production config" in record.getMessage() and "live key" in record.getMessage()
        for record in caplog.records
    )


def test_staging_with_test_key_does_not_warn(monkeypatch, caplog):
    monkeypatch.setenv("ENV_MODE", "staging")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_factory")
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(stripe, "api_version", stripe.api_version)
    monkeypatch.setattr(stripe, "max_network_retries", stripe.max_network_retries)

    with caplog.at_level(logging.WARNING, logger="payment_processor.processors"):
        get_payment_processor()

    assert not any("Missing production config" in r.getMessage() for r in caplog.records)


def test_staging_mode_without_key_fails(monkeypatch, caplog):
    monkeypatch.setenv("ENV_MODE", "staging")
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)

    with caplog.at_level(logging.WARNING, logger="payment_processor.processors"):
        with pytest.raises(ValueError, match="STRIPE_SECRET_KEY"):
            get_payment_processor()

    assert any("STRIPE_SECRET_KEY" in r.getMessage() for r in caplog.records)


def test_env_mode_is_case_insensitive():
    settings = Settings(_env_file=None, env_mode="PRODUCTION")

    assert settings.env_mode == EnvironmentMode.PRODUCTION
    assert settings.is_production
    assert settings.use_real_services


def test_invalid_env_mode_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, env_mode="qa")


def test_failure_rate_is_bounded():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, mock_failure_rate=1.5)


def test_currency_is_normalized():
    assert Settings(_env_file=None, stripe_currency=" EUR ").stripe_currency == "eur"


def test_validate_production_config():
    assert Settings(_env_file=None, env_mode="development").validate_production_config() == []
    assert Settings(
        _env_file=None, env_mode="staging", stripe_secret_key=None
    ).validate_production_config() == [
        "STRIPE_SECRET_KEY"
    ]
    live_with_test_key = Settings(
        _env_file=None, env_mode="production", stripe_secret_key="sk_test_123"
    )
    assert live_with_test_key.validate_production_config()


def test_module_info():
    info = payment_processor.get_module_info()

    assert info["name"] == "payment_processor"
    assert info["version"] == payment_processor.__version__
    assert info["description"]
