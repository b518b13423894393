"""
Mock processor tests: full flows without the Stripe API.
"""

import pytest

from payment_processor.processors import MockPaymentProcessor


@pytest.fixture
def customer(mock_processor):
    response = mock_processor.create_customer(
        email="jane@example.com", payment_method_id="pm_card_visa"
    )
    assert response.error is False
    return response.content


def test_identity(mock_processor):
    assert mock_processor.get_name() == "Mock"
    assert mock_processor.get_processor() is mock_processor
    assert mock_processor.health_check().content["status"] == "ok"


def test_charge_success(mock_processor):
    response = mock_processor.charge(amount=2999, source="tok_visa")

    assert response.error is False
    assert response.content["id"].startswith("ch_mock_")
    assert response.content["amount"] == 2999
    assert response.content["currency"] == "usd"
    assert response.content["processor"] == "Mock"
    assert response.content["created"].endswith("Z")
    assert "statement_descriptor" not in response.content


@pytest.mark.parametrize("source", ["tok_chargeDeclined", "tok_chargeDeclinedInsufficientFunds"])
def test_declining_tokens(mock_processor, source):
    response = mock_processor.charge(amount=2999, source=source)

    assert response.error is True
    assert response.content["error"]["type"] == "card_error"


def test_bogus_source_is_error(mock_processor):
    response = mock_processor.charge(amount=2999, source="bogus")

    assert response.error is True
    assert response.content["error"]["code"] == "resource_missing"


@pytest.mark.parametrize("source", ["card_1MvoiELkdIwHu7ix", "src_1MvoiELkdIwHu7ix", "pm_card_visa"])
def test_card_source_and_payment_method_ids_are_accepted(mock_processor, source):
    response = mock_processor.charge(amount=2999, source=source)

    assert response.error is False
    assert response.content["source"]["id"] == source


def test_non_positive_amount_is_error(mock_processor):
    assert mock_processor.charge(amount=0, source="tok_visa").error is True


def test_failure_rate_one_always_declines(dev_settings):
    processor = MockPaymentProcessor(settings=dev_settings, failure_rate=1.0)

    response = processor.charge(amount=2999, source="tok_visa")

    assert response.error is True
    assert response.content["error"]["code"] in dict(MockPaymentProcessor.DECLINE_REASONS)


def test_unknown_customer_charge_is_error(mock_processor):
    assert mock_processor.charge(amount=100, source="tok_visa", customer_id="cus_nope").error


def test_pre_authorize_then_capture(mock_processor):
    authorized = mock_processor.pre_authorize(amount=2999, source="tok_visa")

    assert authorized.content["captured"] is False
    assert authorized.content["balance_transaction"] is None

    captured = mock_processor.capture(authorized.content["id"])

    assert captured.error is False
    assert captured.content["captured"] is True
    assert captured.content["balance_transaction"].startswith("txn_mock_")


def test_capture_twice_is_error(mock_processor):
    charge = mock_processor.pre_authorize(amount=2999, source="tok_visa").content

    mock_processor.capture(charge["id"])

    assert mock_processor.capture(charge["id"]).error is True


def test_refund_full_and_partial(mock_processor):
    charge = mock_processor.charge(amount=1000, source="tok_visa").content

    partial = mock_processor.refund(charge["id"], amount=400, reason="requested_by_customer")
    rest = mock_processor.refund(charge["id"])
    extra = mock_processor.refund(charge["id"], amount=1)

    assert partial.content["amount"] == 400
    assert rest.content["amount"] == 600
    assert extra.error is True


def test_refund_nonexistent_charge_is_error(mock_processor):
    assert mock_processor.refund("ch_bogus").error is True


def test_customer_lifecycle(mock_processor, customer):
    fetched = mock_processor.get_customer(customer["id"])
    method = mock_processor.get_payment_method(customer["id"])

    assert fetched.content == customer
    assert method.content["id"] == "pm_card_visa"

    updated = mock_processor.update_payment_method(customer["id"], "pm_card_mastercard")

    assert updated.content["invoice_settings"]["default_payment_method"] == "pm_card_mastercard"
    assert mock_processor.get_payment_method(customer["id"]).content["id"] == "pm_card_mastercard"


def test_get_customer_missing(mock_processor):
    response = mock_processor.get_customer("cus_nope")

    assert response.error is True
    assert response.content is None


def test_returned_content_is_a_copy(mock_processor, customer):
    fetched = mock_processor.get_customer(customer["id"]).content
    fetched["email"] = "changed@example.com"

    assert mock_processor.get_customer(customer["id"]).content["email"] == "jane@example.com"


def test_create_payment_intent(mock_processor, customer):
    response = mock_processor.create_payment_intent(
        amount=2999, customer=customer["id"], payment_method="pm_card_visa"
    )

    assert response.error is False
    assert response.content["client_secret"].endswith("_secret_mock")
    assert mock_processor.create_payment_intent(
        amount=2999, customer="cus_nope", payment_method="pm_card_visa"
    ).error


def test_subscription_lifecycle(mock_processor, customer):
    subscription = mock_processor.create_subscription(customer["id"], "price_basic").content
    sub_id = subscription["id"]

    assert mock_processor.get_subscription_customer(sub_id).content["id"] == customer["id"]

    assert mock_processor.cancel_subscription(sub_id).content["cancel_at_period_end"] is True
    assert mock_processor.resume_subscription(sub_id).content["cancel_at_period_end"] is False

    updated = mock_processor.update_subscription_quantity(sub_id, 4).content
    assert updated["quantity"] == 4
    assert updated["items"]["data"][0]["quantity"] == 4

    changed = mock_processor.change_subscription_plan("price_pro", sub_id).content
    assert changed["plan"]["id"] == "price_pro"
    assert changed["items"]["data"][0]["price"]["id"] == "price_pro"

    deleted = mock_processor.delete_subscription(sub_id).content
    assert deleted["status"] == "canceled"
    assert mock_processor.resume_subscription(sub_id).error is True


def test_get_subscription_customer_invalid_subscription(mock_processor):
    assert mock_processor.get_subscription_customer("sub_nope").error is True


def test_subscription_for_unknown_customer_is_error(mock_processor):
    assert mock_processor.create_subscription("cus_nope", "price_basic").error is True


def test_validate_promotion_code(mock_processor):
    mock_processor.add_promotion_code("WELCOME10", percent_off=10)
    mock_processor.add_promotion_code("EXPIRED", active=False, percent_off=50)

    found = mock_processor.validate_promotion_code("WELCOME10")
    inactive = mock_processor.validate_promotion_code("EXPIRED")
    missing = mock_processor.validate_promotion_code("NONEXISTENT")

    assert found.error is False
    assert found.content["coupon"]["percent_off"] == 10
    assert inactive.error is True
    assert missing.error is True
    assert "NONEXISTENT" in missing.content
