"""
Envelope, base scaffold and epoch conversion tests.
"""

import inspect
import time
from datetime import datetime, timezone

import pytest

from payment_processor.processors import MockPaymentProcessor, StripePaymentProcessor
from payment_processor.processors.base import (
    BasePaymentProcessor,
    PaymentProcessorInterface,
    ProcessorNotImplementedError,
    ProcessorResponse,
    from_unix_seconds,
)


class ChargeOnlyProcessor(BasePaymentProcessor):
    """Partial adapter overriding a single operation."""

    name = "ChargeOnly"
    version = "0.1.0"

    def charge(self, amount, source, currency=None, customer_id=None,
               description=None, capture=True, metadata=None):
        response = self.new_response()
        response.content = {"amount": amount, "source": source}
        return response


# =============================================================================
# ENVELOPE
# =============================================================================


def test_response_defaults():
    response = ProcessorResponse()

    assert response.error is False
    assert response.content is None
    assert response.to_dict() == {"error": False, "content": None}


def test_new_response_is_fresh_per_call():
    processor = ChargeOnlyProcessor()

    first = processor.new_response()
    second = processor.new_response()
    first.error = True

    assert first is not second
    assert second.error is False


# =============================================================================
# SCAFFOLD
# =============================================================================


def test_contract_cannot_be_instantiated():
    with pytest.raises(TypeError):
        PaymentProcessorInterface()


def test_partial_adapter_is_instantiable():
    processor = ChargeOnlyProcessor()

    response = processor.charge(amount=100, source="tok_visa")

    assert isinstance(processor, PaymentProcessorInterface)
    assert response.content == {"amount": 100, "source": "tok_visa"}
    assert processor.get_name() == "ChargeOnly"
    assert processor.get_version() == "0.1.0"


@pytest.mark.parametrize(
    "operation, args",
    [
        ("pre_authorize", (100, "tok_visa")),
        ("capture", ("ch_1",)),
        ("refund", ("ch_1",)),
        ("create_payment_intent", (100, "cus_1", "pm_1")),
        ("create_customer", ("a@example.com", "pm_1")),
        ("get_customer", ("cus_1",)),
        ("get_payment_method", ("cus_1",)),
        ("update_payment_method", ("cus_1", "pm_1")),
        ("create_subscription", ("cus_1", "price_1")),
        ("get_subscription", ("sub_1",)),
        ("get_subscription_customer", ("sub_1",)),
        ("cancel_subscription", ("sub_1",)),
        ("resume_subscription", ("sub_1",)),
        ("update_subscription_quantity", ("sub_1", 2)),
        ("delete_subscription", ("sub_1",)),
        ("change_subscription_plan", ("price_2", "sub_1")),
        ("get_processor", ()),
        ("health_check", ()),
    ],
)
def test_unimplemented_operations_raise(operation, args):
    processor = ChargeOnlyProcessor()

    with pytest.raises(ProcessorNotImplementedError) as exc_info:
        getattr(processor, operation)(*args)

    assert exc_info.value.operation == operation
    assert exc_info.value.processor == "ChargeOnly"
    assert operation in str(exc_info.value)
    assert isinstance(exc_info.value, NotImplementedError)


def test_get_logger_prefers_injected_logger(test_logger):
    assert ChargeOnlyProcessor(logger=test_logger).get_logger() is test_logger
    assert ChargeOnlyProcessor().get_logger().name == "payment_processor.processors.base"


@pytest.mark.parametrize(
    "adapter", [BasePaymentProcessor, MockPaymentProcessor, StripePaymentProcessor]
)
@pytest.mark.parametrize("operation", sorted(PaymentProcessorInterface.__abstractmethods__))
def test_adapter_signatures_match_contract(adapter, operation):
    expected = inspect.signature(getattr(PaymentProcessorInterface, operation))

    assert inspect.signature(getattr(adapter, operation)) == expected


# =============================================================================
# EPOCH CONVERSION
# =============================================================================


def test_from_unix_seconds_epoch():
    assert from_unix_seconds(0) == "1970-01-01T00:00:00Z"


def test_from_unix_seconds_now():
    now = int(time.time())
    expected = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    assert from_unix_seconds(now) == expected


def test_from_unix_seconds_negative():
    assert from_unix_seconds(-1) == "1969-12-31T23:59:59Z"


def test_from_unix_seconds_datetime_boundaries():
    assert from_unix_seconds(253402300799) == "9999-12-31T23:59:59Z"
    assert from_unix_seconds(-62135596800) == "0001-01-01T00:00:00Z"


def test_from_unix_seconds_beyond_datetime_range():
    assert from_unix_seconds(253402300800) == "+10000-01-01T00:00:00Z"
    assert from_unix_seconds(-62135596801) == "0000-12-31T23:59:59Z"


def test_from_unix_seconds_int64_extremes():
    assert from_unix_seconds(2**63 - 1) == "+292277026596-12-04T15:30:07Z"
    assert from_unix_seconds(-(2**63)).startswith("-292277022657-01-27T08:29:52")


@pytest.mark.parametrize("value", [1.5, "0", None, True])
def test_from_unix_seconds_rejects_non_integers(value):
    with pytest.raises(TypeError):
        from_unix_seconds(value)
