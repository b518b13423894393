"""
Mock Payment Processor Implementation

Simulates Stripe-like payment processing without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Exercise the complete charge/customer/subscription flow locally
    - Run tests without a Stripe account or network access
    - Develop without internet connectivity

Behavior:
    - Keeps charges, customers, payment methods, subscriptions and
      promotion codes in memory
    - Declines Stripe's decline test tokens (tok_chargeDeclined, ...)
    - Randomly declines a configurable share of charges (MOCK_FAILURE_RATE)
    - Generates Stripe-like IDs (ch_mock_xxx, cus_mock_xxx, sub_mock_xxx)
    - Reports failures with Stripe-shaped error payloads
"""

import copy
import logging
import random
import threading
import time
import uuid
from typing import Any, Optional

from payment_processor import __version__
from payment_processor.core.config import Settings, get_settings
from payment_processor.processors.base import (
    BasePaymentProcessor,
    ProcessorResponse,
    from_unix_seconds,
)

logger = logging.getLogger(__name__)


class MockPaymentProcessor(BasePaymentProcessor):
    """
    In-memory implementation of the payment processor contract.

    State lives on the instance and is guarded by a lock, since the
    factory shares one instance across callers.

    Attributes:
        failure_rate: Probability of a simulated charge decline (0.0-1.0)

    Example:
        >>> processor = MockPaymentProcessor(failure_rate=0.0)
        >>> response = processor.charge(amount=2999, source="tok_visa")
        >>> response.error
        False
    """

    name = "Mock"
    version = __version__

    # Simulated failure reasons (mimics real Stripe decline codes)
    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("expired_card", "Your card has expired."),
        ("incorrect_cvc", "Your card's security code is incorrect."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    # Stripe test tokens that always decline
    DECLINING_SOURCES = {
        "tok_chargeDeclined": DECLINE_REASONS[0],
        "tok_chargeDeclinedInsufficientFunds": DECLINE_REASONS[1],
        "tok_chargeDeclinedExpiredCard": DECLINE_REASONS[2],
        "tok_chargeDeclinedIncorrectCvc": DECLINE_REASONS[3],
        "tok_chargeDeclinedProcessingError": DECLINE_REASONS[4],
    }

    SOURCE_PREFIXES = ("tok_", "pm_", "card_", "src_")

    def __init__(
        self,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
        failure_rate: Optional[float] = None,
    ):
        """
        Initialize the mock processor.

        Args:
            settings: Settings to use (defaults to get_settings())
            logger: Logger for request/response snapshots
            failure_rate: Overrides MOCK_FAILURE_RATE when given
        """
        super().__init__(logger=logger)
        self._settings = settings or get_settings()
        self.failure_rate = (
            self._settings.mock_failure_rate if failure_rate is None else failure_rate
        )
        self._currency = self._settings.stripe_currency

        self._lock = threading.Lock()
        self._charges: dict[str, dict] = {}
        self._refunds: dict[str, dict] = {}
        self._customers: dict[str, dict] = {}
        self._payment_methods: dict[str, dict] = {}
        self._payment_intents: dict[str, dict] = {}
        self._subscriptions: dict[str, dict] = {}
        self._promotion_codes: dict[str, dict] = {}

        self.get_logger().info(
            f"MockPaymentProcessor initialized (failure_rate={self.failure_rate:.0%})"
        )

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    @staticmethod
    def _generate_id(prefix: str) -> str:
        """Generate a Stripe-like object ID."""
        return f"{prefix}_mock_{uuid.uuid4().hex[:24]}"

    @staticmethod
    def _now() -> int:
        return int(time.time())

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    def _get_random_decline(self) -> tuple[str, str]:
        """Get a random decline reason."""
        return random.choice(self.DECLINE_REASONS)

    def _success(self, content: Any) -> ProcessorResponse:
        response = self.new_response()
        response.content = copy.deepcopy(content)
        self._log_debug("response", response.to_dict())
        return response

    def _failure(
        self,
        code: str,
        message: str,
        error_type: str = "invalid_request_error",
        param: Optional[str] = None,
    ) -> ProcessorResponse:
        """Envelope carrying a Stripe-shaped error payload."""
        response = self.new_response()
        response.content = {
            "error": {"type": error_type, "code": code, "message": message, "param": param}
        }
        response.error = True
        self.get_logger().debug(f"Mock: {code} - {message}")
        return response

    def _missing(self, resource: str, object_id: str, param: Optional[str] = None) -> ProcessorResponse:
        return self._failure(
            "resource_missing", f"No such {resource}: '{object_id}'", param=param
        )

    def _lookup_failure(self) -> ProcessorResponse:
        response = self.new_response()
        response.error = True
        return response

    def _present_charge(self, charge: dict) -> dict:
        # Same shape the Stripe processor hands back for charges
        presented = {key: value for key, value in charge.items() if key != "statement_descriptor"}
        presented["processor"] = charge.get("statement_descriptor") or self.get_name()
        presented["created"] = from_unix_seconds(charge["created"])
        return presented

    def _ensure_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        method = self._payment_methods.setdefault(
            payment_method_id,
            {
                "id": payment_method_id,
                "object": "payment_method",
                "type": "card",
                "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2034},
                "created": self._now(),
            },
        )
        method["customer"] = customer_id

    # ==========================================================================
    # IDENTITY
    # ==========================================================================

    def get_processor(self) -> Any:
        """The mock is its own backend."""
        return self

    def health_check(self) -> ProcessorResponse:
        """Mock health check always succeeds."""
        logger.debug("Mock: Health check passed")
        return self._success({"status": "ok", "processor": self.get_name()})

    # ==========================================================================
    # CHARGING
    # ==========================================================================

    def pre_authorize(
        self,
        amount: int,
        source: str,
        currency: Optional[str] = None,
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Simulate an authorization; the charge stays uncaptured."""
        return self.charge(
            amount=amount,
            source=source,
            currency=currency,
            customer_id=customer_id,
            description=description,
            capture=False,
            metadata=metadata,
        )

    def charge(
        self,
        amount: int,
        source: str,
        currency: Optional[str] = None,
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        capture: bool = True,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """
        Simulate a charge.

        Behavior:
            - Rejects non-positive amounts and unknown customers
            - Declines Stripe's decline test tokens and malformed sources
            - Randomly declines based on failure_rate
        """
        currency = (currency or self._currency).lower()
        self._log_debug("charge request", {"amount": amount, "source": source, "capture": capture})

        if amount is None or amount <= 0:
            return self._failure("amount_too_small", "Amount must be greater than 0", param="amount")

        if source in self.DECLINING_SOURCES:
            code, message = self.DECLINING_SOURCES[source]
            return self._failure(code, message, error_type="card_error")

        if not isinstance(source, str) or not source.startswith(self.SOURCE_PREFIXES):
            return self._missing("token", source, param="source")

        if self._should_fail():
            code, message = self._get_random_decline()
            return self._failure(code, message, error_type="card_error")

        with self._lock:
            if customer_id is not None and customer_id not in self._customers:
                return self._missing("customer", customer_id, param="customer")

            charge = {
                "id": self._generate_id("ch"),
                "object": "charge",
                "amount": amount,
                "amount_captured": amount if capture else 0,
                "amount_refunded": 0,
                "balance_transaction": self._generate_id("txn") if capture else None,
                "captured": capture,
                "created": self._now(),
                "currency": currency,
                "customer": customer_id,
                "description": description,
                "metadata": dict(metadata or {}),
                "paid": True,
                "refunded": False,
                "source": {"id": source, "object": "card"},
                "statement_descriptor": None,
                "status": "succeeded",
            }
            self._charges[charge["id"]] = charge

        self.get_logger().info(
            f"Mock: Charge {'captured' if capture else 'authorized'} - "
            f"{charge['id']} - {amount} {currency}"
        )
        return self._success(self._present_charge(charge))

    def capture(self, charge_id: str, metadata: Optional[dict] = None) -> ProcessorResponse:
        """Capture an authorized charge; a second capture is rejected."""
        with self._lock:
            charge = self._charges.get(charge_id)
            if charge is None:
                return self._missing("charge", charge_id)
            if charge["captured"]:
                return self._failure(
                    "charge_already_captured",
                    f"Charge {charge_id} has already been captured.",
                )
            charge["captured"] = True
            charge["amount_captured"] = charge["amount"]
            charge["balance_transaction"] = self._generate_id("txn")
            captured = dict(charge)

        self.get_logger().info(f"Mock: Charge captured - {charge_id}")
        return self._success(captured)

    def refund(
        self,
        charge: str,
        amount: Optional[int] = None,
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Simulate refunding a charge, fully or partially."""
        with self._lock:
            record = self._charges.get(charge)
            if record is None:
                return self._missing("charge", charge, param="charge")

            remaining = record["amount"] - record["amount_refunded"]
            refund_amount = remaining if amount is None else amount
            if refund_amount <= 0 or refund_amount > remaining:
                return self._failure(
                    "amount_too_large" if refund_amount > 0 else "amount_too_small",
                    f"Refund amount ({refund_amount}) must be between 1 and {remaining}.",
                    param="amount",
                )

            refund = {
                "id": self._generate_id("re"),
                "object": "refund",
                "amount": refund_amount,
                "charge": charge,
                "created": self._now(),
                "currency": record["currency"],
                "metadata": dict(metadata or {}),
                "reason": reason,
                "status": "succeeded",
            }
            self._refunds[refund["id"]] = refund
            record["amount_refunded"] += refund_amount
            record["refunded"] = record["amount_refunded"] == record["amount"]

        self.get_logger().info(f"Mock: Refund processed - {refund['id']}")
        return self._success(refund)

    # ==========================================================================
    # PAYMENT SETUP
    # ==========================================================================

    def create_payment_intent(
        self,
        amount: int,
        customer: str,
        payment_method: str,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """
        Simulate creating a payment intent.

        The client_secret is fake and won't work with Stripe.js.
        """
        if amount is None or amount <= 0:
            return self._failure("amount_too_small", "Amount must be greater than 0", param="amount")

        with self._lock:
            if customer not in self._customers:
                return self._missing("customer", customer, param="customer")
            if payment_method not in self._payment_methods:
                return self._missing("PaymentMethod", payment_method, param="payment_method")

            intent_id = self._generate_id("pi")
            intent = {
                "id": intent_id,
                "object": "payment_intent",
                "amount": amount,
                "client_secret": f"{intent_id}_secret_mock",
                "created": self._now(),
                "currency": (currency or self._currency).lower(),
                "customer": customer,
                "description": description,
                "metadata": dict(metadata or {}),
                "payment_method": payment_method,
                "setup_future_usage": "off_session",
                "status": "requires_confirmation",
            }
            self._payment_intents[intent_id] = intent

        self.get_logger().debug(f"Mock: Created payment intent {intent_id}")
        return self._success(intent)

    # ==========================================================================
    # CUSTOMER LIFECYCLE
    # ==========================================================================

    def create_customer(
        self,
        email: str,
        payment_method_id: str,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Create a customer and attach its default payment method."""
        if not email:
            return self._failure("parameter_missing", "Missing required param: email.", param="email")
        if not payment_method_id or not payment_method_id.startswith("pm_"):
            return self._missing("PaymentMethod", payment_method_id, param="payment_method")

        with self._lock:
            customer = {
                "id": self._generate_id("cus"),
                "object": "customer",
                "created": self._now(),
                "description": description,
                "email": email,
                "invoice_settings": {"default_payment_method": payment_method_id},
                "metadata": dict(metadata or {}),
            }
            self._customers[customer["id"]] = customer
            self._ensure_payment_method(payment_method_id, customer["id"])

        self.get_logger().info(f"Mock: Customer created - {customer['id']}")
        return self._success(customer)

    def get_customer(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Unknown customers come back with ``error`` set and no content."""
        with self._lock:
            customer = self._customers.get(provider_customer_id)
            if customer is None:
                return self._lookup_failure()
            return self._success(customer)

    def get_payment_method(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        customer = self.get_customer(provider_customer_id, metadata)
        if customer.error:
            return customer

        payment_method_id = customer.content["invoice_settings"].get("default_payment_method")
        with self._lock:
            method = self._payment_methods.get(payment_method_id)
            if method is None:
                return self._lookup_failure()
            return self._success(method)

    def update_payment_method(
        self,
        provider_customer_id: str,
        payment_method_id: str,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Attach ``payment_method_id`` and make it the customer's default."""
        if not payment_method_id or not payment_method_id.startswith("pm_"):
            return self._missing("PaymentMethod", payment_method_id, param="payment_method")

        with self._lock:
            customer = self._customers.get(provider_customer_id)
            if customer is None:
                return self._missing("customer", provider_customer_id)
            self._ensure_payment_method(payment_method_id, provider_customer_id)
            customer["invoice_settings"]["default_payment_method"] = payment_method_id
            return self._success(customer)

    # ==========================================================================
    # SUBSCRIPTION LIFECYCLE
    # ==========================================================================

    def create_subscription(
        self,
        provider_customer_id: str,
        plan_id: str,
        quantity: int = 1,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Create an active subscription with a single item for ``plan_id``."""
        if quantity < 1:
            return self._failure("parameter_invalid_integer", "Quantity must be at least 1.", param="quantity")

        with self._lock:
            if provider_customer_id not in self._customers:
                return self._missing("customer", provider_customer_id, param="customer")

            subscription = {
                "id": self._generate_id("sub"),
                "object": "subscription",
                "cancel_at_period_end": False,
                "canceled_at": None,
                "created": self._now(),
                "customer": provider_customer_id,
                "items": {
                    "object": "list",
                    "data": [
                        {
                            "id": self._generate_id("si"),
                            "object": "subscription_item",
                            "price": {"id": plan_id, "object": "price"},
                            "quantity": quantity,
                        }
                    ],
                },
                "metadata": dict(metadata or {}),
                "plan": {"id": plan_id, "object": "plan"},
                "quantity": quantity,
                "status": "active",
            }
            self._subscriptions[subscription["id"]] = subscription

        self.get_logger().info(f"Mock: Subscription created - {subscription['id']}")
        return self._success(subscription)

    def get_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                return self._lookup_failure()
            return self._success(subscription)

    def get_subscription_customer(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        subscription = self.get_subscription(subscription_id, metadata)
        if subscription.error:
            return subscription
        return self.get_customer(subscription.content["customer"], metadata)

    def _update_subscription(self, subscription_id: str, changes: dict) -> ProcessorResponse:
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                return self._missing("subscription", subscription_id)
            if subscription["status"] == "canceled":
                return self._failure(
                    "resource_missing",
                    f"Subscription {subscription_id} has been canceled and cannot be updated.",
                )

            item = subscription["items"]["data"][0]
            if "quantity" in changes:
                item["quantity"] = subscription["quantity"] = changes.pop("quantity")
            if "price" in changes:
                plan_id = changes.pop("price")
                item["price"] = {"id": plan_id, "object": "price"}
                subscription["plan"] = {"id": plan_id, "object": "plan"}
            subscription.update(changes)
            return self._success(subscription)

    def cancel_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Flag the subscription to end with the current period."""
        return self._update_subscription(subscription_id, {"cancel_at_period_end": True})

    def resume_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        return self._update_subscription(subscription_id, {"cancel_at_period_end": False})

    def update_subscription_quantity(
        self, subscription_id: str, quantity: int, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        if quantity < 1:
            return self._failure("parameter_invalid_integer", "Quantity must be at least 1.", param="quantity")
        return self._update_subscription(subscription_id, {"quantity": quantity})

    def change_subscription_plan(
        self, plan_id: str, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        return self._update_subscription(subscription_id, {"price": plan_id})

    def delete_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Cancel immediately; later updates are rejected."""
        return self._update_subscription(
            subscription_id, {"status": "canceled", "canceled_at": self._now()}
        )

    # ==========================================================================
    # PROMOTIONS
    # ==========================================================================

    def add_promotion_code(self, code: str, active: bool = True, **coupon: Any) -> dict:
        """
        Seed a promotion code for validate_promotion_code().

        Args:
            code: Customer-facing code (e.g., "WELCOME10")
            active: Whether the code can be redeemed
            **coupon: Coupon fields such as percent_off or amount_off
        """
        record = {
            "id": self._generate_id("promo"),
            "object": "promotion_code",
            "active": active,
            "code": code,
            "coupon": {"id": self._generate_id("coupon"), "object": "coupon", **coupon},
            "created": self._now(),
        }
        with self._lock:
            self._promotion_codes[code] = record
        return copy.deepcopy(record)

    def validate_promotion_code(self, code: str, metadata: Optional[dict] = None) -> ProcessorResponse:
        with self._lock:
            record = self._promotion_codes.get(code)
            if record is None or not record["active"]:
                response = self.new_response()
                response.error = True
                response.content = f"Promotion code '{code}' was not found."
                return response
            return self._success(record)
