"""
Stripe Payment Processor Implementation

Production adapter using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Every operation forwards its arguments to one Stripe resource call,
turns the outcome into an HTTP-style status and payload, and wraps both
in a ProcessorResponse (status >= 300 marks the envelope as an error).
Stripe errors never escape the adapter.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment

Security Notes:
    - Never log full card numbers or CVCs (only tokens reach this adapter)
    - Retries and backoff are left to the SDK (STRIPE_MAX_NETWORK_RETRIES)
"""

import logging
from typing import Any, Callable, Mapping, Optional

import stripe
from stripe import (
    APIConnectionError,
    AuthenticationError,
    CardError,
    InvalidRequestError,
    StripeError,
)

from payment_processor import __version__
from payment_processor.core.config import Settings, get_settings
from payment_processor.processors.base import (
    BasePaymentProcessor,
    ProcessorResponse,
    from_unix_seconds,
)

logger = logging.getLogger(__name__)

STATUS_OK = 200
STATUS_FAILURE_THRESHOLD = 300


def _to_content(result: Any) -> Any:
    """Turn a Stripe object, nested objects included, into plain data."""
    if isinstance(result, Mapping):
        return {key: _to_content(value) for key, value in result.items()}
    if isinstance(result, list):
        return [_to_content(item) for item in result]
    to_dict = getattr(result, "to_dict", None)
    if callable(to_dict):
        converted = to_dict()
        # newer SDKs return StripeObjects that are no longer dicts
        return _to_content(converted) if isinstance(converted, Mapping) else converted
    return result


def _object_id(value: Any) -> Optional[str]:
    # Stripe returns either an id or the expanded object
    if value is None or isinstance(value, str):
        return value
    return value["id"]


class StripePaymentProcessor(BasePaymentProcessor):
    """
    Stripe implementation of the payment processor contract.

    The instance is meant to be a long-lived singleton: it holds only the
    settings, the SDK handle and the logger, never per-call state.

    Configuration:
        Requires STRIPE_SECRET_KEY. STRIPE_API_VERSION and
        STRIPE_MAX_NETWORK_RETRIES are applied to the SDK on construction.

    Example:
        >>> processor = StripePaymentProcessor()
        >>> response = processor.charge(amount=2999, source="tok_visa")
        >>> response.content["processor"]
        'Stripe'
    """

    name = "Stripe"
    version = __version__

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sdk: Any = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Configure the Stripe SDK from settings.

        Args:
            settings: Settings to use (defaults to get_settings())
            sdk: Stripe SDK handle; the ``stripe`` module unless a fake is injected
            logger: Logger for request/response snapshots

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        super().__init__(logger=logger)
        self._settings = settings or get_settings()

        if not self._settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for the Stripe processor. "
                "Set it in your .env file or environment variables."
            )

        self._sdk = sdk if sdk is not None else stripe
        self._sdk.api_key = self._settings.stripe_secret_key
        self._sdk.api_version = self._settings.stripe_api_version
        self._sdk.max_network_retries = self._settings.stripe_max_network_retries

        self._currency = self._settings.stripe_currency

        self.get_logger().info(
            f"StripePaymentProcessor initialized "
            f"(api_version={self._settings.stripe_api_version})"
        )

    # ==========================================================================
    # SDK PLUMBING
    # ==========================================================================

    def _call(
        self,
        operation: str,
        sdk_call: Callable[..., Any],
        *args: Any,
        context: Optional[dict] = None,
        **params: Any,
    ) -> tuple[int, Any]:
        """
        Run one SDK call and report it as ``(status, content)``.

        ``None`` parameters are dropped so Stripe applies its own defaults.
        ``context`` is only logged, never sent.
        """
        params = {key: value for key, value in params.items() if value is not None}
        self._log_debug(
            f"{operation} request",
            {"args": list(args), "params": params, "context": context},
        )

        log = self.get_logger()
        try:
            result = sdk_call(*args, **params)
        except (CardError, InvalidRequestError) as e:
            log.warning(f"Stripe: {operation} rejected - {e.code}: {e.user_message or e}")
            status, content = self._error_payload(e)
        except AuthenticationError as e:
            log.critical(f"Stripe: Authentication failed during {operation} - {e}")
            status, content = self._error_payload(e)
        except APIConnectionError as e:
            log.error(f"Stripe: Connection error during {operation} - {e}")
            status, content = self._error_payload(e)
        except StripeError as e:
            log.error(f"Stripe: {operation} failed - {e}")
            status, content = self._error_payload(e)
        else:
            status, content = STATUS_OK, _to_content(result)

        self._log_debug(f"{operation} response", {"status": status, "content": content})
        return status, content

    @staticmethod
    def _error_payload(error: StripeError) -> tuple[int, Any]:
        status = error.http_status or 500
        content = error.json_body or {"error": {"message": str(error)}}
        return status, content

    def _respond(self, status: int, content: Any) -> ProcessorResponse:
        response = self.new_response()
        response.content = content
        if status >= STATUS_FAILURE_THRESHOLD:
            response.error = True
        return response

    @staticmethod
    def _exists(status: int, content: Any) -> bool:
        """Success marker for lookups: a live object with an id."""
        if status >= STATUS_FAILURE_THRESHOLD or not content:
            return False
        return bool(content.get("id")) and not content.get("deleted", False)

    @staticmethod
    def _first_item_id(subscription: Mapping) -> Optional[str]:
        items = subscription.get("items") or {}
        data = items.get("data") or []
        if not data:
            return None
        return data[0]["id"]

    # ==========================================================================
    # IDENTITY
    # ==========================================================================

    def get_processor(self) -> Any:
        """Return the configured Stripe SDK handle."""
        return self._sdk

    def health_check(self) -> ProcessorResponse:
        """
        Verify Stripe API connectivity.

        Makes a lightweight account lookup to verify credentials.
        """
        status, content = self._call("health_check", self._sdk.Account.retrieve)
        return self._respond(status, content)

    # ==========================================================================
    # NORMALIZATION
    # ==========================================================================

    def format_charge_response(self, charge: Mapping) -> dict:
        """
        Normalize a Stripe charge for callers.

        - ``processor`` comes from ``statement_descriptor``, then from
          ``calculated_statement_descriptor`` (the text Stripe prints on
          the card statement), then from the configured label; both raw
          descriptor fields are removed
        - ``created`` becomes an ISO-8601 UTC string, or None when absent

        Args:
            charge: Charge payload as returned by Stripe

        Returns:
            dict: A new, normalized charge dictionary
        """
        formatted = dict(charge)
        descriptor = formatted.pop("statement_descriptor", None)
        calculated = formatted.pop("calculated_statement_descriptor", None)
        formatted["processor"] = descriptor or calculated or self._settings.processor_label

        created = formatted.get("created")
        formatted["created"] = from_unix_seconds(created) if created is not None else None
        return formatted

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
        """Authorize without capturing: a charge with ``capture=False``."""
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
        Create a Stripe charge.

        Declines and invalid sources come back as ``error=True`` with
        Stripe's error payload in ``content``.
        """
        status, content = self._call(
            "charge",
            self._sdk.Charge.create,
            amount=amount,
            currency=currency or self._currency,
            source=source,
            customer=customer_id,
            description=description,
            capture=capture,
            metadata=metadata or None,
        )

        if status >= STATUS_FAILURE_THRESHOLD:
            return self._respond(status, content)

        response = self.new_response()
        response.content = self.format_charge_response(content)
        return response

    def capture(self, charge_id: str, metadata: Optional[dict] = None) -> ProcessorResponse:
        status, content = self._call(
            "capture", self._sdk.Charge.capture, charge_id, context=metadata
        )
        return self._respond(status, content)

    def refund(
        self,
        charge: str,
        amount: Optional[int] = None,
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Refund a charge; omitting ``amount`` refunds it in full."""
        status, content = self._call(
            "refund",
            self._sdk.Refund.create,
            charge=charge,
            amount=amount,
            reason=reason,
            metadata=metadata or None,
        )
        return self._respond(status, content)

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
        Create a PaymentIntent that can later be confirmed off-session.

        ``setup_future_usage`` is set so the payment method stays usable
        for recurring billing.
        """
        status, content = self._call(
            "create_payment_intent",
            self._sdk.PaymentIntent.create,
            amount=amount,
            currency=currency or self._currency,
            customer=customer,
            payment_method=payment_method,
            description=description,
            metadata=metadata or None,
            setup_future_usage="off_session",
        )
        return self._respond(status, content)

    def fetch_payment_intent_status(
        self, payment_intent_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Return the id, status and amount of a PaymentIntent."""
        status, content = self._call(
            "fetch_payment_intent_status",
            self._sdk.PaymentIntent.retrieve,
            payment_intent_id,
            context=metadata,
        )
        if status >= STATUS_FAILURE_THRESHOLD:
            return self._respond(status, content)

        response = self.new_response()
        response.content = {
            "id": content.get("id"),
            "status": content.get("status"),
            "amount": content.get("amount"),
            "currency": content.get("currency"),
        }
        return response

    def create_setup_intent(
        self,
        customer: str,
        payment_method_types: Optional[list] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Create a SetupIntent for saving a customer's card off-session."""
        status, content = self._call(
            "create_setup_intent",
            self._sdk.SetupIntent.create,
            customer=customer,
            payment_method_types=payment_method_types or ["card"],
            usage="off_session",
            metadata=metadata or None,
        )
        return self._respond(status, content)

    def get_setup_intent(
        self, setup_intent_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        status, content = self._call(
            "get_setup_intent",
            self._sdk.SetupIntent.retrieve,
            setup_intent_id,
            context=metadata,
        )
        return self._respond(status, content)

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
        """Create a customer and make ``payment_method_id`` its default."""
        status, content = self._call(
            "create_customer",
            self._sdk.Customer.create,
            email=email,
            payment_method=payment_method_id,
            invoice_settings={"default_payment_method": payment_method_id},
            description=description,
            metadata=metadata or None,
        )
        return self._respond(status, content)

    def list_customers(
        self,
        limit: int = 10,
        email: Optional[str] = None,
        starting_after: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """List customers, optionally filtered by email (Stripe caps limit at 100)."""
        status, content = self._call(
            "list_customers",
            self._sdk.Customer.list,
            limit=min(limit, 100),
            email=email,
            starting_after=starting_after,
            context=metadata,
        )
        return self._respond(status, content)

    def get_customer(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """
        Fetch a customer.

        Unknown and deleted customers produce ``error=True`` with no content.
        """
        status, content = self._call(
            "get_customer",
            self._sdk.Customer.retrieve,
            provider_customer_id,
            context=metadata,
        )

        response = self.new_response()
        if not self._exists(status, content):
            response.error = True
            return response

        response.content = content
        return response

    def get_payment_method(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """
        Fetch the customer's default payment method.

        Looks up the customer first; a missing customer or a customer with
        no default payment method yields ``error=True``.
        """
        customer = self.get_customer(provider_customer_id, metadata)
        if customer.error:
            return customer

        invoice_settings = customer.content.get("invoice_settings") or {}
        payment_method_id = _object_id(invoice_settings.get("default_payment_method"))

        if not payment_method_id:
            self.get_logger().info(
                f"Stripe: Customer {provider_customer_id} has no default payment method"
            )
            response = self.new_response()
            response.error = True
            return response

        status, content = self._call(
            "get_payment_method",
            self._sdk.PaymentMethod.retrieve,
            payment_method_id,
            context=metadata,
        )
        return self._respond(status, content)

    def update_payment_method(
        self,
        provider_customer_id: str,
        payment_method_id: str,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Set the default payment method of a customer (it must already be attached)."""
        status, content = self._call(
            "update_payment_method",
            self._sdk.Customer.modify,
            provider_customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
            context=metadata,
        )
        return self._respond(status, content)

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
        status, content = self._call(
            "create_subscription",
            self._sdk.Subscription.create,
            customer=provider_customer_id,
            items=[{"price": plan_id, "quantity": quantity}],
            metadata=metadata or None,
        )
        return self._respond(status, content)

    def get_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Fetch a subscription; unknown ids produce ``error=True`` with no content."""
        status, content = self._call(
            "get_subscription",
            self._sdk.Subscription.retrieve,
            subscription_id,
            context=metadata,
        )

        response = self.new_response()
        if not self._exists(status, content):
            response.error = True
            return response

        response.content = content
        return response

    def get_subscription_customer(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """
        Fetch the customer behind a subscription.

        Two lookups in sequence; the customer is never requested when the
        subscription lookup fails.
        """
        subscription = self.get_subscription(subscription_id, metadata)
        if subscription.error:
            return subscription

        customer_id = _object_id(subscription.content.get("customer"))
        if not customer_id:
            response = self.new_response()
            response.error = True
            return response

        return self.get_customer(customer_id, metadata)

    def cancel_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Cancel at the end of the current billing period."""
        status, content = self._call(
            "cancel_subscription",
            self._sdk.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
            context=metadata,
        )
        return self._respond(status, content)

    def resume_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        status, content = self._call(
            "resume_subscription",
            self._sdk.Subscription.modify,
            subscription_id,
            cancel_at_period_end=False,
            context=metadata,
        )
        return self._respond(status, content)

    def delete_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Cancel immediately, without waiting for the period end."""
        status, content = self._call(
            "delete_subscription",
            self._sdk.Subscription.cancel,
            subscription_id,
            context=metadata,
        )
        return self._respond(status, content)

    def _modify_subscription_item(
        self,
        operation: str,
        subscription_id: str,
        item_changes: dict,
        metadata: Optional[dict],
        **params: Any,
    ) -> ProcessorResponse:
        # Quantity and price live on the subscription item, not the subscription
        subscription = self.get_subscription(subscription_id, metadata)
        if subscription.error:
            return subscription

        item_id = self._first_item_id(subscription.content)
        if item_id is None:
            response = self.new_response()
            response.error = True
            return response

        status, content = self._call(
            operation,
            self._sdk.Subscription.modify,
            subscription_id,
            items=[{"id": item_id, **item_changes}],
            context=metadata,
            **params,
        )
        return self._respond(status, content)

    def update_subscription_quantity(
        self, subscription_id: str, quantity: int, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        return self._modify_subscription_item(
            "update_subscription_quantity",
            subscription_id,
            {"quantity": quantity},
            metadata,
        )

    def change_subscription_plan(
        self, plan_id: str, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Swap the subscription's price, prorating the current period."""
        return self._modify_subscription_item(
            "change_subscription_plan",
            subscription_id,
            {"price": plan_id},
            metadata,
            proration_behavior="create_prorations",
        )

    # ==========================================================================
    # PROMOTIONS
    # ==========================================================================

    def validate_promotion_code(
        self, code: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """
        Look up an active promotion code.

        Returns:
            ProcessorResponse: The promotion code record, or ``error=True``
            with a readable "not found" message in ``content``
        """
        status, content = self._call(
            "validate_promotion_code",
            self._sdk.PromotionCode.list,
            code=code,
            active=True,
            limit=1,
            context=metadata,
        )
        if status >= STATUS_FAILURE_THRESHOLD:
            return self._respond(status, content)

        response = self.new_response()
        matches = content.get("data") or []
        if not matches:
            response.error = True
            response.content = f"Promotion code '{code}' was not found."
            return response

        response.content = _to_content(matches[0])
        return response
