"""
Payment Processor Abstract Base Classes

Defines the interface contract for all payment processor adapters and a
default scaffold that adapters inherit from. StripePaymentProcessor and
MockPaymentProcessor both derive from BasePaymentProcessor, ensuring every
operation returns the same ProcessorResponse envelope regardless of which
provider sits behind it.

Design Pattern: Adapter + Strategy
    - Operations are named by business intent, not provider vocabulary
    - A second provider can satisfy the same contract without callers changing
    - Unsupported operations fail loudly with ProcessorNotImplementedError
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECONDS_PER_DAY = 86400


@dataclass
class ProcessorResponse:
    """
    Envelope returned by every processor operation.

    Each call builds its own instance; nothing is shared between calls.

    Attributes:
        error: True when the provider reported a failure or a required
            sub-lookup failed
        content: Provider payload on success, the provider error payload
            (or a human-readable message for validations) on failure
    """
    error: bool = False
    content: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.error,
            "content": self.content,
        }


class ProcessorNotImplementedError(NotImplementedError):
    """
    Raised when an adapter is asked for an operation it does not override.

    This is a programming error, not a business failure: callers should let
    it propagate instead of treating it like an error envelope.
    """

    def __init__(self, processor: str, operation: str):
        self.processor = processor
        self.operation = operation
        super().__init__(
            f"{operation}() must be implemented by the {processor} processor"
        )


def _civil_from_days(days: int) -> tuple[int, int, int]:
    # Proleptic Gregorian date for a day count relative to 1970-01-01
    z = days + 719468
    era = z // 146097
    doe = z - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + 3 if mp < 10 else mp - 9
    year = yoe + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


def from_unix_seconds(seconds: int) -> str:
    """
    Convert Unix epoch seconds to an ISO-8601 UTC timestamp.

    Stripe reports timestamps such as ``created`` as integer seconds.
    Values that ``datetime`` cannot hold (outside years 1-9999) are still
    converted, using the ISO-8601 expanded year form (``+10000-01-01...``),
    so every signed 64-bit value is accepted.

    Args:
        seconds: Seconds since 1970-01-01T00:00:00Z

    Returns:
        str: Timestamp formatted as ``YYYY-MM-DDTHH:MM:SSZ``

    Raises:
        TypeError: If seconds is not an integer

    Example:
        >>> from_unix_seconds(0)
        '1970-01-01T00:00:00Z'
    """
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise TypeError(f"Expected integer epoch seconds, got {type(seconds).__name__}")

    try:
        moment = _EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        pass
    else:
        return moment.replace(tzinfo=None).isoformat() + "Z"

    days, remainder = divmod(seconds, _SECONDS_PER_DAY)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    year, month, day = _civil_from_days(days)

    if 0 <= year <= 9999:
        year_text = f"{year:04d}"
    else:
        year_text = f"{year:+06d}"

    return f"{year_text}-{month:02d}-{day:02d}T{hours:02d}:{minutes:02d}:{secs:02d}Z"


class PaymentProcessorInterface(ABC):
    """
    Capability set every payment processor adapter exposes.

    All operations are synchronous and return a ProcessorResponse. None of
    them raise for business failures (declines, unknown ids, provider
    errors); those are reported through ``response.error``.

    Example:
        >>> processor = get_payment_processor()  # Mock or Stripe
        >>> response = processor.charge(amount=2999, source="tok_visa")
        >>> if not response.error:
        ...     print(response.content["id"])
    """

    # ==========================================================================
    # IDENTITY
    # ==========================================================================

    @abstractmethod
    def get_name(self) -> str:
        """Return the processor display name (e.g., "Stripe")."""

    @abstractmethod
    def get_version(self) -> str:
        """Return the adapter version."""

    @abstractmethod
    def get_processor(self) -> Any:
        """Return the underlying provider SDK handle."""

    # ==========================================================================
    # CHARGING
    # ==========================================================================

    @abstractmethod
    def pre_authorize(
        self,
        amount: int,
        source: str,
        currency: Optional[str] = None,
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """
        Authorize a charge without capturing the funds.

        Args:
            amount: Amount in the smallest currency unit (e.g., cents)
            source: Token identifying the payment instrument
            currency: ISO 4217 code (defaults to the configured currency)
            customer_id: Provider customer to attach the charge to
            description: Free-form charge description
            metadata: Key-value strings stored with the charge

        Returns:
            ProcessorResponse: Normalized charge in ``content``
        """

    @abstractmethod
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
        Authorize and, unless ``capture`` is False, capture a charge.

        Returns:
            ProcessorResponse: Normalized charge in ``content``
        """

    @abstractmethod
    def capture(self, charge_id: str, metadata: Optional[dict] = None) -> ProcessorResponse:
        """Capture the funds of a previous pre-authorization."""

    @abstractmethod
    def refund(
        self,
        charge: str,
        amount: Optional[int] = None,
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """
        Refund a previous charge.

        Args:
            charge: Identifier of the charge to refund
            amount: Amount to refund (None = full refund)
            reason: Reason code (duplicate, fraudulent, requested_by_customer)
            metadata: Key-value strings stored with the refund
        """

    # ==========================================================================
    # PAYMENT SETUP
    # ==========================================================================

    @abstractmethod
    def create_payment_intent(
        self,
        amount: int,
        customer: str,
        payment_method: str,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Create a payment intent usable for later confirmation or recurring billing."""

    # ==========================================================================
    # CUSTOMER LIFECYCLE
    # ==========================================================================

    @abstractmethod
    def create_customer(
        self,
        email: str,
        payment_method_id: str,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Create a customer whose default payment method is ``payment_method_id``."""

    @abstractmethod
    def get_customer(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Fetch a customer; ``error`` is set when it does not exist."""

    @abstractmethod
    def get_payment_method(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Fetch the default payment method of a customer."""

    @abstractmethod
    def update_payment_method(
        self,
        provider_customer_id: str,
        payment_method_id: str,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Make ``payment_method_id`` the customer's default payment method."""

    # ==========================================================================
    # SUBSCRIPTION LIFECYCLE
    # ==========================================================================

    @abstractmethod
    def create_subscription(
        self,
        provider_customer_id: str,
        plan_id: str,
        quantity: int = 1,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        """Subscribe a customer to a plan."""

    @abstractmethod
    def get_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Fetch a subscription; ``error`` is set when it does not exist."""

    @abstractmethod
    def get_subscription_customer(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Fetch the customer that owns a subscription."""

    @abstractmethod
    def cancel_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Cancel a subscription at the end of the current period."""

    @abstractmethod
    def resume_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Undo a pending cancellation."""

    @abstractmethod
    def update_subscription_quantity(
        self, subscription_id: str, quantity: int, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Change the quantity billed by a subscription."""

    @abstractmethod
    def delete_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Cancel a subscription immediately."""

    @abstractmethod
    def change_subscription_plan(
        self, plan_id: str, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        """Move a subscription to another plan."""


class BasePaymentProcessor(PaymentProcessorInterface):
    """
    Default implementation of the processor contract.

    Every operation raises ProcessorNotImplementedError, so a concrete
    adapter only overrides what its provider supports and still
    instantiates. Also provides the helpers adapters share: envelope
    construction, logger resolution and guarded debug logging.

    Attributes:
        name: Display name reported by get_name()
        version: Adapter version reported by get_version()
    """

    name = "base"
    version = "0.0.0"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def new_response(self) -> ProcessorResponse:
        """Build a fresh, successful-by-default envelope."""
        return ProcessorResponse()

    def get_logger(self) -> logging.Logger:
        """Return the injected logger, falling back to the module logger."""
        return self._logger or logger

    def _not_implemented(self, operation: str) -> ProcessorNotImplementedError:
        return ProcessorNotImplementedError(self.get_name(), operation)

    def _log_debug(self, message: str, payload: Any = None) -> None:
        """
        Emit a debug line with a JSON snapshot of ``payload``.

        Never raises: unserializable payloads fall back to ``repr``.
        """
        log = self.get_logger()
        if not log.isEnabledFor(logging.DEBUG):
            return
        try:
            snapshot = json.dumps(payload, default=str, sort_keys=True)
        except (TypeError, ValueError):
            snapshot = repr(payload)
        log.debug(f"{self.get_name()}: {message} - {snapshot}")

    # ==========================================================================
    # IDENTITY
    # ==========================================================================

    def get_name(self) -> str:
        return self.name

    def get_version(self) -> str:
        return self.version

    def get_processor(self) -> Any:
        raise self._not_implemented("get_processor")

    def health_check(self) -> ProcessorResponse:
        """Verify connectivity to the provider."""
        raise self._not_implemented("health_check")

    # ==========================================================================
    # CONTRACT STUBS
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
        raise self._not_implemented("pre_authorize")

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
        raise self._not_implemented("charge")

    def capture(self, charge_id: str, metadata: Optional[dict] = None) -> ProcessorResponse:
        raise self._not_implemented("capture")

    def refund(
        self,
        charge: str,
        amount: Optional[int] = None,
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        raise self._not_implemented("refund")

    def create_payment_intent(
        self,
        amount: int,
        customer: str,
        payment_method: str,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        raise self._not_implemented("create_payment_intent")

    def create_customer(
        self,
        email: str,
        payment_method_id: str,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        raise self._not_implemented("create_customer")

    def get_customer(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("get_customer")

    def get_payment_method(
        self, provider_customer_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("get_payment_method")

    def update_payment_method(
        self,
        provider_customer_id: str,
        payment_method_id: str,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        raise self._not_implemented("update_payment_method")

    def create_subscription(
        self,
        provider_customer_id: str,
        plan_id: str,
        quantity: int = 1,
        metadata: Optional[dict] = None,
    ) -> ProcessorResponse:
        raise self._not_implemented("create_subscription")

    def get_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("get_subscription")

    def get_subscription_customer(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("get_subscription_customer")

    def cancel_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("cancel_subscription")

    def resume_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("resume_subscription")

    def update_subscription_quantity(
        self, subscription_id: str, quantity: int, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("update_subscription_quantity")

    def delete_subscription(
        self, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("delete_subscription")

    def change_subscription_plan(
        self, plan_id: str, subscription_id: str, metadata: Optional[dict] = None
    ) -> ProcessorResponse:
        raise self._not_implemented("change_subscription_plan")
