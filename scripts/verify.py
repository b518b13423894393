"""
Stripe Sandbox Verification Script

Runs the Stripe processor against a Stripe account in test mode and
reports whether each operation behaves as expected.
Run from project root: STRIPE_SECRET_KEY=sk_test_... python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from payment_processor.core.config import Settings, setup_logging
from payment_processor.processors import StripePaymentProcessor


def check(label: str, passed: bool, detail: str = "") -> bool:
    print(f"   {'✅' if passed else '❌'} {label}{f' - {detail}' if detail else ''}")
    return passed


def verify_sandbox() -> bool:
    """Exercise the processor against Stripe test mode."""

    print("=" * 60)
    print("🔍 STRIPE SANDBOX VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)

    settings = Settings(env_mode="staging")
    if not settings.stripe_secret_key or not settings.stripe_secret_key.startswith("sk_test_"):
        print("\n❌ A Stripe test key (sk_test_...) is required!")
        print("   Set STRIPE_SECRET_KEY in your .env file or environment")
        return False

    setup_logging()
    processor = StripePaymentProcessor(settings=settings)
    results = []

    print("\n💳 CHARGING:")
    charge = processor.charge(amount=2000, source="tok_visa", description="Sandbox verification")
    results.append(check(
        "charge with tok_visa",
        not charge.error and charge.content.get("processor") is not None,
        charge.content.get("id", "") if not charge.error else str(charge.content),
    ))

    declined = processor.charge(amount=2000, source="tok_bogus")
    results.append(check("charge with bogus source is an error", declined.error))

    authorized = processor.pre_authorize(amount=1500, source="tok_visa")
    results.append(check(
        "pre_authorize leaves charge uncaptured",
        not authorized.error and authorized.content.get("captured") is False,
    ))

    if not authorized.error:
        captured = processor.capture(authorized.content["id"])
        results.append(check(
            "capture settles the pre-authorization",
            not captured.error and bool(captured.content.get("balance_transaction")),
        ))

    print("\n💸 REFUNDS:")
    if not charge.error:
        refund = processor.refund(charge.content["id"], amount=500)
        results.append(check("partial refund", not refund.error))

    results.append(check("refund of unknown charge is an error", processor.refund("ch_bogus").error))

    print("\n👤 LOOKUPS:")
    results.append(check(
        "subscription customer of unknown subscription is an error",
        processor.get_subscription_customer("sub_bogus").error,
    ))

    promo = processor.validate_promotion_code("NONEXISTENT")
    results.append(check(
        "unknown promotion code is reported",
        promo.error and "NONEXISTENT" in str(promo.content),
    ))

    passed = sum(results)
    print("\n" + "=" * 60)
    print(f"{'✅' if passed == len(results) else '⚠️'} {passed}/{len(results)} CHECKS PASSED")
    print("=" * 60)

    return passed == len(results)


if __name__ == "__main__":
    sys.exit(0 if verify_sandbox() else 1)
