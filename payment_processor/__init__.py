"""
                Payment Processor

A payment-processor abstraction layer: one contract, a base scaffold and
a Stripe adapter that return every result in the same {error, content}
envelope, plus an in-memory mock for development.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"

MODULE_NAME = "payment_processor"
MODULE_DESCRIPTION = (
    "Normalizes charge, refund, customer, payment-method and subscription "
    "operations behind a uniform response envelope."
)


def get_module_info() -> dict:
    """Return the static registration metadata of this module."""
    return {
        "name": MODULE_NAME,
        "version": __version__,
        "description": MODULE_DESCRIPTION,
    }


__all__ = ["MODULE_NAME", "MODULE_DESCRIPTION", "__version__", "get_module_info"]
