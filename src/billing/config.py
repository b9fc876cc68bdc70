"""Runtime settings for the billing context.

Settings are read once from the environment and handed to services
explicitly; nothing here is mutated after construction.
"""

import os
from dataclasses import dataclass

SEVEN_DAYS = 7 * 24 * 60 * 60


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


@dataclass(frozen=True)
class BillingSettings:
    invoice_prefix: str = "INV"
    receipt_prefix: str = "RCP"
    quote_prefix: str = "QUO"
    quote_validity_days: int = 30
    number_width: int = 4
    max_number_attempts: int = 3
    payment_tolerance: float = 0.01
    default_due_days: int = 30
    default_currency: str = "AUD"
    signed_url_ttl_seconds: int = SEVEN_DAYS
    io_timeout_seconds: float = 30.0
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_key_prefix: str = "documents"
    renderer: str = "reportlab"

    @classmethod
    def from_env(cls) -> "BillingSettings":
        """Build settings from ``BILLING_*`` environment variables."""
        return cls(
            invoice_prefix=os.getenv("BILLING_INVOICE_PREFIX", cls.invoice_prefix),
            receipt_prefix=os.getenv("BILLING_RECEIPT_PREFIX", cls.receipt_prefix),
            quote_prefix=os.getenv("BILLING_QUOTE_PREFIX", cls.quote_prefix),
            quote_validity_days=_env_int("BILLING_QUOTE_VALIDITY_DAYS", cls.quote_validity_days),
            number_width=_env_int("BILLING_NUMBER_WIDTH", cls.number_width),
            max_number_attempts=_env_int("BILLING_MAX_NUMBER_ATTEMPTS", cls.max_number_attempts),
            payment_tolerance=_env_float("BILLING_PAYMENT_TOLERANCE", cls.payment_tolerance),
            default_due_days=_env_int("BILLING_DEFAULT_DUE_DAYS", cls.default_due_days),
            default_currency=os.getenv("BILLING_DEFAULT_CURRENCY", cls.default_currency),
            signed_url_ttl_seconds=_env_int("BILLING_SIGNED_URL_TTL", cls.signed_url_ttl_seconds),
            io_timeout_seconds=_env_float("BILLING_IO_TIMEOUT", cls.io_timeout_seconds),
            s3_bucket=os.getenv("BILLING_S3_BUCKET") or None,
            s3_region=os.getenv("BILLING_S3_REGION") or None,
            s3_key_prefix=os.getenv("BILLING_S3_KEY_PREFIX", cls.s3_key_prefix),
            renderer=os.getenv("BILLING_RENDERER", cls.renderer).lower(),
        )
