"""
Shared enums and constants used across the application.
"""

from enum import Enum


class StripeMode(str, Enum):
    SANDBOX = "sandbox"
    LIVE = "live"


class RemoteErrorKind(str, Enum):
    """Normalised failure classes for every Stripe API error shape."""
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (RemoteErrorKind.RATE_LIMITED, RemoteErrorKind.TRANSIENT)


class DriftKind(str, Enum):
    """Field-level discrepancy categories, in report order."""
    NOT_SYNCED = "not_synced"
    NAME = "name"
    DESCRIPTION = "description"
    METADATA = "metadata"
    TAX_CODE_MISSING = "tax_code_missing"
    TAX_CODE_PLACEHOLDER = "tax_code_placeholder"
    PRICE_UNRESOLVABLE = "price_unresolvable"
    PRICE_AMOUNT = "price_amount"

    @property
    def is_price(self) -> bool:
        return self in (DriftKind.PRICE_UNRESOLVABLE, DriftKind.PRICE_AMOUNT)

    @property
    def is_tax_code(self) -> bool:
        return self in (DriftKind.TAX_CODE_MISSING, DriftKind.TAX_CODE_PLACEHOLDER)


class SyncOutcome(str, Enum):
    """What a single product's reconciliation did; drives the report counters."""
    CREATED = "created"      # remote product created (or adopted) for a never-synced record
    UPDATED = "updated"      # remote product patched in place and/or price superseded
    REUSED = "reused"        # existing price left untouched because it already matched
    SKIPPED = "skipped"      # no drift at all, nothing written remotely
