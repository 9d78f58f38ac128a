"""
Core module exports.
"""
from .enums import (
    StripeMode,
    RemoteErrorKind,
    DriftKind,
    SyncOutcome,
)

from .exceptions import (
    BaseServiceError,
    CatalogStoreError,
    ProductNotFoundError,
    ValidationError,
    PlatformServiceError,
    RemoteApiError,
    PreconditionFailedError,
)
