from typing import List, Optional

from app.core.enums import RemoteErrorKind


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class CatalogStoreError(BaseServiceError):
    """Raised when the local catalog store rejects a read or write."""
    pass

class ProductNotFoundError(CatalogStoreError):
    """Raised when product is not found."""
    pass

class ValidationError(BaseServiceError):
    """Raised when a product record fails data validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid product data: {', '.join(self.errors)}")

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class RemoteApiError(PlatformServiceError):
    """
    Raised when a Stripe API call fails.

    Every vendor error shape (HTTP status, Stripe error object, network failure)
    is normalised into ``kind`` so callers never inspect transport exceptions.
    """

    def __init__(
        self,
        code: str,
        message: str,
        kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN,
        status: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.kind = kind
        self.status = status
        super().__init__(f"[{kind.value}] {code}: {message}")

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

class PreconditionFailedError(BaseServiceError):
    """Raised when the readiness check refuses a mutating pass."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__("Catalog sync not ready: " + "; ".join(self.issues))
