# File: app/schemas/platform/stripe.py
"""
Stripe mirror objects as the sync engine sees them.

These are fetched from Stripe on every pass and never persisted locally.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _from_unix(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _object_id(value: Any) -> Optional[str]:
    # Stripe returns either an id string or the expanded object
    if isinstance(value, dict):
        return value.get("id")
    return value


class RemoteProduct(BaseModel):
    """Stripe's copy of a catalog line."""
    id: str
    name: str = ""
    description: Optional[str] = None
    active: bool = True
    metadata: Dict[str, str] = Field(default_factory=dict)
    tax_code: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteProduct":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description"),
            active=bool(data.get("active", True)),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            tax_code=_object_id(data.get("tax_code")),
            updated_at=_from_unix(data.get("updated")),
        )


class RemotePrice(BaseModel):
    """An immutable Stripe price object."""
    id: str
    product_id: str
    unit_amount: Optional[int] = None
    currency: str = "usd"
    tax_behavior: Optional[str] = None
    active: bool = True
    metadata: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemotePrice":
        return cls(
            id=data["id"],
            product_id=_object_id(data.get("product")) or "",
            unit_amount=data.get("unit_amount"),
            currency=data.get("currency") or "usd",
            tax_behavior=data.get("tax_behavior"),
            active=bool(data.get("active", True)),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            created_at=_from_unix(data.get("created")),
        )


class TaxCode(BaseModel):
    id: str
    name: str = ""
    description: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TaxCode":
        return cls(id=data["id"], name=data.get("name") or "", description=data.get("description"))
