# app/services/catalog_store.py
"""
Local catalog store accessor.

Reads product rows into plain ``LocalProductRecord`` values and writes back
the handful of fields the sync engine owns. Every call opens its own session
so several products can be reconciled concurrently without sharing one
``AsyncSession``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CatalogStoreError, ProductNotFoundError
from app.models.product import Product, SYNC_COLUMNS

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Round a decimal currency amount to integer minor units (half-up)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class LocalProductRecord:
    """The authoritative catalog line, detached from the ORM session."""
    id: int
    title: str
    weight: Decimal
    selling_price: Decimal
    regular_price: Optional[Decimal] = None
    description: Optional[str] = None
    available: bool = True
    image_url: Optional[str] = None
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_price_amount_cents: Optional[int] = None
    last_synced_at: Optional[datetime] = None

    @property
    def is_synced(self) -> bool:
        return bool(self.stripe_product_id)

    @property
    def selling_price_cents(self) -> int:
        return to_cents(self.selling_price)

    @classmethod
    def from_model(cls, product: Product) -> "LocalProductRecord":
        return cls(
            id=product.id,
            title=product.title,
            weight=Decimal(product.weight) if product.weight is not None else Decimal("0"),
            selling_price=Decimal(product.selling_price).quantize(CENT) if product.selling_price is not None else Decimal("0"),
            regular_price=Decimal(product.regular_price).quantize(CENT) if product.regular_price is not None else None,
            description=product.description,
            available=bool(product.available),
            image_url=product.image_url,
            stripe_product_id=product.stripe_product_id,
            stripe_price_id=product.stripe_price_id,
            stripe_price_amount_cents=product.stripe_price_amount_cents,
            last_synced_at=product.stripe_synced_at,
        )


# Record field -> column. Only these may be written by the sync engine.
WRITABLE_FIELDS = {
    "stripe_product_id": "stripe_product_id",
    "stripe_price_id": "stripe_price_id",
    "stripe_price_amount_cents": "stripe_price_amount_cents",
    "last_synced_at": "stripe_synced_at",
    "stripe_active": "stripe_active",
}


class CatalogStore:
    """Async accessor over the ``products`` table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _eligible(query):
        # Lines the storefront actually sells: available with a weight and a price
        return query.where(
            Product.available.is_(True),
            Product.weight > 0,
            Product.selling_price > 0,
        )

    async def list_all(self, available_only: bool = False) -> List[LocalProductRecord]:
        query = select(Product)
        if available_only:
            query = self._eligible(query)
        query = query.order_by(Product.weight, Product.id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                products = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list products: {e}")
            raise CatalogStoreError(f"Failed to list products: {e}") from e
        return [LocalProductRecord.from_model(p) for p in products]

    async def get(self, product_id: int) -> LocalProductRecord:
        try:
            async with self._session_factory() as session:
                product = await session.get(Product, product_id)
        except SQLAlchemyError as e:
            raise CatalogStoreError(f"Failed to load product {product_id}: {e}") from e
        if product is None:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        return LocalProductRecord.from_model(product)

    async def update(self, product_id: int, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - set(WRITABLE_FIELDS)
        if unknown:
            raise CatalogStoreError(f"Refusing to write non-sync fields: {sorted(unknown)}")

        values = {WRITABLE_FIELDS[name]: value for name, value in fields.items()}
        stmt = update(Product).where(Product.id == product_id).values(**values)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update product {product_id}: {e}")
            raise CatalogStoreError(f"Failed to update product {product_id}: {e}") from e
        if result.rowcount == 0:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        logger.debug(f"Product {product_id} updated: {sorted(values)}")

    async def probe_sync_columns(self) -> List[str]:
        """Return the sync columns that cannot be selected from ``products``."""
        missing = []
        for column in SYNC_COLUMNS:
            try:
                async with self._session_factory() as session:
                    await session.execute(text(f"SELECT {column} FROM products LIMIT 1"))
            except SQLAlchemyError as e:
                logger.warning(f"Column probe failed for products.{column}: {e}")
                missing.append(column)
        return missing

    async def count_products(self, eligible_only: bool = True) -> int:
        query = select(func.count(Product.id))
        if eligible_only:
            query = self._eligible(query)
        async with self._session_factory() as session:
            return int(await session.scalar(query) or 0)

    async def count_synced(self) -> int:
        query = select(func.count(Product.id)).where(
            Product.stripe_product_id.is_not(None),
            Product.stripe_price_id.is_not(None),
        )
        async with self._session_factory() as session:
            return int(await session.scalar(query) or 0)
