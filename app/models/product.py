"""
Model for the locally-owned product catalog.

Each row is one catalog line (a plate weight). The ``stripe_*`` columns and
``stripe_synced_at`` are the remote linkage maintained by the catalog sync
engine; everything else is owned by catalog administration.
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, CheckConstraint, text
from sqlalchemy.sql import func

from ..database import Base

# Columns the sync engine reads and writes. The readiness check probes for
# exactly these before any mutating pass.
SYNC_COLUMNS = (
    "stripe_product_id",
    "stripe_price_id",
    "stripe_price_amount_cents",
    "stripe_synced_at",
    "stripe_active",
)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint(
            "stripe_price_id IS NULL OR stripe_product_id IS NOT NULL",
            name="ck_products_price_requires_product",
        ),
    )

    # Primary Key and Timestamps
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Core Product Information
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)  # Derived default used when empty
    weight = Column(Numeric(8, 2), nullable=False, index=True)
    image_url = Column(String, nullable=True)
    available = Column(Boolean, default=True, nullable=False, server_default=text("true"))

    # Pricing Fields
    selling_price = Column(Numeric(10, 2), nullable=False)
    regular_price = Column(Numeric(10, 2), nullable=True)

    # Stripe linkage
    stripe_product_id = Column(String, nullable=True, index=True)
    stripe_price_id = Column(String, nullable=True)
    stripe_price_amount_cents = Column(Integer, nullable=True)
    stripe_synced_at = Column(DateTime(timezone=True), nullable=True)
    stripe_active = Column(Boolean, default=False, nullable=False, server_default=text("false"))

    @property
    def is_synced(self) -> bool:
        return bool(self.stripe_product_id)

    def __repr__(self):
        return (f"<Product(id={self.id}, title='{self.title}', weight={self.weight}, "
                f"selling_price={self.selling_price}, stripe_product_id={self.stripe_product_id})>")
