from .product import Product, SYNC_COLUMNS

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'Product',
    'SYNC_COLUMNS',
]
