from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.schemas.platform.stripe import RemoteProduct, RemotePrice, TaxCode


class RemoteCatalogClient(ABC):
    """
    Transport contract the sync engine needs from the payment processor.

    Implementations carry no business logic. Every failure surfaces as
    ``RemoteApiError`` with a normalised ``kind``.
    """

    @abstractmethod
    async def verify_credentials(self) -> Dict[str, Any]:
        """Cheap authenticated identity call used by the readiness check"""
        pass

    @abstractmethod
    async def get_product(self, product_id: str) -> RemoteProduct:
        pass

    @abstractmethod
    async def create_product(self, fields: Dict[str, Any]) -> RemoteProduct:
        pass

    @abstractmethod
    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> RemoteProduct:
        pass

    @abstractmethod
    async def search_products_by_metadata(self, key: str, value: str) -> List[RemoteProduct]:
        pass

    @abstractmethod
    async def list_prices(self, product_id: str, active: Optional[bool] = None) -> List[RemotePrice]:
        pass

    @abstractmethod
    async def create_price(self, fields: Dict[str, Any]) -> RemotePrice:
        """Prices are immutable; the contract has no update or delete."""
        pass

    @abstractmethod
    async def list_tax_codes(self, limit: int = 100) -> List[TaxCode]:
        pass
