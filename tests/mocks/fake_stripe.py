import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from app.core.enums import RemoteErrorKind
from app.core.exceptions import RemoteApiError
from app.integrations.base import RemoteCatalogClient
from app.schemas.platform.stripe import RemoteProduct, RemotePrice, TaxCode


def not_found(object_id: str) -> RemoteApiError:
    return RemoteApiError(
        code="resource_missing",
        message=f"No such object: '{object_id}'",
        kind=RemoteErrorKind.NOT_FOUND,
        status=404,
    )


class FakeStripeClient(RemoteCatalogClient):
    """
    In-memory Stripe with the semantics the sync engine relies on: prices are
    immutable, metadata updates merge and an empty value deletes the key.
    """

    def __init__(self):
        self.products: Dict[str, Dict[str, Any]] = {}
        self.prices: Dict[str, Dict[str, Any]] = {}
        self.writes: List[tuple] = []
        self.reads: List[tuple] = []
        self.fail_names: Set[str] = set()  # create/update fails for these product names
        self.errors: Dict[str, RemoteApiError] = {}  # method name -> error raised on every call
        self.configured = True
        self.livemode = False
        self.tax_codes = [
            TaxCode(id="txcd_99999999", name="General - Tangible Goods"),
            TaxCode(id="txcd_30011000", name="Sporting Goods"),
        ]
        self._ids = itertools.count(1)

    def _check(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def _check_name(self, name: Optional[str]) -> None:
        if name in self.fail_names:
            raise RemoteApiError(code="api_error", message=f"Simulated failure for {name}",
                                 kind=RemoteErrorKind.UNKNOWN, status=400)

    def _product(self, data: Dict[str, Any]) -> RemoteProduct:
        return RemoteProduct(**{k: v for k, v in data.items() if k != "images"})

    @staticmethod
    def _merge_metadata(current: Dict[str, str], incoming: Dict[str, Any]) -> Dict[str, str]:
        merged = dict(current)
        for key, value in (incoming or {}).items():
            if value in (None, ""):
                merged.pop(key, None)
            else:
                merged[key] = str(value)
        return merged

    # Helpers for tests

    def seed_product(self, **fields) -> RemoteProduct:
        product_id = fields.pop("id", None) or f"prod_{next(self._ids)}"
        data = {
            "id": product_id,
            "name": "",
            "description": None,
            "active": True,
            "metadata": {},
            "tax_code": None,
            "updated_at": datetime.now(timezone.utc),
        }
        data.update(fields)
        self.products[product_id] = data
        return self._product(data)

    def seed_price(self, product_id: str, unit_amount: int, active: bool = True,
                   price_id: Optional[str] = None) -> RemotePrice:
        price_id = price_id or f"price_{next(self._ids)}"
        self.prices[price_id] = {
            "id": price_id,
            "product_id": product_id,
            "unit_amount": unit_amount,
            "currency": "usd",
            "tax_behavior": "exclusive",
            "active": active,
            "metadata": {},
        }
        return RemotePrice(**self.prices[price_id])

    def write_count(self, method: Optional[str] = None) -> int:
        return len([w for w in self.writes if method is None or w[0] == method])

    # RemoteCatalogClient

    async def verify_credentials(self) -> Dict[str, Any]:
        self._check("verify_credentials")
        return {"id": "acct_test", "livemode": self.livemode}

    async def get_product(self, product_id: str) -> RemoteProduct:
        self.reads.append(("get_product", product_id))
        self._check("get_product")
        if product_id not in self.products:
            raise not_found(product_id)
        return self._product(self.products[product_id])

    async def create_product(self, fields: Dict[str, Any]) -> RemoteProduct:
        self._check("create_product")
        self._check_name(fields.get("name"))
        product = self.seed_product(
            name=fields.get("name", ""),
            description=fields.get("description"),
            metadata=self._merge_metadata({}, fields.get("metadata")),
            tax_code=fields.get("tax_code"),
        )
        self.writes.append(("create_product", product.id, dict(fields)))
        return product

    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> RemoteProduct:
        self._check("update_product")
        if product_id not in self.products:
            raise not_found(product_id)
        self._check_name(fields.get("name", self.products[product_id]["name"]))
        data = self.products[product_id]
        for key, value in fields.items():
            if key == "metadata":
                data["metadata"] = self._merge_metadata(data["metadata"], value)
            elif key in ("name", "description", "tax_code", "active"):
                data[key] = value
        self.writes.append(("update_product", product_id, dict(fields)))
        return self._product(data)

    async def search_products_by_metadata(self, key: str, value: str) -> List[RemoteProduct]:
        self._check("search_products_by_metadata")
        return [self._product(p) for p in self.products.values() if p["metadata"].get(key) == value]

    async def list_prices(self, product_id: str, active: Optional[bool] = None) -> List[RemotePrice]:
        self.reads.append(("list_prices", product_id))
        self._check("list_prices")
        return [
            RemotePrice(**p) for p in self.prices.values()
            if p["product_id"] == product_id and (active is None or p["active"] == active)
        ]

    async def create_price(self, fields: Dict[str, Any]) -> RemotePrice:
        self._check("create_price")
        price = self.seed_price(fields["product"], int(fields["unit_amount"]))
        self.prices[price.id]["currency"] = fields.get("currency", "usd")
        self.prices[price.id]["metadata"] = dict(fields.get("metadata") or {})
        self.writes.append(("create_price", price.id, dict(fields)))
        return RemotePrice(**self.prices[price.id])

    async def list_tax_codes(self, limit: int = 100) -> List[TaxCode]:
        self._check("list_tax_codes")
        return self.tax_codes[:limit]
