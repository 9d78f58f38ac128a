from dataclasses import fields as dataclass_fields, replace
from decimal import Decimal
from typing import Any, Dict, List, Set

from app.core.exceptions import CatalogStoreError, ProductNotFoundError
from app.services.catalog_store import LocalProductRecord, WRITABLE_FIELDS

RECORD_FIELDS = {f.name for f in dataclass_fields(LocalProductRecord)}


def make_record(**overrides) -> LocalProductRecord:
    """A sync-eligible 45 lb plate unless overridden"""
    data = {
        "id": 7,
        "title": "45 LB Plate",
        "weight": Decimal("45"),
        "selling_price": Decimal("115.00"),
        "regular_price": Decimal("150.00"),
        "available": True,
    }
    data.update(overrides)
    return LocalProductRecord(**data)


class FakeCatalogStore:
    """Dict-backed CatalogStore with the same filtering and write rules."""

    def __init__(self, records=()):
        self.records: Dict[int, LocalProductRecord] = {}
        self.extra: Dict[int, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self.fail_updates_for: Set[int] = set()
        self.missing_columns: List[str] = []
        for record in records:
            self.add(record)

    def add(self, record: LocalProductRecord) -> LocalProductRecord:
        self.records[record.id] = record
        return record

    async def list_all(self, available_only: bool = False) -> List[LocalProductRecord]:
        records = list(self.records.values())
        if available_only:
            records = [r for r in records if r.available and r.weight > 0 and r.selling_price > 0]
        return sorted(records, key=lambda r: (r.weight, r.id))

    async def get(self, product_id: int) -> LocalProductRecord:
        if product_id not in self.records:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        return self.records[product_id]

    async def update(self, product_id: int, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - set(WRITABLE_FIELDS)
        if unknown:
            raise CatalogStoreError(f"Refusing to write non-sync fields: {sorted(unknown)}")
        if product_id in self.fail_updates_for:
            raise CatalogStoreError(f"Simulated write failure for product {product_id}")
        if product_id not in self.records:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        self.updates.append((product_id, dict(fields)))
        self.records[product_id] = replace(
            self.records[product_id],
            **{k: v for k, v in fields.items() if k in RECORD_FIELDS},
        )
        self.extra.setdefault(product_id, {}).update(
            {k: v for k, v in fields.items() if k not in RECORD_FIELDS}
        )

    async def probe_sync_columns(self) -> List[str]:
        return list(self.missing_columns)

    async def count_products(self, eligible_only: bool = True) -> int:
        return len(await self.list_all(available_only=eligible_only))

    async def count_synced(self) -> int:
        return len([r for r in self.records.values() if r.stripe_product_id and r.stripe_price_id])
