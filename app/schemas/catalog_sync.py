"""
Response schemas for the catalog sync API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import BaseSchema


class HealthReportRead(BaseSchema):
    ready: bool
    local_schema_ready: bool
    remote_configured: bool
    default_tax_code: str
    tax_code_source: str
    mode: str
    issues: List[str] = []
    missing_columns: List[str] = []
    account_id: Optional[str] = None
    product_count: Optional[int] = None
    synced_count: Optional[int] = None


class SyncResultRead(BaseSchema):
    product_id: int
    title: str = ""
    success: bool
    actions: List[str] = []
    error: Optional[str] = None
    outcomes: List[str] = []
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None


class SyncErrorRead(BaseSchema):
    product_id: int
    title: Optional[str] = None
    error: Optional[str] = None


class SyncReportRead(BaseSchema):
    ready: bool
    success: bool
    issues: List[str] = []
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    reused: int = 0
    skipped: int = 0
    errors: List[SyncErrorRead] = []
    aborted: List[int] = []
    results: List[SyncResultRead] = []
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class DriftReportRead(BaseSchema):
    product_id: int
    title: Optional[str] = None
    discrepancies: List[str] = []
    actions: List[str] = []
    recommended_tax_code: Optional[str] = None


class CatalogAnalysisRead(BaseSchema):
    total: int
    in_sync: int
    never_synced: int
    name_mismatches: int
    description_mismatches: int
    metadata_mismatches: int
    price_mismatches: int
    tax_code_issues: int
    default_tax_code: str
    tax_code_source: str
    products: List[DriftReportRead] = []
    errors: List[SyncErrorRead] = []


class ActivePriceRead(BaseSchema):
    id: str
    unit_amount: Optional[int] = None
    currency: str
    current: bool


class ProductPricesRead(BaseSchema):
    product_id: int
    title: str
    stripe_product_id: str
    has_duplicates: bool
    active_prices: List[ActivePriceRead] = []


class DuplicatePriceAnalysisRead(BaseSchema):
    products_checked: int
    products_with_duplicates: int
    products: List[ProductPricesRead] = []
    errors: List[SyncErrorRead] = []


class TaxCodeRead(BaseSchema):
    id: str
    name: str = ""
    description: Optional[str] = None


class TaxCodeListRead(BaseSchema):
    default_tax_code: str
    tax_code_source: str
    tax_codes: List[TaxCodeRead] = []
