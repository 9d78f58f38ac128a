# app/services/catalog_sync_service.py
"""
Entry points for catalog synchronization with Stripe.

``run_health_check`` is read-only. ``run_sync`` gates on the readiness check,
then hands the working set to the reconciler. ``reconcile_product`` is the
targeted recovery path for one record. The analysis methods fetch Stripe state
and report drift without writing anything.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.enums import DriftKind
from app.core.exceptions import PreconditionFailedError, RemoteApiError
from app.integrations.base import RemoteCatalogClient
from app.services.catalog_reconciler import CatalogReconciler
from app.services.catalog_store import CatalogStore
from app.services.stripe.client import StripeClient
from app.services.drift_detector import DriftDetector, DriftReport
from app.services.sync_health_service import HealthReport, SyncHealthService
from app.services.sync_report import SyncReport, SyncReportCache, SyncResult

logger = logging.getLogger(__name__)


@dataclass
class CatalogAnalysis:
    """Whole-catalog drift summary"""
    total: int = 0
    in_sync: int = 0
    never_synced: int = 0
    name_mismatches: int = 0
    description_mismatches: int = 0
    metadata_mismatches: int = 0
    price_mismatches: int = 0
    tax_code_issues: int = 0
    default_tax_code: str = ""
    tax_code_source: str = "default"
    products: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, title: str, drift: DriftReport) -> None:
        self.total += 1
        kinds = drift.kinds
        if not kinds:
            self.in_sync += 1
        if DriftKind.NOT_SYNCED in kinds:
            self.never_synced += 1
        if DriftKind.NAME in kinds:
            self.name_mismatches += 1
        if DriftKind.DESCRIPTION in kinds:
            self.description_mismatches += 1
        if DriftKind.METADATA in kinds:
            self.metadata_mismatches += 1
        if any(k.is_price for k in kinds):
            self.price_mismatches += 1
        if any(k.is_tax_code for k in kinds):
            self.tax_code_issues += 1
        self.products.append({"title": title, **drift.to_dict()})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "in_sync": self.in_sync,
            "never_synced": self.never_synced,
            "name_mismatches": self.name_mismatches,
            "description_mismatches": self.description_mismatches,
            "metadata_mismatches": self.metadata_mismatches,
            "price_mismatches": self.price_mismatches,
            "tax_code_issues": self.tax_code_issues,
            "default_tax_code": self.default_tax_code,
            "tax_code_source": self.tax_code_source,
            "products": list(self.products),
            "errors": list(self.errors),
        }


@dataclass
class DuplicatePriceAnalysis:
    """Synced products that carry more than one active price"""
    products_checked: int = 0
    products_with_duplicates: int = 0
    products: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products_checked": self.products_checked,
            "products_with_duplicates": self.products_with_duplicates,
            "products": list(self.products),
            "errors": list(self.errors),
        }


class CatalogSyncService:
    """Catalog sync orchestration: readiness gate, reconciliation, analysis."""

    def __init__(
        self,
        store: CatalogStore,
        client: RemoteCatalogClient,
        settings: Optional[Settings] = None,
        cache: Optional[SyncReportCache] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.client = client
        self.cache = cache or SyncReportCache(ttl_seconds=self.settings.SYNC_REPORT_CACHE_TTL_SECONDS)
        self.detector = DriftDetector(
            default_tax_code=self.settings.default_tax_code,
            description_template=self.settings.CATALOG_DESCRIPTION_TEMPLATE,
        )
        self.reconciler = CatalogReconciler(
            client=client,
            store=store,
            detector=self.detector,
            currency=self.settings.CATALOG_CURRENCY,
            tax_behavior=self.settings.CATALOG_TAX_BEHAVIOR,
            source_tag=self.settings.CATALOG_SOURCE_TAG,
            mode=self.settings.STRIPE_MODE,
            adopt_orphans=self.settings.SYNC_ADOPT_ORPHANED_PRODUCTS,
        )
        self.health = SyncHealthService(
            store=store,
            client=client,
            configured_tax_code=self.settings.STRIPE_DEFAULT_TAX_CODE,
            mode=self.settings.STRIPE_MODE,
        )

    @classmethod
    def from_settings(
        cls,
        session_factory: Callable[[], AsyncSession],
        settings: Optional[Settings] = None,
        client: Optional[RemoteCatalogClient] = None,
        cache: Optional[SyncReportCache] = None,
    ) -> "CatalogSyncService":
        settings = settings or get_settings()
        return cls(
            store=CatalogStore(session_factory),
            client=client or StripeClient.from_settings(settings),
            settings=settings,
            cache=cache,
        )

    async def run_health_check(self, include_counts: bool = True) -> HealthReport:
        return await self.health.check_readiness(include_counts=include_counts)

    async def run_sync(
        self,
        force_all: bool = False,
        max_concurrent: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> SyncReport:
        """
        Reconcile every sync-eligible product.

        Returns a refused report (``ready=False`` plus issues) when the readiness
        check fails. Per-product failures never raise; they are in the report.
        """
        health = await self.health.check_readiness()
        if not health.ready:
            logger.error(f"Catalog sync refused: {'; '.join(health.issues)}")
            return SyncReport.refused(health.issues)

        working_set = await self.store.list_all(available_only=True)
        logger.info(f"Found {len(working_set)} products to process")

        report = await self.reconciler.reconcile_all(
            working_set,
            force_all=force_all,
            max_concurrent=max_concurrent or self.settings.SYNC_MAX_CONCURRENT,
            deadline_seconds=deadline_seconds if deadline_seconds is not None else self.settings.SYNC_DEADLINE_SECONDS,
        )
        self.cache.put(report)
        return report

    async def reconcile_product(self, product_id: int, force_all: bool = True) -> SyncResult:
        """
        Force-sync one product, whatever its availability.

        Raises:
            PreconditionFailedError: readiness check failed
            ProductNotFoundError: no such local product
        """
        health = await self.health.check_readiness()
        if not health.ready:
            raise PreconditionFailedError(health.issues)

        local = await self.store.get(product_id)
        result = await self.reconciler.process(local, force_all=force_all)
        self.cache.invalidate()
        return result

    async def detect_product(self, product_id: int) -> DriftReport:
        local = await self.store.get(product_id)
        remote, remote_price = await self.reconciler.fetch_remote(local)
        return self.detector.detect(local, remote, remote_price)

    async def analyze_catalog(self) -> CatalogAnalysis:
        analysis = CatalogAnalysis(
            default_tax_code=self.detector.default_tax_code,
            tax_code_source="configured" if self.settings.STRIPE_DEFAULT_TAX_CODE else "default",
        )
        for local in await self.store.list_all(available_only=True):
            try:
                remote, remote_price = await self.reconciler.fetch_remote(local)
            except RemoteApiError as e:
                logger.warning(f"Could not analyze product {local.id}: {e}")
                analysis.errors.append({"product_id": local.id, "title": local.title, "error": str(e)})
                continue
            analysis.add(local.title, self.detector.detect(local, remote, remote_price))
        logger.info(
            f"Catalog analysis: {analysis.total} products, {analysis.in_sync} in sync, "
            f"{analysis.never_synced} never synced, {analysis.price_mismatches} price mismatches"
        )
        return analysis

    async def analyze_duplicate_prices(self) -> DuplicatePriceAnalysis:
        analysis = DuplicatePriceAnalysis()
        for local in await self.store.list_all(available_only=True):
            if not local.stripe_product_id:
                continue
            analysis.products_checked += 1
            try:
                prices = await self.client.list_prices(local.stripe_product_id, active=True)
            except RemoteApiError as e:
                analysis.errors.append({"product_id": local.id, "title": local.title, "error": str(e)})
                continue

            has_duplicates = len(prices) > 1
            if has_duplicates:
                analysis.products_with_duplicates += 1
                logger.warning(f"Product {local.id} has {len(prices)} active prices")
            analysis.products.append({
                "product_id": local.id,
                "title": local.title,
                "stripe_product_id": local.stripe_product_id,
                "has_duplicates": has_duplicates,
                "active_prices": [
                    {
                        "id": p.id,
                        "unit_amount": p.unit_amount,
                        "currency": p.currency,
                        "current": p.id == local.stripe_price_id,
                    }
                    for p in prices
                ],
            })
        return analysis

    async def list_tax_codes(self, limit: int = 100) -> Dict[str, Any]:
        tax_codes = await self.client.list_tax_codes(limit=limit)
        return {
            "default_tax_code": self.detector.default_tax_code,
            "tax_code_source": "configured" if self.settings.STRIPE_DEFAULT_TAX_CODE else "default",
            "tax_codes": [t.model_dump() for t in tax_codes],
        }

    def last_report(self) -> Optional[SyncReport]:
        return self.cache.get()

    def invalidate_report(self) -> None:
        self.cache.invalidate()
