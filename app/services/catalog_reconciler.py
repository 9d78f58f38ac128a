# app/services/catalog_reconciler.py
"""
Applies corrective actions so Stripe matches the local catalog.

Per product:
1. Never synced (or remote product gone): adopt an orphan found by metadata,
   or create the product and its price.
2. Name / description / metadata / tax code drift: one in-place product update
   carrying only the changed top-level fields.
3. Price drift: create a new price and re-point ``stripe_price_id``. Prices are
   never updated or deleted; the superseded one is left in place.
4. No drift: nothing is written remotely.

Failures are caught per product and recorded in that product's SyncResult.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from app.core.enums import DriftKind, RemoteErrorKind, SyncOutcome
from app.core.exceptions import RemoteApiError, ValidationError
from app.integrations.base import RemoteCatalogClient
from app.schemas.platform.stripe import RemoteProduct, RemotePrice
from app.services.catalog_store import CatalogStore, LocalProductRecord
from app.services.drift_detector import (
    DriftDetector,
    DriftReport,
    format_cents,
    format_weight,
    format_money,
)
from app.services.sync_report import SyncReport, SyncResult, summarize

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 8

PRODUCT_FIELD_KINDS = {
    DriftKind.NAME: "name",
    DriftKind.DESCRIPTION: "description",
    DriftKind.METADATA: "metadata",
    DriftKind.TAX_CODE_MISSING: "tax_code",
    DriftKind.TAX_CODE_PLACEHOLDER: "tax_code",
}


def validate_record(local: LocalProductRecord) -> List[str]:
    """Shape checks a record must pass before anything is sent to Stripe."""
    errors = []
    if not (local.title or "").strip():
        errors.append("title is required")
    if local.weight is None or local.weight <= 0:
        errors.append("weight must be greater than 0")
    if local.selling_price is None or local.selling_price <= 0:
        errors.append("selling_price must be greater than 0")
    return errors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogReconciler:

    def __init__(
        self,
        client: RemoteCatalogClient,
        store: CatalogStore,
        detector: DriftDetector,
        currency: str = "usd",
        tax_behavior: str = "exclusive",
        source_tag: str = "carolina-bumper-plates",
        mode: str = "sandbox",
        adopt_orphans: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.store = store
        self.detector = detector
        self.currency = currency
        self.tax_behavior = tax_behavior
        self.source_tag = source_tag
        self.mode = mode
        self.adopt_orphans = adopt_orphans
        self._clock = clock
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def tax_code(self) -> str:
        return self.detector.default_tax_code

    # Payload builders

    def build_metadata(self, local: LocalProductRecord) -> Dict[str, str]:
        """Full metadata map; always sent whole."""
        return {
            "weight": format_weight(local.weight),
            "selling_price": format_money(local.selling_price),
            "regular_price": format_money(local.regular_price),
            "product_id": str(local.id),
            "source": self.source_tag,
            "mode": self.mode,
            "tax_code": self.tax_code,
        }

    def build_product_fields(self, local: LocalProductRecord) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "name": local.title,
            "description": self.detector.expected_description(local),
            "metadata": self.build_metadata(local),
            "tax_code": self.tax_code,
        }
        image_url = (local.image_url or "").strip()
        if image_url:
            parsed = urlparse(image_url)
            if parsed.scheme in ("http", "https") and parsed.netloc:
                fields["images"] = [image_url]
            else:
                logger.warning(f"Invalid image URL for product {local.id}, not sent")
        return fields

    def build_price_fields(self, local: LocalProductRecord, stripe_product_id: str) -> Dict[str, Any]:
        return {
            "product": stripe_product_id,
            "unit_amount": local.selling_price_cents,
            "currency": self.currency,
            "tax_behavior": self.tax_behavior,
            "metadata": {
                "product_id": str(local.id),
                "weight": format_weight(local.weight),
                "source": self.source_tag,
                "mode": self.mode,
                "tax_code": self.tax_code,
            },
        }

    def changed_product_fields(self, local: LocalProductRecord, drift: DriftReport) -> Dict[str, Any]:
        """Top-level product fields to send for the product-level drift in ``drift``."""
        full = self.build_product_fields(local)
        names = []
        for kind in drift.kinds:
            name = PRODUCT_FIELD_KINDS.get(kind)
            if name and name not in names:
                names.append(name)
        return {name: full[name] for name in names}

    # Remote state

    async def fetch_remote(
        self, local: LocalProductRecord, result: Optional[SyncResult] = None
    ) -> Tuple[Optional[RemoteProduct], Optional[RemotePrice]]:
        """Current Stripe product and price for ``local``; (None, None) if never synced or gone."""
        if not local.stripe_product_id:
            return None, None

        try:
            remote = await self.client.get_product(local.stripe_product_id)
        except RemoteApiError as e:
            if e.kind != RemoteErrorKind.NOT_FOUND:
                raise
            logger.warning(f"Stripe product {local.stripe_product_id} for product {local.id} no longer exists")
            if result is not None:
                result.log(f"remote product {local.stripe_product_id} not found - recreating")
            return None, None

        remote_price = await self.resolve_price(remote.id, local.stripe_price_id)
        return remote, remote_price

    async def resolve_price(self, stripe_product_id: str, price_id: Optional[str]) -> Optional[RemotePrice]:
        if not price_id:
            return None
        for price in await self.client.list_prices(stripe_product_id):
            if price.id == price_id:
                if not price.active:
                    logger.warning(f"Price {price_id} is archived in Stripe")
                    return None
                return price
        return None

    async def find_orphan(self, local: LocalProductRecord) -> Optional[RemoteProduct]:
        """A Stripe product already tagged with this local id, left behind by an earlier failed write."""
        matches = await self.client.search_products_by_metadata("product_id", str(local.id))
        if not matches:
            return None
        matches = sorted(matches, key=lambda p: (not p.active, p.id))
        if len(matches) > 1:
            logger.warning(f"Product {local.id}: {len(matches)} Stripe products carry this id, adopting {matches[0].id}")
        return matches[0]

    async def find_matching_price(self, stripe_product_id: str, cents: int) -> Optional[RemotePrice]:
        for price in await self.client.list_prices(stripe_product_id, active=True):
            if price.unit_amount == cents and price.currency == self.currency:
                return price
        return None

    # Reconciliation

    async def reconcile_one(
        self,
        local: LocalProductRecord,
        remote: Optional[RemoteProduct],
        remote_price: Optional[RemotePrice],
        drift: DriftReport,
        force_all: bool = False,
        result: Optional[SyncResult] = None,
    ) -> SyncResult:
        """
        Apply the corrections ``drift`` calls for and persist the new pointers.

        Exceptions propagate; ``process`` is the per-product boundary.
        """
        result = result or SyncResult(product_id=local.id, title=local.title)
        product_id = local.stripe_product_id if remote is not None else None
        price_id = local.stripe_price_id if remote is not None else None
        price_cents = local.stripe_price_amount_cents

        if remote is None and self.adopt_orphans:
            remote = await self.find_orphan(local)
            if remote is not None:
                result.log(f"adopted existing product {remote.id}")
                result.mark(SyncOutcome.CREATED)
                remote_price = await self.find_matching_price(remote.id, local.selling_price_cents)
                product_id = remote.id
                price_id = remote_price.id if remote_price else None
                local_view = replace(local, stripe_product_id=product_id, stripe_price_id=price_id)
                drift = self.detector.detect(local_view, remote, remote_price)

        if remote is None:
            product = await self.client.create_product(self.build_product_fields(local))
            product_id = product.id
            result.log("created product")
            result.mark(SyncOutcome.CREATED)
            # Product id is persisted before the price exists
            await self.store.update(local.id, {"stripe_product_id": product_id})

            price = await self.client.create_price(self.build_price_fields(local, product_id))
            price_id, price_cents = price.id, price.unit_amount
            result.log("created price")
        else:
            fields = self.build_product_fields(local) if force_all else self.changed_product_fields(local, drift)
            if fields:
                await self.client.update_product(remote.id, fields)
                result.log(f"updated product: {', '.join(sorted(fields))}")
                if SyncOutcome.CREATED not in result.outcomes:
                    result.mark(SyncOutcome.UPDATED)

            if drift.needs_new_price:
                old = remote_price.unit_amount if remote_price is not None else price_cents
                price = await self.client.create_price(self.build_price_fields(local, remote.id))
                result.log(f"created new price: {format_cents(price.unit_amount)} (was {format_cents(old)})")
                if SyncOutcome.CREATED not in result.outcomes:
                    result.mark(SyncOutcome.UPDATED)
                price_id, price_cents = price.id, price.unit_amount
            elif remote_price is not None:
                price_cents = remote_price.unit_amount
                if fields or SyncOutcome.CREATED in result.outcomes:
                    result.mark(SyncOutcome.REUSED)
                    result.log(f"reused price {remote_price.id}: {format_cents(price_cents)}")

            if not fields and not drift.needs_new_price and SyncOutcome.CREATED not in result.outcomes:
                result.log("no updates needed - already in sync")
                result.mark(SyncOutcome.SKIPPED)

        updates: Dict[str, Any] = {"last_synced_at": self._clock(), "stripe_active": True}
        if product_id != local.stripe_product_id:
            updates["stripe_product_id"] = product_id
        if price_id != local.stripe_price_id:
            updates["stripe_price_id"] = price_id
        if price_cents != local.stripe_price_amount_cents:
            updates["stripe_price_amount_cents"] = price_cents
        await self.store.update(local.id, updates)

        result.stripe_product_id = product_id
        result.stripe_price_id = price_id
        return result

    async def process(self, local: LocalProductRecord, force_all: bool = False) -> SyncResult:
        """Reload, validate, fetch, detect and reconcile one product. Never raises."""
        result = SyncResult(product_id=local.id, title=local.title)
        async with self._locks[local.id]:
            try:
                # Re-read under the lock; a run that held it may have moved the pointers
                local = await self.store.get(local.id)
                errors = validate_record(local)
                if errors:
                    raise ValidationError(errors)
                remote, remote_price = await self.fetch_remote(local, result)
                drift = self.detector.detect(local, remote, remote_price)
                await self.reconcile_one(local, remote, remote_price, drift, force_all=force_all, result=result)
            except Exception as e:
                logger.error(f"Failed to sync product {local.id} ({local.title}): {e}")
                result.fail(e)
        return result

    async def reconcile_all(
        self,
        working_set: Sequence[LocalProductRecord],
        force_all: bool = False,
        max_concurrent: int = 1,
        deadline_seconds: Optional[float] = None,
    ) -> SyncReport:
        """
        Reconcile every record with at most ``max_concurrent`` in flight.

        Once ``deadline_seconds`` has elapsed, products that have not started
        are reported as aborted; products already in flight finish.
        """
        started_at = self._clock()
        limit = max(1, min(int(max_concurrent or 1), MAX_CONCURRENCY))
        semaphore = asyncio.Semaphore(limit)
        loop = asyncio.get_running_loop()
        cutoff = loop.time() + deadline_seconds if deadline_seconds is not None else None
        results: List[Optional[SyncResult]] = [None] * len(working_set)
        aborted: List[int] = []

        logger.info(f"Reconciling {len(working_set)} products (concurrency={limit}, force_all={force_all})")

        async def worker(index: int, record: LocalProductRecord) -> None:
            async with semaphore:
                if cutoff is not None and loop.time() >= cutoff:
                    aborted.append(record.id)
                    return
                results[index] = await self.process(record, force_all=force_all)

        await asyncio.gather(*(worker(i, record) for i, record in enumerate(working_set)))

        if aborted:
            logger.warning(f"Deadline reached, {len(aborted)} products not started")
        report = summarize(
            [r for r in results if r is not None],
            aborted=sorted(aborted),
            started_at=started_at,
            finished_at=self._clock(),
        )
        logger.info(
            f"Sync completed: {report.succeeded} succeeded, {report.failed} failed; "
            f"{report.created} created, {report.updated} updated, {report.reused} reused, {report.skipped} skipped"
        )
        return report
