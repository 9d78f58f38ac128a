# app/services/sync_health_service.py
"""
Readiness check run before any mutating catalog sync pass.

Read-only: probes the local schema for the sync columns and makes one
authenticated identity call against Stripe.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import GENERIC_TAX_CODE
from app.core.enums import StripeMode
from app.core.exceptions import BaseServiceError, RemoteApiError
from app.integrations.base import RemoteCatalogClient
from app.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class HealthReport:
    local_schema_ready: bool = False
    remote_configured: bool = False
    default_tax_code: str = GENERIC_TAX_CODE
    tax_code_source: str = "default"  # "configured" or "default"
    mode: str = "sandbox"
    issues: List[str] = field(default_factory=list)
    missing_columns: List[str] = field(default_factory=list)
    account_id: Optional[str] = None
    product_count: Optional[int] = None
    synced_count: Optional[int] = None

    @property
    def ready(self) -> bool:
        return self.local_schema_ready and self.remote_configured

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "local_schema_ready": self.local_schema_ready,
            "remote_configured": self.remote_configured,
            "default_tax_code": self.default_tax_code,
            "tax_code_source": self.tax_code_source,
            "mode": self.mode,
            "issues": list(self.issues),
            "missing_columns": list(self.missing_columns),
            "account_id": self.account_id,
            "product_count": self.product_count,
            "synced_count": self.synced_count,
        }


class SyncHealthService:
    """Verifies the local store and Stripe are usable for a sync pass."""

    def __init__(
        self,
        store: CatalogStore,
        client: RemoteCatalogClient,
        configured_tax_code: Optional[str] = None,
        mode: str = "sandbox",
    ):
        self.store = store
        self.client = client
        self.configured_tax_code = configured_tax_code
        self.mode = mode

    async def check_readiness(self, include_counts: bool = False) -> HealthReport:
        report = HealthReport(
            default_tax_code=self.configured_tax_code or GENERIC_TAX_CODE,
            tax_code_source="configured" if self.configured_tax_code else "default",
            mode=self.mode,
        )

        await self._check_local_schema(report)
        await self._check_remote(report)

        if include_counts and report.local_schema_ready:
            try:
                report.product_count = await self.store.count_products(eligible_only=True)
                report.synced_count = await self.store.count_synced()
            except SQLAlchemyError as e:
                logger.warning(f"Could not count products: {e}")

        if report.ready:
            logger.info(f"Catalog sync ready (mode={report.mode}, tax code={report.default_tax_code})")
        else:
            logger.warning(f"Catalog sync not ready: {'; '.join(report.issues)}")
        return report

    async def _check_local_schema(self, report: HealthReport) -> None:
        try:
            missing = await self.store.probe_sync_columns()
        except (SQLAlchemyError, BaseServiceError) as e:
            report.issues.append(f"Local catalog store unreachable: {e}")
            return

        if missing:
            report.missing_columns = missing
            report.issues.append(f"Products table is missing sync columns: {', '.join(missing)}")
            return
        report.local_schema_ready = True

    async def _check_remote(self, report: HealthReport) -> None:
        if getattr(self.client, "configured", True) is False:
            report.issues.append(f"Stripe secret key not configured for {self.mode} mode")
            return

        try:
            account = await self.client.verify_credentials()
        except RemoteApiError as e:
            report.issues.append(f"Stripe credentials check failed: {e}")
            return

        report.account_id = account.get("id")
        livemode = account.get("livemode")
        if livemode is not None and bool(livemode) != (self.mode == StripeMode.LIVE):
            report.issues.append(
                f"STRIPE_MODE is {self.mode} but the key is a {'live' if livemode else 'test'} key"
            )
            return
        report.remote_configured = True
