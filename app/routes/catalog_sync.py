# app/routes/catalog_sync.py
"""
HTTP surface for the catalog sync engine.

Runs are executed inline and return the full report; the readiness check gates
every mutating endpoint.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.core.exceptions import PreconditionFailedError, ProductNotFoundError, RemoteApiError
from app.dependencies import get_catalog_sync_service
from app.schemas.catalog_sync import (
    CatalogAnalysisRead,
    DriftReportRead,
    DuplicatePriceAnalysisRead,
    HealthReportRead,
    SyncReportRead,
    SyncResultRead,
    TaxCodeListRead,
)
from app.services.catalog_sync_service import CatalogSyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/catalog-sync", tags=["catalog-sync"])


@router.get("/health", response_model=HealthReportRead)
async def catalog_sync_health(service: CatalogSyncService = Depends(get_catalog_sync_service)):
    """Read-only readiness check plus product counts."""
    report = await service.run_health_check(include_counts=True)
    return HealthReportRead.from_service(report)


@router.post("/run", response_model=SyncReportRead)
async def run_catalog_sync(
    force_all: bool = False,
    max_concurrent: Optional[int] = None,
    deadline_seconds: Optional[float] = None,
    service: CatalogSyncService = Depends(get_catalog_sync_service),
):
    """Reconcile every sync-eligible product. 409 with the issues when not ready."""
    if max_concurrent is not None and not 1 <= max_concurrent <= 8:
        raise HTTPException(status_code=400, detail="max_concurrent must be between 1 and 8")
    if deadline_seconds is not None and deadline_seconds <= 0:
        raise HTTPException(status_code=400, detail="deadline_seconds must be positive")

    logger.info(f"Catalog sync requested (force_all={force_all})")
    report = await service.run_sync(
        force_all=force_all,
        max_concurrent=max_concurrent,
        deadline_seconds=deadline_seconds,
    )
    body = SyncReportRead.from_service(report)
    if not report.ready:
        return JSONResponse(status_code=409, content=body.model_dump(mode="json"))
    return body


@router.post("/products/{product_id}", response_model=SyncResultRead)
async def force_sync_product(
    product_id: int,
    service: CatalogSyncService = Depends(get_catalog_sync_service),
):
    """Force-sync one product. 400 with the result when it fails."""
    try:
        result = await service.reconcile_product(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PreconditionFailedError as e:
        raise HTTPException(status_code=409, detail={"message": str(e), "issues": e.issues})

    body = SyncResultRead.from_service(result)
    if not result.success:
        return JSONResponse(status_code=400, content=body.model_dump(mode="json"))
    return body


@router.get("/products/{product_id}/drift", response_model=DriftReportRead)
async def product_drift(
    product_id: int,
    service: CatalogSyncService = Depends(get_catalog_sync_service),
):
    try:
        drift = await service.detect_product(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RemoteApiError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return DriftReportRead.from_service(drift)


@router.get("/analysis", response_model=CatalogAnalysisRead)
async def catalog_analysis(service: CatalogSyncService = Depends(get_catalog_sync_service)):
    """Drift analysis across the whole catalog. Writes nothing."""
    analysis = await service.analyze_catalog()
    return CatalogAnalysisRead.from_service(analysis)


@router.get("/duplicate-prices", response_model=DuplicatePriceAnalysisRead)
async def duplicate_prices(service: CatalogSyncService = Depends(get_catalog_sync_service)):
    analysis = await service.analyze_duplicate_prices()
    return DuplicatePriceAnalysisRead.from_service(analysis)


@router.get("/tax-codes", response_model=TaxCodeListRead)
async def tax_codes(
    limit: int = 100,
    service: CatalogSyncService = Depends(get_catalog_sync_service),
):
    try:
        data = await service.list_tax_codes(limit=limit)
    except RemoteApiError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return TaxCodeListRead.model_validate(data)


@router.get("/report", response_model=SyncReportRead)
async def last_report(service: CatalogSyncService = Depends(get_catalog_sync_service)):
    """Most recent cached run report."""
    report = service.last_report()
    if report is None:
        raise HTTPException(status_code=404, detail="No cached sync report")
    return SyncReportRead.from_service(report)


@router.delete("/report")
async def invalidate_report(service: CatalogSyncService = Depends(get_catalog_sync_service)):
    service.invalidate_report()
    return {"status": "invalidated"}
