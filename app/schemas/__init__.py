"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema

# Catalog sync schemas
from .catalog_sync import (
    HealthReportRead,
    SyncResultRead,
    SyncReportRead,
    DriftReportRead,
    CatalogAnalysisRead,
    DuplicatePriceAnalysisRead,
    TaxCodeListRead,
)
