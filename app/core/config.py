# app/core/config.py - Consolidated

import os
from functools import lru_cache
from typing import Optional, Annotated
from pydantic import ConfigDict, BeforeValidator
from pydantic_settings import BaseSettings

from app.core.enums import StripeMode

# Stripe's "General - Tangible Goods" classification. Used whenever no
# business-specific tax code has been configured.
GENERIC_TAX_CODE = "txcd_99999999"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Stripe API
    STRIPE_MODE: str = "sandbox"  # "sandbox" or "live"
    STRIPE_TEST_SECRET_KEY: str = ""
    STRIPE_LIVE_SECRET_KEY: str = ""
    STRIPE_SECRET_KEY: str = ""  # Legacy name, used as a live fallback
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_API_VERSION: str = "2024-06-20"
    STRIPE_TIMEOUT_SECONDS: float = 30.0
    STRIPE_MAX_RETRIES: int = 3

    # Tax classification applied to synced products
    STRIPE_DEFAULT_TAX_CODE: Annotated[Optional[str], BeforeValidator(_blank_to_none)] = None

    # Catalog conventions
    CATALOG_CURRENCY: str = "usd"
    CATALOG_TAX_BEHAVIOR: str = "exclusive"
    CATALOG_SOURCE_TAG: str = "carolina-bumper-plates"
    CATALOG_DESCRIPTION_TEMPLATE: str = "Hi-Temp {weight}lb Bumper Plate - Factory Second"

    # Sync pass behaviour
    SYNC_MAX_CONCURRENT: int = 1
    SYNC_DEADLINE_SECONDS: Optional[float] = None
    SYNC_ADOPT_ORPHANED_PRODUCTS: bool = True
    SYNC_REPORT_CACHE_TTL_SECONDS: int = 300
    SYNC_SCHEDULE_CRON: Annotated[Optional[str], BeforeValidator(_blank_to_none)] = None

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def stripe_secret_key(self) -> str:
        """Secret key for the active Stripe mode (live falls back to the legacy key)."""
        if self.STRIPE_MODE == StripeMode.LIVE:
            return self.STRIPE_LIVE_SECRET_KEY or self.STRIPE_SECRET_KEY
        return self.STRIPE_TEST_SECRET_KEY

    @property
    def default_tax_code(self) -> str:
        return self.STRIPE_DEFAULT_TAX_CODE or GENERIC_TAX_CODE


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
