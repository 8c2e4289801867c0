# crosslist/core/config.py

import os
from functools import lru_cache
from typing import List, Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # eBay OAuth
    EBAY_SANDBOX_MODE: bool = False
    EBAY_CLIENT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""
    EBAY_REFRESH_TOKEN: str = ""
    EBAY_SANDBOX_CLIENT_ID: str = ""
    EBAY_SANDBOX_CLIENT_SECRET: str = ""
    EBAY_SANDBOX_REFRESH_TOKEN: str = ""

    # eBay marketplace
    EBAY_MARKETPLACE_ID: str = "EBAY_US"
    EBAY_LOCALE: str = "en-US"
    EBAY_CURRENCY: str = "USD"
    EBAY_CATEGORY_TREE_ID: str = "0"

    # eBay business policies (required before any listing call)
    EBAY_FULFILLMENT_POLICY_ID: str = ""
    EBAY_PAYMENT_POLICY_ID: str = ""
    EBAY_RETURN_POLICY_ID: str = ""

    # eBay inventory location defaults
    EBAY_LOCATION_KEY: str = "crosslist-warehouse"
    EBAY_LOCATION_NAME: str = "Crosslist Warehouse"
    EBAY_LOCATION_ADDRESS: str = "100 Commerce Street"
    EBAY_LOCATION_CITY: str = "Los Angeles"
    EBAY_LOCATION_STATE: str = "CA"
    EBAY_LOCATION_ZIP: str = "90001"
    EBAY_LOCATION_COUNTRY: str = "US"

    # eBay price is the source price multiplied by this, rounded up
    EBAY_PRICE_MARKUP: float = 1.10

    # StockX API
    STOCKX_API_KEY: str = ""
    STOCKX_ACCESS_TOKEN: str = ""

    # Listing pipeline
    HTTP_TIMEOUT_SECONDS: float = 30.0
    LISTING_CONCURRENCY: int = 2

    # Reconciliation
    DEFAULT_ACCOUNT_ID: str = "default"
    RECONCILE_LEGACY_MATCH: bool = True
    RECONCILE_LOCK_MINUTES: int = 10
    RECONCILE_INTERVAL_MINUTES: int = 15
    SCHEDULER_ENABLED: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Basic Auth
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: Optional[str] = None

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    def missing_policy_settings(self) -> List[str]:
        """Names of business policy settings that are not configured"""
        policies = {
            "EBAY_FULFILLMENT_POLICY_ID": self.EBAY_FULFILLMENT_POLICY_ID,
            "EBAY_PAYMENT_POLICY_ID": self.EBAY_PAYMENT_POLICY_ID,
            "EBAY_RETURN_POLICY_ID": self.EBAY_RETURN_POLICY_ID,
        }
        return [name for name, value in policies.items() if not value]


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()
