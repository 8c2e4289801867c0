"""
Merchant location resolution.

Every eBay offer must point at an enabled inventory location. A seller may
already have one, may have a disabled one, or may have none at all.
"""

import asyncio
import logging
from typing import Optional

from crosslist.core.config import Settings
from crosslist.core.exceptions import ConflictError, EbayAPIError, LocationUnavailableError
from crosslist.schemas.ebay import LocationAddress, LocationPayload
from crosslist.services.ebay.client import EbayClient

logger = logging.getLogger(__name__)


class LocationResolver:
    """Finds, enables or creates the merchant location used for offers"""

    def __init__(self, client: EbayClient, settings: Settings):
        self.client = client
        self.settings = settings

    def default_location_payload(self) -> LocationPayload:
        s = self.settings
        return LocationPayload(
            name=s.EBAY_LOCATION_NAME,
            address=LocationAddress(
                address_line1=s.EBAY_LOCATION_ADDRESS,
                city=s.EBAY_LOCATION_CITY,
                state_or_province=s.EBAY_LOCATION_STATE,
                postal_code=s.EBAY_LOCATION_ZIP,
                country=s.EBAY_LOCATION_COUNTRY,
            ),
        )

    async def ensure_location(self) -> str:
        """
        Return a usable merchant location key.

        1. The first ENABLED location.
        2. Otherwise the first existing location, after an enable attempt.
        3. Otherwise a new location under the configured key.

        Raises:
            LocationUnavailableError: If no location can be found or created
        """
        try:
            locations = await self.client.list_locations()
        except EbayAPIError as e:
            logger.warning(f"Could not list locations, will try to create one: {e}")
            locations = []

        for location in locations:
            if location.is_enabled:
                logger.debug(f"Using enabled location {location.merchant_location_key}")
                return location.merchant_location_key

        if locations:
            key = locations[0].merchant_location_key
            try:
                await self.client.enable_location(key)
                logger.info(f"Enabled location {key}")
            except EbayAPIError as e:
                logger.warning(f"Failed to enable location {key}, using it anyway: {e}")
            return key

        key = self.settings.EBAY_LOCATION_KEY
        try:
            await self.client.create_location(key, self.default_location_payload())
            return key
        except ConflictError:
            logger.info(f"Location {key} already exists, fetching it")
        except EbayAPIError as e:
            raise LocationUnavailableError(f"Failed to create inventory location {key}: {e}")

        try:
            existing = await self.client.get_location(key)
        except EbayAPIError as e:
            raise LocationUnavailableError(f"Failed to fetch inventory location {key}: {e}")
        if existing is None:
            raise LocationUnavailableError(
                f"Location {key} reported as existing but could not be fetched"
            )
        return key


class LocationCache:
    """
    Resolved location for one batch.

    Concurrent pipelines share the first resolution. A new cache is made per
    batch, so nothing leaks between runs.
    """

    def __init__(self, resolver: LocationResolver):
        self.resolver = resolver
        self._key: Optional[str] = None
        self._lock = asyncio.Lock()

    async def get(self) -> str:
        if self._key is not None:
            return self._key
        async with self._lock:
            if self._key is None:
                self._key = await self.resolver.ensure_location()
        return self._key
