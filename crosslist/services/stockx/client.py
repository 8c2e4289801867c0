import logging
from typing import Dict, List, Optional

import httpx

from crosslist.core.config import Settings, get_settings
from crosslist.core.enums import WithdrawOutcome
from crosslist.core.exceptions import ConfigurationError, StockXAPIError
from crosslist.schemas.stockx import CatalogProduct, StockXListing

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 20


class StockXClient:
    """
    Client for the StockX public API (selling listings and catalog).
    """

    BASE_URL = "https://api.stockx.com/v2"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if not self.settings.STOCKX_API_KEY:
            raise ConfigurationError("STOCKX_API_KEY is not configured")
        self.api_key = self.settings.STOCKX_API_KEY
        self.access_token = self.settings.STOCKX_ACCESS_TOKEN
        self.timeout = self.settings.HTTP_TIMEOUT_SECONDS

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(self, method: str, url: str, action: str, params: Optional[Dict] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, headers=self._get_headers(), params=params)
        except httpx.RequestError as e:
            logger.error(f"Network error {action}: {str(e)}")
            raise StockXAPIError(f"Network error {action}: {str(e)}")

    async def get_active_listings(self) -> List[StockXListing]:
        """
        Get every ACTIVE listing, following pagination

        The result is used as a live set for reconciliation, so an incomplete
        read is an error rather than a short list.

        Raises:
            StockXAPIError: If any page fails or the page limit is reached
        """
        listings: List[StockXListing] = []
        for page_number in range(1, MAX_PAGES + 1):
            params = {
                "pageNumber": page_number,
                "pageSize": PAGE_SIZE,
                "listingStatuses": "ACTIVE",
            }
            response = await self._request(
                "GET", f"{self.BASE_URL}/selling/listings", "fetching listings", params=params
            )
            if response.status_code != 200:
                logger.error(f"StockX API error {response.status_code}: {response.text[:200]}")
                raise StockXAPIError(
                    f"Failed to fetch listings page {page_number}: {response.text[:200]}",
                    status_code=response.status_code,
                )

            data = response.json()
            page = data.get("listings") or []
            listings.extend(StockXListing.from_api(entry) for entry in page)

            if not page or not data.get("hasNextPage"):
                logger.info(f"Found {len(listings)} active StockX listings")
                return listings

        raise StockXAPIError(f"More than {MAX_PAGES * PAGE_SIZE} active listings; refusing a partial read")

    async def delete_listing(self, listing_id: str) -> WithdrawOutcome:
        """
        Delete a StockX listing

        Returns:
            WithdrawOutcome: WITHDRAWN, or ALREADY_REMOVED on 404

        Raises:
            StockXAPIError: For any other failure
        """
        response = await self._request(
            "DELETE", f"{self.BASE_URL}/selling/listings/{listing_id}", f"deleting listing {listing_id}"
        )
        if response.status_code in (200, 202, 204):
            logger.info(f"Deleted StockX listing {listing_id}")
            return WithdrawOutcome.WITHDRAWN
        if response.status_code == 404:
            logger.info(f"StockX listing {listing_id} not found (already removed)")
            return WithdrawOutcome.ALREADY_REMOVED

        logger.error(f"Failed to delete StockX listing {listing_id}: {response.text[:200]}")
        raise StockXAPIError(
            f"Failed to delete listing {listing_id}: {response.status_code}",
            status_code=response.status_code,
        )

    async def search_catalog(self, query: str) -> List[CatalogProduct]:
        """
        Search the catalog, falling back to the products endpoint

        Returns:
            List[CatalogProduct]: Matches, exact style id first
        """
        response = await self._request(
            "GET", f"{self.BASE_URL}/catalog/search", "searching catalog", params={"query": query}
        )
        if response.status_code != 200:
            logger.debug(f"Catalog search failed ({response.status_code}), trying products endpoint")
            response = await self._request(
                "GET", f"{self.BASE_URL}/catalog/products", "searching catalog", params={"query": query}
            )
            if response.status_code == 404:
                return []
            if response.status_code != 200:
                raise StockXAPIError(
                    f"Catalog search failed for {query}: {response.text[:200]}",
                    status_code=response.status_code,
                )

        data = response.json()
        entries = data.get("products") or data.get("data") or data.get("results") or data.get("hits") or []
        products = [CatalogProduct.from_api(entry) for entry in entries]

        wanted = query.strip().lower()
        products.sort(key=lambda p: p.style_id.lower() != wanted)
        return products
