import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from crosslist.core.config import Settings, get_settings
from crosslist.core.enums import WithdrawOutcome
from crosslist.core.exceptions import (
    ConflictError,
    EbayAPIError,
    OfferConflictError,
    PermanentRejectionError,
    TransientNetworkError,
    parse_ebay_error,
)
from crosslist.schemas.ebay import (
    CategoryAspect,
    CategorySuggestion,
    InventoryItemPayload,
    Location,
    LocationPayload,
    Offer,
    OfferPayload,
    PriceQuantityResult,
    PriceQuantityUpdate,
)
from crosslist.services.ebay.auth import EbayAuthManager

logger = logging.getLogger(__name__)

# errorIds eBay uses for "resource already exists"
CONFLICT_ERROR_IDS = {25002, 25803}
# create offer also reports an existing offer under the generic system error id
OFFER_CONFLICT_ERROR_IDS = CONFLICT_ERROR_IDS | {25001}

INVENTORY_PAGE_SIZE = 100
MAX_INVENTORY_PAGES = 50


class EbayClient:
    """
    Client for the eBay Sell Inventory, Account and Taxonomy APIs.
    Handles authentication and error classification.

    Every non-success response is raised as one of:
    TransientNetworkError (transport, timeout, 429, 5xx), ConflictError
    (already exists) or PermanentRejectionError (other 4xx).
    """

    def __init__(self, settings: Optional[Settings] = None, auth_manager: Optional[EbayAuthManager] = None):
        self.settings = settings or get_settings()
        self.auth_manager = auth_manager or EbayAuthManager(settings=self.settings)
        self.sandbox = self.settings.EBAY_SANDBOX_MODE
        self.marketplace_id = self.settings.EBAY_MARKETPLACE_ID
        self.timeout = self.settings.HTTP_TIMEOUT_SECONDS

        api_root = "https://api.sandbox.ebay.com" if self.sandbox else "https://api.ebay.com"
        self.INVENTORY_API = f"{api_root}/sell/inventory/v1"
        self.TAXONOMY_API = f"{api_root}/commerce/taxonomy/v1"

    async def _get_headers(self) -> Dict[str, str]:
        """Get headers with auth token for API requests"""
        token = await self.auth_manager.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Content-Language": self.settings.EBAY_LOCALE,
            "Accept-Language": self.settings.EBAY_LOCALE,
            "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
        }

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        *,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, raising TransientNetworkError on transport failure"""
        headers = await self._get_headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, headers=headers, json=json, params=params)
        except httpx.RequestError as e:
            logger.error(f"Network error {action}: {str(e)}")
            raise TransientNetworkError(f"Network error {action}: {str(e)}")

    def _raise_for_response(self, response: httpx.Response, action: str):
        """Classify and raise a failed eBay response"""
        summary, errors = parse_ebay_error(response.text)
        status_code = response.status_code
        error_ids = {e.get("errorId") for e in errors}
        message = f"Failed to {action}: {summary}"
        logger.error(f"eBay API error ({status_code}) while trying to {action}: {summary}")

        if status_code == 409 or error_ids & CONFLICT_ERROR_IDS or "already exists" in summary.lower():
            raise ConflictError(message, status_code=status_code, errors=errors, raw=response.text)
        if status_code == 429 or status_code >= 500:
            raise TransientNetworkError(message, status_code=status_code, errors=errors, raw=response.text)
        raise PermanentRejectionError(message, status_code=status_code, errors=errors, raw=response.text)

    # --- Locations ---

    async def list_locations(self) -> List[Location]:
        """
        Get the seller's inventory locations

        Returns:
            List[Location]: Locations, possibly empty

        Raises:
            EbayAPIError: If the API request fails
        """
        url = f"{self.INVENTORY_API}/location"
        response = await self._request("GET", url, "list locations", params={"limit": 100})
        if response.status_code != 200:
            self._raise_for_response(response, "list locations")
        return [Location.from_api(loc) for loc in response.json().get("locations", [])]

    async def get_location(self, key: str) -> Optional[Location]:
        """
        Get a location by merchant location key

        Returns:
            Optional[Location]: None if the location does not exist
        """
        url = f"{self.INVENTORY_API}/location/{key}"
        response = await self._request("GET", url, f"get location {key}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._raise_for_response(response, f"get location {key}")
        return Location.from_api(response.json())

    async def create_location(self, key: str, payload: LocationPayload) -> bool:
        """
        Create an inventory location

        Raises:
            ConflictError: If a location with this key already exists
            EbayAPIError: If the API request fails
        """
        url = f"{self.INVENTORY_API}/location/{key}"
        response = await self._request("POST", url, f"create location {key}", json=payload.to_api())
        if response.status_code not in (200, 201, 204):
            self._raise_for_response(response, f"create location {key}")
        logger.info(f"Created inventory location {key}")
        return True

    async def enable_location(self, key: str) -> bool:
        """Enable a disabled inventory location"""
        url = f"{self.INVENTORY_API}/location/{key}/enable"
        response = await self._request("POST", url, f"enable location {key}")
        if response.status_code not in (200, 204):
            self._raise_for_response(response, f"enable location {key}")
        return True

    # --- Inventory items ---

    async def get_inventory_items(self, limit: int = INVENTORY_PAGE_SIZE, offset: int = 0) -> Dict:
        """
        Get a page of inventory items

        Args:
            limit: Maximum number of items to return
            offset: Starting position in result set

        Returns:
            Dict: Response data with inventoryItems and total
        """
        url = f"{self.INVENTORY_API}/inventory_item"
        response = await self._request(
            "GET", url, "get inventory items", params={"limit": limit, "offset": offset}
        )
        if response.status_code != 200:
            self._raise_for_response(response, "get inventory items")
        return response.json()

    async def get_inventory_item(self, sku: str) -> Optional[Dict]:
        """
        Get a specific inventory item by SKU

        Returns:
            Optional[Dict]: Item data, None if the SKU is unknown
        """
        url = f"{self.INVENTORY_API}/inventory_item/{sku}"
        response = await self._request("GET", url, f"get inventory item {sku}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._raise_for_response(response, f"get inventory item {sku}")
        return response.json()

    async def create_or_update_inventory_item(self, sku: str, item: InventoryItemPayload) -> bool:
        """
        Create or replace an inventory item. Idempotent per SKU.

        Args:
            sku: The destination SKU
            item: Product content, condition and quantity

        Returns:
            bool: Success status

        Raises:
            EbayAPIError: If the API request fails
        """
        return await self.put_inventory_item(sku, item.to_api())

    async def put_inventory_item(self, sku: str, item_data: Dict) -> bool:
        """PUT a raw inventory item body"""
        url = f"{self.INVENTORY_API}/inventory_item/{sku}"
        response = await self._request("PUT", url, f"create/update inventory item {sku}", json=item_data)
        if response.status_code not in (200, 201, 204):
            self._raise_for_response(response, f"create/update inventory item {sku}")
        return True

    # --- Offers ---

    async def create_offer(self, offer: OfferPayload) -> str:
        """
        Create an offer for an inventory item

        Returns:
            str: The new offer id

        Raises:
            OfferConflictError: If an offer already exists for the SKU
            EbayAPIError: If the API request fails
        """
        url = f"{self.INVENTORY_API}/offer"
        action = f"create offer for {offer.sku}"
        response = await self._request("POST", url, action, json=offer.to_api())

        if response.status_code not in (200, 201):
            summary, errors = parse_ebay_error(response.text)
            error_ids = {e.get("errorId") for e in errors}
            if error_ids & OFFER_CONFLICT_ERROR_IDS or "already exists" in summary.lower():
                logger.info(f"Offer already exists for {offer.sku}: {summary}")
                raise OfferConflictError(
                    f"Offer already exists for {offer.sku}: {summary}",
                    status_code=response.status_code,
                    errors=errors,
                    raw=response.text,
                )
            self._raise_for_response(response, action)

        return str(response.json().get("offerId"))

    async def find_offer_by_sku(self, sku: str) -> Optional[Offer]:
        """
        Look up the offer for a SKU on the configured marketplace

        Returns:
            Optional[Offer]: The first offer, None if there is none
        """
        offers = await self.get_offers(sku)
        return offers[0] if offers else None

    async def get_offers(self, sku: str) -> List[Offer]:
        """Get all offers for a SKU on the configured marketplace"""
        url = f"{self.INVENTORY_API}/offer"
        params = {"sku": sku, "marketplace_id": self.marketplace_id}
        response = await self._request("GET", url, f"get offers for {sku}", params=params)
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            self._raise_for_response(response, f"get offers for {sku}")
        return [Offer.from_api(o) for o in response.json().get("offers", [])]

    async def get_offer(self, offer_id: str) -> Offer:
        """
        Get an offer by id

        Raises:
            EbayAPIError: If the offer cannot be fetched
        """
        url = f"{self.INVENTORY_API}/offer/{offer_id}"
        response = await self._request("GET", url, f"get offer {offer_id}")
        if response.status_code != 200:
            self._raise_for_response(response, f"get offer {offer_id}")
        return Offer.from_api(response.json())

    async def update_offer(self, offer_id: str, offer_data: Dict) -> bool:
        """Replace an offer with a full offer body"""
        url = f"{self.INVENTORY_API}/offer/{offer_id}"
        response = await self._request("PUT", url, f"update offer {offer_id}", json=offer_data)
        if response.status_code not in (200, 204):
            self._raise_for_response(response, f"update offer {offer_id}")
        return True

    async def publish_offer(self, offer_id: str) -> str:
        """
        Publish an offer to make it active on eBay

        Returns:
            str: The listing id

        Raises:
            EbayAPIError: If the API request fails
        """
        url = f"{self.INVENTORY_API}/offer/{offer_id}/publish"
        response = await self._request("POST", url, f"publish offer {offer_id}")
        if response.status_code != 200:
            self._raise_for_response(response, f"publish offer {offer_id}")
        return str(response.json().get("listingId"))

    async def withdraw_offer(self, offer_id: str) -> WithdrawOutcome:
        """
        End the listing behind an offer. The offer itself is kept.

        An offer that is already gone or was never published counts as
        withdrawn; the outcome says which.

        Raises:
            EbayAPIError: For any other failure
        """
        url = f"{self.INVENTORY_API}/offer/{offer_id}/withdraw"
        response = await self._request("POST", url, f"withdraw offer {offer_id}")
        if response.status_code in (200, 204):
            logger.info(f"Withdrew offer {offer_id}")
            return WithdrawOutcome.WITHDRAWN

        summary, _ = parse_ebay_error(response.text)
        lowered = summary.lower()
        if response.status_code == 404 or "not found" in lowered:
            logger.info(f"Offer {offer_id} already removed")
            return WithdrawOutcome.ALREADY_REMOVED
        if "cannot be withdrawn" in lowered or "not published" in lowered:
            logger.info(f"Offer {offer_id} is not published")
            return WithdrawOutcome.NOT_PUBLISHED

        self._raise_for_response(response, f"withdraw offer {offer_id}")

    async def list_offers(self) -> List[Offer]:
        """
        Get every offer the seller has, by walking inventory items

        The result is used as a live set for reconciliation, so hitting the
        page limit raises instead of returning a partial list. SKUs that are
        not alphanumeric were not written by this service
        and cannot be queried for offers, so they are skipped.
        """
        offers: List[Offer] = []
        offset = 0
        for _ in range(MAX_INVENTORY_PAGES):
            page = await self.get_inventory_items(limit=INVENTORY_PAGE_SIZE, offset=offset)
            items = page.get("inventoryItems", [])
            for item in items:
                sku = item.get("sku") or ""
                if not sku.isalnum():
                    logger.debug(f"Skipping non-alphanumeric SKU {sku!r}")
                    continue
                offers.extend(await self.get_offers(sku))

            offset += len(items)
            if not items or offset >= page.get("total", 0):
                return offers

        raise EbayAPIError(
            f"More than {MAX_INVENTORY_PAGES * INVENTORY_PAGE_SIZE} inventory items; refusing a partial offer list"
        )

    async def list_published_offers(self) -> List[Offer]:
        return [offer for offer in await self.list_offers() if offer.is_published]

    async def bulk_update_price_quantity(self, updates: Iterable[PriceQuantityUpdate]) -> List[PriceQuantityResult]:
        """
        Update price and/or quantity of up to 25 offers in one call

        Returns:
            List[PriceQuantityResult]: Per-offer outcome
        """
        body = {"requests": [u.to_api(self.settings.EBAY_CURRENCY) for u in updates]}
        url = f"{self.INVENTORY_API}/bulk_update_price_quantity"
        response = await self._request("POST", url, "bulk update price/quantity", json=body)
        if response.status_code not in (200, 207):
            self._raise_for_response(response, "bulk update price/quantity")

        results = []
        for entry in response.json().get("responses", []):
            status_code = entry.get("statusCode")
            errors = entry.get("errors") or []
            results.append(PriceQuantityResult(
                offer_id=entry.get("offerId"),
                sku=entry.get("sku"),
                status_code=status_code,
                success=status_code == 200,
                error="; ".join(
                    f"[{e.get('errorId')}] {e.get('message')}" for e in errors
                ) or None,
            ))
        return results

    # --- Taxonomy ---

    async def get_category_suggestions(self, query: str) -> List[CategorySuggestion]:
        """
        Get category suggestions for a free-text query

        Returns:
            List[CategorySuggestion]: Best match first
        """
        tree_id = self.settings.EBAY_CATEGORY_TREE_ID
        url = f"{self.TAXONOMY_API}/category_tree/{tree_id}/get_category_suggestions"
        response = await self._request("GET", url, "get category suggestions", params={"q": query})
        if response.status_code != 200:
            self._raise_for_response(response, "get category suggestions")

        suggestions = []
        for entry in response.json().get("categorySuggestions", []):
            category = entry.get("category") or {}
            if category.get("categoryId"):
                suggestions.append(CategorySuggestion(
                    category_id=str(category["categoryId"]),
                    category_name=category.get("categoryName"),
                ))
        return suggestions

    async def get_category_aspects(self, category_id: str) -> List[CategoryAspect]:
        """Get item specifics (aspects) defined for a category"""
        tree_id = self.settings.EBAY_CATEGORY_TREE_ID
        url = f"{self.TAXONOMY_API}/category_tree/{tree_id}/get_item_aspects_for_category"
        response = await self._request(
            "GET", url, f"get aspects for category {category_id}", params={"category_id": category_id}
        )
        if response.status_code != 200:
            self._raise_for_response(response, f"get aspects for category {category_id}")
        return [CategoryAspect.from_api(a) for a in response.json().get("aspects", [])]

    async def get_required_aspects(self, category_id: str) -> List[str]:
        """Names of the aspects a category requires before publish"""
        aspects = await self.get_category_aspects(category_id)
        return [aspect.name for aspect in aspects if aspect.required and aspect.name]
