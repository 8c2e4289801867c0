"""
Request and response records for the eBay Sell Inventory API.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from crosslist.core.enums import ItemCondition, LocationStatus, OfferStatus
from crosslist.schemas.base import ApiPayloadSchema


class LocationAddress(ApiPayloadSchema):
    address_line1: str
    city: str
    state_or_province: str
    postal_code: str
    country: str = "US"


class LocationPayload(ApiPayloadSchema):
    name: str
    address: LocationAddress
    location_types: List[str] = ["WAREHOUSE"]
    merchant_location_status: LocationStatus = LocationStatus.ENABLED

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data["location"] = {"address": data.pop("address")}
        return data


class Location(BaseModel):
    merchant_location_key: str
    merchant_location_status: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_enabled(self) -> bool:
        return self.merchant_location_status == LocationStatus.ENABLED.value

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            merchant_location_key=data.get("merchantLocationKey", ""),
            merchant_location_status=data.get("merchantLocationStatus"),
            name=data.get("name"),
        )


class InventoryItemPayload(BaseModel):
    """Product content of an eBay inventory item. Upserted by SKU."""
    title: str
    condition: ItemCondition = ItemCondition.NEW
    quantity: int = 1
    image_urls: List[str] = []
    aspects: Dict[str, List[str]] = {}
    description: Optional[str] = None
    brand: Optional[str] = None
    mpn: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        product: Dict[str, Any] = {
            "title": self.title,
            "aspects": self.aspects,
        }
        if self.description:
            product["description"] = self.description
        if self.image_urls:
            product["imageUrls"] = self.image_urls
        if self.brand:
            product["brand"] = self.brand
        if self.mpn:
            product["mpn"] = self.mpn

        return {
            "availability": {
                "shipToLocationAvailability": {"quantity": self.quantity}
            },
            "condition": self.condition.value,
            "product": product,
        }


class OfferPayload(BaseModel):
    sku: str
    marketplace_id: str
    category_id: str
    price: Decimal
    currency: str = "USD"
    quantity: int = 1
    merchant_location_key: str
    fulfillment_policy_id: str
    payment_policy_id: str
    return_policy_id: str
    description: Optional[str] = None
    format: str = "FIXED_PRICE"

    def to_api(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "sku": self.sku,
            "marketplaceId": self.marketplace_id,
            "format": self.format,
            "availableQuantity": self.quantity,
            "categoryId": self.category_id,
            "pricingSummary": {
                "price": {"value": str(self.price), "currency": self.currency}
            },
            "listingPolicies": {
                "fulfillmentPolicyId": self.fulfillment_policy_id,
                "paymentPolicyId": self.payment_policy_id,
                "returnPolicyId": self.return_policy_id,
            },
            "merchantLocationKey": self.merchant_location_key,
        }
        if self.description:
            data["listingDescription"] = self.description
        return data


class Offer(BaseModel):
    offer_id: str
    sku: str = ""
    status: Optional[str] = None
    listing_id: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    quantity: Optional[int] = None
    category_id: Optional[str] = None
    merchant_location_key: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @property
    def is_published(self) -> bool:
        return self.status == OfferStatus.PUBLISHED.value

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Offer":
        price = (data.get("pricingSummary") or {}).get("price") or {}
        listing = data.get("listing") or {}
        return cls(
            offer_id=str(data.get("offerId", "")),
            sku=data.get("sku", ""),
            status=data.get("status"),
            listing_id=listing.get("listingId"),
            price=price.get("value"),
            currency=price.get("currency"),
            quantity=data.get("availableQuantity"),
            category_id=data.get("categoryId"),
            merchant_location_key=data.get("merchantLocationKey"),
            raw=data,
        )


class CategoryAspect(BaseModel):
    name: str
    required: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CategoryAspect":
        constraint = data.get("aspectConstraint") or {}
        required = bool(constraint.get("aspectRequired")) or (
            (constraint.get("aspectUsage") or data.get("aspectUsage")) == "REQUIRED"
        )
        return cls(name=data.get("localizedAspectName", ""), required=required)


class CategorySuggestion(BaseModel):
    category_id: str
    category_name: Optional[str] = None


class PriceQuantityUpdate(BaseModel):
    offer_id: str
    sku: str
    price: Optional[Decimal] = None
    quantity: Optional[int] = None

    def to_api(self, currency: str = "USD") -> Dict[str, Any]:
        offer: Dict[str, Any] = {"offerId": self.offer_id}
        if self.price is not None:
            offer["price"] = {"value": str(self.price), "currency": currency}
        if self.quantity is not None:
            offer["availableQuantity"] = self.quantity

        request: Dict[str, Any] = {"sku": self.sku, "offers": [offer]}
        if self.quantity is not None:
            request["shipToLocationAvailability"] = {"quantity": self.quantity}
        return request


class PriceQuantityResult(BaseModel):
    offer_id: Optional[str] = None
    sku: Optional[str] = None
    status_code: Optional[int] = None
    success: bool = False
    error: Optional[str] = None


class OfferUpdate(BaseModel):
    """Fields a caller may change on an existing offer"""
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    description: Optional[str] = None
    title: Optional[str] = None
