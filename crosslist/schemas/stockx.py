from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class StockXListing(BaseModel):
    """An active ask on StockX"""
    listing_id: str
    style_id: str = ""
    size: str = ""
    product_name: Optional[str] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "StockXListing":
        product = data.get("product") or {}
        variant = data.get("variant") or {}
        return cls(
            listing_id=str(data.get("listingId", "")),
            style_id=product.get("styleId") or "",
            size=variant.get("variantValue") or "",
            product_name=product.get("productName"),
            amount=data.get("amount"),
            status=data.get("status"),
        )


class CatalogProduct(BaseModel):
    product_id: str
    style_id: str = ""
    title: str = ""
    brand: Optional[str] = None
    colorway: Optional[str] = None
    product_type: Optional[str] = None
    gender: Optional[str] = None
    image_urls: List[str] = []
    retail_price: Optional[Decimal] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CatalogProduct":
        attributes = data.get("productAttributes") or {}
        images = []
        for key in ("imageUrl", "thumbUrl"):
            if data.get(key):
                images.append(data[key])
        media = data.get("media") or {}
        for key in ("imageUrl", "smallImageUrl", "thumbUrl"):
            if media.get(key):
                images.append(media[key])

        return cls(
            product_id=str(data.get("productId", "")),
            style_id=data.get("styleId") or "",
            title=data.get("title") or data.get("productName") or "",
            brand=data.get("brand"),
            colorway=attributes.get("colorway") or attributes.get("color"),
            product_type=data.get("productType"),
            gender=attributes.get("gender"),
            image_urls=images,
            retail_price=attributes.get("retailPrice"),
        )
