"""
Listing content helpers: titles, descriptions, images, conditions, prices.
"""

import math
import re
from decimal import Decimal
from typing import Iterable, List, Optional

from crosslist.core.enums import ItemCondition

MAX_TITLE_LENGTH = 80
MAX_IMAGES = 12

CONDITION_MAP = {
    "NEW": ItemCondition.NEW,
    "BRAND NEW": ItemCondition.NEW,
    "NEW WITH BOX": ItemCondition.NEW,
    "NEW WITH TAGS": ItemCondition.NEW,
    "NEW WITHOUT BOX": ItemCondition.NEW_OTHER,
    "NEW WITHOUT TAGS": ItemCondition.NEW_OTHER,
    "NEW_OTHER": ItemCondition.NEW_OTHER,
    "NEW_WITH_DEFECTS": ItemCondition.NEW_WITH_DEFECTS,
    "USED": ItemCondition.USED_EXCELLENT,
    "USED - EXCELLENT": ItemCondition.USED_EXCELLENT,
    "USED_EXCELLENT": ItemCondition.USED_EXCELLENT,
    "USED - GOOD": ItemCondition.USED_GOOD,
    "USED_GOOD": ItemCondition.USED_GOOD,
    "PRE-OWNED": ItemCondition.USED_EXCELLENT,
}


def map_condition(condition: Optional[str]) -> ItemCondition:
    return CONDITION_MAP.get((condition or "NEW").strip().upper(), ItemCondition.NEW)


def sanitize_title(title: Optional[str]) -> str:
    """Strip markup and control characters, collapse spaces, cap at 80 chars"""
    if not title:
        return "Item"
    cleaned = re.sub(r"[<>]", "", title)
    cleaned = re.sub(r"[\x00-\x1f]", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:MAX_TITLE_LENGTH].rstrip() or "Item"


def build_title(base_title: str, size: str) -> str:
    if size and size.upper() not in base_title.upper():
        return sanitize_title(f"{base_title} Size {size}")
    return sanitize_title(base_title)


def generate_description(title: str, size: str = "", colorway: Optional[str] = None, style_code: Optional[str] = None) -> str:
    parts = [f"<p><strong>{sanitize_title(title)}</strong></p>"]
    if size:
        parts.append(f"<p><strong>Size:</strong> {size}</p>")
    if colorway:
        parts.append(f"<p><strong>Colorway:</strong> {colorway}</p>")
    if style_code:
        parts.append(f"<p><strong>Style Code:</strong> {style_code}</p>")
    parts.append("<p>Brand new, 100% authentic. Ships within 1-2 business days.</p>")
    return "\n".join(parts)


def normalize_image_urls(*sources: Iterable[str]) -> List[str]:
    """Force https, drop duplicates, keep at most 12"""
    urls: List[str] = []
    for source in sources:
        for url in source or []:
            if not url or not isinstance(url, str):
                continue
            url = url.strip()
            if url.startswith("//"):
                url = f"https:{url}"
            elif url.startswith("http://"):
                url = "https://" + url[len("http://"):]
            if not url.startswith("https://") or url in urls:
                continue
            urls.append(url)
            if len(urls) == MAX_IMAGES:
                return urls
    return urls


def apply_markup(price: Decimal, markup: float) -> Decimal:
    """Destination price: source price times markup, rounded up to a whole unit"""
    return Decimal(math.ceil(Decimal(str(price)) * Decimal(str(markup))))
