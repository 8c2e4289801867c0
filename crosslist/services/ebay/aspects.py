"""
Item specifics (aspects) for eBay inventory items.

build_aspects fills what can be derived from the source listing and catalog
data; AspectValidator decides whether a category's required aspects are all
present before an offer may be published.
"""

import logging
import re
from typing import Dict, Iterable, List, NamedTuple, Optional

from crosslist.schemas.listing import EnrichmentResult, ListingItem

logger = logging.getLogger(__name__)

KIDS_SIZE_MARKERS = ("Y", "GS", "PS", "TD", "C")

# Category-level defaults for sneaker categories
ASPECT_DEFAULTS: Dict[str, str] = {
    "Style": "Sneaker",
    "Closure": "Lace Up",
    "Features": "Cushioned",
    "Outsole Material": "Rubber",
}

COLOR_WORDS = (
    "Black", "White", "Red", "Blue", "Green", "Yellow", "Orange", "Purple",
    "Pink", "Brown", "Grey", "Gray", "Beige", "Tan", "Cream", "Gold",
    "Silver", "Navy", "Olive", "Multicolor",
)

MISSING_REASONS = {
    "color": "Color could not be inferred from the colorway or title; set it manually",
    "size": "Size could not be parsed from the size token; set it manually",
}
GENERIC_MISSING_REASON = "Required by the eBay category and not provided"


def _size_digits(size: str) -> str:
    return re.sub(r"[^\d.]", "", size or "")


def infer_size_aspects(size: str) -> Dict[str, List[str]]:
    """US Shoe Size and Department from a size token such as '9W' or '5.5Y'"""
    aspects: Dict[str, List[str]] = {}
    if not size:
        return aspects

    upper = str(size).upper()
    numeric = _size_digits(upper)
    if numeric:
        aspects["US Shoe Size"] = [numeric]

    if "W" in upper:
        aspects["Department"] = ["Women"]
        if numeric:
            aspects["US Shoe Size (Women's)"] = [numeric]
    elif any(marker in upper for marker in KIDS_SIZE_MARKERS):
        aspects["Department"] = ["Kids"]
    elif numeric and _as_float(numeric) is not None and _as_float(numeric) < 4:
        aspects["Department"] = ["Kids"]
    elif numeric:
        aspects["Department"] = ["Men"]
        aspects["US Shoe Size (Men's)"] = [numeric]

    return aspects


def _as_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def infer_color(colorway: Optional[str], title: Optional[str]) -> Optional[str]:
    """Primary colour from a 'Black/White/University Red' colorway, else the title"""
    if colorway:
        primary = colorway.split("/")[0].strip()
        if primary:
            return primary
    if title:
        for word in COLOR_WORDS:
            if re.search(rf"\b{word}\b", title, re.IGNORECASE):
                return word
    return None


def build_aspects(
    item: ListingItem,
    enrichment: Optional[EnrichmentResult] = None,
    required: Iterable[str] = (),
    title: Optional[str] = None,
) -> Dict[str, List[str]]:
    """
    Assemble aspects for an inventory item.

    Caller-supplied attributes win over catalog attributes, which win over
    inferred values. Anything that cannot be inferred is left out so the
    validator reports it.
    """
    enrichment = enrichment or EnrichmentResult()
    aspects: Dict[str, List[str]] = {}

    brand = item.brand or enrichment.brand
    aspects["Brand"] = [brand] if brand else ["Unbranded"]

    aspects.update(infer_size_aspects(item.size))

    aspects["Style Code"] = [item.base_sku]

    colorway = item.colorway or enrichment.colorway
    color = infer_color(colorway, title or item.title or enrichment.title)
    if color:
        aspects["Color"] = [color]
    if colorway:
        aspects["Colorway"] = [colorway]

    model = item.model or enrichment.model
    if model:
        aspects["Model"] = [model]
    if item.silhouette:
        aspects["Silhouette"] = [item.silhouette]

    aspects["Type"] = ["Athletic"]
    aspects["Performance/Activity"] = ["Casual"]

    for name in required:
        if name not in aspects and name in ASPECT_DEFAULTS:
            aspects[name] = [ASPECT_DEFAULTS[name]]

    for source in (enrichment.attributes, item.attributes):
        for name, values in source.items():
            cleaned = [str(v).strip() for v in values if str(v).strip()]
            if cleaned:
                aspects[name] = cleaned

    return aspects


def aspect_kind(name: str) -> str:
    lowered = name.lower()
    if "color" in lowered or "colour" in lowered:
        return "color"
    if "size" in lowered:
        return "size"
    return "generic"


class AspectValidation(NamedTuple):
    ready: bool
    missing: List[str]
    reasons: Dict[str, str]


class AspectValidator:
    """Gate in front of publish: every required aspect needs a non-blank value"""

    def validate(self, attributes: Dict[str, List[str]], required: Iterable[str]) -> AspectValidation:
        missing: List[str] = []
        reasons: Dict[str, str] = {}

        for name in required:
            values = attributes.get(name) or []
            if any(str(v).strip() for v in values):
                continue
            if name in missing:
                continue
            missing.append(name)
            reasons[name] = MISSING_REASONS.get(aspect_kind(name), GENERIC_MISSING_REASON)

        if missing:
            logger.debug(f"Missing required aspects: {missing}")

        return AspectValidation(ready=not missing, missing=missing, reasons=reasons)
