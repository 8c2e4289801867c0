"""
SKU canonicalization between StockX identities and eBay inventory keys.

eBay inventory SKUs must be alphanumeric and at most 50 characters. A StockX
product is identified by its style id plus a size token, so the destination
SKU is CLEAN(base) + "S" + CLEAN(size). "S" was picked as the separator
because size tokens start with a digit.

This module is the only place SKUs are built or parsed. Every matching path
(listing, reconciliation, auto-detection) goes through it.
"""

import re
from typing import NamedTuple, Tuple

SEPARATOR = "S"
MAX_SKU_LENGTH = 50
TRUNCATED_PREFIX_LENGTH = 45
DIGEST_LENGTH = 4

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")
_BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class ProductIdentity(NamedTuple):
    base_sku: str
    size: str


def clean(value) -> str:
    """Uppercase and drop everything outside [A-Z0-9]."""
    if value is None:
        return ""
    return _NON_ALPHANUMERIC.sub("", str(value).upper())


def _string_hash(value: str) -> int:
    # 32-bit signed h = 31*h + c, then absolute value
    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def digest(value: str) -> str:
    """Four-character uppercase base-36 digest of a string."""
    return _to_base36(_string_hash(value))[:DIGEST_LENGTH].rjust(DIGEST_LENGTH, "0")


def encode(base_sku, size) -> str:
    """
    Build the destination SKU for a product identity.

    Total and deterministic: any input (including None or punctuation only)
    yields a non-empty alphanumeric string of at most 50 characters. The
    separator is always present, so a size-less product ends in "S".
    """
    sku = f"{clean(base_sku)}{SEPARATOR}{clean(size)}"

    if len(sku) > MAX_SKU_LENGTH:
        sku = sku[:TRUNCATED_PREFIX_LENGTH] + digest(sku)

    return sku


def decode(sku: str) -> ProductIdentity:
    """
    Split a destination SKU back into (base, size) at the last separator.

    A SKU with no separator decodes to (sku, ""). Sizes that themselves
    contain "S" (GS, XS) come back folded into the base, and truncated SKUs
    decode best-effort. Matching compares encoded forms first for that reason.
    """
    value = (sku or "").upper()

    index = value.rfind(SEPARATOR)
    if index < 0:
        return ProductIdentity(value, "")
    return ProductIdentity(value[:index], value[index + 1:])


def identity_key(base_sku, size) -> Tuple[str, str]:
    """Normalized identity used to compare products across marketplaces."""
    return clean(base_sku), clean(size)


def matches(sku: str, base_sku, size) -> bool:
    """True when a destination SKU belongs to the given product identity."""
    if not sku:
        return False
    if sku.upper() == encode(base_sku, size):
        return True
    return tuple(decode(sku)) == identity_key(base_sku, size)


def legacy_sku_match(candidate_sku: str, base_sku, size) -> bool:
    """
    Deprecated: match SKUs written before the codec existed.

    Older listings used "BASE-SIZE" style keys or free-form variants of it.
    Kept only so reconciliation can adopt those listings; new code must use
    encode/decode/matches.
    """
    if not candidate_sku:
        return False
    base, size_token = identity_key(base_sku, size)
    if not base:
        return False

    candidate = clean(candidate_sku)
    if candidate == base + size_token:
        return True
    if not size_token:
        return candidate == base
    return candidate.startswith(base) and candidate.endswith(size_token)
