import json
from typing import Any, Dict, List, Optional, Tuple


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ConfigurationError(BaseServiceError):
    """Raised when required settings (policies, credentials) are missing."""
    pass

class LocationUnavailableError(BaseServiceError):
    """Raised when no usable merchant location can be resolved."""
    pass

class MappingConflictError(BaseServiceError):
    """Raised when a mapping violates the store's uniqueness constraint."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class EbayServiceError(PlatformServiceError):
    """Base exception for eBay-specific errors."""
    pass

class EbayAPIError(EbayServiceError):
    """Raised when eBay API calls fail."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        raw: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
        self.raw = raw

    @property
    def error_ids(self) -> List[int]:
        return [e.get("errorId") for e in self.errors if e.get("errorId") is not None]

class TransientNetworkError(EbayAPIError):
    """Timeouts, transport failures, throttling and 5xx responses."""
    pass

class ConflictError(EbayAPIError):
    """The resource already exists."""
    pass

class OfferConflictError(ConflictError):
    """An offer already exists for the SKU on this marketplace."""
    pass

class PermanentRejectionError(EbayAPIError):
    """Business-rule rejection that will not succeed on retry."""
    pass

class StockXServiceError(PlatformServiceError):
    """Base exception for StockX-specific errors."""
    pass

class StockXAPIError(StockXServiceError):
    """Raised when StockX API calls fail."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class DatabaseError(Exception):
    """Exception raised for database-related errors."""
    pass


def parse_ebay_error(text: str) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Summarize an eBay error body.

    Returns:
        Tuple of ("[errorId] message; ..." summary, list of error dicts).
        Non-JSON bodies are returned unchanged with an empty list.
    """
    try:
        data = json.loads(text) if text else {}
    except ValueError:
        return text, []

    if not isinstance(data, dict):
        return text, []

    errors = data.get("errors") or []
    if not errors:
        return text, []

    parts = []
    for error in errors:
        message = error.get("longMessage") or error.get("message") or "Unknown error"
        parts.append(f"[{error.get('errorId')}] {message}")
    return "; ".join(parts), errors
