"""
Token storage for the eBay API.
Access tokens live in memory only and are never persisted to disk.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class SecureTokenManager:
    """
    Keeps eBay tokens:
    - Refresh token: always comes from settings
    - Access token: cached in memory, keyed by environment and client id
    """

    # Shared across instances so every client in the process reuses a token
    _access_tokens: Dict[str, Dict] = {}

    EXPIRY_BUFFER = timedelta(minutes=5)

    def __init__(self, refresh_token: str, cache_key: str):
        if not refresh_token:
            raise ValueError("Missing eBay refresh token")
        self.refresh_token = refresh_token
        self.cache_key = cache_key

    def get_access_token(self) -> Optional[str]:
        """Get access token from memory if it is still valid"""
        token_data = self._access_tokens.get(self.cache_key, {})
        access_token = token_data.get("access_token")
        expires_at = token_data.get("expires_at")

        if access_token and expires_at:
            if datetime.now() < (expires_at - self.EXPIRY_BUFFER):
                return access_token
            logger.debug("Access token expired or expiring soon")

        return None

    def save_access_token(self, access_token: str, expires_in: int):
        """Save access token to memory only"""
        expires_at = datetime.now() + timedelta(seconds=expires_in)
        self._access_tokens[self.cache_key] = {
            "access_token": access_token,
            "expires_at": expires_at,
        }
        logger.info(f"Saved access token to memory (expires: {expires_at})")

    def get_refresh_token(self) -> str:
        return self.refresh_token

    def clear_tokens(self):
        """Clear the cached access token for this key"""
        if self._access_tokens.pop(self.cache_key, None) is not None:
            logger.info("Cleared access token from memory")


def clear_all_tokens():
    """Clear all tokens from memory"""
    SecureTokenManager._access_tokens.clear()
