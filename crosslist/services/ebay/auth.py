"""
eBay OAuth access tokens from a long-lived refresh token.

The authorization-code exchange that produces the refresh token happens
outside this service; only the refresh grant is implemented here.
"""

import logging
from typing import Optional

import httpx

from crosslist.core.config import Settings, get_settings
from crosslist.core.exceptions import ConfigurationError, EbayAPIError, TransientNetworkError
from .token_manager import SecureTokenManager

logger = logging.getLogger(__name__)


class EbayAuthManager:
    """
    Manages eBay OAuth authentication using in-memory token storage
    """

    SCOPES = [
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.inventory",
        "https://api.ebay.com/oauth/api_scope/sell.account",
    ]

    def __init__(self, settings: Optional[Settings] = None, sandbox: Optional[bool] = None):
        self.settings = settings or get_settings()
        self.sandbox_mode = self.settings.EBAY_SANDBOX_MODE if sandbox is None else sandbox

        if self.sandbox_mode:
            self.client_id = self.settings.EBAY_SANDBOX_CLIENT_ID
            self.client_secret = self.settings.EBAY_SANDBOX_CLIENT_SECRET
            refresh_token = self.settings.EBAY_SANDBOX_REFRESH_TOKEN
            self.token_refresh_url = "https://api.sandbox.ebay.com/identity/v1/oauth2/token"
        else:
            self.client_id = self.settings.EBAY_CLIENT_ID
            self.client_secret = self.settings.EBAY_CLIENT_SECRET
            refresh_token = self.settings.EBAY_REFRESH_TOKEN
            self.token_refresh_url = "https://api.ebay.com/identity/v1/oauth2/token"

        if not self.client_id or not self.client_secret or not refresh_token:
            raise ConfigurationError(
                f"Missing eBay {'sandbox' if self.sandbox_mode else 'production'} credentials. "
                f"Set the client id, client secret and refresh token."
            )

        cache_key = f"{'sandbox' if self.sandbox_mode else 'production'}:{self.client_id}"
        self.token_manager = SecureTokenManager(refresh_token, cache_key)
        self.timeout = self.settings.HTTP_TIMEOUT_SECONDS

        logger.debug(f"EbayAuthManager initialized. Sandbox: {self.sandbox_mode}")

    async def get_access_token(self) -> str:
        """
        Get a valid access token, refreshing if necessary

        Raises:
            EbayAPIError: If the refresh grant is rejected
            TransientNetworkError: If eBay cannot be reached
        """
        access_token = self.token_manager.get_access_token()
        if access_token:
            return access_token

        logger.info("No valid access token in memory, refreshing...")

        refresh_data = {
            "grant_type": "refresh_token",
            "refresh_token": self.token_manager.get_refresh_token(),
            "scope": " ".join(self.SCOPES),
        }
        auth = httpx.BasicAuth(self.client_id, self.client_secret)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_refresh_url,
                    data=refresh_data,
                    auth=auth
                )
        except httpx.RequestError as e:
            logger.error(f"Network error refreshing token: {str(e)}")
            raise TransientNetworkError(f"Network error refreshing access token: {str(e)}")

        if response.status_code != 200:
            error_text = response.text
            logger.error(f"Token refresh failed: {error_text}")
            if "invalid_grant" in error_text:
                raise EbayAPIError(
                    "Invalid refresh token. Please regenerate your eBay tokens.",
                    status_code=response.status_code,
                    raw=error_text,
                )
            raise EbayAPIError(
                f"Failed to refresh access token: {error_text}",
                status_code=response.status_code,
                raw=error_text,
            )

        token_data = response.json()
        access_token = token_data["access_token"]
        self.token_manager.save_access_token(access_token, token_data.get("expires_in", 7200))

        logger.info("Successfully refreshed access token")
        return access_token
