import json
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
import structlog

from adapters.meta.client import MetaClient
from config.settings import MetaApiSettings, MetaOAuthSettings
from core.infrastructure.http_client import NO_RETRY, RetryPolicy

logger = structlog.get_logger(__name__)

AD_ACCOUNT_FIELDS = "id,account_id,name,account_status,currency"
PAGE_FIELDS = "id,name,category"


class MetaOAuthAdapter:
    """Facebook Login code exchange and the account listings stored on connect."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        oauth_settings: MetaOAuthSettings,
        api_settings: MetaApiSettings,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.http_client = http_client
        self.oauth_settings = oauth_settings
        self.api_settings = api_settings
        self.retry_policy = retry_policy

    def _client(
        self, access_token: str = "", retry_policy: Optional[RetryPolicy] = None
    ) -> MetaClient:
        return MetaClient(
            access_token,
            self.http_client,
            base_url=self.api_settings.base_url,
            retry_policy=retry_policy or self.retry_policy,
        )

    def build_dialog_url(self, user_id: str) -> str:
        settings = self.oauth_settings.require()
        query = urlencode(
            {
                "client_id": settings.app_id,
                "redirect_uri": settings.redirect_uri,
                "state": json.dumps({"userId": user_id}),
                "scope": settings.scopes,
                "response_type": "code",
            }
        )
        return f"{settings.dialog_url}?{query}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Return ``{"access_token": ..., "expires_in": ...}`` for an auth code."""
        settings = self.oauth_settings.require(need_secret=True)
        # Codes are single-use; a replayed exchange fails even when the first one landed
        return await self._client(retry_policy=NO_RETRY).get(
            "/oauth/access_token",
            params={
                "client_id": settings.app_id,
                "client_secret": settings.app_secret,
                "redirect_uri": settings.redirect_uri,
                "code": code,
            },
        )

    async def fetch_me(self, access_token: str) -> dict[str, Any]:
        return await self._client(access_token).get("/me", params={"fields": "id,name"})

    async def fetch_ad_accounts(self, access_token: str) -> list[dict[str, Any]]:
        response = await self._client(access_token).get(
            "/me/adaccounts", params={"fields": AD_ACCOUNT_FIELDS, "limit": 100}
        )
        return list(response.get("data") or [])

    async def fetch_pages(self, access_token: str) -> list[dict[str, Any]]:
        response = await self._client(access_token).get(
            "/me/accounts", params={"fields": PAGE_FIELDS, "limit": 100}
        )
        return list(response.get("data") or [])
