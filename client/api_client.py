from collections.abc import Callable
from typing import Any, Optional

import httpx
import structlog

from core.infrastructure.http_client import NO_RETRY, RetryPolicy, send_with_retry

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/ads/meta"


class CampaignApiError(Exception):
    def __init__(self, message: str, status_code: int, body: Optional[dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.body = body or {}
        super().__init__(message)

    @property
    def stage(self) -> Optional[str]:
        return self.body.get("stage")


class CampaignApiClient:
    """Calls the campaign endpoints on behalf of the wizard."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_provider: Callable[[], str],
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        self.http_client = http_client
        self.token_provider = token_provider
        self.retry_policy = retry_policy

    async def _call(
        self, method: str, path: str, json: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        try:
            response = await send_with_retry(
                self.http_client,
                method,
                f"{API_PREFIX}{path}",
                policy=self.retry_policy,
                json=json,
                headers={"Authorization": f"Bearer {self.token_provider()}"},
            )
        except httpx.HTTPError as e:
            logger.warning("campaign_api_unreachable", path=path, error=str(e))
            # status_code 0: the request never got an HTTP answer
            raise CampaignApiError(
                "Could not reach the campaign service. Check your connection and try again.", 0
            ) from e
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success or not body.get("success", False):
            message = body.get("error") or f"Request failed ({response.status_code})"
            logger.warning(
                "campaign_api_error", path=path, status=response.status_code, error=message
            )
            raise CampaignApiError(str(message), response.status_code, body)
        return body.get("data") or {}

    async def create_campaign(self, submission: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/campaigns", json=submission)

    async def get_campaign(self, record_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/campaigns/{record_id}")

    async def activate_campaign(self, record_id: str) -> dict[str, Any]:
        return await self._call("POST", f"/campaigns/{record_id}/activate")

    async def retry_ads(
        self,
        record_id: str,
        ads: list[dict[str, Any]],
        landing_page_url: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"ads": ads}
        if landing_page_url:
            body["landingPageUrl"] = landing_page_url
        return await self._call("POST", f"/campaigns/{record_id}/retry-ads", json=body)
