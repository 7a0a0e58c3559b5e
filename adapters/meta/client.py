from typing import Any, Optional

import httpx
import structlog

from adapters.meta.exceptions import MetaAPIError
from config.settings import META_DEFAULT_BASE_URL
from core.infrastructure.http_client import RetryPolicy, send_with_retry

logger = structlog.get_logger(__name__)


class MetaClient:
    """Graph API client bound to one access token.

    The token travels as the ``access_token`` query parameter. The underlying
    ``httpx.AsyncClient`` is owned by the caller and shared across clients.
    """

    def __init__(
        self,
        access_token: str,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = META_DEFAULT_BASE_URL,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.access_token = access_token
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _params(self, params: Optional[dict[str, Any]]) -> dict[str, Any]:
        merged = dict(params or {})
        if self.access_token:
            merged["access_token"] = self.access_token
        return merged

    async def post(
        self,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        response = await send_with_retry(
            self.http_client,
            "POST",
            self._url(endpoint),
            policy=self.retry_policy,
            json=json,
            params=self._params(params),
        )
        return self._handle_response(response, endpoint)

    async def get(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        response = await send_with_retry(
            self.http_client,
            "GET",
            self._url(endpoint),
            policy=self.retry_policy,
            params=self._params(params),
        )
        return self._handle_response(response, endpoint)

    def _handle_response(self, response: httpx.Response, endpoint: str) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success and isinstance(body, dict):
            if "error" in body:
                raise MetaAPIError.from_body(body, response.status_code)
            return body

        if response.is_success:
            raise MetaAPIError(
                "Unexpected non-JSON response from Meta API",
                response.status_code,
                {"raw": response.text[:500]},
            )

        error = (
            MetaAPIError.from_body(body, response.status_code)
            if isinstance(body, dict)
            else MetaAPIError(
                response.text[:500] or response.reason_phrase,
                response.status_code,
            )
        )
        logger.error(
            "meta_api_error",
            endpoint=endpoint,
            status=response.status_code,
            error=error.message,
            code=error.code,
        )
        raise error
