import asyncio
import random
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

logger = structlog.get_logger(__name__)

_client: httpx.AsyncClient | None = None

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule for outbound calls: base_delay * 2**attempt plus jitter."""

    max_attempts: int = 3
    base_delay: float = 1.0
    jitter_ratio: float = 0.25
    retry_on_status: frozenset[int] = RETRYABLE_STATUS_CODES
    retry_on_timeout: bool = True

    def compute_delay(
        self,
        attempt: int,
        response: httpx.Response | None = None,
        retry_delay_parser: Callable[[httpx.Response, float], float] | None = None,
    ) -> float:
        delay = self.base_delay * (2**attempt)
        if response is not None and retry_delay_parser:
            delay = retry_delay_parser(response, delay)
        return delay + random.uniform(0, delay * self.jitter_ratio)


NO_RETRY = RetryPolicy(max_attempts=1)


def init_http_client(timeout: float = 60) -> httpx.AsyncClient:
    global _client
    _client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=10),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    return _client


async def close_http_client():
    global _client
    if _client:
        await _client.aclose()
        _client = None


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("HTTP client not initialized")
    return _client


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    policy: RetryPolicy = RetryPolicy(),
    retry_delay_parser: Callable[[httpx.Response, float], float] | None = None,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying retryable statuses and timeouts per ``policy``.

    The final response is returned as-is (success or not); callers decide how
    to turn a non-2xx body into an error.
    """
    attempts = max(policy.max_attempts, 1)

    for attempt in range(attempts):
        is_last = attempt == attempts - 1
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            if is_last or not policy.retry_on_timeout:
                raise
            delay = policy.compute_delay(attempt)
            logger.warning(
                "http_timeout_retry", url=url, attempt=attempt + 1, retry_in=round(delay, 2)
            )
            await asyncio.sleep(delay)
            continue

        if response.is_success or is_last:
            return response
        if response.status_code not in policy.retry_on_status:
            return response

        delay = policy.compute_delay(attempt, response, retry_delay_parser)
        logger.warning(
            "http_retry",
            url=url,
            status=response.status_code,
            attempt=attempt + 1,
            retry_in=round(delay, 2),
        )
        await asyncio.sleep(delay)

    raise RuntimeError("Request failed after all retry attempts")
