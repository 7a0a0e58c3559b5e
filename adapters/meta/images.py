import base64
from urllib.parse import urlparse

import structlog

from adapters.meta.base import MetaAdapter
from adapters.meta.exceptions import MetaAPIError
from core.infrastructure.http_client import send_with_retry

logger = structlog.get_logger(__name__)


def is_platform_hosted(image_url: str, platform_hosts: tuple[str, ...]) -> bool:
    """True when the image already lives on the platform CDN and needs no upload."""
    host = (urlparse(image_url).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in platform_hosts)


class MetaAdImageAdapter(MetaAdapter):
    async def upload_bytes(self, ad_account_id: str, data: bytes) -> str:
        """Upload raw image bytes and return the image hash."""
        response = await self.client.post(
            self._account_path(ad_account_id, "adimages"),
            json={"bytes": base64.b64encode(data).decode("ascii")},
        )
        images = response.get("images") or {}
        try:
            return next(iter(images.values()))["hash"]
        except (StopIteration, KeyError, TypeError, AttributeError):
            raise MetaAPIError("Meta API returned no image hash", 502, response)

    async def fetch_image(self, image_url: str) -> bytes:
        response = await send_with_retry(
            self.client.http_client,
            "GET",
            image_url,
            policy=self.client.retry_policy,
            follow_redirects=True,
        )
        if not response.is_success:
            raise MetaAPIError(
                f"Could not download image ({response.status_code})",
                response.status_code,
            )
        if not response.content:
            raise MetaAPIError("Downloaded image is empty", 422)
        return response.content

    async def upload_from_url(self, ad_account_id: str, image_url: str) -> str:
        data = await self.fetch_image(image_url)
        image_hash = await self.upload_bytes(ad_account_id, data)
        logger.info("meta_image_uploaded", size=len(data), image_hash=image_hash)
        return image_hash
