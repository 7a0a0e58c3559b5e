from collections.abc import Callable
from typing import Optional

import httpx

from adapters.meta.adsets import MetaAdSetAdapter
from adapters.meta.ads import MetaAdAdapter
from adapters.meta.campaigns import MetaCampaignAdapter
from adapters.meta.client import MetaClient
from adapters.meta.creatives import MetaCreativeAdapter
from adapters.meta.images import MetaAdImageAdapter
from config.settings import MetaApiSettings
from core.infrastructure.http_client import RetryPolicy


class MetaAdsGateway:
    """All ad-object adapters sharing one token-bound client."""

    def __init__(self, client: MetaClient):
        self.client = client
        self.campaigns = MetaCampaignAdapter(client)
        self.adsets = MetaAdSetAdapter(client)
        self.images = MetaAdImageAdapter(client)
        self.creatives = MetaCreativeAdapter(client)
        self.ads = MetaAdAdapter(client)


MetaGatewayFactory = Callable[[str], MetaAdsGateway]


def make_gateway_factory(
    http_client: httpx.AsyncClient,
    settings: MetaApiSettings,
    retry_policy: Optional[RetryPolicy] = None,
) -> MetaGatewayFactory:
    policy = retry_policy or RetryPolicy(
        max_attempts=settings.max_attempts, base_delay=settings.retry_base_delay
    )

    def factory(access_token: str) -> MetaAdsGateway:
        return MetaAdsGateway(
            MetaClient(
                access_token,
                http_client,
                base_url=settings.base_url,
                retry_policy=policy,
            )
        )

    return factory
