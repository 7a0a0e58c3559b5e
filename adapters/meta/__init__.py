from adapters.meta.client import MetaClient
from adapters.meta.exceptions import MetaAPIError
from adapters.meta.gateway import MetaAdsGateway, MetaGatewayFactory, make_gateway_factory
from adapters.meta.oauth import MetaOAuthAdapter

__all__ = [
    "MetaClient",
    "MetaAPIError",
    "MetaAdsGateway",
    "MetaGatewayFactory",
    "make_gateway_factory",
    "MetaOAuthAdapter",
]
