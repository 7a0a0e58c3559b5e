"""FastAPI providers wiring settings, shared clients and services together.

Tests swap any of these through ``app.dependency_overrides``.
"""

from functools import lru_cache

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adapters.meta.gateway import MetaGatewayFactory, make_gateway_factory
from adapters.meta.oauth import MetaOAuthAdapter
from adapters.supabase.auth import SupabaseAuthAdapter
from config.settings import Settings
from core.infrastructure import http_client as shared_http
from core.repositories.campaign_repository import CampaignRepository
from core.repositories.connection_repository import ConnectionRepository
from core.services.ad_creative_mapper import AdCreativeMapper
from core.services.campaign_orchestrator import CampaignOrchestrator, FailurePolicy
from core.services.campaign_status_service import CampaignStatusService
from core.services.connection_manager import ConnectionManager
from core.services.targeting_transformer import TargetingTransformer
from db import session as db_session


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def get_http_client() -> httpx.AsyncClient:
    return shared_http.get_http_client()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return db_session.get_session_factory()


def get_targeting_transformer() -> TargetingTransformer:
    return TargetingTransformer()


def get_ad_creative_mapper(
    targeting: TargetingTransformer = Depends(get_targeting_transformer),
) -> AdCreativeMapper:
    return AdCreativeMapper(targeting)


def get_auth_adapter(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter(http_client, settings.supabase)


def get_gateway_factory(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> MetaGatewayFactory:
    return make_gateway_factory(http_client, settings.meta_api)


def get_connection_manager(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> ConnectionManager:
    oauth = MetaOAuthAdapter(http_client, settings.meta_oauth, settings.meta_api)
    return ConnectionManager(ConnectionRepository(session_factory), oauth)


def get_campaign_repository(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CampaignRepository:
    return CampaignRepository(session_factory)


def get_campaign_orchestrator(
    connections: ConnectionManager = Depends(get_connection_manager),
    campaigns: CampaignRepository = Depends(get_campaign_repository),
    gateway_factory: MetaGatewayFactory = Depends(get_gateway_factory),
    mapper: AdCreativeMapper = Depends(get_ad_creative_mapper),
    settings: Settings = Depends(get_settings),
) -> CampaignOrchestrator:
    return CampaignOrchestrator(
        connections,
        campaigns,
        gateway_factory,
        meta_settings=settings.meta_api,
        mapper=mapper,
        targeting=mapper.targeting,
        failure_policy=FailurePolicy(
            max_items=settings.max_creatives,
            max_concurrency=settings.max_creatives,
        ),
    )


def get_campaign_status_service(
    connections: ConnectionManager = Depends(get_connection_manager),
    campaigns: CampaignRepository = Depends(get_campaign_repository),
    gateway_factory: MetaGatewayFactory = Depends(get_gateway_factory),
) -> CampaignStatusService:
    return CampaignStatusService(connections, campaigns, gateway_factory)
