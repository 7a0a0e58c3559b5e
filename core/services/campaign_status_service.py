import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import structlog

from adapters.meta.exceptions import MetaAPIError
from adapters.meta.gateway import MetaGatewayFactory
from adapters.meta.models import RemoteStatus
from core.models.campaign import AdCampaign, RecordStatus
from core.repositories.campaign_repository import CampaignRepository
from core.services.connection_manager import ConnectionManager
from exceptions.custom_exceptions import NotFoundException, RemoteUpdateFailed

logger = structlog.get_logger(__name__)


class CampaignStatusService:
    """Reads stored campaigns and flips them between running and paused."""

    def __init__(
        self,
        connections: ConnectionManager,
        campaigns: CampaignRepository,
        gateway_factory: MetaGatewayFactory,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.connections = connections
        self.campaigns = campaigns
        self.gateway_factory = gateway_factory
        self.clock = clock

    async def get(self, user_id: str, record_id: str) -> AdCampaign:
        record = await self.campaigns.get(record_id, user_id)
        if record is None:
            raise NotFoundException("Campaign not found")
        return record

    async def activate(self, user_id: str, record_id: str) -> AdCampaign:
        return await self._set_status(user_id, record_id, RemoteStatus.ACTIVE)

    async def deactivate(self, user_id: str, record_id: str) -> AdCampaign:
        return await self._set_status(user_id, record_id, RemoteStatus.PAUSED)

    async def _set_status(
        self, user_id: str, record_id: str, status: RemoteStatus
    ) -> AdCampaign:
        record = await self.get(user_id, record_id)
        connection = await self.connections.require_valid_connection(user_id)
        gateway = self.gateway_factory(connection.access_token)

        stage = "campaign"
        try:
            await gateway.campaigns.update_status(record.platform_campaign_id, status)
            if record.platform_ad_set_id:
                stage = "adset"
                await gateway.adsets.update_status(record.platform_ad_set_id, status)
            if record.platform_ad_ids:
                stage = "ad"
                await asyncio.gather(
                    *(gateway.ads.update_status(ad_id, status) for ad_id in record.platform_ad_ids)
                )
        except (MetaAPIError, httpx.HTTPError) as e:
            message = e.message if isinstance(e, MetaAPIError) else str(e)
            logger.error(
                "campaign_status_update_failed",
                record_id=record_id,
                stage=stage,
                target=status.value,
                error=message,
            )
            raise RemoteUpdateFailed(stage, message)

        now = self.clock().isoformat()
        if status is RemoteStatus.ACTIVE:
            new_status = RecordStatus.ACTIVE
            patch = {"is_activated": True, "activation_date": now}
        else:
            new_status = RecordStatus.PAUSED
            patch = {"is_activated": False, "deactivation_date": now}

        updated = await self.campaigns.update(
            record.id, user_id, status=new_status, campaign_data_patch=patch
        )
        if updated is None:
            raise NotFoundException("Campaign not found")
        logger.info("campaign_status_changed", record_id=record.id, status=new_status.value)
        return updated
