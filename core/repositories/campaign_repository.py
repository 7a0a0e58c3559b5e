from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.models.campaign import AdCampaign, RecordStatus
from db.models import AdCampaignRecord
from exceptions.custom_exceptions import DatabaseException

logger = structlog.get_logger(__name__)


class CampaignRepository:
    """Storage for ``ad_campaigns`` rows written after remote creation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        *,
        user_id: str,
        project_id: Optional[str],
        name: str,
        status: RecordStatus,
        platform_campaign_id: str,
        platform_ad_set_id: Optional[str],
        platform_ad_ids: list[str],
        campaign_data: dict[str, Any],
        image_url: Optional[str],
    ) -> AdCampaign:
        if not platform_campaign_id:
            raise ValueError("platform_campaign_id must come from a remote create response")
        try:
            async with self.session_factory() as session:
                record = AdCampaignRecord(
                    user_id=user_id,
                    project_id=project_id,
                    platform="facebook",
                    name=name,
                    status=status.value,
                    platform_campaign_id=platform_campaign_id,
                    platform_ad_set_id=platform_ad_set_id,
                    platform_ad_ids=list(platform_ad_ids),
                    campaign_data=campaign_data,
                    image_url=image_url,
                )
                session.add(record)
                await session.commit()
                await session.refresh(record)
                return AdCampaign.model_validate(record)
        except SQLAlchemyError as e:
            logger.error("campaign_insert_failed", user_id=user_id, error=str(e))
            raise DatabaseException("Failed to save campaign record")

    async def get(self, record_id: str, user_id: str) -> Optional[AdCampaign]:
        try:
            async with self.session_factory() as session:
                record = await self._find(session, record_id, user_id)
                return AdCampaign.model_validate(record) if record else None
        except SQLAlchemyError as e:
            logger.error("campaign_lookup_failed", record_id=record_id, error=str(e))
            raise DatabaseException("Failed to load campaign record")

    async def update(
        self,
        record_id: str,
        user_id: str,
        *,
        status: Optional[RecordStatus] = None,
        add_ad_ids: Optional[list[str]] = None,
        campaign_data_patch: Optional[dict[str, Any]] = None,
    ) -> Optional[AdCampaign]:
        try:
            async with self.session_factory() as session:
                record = await self._find(session, record_id, user_id)
                if record is None:
                    return None
                if status is not None:
                    record.status = status.value
                if add_ad_ids:
                    record.platform_ad_ids = [*(record.platform_ad_ids or []), *add_ad_ids]
                if campaign_data_patch:
                    record.campaign_data = {**(record.campaign_data or {}), **campaign_data_patch}
                await session.commit()
                await session.refresh(record)
                return AdCampaign.model_validate(record)
        except SQLAlchemyError as e:
            logger.error("campaign_update_failed", record_id=record_id, error=str(e))
            raise DatabaseException("Failed to update campaign record")

    @staticmethod
    async def _find(
        session: AsyncSession, record_id: str, user_id: str
    ) -> Optional[AdCampaignRecord]:
        result = await session.execute(
            select(AdCampaignRecord).where(
                AdCampaignRecord.id == record_id,
                AdCampaignRecord.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
