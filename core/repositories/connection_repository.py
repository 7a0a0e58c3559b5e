from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.models.connection import FACEBOOK, PlatformConnection
from db.models import PlatformConnectionRecord
from exceptions.custom_exceptions import DatabaseException

logger = structlog.get_logger(__name__)


def _to_domain(record: PlatformConnectionRecord) -> PlatformConnection:
    return PlatformConnection(
        id=record.id,
        user_id=record.user_id,
        platform=record.platform,
        access_token=record.access_token,
        token_expires_at=record.token_expires_at,
        account_id=record.account_id,
        selected_ad_account_id=record.selected_ad_account_id,
        metadata=record.metadata_,
    )


class ConnectionRepository:
    """Storage for ``platform_connections``; one row per (user, platform)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    async def _find(
        session: AsyncSession, user_id: str, platform: str
    ) -> Optional[PlatformConnectionRecord]:
        result = await session.execute(
            select(PlatformConnectionRecord).where(
                PlatformConnectionRecord.user_id == user_id,
                PlatformConnectionRecord.platform == platform,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: str, platform: str = FACEBOOK) -> Optional[PlatformConnection]:
        try:
            async with self.session_factory() as session:
                record = await self._find(session, user_id, platform)
                return _to_domain(record) if record else None
        except SQLAlchemyError as e:
            logger.error("connection_lookup_failed", user_id=user_id, error=str(e))
            raise DatabaseException("Failed to load platform connection")

    async def upsert(self, connection: PlatformConnection) -> PlatformConnection:
        metadata = connection.metadata.model_dump(mode="json")
        try:
            async with self.session_factory() as session:
                record = await self._find(session, connection.user_id, connection.platform)
                if record is None:
                    record = PlatformConnectionRecord(
                        user_id=connection.user_id, platform=connection.platform
                    )
                    session.add(record)
                record.access_token = connection.access_token
                record.token_expires_at = connection.token_expires_at
                record.account_id = connection.account_id
                record.selected_ad_account_id = connection.selected_ad_account_id
                record.metadata_ = metadata
                await session.commit()
                await session.refresh(record)
                return _to_domain(record)
        except SQLAlchemyError as e:
            logger.error("connection_upsert_failed", user_id=connection.user_id, error=str(e))
            raise DatabaseException("Failed to save platform connection")

    async def update_selection(
        self,
        user_id: str,
        platform: str = FACEBOOK,
        *,
        ad_account_id: Optional[str] = None,
        page_id: Optional[str] = None,
    ) -> Optional[PlatformConnection]:
        """Write the selected account and/or page; last write wins."""
        try:
            async with self.session_factory() as session:
                record = await self._find(session, user_id, platform)
                if record is None:
                    return None
                if ad_account_id is not None:
                    record.selected_ad_account_id = ad_account_id
                if page_id is not None:
                    # New dict so the JSON column change is detected
                    record.metadata_ = {**(record.metadata_ or {}), "selected_page_id": page_id}
                await session.commit()
                await session.refresh(record)
                return _to_domain(record)
        except SQLAlchemyError as e:
            logger.error("connection_selection_failed", user_id=user_id, error=str(e))
            raise DatabaseException("Failed to update connection selection")

    async def delete(self, user_id: str, platform: str = FACEBOOK) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(PlatformConnectionRecord).where(
                        PlatformConnectionRecord.user_id == user_id,
                        PlatformConnectionRecord.platform == platform,
                    )
                )
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error("connection_delete_failed", user_id=user_id, error=str(e))
            raise DatabaseException("Failed to delete platform connection")
