import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import structlog

from adapters.meta.exceptions import MetaAPIError
from adapters.meta.oauth import MetaOAuthAdapter
from core.models.connection import (
    FACEBOOK,
    ConnectionMetadata,
    PlatformConnection,
)
from core.repositories.connection_repository import ConnectionRepository
from exceptions.custom_exceptions import (
    BusinessValidationException,
    NotConnectedException,
    OAuthCallbackError,
    TokenExpiredException,
)

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_oauth_state(state: Optional[str]) -> str:
    """Return the user id carried in the JSON ``state`` parameter."""
    if not state:
        raise OAuthCallbackError("Missing OAuth state")
    try:
        payload = json.loads(state)
    except ValueError:
        raise OAuthCallbackError("Invalid OAuth state")
    user_id = payload.get("userId") if isinstance(payload, dict) else None
    if not user_id:
        raise OAuthCallbackError("OAuth state does not identify a user")
    return str(user_id)


class ConnectionManager:
    """Owns the Facebook platform connection of each user.

    Only the callback and the explicit select_* calls write the row; the
    orchestrator only reads it.
    """

    def __init__(
        self,
        repository: ConnectionRepository,
        oauth: MetaOAuthAdapter,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.oauth = oauth
        self.clock = clock

    async def get_connection(self, user_id: str, platform: str = FACEBOOK) -> PlatformConnection:
        connection = await self.repository.get(user_id, platform)
        if connection is None:
            raise NotConnectedException()
        return connection

    def is_valid(self, connection: PlatformConnection) -> bool:
        if not connection.access_token:
            return False
        if connection.token_expires_at is None:
            return True
        return connection.token_expires_at > self.clock()

    async def require_valid_connection(
        self, user_id: str, platform: str = FACEBOOK
    ) -> PlatformConnection:
        connection = await self.get_connection(user_id, platform)
        if not connection.access_token:
            raise NotConnectedException()
        if not self.is_valid(connection):
            logger.info(
                "connection_token_expired",
                user_id=user_id,
                expired_at=connection.token_expires_at.isoformat()
                if connection.token_expires_at
                else None,
            )
            raise TokenExpiredException()
        return connection

    async def disconnect(self, user_id: str, platform: str = FACEBOOK) -> bool:
        deleted = await self.repository.delete(user_id, platform)
        logger.info("connection_removed", user_id=user_id, platform=platform, deleted=deleted)
        return deleted

    def build_authorization_url(self, user_id: str) -> str:
        return self.oauth.build_dialog_url(user_id)

    async def handle_oauth_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        expected_user_id: Optional[str] = None,
    ) -> PlatformConnection:
        if error:
            logger.warning("oauth_callback_error", error=error, description=error_description)
            raise OAuthCallbackError(error_description or error)
        if not code:
            raise OAuthCallbackError("Missing authorization code")

        user_id = parse_oauth_state(state)
        if expected_user_id and user_id != expected_user_id:
            raise OAuthCallbackError("OAuth state does not match the signed-in user")

        try:
            token_data = await self.oauth.exchange_code(code)
            access_token = token_data.get("access_token")
            if not access_token:
                raise OAuthCallbackError("Facebook did not return an access token")
            me, ad_accounts, pages = await asyncio.gather(
                self.oauth.fetch_me(access_token),
                self.oauth.fetch_ad_accounts(access_token),
                self.oauth.fetch_pages(access_token),
            )
        except MetaAPIError as e:
            logger.error("oauth_exchange_failed", user_id=user_id, error=e.message)
            raise OAuthCallbackError(e.message)
        except httpx.HTTPError as e:
            logger.error("oauth_exchange_unreachable", user_id=user_id, error=str(e))
            raise OAuthCallbackError(
                "Could not reach Facebook to finish connecting. Please try again."
            )

        now = self.clock()
        expires_in = token_data.get("expires_in")
        try:
            token_expires_at = now + timedelta(seconds=int(expires_in)) if expires_in else None
        except (TypeError, ValueError):
            logger.error("oauth_bad_expiry", user_id=user_id, expires_in=expires_in)
            raise OAuthCallbackError("Facebook returned an invalid token expiry")
        metadata = ConnectionMetadata.model_validate(
            {
                "ad_accounts": ad_accounts,
                "pages": pages,
                "facebook_user_id": me.get("id"),
                "last_fetched": now,
            }
        )

        existing = await self.repository.get(user_id, FACEBOOK)
        selected_account = None
        account_id = None
        if existing is not None:
            account_id = existing.account_id
            # Keep a previous choice only if it is still available
            if existing.selected_ad_account_id and metadata.find_ad_account(
                existing.selected_ad_account_id
            ):
                selected_account = existing.selected_ad_account_id
            if existing.metadata.selected_page_id and metadata.find_page(
                existing.metadata.selected_page_id
            ):
                metadata.selected_page_id = existing.metadata.selected_page_id

        connection = PlatformConnection(
            user_id=user_id,
            platform=FACEBOOK,
            access_token=access_token,
            token_expires_at=token_expires_at,
            account_id=account_id,
            selected_ad_account_id=selected_account,
            metadata=metadata,
        )
        saved = await self.repository.upsert(connection)
        logger.info(
            "connection_stored",
            user_id=user_id,
            ad_accounts=len(metadata.ad_accounts),
            pages=len(metadata.pages),
        )
        return saved

    async def select_ad_account(self, user_id: str, ad_account_id: str) -> PlatformConnection:
        connection = await self.get_connection(user_id)
        account = connection.metadata.find_ad_account(ad_account_id)
        if account is None:
            raise BusinessValidationException(
                f"Ad account {ad_account_id} is not available for this connection"
            )
        updated = await self.repository.update_selection(
            user_id, ad_account_id=account.id.removeprefix("act_")
        )
        if updated is None:
            raise NotConnectedException()
        logger.info("ad_account_selected", user_id=user_id, ad_account_id=account.id)
        return updated

    async def select_page(self, user_id: str, page_id: str) -> PlatformConnection:
        connection = await self.get_connection(user_id)
        page = connection.metadata.find_page(page_id)
        if page is None:
            raise BusinessValidationException(
                f"Page {page_id} is not available for this connection"
            )
        updated = await self.repository.update_selection(user_id, page_id=page.id)
        if updated is None:
            raise NotConnectedException()
        logger.info("page_selected", user_id=user_id, page_id=page.id)
        return updated

    async def refresh_assets(self, user_id: str) -> PlatformConnection:
        """Re-read ad accounts and pages with the stored token."""
        connection = await self.require_valid_connection(user_id)
        ad_accounts, pages = await asyncio.gather(
            self.oauth.fetch_ad_accounts(connection.access_token),
            self.oauth.fetch_pages(connection.access_token),
        )
        metadata = connection.metadata.model_copy(
            update={
                "ad_accounts": ConnectionMetadata.model_validate({"ad_accounts": ad_accounts}).ad_accounts,
                "pages": ConnectionMetadata.model_validate({"pages": pages}).pages,
                "last_fetched": self.clock(),
            }
        )
        if metadata.selected_page_id and not metadata.find_page(metadata.selected_page_id):
            metadata.selected_page_id = None
        selected = connection.selected_ad_account_id
        if selected and not metadata.find_ad_account(selected):
            selected = None
        return await self.repository.upsert(
            connection.model_copy(update={"metadata": metadata, "selected_ad_account_id": selected})
        )
