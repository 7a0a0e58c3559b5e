from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from config.settings import SupabaseSettings
from core.infrastructure.http_client import NO_RETRY, RetryPolicy, send_with_retry
from exceptions.custom_exceptions import UnauthorizedException

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False


class SupabaseAuthAdapter:
    """Verifies a bearer token against Supabase's ``/auth/v1/user`` endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: SupabaseSettings,
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        self.http_client = http_client
        self.settings = settings
        self.retry_policy = retry_policy

    async def verify_token(self, access_token: str) -> AuthenticatedUser:
        if not access_token:
            raise UnauthorizedException("Missing authorization header")

        settings = self.settings.require()
        response = await send_with_retry(
            self.http_client,
            "GET",
            f"{settings.url}/auth/v1/user",
            policy=self.retry_policy,
            headers={
                "apikey": settings.anon_key,
                "Authorization": f"Bearer {access_token}",
            },
        )
        if response.status_code in (401, 403):
            raise UnauthorizedException()
        if not response.is_success:
            logger.warning("auth_provider_error", status=response.status_code)
            raise UnauthorizedException()

        payload = response.json()
        user_id = payload.get("id")
        if not user_id:
            raise UnauthorizedException()

        app_metadata = payload.get("app_metadata") or {}
        return AuthenticatedUser(
            user_id=str(user_id),
            email=payload.get("email"),
            is_admin=app_metadata.get("role") == "admin",
        )
