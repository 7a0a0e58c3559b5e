"""
Pytest configuration and fixtures shared by the service, adapter and API tests.
Provides an in-memory database, a fake Graph API and sample wizard data.
"""

import itertools
import json
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Optional

import httpx
import pytest
import pytest_asyncio  # type: ignore
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from adapters.meta.gateway import make_gateway_factory
from adapters.meta.oauth import MetaOAuthAdapter
from config.settings import MetaApiSettings, MetaOAuthSettings
from core.infrastructure.http_client import NO_RETRY
from core.models.campaign import AdVariant, BusinessIdea, TargetAudience
from core.models.connection import PlatformConnection
from core.repositories.campaign_repository import CampaignRepository
from core.repositories.connection_repository import ConnectionRepository
from core.services.connection_manager import ConnectionManager
from db.models import Base
from db.session import make_session_factory

GRAPH_BASE_URL = "https://graph.test"
IMAGE_HOST = "images.example.com"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeGraph:
    """httpx transport handler standing in for the Graph API and an image host.

    Ids are sequential per edge (``cmp_1``, ``cr_2``...). ``fail`` makes an
    edge answer with a Graph error envelope when ``when(body)`` is true; edges
    in ``unreachable`` raise a connection error instead.
    """

    def __init__(self):
        self.requests: list[tuple[str, str, dict]] = []
        self._failures: dict[str, tuple[Callable[[dict], bool], str, int]] = {}
        self._ids = itertools.count(1)
        self.ad_accounts = [{"id": "act_111", "account_id": "111", "name": "Main account"}]
        self.pages = [{"id": "page_1", "name": "Acme Page"}, {"id": "page_2", "name": "Side Page"}]
        self.token_response = {"access_token": "fb-token", "expires_in": 3600}
        self.unreachable: set[str] = set()

    def fail(
        self,
        edge: str,
        message: str,
        status: int = 400,
        when: Optional[Callable[[dict], bool]] = None,
    ) -> None:
        self._failures[edge] = (when or (lambda body: True), message, status)

    def calls(self, edge: str) -> list[dict]:
        return [body for _, path, body in self.requests if path.endswith(edge)]

    def _error(self, edge: str, body: dict) -> Optional[httpx.Response]:
        failure = self._failures.get(edge)
        if failure and failure[0](body):
            return httpx.Response(
                failure[2], json={"error": {"message": failure[1], "code": 100}}
            )
        return None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((request.method, path, body))

        if request.url.host == IMAGE_HOST:
            return self._error("download", body) or httpx.Response(200, content=b"\x89PNG-bytes")

        edge = path.rsplit("/", 1)[-1]
        if edge in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        error = self._error(edge, body)
        if error is not None:
            return error

        if request.method == "POST":
            prefixes = {
                "campaigns": "cmp",
                "adsets": "as",
                "adcreatives": "cr",
                "ads": "ad",
            }
            if edge in prefixes:
                return httpx.Response(200, json={"id": f"{prefixes[edge]}_{next(self._ids)}"})
            if edge == "adimages":
                return httpx.Response(
                    200, json={"images": {"upload": {"hash": f"hash_{next(self._ids)}"}}}
                )
            # Status update on an existing object
            return self._error("status", body) or httpx.Response(200, json={"success": True})

        if path == "/oauth/access_token":
            return httpx.Response(200, json=self.token_response)
        if path == "/me":
            return httpx.Response(200, json={"id": "fb-user-1", "name": "Test User"})
        if path == "/me/adaccounts":
            return httpx.Response(200, json={"data": self.ad_accounts})
        if path == "/me/accounts":
            return httpx.Response(200, json={"data": self.pages})
        return httpx.Response(404, json={"error": {"message": f"Unknown path {path}"}})


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine):
    return make_session_factory(test_engine)


@pytest.fixture
def connection_repository(session_factory) -> ConnectionRepository:
    return ConnectionRepository(session_factory)


@pytest.fixture
def campaign_repository(session_factory) -> CampaignRepository:
    return CampaignRepository(session_factory)


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest_asyncio.fixture
async def http_client(graph: FakeGraph) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(graph)) as client:
        yield client


@pytest.fixture
def meta_settings() -> MetaApiSettings:
    return MetaApiSettings(base_url=GRAPH_BASE_URL)


@pytest.fixture
def oauth_settings() -> MetaOAuthSettings:
    return MetaOAuthSettings(
        app_id="app-123",
        app_secret="secret",
        redirect_uri="https://app.example.com/facebook/callback",
    )


@pytest.fixture
def gateway_factory(http_client, meta_settings):
    return make_gateway_factory(http_client, meta_settings, retry_policy=NO_RETRY)


@pytest.fixture
def connection_manager(connection_repository, http_client, oauth_settings, meta_settings):
    oauth = MetaOAuthAdapter(http_client, oauth_settings, meta_settings, retry_policy=NO_RETRY)
    return ConnectionManager(connection_repository, oauth, clock=lambda: NOW)


@pytest.fixture
def make_connection(connection_repository):
    async def _make(
        user_id: str = "user-1",
        expires_at: Optional[datetime] = NOW + timedelta(days=30),
        selected_ad_account_id: Optional[str] = "111",
        access_token: Optional[str] = "fb-token",
    ) -> PlatformConnection:
        return await connection_repository.upsert(
            PlatformConnection(
                user_id=user_id,
                access_token=access_token,
                token_expires_at=expires_at,
                selected_ad_account_id=selected_ad_account_id,
                metadata={
                    "ad_accounts": [{"id": "act_111", "account_id": "111", "name": "Main"}],
                    "pages": [{"id": "page_1", "name": "Acme Page"}],
                },
            )
        )

    return _make


@pytest.fixture
def business_idea() -> BusinessIdea:
    return BusinessIdea(
        description="Meal kits for busy parents",
        value_proposition="Healthy dinners in 20 minutes",
    )


@pytest.fixture
def target_audience() -> TargetAudience:
    return TargetAudience(
        name="Busy parents",
        demographics="Women aged 25-45 in the United States",
        pain_points=["No time for cooking", "Tight family budget"],
    )


@pytest.fixture
def ad_variants() -> list[AdVariant]:
    return [
        AdVariant(
            id=f"ad-{i}",
            headline=f"Dinner sorted #{i}",
            primaryText="Fresh ingredients delivered weekly.",
            imageUrl=f"https://{IMAGE_HOST}/creative-{i}.png",
        )
        for i in range(1, 4)
    ]
