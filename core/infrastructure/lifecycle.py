import os
import sys
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from config.logging_config import setup_logging
from config.settings import Settings
from core.infrastructure.http_client import close_http_client, init_http_client
from core.metadata import SERVICE_NAME, VERSION
from db import session as db_session
from db.models import Base

logger = structlog.get_logger(__name__)

BANNER = """
╔══════════════════════════════════════════════╗
║  {service} v{version} {action}
║  Python {python} | env: {env}
╚══════════════════════════════════════════════╝"""


async def open_database(settings: Settings) -> AsyncEngine:
    """Ping the database; with DB_CREATE_TABLES=true also create missing tables."""
    engine = db_session.get_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if os.getenv("DB_CREATE_TABLES", "false").lower() == "true":
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Tables ensured", component="db", tables=sorted(Base.metadata.tables))
    logger.info("Database connected", component="db")
    return engine


def missing_configuration(settings: Settings) -> list[str]:
    missing = []
    if not settings.supabase.url:
        missing.append("SUPABASE_URL")
    if not settings.supabase.anon_key:
        missing.append("SUPABASE_ANON_KEY")
    if not settings.meta_oauth.app_id:
        missing.append("FACEBOOK_APP_ID")
    if not settings.meta_oauth.redirect_uri:
        missing.append("FACEBOOK_REDIRECT_URI")
    if not settings.meta_oauth.app_secret:
        missing.append("FACEBOOK_APP_SECRET")
    return missing


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    settings = Settings.from_env()
    environment = os.getenv("ENVIRONMENT", "local")
    python_version = sys.version.split()[0]

    try:
        app.state.engine = await open_database(settings)
    except Exception as e:
        logger.error("Database connection failed", component="db", error=str(e), exc_info=True)
        raise

    init_http_client(settings.meta_api.timeout)
    logger.info("HTTP client initialized", component="http", timeout=settings.meta_api.timeout)

    missing = missing_configuration(settings)
    if missing:
        # Endpoints that need these answer with ConfigurationError; the rest keep working
        logger.warning("Configuration incomplete", missing=missing)

    print(BANNER.format(service=SERVICE_NAME, version=VERSION, action="started",
                        python=python_version, env=environment))
    logger.info("Service started", version=VERSION, python=python_version,
                graph_api=settings.meta_api.base_url)
    try:
        yield
    finally:
        print(BANNER.format(service=SERVICE_NAME, version=VERSION, action="shutting down",
                            python=python_version, env=environment))
        try:
            await db_session.dispose_engine()
            logger.info("Database engine disposed", component="db")
        except Exception as e:
            logger.error("Error during DB dispose", component="db", error=str(e), exc_info=True)
        await close_http_client()
        logger.info("HTTP client closed", component="http")
