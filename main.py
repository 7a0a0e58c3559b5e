from dotenv import load_dotenv

from fastapi import FastAPI

from api.meta_campaigns import router as campaigns_router
from api.meta_connections import router as connections_router
from core.infrastructure.lifecycle import lifespan
from core.infrastructure.middleware import AuthContextMiddleware
from core.infrastructure.request_logging_middleware import RequestLoggingMiddleware
from core.metadata import APP_TITLE, VERSION
from exceptions.handlers import setup_exception_handlers

load_dotenv()


def create_app() -> FastAPI:
    app = FastAPI(title=APP_TITLE, version=VERSION, lifespan=lifespan)

    # Added last runs first: request logging wraps auth context
    app.add_middleware(AuthContextMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(campaigns_router)
    app.include_router(connections_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": VERSION}

    setup_exception_handlers(app)
    return app


app = create_app()
