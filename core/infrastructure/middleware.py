"""FastAPI middleware for setting request context."""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.context import set_auth_context


def _extract_token(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return auth.strip()


class AuthContextMiddleware(BaseHTTPMiddleware):
    """Populates the bearer token; the user is verified later by the route dependency."""

    async def dispatch(self, request: Request, call_next):
        set_auth_context(access_token=_extract_token(request))
        return await call_next(request)
