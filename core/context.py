"""Request-scoped context for auth credentials.

Uses Python's contextvars which work correctly with async/await.

Usage:
    # Read in any service/handler
    from core.context import auth_context
    token = auth_context.access_token
    user_id = auth_context.user_id
"""

from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class AuthContext:
    access_token: str = ""
    user_id: str = ""
    is_admin: bool = False


_auth_context: ContextVar[AuthContext] = ContextVar(
    "auth_context", default=AuthContext()
)


def set_auth_context(access_token: str) -> None:
    """Set the raw bearer token for the current request. Called by middleware."""
    _auth_context.set(AuthContext(access_token=access_token))


def set_authenticated_user(user_id: str, is_admin: bool = False) -> None:
    """Record the verified user once the token has been checked."""
    _auth_context.set(
        replace(_auth_context.get(), user_id=user_id, is_admin=is_admin)
    )


def get_auth_context() -> AuthContext:
    """Get auth context for current request."""
    return _auth_context.get()


# Convenience accessor
class _AuthContextAccessor:
    """Accessor for reading auth context values directly."""

    @property
    def access_token(self) -> str:
        return _auth_context.get().access_token

    @property
    def user_id(self) -> str:
        return _auth_context.get().user_id

    @property
    def is_admin(self) -> bool:
        return _auth_context.get().is_admin


auth_context = _AuthContextAccessor()
