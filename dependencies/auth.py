from fastapi import Depends

from adapters.supabase.auth import AuthenticatedUser, SupabaseAuthAdapter
from core.context import auth_context, set_authenticated_user
from dependencies.services import get_auth_adapter


async def get_current_user(
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
) -> AuthenticatedUser:
    """Verify the bearer token captured by AuthContextMiddleware."""
    user = await auth.verify_token(auth_context.access_token)
    set_authenticated_user(user.user_id, user.is_admin)
    return user
