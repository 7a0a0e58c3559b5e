from typing import Optional

from fastapi import APIRouter, Depends, Query

from adapters.supabase.auth import AuthenticatedUser
from core.models.connection import SelectAdAccountRequest, SelectPageRequest
from core.services.connection_manager import ConnectionManager
from dependencies.auth import get_current_user
from dependencies.services import get_connection_manager
from utils.response_helpers import success_response

router = APIRouter(prefix="/api/ads/meta/connection", tags=["meta-connection"])


def _public(manager: ConnectionManager, connection):
    return connection.to_public(manager.is_valid(connection))


@router.get("")
async def get_connection(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    connection = await manager.get_connection(user.user_id)
    return success_response(_public(manager, connection))


@router.delete("")
async def disconnect(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    deleted = await manager.disconnect(user.user_id)
    return success_response({"disconnected": deleted})


@router.get("/authorize")
async def authorization_url(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    return success_response({"url": manager.build_authorization_url(user.user_id)})


@router.get("/callback")
async def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    connection = await manager.handle_oauth_callback(
        code,
        state,
        error=error,
        error_description=error_description,
        expected_user_id=user.user_id,
    )
    return success_response(_public(manager, connection))


@router.post("/refresh")
async def refresh_assets(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    connection = await manager.refresh_assets(user.user_id)
    return success_response(_public(manager, connection))


@router.put("/ad-account")
async def select_ad_account(
    selection: SelectAdAccountRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    connection = await manager.select_ad_account(user.user_id, selection.ad_account_id)
    return success_response(_public(manager, connection))


@router.put("/page")
async def select_page(
    selection: SelectPageRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    connection = await manager.select_page(user.user_id, selection.page_id)
    return success_response(_public(manager, connection))
