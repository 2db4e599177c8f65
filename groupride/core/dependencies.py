"""
Core dependencies for route protection and roster access
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from groupride.config import Settings, settings as default_settings
from groupride.database.supabase_client import SupabaseClients, get_supabase, get_supabase_clients
from groupride.modules.auth.service import AuthService
from groupride.roster import RequestIdentity, RosterSyncEngine, SupabaseRideStore
from supabase import Client
from typing import AsyncIterator, Dict
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", default_settings)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


def get_current_user_id(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


async def get_user_store(
    token: str = Depends(get_current_token),
    clients: SupabaseClients = Depends(get_supabase_clients)
) -> AsyncIterator[SupabaseRideStore]:
    """Ride store acting as the caller, so row-level policies are enforced by Supabase."""
    client = await clients.user_client(token)
    try:
        yield SupabaseRideStore(client)
    finally:
        try:
            await client.postgrest.aclose()
        except Exception as e:
            logger.debug(f"Error closing user-scoped client: {e}")


def get_roster(request: Request) -> RosterSyncEngine:
    """Shared list-view engine kept current by the realtime feed."""
    return request.app.state.roster


def get_session_roster(
    user_data: Dict = Depends(get_current_user_id),
    store: SupabaseRideStore = Depends(get_user_store),
    roster: RosterSyncEngine = Depends(get_roster)
) -> RosterSyncEngine:
    """List-view engine acting as the caller against the shared projection."""
    return roster.with_session(store, RequestIdentity(user_data["id"]))
