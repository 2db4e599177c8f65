import logging
from typing import Optional

from fastapi import Request
from supabase import AsyncClient, Client, acreate_client, create_client

from groupride.config import Settings

logger = logging.getLogger(__name__)


class SupabaseClients:
    """Supabase clients owned by the application's composition root.

    Built once in the lifespan and stored on ``app.state.supabase``; nothing
    in the package caches a client at module level.
    """

    def __init__(self, settings: Settings, client: Client, realtime_client: Optional[AsyncClient] = None):
        self.settings = settings
        self.client = client
        self.realtime_client = realtime_client

    @classmethod
    async def create(cls, settings: Settings) -> "SupabaseClients":
        client = create_client(settings.supabase_url, settings.supabase_key)
        realtime_client = None
        if settings.roster_realtime_enabled:
            # Service role lets the shared roster feed read every row regardless of RLS.
            key = settings.supabase_service_role_key or settings.supabase_key
            realtime_client = await acreate_client(settings.supabase_url, key)
        logger.info("Supabase clients created for %s", settings.supabase_url)
        return cls(settings, client, realtime_client)

    async def user_client(self, token: str) -> AsyncClient:
        """Async client acting as the token's user, so the store's row-level policies apply."""
        client = await acreate_client(self.settings.supabase_url, self.settings.supabase_key)
        client.postgrest.auth(token)
        return client

    async def close(self) -> None:
        if self.realtime_client is not None:
            try:
                await self.realtime_client.remove_all_channels()
            except Exception as e:
                logger.warning(f"Error closing realtime channels: {e}")


def get_supabase_clients(request: Request) -> SupabaseClients:
    return request.app.state.supabase


def get_supabase(request: Request) -> Client:
    return get_supabase_clients(request).client
