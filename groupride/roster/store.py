import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Type

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from groupride.roster.errors import FetchError, Forbidden, MutationError, NotFound, RosterError
from groupride.roster.models import ChangeEvent

logger = logging.getLogger(__name__)

Filters = Dict[str, Any]
Order = Tuple[str, bool]  # (column, descending)
ChangeCallback = Callable[[ChangeEvent], None]

# Postgres / PostgREST error codes
RLS_VIOLATION = "42501"
FOREIGN_KEY_VIOLATION = "23503"
NO_ROWS = "PGRST116"


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class RideStore(Protocol):
    """Remote data store boundary used by the roster engine."""

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]: ...

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

    async def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> Dict[str, Any]: ...

    async def delete(self, table: str, filters: Filters) -> List[Dict[str, Any]]: ...

    async def subscribe(
        self, table: str, callback: ChangeCallback, filter: Optional[str] = None
    ) -> Subscription: ...


def translate_api_error(e: APIError, default: Type[RosterError], action: str) -> RosterError:
    code = getattr(e, "code", None)
    message = getattr(e, "message", None) or str(e)
    if code == RLS_VIOLATION:
        return Forbidden(f"{action} rejected by row-level policy")
    if code in (NO_ROWS, FOREIGN_KEY_VIOLATION):
        return NotFound(f"{action}: referenced row not found")
    return default(f"{action} failed: {message}")


class _ChannelSubscription:
    def __init__(self, client: AsyncClient, channel: Any):
        self.client = client
        self.channel = channel

    async def unsubscribe(self) -> None:
        await self.client.remove_channel(self.channel)


class SupabaseRideStore:
    """RideStore over the Supabase async client (PostgREST + Realtime)."""

    def __init__(self, client: AsyncClient, schema: str = "public"):
        self.client = client
        self.schema = schema

    async def _execute(self, query: Any, error_cls: Type[RosterError], action: str) -> Any:
        try:
            return await query.execute()
        except APIError as e:
            raise translate_api_error(e, error_cls, action) from e
        except httpx.HTTPError as e:
            logger.warning(f"{action} failed at transport level: {e}")
            raise error_cls(f"{action} failed: {e}") from e

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]:
        query = self.client.table(table).select(columns)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order:
            column, desc = order
            query = query.order(column, desc=desc)
        result = await self._execute(query, FetchError, f"select {table}")
        return result.data or []

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._execute(self.client.table(table).insert(row), MutationError, f"insert {table}")
        return result.data[0] if result.data else dict(row)

    async def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> Dict[str, Any]:
        query = self.client.table(table).upsert(row, on_conflict=on_conflict)
        result = await self._execute(query, MutationError, f"upsert {table}")
        return result.data[0] if result.data else dict(row)

    async def delete(self, table: str, filters: Filters) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        query = self.client.table(table).delete()
        for column, value in filters.items():
            query = query.eq(column, value)
        result = await self._execute(query, MutationError, f"delete {table}")
        return result.data or []

    async def subscribe(
        self, table: str, callback: ChangeCallback, filter: Optional[str] = None
    ) -> Subscription:
        name = f"{table}_realtime" if filter is None else f"{table}_realtime:{filter}"
        channel = self.client.channel(name)

        def on_change(payload: Any) -> None:
            callback(ChangeEvent.from_payload(table, payload))

        channel.on_postgres_changes(
            "*", schema=self.schema, table=table, filter=filter, callback=on_change
        )
        await channel.subscribe()
        logger.info("Subscribed to realtime changes on %s (%s)", table, filter or "all rows")
        return _ChannelSubscription(self.client, channel)
