from fastapi import APIRouter, Depends, Query, Request
from sse_starlette.sse import EventSourceResponse
from groupride.config import Settings
from groupride.core.dependencies import (
    get_current_user_id, get_roster, get_session_roster, get_settings, get_user_store
)
from groupride.database.supabase_client import get_supabase
from groupride.modules.notifications.schemas import RideNotificationPayload
from groupride.modules.rides.schemas import (
    RideCreate, RideResponse, RideDetailResponse, RideListResponse, StatusUpdate
)
from groupride.modules.rides.service import RideService
from groupride.modules.users.service import UserService
from groupride.roster import FetchError, RequestIdentity, RosterSyncEngine, SupabaseRideStore
from supabase import Client
from typing import Dict, List
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rides", tags=["rides"])

SSE_PING_SECONDS = 15


def get_ride_service(supabase: Client = Depends(get_supabase)) -> RideService:
    return RideService(UserService(supabase))


async def _ensure_loaded(engine: RosterSyncEngine, refresh: bool = False) -> None:
    """Fetch when nothing has been loaded yet; a failed refresh keeps the last good state."""
    if engine.projection.loaded and not refresh:
        return
    try:
        await engine.load_all()
    except FetchError:
        if not engine.projection.loaded:
            raise


@router.get("", response_model=RideListResponse)
async def list_rides(
    refresh: bool = False,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster),
    service: RideService = Depends(get_ride_service)
):
    """All rides ordered by start time, with their rosters"""
    await _ensure_loaded(engine, refresh)
    return service.list_response(engine, user_data["id"])


@router.get("/events")
async def ride_events(
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    roster: RosterSyncEngine = Depends(get_roster)
):
    """Server-sent stream of roster snapshots, one per projection change"""
    projection = roster.projection
    queue = projection.listen()

    async def generator():
        try:
            snapshot = projection.snapshot()
            yield {"event": "snapshot", "id": str(snapshot.version), "data": snapshot.model_dump_json()}
            while True:
                if await request.is_disconnected():
                    break
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=SSE_PING_SECONDS)
                except asyncio.TimeoutError:
                    continue
                yield {"event": "snapshot", "id": str(snapshot.version), "data": snapshot.model_dump_json()}
        finally:
            projection.unlisten(queue)

    return EventSourceResponse(generator(), ping=SSE_PING_SECONDS)


@router.get("/nearby", response_model=List[RideNotificationPayload])
async def nearby_rides(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster),
    service: RideService = Depends(get_ride_service)
):
    """Upcoming rides within the caller's notification radius and bike types"""
    await _ensure_loaded(engine)
    return service.nearby(engine, user_data["id"], latitude, longitude)


@router.post("", response_model=RideResponse, status_code=201)
async def create_ride(
    ride_data: RideCreate,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster),
    service: RideService = Depends(get_ride_service)
):
    """Create a ride; the creator joins it as accepted"""
    fields = service.build_ride_fields(ride_data, user_data["id"])
    ride = await engine.create_ride(fields)
    return service.ride_response(engine, ride, user_data["id"])


@router.get("/{ride_id}", response_model=RideDetailResponse)
async def get_ride(
    ride_id: str,
    user_data: Dict = Depends(get_current_user_id),
    store: SupabaseRideStore = Depends(get_user_store),
    service: RideService = Depends(get_ride_service),
    settings: Settings = Depends(get_settings)
):
    """Ride detail with creator, group and participant profiles"""
    engine = RosterSyncEngine(
        store,
        RequestIdentity(user_data["id"]),
        ride_id=ride_id,
        fetch_timeout=settings.roster_fetch_timeout_seconds,
    )
    await engine.load_all()
    return service.detail_response(engine, ride_id, user_data["id"])


@router.delete("/{ride_id}", status_code=204)
async def delete_ride(
    ride_id: str,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster)
):
    """Delete a ride (creator only)"""
    await engine.delete_ride(ride_id, user_data["id"])
    return None


@router.post("/{ride_id}/join", status_code=204)
async def join_ride(
    ride_id: str,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster)
):
    """Join a ride; the caller's status starts as pending"""
    await engine.join(ride_id, user_data["id"])
    return None


@router.delete("/{ride_id}/join", status_code=204)
async def leave_ride(
    ride_id: str,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster)
):
    """Leave a ride (no-op when not joined)"""
    await engine.leave(ride_id, user_data["id"])
    return None


@router.put("/{ride_id}/status", status_code=204)
async def set_status(
    ride_id: str,
    body: StatusUpdate,
    user_data: Dict = Depends(get_current_user_id),
    engine: RosterSyncEngine = Depends(get_session_roster)
):
    """Mark yourself going (accepted) or not going (declined)"""
    await engine.set_status(ride_id, body.user_id or user_data["id"], body.status)
    return None
