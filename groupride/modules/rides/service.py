from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo
import logging

from groupride.config import settings
from groupride.modules.notifications.service import NotificationService
from groupride.modules.rides.quotes import format_quote_for_ride, random_quote
from groupride.modules.rides.schemas import (
    RideCreate, RideResponse, RideDetailResponse, RideListResponse, RosterParticipant,
    resolve_ride_time, ride_title,
)
from groupride.modules.notifications.schemas import RideNotificationPayload
from groupride.modules.users.service import UserService
from groupride.roster import NotFound, Ride, RideDetail, RosterSyncEngine

logger = logging.getLogger(__name__)


class RideService:
    """Turns roster projections into API responses and ride drafts into rows."""

    def __init__(self, users: UserService, notifications: Optional[NotificationService] = None):
        self.users = users
        self.notifications = notifications or NotificationService()

    def build_ride_fields(self, ride_data: RideCreate, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Row fields for a new ride; title comes from the creator's profile name"""
        now = now or datetime.now(ZoneInfo(settings.ride_timezone))
        if ride_data.ride_time is not None:
            ride_time = ride_data.ride_time
        else:
            ride_time = resolve_ride_time(ride_data.time_of_day, now)

        profile = self.users.get_user_by_id(user_id)
        description = (ride_data.description or "").strip() or format_quote_for_ride(random_quote())

        fields = {
            "title": ride_title(profile.full_name or profile.name),
            "start_location": ride_data.start_location,
            "ride_time": ride_time,
            "distance": ride_data.distance,
            "pace": ride_data.pace.value,
            "bike_type": ride_data.bike_type.value,
            "description": description,
            "group_id": ride_data.group_id,
            "latitude": ride_data.latitude,
            "longitude": ride_data.longitude,
            "radius_km": ride_data.radius_km,
        }
        return {k: v for k, v in fields.items() if v is not None}

    def ride_response(self, engine: RosterSyncEngine, ride: Ride, user_id: Optional[str]) -> RideResponse:
        roster = engine.roster(ride.id)
        return RideResponse(
            **ride.model_dump(include=set(Ride.model_fields)),
            participants=[RosterParticipant.from_participant(p) for p in roster],
            participant_count=len(roster),
            going_count=engine.going_count(ride.id),
            is_participant=engine.is_participant(ride.id, user_id),
        )

    def list_response(self, engine: RosterSyncEngine, user_id: Optional[str]) -> RideListResponse:
        projection = engine.projection
        return RideListResponse(
            rides=[self.ride_response(engine, ride, user_id) for ride in projection.rides],
            version=projection.version,
            loading=projection.loading,
            last_error=projection.last_error.message if projection.last_error else None,
        )

    def detail_response(self, engine: RosterSyncEngine, ride_id: str, user_id: Optional[str]) -> RideDetailResponse:
        ride = engine.projection.ride(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        base = self.ride_response(engine, ride, user_id)
        creator = ride.creator if isinstance(ride, RideDetail) else None
        group_name = ride.group_name if isinstance(ride, RideDetail) else None
        return RideDetailResponse(
            **base.model_dump(),
            creator=creator,
            creator_name=creator.display_name if creator else "Unknown",
            group_name=group_name,
            display_title=f"{group_name} Ride" if group_name else ride.title,
        )

    def nearby(
        self,
        engine: RosterSyncEngine,
        user_id: str,
        latitude: float,
        longitude: float,
    ) -> List[RideNotificationPayload]:
        prefs = self.users.get_user_by_id(user_id)
        return self.notifications.nearby_notifications(engine.projection.rides, prefs, latitude, longitude)
