from datetime import datetime, timezone
from typing import Iterable, List, Optional
import logging

from groupride.config import settings
from groupride.modules.notifications.geo import is_ride_near_user
from groupride.modules.notifications.schemas import RideNotificationPayload
from groupride.modules.users.schemas import UserResponse
from groupride.roster import Ride

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New Ride Near You!"
NOTIFICATION_ICON = "/icon-192.png"


def _format_distance(distance: Optional[float]) -> Optional[str]:
    if distance is None:
        return None
    return f"{distance:g}km"


def format_ride_notification(ride: Ride) -> RideNotificationPayload:
    details = " • ".join(
        part for part in (
            ride.start_location,
            _format_distance(ride.distance),
            ride.pace,
            ride.bike_type,
        ) if part
    )
    return RideNotificationPayload(
        title=NOTIFICATION_TITLE,
        body=f"{ride.title or 'New ride'}\n{details}",
        url=f"/rides/{ride.id}",
        ride_id=ride.id,
        icon=NOTIFICATION_ICON,
    )


class NotificationService:
    """Matches rides against a rider's notification preferences."""

    def __init__(self, default_radius_km: Optional[float] = None):
        self.default_radius_km = default_radius_km or settings.default_notification_radius_km

    def wants_ride(self, prefs: UserResponse, ride: Ride) -> bool:
        if prefs.notifications_enabled is False:
            return False
        if prefs.notification_bike_types and ride.bike_type:
            wanted = {b.lower() for b in prefs.notification_bike_types}
            if ride.bike_type.lower() not in wanted:
                return False
        return True

    def rides_near(
        self,
        rides: Iterable[Ride],
        prefs: UserResponse,
        latitude: float,
        longitude: float,
        now: Optional[datetime] = None,
    ) -> List[Ride]:
        """Upcoming rides within the rider's radius that match their bike types"""
        now = now or datetime.now(timezone.utc)
        radius_km = prefs.notification_radius_km or self.default_radius_km
        matches = [
            ride for ride in rides
            if ride.ride_time >= now
            and self.wants_ride(prefs, ride)
            and is_ride_near_user(ride.latitude, ride.longitude, latitude, longitude, radius_km)
        ]
        logger.debug("%s ride(s) within %skm of (%s, %s)", len(matches), radius_km, latitude, longitude)
        return matches

    def nearby_notifications(
        self,
        rides: Iterable[Ride],
        prefs: UserResponse,
        latitude: float,
        longitude: float,
        now: Optional[datetime] = None,
    ) -> List[RideNotificationPayload]:
        return [
            format_ride_notification(ride)
            for ride in self.rides_near(rides, prefs, latitude, longitude, now)
        ]
