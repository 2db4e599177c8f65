from datetime import datetime, timedelta, timezone

import pytest

from groupride.modules.notifications.geo import calculate_distance, is_ride_near_user
from groupride.modules.notifications.service import NotificationService, format_ride_notification
from groupride.modules.users.schemas import UserResponse
from groupride.roster import Ride

NOW = datetime(2030, 6, 1, 8, tzinfo=timezone.utc)
LONDON = (51.5074, -0.1278)


def _ride(ride_id="r1", hours=2, lat=51.52, lon=-0.10, **fields):
    return Ride(
        id=ride_id,
        ride_time=NOW + timedelta(hours=hours),
        created_by="u1",
        latitude=lat,
        longitude=lon,
        **fields,
    )


def test_london_to_paris():
    assert calculate_distance(*LONDON, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.0)


def test_ride_without_coordinates_is_never_near():
    assert not is_ride_near_user(None, None, *LONDON, 10_000)


def test_radius_is_inclusive():
    distance = calculate_distance(*LONDON, 51.52, -0.10)
    assert is_ride_near_user(51.52, -0.10, *LONDON, distance)


def test_notification_payload_skips_empty_parts():
    ride = _ride(title="Alice Smith wants to ride", start_location="Harbour steps", distance=80, bike_type="Road")
    payload = format_ride_notification(ride)
    assert payload.title == "New Ride Near You!"
    assert payload.body == "Alice Smith wants to ride\nHarbour steps • 80km • Road"
    assert payload.url == "/rides/r1"


class TestNearby:

    def setup_method(self):
        self.service = NotificationService(default_radius_km=25)

    def test_matches_upcoming_rides_in_radius(self):
        prefs = UserResponse(id="u2", notifications_enabled=True, notification_radius_km=10)
        rides = [
            _ride("near"),
            _ride("past", hours=-1),
            _ride("far", lat=48.8566, lon=2.3522),
            _ride("nowhere", lat=None, lon=None),
        ]
        matches = self.service.rides_near(rides, prefs, *LONDON, now=NOW)
        assert [r.id for r in matches] == ["near"]

    def test_bike_type_filter(self):
        prefs = UserResponse(id="u2", notification_bike_types=["MTB"])
        rides = [_ride("road", bike_type="Road"), _ride("mtb", bike_type="MTB")]
        assert [r.id for r in self.service.rides_near(rides, prefs, *LONDON, now=NOW)] == ["mtb"]

    def test_disabled_notifications_match_nothing(self):
        prefs = UserResponse(id="u2", notifications_enabled=False)
        assert self.service.nearby_notifications([_ride()], prefs, *LONDON, now=NOW) == []
