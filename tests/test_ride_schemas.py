from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from groupride.modules.rides.quotes import CYCLIST_QUOTES, format_quote_for_ride, random_quote
from groupride.modules.rides.schemas import (
    BikeType, Pace, RideCreate, StatusUpdate, TimeOfDay, resolve_ride_time, ride_title
)

NOON = datetime(2030, 6, 1, 12, 30, tzinfo=timezone.utc)


def _draft(**overrides):
    data = {"distance": 50, "start_location": "Harbour steps"}
    data.update(overrides)
    return data


class TestRideTime:

    def test_morning_after_nine_rolls_to_tomorrow(self):
        assert resolve_ride_time(TimeOfDay.MORNING, NOON) == datetime(2030, 6, 2, 9, tzinfo=timezone.utc)

    def test_afternoon_later_today(self):
        assert resolve_ride_time(TimeOfDay.AFTERNOON, NOON) == datetime(2030, 6, 1, 14, tzinfo=timezone.utc)

    def test_evening_later_today(self):
        assert resolve_ride_time(TimeOfDay.EVENING, NOON) == datetime(2030, 6, 1, 18, tzinfo=timezone.utc)

    def test_now_is_the_current_instant(self):
        assert resolve_ride_time(TimeOfDay.NOW, NOON) == NOON


class TestRideCreate:

    @pytest.mark.parametrize("raw, expected", [("80km", 80.0), ("100 KM", 100.0), ("42.5", 42.5), (30, 30.0)])
    def test_distance_accepts_numbers_and_km_strings(self, raw, expected):
        assert RideCreate(**_draft(distance=raw)).distance == expected

    @pytest.mark.parametrize("raw", ["far", "-5km", 0])
    def test_distance_rejects_nonsense(self, raw):
        with pytest.raises(ValidationError):
            RideCreate(**_draft(distance=raw))

    def test_enums_are_case_insensitive(self):
        draft = RideCreate(**_draft(pace="CHILL", bike_type="mtb", time_of_day="evening"))
        assert draft.pace == Pace.CHILL
        assert draft.bike_type == BikeType.MTB
        assert draft.time_of_day == TimeOfDay.EVENING

    def test_defaults_to_morning(self):
        draft = RideCreate(**_draft())
        assert draft.time_of_day == TimeOfDay.MORNING
        assert draft.ride_time is None

    def test_location_is_stripped_and_required(self):
        assert RideCreate(**_draft(start_location="  Cafe  ")).start_location == "Cafe"
        with pytest.raises(ValidationError):
            RideCreate(**_draft(start_location="   "))

    def test_time_of_day_and_ride_time_are_exclusive(self):
        with pytest.raises(ValidationError):
            RideCreate(**_draft(time_of_day="Morning", ride_time="2030-06-01T09:00:00Z"))

    def test_coordinates_come_in_pairs(self):
        with pytest.raises(ValidationError):
            RideCreate(**_draft(latitude=51.5))


def test_status_update_rejects_pending():
    with pytest.raises(ValidationError):
        StatusUpdate(status="pending")


def test_ride_title():
    assert ride_title("Alice Smith") == "Alice Smith wants to ride"
    assert ride_title(None) == "Someone wants to ride"


def test_quote_formatting():
    assert format_quote_for_ride(("Shut up legs!", "Jens Voigt")) == '"Shut up legs!" - Jens Voigt'
    assert random_quote() in CYCLIST_QUOTES
