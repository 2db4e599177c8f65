import re
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from groupride.roster import Participant, ParticipantWithUser, Ride, RiderProfile

_DISTANCE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:km)?\s*$", re.IGNORECASE)


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class TimeOfDay(_CaseInsensitiveEnum):
    NOW = "Now"
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"


TIME_OF_DAY_HOURS = {
    TimeOfDay.MORNING: 9,
    TimeOfDay.AFTERNOON: 14,
    TimeOfDay.EVENING: 18,
}


class Pace(_CaseInsensitiveEnum):
    CHILL = "chill"
    SPEED = "speed"
    RACE = "race"


class BikeType(_CaseInsensitiveEnum):
    ROAD = "Road"
    MTB = "MTB"


def ride_title(full_name: Optional[str]) -> str:
    return f"{full_name or 'Someone'} wants to ride"


def resolve_ride_time(time_of_day: TimeOfDay, now: datetime) -> datetime:
    """Next occurrence of the time-of-day slot; today if it has not passed yet."""
    if time_of_day == TimeOfDay.NOW:
        return now
    ride_time = now.replace(hour=TIME_OF_DAY_HOURS[time_of_day], minute=0, second=0, microsecond=0)
    if ride_time < now:
        ride_time += timedelta(days=1)
    return ride_time


class RideCreate(BaseModel):
    time_of_day: Optional[TimeOfDay] = None
    ride_time: Optional[datetime] = None
    distance: float = Field(gt=0, le=1000)
    pace: Pace = Pace.SPEED
    bike_type: BikeType = BikeType.ROAD
    start_location: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    group_id: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: Optional[float] = Field(default=None, gt=0)

    @field_validator("distance", mode="before")
    @classmethod
    def _parse_distance(cls, value):
        # The quick-create form sends "50km" / "80km" / "100km"
        if isinstance(value, str):
            match = _DISTANCE_RE.match(value)
            if not match:
                raise ValueError("Distance must be a number of kilometres")
            return float(match.group(1))
        return value

    @field_validator("start_location")
    @classmethod
    def _strip_location(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Start location is required")
        return value

    @model_validator(mode="after")
    def _check_time_and_coordinates(self) -> "RideCreate":
        if self.time_of_day is not None and self.ride_time is not None:
            raise ValueError("Give either time_of_day or ride_time, not both")
        if self.time_of_day is None and self.ride_time is None:
            self.time_of_day = TimeOfDay.MORNING
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class StatusUpdate(BaseModel):
    status: Literal["accepted", "declined"]
    user_id: Optional[str] = None  # defaults to the caller


class RosterParticipant(Participant):
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    strava_url: Optional[str] = None

    @classmethod
    def from_participant(cls, participant: Participant) -> "RosterParticipant":
        data = participant.model_dump(exclude={"user"})
        user = participant.user if isinstance(participant, ParticipantWithUser) else None
        if user is not None:
            data.update(name=user.display_name, avatar_url=user.avatar_url, strava_url=user.strava_url)
        return cls(**data)


class RideResponse(Ride):
    participants: List[RosterParticipant] = []
    participant_count: int = 0
    going_count: int = 0
    is_participant: bool = False


class RideDetailResponse(RideResponse):
    creator: Optional[RiderProfile] = None
    creator_name: str = "Unknown"
    group_name: Optional[str] = None
    display_title: Optional[str] = None


class RideListResponse(BaseModel):
    rides: List[RideResponse]
    version: int
    loading: bool = False
    last_error: Optional[str] = None
