"""Typed rows of the ride roster, validated at the store boundary.

Expected Supabase table structure:

rides:
- id: uuid (primary key)
- title: text
- start_location: text
- ride_time: timestamptz (not null)
- distance: numeric
- pace: text - chill | speed | race (free text in older rows)
- bike_type: text - Road | MTB (free text in older rows)
- description: text (nullable)
- latitude, longitude, radius_km: numeric (nullable)
- group_id: uuid (foreign key to groups.id, nullable)
- created_by: uuid (foreign key to users.id, not null)
- created_at: timestamptz (default: now())

ride_participants:
- ride_id: uuid (foreign key to rides.id, on delete cascade)
- user_id: uuid (foreign key to users.id)
- status: text - pending | accepted | declined (absent in the earliest schema)
- created_at: timestamptz (default: now())
- primary key (ride_id, user_id)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from groupride.roster.errors import SchemaError

RIDES_TABLE = "rides"
PARTICIPANTS_TABLE = "ride_participants"
USERS_TABLE = "users"


class ParticipantStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Ride(BaseModel):
    id: str
    title: Optional[str] = None
    start_location: Optional[str] = None
    ride_time: datetime
    distance: Optional[float] = None
    pace: Optional[str] = None
    bike_type: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: Optional[float] = None
    group_id: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None

    @field_validator("ride_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RiderProfile(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    strava_url: Optional[str] = None
    social_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.name or "Unknown"


class Participant(BaseModel):
    ride_id: str
    user_id: str
    status: ParticipantStatus = ParticipantStatus.ACCEPTED
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _status_less_rows_are_accepted(cls, value: Any) -> Any:
        # Presence alone meant "joined" before the status column existed
        return ParticipantStatus.ACCEPTED if value is None else value

    @property
    def key(self) -> tuple:
        return (self.ride_id, self.user_id)


class ParticipantWithUser(Participant):
    user: Optional[RiderProfile] = Field(default=None, alias="users")

    class Config:
        populate_by_name = True


class RideDetail(Ride):
    """A ride joined with its creator and group, as loaded by the detail view."""

    creator: Optional[RiderProfile] = None
    group_name: Optional[str] = None


class ChangeEvent(BaseModel):
    """A realtime notification. Only "something changed in ``table``" is trusted."""

    table: str
    event_type: Optional[str] = None
    old_row: Optional[Dict[str, Any]] = None
    new_row: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, table: str, payload: Any) -> "ChangeEvent":
        """Parse a Supabase realtime payload, keeping only what can be read safely."""
        if not isinstance(payload, dict):
            return cls(table=table)
        data = payload.get("data", payload)
        if not isinstance(data, dict):
            return cls(table=table)
        event_type = data.get("type") or data.get("eventType")
        if event_type not in ("INSERT", "UPDATE", "DELETE"):
            event_type = None
        new_row = data.get("record", data.get("new"))
        old_row = data.get("old_record", data.get("old"))
        return cls(
            table=data.get("table") or table,
            event_type=event_type,
            new_row=new_row if isinstance(new_row, dict) else None,
            old_row=old_row if isinstance(old_row, dict) else None,
        )


M = TypeVar("M", bound=BaseModel)


def parse_row(model: Type[M], row: Any) -> M:
    if not isinstance(row, dict):
        raise SchemaError(f"Expected a {model.__name__} row, got {type(row).__name__}")
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise SchemaError(f"Malformed {model.__name__} row: {e.errors()}") from e


def parse_rows(model: Type[M], rows: Optional[Iterable[Any]]) -> List[M]:
    return [parse_row(model, row) for row in (rows or [])]


def parse_ride_detail(row: Any) -> RideDetail:
    """Flatten the nested ``creator`` and ``groups`` objects of a detail select."""
    if not isinstance(row, dict):
        raise SchemaError(f"Expected a ride row, got {type(row).__name__}")
    flat = {k: v for k, v in row.items() if k not in ("creator", "groups", "ride_participants")}
    creator = row.get("creator")
    if creator is not None:
        flat["creator"] = parse_row(RiderProfile, creator)
    group = row.get("groups")
    if isinstance(group, dict):
        flat["group_name"] = group.get("name")
    return parse_row(RideDetail, flat)
