from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from groupride.modules.rides.schemas import BikeType


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar_url: Optional[str] = None
    social_url: Optional[str] = None
    strava_url: Optional[str] = None


class NotificationSettingsUpdate(BaseModel):
    notifications_enabled: bool = True
    notification_radius_km: int = Field(default=25, ge=1, le=200)
    notification_bike_types: List[BikeType] = Field(
        default_factory=lambda: [BikeType.ROAD, BikeType.MTB], min_length=1
    )

    @field_validator("notification_bike_types")
    @classmethod
    def _dedupe(cls, value: List[BikeType]) -> List[BikeType]:
        return list(dict.fromkeys(value))


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscription(BaseModel):
    endpoint: str
    keys: PushSubscriptionKeys
    expirationTime: Optional[float] = None


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    social_url: Optional[str] = None
    strava_url: Optional[str] = None
    notifications_enabled: Optional[bool] = None
    notification_radius_km: Optional[int] = None
    notification_bike_types: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return self.full_name or self.name or "Unknown"
