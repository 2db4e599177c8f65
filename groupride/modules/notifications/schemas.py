from pydantic import BaseModel
from typing import Optional


class RideNotificationPayload(BaseModel):
    title: str
    body: str
    url: str
    ride_id: str
    icon: Optional[str] = None
