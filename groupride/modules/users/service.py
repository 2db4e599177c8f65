from supabase import Client
from groupride.modules.users.schemas import (
    UserUpdate, UserResponse, NotificationSettingsUpdate, PushSubscription
)
from groupride.modules.rides.schemas import ride_title
from groupride.config import settings
from fastapi import HTTPException, UploadFile
from datetime import datetime, timezone
import logging
import os
import uuid

logger = logging.getLogger(__name__)

ALLOWED_AVATAR_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp", "image/gif": ".gif"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_by_id(self, user_id: str) -> UserResponse:
        """Get rider profile by ID"""
        try:
            result = self.supabase.table("users")\
                .select("*")\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return UserResponse(**result.data)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_user(self, user_id: str, user_data: UserUpdate) -> UserResponse:
        """Update profile; a rename also retitles every ride the user created"""
        try:
            current = self.get_user_by_id(user_id)

            update_data = {"updated_at": _now()}
            if user_data.full_name is not None:
                update_data["full_name"] = user_data.full_name.strip()
            if user_data.avatar_url is not None:
                update_data["avatar_url"] = user_data.avatar_url
            if user_data.social_url is not None:
                update_data["social_url"] = user_data.social_url
            if user_data.strava_url is not None:
                update_data["strava_url"] = user_data.strava_url

            new_name = update_data.get("full_name")
            if new_name and new_name != current.full_name:
                self.supabase.table("rides")\
                    .update({"title": ride_title(new_name)})\
                    .eq("created_by", user_id)\
                    .execute()
                logger.info("Retitled rides of user %s after rename", user_id)

            result = self.supabase.table("users")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return UserResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_notification_settings(self, user_id: str, prefs: NotificationSettingsUpdate) -> UserResponse:
        """Save ride notification preferences"""
        try:
            result = self.supabase.table("users")\
                .update({
                    "notifications_enabled": prefs.notifications_enabled,
                    "notification_radius_km": prefs.notification_radius_km,
                    "notification_bike_types": [b.value for b in prefs.notification_bike_types],
                    "updated_at": _now(),
                })\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return UserResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def save_push_subscription(self, user_id: str, subscription: PushSubscription) -> bool:
        """Store the browser push subscription; delivery happens elsewhere"""
        try:
            result = self.supabase.table("users")\
                .update({"push_subscription": subscription.model_dump()})\
                .eq("id", user_id)\
                .execute()
            return len(result.data) > 0
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    async def upload_avatar(self, user_id: str, file: UploadFile) -> UserResponse:
        """Upload avatar image to Supabase Storage and point the profile at it"""
        content_type = (file.content_type or "").lower()
        if content_type not in ALLOWED_AVATAR_TYPES:
            raise HTTPException(status_code=400, detail="Avatar must be a JPEG, PNG, WebP or GIF image")

        file_content = await file.read()
        if not file_content:
            raise HTTPException(status_code=400, detail="Avatar file is empty")
        if len(file_content) > settings.avatar_max_bytes:
            raise HTTPException(status_code=413, detail="Avatar file is too large")

        file_extension = os.path.splitext(file.filename or "")[1].lower() or ALLOWED_AVATAR_TYPES[content_type]
        file_path = f"{user_id}/{uuid.uuid4().hex}{file_extension}"
        bucket = self.supabase.storage.from_(settings.avatar_bucket)
        try:
            bucket.upload(file_path, file_content, file_options={"content-type": content_type})
            logger.info(f"Uploaded avatar to Supabase Storage: {file_path}")
        except Exception as e:
            logger.error(f"Avatar upload failed: {str(e)}")
            raise HTTPException(status_code=500, detail=f"Failed to upload avatar: {str(e)}")

        return self.update_user(user_id, UserUpdate(avatar_url=bucket.get_public_url(file_path)))
