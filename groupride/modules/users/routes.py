from fastapi import APIRouter, Depends, File, UploadFile
from groupride.database.supabase_client import get_supabase
from groupride.modules.users.schemas import (
    UserUpdate, UserResponse, NotificationSettingsUpdate, PushSubscription
)
from groupride.modules.users.service import UserService
from groupride.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Get the caller's rider profile"""
    return service.get_user_by_id(user_data["id"])


@router.put("/me", response_model=UserResponse)
async def update_me(
    user_data_body: UserUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Update the caller's profile (renaming retitles their rides)"""
    return service.update_user(user_data["id"], user_data_body)


@router.put("/me/notifications", response_model=UserResponse)
async def update_notification_settings(
    prefs: NotificationSettingsUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Save ride notification preferences"""
    return service.update_notification_settings(user_data["id"], prefs)


@router.put("/me/push-subscription", status_code=204)
async def save_push_subscription(
    subscription: PushSubscription,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Register the browser push subscription"""
    service.save_push_subscription(user_data["id"], subscription)
    return None


@router.post("/me/avatar", response_model=UserResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Upload a new avatar image"""
    return await service.upload_avatar(user_data["id"], file)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Get a rider's public profile"""
    return service.get_user_by_id(user_id)
