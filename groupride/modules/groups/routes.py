from fastapi import APIRouter, Depends
from groupride.database.supabase_client import get_supabase
from groupride.modules.groups.schemas import GroupCreate, GroupResponse, MembershipUpdate
from groupride.modules.groups.service import GroupService
from groupride.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(supabase: Client = Depends(get_supabase)) -> GroupService:
    return GroupService(supabase)


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """List all groups"""
    return service.list_groups()


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Create a new group"""
    return service.create_group(group_data)


@router.get("/mine", response_model=List[GroupResponse])
async def my_groups(
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Groups the current user belongs to"""
    return service.list_user_groups(user_data["id"])


@router.put("/mine", response_model=List[GroupResponse])
async def set_my_groups(
    body: MembershipUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Replace the current user's group memberships"""
    return service.set_user_groups(user_data["id"], body.group_ids)
