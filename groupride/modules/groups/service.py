from supabase import Client
from groupride.modules.groups.schemas import GroupCreate, GroupResponse
from typing import List
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class GroupService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_groups(self) -> List[GroupResponse]:
        """All groups ordered by name"""
        try:
            result = self.supabase.table("groups")\
                .select("*")\
                .order("name")\
                .execute()
            return [GroupResponse(**g) for g in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_group(self, group_data: GroupCreate) -> GroupResponse:
        """Create a new group"""
        try:
            result = self.supabase.table("groups").insert({
                "name": group_data.name,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create group")

            return GroupResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_user_groups(self, user_id: str) -> List[GroupResponse]:
        """Groups the user belongs to, ordered by name"""
        try:
            result = self.supabase.table("user_group")\
                .select("groups(*)")\
                .eq("user_id", user_id)\
                .execute()
            groups = [GroupResponse(**row["groups"]) for row in result.data if row.get("groups")]
            return sorted(groups, key=lambda g: g.name.lower())
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def set_user_groups(self, user_id: str, group_ids: List[str]) -> List[GroupResponse]:
        """Replace the user's memberships with exactly group_ids"""
        try:
            self.supabase.table("user_group")\
                .delete()\
                .eq("user_id", user_id)\
                .execute()

            if group_ids:
                self.supabase.table("user_group").insert([
                    {"user_id": user_id, "group_id": group_id}
                    for group_id in group_ids
                ]).execute()

            logger.info(f"User {user_id} now in {len(group_ids)} group(s)")
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return self.list_user_groups(user_id)
