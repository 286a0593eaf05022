"""
Group management routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from groupledger.db.session import get_db
from groupledger.models.group import GroupType
from groupledger.models.user import User
from groupledger.schemas.group import (
    GroupCreate, GroupUpdate, MembersAdd, GroupResponse, GroupCreateResponse,
    GroupSummaryResponse, GroupDetailResponse, MembersAddResponse, DashboardResponse
)
from groupledger.api.dependencies import get_current_user
from groupledger.services import group_service

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_data: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new group with the caller as owner."""
    group, not_found = group_service.create_group(current_user, group_data, db)
    return {"group": group, "not_found_members": not_found}


@router.get("", response_model=List[GroupSummaryResponse])
async def list_groups(
    is_active: Optional[bool] = None,
    group_type: Optional[GroupType] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List all groups of the current user with their stats."""
    groups = group_service.list_groups(current_user.id, db, is_active=is_active, group_type=group_type)
    return [
        GroupSummaryResponse(
            **GroupResponse.model_validate(group).model_dump(),
            stats=group_service.group_stats(group.id, db)
        )
        for group in groups
    ]


@router.get("/{group_id}", response_model=GroupDetailResponse)
async def get_group(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get group details with expenses, settlements and the caller's balance."""
    group = group_service.check_group_access(group_id, current_user.id, db)
    return GroupDetailResponse(
        **GroupResponse.model_validate(group).model_dump(),
        expenses=group_service.active_expenses(group.id, db),
        settlements=group_service.active_settlements(group.id, db),
        stats=group_service.group_stats(group.id, db),
        user_balance=group_service.user_balance(group, current_user.id, db)
    )


@router.get("/{group_id}/dashboard", response_model=DashboardResponse)
async def get_group_dashboard(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get group dashboard/summary."""
    group = group_service.check_group_access(group_id, current_user.id, db)
    return group_service.dashboard(group, current_user.id, db)


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    group_data: GroupUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update group details and settings."""
    return group_service.update_group(group_id, current_user.id, group_data, db)


@router.post("/{group_id}/members", response_model=MembersAddResponse)
async def add_members(
    group_id: str,
    members: MembersAdd,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add registered users to the group by email."""
    added, not_found, group = group_service.add_members(group_id, current_user.id, members.member_emails, db)
    return {"added_members": added, "not_found": not_found, "group": group}


@router.delete("/{group_id}/members/{member_id}", response_model=GroupResponse)
async def remove_member(
    group_id: str,
    member_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove a member from the group."""
    return group_service.remove_member(group_id, current_user.id, member_id, db)


@router.delete("/{group_id}")
async def delete_group(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a group and all of its expenses and settlements."""
    group_service.delete_group(group_id, current_user.id, db)
    return {"message": "Group deleted successfully"}
