"""
Pydantic schemas for Group entity.
"""
from pydantic import AliasChoices, BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from groupledger.models.expense import SplitMethod
from groupledger.models.group import GroupType, MemberRole
from groupledger.schemas.expense import LedgerEntryResponse
from groupledger.schemas.settlement import SettlementResponse


class GroupSettings(BaseModel):
    """Admission settings of a group."""
    allow_member_add_expense: bool = True
    require_approval_for_expense: bool = False
    auto_settle: bool = False

    class Config:
        from_attributes = True


class GroupCreate(BaseModel):
    """Schema for group creation."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    group_type: GroupType = GroupType.OTHER
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    default_split_method: SplitMethod = SplitMethod.EQUAL
    settings: Optional[GroupSettings] = None
    member_emails: List[EmailStr] = []


class GroupUpdate(BaseModel):
    """Schema for group update."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    group_type: Optional[GroupType] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    default_split_method: Optional[SplitMethod] = None
    settings: Optional[GroupSettings] = None


class MembersAdd(BaseModel):
    """Schema for adding members by email."""
    member_emails: List[EmailStr] = Field(..., min_length=1)


class MemberResponse(BaseModel):
    """Schema for group member response."""
    user_id: int
    name: str
    email: str
    role: MemberRole
    joined_at: datetime
    is_active: bool

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    """Schema for group response."""
    id: str
    name: str
    description: str
    group_type: GroupType
    created_by: int
    currency: str
    default_split_method: SplitMethod
    settings: GroupSettings = Field(validation_alias=AliasChoices("settings", "group_settings"))
    members: List[MemberResponse] = []
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GroupStats(BaseModel):
    """Aggregate figures shown with a group."""
    total_expenses: Decimal
    total_expense_count: int
    unsettled_expenses: int
    pending_settlements: int


class UserBalance(BaseModel):
    """The caller's own position in a group."""
    total_paid: Decimal
    total_owed: Decimal
    balance: Decimal


class GroupSummaryResponse(GroupResponse):
    """Schema for a group in the caller's group list."""
    stats: GroupStats


class GroupDetailResponse(GroupResponse):
    """Schema for detailed group response."""
    expenses: List[LedgerEntryResponse] = []
    settlements: List[SettlementResponse] = []
    stats: GroupStats
    user_balance: UserBalance


class GroupCreateResponse(BaseModel):
    """Schema for group creation response."""
    group: GroupResponse
    not_found_members: List[str] = []


class MembersAddResponse(BaseModel):
    """Schema for add-members response."""
    added_members: List[str]
    not_found: List[str] = []
    group: GroupResponse


class DashboardStats(BaseModel):
    """Dashboard figures for a group."""
    total_expenses: Decimal
    total_expense_count: int
    settled_expenses: int
    total_settled: Decimal
    pending_settlements: int
    completed_settlements: int


class DashboardResponse(BaseModel):
    """Schema for group dashboard."""
    group: GroupResponse
    stats: DashboardStats
    recent_expenses: List[LedgerEntryResponse] = []
    recent_settlements: List[SettlementResponse] = []
    user_balance: UserBalance
