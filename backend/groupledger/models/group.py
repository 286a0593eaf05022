"""
Group model and its owned member collection.
"""
from typing import List, Optional
from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, UniqueConstraint
)
from sqlalchemy.orm import relationship
from groupledger.core.config import settings
from groupledger.core.exceptions import ValidationError
from groupledger.core.utils import utcnow
from groupledger.db.base import BaseModel, RootModel
from groupledger.models.expense import SplitMethod
import enum


class GroupType(str, enum.Enum):
    """Group type enumeration."""
    FAMILY = "Family"
    ROOMMATES = "Roommates"
    TRAVEL = "Travel"
    FRIENDS = "Friends"
    OTHER = "Other"


class MemberRole(str, enum.Enum):
    """Member role enumeration."""
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"


class Group(RootModel):
    """Expense group; the aggregate root for members, ledger entries and settlements."""
    __tablename__ = "expense_groups"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, default="")
    group_type = Column(SQLEnum(GroupType), default=GroupType.OTHER, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    default_split_method = Column(SQLEnum(SplitMethod), default=SplitMethod.EQUAL, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Settings
    allow_member_add_expense = Column(Boolean, default=True, nullable=False)
    require_approval_for_expense = Column(Boolean, default=False, nullable=False)
    auto_settle = Column(Boolean, default=False, nullable=False)

    # Relationships
    members = relationship(
        "GroupMember", back_populates="group", cascade="all, delete-orphan", order_by="GroupMember.id"
    )
    expenses = relationship("LedgerEntry", back_populates="group", cascade="all, delete-orphan")
    settlements = relationship("Settlement", back_populates="group", cascade="all, delete-orphan")

    @property
    def group_settings(self) -> dict:
        return {
            "allow_member_add_expense": self.allow_member_add_expense,
            "require_approval_for_expense": self.require_approval_for_expense,
            "auto_settle": self.auto_settle,
        }

    @property
    def active_members(self) -> List["GroupMember"]:
        return [m for m in self.members if m.is_active]

    def get_member(self, user_id: int, active_only: bool = True) -> Optional["GroupMember"]:
        """Find a member by user id."""
        for member in self.members:
            if member.user_id == user_id and (member.is_active or not active_only):
                return member
        return None

    def is_member(self, user_id: int) -> bool:
        return self.get_member(user_id) is not None

    def is_admin(self, user_id: int) -> bool:
        """Owners and Admins manage the group."""
        member = self.get_member(user_id)
        return member is not None and member.role in (MemberRole.OWNER, MemberRole.ADMIN)

    def add_member(self, user, role: MemberRole = MemberRole.MEMBER) -> "GroupMember":
        """Add a user, or reactivate them if they were removed earlier."""
        existing = self.get_member(user.id, active_only=False)
        if existing:
            existing.is_active = True
            existing.name = user.name
            existing.email = user.email
            member = existing
        else:
            member = GroupMember(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=role,
                joined_at=utcnow(),
                is_active=True
            )
            self.members.append(member)
        self.check_invariants()
        return member

    def remove_member(self, user_id: int) -> "GroupMember":
        """Deactivate a member. The owner cannot be removed."""
        member = self.get_member(user_id)
        if member is None:
            raise ValidationError("User is not a member of this group")
        if member.role == MemberRole.OWNER:
            raise ValidationError("Cannot remove the group owner")
        member.is_active = False
        self.check_invariants()
        return member

    def check_invariants(self):
        """Exactly one active owner."""
        owners = [m for m in self.members if m.role == MemberRole.OWNER and m.is_active]
        if len(owners) != 1:
            raise ValidationError("Group must have exactly one owner")


class GroupMember(BaseModel):
    """Membership row owned by a Group."""
    __tablename__ = "group_members"

    group_id = Column(String(settings.ID_LENGTH), ForeignKey("expense_groups.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False)
    role = Column(SQLEnum(MemberRole), default=MemberRole.MEMBER, nullable=False)
    joined_at = Column(DateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    group = relationship("Group", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint('group_id', 'user_id', name='uq_group_member'),
    )
