"""
Group service: membership authority and group management.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from groupledger.core.config import settings
from groupledger.core.exceptions import Forbidden, NotFound, ValidationError
from groupledger.db.session import insert_with_unique_id
from groupledger.models.expense import LedgerEntry
from groupledger.models.group import Group, GroupMember, GroupType, MemberRole
from groupledger.models.settlement import Settlement, SettlementStatus
from groupledger.models.user import User
from groupledger.schemas.group import GroupCreate, GroupSettings, GroupUpdate
from groupledger.services.balance_service import aggregate_balances, unsettled_entries

logger = logging.getLogger(__name__)


def get_group(group_id: str, db: Session) -> Group:
    """Load an active group or raise NotFound."""
    group = db.query(Group).filter(Group.id == group_id, Group.is_active == True).first()  # noqa: E712
    if not group:
        raise NotFound("Group not found")
    return group


def check_group_access(group_id: str, user_id: int, db: Session) -> Group:
    """Check if user is an active member of the group."""
    group = get_group(group_id, db)
    if not group.is_member(user_id):
        raise Forbidden("You don't have access to this group")
    return group


def check_group_admin(group_id: str, user_id: int, db: Session, message: str) -> Group:
    """Check if user is an Owner or Admin of the group."""
    group = check_group_access(group_id, user_id, db)
    if not group.is_admin(user_id):
        raise Forbidden(message)
    return group


def _resolve_emails(emails: List[str], db: Session) -> Tuple[List[User], List[str]]:
    """Look up registered users by email, preserving order and dropping duplicates."""
    found, not_found, seen = [], [], set()
    for raw in emails:
        email = raw.strip()
        if email.lower() in seen:
            continue
        seen.add(email.lower())
        user = db.query(User).filter(User.email == email, User.is_active == True).first()  # noqa: E712
        if user:
            found.append(user)
        else:
            not_found.append(email)
    return found, not_found


def create_group(creator: User, data: GroupCreate, db: Session) -> Tuple[Group, List[str]]:
    """
    Create a group with the creator as Owner.

    Member emails that do not belong to a registered user are reported back
    rather than failing the creation.
    """
    invited, not_found = _resolve_emails(
        [e for e in data.member_emails if e.lower() != creator.email.lower()], db
    )
    group_settings = data.settings or GroupSettings()

    def build(group_id: str) -> Group:
        group = Group(
            id=group_id,
            name=data.name.strip(),
            description=data.description,
            group_type=data.group_type,
            created_by=creator.id,
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            default_split_method=data.default_split_method,
            allow_member_add_expense=group_settings.allow_member_add_expense,
            require_approval_for_expense=group_settings.require_approval_for_expense,
            auto_settle=group_settings.auto_settle,
            is_active=True
        )
        group.add_member(creator, role=MemberRole.OWNER)
        for user in invited:
            group.add_member(user)
        return group

    group = insert_with_unique_id(db, Group, build)
    logger.info(f"Created group {group.id} with {len(group.members)} members")
    return group, not_found


def list_groups(
    user_id: int,
    db: Session,
    is_active: Optional[bool] = None,
    group_type: Optional[GroupType] = None
) -> List[Group]:
    """List groups the user belongs to, newest first."""
    query = db.query(Group).join(GroupMember).filter(
        GroupMember.user_id == user_id,
        GroupMember.is_active == True  # noqa: E712
    )
    if is_active is not None:
        query = query.filter(Group.is_active == is_active)
    if group_type is not None:
        query = query.filter(Group.group_type == group_type)
    return query.order_by(Group.created_at.desc()).all()


def active_expenses(group_id: str, db: Session) -> List[LedgerEntry]:
    return db.query(LedgerEntry).filter(
        LedgerEntry.group_id == group_id,
        LedgerEntry.is_active == True  # noqa: E712
    ).order_by(LedgerEntry.date.desc(), LedgerEntry.created_at.desc()).all()


def active_settlements(group_id: str, db: Session) -> List[Settlement]:
    return db.query(Settlement).filter(
        Settlement.group_id == group_id,
        Settlement.is_active == True  # noqa: E712
    ).order_by(Settlement.created_at.desc()).all()


def group_stats(group_id: str, db: Session) -> dict:
    """Totals shown next to a group."""
    expenses = active_expenses(group_id, db)
    settlements = active_settlements(group_id, db)
    return {
        "total_expenses": sum((Decimal(e.amount) for e in expenses), Decimal(0)),
        "total_expense_count": len(expenses),
        "unsettled_expenses": len([e for e in expenses if not e.is_settled]),
        "pending_settlements": len([s for s in settlements if s.status == SettlementStatus.PENDING]),
    }


def user_balance(group: Group, user_id: int, db: Session) -> dict:
    """The caller's balance, over the same unsettled entries as the group balances."""
    member = group.get_member(user_id, active_only=False)
    balance = aggregate_balances([member], unsettled_entries(group.id, db))[user_id]
    return {
        "total_paid": balance.total_paid,
        "total_owed": balance.total_owed,
        "balance": balance.balance,
    }


def dashboard(group: Group, user_id: int, db: Session) -> dict:
    """Summary figures, recent activity and the caller's balance."""
    expenses = active_expenses(group.id, db)
    settlements = active_settlements(group.id, db)
    settled = [e for e in expenses if e.is_settled]
    limit = settings.RECENT_ITEMS_LIMIT
    return {
        "group": group,
        "stats": {
            "total_expenses": sum((Decimal(e.amount) for e in expenses), Decimal(0)),
            "total_expense_count": len(expenses),
            "settled_expenses": len(settled),
            "total_settled": sum((Decimal(e.amount) for e in settled), Decimal(0)),
            "pending_settlements": len([s for s in settlements if s.status == SettlementStatus.PENDING]),
            "completed_settlements": len([s for s in settlements if s.status == SettlementStatus.COMPLETED]),
        },
        "recent_expenses": expenses[:limit],
        "recent_settlements": settlements[:limit],
        "user_balance": user_balance(group, user_id, db),
    }


def update_group(group_id: str, user_id: int, data: GroupUpdate, db: Session) -> Group:
    """Update group details and settings (Owner/Admin only)."""
    group = check_group_admin(group_id, user_id, db, "Only owners and admins can update group")

    if data.name is not None:
        group.name = data.name.strip()
    if data.description is not None:
        group.description = data.description
    if data.group_type is not None:
        group.group_type = data.group_type
    if data.currency is not None:
        group.currency = data.currency.upper()
    if data.default_split_method is not None:
        group.default_split_method = data.default_split_method
    if data.settings is not None:
        group.allow_member_add_expense = data.settings.allow_member_add_expense
        group.require_approval_for_expense = data.settings.require_approval_for_expense
        group.auto_settle = data.settings.auto_settle

    db.commit()
    db.refresh(group)
    return group


def add_members(group_id: str, user_id: int, emails: List[str], db: Session) -> Tuple[List[str], List[str], Group]:
    """
    Add registered users to the group by email (Owner/Admin only).

    Existing active members are skipped. Fails when none of the emails
    belong to a registered user.
    """
    group = check_group_admin(group_id, user_id, db, "Only owners and admins can add members")

    active_emails = {m.email.lower() for m in group.active_members}
    users, not_found = _resolve_emails([e for e in emails if e.strip().lower() not in active_emails], db)

    if emails and not users and not_found:
        raise ValidationError(
            "No registered users found for provided member email(s). Please invite only registered users."
        )

    for user in users:
        group.add_member(user)
    db.commit()
    db.refresh(group)

    logger.info(f"Added {len(users)} members to group {group.id}")
    return [u.email for u in users], not_found, group


def remove_member(group_id: str, user_id: int, member_id: int, db: Session) -> Group:
    """Deactivate a member (Owner/Admin only). The owner cannot be removed."""
    group = check_group_admin(group_id, user_id, db, "You don't have permission to remove members")
    group.remove_member(member_id)
    db.commit()
    db.refresh(group)
    return group


def delete_group(group_id: str, user_id: int, db: Session):
    """Delete a group together with its ledger entries and settlements (Owner only)."""
    group = check_group_access(group_id, user_id, db)
    member = group.get_member(user_id)
    if member.role != MemberRole.OWNER:
        raise Forbidden("Only the group owner can delete the group")

    db.delete(group)
    db.commit()
    logger.info(f"Deleted group {group_id}")
