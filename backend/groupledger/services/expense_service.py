"""
Expense service: the ledger entry store and its admission rules.
"""
import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session
from groupledger.core.exceptions import Forbidden, NotFound, ValidationError
from groupledger.core.utils import to_money, utcnow
from groupledger.db.session import insert_with_unique_id
from groupledger.models.expense import LedgerEntry, SplitMethod
from groupledger.models.group import Group, MemberRole
from groupledger.schemas.expense import EqualSplitInput, ExpenseCreate, ExpenseUpdate
from groupledger.services.group_service import check_group_access, get_group
from groupledger.services.split_service import compute_split, mark_payer_paid

logger = logging.getLogger(__name__)


def _default_split(group: Group):
    """Only Equal can be derived without caller-supplied shares."""
    if group.default_split_method != SplitMethod.EQUAL:
        raise ValidationError(
            f"Splits are required for the {group.default_split_method.value} split method"
        )
    return EqualSplitInput(method="Equal")


def record_expense(group_id: str, user_id: int, data: ExpenseCreate, db: Session) -> LedgerEntry:
    """
    Record a group expense with its split.

    The split is computed now and frozen. When the group requires approval
    and the submitter is neither Owner nor Admin, the entry is flagged
    ``requires_approval``; it still counts toward balances.
    """
    group = check_group_access(group_id, user_id, db)
    submitter = group.get_member(user_id)
    if not group.allow_member_add_expense and submitter.role == MemberRole.MEMBER:
        raise Forbidden("Only owners and admins can add expenses to this group")

    payer_id = data.payer_id if data.payer_id is not None else user_id
    payer = group.get_member(payer_id)
    if payer is None:
        raise ValidationError("Payer must be a member of the group")

    split_input = data.split or _default_split(group)
    now = utcnow()
    lines = mark_payer_paid(compute_split(data.amount, split_input, group.active_members), payer_id, now)
    requires_approval = group.require_approval_for_expense and not group.is_admin(user_id)

    def build(expense_id: str) -> LedgerEntry:
        entry = LedgerEntry(
            id=expense_id,
            group_id=group.id,
            added_by=user_id,
            name=data.name.strip(),
            description=data.description,
            amount=to_money(data.amount),
            currency=group.currency,
            category=data.category.strip(),
            date=data.date or date.today(),
            split_method=SplitMethod(split_input.method),
            payer_id=payer.user_id,
            payer_name=payer.name,
            payer_email=payer.email,
            is_settled=False,
            requires_approval=requires_approval,
            is_active=True
        )
        entry.replace_splits(lines)
        entry.check_invariants()
        return entry

    entry = insert_with_unique_id(db, LedgerEntry, build)
    logger.info(
        f"Recorded expense {entry.id} in group {group.id}: {entry.amount} {entry.currency} "
        f"split {entry.split_method.value} over {len(entry.splits)} members"
        + (" (pending approval)" if requires_approval else "")
    )
    return entry


def get_expense(expense_id: str, db: Session) -> LedgerEntry:
    """Load an active ledger entry or raise NotFound."""
    entry = db.query(LedgerEntry).filter(
        LedgerEntry.id == expense_id,
        LedgerEntry.is_active == True  # noqa: E712
    ).first()
    if not entry:
        raise NotFound("Expense not found")
    return entry


def list_expenses(
    group_id: str,
    db: Session,
    is_settled: Optional[bool] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None
) -> List[LedgerEntry]:
    """List active expenses of a group, newest first."""
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to")

    query = db.query(LedgerEntry).filter(
        LedgerEntry.group_id == group_id,
        LedgerEntry.is_active == True  # noqa: E712
    )
    if is_settled is not None:
        query = query.filter(LedgerEntry.is_settled == is_settled)
    if date_from:
        query = query.filter(LedgerEntry.date >= date_from)
    if date_to:
        query = query.filter(LedgerEntry.date <= date_to)
    return query.order_by(LedgerEntry.date.desc(), LedgerEntry.created_at.desc()).all()


def update_expense(expense_id: str, user_id: int, data: ExpenseUpdate, db: Session) -> LedgerEntry:
    """
    Update an expense.

    The adder and group Owners/Admins may change anything; the payer may
    only toggle the settled flag. Splits are recomputed only when resupplied,
    and the entry invariants are re-checked before anything is written.
    """
    entry = get_expense(expense_id, db)
    group = check_group_access(entry.group_id, user_id, db)

    changes = data.model_dump(exclude_unset=True)
    only_settled_update = set(changes) <= {"is_settled"}
    can_update = (
        entry.added_by == user_id
        or group.is_admin(user_id)
        or (only_settled_update and entry.payer_id == user_id)
    )
    if not can_update:
        raise Forbidden("You don't have permission to update this expense")

    try:
        if data.name is not None:
            entry.name = data.name.strip()
        if data.description is not None:
            entry.description = data.description
        if data.category is not None:
            entry.category = data.category.strip()
        if data.date is not None:
            entry.date = data.date
        if data.amount is not None:
            entry.amount = to_money(data.amount)
        if data.split is not None:
            lines = compute_split(entry.amount, data.split, group.active_members)
            entry.replace_splits(mark_payer_paid(lines, entry.payer_id, utcnow()))
            entry.split_method = SplitMethod(data.split.method)
        if data.is_settled is not None:
            if data.is_settled:
                entry.mark_settled(utcnow())
            else:
                entry.is_settled = False
                entry.settled_at = None

        entry.check_invariants()
    except ValidationError:
        db.rollback()
        raise

    db.commit()
    db.refresh(entry)
    return entry


def delete_expense(expense_id: str, user_id: int, db: Session):
    """Soft-delete an expense (adder or Owner/Admin)."""
    entry = get_expense(expense_id, db)
    group = check_group_access(entry.group_id, user_id, db)
    if entry.added_by != user_id and not group.is_admin(user_id):
        raise Forbidden("You don't have permission to delete this expense")

    entry.is_active = False
    db.commit()
    logger.info(f"Deleted expense {expense_id}")


def approve_expense(expense_id: str, user_id: int, db: Session) -> LedgerEntry:
    """Approve an expense as Owner/Admin. Approving twice is a no-op."""
    entry = get_expense(expense_id, db)
    group = get_group(entry.group_id, db)
    if not group.is_admin(user_id):
        raise Forbidden("Only admins can approve expenses")

    if entry.approve(user_id, utcnow()):
        db.commit()
        db.refresh(entry)
    return entry
