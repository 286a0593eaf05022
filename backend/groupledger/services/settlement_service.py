"""
Settlement service: debt netting, declared settlements and reconciliation.
"""
import logging
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from groupledger.core.exceptions import InvalidTransition, NotFound, ValidationError
from groupledger.core.utils import CENT, MAX_MONEY, MONEY_TOLERANCE, to_money, utcnow
from groupledger.db.session import insert_with_unique_id
from groupledger.models.expense import LedgerEntry
from groupledger.models.group import Group
from groupledger.models.settlement import PaymentMethod, Settlement, SettlementStatus
from groupledger.schemas.settlement import SettlementCreate
from groupledger.services.balance_service import MemberBalance, get_balances
from groupledger.services.group_service import check_group_access

logger = logging.getLogger(__name__)


class Transfer:
    """Represents a single suggested transfer between members."""
    def __init__(self, from_member: MemberBalance, to_member: MemberBalance, amount: Decimal):
        self.from_member = from_member
        self.to_member = to_member
        self.amount = amount


def minimize_transfers(balances: List[MemberBalance]) -> List[Transfer]:
    """
    Suggest transfers that bring every balance to zero.

    Greedy two-pointer netting: members sorted by balance descending, the
    largest remaining debtor pays the largest remaining creditor. Produces
    at most n - 1 transfers. The input balances are left untouched.
    """
    ordered = sorted(balances, key=lambda b: b.balance, reverse=True)
    remaining = [b.balance for b in ordered]

    transfers = []
    i = 0
    j = len(ordered) - 1
    max_iterations = len(ordered) * len(ordered)
    iterations = 0

    while i < j and iterations < max_iterations:
        iterations += 1
        if remaining[i] <= 0 or remaining[j] >= 0:
            break

        amount = min(remaining[i], -remaining[j])
        if amount > MONEY_TOLERANCE:
            transfers.append(Transfer(ordered[i], ordered[j], to_money(amount)))
        remaining[i] -= amount
        remaining[j] += amount

        if abs(remaining[i]) < MONEY_TOLERANCE:
            i += 1
        if abs(remaining[j]) < MONEY_TOLERANCE:
            j -= 1

    return transfers


def suggest_settlements(group: Group, db: Session) -> dict:
    """Current balances of the group and the transfers that would clear them."""
    balances = list(get_balances(group, db).values())
    transfers = minimize_transfers(balances)
    logger.debug(f"Group {group.id}: {len(transfers)} transfers suggested for {len(balances)} members")
    return {"balances": balances, "suggestions": transfers}


def declare_settlement(group_id: str, user_id: int, data: SettlementCreate, db: Session) -> Settlement:
    """
    Declare a Pending settlement between two members.

    Not re-validated against live balances: two declarations against the
    same snapshot may both succeed.
    """
    group = check_group_access(group_id, user_id, db)

    if data.from_user_id == data.to_user_id:
        raise ValidationError("From user and To user cannot be the same")
    amount = to_money(data.amount)
    if amount < CENT:
        raise ValidationError("Amount must be greater than 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"Amount cannot exceed {MAX_MONEY}")

    from_member = group.get_member(data.from_user_id, active_only=False)
    to_member = group.get_member(data.to_user_id, active_only=False)
    if from_member is None or to_member is None:
        raise ValidationError("Invalid user IDs")

    expense_ids = list(dict.fromkeys(data.expense_ids))

    def build(settlement_id: str) -> Settlement:
        return Settlement(
            id=settlement_id,
            group_id=group.id,
            from_user_id=from_member.user_id,
            from_name=from_member.name,
            from_email=from_member.email,
            to_user_id=to_member.user_id,
            to_name=to_member.name,
            to_email=to_member.email,
            amount=amount,
            currency=group.currency,
            status=SettlementStatus.PENDING,
            payment_method=data.payment_method,
            notes=data.notes,
            expense_ids=expense_ids,
            is_active=True
        )

    settlement = insert_with_unique_id(db, Settlement, build)
    logger.info(
        f"Declared settlement {settlement.id} in group {group.id}: "
        f"{from_member.user_id} -> {to_member.user_id} {amount}"
    )
    return settlement


def list_settlements(group_id: str, db: Session, status: Optional[SettlementStatus] = None) -> List[Settlement]:
    """List active settlements of a group, newest first."""
    query = db.query(Settlement).filter(
        Settlement.group_id == group_id,
        Settlement.is_active == True  # noqa: E712
    )
    if status is not None:
        query = query.filter(Settlement.status == status)
    return query.order_by(Settlement.created_at.desc()).all()


def get_settlement(settlement_id: str, db: Session) -> Settlement:
    """Load an active settlement or raise NotFound."""
    settlement = db.query(Settlement).filter(
        Settlement.id == settlement_id,
        Settlement.is_active == True  # noqa: E712
    ).first()
    if not settlement:
        raise NotFound("Settlement not found")
    return settlement


def transition_settlement(
    settlement_id: str,
    user_id: int,
    new_status: SettlementStatus,
    db: Session,
    payment_method: Optional[PaymentMethod] = None,
    notes: Optional[str] = None
) -> Settlement:
    """
    Move a settlement through Pending -> Completed | Cancelled.

    Completing reconciles the covered ledger entries. Requesting the status
    the settlement already has is a no-op, so completing twice reconciles
    once. Any other transition raises InvalidTransition.
    """
    settlement = get_settlement(settlement_id, db)
    check_group_access(settlement.group_id, user_id, db)

    if new_status != settlement.status and not settlement.can_transition(new_status):
        raise InvalidTransition(
            f"Cannot change settlement from {settlement.status.value} to {new_status.value}"
        )

    if payment_method is not None:
        settlement.payment_method = payment_method
    if notes is not None:
        settlement.notes = notes

    if new_status != settlement.status:
        settlement.status = new_status
        if new_status == SettlementStatus.COMPLETED:
            now = utcnow()
            settlement.settled_at = now
            settled = reconcile(settlement, now, db)
            logger.info(f"Settlement {settlement.id} completed, {settled} expenses marked settled")
        else:
            logger.info(f"Settlement {settlement.id} {new_status.value.lower()}")

    db.commit()
    db.refresh(settlement)
    return settlement


def reconcile(settlement: Settlement, when, db: Session) -> int:
    """
    Mark the ledger entries covered by a settlement as settled.

    Entries that are missing, deleted or belong to another group are logged
    and skipped; entries already settled are left as they are. Returns the
    number of entries newly marked settled.
    """
    settled = 0
    for expense_id in settlement.expense_ids or []:
        entry = db.query(LedgerEntry).filter(
            LedgerEntry.id == expense_id,
            LedgerEntry.group_id == settlement.group_id,
            LedgerEntry.is_active == True  # noqa: E712
        ).first()
        if entry is None:
            logger.warning(f"Settlement {settlement.id}: expense {expense_id} not found, skipping")
            continue
        if entry.mark_settled(when):
            settled += 1
    return settled
