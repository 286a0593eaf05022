"""
Balance aggregation over a group's unsettled ledger entries.
"""
from decimal import Decimal
from typing import Dict, Iterable, Sequence
from sqlalchemy.orm import Session, selectinload
from groupledger.models.expense import LedgerEntry
from groupledger.models.group import Group


class MemberBalance:
    """Net position of one member (positive balance = owes money)."""
    def __init__(self, member_id: int, name: str, email: str):
        self.member_id = member_id
        self.name = name
        self.email = email
        self.total_paid = Decimal(0)
        self.total_owed = Decimal(0)

    @property
    def balance(self) -> Decimal:
        return self.total_owed - self.total_paid


def aggregate_balances(members: Sequence, entries: Iterable[LedgerEntry]) -> Dict[int, MemberBalance]:
    """
    Reduce ledger entries into one balance per member.

    Only the given members are tracked; amounts paid or owed by anyone else
    are ignored. The result keeps membership order.
    """
    balances: Dict[int, MemberBalance] = {
        m.user_id: MemberBalance(m.user_id, m.name, m.email) for m in members
    }

    for entry in entries:
        payer = balances.get(entry.payer_id)
        if payer:
            payer.total_paid += Decimal(entry.amount)

        for split in entry.splits:
            owing = balances.get(split.member_id)
            if owing:
                owing.total_owed += Decimal(split.amount)

    return balances


def unsettled_entries(group_id: str, db: Session):
    """Active ledger entries that no completed settlement has covered yet."""
    return db.query(LedgerEntry).options(
        selectinload(LedgerEntry.splits)
    ).filter(
        LedgerEntry.group_id == group_id,
        LedgerEntry.is_active == True,  # noqa: E712
        LedgerEntry.is_settled == False  # noqa: E712
    ).order_by(LedgerEntry.created_at, LedgerEntry.id).all()


def get_balances(group: Group, db: Session) -> Dict[int, MemberBalance]:
    """Balances of the group's active members over its unsettled entries."""
    return aggregate_balances(group.active_members, unsettled_entries(group.id, db))
