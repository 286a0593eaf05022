"""Models package - Import all models for SQLAlchemy registration."""
from groupledger.models.user import User
from groupledger.models.expense import LedgerEntry, ExpenseSplit, ExpenseApproval, SplitMethod
from groupledger.models.group import Group, GroupMember, GroupType, MemberRole
from groupledger.models.settlement import Settlement, SettlementStatus, PaymentMethod

__all__ = [
    "User",
    "Group",
    "GroupMember",
    "GroupType",
    "MemberRole",
    "LedgerEntry",
    "ExpenseSplit",
    "ExpenseApproval",
    "SplitMethod",
    "Settlement",
    "SettlementStatus",
    "PaymentMethod",
]
