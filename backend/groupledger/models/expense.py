"""
Ledger entry model for shared group expenses.
"""
from datetime import datetime
from decimal import Decimal
from typing import List
from sqlalchemy import (
    Column, String, Numeric, Date, DateTime, Boolean, ForeignKey, Integer, Text,
    Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from groupledger.core.config import settings
from groupledger.core.exceptions import ValidationError
from groupledger.core.utils import MONEY_TOLERANCE, PERCENTAGE_TOLERANCE
from groupledger.db.base import BaseModel, RootModel
import enum


class SplitMethod(str, enum.Enum):
    """How an expense amount is divided among members."""
    EQUAL = "Equal"
    CUSTOM = "Custom"
    PERCENTAGE = "Percentage"
    EXACT = "Exact"


class LedgerEntry(RootModel):
    """A single shared expense with its frozen split."""
    __tablename__ = "group_expenses"

    group_id = Column(String(settings.ID_LENGTH), ForeignKey("expense_groups.id"), nullable=False, index=True)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    category = Column(String(50), nullable=False)
    date = Column(Date, nullable=False, index=True)
    split_method = Column(SQLEnum(SplitMethod), default=SplitMethod.EQUAL, nullable=False)

    # Payer snapshot
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payer_name = Column(String(100), nullable=False)
    payer_email = Column(String(100), nullable=False)

    is_settled = Column(Boolean, default=False, nullable=False, index=True)
    settled_at = Column(DateTime, nullable=True)
    requires_approval = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    group = relationship("Group", back_populates="expenses")
    splits = relationship(
        "ExpenseSplit", back_populates="expense", cascade="all, delete-orphan", order_by="ExpenseSplit.position"
    )
    approvals = relationship(
        "ExpenseApproval", back_populates="expense", cascade="all, delete-orphan", order_by="ExpenseApproval.id"
    )

    @property
    def approved_by(self) -> List[int]:
        return [a.user_id for a in self.approvals]

    def replace_splits(self, lines):
        """Swap in a newly computed split (see ``split_service.SplitLine``)."""
        self.splits = [
            ExpenseSplit(
                position=index,
                member_id=line.member_id,
                name=line.name,
                email=line.email,
                amount=line.amount,
                percentage=line.percentage,
                is_paid=line.is_paid,
                paid_at=line.paid_at
            )
            for index, line in enumerate(lines)
        ]

    def check_invariants(self):
        """
        Validate the entry before it is written.

        Runs independently of the split calculator so that bad splits are
        rejected even when they were supplied directly.
        """
        amount = Decimal(self.amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if not self.splits:
            raise ValidationError("Expense must have at least one split")

        if any(Decimal(s.amount) < 0 for s in self.splits):
            raise ValidationError("Split amount cannot be negative")

        total_split = sum((Decimal(s.amount) for s in self.splits), Decimal(0))
        if abs(total_split - amount) > MONEY_TOLERANCE:
            raise ValidationError(
                f"Split amounts ({total_split}) must equal total amount ({amount})"
            )

        if self.split_method == SplitMethod.PERCENTAGE:
            total_percentage = sum((Decimal(s.percentage or 0) for s in self.splits), Decimal(0))
            if abs(total_percentage - 100) > PERCENTAGE_TOLERANCE:
                raise ValidationError(f"Split percentages ({total_percentage}%) must sum to 100%")

    def mark_settled(self, when: datetime) -> bool:
        """Mark as settled. Returns False when it already was."""
        if self.is_settled:
            return False
        self.is_settled = True
        self.settled_at = when
        return True

    def approve(self, user_id: int, when: datetime) -> bool:
        """Record an approval. Returns False when this user already approved."""
        if user_id in self.approved_by:
            return False
        self.approvals.append(ExpenseApproval(user_id=user_id, approved_at=when))
        return True


class ExpenseSplit(BaseModel):
    """One member's share of a ledger entry; member identity is a snapshot."""
    __tablename__ = "expense_splits"

    expense_id = Column(String(settings.ID_LENGTH), ForeignKey("group_expenses.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    member_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False, default=0)
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    # Relationships
    expense = relationship("LedgerEntry", back_populates="splits")


class ExpenseApproval(BaseModel):
    """Approval of a ledger entry by an Owner or Admin."""
    __tablename__ = "expense_approvals"

    expense_id = Column(String(settings.ID_LENGTH), ForeignKey("group_expenses.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    approved_at = Column(DateTime, nullable=False)

    # Relationships
    expense = relationship("LedgerEntry", back_populates="approvals")

    __table_args__ = (
        UniqueConstraint('expense_id', 'user_id', name='uq_expense_approval'),
    )
