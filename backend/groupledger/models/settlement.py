"""
Settlement model for declared transfers between group members.
"""
from sqlalchemy import (
    Column, String, Numeric, DateTime, Boolean, ForeignKey, Integer, JSON,
    Enum as SQLEnum, CheckConstraint
)
from sqlalchemy.orm import relationship
from groupledger.core.config import settings
from groupledger.db.base import RootModel
import enum


class SettlementStatus(str, enum.Enum):
    """Settlement status enumeration."""
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class PaymentMethod(str, enum.Enum):
    """How the transfer was (or will be) paid."""
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    UPI = "UPI"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    OTHER = "Other"


# Completed and Cancelled are terminal
ALLOWED_TRANSITIONS = {
    SettlementStatus.PENDING: {SettlementStatus.COMPLETED, SettlementStatus.CANCELLED},
    SettlementStatus.COMPLETED: set(),
    SettlementStatus.CANCELLED: set(),
}


class Settlement(RootModel):
    """A declared transfer from one member to another."""
    __tablename__ = "settlements"

    group_id = Column(String(settings.ID_LENGTH), ForeignKey("expense_groups.id"), nullable=False, index=True)

    # Member snapshots
    from_user_id = Column(Integer, nullable=False, index=True)
    from_name = Column(String(100), nullable=False)
    from_email = Column(String(100), nullable=False)
    to_user_id = Column(Integer, nullable=False, index=True)
    to_name = Column(String(100), nullable=False)
    to_email = Column(String(100), nullable=False)

    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.PENDING, nullable=False, index=True)
    settled_at = Column(DateTime, nullable=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)
    notes = Column(String(500), nullable=False, default="")
    expense_ids = Column(JSON, nullable=False, default=list)  # Ledger entry ids this settlement covers
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    group = relationship("Group", back_populates="settlements")

    __table_args__ = (
        CheckConstraint('from_user_id <> to_user_id', name='ck_settlement_distinct_parties'),
    )

    def can_transition(self, new_status: SettlementStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]
