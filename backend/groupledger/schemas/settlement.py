"""
Pydantic schemas for balances and settlements.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from groupledger.models.settlement import PaymentMethod, SettlementStatus


class MemberBalanceResponse(BaseModel):
    """Schema for one member's net position."""
    member_id: int
    name: str
    email: str
    total_paid: Decimal
    total_owed: Decimal
    balance: Decimal  # Positive = owes money, negative = is owed money

    class Config:
        from_attributes = True


class MemberSnapshot(BaseModel):
    """Identity of a member at the time of the calculation."""
    member_id: int
    name: str
    email: str


class TransferSuggestion(BaseModel):
    """Schema for a single suggested transfer."""
    from_user: MemberSnapshot
    to_user: MemberSnapshot
    amount: Decimal


class SettlementSuggestionsResponse(BaseModel):
    """Schema for balances plus suggested transfers."""
    balances: List[MemberBalanceResponse]
    suggestions: List[TransferSuggestion]


class SettlementCreate(BaseModel):
    """Schema for declaring a settlement."""
    from_user_id: int
    to_user_id: int
    amount: Decimal
    payment_method: Optional[PaymentMethod] = None
    notes: str = ""
    expense_ids: List[str] = []  # Ledger entries this settlement covers


class SettlementStatusUpdate(BaseModel):
    """Schema for a settlement status transition."""
    status: SettlementStatus
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class SettlementResponse(BaseModel):
    """Schema for settlement response."""
    id: str
    group_id: str
    from_user_id: int
    from_name: str
    from_email: str
    to_user_id: int
    to_name: str
    to_email: str
    amount: Decimal
    currency: str
    status: SettlementStatus
    settled_at: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    notes: str
    expense_ids: List[str] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
