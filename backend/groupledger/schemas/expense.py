"""
Pydantic schemas for ledger entries and split inputs.
"""
from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from datetime import date as dt_date, datetime
from decimal import Decimal
from groupledger.models.expense import SplitMethod


class PercentageShare(BaseModel):
    """One member's percentage of an expense."""
    member_id: int
    percentage: Decimal = Field(..., ge=0, le=100)


class AmountShare(BaseModel):
    """One member's fixed amount of an expense."""
    member_id: int
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)


class EqualSplitInput(BaseModel):
    """Split evenly over all active members."""
    method: Literal["Equal"]


class PercentageSplitInput(BaseModel):
    """Split by caller-supplied percentages."""
    method: Literal["Percentage"]
    shares: List[PercentageShare] = Field(..., min_length=1)


class AmountSplitInput(BaseModel):
    """Split by caller-supplied amounts (Custom and Exact behave the same)."""
    method: Literal["Custom", "Exact"]
    shares: List[AmountShare] = Field(..., min_length=1)


SplitInput = Annotated[
    Union[EqualSplitInput, PercentageSplitInput, AmountSplitInput],
    Field(discriminator="method")
]


class ExpenseCreate(BaseModel):
    """Schema for recording a group expense."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=50)
    date: Optional[dt_date] = None  # Defaults to today
    payer_id: Optional[int] = None  # Defaults to the submitting user
    split: Optional[SplitInput] = None  # Defaults to the group's default split method


class ExpenseUpdate(BaseModel):
    """Schema for expense update. Splits are only recomputed when resupplied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    amount: Optional[Decimal] = Field(None, max_digits=15, decimal_places=2)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    date: Optional[dt_date] = None
    split: Optional[SplitInput] = None
    is_settled: Optional[bool] = None


class SplitResponse(BaseModel):
    """Schema for a member's share of an expense."""
    member_id: int
    name: str
    email: str
    amount: Decimal
    percentage: Decimal
    is_paid: bool
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalResponse(BaseModel):
    """Schema for an expense approval."""
    user_id: int
    approved_at: datetime

    class Config:
        from_attributes = True


class LedgerEntryResponse(BaseModel):
    """Schema for ledger entry response."""
    id: str
    group_id: str
    added_by: int
    name: str
    description: str
    amount: Decimal
    currency: str
    category: str
    date: dt_date
    split_method: SplitMethod
    payer_id: int
    payer_name: str
    payer_email: str
    splits: List[SplitResponse] = []
    is_settled: bool
    settled_at: Optional[datetime] = None
    requires_approval: bool
    approvals: List[ApprovalResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
