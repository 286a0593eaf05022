"""
Group expense routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from groupledger.db.session import get_db
from groupledger.models.user import User
from groupledger.schemas.expense import ExpenseCreate, ExpenseUpdate, LedgerEntryResponse
from groupledger.api.dependencies import get_current_user
from groupledger.services import expense_service
from groupledger.services.group_service import check_group_access

router = APIRouter(tags=["expenses"])


@router.post("/groups/{group_id}/expenses", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    group_id: str,
    expense_data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record an expense in a group."""
    return expense_service.record_expense(group_id, current_user.id, expense_data, db)


@router.get("/groups/{group_id}/expenses", response_model=List[LedgerEntryResponse])
async def list_expenses(
    group_id: str,
    is_settled: Optional[bool] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List a group's expenses, optionally filtered by settled flag and date range."""
    check_group_access(group_id, current_user.id, db)
    return expense_service.list_expenses(
        group_id, db, is_settled=is_settled, date_from=date_from, date_to=date_to
    )


@router.put("/expenses/{expense_id}", response_model=LedgerEntryResponse)
async def update_expense(
    expense_id: str,
    expense_data: ExpenseUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update an expense."""
    return expense_service.update_expense(expense_id, current_user.id, expense_data, db)


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete an expense."""
    expense_service.delete_expense(expense_id, current_user.id, db)
    return {"message": "Expense deleted successfully"}


@router.post("/expenses/{expense_id}/approve", response_model=LedgerEntryResponse)
async def approve_expense(
    expense_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Approve an expense."""
    return expense_service.approve_expense(expense_id, current_user.id, db)
