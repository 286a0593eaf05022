"""
Balance and settlement routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from groupledger.db.session import get_db
from groupledger.models.settlement import SettlementStatus
from groupledger.models.user import User
from groupledger.schemas.settlement import (
    MemberBalanceResponse, SettlementCreate, SettlementResponse,
    SettlementStatusUpdate, SettlementSuggestionsResponse
)
from groupledger.api.dependencies import get_current_user
from groupledger.services import settlement_service
from groupledger.services.balance_service import get_balances
from groupledger.services.group_service import check_group_access

router = APIRouter(tags=["settlements"])


def _snapshot(balance) -> dict:
    return {"member_id": balance.member_id, "name": balance.name, "email": balance.email}


@router.get("/groups/{group_id}/balances", response_model=List[MemberBalanceResponse])
async def get_group_balances(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get net balances of all active members over unsettled expenses."""
    group = check_group_access(group_id, current_user.id, db)
    return list(get_balances(group, db).values())


@router.get("/groups/{group_id}/settlements/suggestions", response_model=SettlementSuggestionsResponse)
async def suggest_settlements(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Calculate who should pay whom to clear the group's balances."""
    group = check_group_access(group_id, current_user.id, db)
    result = settlement_service.suggest_settlements(group, db)
    return {
        "balances": result["balances"],
        "suggestions": [
            {
                "from_user": _snapshot(t.from_member),
                "to_user": _snapshot(t.to_member),
                "amount": t.amount
            }
            for t in result["suggestions"]
        ]
    }


@router.post("/groups/{group_id}/settlements", response_model=SettlementResponse, status_code=status.HTTP_201_CREATED)
async def declare_settlement(
    group_id: str,
    settlement_data: SettlementCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Declare a pending settlement between two members."""
    return settlement_service.declare_settlement(group_id, current_user.id, settlement_data, db)


@router.get("/groups/{group_id}/settlements", response_model=List[SettlementResponse])
async def list_settlements(
    group_id: str,
    settlement_status: Optional[SettlementStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List a group's settlements, optionally filtered by status."""
    check_group_access(group_id, current_user.id, db)
    return settlement_service.list_settlements(group_id, db, status=settlement_status)


@router.put("/settlements/{settlement_id}", response_model=SettlementResponse)
async def update_settlement_status(
    settlement_id: str,
    update: SettlementStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Complete or cancel a settlement."""
    return settlement_service.transition_settlement(
        settlement_id,
        current_user.id,
        update.status,
        db,
        payment_method=update.payment_method,
        notes=update.notes
    )
