"""Agent portal API — an agent's own activity, earnings, and action recording."""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from rentflow.core.database import get_db
from rentflow.core.security import require_agent
from rentflow.models.user import User
from rentflow.schemas.commission import (
    AgentActionBase, AgentActionCreate, AgentDashboard, AgentEarningsDetail,
    RecordActionResult, TransactionPage,
)
from rentflow.services.action_types import ACTION_TYPE_LABELS
from rentflow.services.commission_ledger import CommissionLedger
from rentflow.services.earnings import EarningsAggregator
from rentflow.services.transaction_recorder import TransactionRecorder

router = APIRouter(prefix="/api/agent-portal", tags=["agent-portal"])


@router.get("/dashboard", response_model=AgentDashboard)
def get_dashboard(
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db)
):
    return {
        "earnings": EarningsAggregator(db).get_agent_earnings(current_user.id),
        "pending_commissions_count": CommissionLedger(db).count_pending(current_user.id),
        "recent_transactions": TransactionRecorder(db).recent_transactions(current_user.id),
        "action_types": ACTION_TYPE_LABELS,
    }


@router.get("/transactions", response_model=TransactionPage)
def get_transactions(
    page: int = 1,
    limit: Optional[int] = None,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db)
):
    return TransactionRecorder(db).list_agent_transactions(current_user.id, page=page, limit=limit)


@router.get("/earnings", response_model=AgentEarningsDetail)
def get_earnings(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db)
):
    """Earnings summary for the period plus the full commission history"""
    return {
        "summary": EarningsAggregator(db).get_agent_earnings(current_user.id, start_date, end_date),
        "commissions": CommissionLedger(db).agent_commissions(current_user.id),
    }


@router.post("/actions", response_model=RecordActionResult, status_code=status.HTTP_201_CREATED)
def record_action(
    action: AgentActionBase,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db)
):
    """Record an action performed by the calling agent and accrue any commission"""
    data = AgentActionCreate(agent_id=current_user.id, **action.model_dump())
    result = TransactionRecorder(db).record_action(data)
    return {
        "transaction": result.transaction,
        "commission": result.commission,
        "commission_amount": result.commission_amount,
    }
