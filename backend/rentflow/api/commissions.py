"""Admin commission API — rules, ledger payouts, and reports."""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from rentflow.core.database import get_db
from rentflow.core.security import require_admin
from rentflow.models.commission import CommissionStatus
from rentflow.models.user import User
from rentflow.schemas.commission import (
    AgentCommission, AgentEarnings, ActionTypeOption, BulkPayRequest, BulkPayResult,
    CancelRequest, CommissionPage, CommissionReport, CommissionRule, CommissionRuleCreate,
    CommissionRuleUpdate, MarkPaidRequest, NotesUpdate, RuleRemovalResult, TransactionPage,
)
from rentflow.services.action_types import list_action_types
from rentflow.services.commission_ledger import CommissionLedger
from rentflow.services.commission_rules import CommissionRuleService, RuleRemoval
from rentflow.services.earnings import EarningsAggregator
from rentflow.services.transaction_recorder import TransactionRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/commissions", tags=["admin-commissions"])


# --- Rules ---

@router.get("/rules", response_model=List[CommissionRule])
def list_commission_rules(
    include_inactive: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """List commission rules ordered by action type"""
    return CommissionRuleService(db).list_rules(include_inactive=include_inactive)


@router.get("/rules/{rule_id}", response_model=CommissionRule)
def get_commission_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return CommissionRuleService(db).get_rule(rule_id)


@router.post("/rules", response_model=CommissionRule, status_code=status.HTTP_201_CREATED)
def create_commission_rule(
    rule_data: CommissionRuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a rule; only one active rule may exist per action type"""
    return CommissionRuleService(db).create_rule(rule_data, created_by_id=current_user.id)


@router.put("/rules/{rule_id}", response_model=CommissionRule)
def update_commission_rule(
    rule_id: int,
    patch: CommissionRuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return CommissionRuleService(db).update_rule(rule_id, patch)


@router.delete("/rules/{rule_id}", response_model=RuleRemovalResult)
def delete_commission_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete an unused rule, or deactivate it if commissions reference it"""
    outcome = CommissionRuleService(db).deactivate_or_delete(rule_id)
    if outcome == RuleRemoval.DEACTIVATED:
        message = "Commission rule has been deactivated (has associated commissions)"
    else:
        message = "Commission rule deleted successfully"
    return RuleRemovalResult(outcome=outcome.value, message=message)


@router.get("/action-types", response_model=List[ActionTypeOption])
def get_action_types(current_user: User = Depends(require_admin)):
    return list_action_types()


# --- Reports ---

@router.get("/reports", response_model=CommissionReport)
def get_commission_reports(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return EarningsAggregator(db).get_commission_reports(start_date, end_date)


@router.get("/agents/{agent_id}/earnings", response_model=AgentEarnings)
def get_agent_earnings(
    agent_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return EarningsAggregator(db).get_agent_earnings(agent_id, start_date, end_date)


@router.get("/agents/{agent_id}/transactions", response_model=TransactionPage)
def get_agent_transactions(
    agent_id: int,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Activity log for one agent, newest first"""
    return TransactionRecorder(db).list_agent_transactions(agent_id, page=page, limit=limit)


# --- Ledger ---

@router.get("", response_model=CommissionPage)
def list_commissions(
    status: Optional[CommissionStatus] = None,
    agent_id: Optional[int] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return CommissionLedger(db).list_commissions(status=status, agent_id=agent_id, page=page, limit=limit)


@router.post("/pay-bulk", response_model=BulkPayResult)
def pay_commissions_bulk(
    body: BulkPayRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Mark every still-pending commission in the list as paid"""
    if not body.commission_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Commission IDs are required"
        )

    count = CommissionLedger(db).mark_paid_bulk(body.commission_ids, current_user.id, body.notes)
    return BulkPayResult(count=count, message=f"{count} commission(s) marked as paid")


@router.put("/{commission_id}/pay", response_model=AgentCommission)
def pay_commission(
    commission_id: int,
    body: Optional[MarkPaidRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    notes = body.notes if body else None
    return CommissionLedger(db).mark_paid(commission_id, current_user.id, notes)


@router.put("/{commission_id}/cancel", response_model=AgentCommission)
def cancel_commission(
    commission_id: int,
    body: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    notes = body.notes if body else None
    return CommissionLedger(db).cancel(commission_id, notes)


@router.put("/{commission_id}/notes", response_model=AgentCommission)
def update_commission_notes(
    commission_id: int,
    body: NotesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return CommissionLedger(db).update_notes(commission_id, body.notes)
