from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session, joinedload
from rentflow.models.commission import AgentTransaction, AgentCommission, CommissionStatus
from rentflow.schemas.commission import (
    AgentEarnings, UserBrief, AgentReportEntry, ActionTypeReportEntry, CommissionReport,
)
from rentflow.services.action_types import action_type_label
from rentflow.services.commission_calculator import ZERO


class EarningsAggregator:
    """
    Read-only rollups over the commission ledger.

    Totals follow the historical definition: "earned" is the sum over every
    commission whatever its status, cancelled included, while pending and
    paid are filtered sums. So pending + paid <= earned, with equality only
    when nothing has been cancelled.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commissions_in_range(self, start: Optional[datetime], end: Optional[datetime]):
        query = self.db.query(AgentCommission)
        if start:
            query = query.filter(AgentCommission.created_at >= start)
        if end:
            query = query.filter(AgentCommission.created_at <= end)
        return query

    def get_agent_earnings(
        self,
        agent_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AgentEarnings:
        commissions = (
            self._commissions_in_range(start, end)
            .filter(AgentCommission.agent_id == agent_id)
            .all()
        )

        # Activity count is lifetime, not range-bound
        transaction_count = (
            self.db.query(AgentTransaction)
            .filter(AgentTransaction.agent_id == agent_id)
            .count()
        )

        total_earned = ZERO
        total_pending = ZERO
        total_paid = ZERO
        for c in commissions:
            total_earned += c.amount
            if c.status == CommissionStatus.PENDING:
                total_pending += c.amount
            elif c.status == CommissionStatus.PAID:
                total_paid += c.amount

        return AgentEarnings(
            total_earned=total_earned,
            total_pending=total_pending,
            total_paid=total_paid,
            transaction_count=transaction_count,
            commission_count=len(commissions),
        )

    def get_commission_reports(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> CommissionReport:
        """Totals for the period plus one entry per agent and per action type."""
        commissions = (
            self._commissions_in_range(start, end)
            .options(
                joinedload(AgentCommission.agent),
                joinedload(AgentCommission.transaction),
            )
            .order_by(AgentCommission.id)
            .all()
        )

        total_commissions = ZERO
        total_pending = ZERO
        total_paid = ZERO
        by_agent: Dict[int, AgentReportEntry] = {}
        by_action_type: Dict[str, ActionTypeReportEntry] = {}

        for c in commissions:
            amount = c.amount
            total_commissions += amount
            if c.status == CommissionStatus.PENDING:
                total_pending += amount
            elif c.status == CommissionStatus.PAID:
                total_paid += amount

            agent_entry = by_agent.get(c.agent_id)
            if agent_entry is None:
                agent_entry = AgentReportEntry(
                    agent_id=c.agent_id,
                    agent=UserBrief.model_validate(c.agent) if c.agent else None,
                )
                by_agent[c.agent_id] = agent_entry
            agent_entry.total += amount
            agent_entry.count += 1
            if c.status == CommissionStatus.PENDING:
                agent_entry.pending += amount
            elif c.status == CommissionStatus.PAID:
                agent_entry.paid += amount

            action_type = c.transaction.action_type if c.transaction else "unknown"
            type_entry = by_action_type.get(action_type)
            if type_entry is None:
                type_entry = ActionTypeReportEntry(
                    action_type=action_type,
                    label=action_type_label(action_type),
                )
                by_action_type[action_type] = type_entry
            type_entry.total += amount
            type_entry.count += 1

        return CommissionReport(
            total_commissions=total_commissions,
            total_pending=total_pending,
            total_paid=total_paid,
            by_agent=list(by_agent.values()),
            by_action_type=list(by_action_type.values()),
        )
