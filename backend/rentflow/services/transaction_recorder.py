import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
from rentflow.core.config import settings
from rentflow.core.exceptions import NotFoundError
from rentflow.models.commission import AgentTransaction, AgentCommission, CommissionStatus
from rentflow.schemas.commission import AgentActionCreate
from rentflow.services.commission_calculator import ZERO, calculate_commission_amount
from rentflow.services.commission_rules import CommissionRuleService

logger = logging.getLogger(__name__)

# Related rows shown alongside each transaction in history listings
_TRANSACTION_DISPLAY = (
    joinedload(AgentTransaction.commission),
    joinedload(AgentTransaction.target_user),
    joinedload(AgentTransaction.target_tenant),
)


@dataclass
class RecordedAction:
    transaction: AgentTransaction
    commission: Optional[AgentCommission]
    commission_amount: Decimal


def page_bounds(page: int, limit: Optional[int]):
    """Clamp page/limit to the configured sizes and return (page, limit, offset)."""
    limit = limit or settings.DEFAULT_PAGE_SIZE
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    page = max(1, page)
    return page, limit, (page - 1) * limit


class TransactionRecorder:
    """
    Records agent actions and accrues commissions for them.

    The transaction is committed on its own before any rule lookup, so the
    action history stays complete even when the commission write fails.
    A commission is only ever created for the transaction just written,
    which keeps the one-commission-per-transaction rule free of races.
    """

    def __init__(self, db: Session, rules: Optional[CommissionRuleService] = None):
        self.db = db
        self.rules = rules or CommissionRuleService(db)

    def record_action(self, data: AgentActionCreate) -> RecordedAction:
        transaction = AgentTransaction(
            agent_id=data.agent_id,
            action_type=data.action_type,
            target_user_type=data.target_user_type,
            target_user_id=data.target_user_id,
            target_tenant_id=data.target_tenant_id,
            related_entity_type=data.related_entity_type,
            related_entity_id=data.related_entity_id,
            description=data.description,
            metadata_=data.metadata,
            transaction_amount=data.transaction_amount,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)

        rule = self.rules.find_active_rule(data.action_type)
        if not rule:
            logger.debug(f"No active commission rule for {data.action_type}; transaction {transaction.id} recorded only")
            return RecordedAction(transaction=transaction, commission=None, commission_amount=ZERO)

        amount = calculate_commission_amount(rule, data.transaction_amount)
        if amount <= ZERO:
            return RecordedAction(transaction=transaction, commission=None, commission_amount=ZERO)

        commission = AgentCommission(
            agent_id=data.agent_id,
            transaction_id=transaction.id,
            commission_rule_id=rule.id,
            amount=amount,
            status=CommissionStatus.PENDING,
        )
        self.db.add(commission)
        try:
            self.db.commit()
        except Exception:
            # Only the commission write is undone; the transaction is already committed
            self.db.rollback()
            raise
        self.db.refresh(commission)

        logger.info(
            f"Commission {commission.id} accrued for agent {data.agent_id}: "
            f"{amount} on {data.action_type} (transaction {transaction.id}, rule {rule.id})"
        )
        return RecordedAction(transaction=transaction, commission=commission, commission_amount=amount)

    def get_transaction(self, transaction_id: int) -> AgentTransaction:
        transaction = (
            self.db.query(AgentTransaction)
            .filter(AgentTransaction.id == transaction_id)
            .first()
        )
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction

    def list_agent_transactions(self, agent_id: int, page: int = 1, limit: Optional[int] = None) -> Dict:
        """Newest-first activity history for one agent."""
        page, limit, offset = page_bounds(page, limit)

        query = self.db.query(AgentTransaction).filter(AgentTransaction.agent_id == agent_id)
        total = query.count()
        transactions = (
            query.options(*_TRANSACTION_DISPLAY)
            .order_by(AgentTransaction.created_at.desc(), AgentTransaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return {
            "transactions": transactions,
            "pagination": {
                "total": total,
                "page": page,
                "pages": math.ceil(total / limit),
            },
        }

    def recent_transactions(self, agent_id: int, limit: int = 5) -> List[AgentTransaction]:
        return (
            self.db.query(AgentTransaction)
            .options(*_TRANSACTION_DISPLAY)
            .filter(AgentTransaction.agent_id == agent_id)
            .order_by(AgentTransaction.created_at.desc(), AgentTransaction.id.desc())
            .limit(limit)
            .all()
        )
