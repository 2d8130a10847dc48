import logging
import math
from typing import Dict, Iterable, Optional
from sqlalchemy.orm import Session, joinedload
from rentflow.core.exceptions import InvalidStateError, NotFoundError
from rentflow.models.commission import AgentCommission, CommissionStatus, utcnow
from rentflow.services.transaction_recorder import page_bounds

logger = logging.getLogger(__name__)

_COMMISSION_DISPLAY = (
    joinedload(AgentCommission.transaction),
    joinedload(AgentCommission.agent),
    joinedload(AgentCommission.rule),
)


class CommissionLedger:
    """
    Commission lifecycle:
        pending --mark_paid--> paid       (terminal)
        pending --cancel-----> cancelled  (terminal)

    Every transition is a conditional UPDATE guarded by status = pending, so
    two admins acting on the same commission cannot both succeed.
    Notes are the only thing that may change on a terminal commission.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_commission(self, commission_id: int) -> AgentCommission:
        commission = (
            self.db.query(AgentCommission)
            .filter(AgentCommission.id == commission_id)
            .first()
        )
        if not commission:
            raise NotFoundError("Commission not found")
        return commission

    def list_commissions(
        self,
        status: Optional[CommissionStatus] = None,
        agent_id: Optional[int] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict:
        page, limit, offset = page_bounds(page, limit)

        query = self.db.query(AgentCommission)
        if status:
            query = query.filter(AgentCommission.status == status)
        if agent_id:
            query = query.filter(AgentCommission.agent_id == agent_id)

        total = query.count()
        commissions = (
            query.options(*_COMMISSION_DISPLAY)
            .order_by(AgentCommission.created_at.desc(), AgentCommission.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return {
            "commissions": commissions,
            "pagination": {
                "total": total,
                "page": page,
                "pages": math.ceil(total / limit),
            },
        }

    def agent_commissions(self, agent_id: int):
        return (
            self.db.query(AgentCommission)
            .options(*_COMMISSION_DISPLAY)
            .filter(AgentCommission.agent_id == agent_id)
            .order_by(AgentCommission.created_at.desc(), AgentCommission.id.desc())
            .all()
        )

    def count_pending(self, agent_id: int) -> int:
        return (
            self.db.query(AgentCommission)
            .filter(
                AgentCommission.agent_id == agent_id,
                AgentCommission.status == CommissionStatus.PENDING
            )
            .count()
        )

    def mark_paid(self, commission_id: int, paid_by_id: int, notes: Optional[str] = None) -> AgentCommission:
        values = {
            "status": CommissionStatus.PAID,
            "paid_at": utcnow(),
            "paid_by_id": paid_by_id,
        }
        if notes is not None:
            values["notes"] = notes

        commission = self._transition(commission_id, values, "paid")
        logger.info(f"Commission {commission_id} marked paid by user {paid_by_id} ({commission.amount})")
        return commission

    def mark_paid_bulk(self, commission_ids: Iterable[int], paid_by_id: int, notes: Optional[str] = None) -> int:
        """
        Best-effort bulk payment. Only commissions still pending are touched;
        unknown, paid and cancelled ids are skipped. Returns how many rows
        actually moved to paid, so a repeat call returns 0.
        """
        ids = list(set(commission_ids))
        if not ids:
            return 0

        values = {
            "status": CommissionStatus.PAID,
            "paid_at": utcnow(),
            "paid_by_id": paid_by_id,
        }
        if notes is not None:
            values["notes"] = notes

        count = (
            self.db.query(AgentCommission)
            .filter(
                AgentCommission.id.in_(ids),
                AgentCommission.status == CommissionStatus.PENDING
            )
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        # Rows loaded earlier in this session may still show them as pending
        self.db.expire_all()

        logger.info(f"Bulk payment by user {paid_by_id}: {count} of {len(ids)} commissions marked paid")
        return count

    def cancel(self, commission_id: int, notes: Optional[str] = None) -> AgentCommission:
        values = {"status": CommissionStatus.CANCELLED}
        if notes is not None:
            values["notes"] = notes

        commission = self._transition(commission_id, values, "cancelled")
        logger.info(f"Commission {commission_id} cancelled")
        return commission

    def update_notes(self, commission_id: int, notes: Optional[str]) -> AgentCommission:
        commission = self.get_commission(commission_id)
        commission.notes = notes
        self.db.commit()
        self.db.refresh(commission)
        return commission

    def _transition(self, commission_id: int, values: Dict, target: str) -> AgentCommission:
        commission = self.get_commission(commission_id)
        if commission.status != CommissionStatus.PENDING:
            raise InvalidStateError(f"Commission already {commission.status.value}; cannot mark {target}")

        updated = (
            self.db.query(AgentCommission)
            .filter(
                AgentCommission.id == commission_id,
                AgentCommission.status == CommissionStatus.PENDING
            )
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(commission)

        if updated == 0:
            # Someone else moved it between our read and our write
            raise InvalidStateError(f"Commission already {commission.status.value}; cannot mark {target}")
        return commission
