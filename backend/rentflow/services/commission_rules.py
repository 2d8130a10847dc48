import enum
import logging
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from rentflow.core.exceptions import ConflictError, NotFoundError, RuleValidationError
from rentflow.models.commission import ACTIVE_RULE_INDEX, CommissionRule, AgentCommission
from rentflow.schemas.commission import CommissionRuleCreate, CommissionRuleUpdate, cleared_required_fields

logger = logging.getLogger(__name__)

# Starter rules for a fresh install; admins tune them from the dashboard
DEFAULT_RULES = [
    {
        "action_type": "record_payment",
        "name": "Rent Collection Commission",
        "description": "Percentage of each rent payment recorded by the agent",
        "commission_type": "percentage",
        "commission_value": Decimal("5"),
        "min_amount": Decimal("500"),
        "max_amount": Decimal("50000"),
    },
    {
        "action_type": "onboard_tenant",
        "name": "Tenant Onboarding Bonus",
        "description": "Fixed commission for onboarding a new tenant",
        "commission_type": "fixed",
        "commission_value": Decimal("5000"),
    },
    {
        "action_type": "add_property",
        "name": "Property Registration Bonus",
        "description": "Fixed commission for helping owners register new properties",
        "commission_type": "fixed",
        "commission_value": Decimal("2000"),
    },
]


class RuleRemoval(str, enum.Enum):
    DELETED = "deleted"
    DEACTIVATED = "deactivated"


class CommissionRuleService:
    """
    Rule store: one active rule per action type.

    The application-level check gives a friendly error; the partial unique
    index on (action_type WHERE is_active) is what actually holds under
    concurrent writers.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_active_rule(self, action_type: str) -> Optional[CommissionRule]:
        return (
            self.db.query(CommissionRule)
            .filter(
                CommissionRule.action_type == action_type,
                CommissionRule.is_active == True
            )
            .first()
        )

    def get_rule(self, rule_id: int) -> CommissionRule:
        rule = self.db.query(CommissionRule).filter(CommissionRule.id == rule_id).first()
        if not rule:
            raise NotFoundError("Commission rule not found")
        return rule

    def list_rules(self, include_inactive: bool = True) -> List[CommissionRule]:
        query = self.db.query(CommissionRule)
        if not include_inactive:
            query = query.filter(CommissionRule.is_active == True)
        return query.order_by(CommissionRule.action_type, CommissionRule.id).all()

    def create_rule(self, data: CommissionRuleCreate, created_by_id: Optional[int] = None) -> CommissionRule:
        if data.is_active and self.find_active_rule(data.action_type):
            raise ConflictError("An active commission rule already exists for this action type")

        rule = CommissionRule(**data.model_dump(), created_by_id=created_by_id)
        self.db.add(rule)
        self._commit_rule_write()
        self.db.refresh(rule)

        logger.info(
            f"Commission rule {rule.id} created for {rule.action_type} "
            f"({rule.commission_type.value} {rule.commission_value})"
        )
        return rule

    def update_rule(self, rule_id: int, patch: CommissionRuleUpdate) -> CommissionRule:
        cleared = cleared_required_fields(patch)
        if cleared:
            raise RuleValidationError(f"{', '.join(cleared)} cannot be null")

        rule = self.get_rule(rule_id)
        changes = patch.model_dump(exclude_unset=True)

        if changes.get("is_active") and not rule.is_active:
            existing = self.find_active_rule(rule.action_type)
            if existing and existing.id != rule.id:
                raise ConflictError("An active commission rule already exists for this action type")

        for field, value in changes.items():
            setattr(rule, field, value)

        if rule.min_amount is not None and rule.max_amount is not None and rule.min_amount > rule.max_amount:
            self.db.rollback()
            raise RuleValidationError("min_amount cannot exceed max_amount")

        self._commit_rule_write()
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule.id} updated: {sorted(changes)}")
        return rule

    def deactivate_or_delete(self, rule_id: int) -> RuleRemoval:
        """Hard-delete an unused rule; deactivate one that commissions still reference."""
        rule = self.get_rule(rule_id)

        referenced = (
            self.db.query(AgentCommission)
            .filter(AgentCommission.commission_rule_id == rule.id)
            .count()
        )

        if referenced > 0:
            rule.is_active = False
            self.db.commit()
            logger.info(f"Commission rule {rule_id} deactivated ({referenced} commissions reference it)")
            return RuleRemoval.DEACTIVATED

        self.db.delete(rule)
        self.db.commit()
        logger.info(f"Commission rule {rule_id} deleted")
        return RuleRemoval.DELETED

    def _commit_rule_write(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if not _is_active_rule_conflict(e):
                raise
            # Lost the race against another writer for the same action type
            raise ConflictError("An active commission rule already exists for this action type")


def _is_active_rule_conflict(error: IntegrityError) -> bool:
    # PostgreSQL names the violated index; SQLite names the indexed column
    message = str(error.orig)
    return ACTIVE_RULE_INDEX in message or "commission_rules.action_type" in message


def seed_default_rules(db: Session) -> int:
    """Create the default rules whose action type has no active rule yet."""
    service = CommissionRuleService(db)
    created = 0
    for rule_data in DEFAULT_RULES:
        if service.find_active_rule(rule_data["action_type"]):
            continue
        service.create_rule(CommissionRuleCreate(**rule_data))
        created += 1
    return created
