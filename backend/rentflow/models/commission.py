from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Boolean, Text, JSON, Index, text
)
from sqlalchemy.orm import relationship
from rentflow.core.database import Base
import enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommissionType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class TargetUserType(str, enum.Enum):
    OWNER = "owner"
    TENANT = "tenant"


ACTIVE_RULE_INDEX = "uq_commission_rules_active_action_type"


class CommissionRule(Base):
    """Commission formula for one action type.

    Rules are never deleted while commissions point at them; they are
    deactivated instead, so readers must always filter on ``is_active``.
    """
    __tablename__ = "commission_rules"

    id = Column(Integer, primary_key=True, index=True)

    action_type = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    commission_type = Column(Enum(CommissionType), nullable=False)
    commission_value = Column(Numeric(12, 2), nullable=False)  # percentage points or fixed amount

    # Optional clamps applied after calculation
    min_amount = Column(Numeric(12, 2), nullable=True)
    max_amount = Column(Numeric(12, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # Relationships
    creator = relationship("User", foreign_keys=[created_by_id])
    commissions = relationship("AgentCommission", back_populates="rule")

    __table_args__ = (
        # At most one active rule per action type, enforced by the database
        Index(
            ACTIVE_RULE_INDEX,
            "action_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )


class AgentTransaction(Base):
    """Immutable record of one agent action."""
    __tablename__ = "agent_transactions"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(String, nullable=False, index=True)

    # Who the action was performed for
    target_user_type = Column(Enum(TargetUserType), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    target_tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True)

    # Loose pointer to the business record (payment, property, ticket...)
    related_entity_type = Column(String, nullable=True)
    related_entity_id = Column(String, nullable=True)

    description = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    transaction_amount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    agent = relationship("User", foreign_keys=[agent_id], back_populates="agent_transactions")
    target_user = relationship("User", foreign_keys=[target_user_id])
    target_tenant = relationship("Tenant", foreign_keys=[target_tenant_id])
    commission = relationship("AgentCommission", back_populates="transaction", uselist=False)


class AgentCommission(Base):
    """Commission owed to an agent for one transaction."""
    __tablename__ = "agent_commissions"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # One commission per transaction at most
    transaction_id = Column(Integer, ForeignKey("agent_transactions.id"), nullable=False, unique=True)
    commission_rule_id = Column(Integer, ForeignKey("commission_rules.id"), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(CommissionStatus), default=CommissionStatus.PENDING, nullable=False, index=True)

    # Payment information, set once on pending -> paid
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # Relationships
    agent = relationship("User", foreign_keys=[agent_id], back_populates="commissions")
    transaction = relationship("AgentTransaction", back_populates="commission")
    rule = relationship("CommissionRule", back_populates="commissions")
    payer = relationship("User", foreign_keys=[paid_by_id])
