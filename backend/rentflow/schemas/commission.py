from pydantic import BaseModel, Field, computed_field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from rentflow.models.commission import CommissionType, CommissionStatus, TargetUserType
from rentflow.services.action_types import action_type_label


def _check_clamps(min_amount: Optional[Decimal], max_amount: Optional[Decimal]):
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValueError("min_amount cannot exceed max_amount")


# --- Commission rules ---

class CommissionRuleBase(BaseModel):
    action_type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    commission_type: CommissionType
    commission_value: Decimal = Field(..., ge=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)


class CommissionRuleCreate(CommissionRuleBase):
    is_active: bool = True

    @model_validator(mode="after")
    def clamps_ordered(self):
        _check_clamps(self.min_amount, self.max_amount)
        return self


# Omit a field to leave it unchanged; only the description and clamps may be cleared
RULE_REQUIRED_FIELDS = ("name", "commission_type", "commission_value", "is_active")


class CommissionRuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    commission_type: Optional[CommissionType] = None
    commission_value: Optional[Decimal] = Field(None, ge=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        cleared = cleared_required_fields(self)
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self

    @model_validator(mode="after")
    def clamps_ordered(self):
        _check_clamps(self.min_amount, self.max_amount)
        return self


def cleared_required_fields(patch: CommissionRuleUpdate) -> List[str]:
    """Required rule fields the patch explicitly sets to None."""
    return [
        field for field in RULE_REQUIRED_FIELDS
        if field in patch.model_fields_set and getattr(patch, field) is None
    ]


class CommissionRule(CommissionRuleBase):
    id: int
    is_active: bool
    created_by_id: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @computed_field
    @property
    def action_type_label(self) -> str:
        return action_type_label(self.action_type)

    class Config:
        from_attributes = True


class RuleRemovalResult(BaseModel):
    outcome: str  # "deleted" or "deactivated"
    message: str


class ActionTypeOption(BaseModel):
    value: str
    label: str


# --- Display briefs ---

class UserBrief(BaseModel):
    id: int
    email: str
    first_name: Optional[str]
    last_name: Optional[str]

    class Config:
        from_attributes = True


class TenantBrief(BaseModel):
    id: int
    email: Optional[str]
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class RuleBrief(BaseModel):
    id: int
    name: str
    action_type: str

    class Config:
        from_attributes = True


# --- Agent actions and transactions ---

class AgentActionBase(BaseModel):
    action_type: str = Field(..., min_length=1)
    target_user_type: TargetUserType
    target_user_id: Optional[int] = None
    target_tenant_id: Optional[int] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    description: Optional[str] = None
    # Open-ended; the engine itself reads none of these keys
    metadata: Optional[Dict[str, Any]] = None
    transaction_amount: Optional[Decimal] = Field(None, ge=0)


class AgentActionCreate(AgentActionBase):
    agent_id: int


class CommissionSummary(BaseModel):
    id: int
    amount: Decimal
    status: CommissionStatus

    class Config:
        from_attributes = True


class AgentTransaction(BaseModel):
    id: int
    agent_id: int
    action_type: str
    target_user_type: TargetUserType
    target_user_id: Optional[int]
    target_tenant_id: Optional[int]
    related_entity_type: Optional[str]
    related_entity_id: Optional[str]
    description: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_")
    transaction_amount: Optional[Decimal]
    created_at: Optional[datetime]
    commission: Optional[CommissionSummary] = None
    target_user: Optional[UserBrief] = None
    target_tenant: Optional[TenantBrief] = None

    @computed_field
    @property
    def action_type_label(self) -> str:
        return action_type_label(self.action_type)

    class Config:
        from_attributes = True


class TransactionBrief(BaseModel):
    id: int
    action_type: str
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    page: int
    pages: int


class TransactionPage(BaseModel):
    transactions: List[AgentTransaction]
    pagination: Pagination


# --- Commissions ---

class AgentCommission(BaseModel):
    id: int
    agent_id: int
    transaction_id: int
    commission_rule_id: Optional[int]
    amount: Decimal
    status: CommissionStatus
    paid_at: Optional[datetime]
    paid_by_id: Optional[int]
    notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    transaction: Optional[TransactionBrief] = None
    agent: Optional[UserBrief] = None
    rule: Optional[RuleBrief] = None

    class Config:
        from_attributes = True


class CommissionPage(BaseModel):
    commissions: List[AgentCommission]
    pagination: Pagination


class RecordActionResult(BaseModel):
    transaction: AgentTransaction
    commission: Optional[AgentCommission]
    commission_amount: Decimal


class MarkPaidRequest(BaseModel):
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    notes: Optional[str] = None


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


class BulkPayRequest(BaseModel):
    commission_ids: List[int]
    notes: Optional[str] = None


class BulkPayResult(BaseModel):
    count: int
    message: str


# --- Earnings and reports ---

class AgentEarnings(BaseModel):
    total_earned: Decimal
    total_pending: Decimal
    total_paid: Decimal
    transaction_count: int
    commission_count: int


class AgentReportEntry(BaseModel):
    agent_id: int
    agent: Optional[UserBrief] = None
    total: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    count: int = 0


class ActionTypeReportEntry(BaseModel):
    action_type: str
    label: str
    total: Decimal = Decimal("0")
    count: int = 0


class CommissionReport(BaseModel):
    total_commissions: Decimal
    total_pending: Decimal
    total_paid: Decimal
    by_agent: List[AgentReportEntry]
    by_action_type: List[ActionTypeReportEntry]


class AgentDashboard(BaseModel):
    earnings: AgentEarnings
    pending_commissions_count: int
    recent_transactions: List[AgentTransaction]
    action_types: Dict[str, str]


class AgentEarningsDetail(BaseModel):
    summary: AgentEarnings
    commissions: List[AgentCommission]
