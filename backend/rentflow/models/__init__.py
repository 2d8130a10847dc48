from rentflow.models.user import User, UserRole
from rentflow.models.tenant import Tenant
from rentflow.models.commission import (
    CommissionRule, AgentTransaction, AgentCommission,
    CommissionType, CommissionStatus, TargetUserType,
)

__all__ = [
    "User",
    "UserRole",
    "Tenant",
    "CommissionRule",
    "AgentTransaction",
    "AgentCommission",
    "CommissionType",
    "CommissionStatus",
    "TargetUserType",
]
