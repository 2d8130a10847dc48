"""Vocabulary of agent actions that can carry a commission rule.

The list is open: an action type with no entry here is still recorded, it
simply has no label and (unless an admin adds a rule for it) no commission.
"""
import enum
from typing import Dict, List


class ActionType(str, enum.Enum):
    RECORD_PAYMENT = "record_payment"
    ADD_TENANT = "add_tenant"
    ADD_PROPERTY = "add_property"
    UPDATE_TENANT = "update_tenant"
    UPDATE_PROPERTY = "update_property"
    CREATE_MAINTENANCE = "create_maintenance"
    RESOLVE_MAINTENANCE = "resolve_maintenance"
    ONBOARD_TENANT = "onboard_tenant"


ACTION_TYPE_LABELS: Dict[str, str] = {
    ActionType.RECORD_PAYMENT.value: "Record Payment",
    ActionType.ADD_TENANT.value: "Add New Tenant",
    ActionType.ADD_PROPERTY.value: "Add New Property",
    ActionType.UPDATE_TENANT.value: "Update Tenant Info",
    ActionType.UPDATE_PROPERTY.value: "Update Property",
    ActionType.CREATE_MAINTENANCE.value: "Create Maintenance Request",
    ActionType.RESOLVE_MAINTENANCE.value: "Resolve Maintenance Issue",
    ActionType.ONBOARD_TENANT.value: "Onboard Tenant",
}


def action_type_label(action_type: str) -> str:
    return ACTION_TYPE_LABELS.get(action_type, action_type)


def list_action_types() -> List[Dict[str, str]]:
    return [{"value": value, "label": label} for value, label in ACTION_TYPE_LABELS.items()]
