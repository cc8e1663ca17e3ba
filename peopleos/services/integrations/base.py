"""
Result types shared by all provisioning connectors.

Connectors never raise to their caller: every outcome, including
network errors, comes back as a result object.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from peopleos.models import Employee


@dataclass
class ProvisionResult:
    success: bool
    error: Optional[str] = None
    external_user_id: Optional[str] = None
    external_email: Optional[str] = None
    provisioned_resources: Dict[str, Any] = field(default_factory=dict)
    account_id: Optional[int] = None


@dataclass
class DeprovisionResult:
    success: bool
    error: Optional[str] = None
    account_id: Optional[int] = None


@dataclass
class ConnectionResult:
    success: bool
    error: Optional[str] = None


EMPLOYEE_PAYLOAD_FIELDS = (
    "id", "full_name", "personal_email", "work_email", "phone", "job_title",
    "department", "location", "employment_type", "contract_type", "status",
    "start_date", "end_date", "manager_id", "meta",
)


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def employee_payload(employee: Employee) -> Dict[str, Any]:
    """JSON-safe snapshot of an employee for webhook bodies and event data."""
    return {name: _json_value(getattr(employee, name)) for name in EMPLOYEE_PAYLOAD_FIELDS}
