"""
Provisioning rule matching.

A rule condition is a flat {field: value} map. Every non-null entry must
equal the employee attribute of that name, or the employee meta key when
no such attribute exists. Strings compare case-insensitively.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List

from peopleos.models import AppProvisioningRule, Employee

_MISSING = object()


def _employee_value(employee: Employee, key: str) -> Any:
    value = getattr(employee, key, _MISSING)
    if value is _MISSING:
        meta = employee.meta if isinstance(employee.meta, dict) else {}
        return meta.get(key)
    if isinstance(value, Enum):
        return value.value
    return value


def matches_condition(employee: Employee, condition: Dict[str, Any]) -> bool:
    for key, expected in (condition or {}).items():
        if expected is None:
            continue
        actual = _employee_value(employee, key)
        if isinstance(actual, str) and isinstance(expected, str):
            if actual.lower() != expected.lower():
                return False
        elif actual != expected:
            return False
    return True


def matching_rules(employee: Employee, rules: Iterable[AppProvisioningRule]) -> List[AppProvisioningRule]:
    """Active rules that match, highest priority first."""
    matched = [r for r in rules if r.is_active and matches_condition(employee, r.condition)]
    return sorted(matched, key=lambda r: r.priority, reverse=True)


def has_matching_rule(employee: Employee, rules: Iterable[AppProvisioningRule]) -> bool:
    return bool(matching_rules(employee, rules))


def merge_list_field(rules: List[AppProvisioningRule], key: str) -> List[Any]:
    """Concatenate provision_data[key] across rules, keeping first occurrence order."""
    merged = []
    for rule in rules:
        for item in (rule.provision_data or {}).get(key) or []:
            if item not in merged:
                merged.append(item)
    return merged
