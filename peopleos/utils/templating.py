"""
Placeholder substitution for offer letters and email templates.

Offer templates use {key} or %{key}; assessment invites additionally
accept {{key}}. Unknown keys are left untouched so a missing variable is
visible in the rendered text.
"""
import re
from typing import Any, Dict

_SINGLE = re.compile(r"%?\{(\w+)\}")
_DOUBLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _substitute(pattern: re.Pattern, text: str, variables: Dict[str, Any]) -> str:
    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return pattern.sub(replace, text)


def render_template(template: str, variables: Dict[str, Any]) -> str:
    """Replace {key} and %{key} with variable values."""
    return _substitute(_SINGLE, template or "", variables)


def render_placeholders(text: str, variables: Dict[str, Any]) -> str:
    """Replace {{key}} first, then {key}."""
    return render_template(_substitute(_DOUBLE, text or "", variables), variables)
