from __future__ import annotations
"""Reusable validation helpers for request payloads and domain models.

Every failure raises FieldValidationError, a 400 that carries the offending field
name so the error handler can return it next to the message.
"""
from typing import Any, Iterable, Mapping, Optional
from werkzeug.exceptions import BadRequest


class FieldValidationError(BadRequest):
    def __init__(self, field: str, description: str):
        super().__init__(description=description)
        self.field = field


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(p.capitalize() for p in rest)


def pick(data: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Read ``name`` from a JSON body, accepting its camelCase alias (partName for part_name)."""
    if name in data:
        return data[name]
    alias = _camel(name)
    if alias in data:
        return data[alias]
    return default


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise FieldValidationError(field, f"{field} required")
    return value.strip()


def optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, (str, int, float)):
        raise FieldValidationError(field, f"{field} invalid")
    text = str(value).strip()
    return text or None


def require_choice(value: Any, allowed: Iterable[str], field: str, default: Optional[str] = None) -> str:
    if value is None or value == '':
        if default is not None:
            return default
        raise FieldValidationError(field, f"{field} required")
    allowed = tuple(allowed)
    if value not in allowed:
        raise FieldValidationError(field, f"{field} must be one of: {', '.join(allowed)}")
    return value


def parse_positive_int(value: Any, field: str, default: Optional[int] = None) -> int:
    if value is None or value == '':
        if default is not None:
            return default
        raise FieldValidationError(field, f"{field} required")
    if isinstance(value, bool):
        raise FieldValidationError(field, f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise FieldValidationError(field, f"{field} must be a positive integer")
    if number < 1 or (isinstance(value, float) and value != number):
        raise FieldValidationError(field, f"{field} must be a positive integer")
    return number


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    raise FieldValidationError(field, f"{field} must be true or false")


__all__ = [
    'FieldValidationError', 'pick', 'require_text', 'optional_text', 'require_choice',
    'parse_positive_int', 'parse_bool',
]
