from __future__ import annotations
"""Request payload validation helpers.

Each helper returns the cleaned value (to enable inline usage) or aborts with
400 and a message naming the offending field.
"""
import re
from datetime import date
from typing import Any, Iterable, Mapping, Optional
from flask import abort

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_RE = re.compile(r'^\+?[\d\s\-()]+$')


def validate_choice(value: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    if value not in allowed:
        abort(400, description=f"{field_name} invalid")
    return value


def require_text(data: Mapping[str, Any], field_name: str, min_len: int = 1) -> str:
    raw = data.get(field_name)
    if not isinstance(raw, str) or len(raw.strip()) < min_len:
        if min_len > 1:
            abort(400, description=f'{field_name} must be at least {min_len} characters')
        abort(400, description=f'{field_name} required')
    return raw.strip()


def optional_text(data: Mapping[str, Any], field_name: str) -> Optional[str]:
    raw = data.get(field_name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        abort(400, description=f'{field_name} must be a string')
    return raw.strip() or None


def validate_email(value: Optional[str], field_name: str = 'email', required: bool = False) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        abort(400, description=f'{field_name} must be a string')
    if not value:
        if required:
            abort(400, description=f'{field_name} required')
        return None
    if not EMAIL_RE.match(value):
        abort(400, description='Invalid email address')
    return value.lower()


def validate_phone(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if not PHONE_RE.match(value):
        abort(400, description='Invalid phone number format')
    return value


def parse_date(value: Optional[str], field_name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be YYYY-MM-DD')


def parse_int(value: Any, field_name: str, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        abort(400, description=f'{field_name} must be int')
    try:
        out = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be int')
    if minimum is not None and out < minimum:
        abort(400, description=f'{field_name} must be >= {minimum}')
    return out


def parse_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        abort(400, description=f'{field_name} must be boolean')
    return value


__all__ = [
    'validate_choice', 'require_text', 'optional_text', 'validate_email', 'validate_phone',
    'parse_date', 'parse_int', 'parse_bool',
]
