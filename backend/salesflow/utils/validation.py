from __future__ import annotations
"""Request payload validation helpers with consistent 400 semantics."""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, List
from flask import abort

from salesflow.services.roles import split_role_names


def require_fields(data: dict, fields: Iterable[str]) -> None:
    missing = [f for f in fields if data.get(f) in (None, '', [])]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def validate_choice(value: str, allowed: Iterable[str], field_name: str) -> str:
    """Return value if inside allowed, else abort 400."""
    if value not in allowed:
        abort(400, description=f'Invalid {field_name} value')
    return value


def parse_date(value, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        abort(400, description=f'{field_name} must be an ISO date (YYYY-MM-DD)')


def parse_decimal(value, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        abort(400, description=f'{field_name} must be numeric')


def parse_int(value, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be int')


def normalize_id_list(value) -> List[int]:
    """Positive int ids from a scalar, a list of ids or a list of {'id': ...}; de-duplicated."""
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    out: List[int] = []
    for item in items:
        raw = item.get('id') if isinstance(item, dict) else item
        try:
            n = int(raw)
        except (TypeError, ValueError):
            continue
        if n > 0 and n not in out:
            out.append(n)
    return out

__all__ = ['require_fields', 'validate_choice', 'parse_date', 'parse_decimal', 'parse_int', 'normalize_id_list']


def validate_role_names(raw, field_name: str = 'roles') -> List[str]:
    """Strict counterpart of resolve_roles for admin input: any unknown name is a 400."""
    known, unknown = split_role_names(raw)
    if unknown:
        abort(400, description=f"Unknown {field_name}: {', '.join(unknown)}")
    if not known:
        abort(400, description=f'{field_name} required')
    return known
