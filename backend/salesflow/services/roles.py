from __future__ import annotations
from typing import Any, Iterable, List, Optional, Tuple
import json

from salesflow.constants.permissions import ROLES
from salesflow.errors import InvalidRole


def _tokens(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        out: List[str] = []
        for item in raw:
            out.extend(_tokens(item))
        return out
    s = str(raw).strip()
    if not s:
        return []
    # Role columns written by older clients hold a JSON-encoded array
    if s.startswith('['):
        try:
            value = json.loads(s)
        except ValueError:
            value = None
        if isinstance(value, list):
            return _tokens(value)
    return [t.strip() for t in s.split(',') if t.strip()]


def resolve_roles(raw: Any, known: Optional[Iterable[str]] = None) -> List[str]:
    """Normalize a raw role claim to a non-empty, de-duplicated, order-preserving role list.

    Accepts a single name, a comma-separated string, a JSON array string or a list.
    Names outside ``known`` (default: the canonical role set) are dropped; if nothing
    survives, InvalidRole is raised rather than defaulting to any role.
    """
    allowed = set(known) if known is not None else set(ROLES)
    resolved: List[str] = []
    for token in _tokens(raw):
        name = token.lower()
        if name in allowed and name not in resolved:
            resolved.append(name)
    if not resolved:
        raise InvalidRole(f'No recognised role in {raw!r}')
    return resolved


def split_role_names(raw: Any, known: Optional[Iterable[str]] = None) -> Tuple[List[str], List[str]]:
    """Split raw input into (known, unknown) names, both lowercased and de-duplicated in order."""
    allowed = set(known) if known is not None else set(ROLES)
    good: List[str] = []
    bad: List[str] = []
    for token in _tokens(raw):
        name = token.lower()
        bucket = good if name in allowed else bad
        if name not in bucket:
            bucket.append(name)
    return good, bad


__all__ = ['resolve_roles', 'split_role_names']
