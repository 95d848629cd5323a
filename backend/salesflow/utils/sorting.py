from __future__ import annotations
from flask import abort


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker):
    """Order ``query`` by ?sort=field,-other.

    allowed: mapping of sort key -> column. The tie breaker is always appended so paging
    is stable.
    """
    if not sort_expr:
        return query.order_by(tie_breaker.asc())
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token.lstrip('-')
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
