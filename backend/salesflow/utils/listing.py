from __future__ import annotations
from typing import Tuple
import math
from flask import request, abort
from sqlalchemy.orm import Query
from salesflow.config.pagination import normalize_pagination


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    """Return (paged query, total, limit, page) using ?limit= and ?page=."""
    try:
        limit, page, offset = normalize_pagination(request.args.get('limit'), request.args.get('page'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, page


def build_list_payload(rows: list, total: int, limit: int, page: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'page': page,
            'total_pages': math.ceil(total / limit) if limit else 0,
            'returned': len(rows)
        }
    }


def paginated(q: Query, serialize):
    paged_q, total, limit, page = apply_pagination(q)
    return build_list_payload([serialize(r) for r in paged_q.all()], total, limit, page)
