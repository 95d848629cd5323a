from __future__ import annotations
from typing import Any, Dict
from flask import abort

def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Apply query-string filters.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': callable (optional),
                           'validate': callable(value)->bool (optional) } }
    Absent or empty params are skipped.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query
