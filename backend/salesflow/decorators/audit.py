from __future__ import annotations
"""Audit logging decorator for route handlers.

Usage:

@audit_log('SALES_FUNNEL.CREATE', entity='SalesFunnel', entity_id_key='id', meta_keys=['rfq_id'])
def create_sales_funnel():
    ... return {'id': sf.id, 'rfq_id': sf.rfq_id}, 201

Parameters:
  action: audit action code
  entity: optional entity label
  entity_id_key: key in the returned JSON object whose value becomes entity_id
  entity_id_arg: path parameter used for entity_id when entity_id_key is absent
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable (data, rv, args, kwargs) -> dict; overrides meta_keys

Only successful responses (status < 400) are audited; the original return value is always
passed through untouched.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional
import logging

from salesflow.services.audit import add_audit
from salesflow import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) from a view return value."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            try:
                data = data if isinstance(data, dict) else {}
                entity_id = None
                if entity_id_key and entity_id_key in data:
                    entity_id = data.get(entity_id_key)
                elif entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                if meta_builder:
                    meta = meta_builder(data, rv, args, kwargs)
                elif meta_keys:
                    meta = {k: data.get(k) for k in meta_keys if k in data}
                else:
                    meta = None
                add_audit(action, entity, entity_id, meta)
                get_db().commit()
            except Exception:
                # The mutation already committed; a failed audit write must not turn it into an error
                logger.exception('Audit write failed for %s', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer
