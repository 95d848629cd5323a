from __future__ import annotations
from typing import Any, Dict, Optional
import logging
from flask_jwt_extended import get_jwt_identity, get_jwt
from salesflow import get_db
from salesflow.models.audit import AuditLog

logger = logging.getLogger(__name__)


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Add an audit log entry to the current DB session (not committed).

    Parameters:
      action: short action code e.g. ROLE.PERM.REPLACE, USER.ROLES.SET, AUTHZ.RELOAD
      entity: optional entity name (Role, User, SalesFunnel, ...)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (shallow copied)
    """
    session = get_db()
    try:
        claims = get_jwt() or {}
        ident = get_jwt_identity()
    except RuntimeError:
        # outside a verified request (scripts, engine reload at startup)
        claims, ident = {}, None
    log = AuditLog(
        actor_user_id=int(ident) if ident is not None else 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        roles_snapshot={'roles': list(claims.get('roles') or [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    return log
