from __future__ import annotations
from typing import List
from flask import current_app
from flask_jwt_extended import get_jwt, get_jwt_identity

from salesflow.errors import Unauthorized
from salesflow.services.authz_engine import AuthorizationEngine
from salesflow.services.roles import resolve_roles
from salesflow.services.workflow_gate import WorkflowGate

SCOPE_ANY = 'any'
SCOPE_OWN = 'own'


def authz_engine() -> AuthorizationEngine:
    return current_app.extensions['salesflow']['engine']


def workflow_gate() -> WorkflowGate:
    return current_app.extensions['salesflow']['gate']


def otp_negotiator():
    return current_app.extensions['salesflow']['otp']


def current_user_id() -> int:
    # Identity stored as string (flask-jwt-extended v4 requirement)
    return int(get_jwt_identity())


def current_roles() -> List[str]:
    """Roles from the verified token; InvalidRole if none are recognised."""
    return resolve_roles(get_jwt().get('roles'))


def resolve_scope(roles: List[str], verb: str, resource: str) -> str:
    """'any' if ``{verb}Any`` is granted, else 'own' if ``{verb}Own`` is, else Unauthorized."""
    engine = authz_engine()
    if engine.can(roles, f'{verb}Any', resource):
        return SCOPE_ANY
    if engine.can(roles, f'{verb}Own', resource):
        return SCOPE_OWN
    raise Unauthorized(f"Forbidden: {', '.join(roles)} cannot {verb} on {resource}")


def assert_owns_record(scope: str, owner_user_id) -> None:
    if scope == SCOPE_OWN and owner_user_id != current_user_id():
        raise Unauthorized('Record ownership required')


def filter_query_by_owner(query, scope: str, owner_column):
    """Restrict ``query`` to the caller's rows when only 'own' scope is held."""
    if scope == SCOPE_OWN:
        return query.filter(owner_column == current_user_id())
    return query
