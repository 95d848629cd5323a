from flask import Blueprint, request, abort
from sqlalchemy import select

from salesflow import get_db, grant_loader
from salesflow.constants.permissions import ACTIONS, RESOURCES
from salesflow.models.authz import User, Role, Permission, RolePermission
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.grant_store import replace_role_permissions as store_replace_role_permissions
from salesflow.services.grant_store import set_user_roles as store_set_user_roles
from salesflow.services.policy import authz_engine
from salesflow.utils.listing import paginated
from salesflow.utils.validation import normalize_id_list, validate_choice, validate_role_names

iam_bp = Blueprint('iam', __name__)


def _permission_json(p: Permission):
    return {'id': p.id, 'action': p.action, 'resource': p.resource}


def _role_or_404(role_id: int) -> Role:
    role = get_db().execute(select(Role).where(Role.id == role_id)).scalar_one_or_none()
    if not role:
        abort(404)
    return role


def _reload():
    snapshot = authz_engine().rebuild(grant_loader)
    return {'source': snapshot.source, 'version': snapshot.version, 'grant_count': snapshot.grant_count}


@iam_bp.get('/roles')
@require_permission('readAny', 'role')
def list_roles():
    q = get_db().query(Role).order_by(Role.id.asc())
    return paginated(q, lambda r: {'id': r.id, 'name': r.name})


@iam_bp.get('/permissions')
@require_permission('readAny', 'role')
def list_permissions():
    q = get_db().query(Permission)
    resource = request.args.get('resource')
    if resource:
        q = q.filter(Permission.resource == validate_choice(resource, RESOURCES, 'resource'))
    action = request.args.get('action')
    if action:
        q = q.filter(Permission.action == validate_choice(action, ACTIONS, 'action'))
    return paginated(q.order_by(Permission.id.asc()), _permission_json)


@iam_bp.get('/roles/<int:role_id>/permissions')
@require_permission('readAny', 'role')
def get_role_permissions(role_id: int):
    role = _role_or_404(role_id)
    perms = get_db().execute(
        select(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role.id)
        .order_by(Permission.id)
    ).scalars().all()
    return {'id': role.id, 'name': role.name, 'permissions': [_permission_json(p) for p in perms]}


@iam_bp.get('/role-permissions')
@require_permission('readAny', 'role')
def list_role_permissions():
    """Role -> [action:resource] as stored, plus what the engine is currently using."""
    out = {}
    for role, action, resource in grant_loader():
        out.setdefault(role, []).append(f'{action}:{resource}')
    snapshot = authz_engine().snapshot
    return {'data': out, 'engine': {'source': snapshot.source, 'version': snapshot.version}}


@iam_bp.put('/roles/<int:role_id>/permissions')
@require_permission('updateAny', 'role')
@audit_log(
    'ROLE.PERM.REPLACE',
    entity='Role',
    entity_id_key='id',
    meta_builder=lambda data, rv, a, kw: {'permission_ids': [p['id'] for p in data.get('permissions', [])]},
)
def replace_role_permissions(role_id: int):
    session = get_db()
    role = _role_or_404(role_id)
    data = request.json or {}
    ids = normalize_id_list(data.get('permission_ids'))
    if not ids:
        abort(400, description='permission_ids must be a non-empty list')
    try:
        perms = store_replace_role_permissions(session, role, ids)
    except LookupError as e:
        session.rollback()
        abort(400, description=str(e))
    session.commit()
    engine_state = _reload()
    return {'id': role.id, 'name': role.name, 'permissions': [_permission_json(p) for p in perms], 'engine': engine_state}


@iam_bp.post('/reload')
@require_permission('updateAny', 'role')
@audit_log('AUTHZ.RELOAD', entity='AuthorizationEngine', meta_keys=['source', 'version'])
def reload_grants():
    return _reload()


@iam_bp.put('/users/<int:user_id>/roles')
@require_permission('updateAny', 'role')
@audit_log('USER.ROLES.SET', entity='User', entity_id_key='user_id', meta_keys=['roles'])
def set_user_roles(user_id: int):
    session = get_db()
    user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    data = request.json or {}
    roles = validate_role_names(data.get('roles'))
    try:
        store_set_user_roles(session, user, roles)
    except LookupError as e:
        session.rollback()
        abort(400, description=str(e))
    session.commit()
    return {'user_id': user.id, 'roles': roles}
