from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError

from salesflow import get_db
from salesflow.models.authz import User
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.credentials import user_json
from salesflow.services.grant_store import set_user_roles
from salesflow.services.otp import utcnow
from salesflow.services.policy import current_user_id, current_roles
from salesflow.utils.listing import paginated
from salesflow.utils.sorting import apply_multi_sort
from salesflow.utils.validation import validate_role_names

users_bp = Blueprint('users', __name__)


def _get_user_or_404(user_id: int) -> User:
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


@users_bp.get('/me')
@jwt_required()
def me():
    user = _get_user_or_404(current_user_id())
    return user_json(user, current_roles())


@users_bp.post('/logout')
@jwt_required()
def logout():
    session = get_db()
    user = _get_user_or_404(current_user_id())
    user.token = None
    session.commit()
    return {'success': True, 'message': 'Logged out'}


@users_bp.get('')
@require_permission('readAny', 'user')
def list_users():
    session = get_db()
    q = session.query(User)
    term = (request.args.get('q') or '').strip()
    if term:
        like = f'%{term}%'
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like), User.short_form.ilike(like)))
    q = apply_multi_sort(q, request.args.get('sort'), {'name': User.name, 'email': User.email, 'id': User.id}, User.id)
    return paginated(q, user_json)


@users_bp.get('/<int:user_id>')
@require_permission('readAny', 'user')
def get_user(user_id: int):
    return user_json(_get_user_or_404(user_id))


@users_bp.put('/<int:user_id>')
@require_permission('updateAny', 'user')
@audit_log('USER.UPDATE', entity='User', entity_id_key='id', meta_keys=['role'])
def update_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    data = request.json or {}
    for field in ('name', 'short_form'):
        if field in data:
            if not str(data[field] or '').strip():
                abort(400, description=f'{field} cannot be empty')
            setattr(user, field, str(data[field]).strip())
    if 'email' in data:
        email = str(data['email'] or '').strip().lower()
        if not email:
            abort(400, description='email cannot be empty')
        user.email = email
    if data.get('password'):
        if len(data['password']) < 8:
            abort(400, description='password must be at least 8 characters')
        user.set_password(data['password'])
    if 'role' in data:
        roles = validate_role_names(data['role'], 'role')
        try:
            set_user_roles(session, user, roles)
        except LookupError as e:
            session.rollback()
            abort(400, description=str(e))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description='Email already registered')
    return user_json(user)


@users_bp.delete('/<int:user_id>')
@require_permission('deleteAny', 'user')
@audit_log('USER.DEACTIVATE', entity='User', entity_id_arg='user_id')
def deactivate_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    if user.id == current_user_id():
        abort(400, description='Cannot deactivate yourself')
    user.is_active = False
    user.deactivated_at = utcnow()
    user.token = None
    user.otp_code = None
    user.otp_expires = None
    session.commit()
    return {'success': True, 'id': user.id}
