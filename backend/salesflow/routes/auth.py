from flask import Blueprint, request, abort
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from salesflow import get_db
from salesflow.constants.permissions import ROLE_USER
from salesflow.models.authz import User, Role, UserRole
from salesflow.services.credentials import issue_access_token, user_json
from salesflow.services.policy import otp_negotiator
from salesflow.services.roles import resolve_roles
from salesflow.decorators.audit import audit_log

auth_bp = Blueprint('auth', __name__)

REGISTER_FIELDS = ('name', 'email', 'short_form', 'password')


def _find_user(email: str):
    q = select(User).where(User.email == email.strip().lower()).execution_options(populate_existing=True)
    return get_db().execute(q).scalar_one_or_none()


@auth_bp.post('/register')
@audit_log('USER.REGISTER', entity='User', entity_id_key='id')
def register():
    data = request.json or {}
    errors = {f: f'{f} is required' for f in REGISTER_FIELDS if not str(data.get(f) or '').strip()}
    if errors:
        return {'error': {'status': 400, 'title': 'Bad Request', 'detail': 'Validation failed', 'errors': errors}}, 400
    if len(data['password']) < 8:
        abort(400, description='password must be at least 8 characters')
    session = get_db()
    email = data['email'].strip().lower()
    if _find_user(email):
        abort(409, description='Email already registered')
    user = User(name=data['name'].strip(), email=email, short_form=data['short_form'].strip(), password_hash='')
    user.set_password(data['password'])
    session.add(user)
    try:
        session.flush()
        role = session.execute(select(Role).where(Role.name == ROLE_USER)).scalar_one_or_none()
        if role is None:
            role = Role(name=ROLE_USER)
            session.add(role)
            session.flush()
        session.add(UserRole(user_id=user.id, role_id=role.id))
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description='Email already registered')
    return user_json(user, [ROLE_USER]), 201


@auth_bp.post('/login')
def login():
    """Password check; on success a one-time code is mailed instead of a token."""
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    user = _find_user(email)
    if not user or not user.is_active:
        abort(400, description='User not found')
    if not user.verify_password(password):
        abort(401, description='invalid credentials')
    otp_negotiator().issue(get_db(), user)
    return {'success': True, 'message': 'OTP sent to email'}


@auth_bp.post('/verify-otp')
def verify_otp():
    data = request.json or {}
    email = data.get('email'); otp = data.get('otp')
    if not email or not otp:
        abort(400, description='email & otp required')
    session = get_db()
    user = _find_user(email)
    if not user:
        abort(404, description='User not found')
    if not user.is_active:
        abort(400, description='User not found')
    # Roles are resolved before consuming the code so a role-less account keeps its code
    roles = resolve_roles(user.role_names)
    token = otp_negotiator().verify(session, user, str(otp), lambda: issue_access_token(user, roles))
    return {
        'success': True,
        'message': 'Login successful',
        'token': token,
        'user': {'id': user.id, 'name': user.name, 'email': user.email, 'role': roles},
    }
