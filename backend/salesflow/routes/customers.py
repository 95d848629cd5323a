from flask import Blueprint, request, abort, g
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError

from salesflow import get_db
from salesflow.models.customer import Customer
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.policy import current_user_id, resolve_scope, assert_owns_record, filter_query_by_owner
from salesflow.utils.listing import paginated
from salesflow.utils.sorting import apply_multi_sort
from salesflow.utils.validation import require_fields

customers_bp = Blueprint('customers', __name__)

RESOURCE = 'customer'


def _customer_json(c: Customer):
    return {'id': c.id, 'name': c.name, 'email': c.email, 'code': c.code, 'created_by': c.created_by}


def _customer_or_404(customer_id: int) -> Customer:
    c = get_db().execute(select(Customer).where(Customer.id == customer_id)).scalar_one_or_none()
    if not c:
        abort(404)
    return c


def _assert_unique(name: str, email: str, exclude_id: int | None = None):
    q = select(Customer.id).where(or_(Customer.name == name, Customer.email == email))
    if exclude_id is not None:
        q = q.where(Customer.id != exclude_id)
    if get_db().execute(q).first():
        abort(409, description='Customer name or email already exists')


@customers_bp.get('')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def list_customers():
    scope = resolve_scope(g.roles, 'read', RESOURCE)
    q = filter_query_by_owner(get_db().query(Customer), scope, Customer.created_by)
    term = (request.args.get('q') or '').strip()
    if term:
        like = f'%{term}%'
        q = q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.code.ilike(like)))
    q = apply_multi_sort(q, request.args.get('sort'), {'name': Customer.name, 'id': Customer.id}, Customer.id)
    return paginated(q, _customer_json)


@customers_bp.get('/<int:customer_id>')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def get_customer(customer_id: int):
    c = _customer_or_404(customer_id)
    assert_owns_record(resolve_scope(g.roles, 'read', RESOURCE), c.created_by)
    return _customer_json(c)


@customers_bp.post('')
@require_permission(('createAny', 'createOwn'), RESOURCE)
@audit_log('CUSTOMER.CREATE', entity='Customer', entity_id_key='id', meta_keys=['name'])
def create_customer():
    session = get_db()
    data = request.json or {}
    require_fields(data, ('name', 'email'))
    name = str(data['name']).strip(); email = str(data['email']).strip().lower()
    _assert_unique(name, email)
    c = Customer(name=name, email=email, code=data.get('code'), created_by=current_user_id())
    session.add(c)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description='Customer name or email already exists')
    return _customer_json(c), 201


@customers_bp.put('/<int:customer_id>')
@require_permission(('updateAny', 'updateOwn'), RESOURCE)
@audit_log('CUSTOMER.UPDATE', entity='Customer', entity_id_key='id', meta_keys=['name', 'email'])
def update_customer(customer_id: int):
    session = get_db()
    c = _customer_or_404(customer_id)
    assert_owns_record(resolve_scope(g.roles, 'update', RESOURCE), c.created_by)
    data = request.json or {}
    name = str(data.get('name', c.name) or '').strip()
    email = str(data.get('email', c.email) or '').strip().lower()
    if not name or not email:
        abort(400, description='name and email cannot be empty')
    _assert_unique(name, email, exclude_id=c.id)
    c.name, c.email = name, email
    if 'code' in data:
        c.code = data['code']
    session.commit()
    return _customer_json(c)


@customers_bp.delete('/<int:customer_id>')
@require_permission(('deleteAny', 'deleteOwn'), RESOURCE)
@audit_log('CUSTOMER.DELETE', entity='Customer', entity_id_arg='customer_id')
def delete_customer(customer_id: int):
    session = get_db()
    c = _customer_or_404(customer_id)
    assert_owns_record(resolve_scope(g.roles, 'delete', RESOURCE), c.created_by)
    session.delete(c)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description='Customer is referenced by RFQs or invoices')
    return {'success': True, 'id': customer_id}
