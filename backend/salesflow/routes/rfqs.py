from flask import Blueprint, request, abort, g
from sqlalchemy import select

from salesflow import get_db
from salesflow.constants.permissions import RFQ_PROGRESS, RFQ_PROGRESS_DEFAULT
from salesflow.errors import Unauthorized
from salesflow.models.authz import User
from salesflow.models.customer import Customer
from salesflow.models.rfq import RFQ, RFQPreparedPerson
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.policy import SCOPE_OWN, current_user_id, resolve_scope, assert_owns_record, filter_query_by_owner
from salesflow.utils.filters import apply_filters
from salesflow.utils.listing import paginated
from salesflow.utils.sorting import apply_multi_sort
from salesflow.utils.validation import require_fields, validate_choice, parse_date, parse_decimal, parse_int, normalize_id_list

rfqs_bp = Blueprint('rfqs', __name__)

RESOURCE = 'rfq'
REQUIRED = ('receive_date', 'start_date', 'end_date', 'customer_id', 'salesperson_id', 'quantity', 'price', 'prepared_by')


def rfq_json(r: RFQ):
    return {
        'id': r.id,
        'receive_date': r.receive_date.isoformat(),
        'start_date': r.start_date.isoformat(),
        'end_date': r.end_date.isoformat(),
        'customer_id': r.customer_id,
        'salesperson_id': r.salesperson_id,
        'quantity': str(r.quantity),
        'price': r.price,
        'progress': r.progress,
        'rfq_location': r.rfq_location,
        'remarks': r.remarks,
        'prepared_by': r.prepared_by,
    }


def _rfq_or_404(rfq_id: int) -> RFQ:
    r = get_db().execute(select(RFQ).where(RFQ.id == rfq_id)).scalar_one_or_none()
    if not r:
        abort(404)
    return r


def _existing_ids(model, ids):
    return set(get_db().execute(select(model.id).where(model.id.in_(list(ids)))).scalars())


def _apply_payload(r: RFQ, data: dict):
    """Validate and copy writable fields present in ``data`` onto ``r``."""
    for field in ('receive_date', 'start_date', 'end_date'):
        if field in data:
            setattr(r, field, parse_date(data[field], field))
    if r.start_date and r.end_date and r.end_date < r.start_date:
        abort(400, description='end_date must not be before start_date')
    if 'customer_id' in data:
        cid = parse_int(data['customer_id'], 'customer_id')
        if not _existing_ids(Customer, [cid]):
            abort(400, description='customer_id not found')
        r.customer_id = cid
    if 'salesperson_id' in data:
        sid = parse_int(data['salesperson_id'], 'salesperson_id')
        if not _existing_ids(User, [sid]):
            abort(400, description='salesperson_id not found')
        r.salesperson_id = sid
    if 'quantity' in data:
        r.quantity = parse_decimal(data['quantity'], 'quantity')
    if 'price' in data:
        if not str(data['price']).strip():
            abort(400, description='price cannot be empty')
        r.price = str(data['price']).strip()
    if data.get('progress') is not None:
        r.progress = validate_choice(data['progress'], RFQ_PROGRESS, 'progress')
    for field in ('rfq_location', 'remarks'):
        if field in data:
            setattr(r, field, data[field])
    if 'prepared_by' in data:
        ids = normalize_id_list(data['prepared_by'])
        if not ids:
            abort(400, description='prepared_by must list at least one user')
        missing = set(ids) - _existing_ids(User, ids)
        if missing:
            abort(400, description=f'prepared_by unknown users: {sorted(missing)}')
        # keep surviving rows; re-inserting them would collide with uq_rfq_prepared_person
        kept = [p for p in r.prepared_people if p.user_id in ids]
        have = {p.user_id for p in kept}
        r.prepared_people = kept + [RFQPreparedPerson(user_id=uid) for uid in ids if uid not in have]


@rfqs_bp.get('')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def list_rfqs():
    scope = resolve_scope(g.roles, 'read', RESOURCE)
    q = filter_query_by_owner(get_db().query(RFQ), scope, RFQ.salesperson_id)
    filter_specs = {
        'progress': {'op': lambda qu, v: qu.filter(RFQ.progress == v), 'validate': lambda v: v in RFQ_PROGRESS},
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(RFQ.customer_id == v)},
        'salesperson_id': {'coerce': int, 'op': lambda qu, v: qu.filter(RFQ.salesperson_id == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'receive_date': RFQ.receive_date, 'end_date': RFQ.end_date, 'progress': RFQ.progress, 'id': RFQ.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, RFQ.id)
    return paginated(q, rfq_json)


@rfqs_bp.get('/<int:rfq_id>')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def get_rfq(rfq_id: int):
    r = _rfq_or_404(rfq_id)
    assert_owns_record(resolve_scope(g.roles, 'read', RESOURCE), r.salesperson_id)
    return rfq_json(r)


@rfqs_bp.post('')
@require_permission(('createAny', 'createOwn'), RESOURCE)
@audit_log('RFQ.CREATE', entity='RFQ', entity_id_key='id', meta_keys=['customer_id', 'progress'])
def create_rfq():
    session = get_db()
    data = request.json or {}
    require_fields(data, REQUIRED)
    r = RFQ(progress=RFQ_PROGRESS_DEFAULT)
    _apply_payload(r, data)
    if resolve_scope(g.roles, 'create', RESOURCE) == SCOPE_OWN and r.salesperson_id != current_user_id():
        raise Unauthorized('createOwn rfq requires the actor to be the salesperson')
    session.add(r)
    session.commit()
    return rfq_json(r), 201


@rfqs_bp.put('/<int:rfq_id>')
@require_permission(('updateAny', 'updateOwn'), RESOURCE)
@audit_log('RFQ.UPDATE', entity='RFQ', entity_id_key='id', meta_keys=['progress'])
def update_rfq(rfq_id: int):
    session = get_db()
    r = _rfq_or_404(rfq_id)
    scope = resolve_scope(g.roles, 'update', RESOURCE)
    assert_owns_record(scope, r.salesperson_id)
    _apply_payload(r, request.json or {})
    # own scope cannot hand the record to another salesperson
    assert_owns_record(scope, r.salesperson_id)
    session.commit()
    return rfq_json(r)


@rfqs_bp.delete('/<int:rfq_id>')
@require_permission(('deleteAny', 'deleteOwn'), RESOURCE)
@audit_log('RFQ.DELETE', entity='RFQ', entity_id_arg='rfq_id')
def delete_rfq(rfq_id: int):
    session = get_db()
    r = _rfq_or_404(rfq_id)
    assert_owns_record(resolve_scope(g.roles, 'delete', RESOURCE), r.salesperson_id)
    session.delete(r)
    session.commit()
    return {'success': True, 'id': rfq_id}
