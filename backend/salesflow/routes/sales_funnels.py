from flask import Blueprint, request, abort, g
from sqlalchemy import select

from salesflow import get_db
from salesflow.errors import Unauthorized
from salesflow.models.authz import User
from salesflow.models.rfq import RFQ
from salesflow.models.sales_funnel import SalesFunnel
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.otp import utcnow
from salesflow.services.policy import (
    SCOPE_OWN, current_user_id, resolve_scope, assert_owns_record, filter_query_by_owner, workflow_gate,
)
from salesflow.utils.filters import apply_filters
from salesflow.utils.listing import paginated
from salesflow.utils.sorting import apply_multi_sort
from salesflow.utils.validation import require_fields, parse_date, parse_int

sales_funnels_bp = Blueprint('sales_funnels', __name__)

RESOURCE = 'sales-funnel'
REQUIRED = ('rfq_id', 'quote_date', 'sent_by', 'exp_win_date')


def sales_funnel_json(sf: SalesFunnel):
    return {
        'id': sf.id,
        'rfq_id': sf.rfq_id,
        'rfq_progress': sf.rfq.progress if sf.rfq else None,
        'quote_date': sf.quote_date.isoformat(),
        'sent_by': sf.sent_by,
        'description': sf.description,
        'exp_win_date': sf.exp_win_date.isoformat(),
        'last_updated': sf.last_updated.isoformat() if sf.last_updated else None,
        'status': sf.status,
        'remarks': sf.remarks,
    }


def _funnel_or_404(funnel_id: int) -> SalesFunnel:
    sf = get_db().execute(select(SalesFunnel).where(SalesFunnel.id == funnel_id)).scalar_one_or_none()
    if not sf:
        abort(404)
    return sf


def _apply_payload(sf: SalesFunnel, data: dict):
    for field in ('quote_date', 'exp_win_date'):
        if field in data:
            setattr(sf, field, parse_date(data[field], field))
    if 'sent_by' in data:
        uid = parse_int(data['sent_by'], 'sent_by')
        if get_db().execute(select(User.id).where(User.id == uid)).first() is None:
            abort(400, description='sent_by not found')
        sf.sent_by = uid
    for field in ('description', 'status', 'remarks'):
        if field in data:
            setattr(sf, field, data[field])
    sf.last_updated = utcnow()


@sales_funnels_bp.get('')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def list_sales_funnels():
    scope = resolve_scope(g.roles, 'read', RESOURCE)
    q = filter_query_by_owner(get_db().query(SalesFunnel), scope, SalesFunnel.sent_by)
    filter_specs = {
        'rfq_id': {'coerce': int, 'op': lambda qu, v: qu.filter(SalesFunnel.rfq_id == v)},
        'status': {'op': lambda qu, v: qu.filter(SalesFunnel.status == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'quote_date': SalesFunnel.quote_date, 'exp_win_date': SalesFunnel.exp_win_date, 'id': SalesFunnel.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, SalesFunnel.id)
    return paginated(q, sales_funnel_json)


@sales_funnels_bp.get('/<int:funnel_id>')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def get_sales_funnel(funnel_id: int):
    sf = _funnel_or_404(funnel_id)
    assert_owns_record(resolve_scope(g.roles, 'read', RESOURCE), sf.sent_by)
    return sales_funnel_json(sf)


@sales_funnels_bp.post('')
@require_permission(('createAny', 'createOwn'), RESOURCE)
@audit_log('SALES_FUNNEL.CREATE', entity='SalesFunnel', entity_id_key='id', meta_keys=['rfq_id', 'rfq_progress'])
def create_sales_funnel():
    session = get_db()
    data = request.json or {}
    require_fields(data, REQUIRED)
    rfq_id = parse_int(data['rfq_id'], 'rfq_id')
    rfq = session.execute(select(RFQ).where(RFQ.id == rfq_id)).scalar_one_or_none()
    if not rfq:
        abort(404, description='RFQ not found')
    # Raises WorkflowGateDenied unless the RFQ is far enough along or the actor is exempt
    workflow_gate().authorize_creation(g.roles, rfq.progress)
    sf = SalesFunnel(rfq_id=rfq.id, rfq=rfq)
    _apply_payload(sf, data)
    if resolve_scope(g.roles, 'create', RESOURCE) == SCOPE_OWN and sf.sent_by != current_user_id():
        raise Unauthorized('createOwn sales-funnel requires sent_by to be the actor')
    session.add(sf)
    session.commit()
    return sales_funnel_json(sf), 201


@sales_funnels_bp.put('/<int:funnel_id>')
@require_permission(('updateAny', 'updateOwn'), RESOURCE)
@audit_log('SALES_FUNNEL.UPDATE', entity='SalesFunnel', entity_id_key='id', meta_keys=['status'])
def update_sales_funnel(funnel_id: int):
    session = get_db()
    sf = _funnel_or_404(funnel_id)
    assert_owns_record(resolve_scope(g.roles, 'update', RESOURCE), sf.sent_by)
    data = request.json or {}
    if 'rfq_id' in data and parse_int(data['rfq_id'], 'rfq_id') != sf.rfq_id:
        abort(400, description='rfq_id cannot be changed; create a new Sales Funnel instead')
    _apply_payload(sf, data)
    session.commit()
    return sales_funnel_json(sf)


@sales_funnels_bp.delete('/<int:funnel_id>')
@require_permission(('deleteAny', 'deleteOwn'), RESOURCE)
@audit_log('SALES_FUNNEL.DELETE', entity='SalesFunnel', entity_id_arg='funnel_id')
def delete_sales_funnel(funnel_id: int):
    session = get_db()
    sf = _funnel_or_404(funnel_id)
    assert_owns_record(resolve_scope(g.roles, 'delete', RESOURCE), sf.sent_by)
    session.delete(sf)
    session.commit()
    return {'success': True, 'id': funnel_id}
