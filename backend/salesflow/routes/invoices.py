from flask import Blueprint, request, abort, g
from sqlalchemy import select

from salesflow import get_db
from salesflow.constants.permissions import INVOICE_CURRENCIES
from salesflow.models.customer import Customer
from salesflow.models.invoice import Invoice
from salesflow.decorators.auth import require_permission
from salesflow.decorators.audit import audit_log
from salesflow.services.policy import current_user_id, resolve_scope, assert_owns_record, filter_query_by_owner
from salesflow.utils.filters import apply_filters
from salesflow.utils.listing import paginated
from salesflow.utils.sorting import apply_multi_sort
from salesflow.utils.validation import require_fields, validate_choice, parse_date, parse_decimal, parse_int

invoices_bp = Blueprint('invoices', __name__)

RESOURCE = 'invoice'


def _invoice_json(inv: Invoice):
    return {
        'id': inv.id,
        'invoice_date': inv.invoice_date.isoformat(),
        'customer_id': inv.customer_id,
        'amount': str(inv.amount),
        'currency': inv.currency,
        'created_by': inv.created_by,
    }


def _invoice_or_404(invoice_id: int) -> Invoice:
    inv = get_db().execute(select(Invoice).where(Invoice.id == invoice_id)).scalar_one_or_none()
    if not inv:
        abort(404)
    return inv


def _apply_payload(inv: Invoice, data: dict):
    if 'invoice_date' in data:
        inv.invoice_date = parse_date(data['invoice_date'], 'invoice_date')
    if 'customer_id' in data:
        cid = parse_int(data['customer_id'], 'customer_id')
        if get_db().execute(select(Customer.id).where(Customer.id == cid)).first() is None:
            abort(400, description='customer_id not found')
        inv.customer_id = cid
    if 'amount' in data:
        inv.amount = parse_decimal(data['amount'], 'amount')
    if 'currency' in data:
        inv.currency = validate_choice(str(data['currency']).upper(), INVOICE_CURRENCIES, 'currency')


@invoices_bp.get('')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def list_invoices():
    scope = resolve_scope(g.roles, 'read', RESOURCE)
    q = filter_query_by_owner(get_db().query(Invoice), scope, Invoice.created_by)
    filter_specs = {
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Invoice.customer_id == v)},
        'currency': {'op': lambda qu, v: qu.filter(Invoice.currency == v), 'validate': lambda v: v in INVOICE_CURRENCIES},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'invoice_date': Invoice.invoice_date, 'amount': Invoice.amount, 'id': Invoice.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Invoice.id)
    return paginated(q, _invoice_json)


@invoices_bp.get('/<int:invoice_id>')
@require_permission(('readAny', 'readOwn'), RESOURCE)
def get_invoice(invoice_id: int):
    inv = _invoice_or_404(invoice_id)
    assert_owns_record(resolve_scope(g.roles, 'read', RESOURCE), inv.created_by)
    return _invoice_json(inv)


@invoices_bp.post('')
@require_permission(('createAny', 'createOwn'), RESOURCE)
@audit_log('INVOICE.CREATE', entity='Invoice', entity_id_key='id', meta_keys=['amount', 'currency'])
def create_invoice():
    session = get_db()
    data = request.json or {}
    require_fields(data, ('invoice_date', 'customer_id', 'amount', 'currency'))
    inv = Invoice(created_by=current_user_id())
    _apply_payload(inv, data)
    session.add(inv)
    session.commit()
    return _invoice_json(inv), 201


@invoices_bp.put('/<int:invoice_id>')
@require_permission(('updateAny', 'updateOwn'), RESOURCE)
@audit_log('INVOICE.UPDATE', entity='Invoice', entity_id_key='id', meta_keys=['amount', 'currency'])
def update_invoice(invoice_id: int):
    session = get_db()
    inv = _invoice_or_404(invoice_id)
    assert_owns_record(resolve_scope(g.roles, 'update', RESOURCE), inv.created_by)
    _apply_payload(inv, request.json or {})
    session.commit()
    return _invoice_json(inv)


@invoices_bp.delete('/<int:invoice_id>')
@require_permission(('deleteAny', 'deleteOwn'), RESOURCE)
@audit_log('INVOICE.DELETE', entity='Invoice', entity_id_arg='invoice_id')
def delete_invoice(invoice_id: int):
    session = get_db()
    inv = _invoice_or_404(invoice_id)
    assert_owns_record(resolve_scope(g.roles, 'delete', RESOURCE), inv.created_by)
    session.delete(inv)
    session.commit()
    return {'success': True, 'id': invoice_id}
