from decimal import Decimal

from salesflow import get_db
from salesflow.models.rfq import RFQ
from test_utils_seed import ensure_user, auth_headers, create_customer


def _payload(customer, salesperson, prepared_by, **extra):
    body = {
        'receive_date': '2026-01-10', 'start_date': '2026-01-11', 'end_date': '2026-02-11',
        'customer_id': customer.id, 'salesperson_id': salesperson.id,
        'quantity': '25.5', 'price': '3,400 AUD', 'prepared_by': [u.id for u in prepared_by],
        'rfq_location': 'Sydney',
    }
    body.update(extra)
    return body


def test_create_rfq_with_defaults(client):
    sp = ensure_user('rfq-sp@test.local', roles=('sales-person',))
    helper = ensure_user('rfq-helper@test.local')
    customer = create_customer('RFQ Customer')
    resp = client.post('/api/rfqs', json=_payload(customer, sp, [sp, helper]), headers=auth_headers(client, sp))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['progress'] == 'Waiting for Drawing'
    assert sorted(body['prepared_by']) == sorted([sp.id, helper.id])
    assert Decimal(body['quantity']) == Decimal('25.5')


def test_create_rfq_validation(client):
    sp = ensure_user('rfq-validate@test.local', roles=('sales-person',))
    customer = create_customer('RFQ Validation Customer')
    headers = auth_headers(client, sp)
    cases = [
        _payload(customer, sp, []),
        _payload(customer, sp, [sp], progress='Almost done'),
        _payload(customer, sp, [sp], end_date='2026-01-01'),
        _payload(customer, sp, [sp], customer_id=987654),
        _payload(customer, sp, [sp], quantity='lots'),
        _payload(customer, sp, [sp], start_date='not-a-date'),
    ]
    for body in cases:
        resp = client.post('/api/rfqs', json=body, headers=headers)
        assert resp.status_code == 400, body
    body = _payload(customer, sp, [sp])
    del body['price']
    assert client.post('/api/rfqs', json=body, headers=headers).status_code == 400


def test_create_own_requires_actor_involvement(client):
    sp = ensure_user('rfq-owner-sp@test.local', roles=('sales-person',))
    user = ensure_user('rfq-owner-user@test.local')
    customer = create_customer('RFQ Own Customer')
    headers = auth_headers(client, user)
    resp = client.post('/api/rfqs', json=_payload(customer, sp, [sp]), headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'unauthorized'
    # preparing someone else's RFQ does not make it the actor's own
    resp = client.post('/api/rfqs', json=_payload(customer, sp, [user]), headers=headers)
    assert resp.status_code == 403

    resp = client.post('/api/rfqs', json=_payload(customer, user, [sp]), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    resp = client.get(f"/api/rfqs/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['salesperson_id'] == user.id
    resp = client.get('/api/rfqs', query_string={'customer_id': customer.id}, headers=headers)
    assert [r['id'] for r in resp.get_json()['data']] == [created['id']]


def test_update_own_cannot_reassign_salesperson(client, authz):
    sp = ensure_user('rfq-reassign-sp@test.local', roles=('sales-person',))
    user = ensure_user('rfq-reassign-user@test.local')
    customer = create_customer('RFQ Reassign Customer')
    authz.rebuild(lambda: [('user', 'createOwn', 'rfq'), ('user', 'readOwn', 'rfq'), ('user', 'updateOwn', 'rfq')])
    headers = auth_headers(client, user)
    created = client.post('/api/rfqs', json=_payload(customer, user, [user]), headers=headers).get_json()

    resp = client.put(f"/api/rfqs/{created['id']}", json={'remarks': 'mine'}, headers=headers)
    assert resp.status_code == 200
    resp = client.put(f"/api/rfqs/{created['id']}", json={'salesperson_id': sp.id}, headers=headers)
    assert resp.status_code == 403
    assert get_db().get(RFQ, created['id']).salesperson_id == user.id


def test_read_own_scope_and_filters(client):
    user = ensure_user('rfq-reader@test.local')
    sp = ensure_user('rfq-reader-sp@test.local', roles=('sales-person',))
    customer = create_customer('RFQ Reader Customer')
    sp_headers = auth_headers(client, sp)
    mine = client.post('/api/rfqs', json=_payload(customer, user, [sp]), headers=sp_headers).get_json()
    client.post('/api/rfqs', json=_payload(customer, sp, [sp], progress='Partially Submitted'), headers=sp_headers)

    resp = client.get(f'/api/rfqs?customer_id={customer.id}', headers=auth_headers(client, user))
    assert resp.status_code == 200
    assert [r['id'] for r in resp.get_json()['data']] == [mine['id']]

    resp = client.get('/api/rfqs', query_string={'customer_id': customer.id, 'progress': 'Partially Submitted'}, headers=sp_headers)
    data = resp.get_json()['data']
    assert len(data) == 1 and data[0]['progress'] == 'Partially Submitted'

    assert client.get('/api/rfqs?progress=Nope', headers=sp_headers).status_code == 400
    assert client.get('/api/rfqs?sort=-bogus', headers=sp_headers).status_code == 400
    assert client.get('/api/rfqs?limit=abc', headers=sp_headers).status_code == 400

    resp = client.get(f'/api/rfqs?customer_id={customer.id}&sort=-receive_date&limit=1&page=2', headers=sp_headers)
    pagination = resp.get_json()['pagination']
    assert pagination == {'total': 2, 'limit': 1, 'page': 2, 'total_pages': 2, 'returned': 1}


def test_update_progress_and_rejected_update_leaves_row_untouched(client):
    sp = ensure_user('rfq-update@test.local', roles=('sales-person',))
    other = ensure_user('rfq-update-other@test.local')
    customer = create_customer('RFQ Update Customer')
    headers = auth_headers(client, sp)
    created = client.post('/api/rfqs', json=_payload(customer, sp, [sp]), headers=headers).get_json()

    resp = client.put(f"/api/rfqs/{created['id']}", json={'progress': 'Sent to Salesperson (100%)', 'prepared_by': [sp.id, other.id]}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['progress'] == 'Sent to Salesperson (100%)'
    assert sorted(resp.get_json()['prepared_by']) == sorted([sp.id, other.id])

    resp = client.put(f"/api/rfqs/{created['id']}", json={'remarks': 'changed', 'progress': 'Bogus'}, headers=headers)
    assert resp.status_code == 400
    row = get_db().get(RFQ, created['id'])
    assert row.remarks is None and row.progress == 'Sent to Salesperson (100%)'


def test_delete_requires_delete_grant(client):
    sp = ensure_user('rfq-delete-sp@test.local', roles=('sales-person',))
    admin = ensure_user('rfq-delete-admin@test.local', roles=('admin',))
    customer = create_customer('RFQ Delete Customer')
    created = client.post('/api/rfqs', json=_payload(customer, sp, [sp]), headers=auth_headers(client, sp)).get_json()
    assert client.delete(f"/api/rfqs/{created['id']}", headers=auth_headers(client, sp)).status_code == 403
    assert client.delete(f"/api/rfqs/{created['id']}", headers=auth_headers(client, admin)).status_code == 200
    assert client.get(f"/api/rfqs/{created['id']}", headers=auth_headers(client, admin)).status_code == 404
