import re

from salesflow import get_db
from salesflow.models.authz import User
from test_utils_seed import ensure_user, ensure_role, auth_headers, DEFAULT_PASSWORD


def test_me_reports_token_roles(client):
    user = ensure_user('users-me@test.local', roles=('sales-person', 'user'))
    resp = client.get('/api/users/me', headers=auth_headers(client, user))
    assert resp.status_code == 200
    assert resp.get_json()['role'] == ['sales-person', 'user']
    assert client.get('/api/users/me').status_code == 401


def test_listing_users_requires_read_any(client):
    user = ensure_user('users-plain@test.local')
    admin = ensure_user('users-admin@test.local', roles=('admin',))
    assert client.get('/api/users', headers=auth_headers(client, user)).status_code == 403
    resp = client.get('/api/users', query_string={'q': 'users-plain'}, headers=auth_headers(client, admin))
    assert resp.status_code == 200
    assert [u['email'] for u in resp.get_json()['data']] == ['users-plain@test.local']
    assert client.get(f'/api/users/{user.id}', headers=auth_headers(client, admin)).status_code == 200
    assert client.get('/api/users/987654', headers=auth_headers(client, admin)).status_code == 404


def test_admin_updates_user_profile_and_roles(client):
    target = ensure_user('users-target@test.local')
    admin = ensure_user('users-editor@test.local', roles=('admin',))
    ensure_role('sales-person')
    headers = auth_headers(client, admin)
    resp = client.put(f'/api/users/{target.id}', json={'name': 'Renamed', 'role': '["sales-person"]'}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['name'] == 'Renamed'
    assert resp.get_json()['role'] == ['sales-person']
    resp = client.put(f'/api/users/{target.id}', json={'role': 'sales-person,slaes-person'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Unknown role: slaes-person'
    assert client.put(f'/api/users/{target.id}', json={'password': 'short'}, headers=headers).status_code == 400
    assert client.put(f'/api/users/{target.id}', json={'email': 'users-editor@test.local'}, headers=headers).status_code == 409


def test_delete_deactivates(client):
    target = ensure_user('users-deactivate@test.local')
    admin = ensure_user('users-remover@test.local', roles=('admin',))
    headers = auth_headers(client, admin)
    assert client.delete(f'/api/users/{admin.id}', headers=headers).status_code == 400
    assert client.delete(f'/api/users/{target.id}', headers=headers).status_code == 200
    row = get_db().get(User, target.id)
    assert row.is_active is False and row.deactivated_at is not None
    resp = client.post('/api/auth/login', json={'email': 'users-deactivate@test.local', 'password': 'password123'})
    assert resp.status_code == 400


def test_deactivation_revokes_pending_code_and_tokens(client, mailbox):
    target = ensure_user('users-revoke@test.local', roles=('sales-person',))
    admin = ensure_user('users-revoker@test.local', roles=('admin',))
    old_headers = auth_headers(client, target)
    assert client.get('/api/rfqs', headers=old_headers).status_code == 200

    assert client.post('/api/auth/login', json={'email': target.email, 'password': DEFAULT_PASSWORD}).status_code == 200
    code = re.search(r'<b>(\d+)</b>', mailbox.sent[-1]['body']).group(1)
    assert client.delete(f'/api/users/{target.id}', headers=auth_headers(client, admin)).status_code == 200

    row = get_db().get(User, target.id)
    assert row.otp_code is None and row.otp_expires is None
    resp = client.post('/api/auth/verify-otp', json={'email': target.email, 'otp': code})
    assert resp.status_code == 400
    assert 'token' not in resp.get_json()

    for path in ('/api/users/me', '/api/rfqs'):
        resp = client.get(path, headers=old_headers)
        assert resp.status_code == 401
        assert resp.get_json()['error']['detail'] == 'Token has been revoked'


def test_verify_rejects_inactive_user_with_pending_code(client, mailbox):
    target = ensure_user('users-inactive-code@test.local')
    client.post('/api/auth/login', json={'email': target.email, 'password': DEFAULT_PASSWORD})
    code = re.search(r'<b>(\d+)</b>', mailbox.sent[-1]['body']).group(1)
    session = get_db()
    row = session.get(User, target.id)
    row.is_active = False
    session.commit()

    resp = client.post('/api/auth/verify-otp', json={'email': target.email, 'otp': code})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'User not found'
    assert session.get(User, target.id).otp_code == code
