import re
from datetime import timedelta

from sqlalchemy import select

from salesflow import get_db
from salesflow.models.authz import User
from salesflow.services.otp import utcnow
from test_utils_seed import ensure_user, DEFAULT_PASSWORD


def _code_from(mailbox):
    return re.search(r'<b>(\d+)</b>', mailbox.sent[-1]['body']).group(1)


def test_register_login_verify_and_me(client, mailbox):
    resp = client.post('/api/auth/register', json={
        'name': 'Tess', 'email': 'Tess@Example.com', 'short_form': 'TS', 'password': 'longenough1',
    })
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['role'] == ['user']

    resp = client.post('/api/auth/login', json={'email': 'tess@example.com', 'password': 'longenough1'})
    assert resp.status_code == 200
    assert resp.get_json() == {'success': True, 'message': 'OTP sent to email'}
    assert mailbox.sent[-1]['to'] == 'tess@example.com'
    assert mailbox.sent[-1]['subject'] == 'Your Login OTP'

    resp = client.post('/api/auth/verify-otp', json={'email': 'tess@example.com', 'otp': _code_from(mailbox)})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['success'] is True
    assert body['user']['role'] == ['user']
    token = body['token']

    user = get_db().execute(select(User).where(User.email == 'tess@example.com')).scalar_one()
    assert user.token == token and user.otp_code is None and user.otp_expires is None

    me = client.get('/api/users/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    assert me.get_json()['email'] == 'tess@example.com'


def test_register_validation_and_duplicates(client):
    resp = client.post('/api/auth/register', json={'email': 'partial@test.local'})
    assert resp.status_code == 400
    errors = resp.get_json()['error']['errors']
    assert set(errors) == {'name', 'short_form', 'password'}

    payload = {'name': 'Dup', 'email': 'dup@test.local', 'short_form': 'DP', 'password': 'longenough1'}
    assert client.post('/api/auth/register', json=payload).status_code == 201
    assert client.post('/api/auth/register', json=payload).status_code == 409

    short = dict(payload, email='short@test.local', password='short')
    assert client.post('/api/auth/register', json=short).status_code == 400


def test_login_rejections(client, mailbox):
    ensure_user('login-reject@test.local')
    resp = client.post('/api/auth/login', json={'email': 'nobody@test.local', 'password': 'whatever1'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'User not found'
    resp = client.post('/api/auth/login', json={'email': 'login-reject@test.local', 'password': 'wrong-password'})
    assert resp.status_code == 401
    assert client.post('/api/auth/login', json={'email': 'login-reject@test.local'}).status_code == 400
    assert mailbox.sent == []


def test_verify_without_pending_code(client):
    ensure_user('no-pending@test.local')
    resp = client.post('/api/auth/verify-otp', json={'email': 'no-pending@test.local', 'otp': '123456'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'no_pending_session'


def test_verify_wrong_code_then_right_code(client, mailbox):
    ensure_user('wrong-code@test.local')
    client.post('/api/auth/login', json={'email': 'wrong-code@test.local', 'password': DEFAULT_PASSWORD})
    code = _code_from(mailbox)
    wrong = '999999' if code != '999999' else '888888'
    resp = client.post('/api/auth/verify-otp', json={'email': 'wrong-code@test.local', 'otp': wrong})
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'invalid_or_expired_code'
    resp = client.post('/api/auth/verify-otp', json={'email': 'wrong-code@test.local', 'otp': code})
    assert resp.status_code == 200
    # consumed
    resp = client.post('/api/auth/verify-otp', json={'email': 'wrong-code@test.local', 'otp': code})
    assert resp.get_json()['error']['kind'] == 'no_pending_session'


def test_expired_code_is_rejected(client, mailbox, app_instance, monkeypatch):
    ensure_user('expired@test.local')
    client.post('/api/auth/login', json={'email': 'expired@test.local', 'password': DEFAULT_PASSWORD})
    negotiator = app_instance.extensions['salesflow']['otp']
    monkeypatch.setattr(negotiator, 'clock', lambda: utcnow() + timedelta(minutes=5, seconds=1))
    resp = client.post('/api/auth/verify-otp', json={'email': 'expired@test.local', 'otp': _code_from(mailbox)})
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'invalid_or_expired_code'


def test_verify_unknown_email_and_missing_fields(client):
    assert client.post('/api/auth/verify-otp', json={'email': 'ghost@test.local', 'otp': '123456'}).status_code == 404
    assert client.post('/api/auth/verify-otp', json={'email': 'ghost@test.local'}).status_code == 400


def test_account_without_known_role_keeps_its_code(client, mailbox):
    user = ensure_user('roleless@test.local', roles=('auditor',))
    client.post('/api/auth/login', json={'email': 'roleless@test.local', 'password': DEFAULT_PASSWORD})
    resp = client.post('/api/auth/verify-otp', json={'email': 'roleless@test.local', 'otp': _code_from(mailbox)})
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'invalid_role'
    assert get_db().execute(select(User.otp_code).where(User.id == user.id)).scalar_one() is not None


def test_mail_failure_still_reports_code_sent(client, app_instance, monkeypatch):
    from test_utils_seed import RecordingMailer
    monkeypatch.setattr(app_instance.extensions['salesflow']['otp'], 'mailer', RecordingMailer(fail=True))
    ensure_user('mail-down@test.local')
    resp = client.post('/api/auth/login', json={'email': 'mail-down@test.local', 'password': DEFAULT_PASSWORD})
    assert resp.status_code == 200
    assert get_db().execute(select(User.otp_code).where(User.email == 'mail-down@test.local')).scalar_one()


def test_logout_clears_stored_token(client, mailbox):
    ensure_user('logout@test.local')
    client.post('/api/auth/login', json={'email': 'logout@test.local', 'password': DEFAULT_PASSWORD})
    token = client.post('/api/auth/verify-otp', json={'email': 'logout@test.local', 'otp': _code_from(mailbox)}).get_json()['token']
    resp = client.post('/api/users/logout', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 200
    assert get_db().execute(select(User.token).where(User.email == 'logout@test.local')).scalar_one() is None
