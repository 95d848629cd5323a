import pytest

from salesflow.config.pagination import normalize_pagination, DEFAULT_LIMIT, MAX_LIMIT
from salesflow.config.settings import load_settings, parse_role_list
from salesflow.services import mail as mail_mod
from salesflow.services.mail import LogMailer, SmtpMailer, mailer_from_config


def test_settings_defaults_and_env_coercion(monkeypatch):
    monkeypatch.delenv('OTP_TTL_MINUTES', raising=False)
    monkeypatch.setenv('SMTP_PORT', '465')
    monkeypatch.setenv('SMTP_USE_TLS', 'no')
    monkeypatch.setenv('WORKFLOW_GATE_EXEMPT_ROLES', 'super-admin')
    settings = load_settings()
    assert settings['OTP_TTL_MINUTES'] == 5
    assert settings['SMTP_PORT'] == 465
    assert settings['SMTP_USE_TLS'] is False
    assert parse_role_list(settings['WORKFLOW_GATE_EXEMPT_ROLES']) == ['super-admin']


def test_settings_reject_non_integer(monkeypatch):
    monkeypatch.setenv('OTP_LENGTH', 'six')
    with pytest.raises(ValueError):
        load_settings()


def test_parse_role_list_shapes():
    assert parse_role_list(' admin , super-admin ,') == ['admin', 'super-admin']
    assert parse_role_list(['admin']) == ['admin']
    assert parse_role_list('') == []
    assert parse_role_list(None) == []


def test_normalize_pagination():
    assert normalize_pagination(None, None) == (DEFAULT_LIMIT, 1, 0)
    assert normalize_pagination('10', '3') == (10, 3, 20)
    assert normalize_pagination('100000', '0') == (MAX_LIMIT, 1, 0)
    with pytest.raises(ValueError):
        normalize_pagination('x', '1')


def test_mailer_selection():
    assert isinstance(mailer_from_config({'SMTP_HOST': ''}), LogMailer)
    mailer = mailer_from_config({'SMTP_HOST': 'smtp.test', 'SMTP_PORT': 2525, 'SMTP_USER': 'rfq@test', 'SMTP_PASS': 'pw'})
    assert isinstance(mailer, SmtpMailer)
    assert mailer.sender == 'rfq@test' and mailer.port == 2525


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append('starttls')

    def login(self, user, password):
        self.calls.append(('login', user))

    def sendmail(self, sender, to, msg):
        self.calls.append(('sendmail', sender, tuple(to), msg))


def test_smtp_mailer_uses_starttls_and_rfq_sender(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mail_mod.smtplib, 'SMTP', FakeSMTP)
    SmtpMailer('smtp.test', 587, 'rfq@test', 'pw').send('to@test', 'Your Login OTP', '<p>hi</p>')
    smtp = FakeSMTP.instances[-1]
    assert smtp.calls[0] == 'starttls'
    assert smtp.calls[1] == ('login', 'rfq@test')
    _, sender, to, msg = smtp.calls[2]
    assert sender == 'rfq@test' and to == ('to@test',)
    assert '"RFQ login" <rfq@test>' in msg


def test_smtp_mailer_implicit_tls_port(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mail_mod.smtplib, 'SMTP_SSL', FakeSMTP)
    SmtpMailer('smtp.test', 465, '', '', sender='noreply@test').send('to@test', 's', 'b')
    assert FakeSMTP.instances[-1].calls == [('sendmail', 'noreply@test', ('to@test',), FakeSMTP.instances[-1].calls[0][3])]


def test_smtp_failure_propagates(monkeypatch):
    def refuse(*a, **k):
        raise OSError('connection refused')
    monkeypatch.setattr(mail_mod.smtplib, 'SMTP', refuse)
    with pytest.raises(OSError):
        SmtpMailer('smtp.test', 587, '', '').send('to@test', 's', 'b')
