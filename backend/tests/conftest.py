import os, sys, pytest
# Ensure backend directory is on path so 'salesflow' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from salesflow import create_app, get_db, grant_loader
from salesflow.models.authz import Base
from test_utils_seed import RecordingMailer


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    os.environ['SMTP_HOST'] = ''
    # Tables do not exist yet, so the engine starts from the fallback grants
    app = create_app({'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256'})
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def authz(app_instance):
    return app_instance.extensions['salesflow']['engine']


@pytest.fixture(autouse=True)
def reset_grants(app_instance):
    """Each test starts and ends on the fallback grants, whatever it wrote to the store."""
    engine = app_instance.extensions['salesflow']['engine']
    engine.rebuild(lambda: [])
    yield
    get_db().rollback()
    engine.rebuild(lambda: [])


@pytest.fixture()
def load_store_grants(app_instance):
    def _load():
        return app_instance.extensions['salesflow']['engine'].rebuild(grant_loader)
    return _load


@pytest.fixture()
def mailbox(app_instance, monkeypatch):
    mailer = RecordingMailer()
    monkeypatch.setattr(app_instance.extensions['salesflow']['otp'], 'mailer', mailer)
    return mailer
