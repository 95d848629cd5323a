from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import logging

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_settings, parse_role_list

    app = Flask(__name__)
    app.config.update(load_settings())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logging.getLogger('salesflow').setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    # Register every table on Base.metadata
    from .models import authz, audit, customer, rfq, sales_funnel, invoice  # noqa: F401

    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(app.config['JWT_ACCESS_TOKEN_HOURS']))
    jwt.init_app(app)
    from .services.credentials import token_revoked, revoked_token_response
    jwt.token_in_blocklist_loader(token_revoked)
    jwt.revoked_token_loader(revoked_token_response)

    from .services.authz_engine import AuthorizationEngine
    from .services.workflow_gate import WorkflowGate
    from .services.otp import OtpNegotiator
    from .services.mail import mailer_from_config

    engine = AuthorizationEngine()
    engine.rebuild(grant_loader)
    app.extensions['salesflow'] = {
        'engine': engine,
        'gate': WorkflowGate(engine, parse_role_list(app.config['WORKFLOW_GATE_EXEMPT_ROLES'])),
        'otp': OtpNegotiator(
            mailer_from_config(app.config),
            ttl=timedelta(minutes=int(app.config['OTP_TTL_MINUTES'])),
            length=int(app.config['OTP_LENGTH']),
        ),
    }

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.iam import iam_bp
    from .routes.customers import customers_bp
    from .routes.rfqs import rfqs_bp
    from .routes.sales_funnels import sales_funnels_bp
    from .routes.invoices import invoices_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(iam_bp, url_prefix='/api/iam')
    app.register_blueprint(customers_bp, url_prefix='/api/customers')
    app.register_blueprint(rfqs_bp, url_prefix='/api/rfqs')
    app.register_blueprint(sales_funnels_bp, url_prefix='/api/sales-funnels')
    app.register_blueprint(invoices_bp, url_prefix='/api/invoices')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.route('/api/alive')
    def alive():
        return {'status': 'ok', 'grants_source': engine.snapshot.source}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        from .errors import DomainRejection
        # Discard half-applied changes so the next request on this session starts clean
        SessionLocal.rollback()
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            if isinstance(e, DomainRejection):
                payload['error']['kind'] = e.kind
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()


def grant_loader():
    """Read role grants from the store; the session is rolled back if the read fails."""
    from .services.grant_store import load_grant_rows
    session = get_db()
    try:
        return load_grant_rows(session)
    except Exception:
        session.rollback()
        raise
