from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_payload(status: int, title: str, detail: str, **extra):
    body = {'status': status, 'title': title, 'detail': detail}
    body.update(extra)
    return {'error': body}, status


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(
        minutes=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', '60'))
    )
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    # Close the thread-scoped session after each request
    app.config['DB_SESSION_TEARDOWN'] = True

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Single shared in-memory SQLite database across all sessions
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

    jwt.init_app(app)
    _register_jwt_callbacks()

    from .routes.auth import auth_bp
    from .routes.setup import setup_bp
    from .routes.settings import settings_bp
    from .routes.roles import roles_bp
    from .routes.branches import branches_bp
    from .routes.employees import employees_bp
    from .routes.clients import clients_bp
    from .routes.products import products_bp
    from .routes.invoices import invoices_bp
    from .routes.dashboard import dashboard_bp
    from .routes.audit import audit_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(setup_bp, url_prefix='/setup')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(roles_bp)  # /roles and /permissions
    app.register_blueprint(branches_bp, url_prefix='/branches')
    app.register_blueprint(employees_bp, url_prefix='/employees')
    app.register_blueprint(clients_bp, url_prefix='/clients')
    app.register_blueprint(products_bp, url_prefix='/products')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
    app.register_blueprint(audit_bp, url_prefix='/audit')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def _close_session(exc):
        if app.config.get('DB_SESSION_TEARDOWN') and SessionLocal is not None:
            SessionLocal.remove()

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        get_db().rollback()
        app.logger.warning('Write rejected by store: %s', e.orig)
        return _error_payload(409, 'Conflict', str(e.orig))

    @app.errorhandler(OperationalError)
    def handle_operational_error(e):
        get_db().rollback()
        app.logger.error('Store unavailable: %s', e.orig)
        return _error_payload(503, 'Service Unavailable', str(e.orig))

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            # discard edits a rejected request applied before aborting
            get_db().rollback()
            extra = {}
            if getattr(e, 'setup_required', False):
                extra['setup_required'] = True
            return _error_payload(e.code, e.name, e.description, **extra)
        app.logger.exception('Unhandled exception')
        try:
            get_db().rollback()
        except Exception:
            app.logger.exception('Rollback after unhandled exception failed')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    return app


def _register_jwt_callbacks():
    @jwt.token_in_blocklist_loader
    def _token_revoked(jwt_header, jwt_payload):
        from .services.identity import is_token_revoked
        return is_token_revoked(jwt_payload['jti'])

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _error_payload(401, 'Unauthorized', 'Token has expired')

    @jwt.revoked_token_loader
    def _revoked_token(jwt_header, jwt_payload):
        return _error_payload(401, 'Unauthorized', 'Token has been revoked')


def get_db():
    return SessionLocal()
