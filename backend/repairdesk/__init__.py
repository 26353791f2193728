from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    # Notification transports; a channel stays disabled until its credentials are present
    app.config['SMS_GATEWAY_URL'] = os.getenv('SMS_GATEWAY_URL')
    app.config['SMS_GATEWAY_API_KEY'] = os.getenv('SMS_GATEWAY_API_KEY')
    app.config['SMS_GATEWAY_NAME'] = os.getenv('SMS_GATEWAY_NAME')
    app.config['WHATSAPP_ACCESS_TOKEN'] = os.getenv('WHATSAPP_ACCESS_TOKEN')
    app.config['WHATSAPP_PHONE_NUMBER_ID'] = os.getenv('WHATSAPP_PHONE_NUMBER_ID')
    app.config['WHATSAPP_API_VERSION'] = os.getenv('WHATSAPP_API_VERSION', 'v18.0')
    app.config['WHATSAPP_BASE_URL'] = os.getenv('WHATSAPP_BASE_URL', 'https://graph.facebook.com')
    app.config['SMTP_HOST'] = os.getenv('SMTP_HOST')
    app.config['SMTP_PORT'] = int(os.getenv('SMTP_PORT', '587'))
    app.config['SMTP_USERNAME'] = os.getenv('SMTP_USERNAME')
    app.config['SMTP_PASSWORD'] = os.getenv('SMTP_PASSWORD')
    app.config['SMTP_USE_TLS'] = _env_bool('SMTP_USE_TLS', True)
    app.config['MAIL_FROM'] = os.getenv('MAIL_FROM', 'servis@localhost')
    app.config['NOTIFY_TIMEOUT_SECONDS'] = float(os.getenv('NOTIFY_TIMEOUT_SECONDS', '10'))
    app.config['COMPANY_PHONE'] = os.getenv('COMPANY_PHONE', '067051141')
    app.config['DEFAULT_COUNTRY_CODE'] = os.getenv('DEFAULT_COUNTRY_CODE', '381')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

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

    jwt.init_app(app)

    from .services.transports import build_sinks
    app.extensions['notification_sinks'] = build_sinks(app.config)

    from .routes.auth import auth_bp
    from .routes.clients import clients_bp
    from .routes.services import services_bp
    from .routes.spare_parts import spare_parts_bp
    from .routes.removed_parts import removed_parts_bp
    from .routes.admin import admin_bp
    from .routes.notifications import notifications_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(clients_bp, url_prefix='/clients')
    app.register_blueprint(services_bp, url_prefix='/services')
    app.register_blueprint(spare_parts_bp, url_prefix='/spare-parts')
    app.register_blueprint(removed_parts_bp, url_prefix='/removed-parts')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # Nothing from a failed request may leak into the next commit
        if SessionLocal is not None:
            SessionLocal.rollback()
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            field = getattr(e, 'field', None)
            if field:
                payload['error']['field'] = field
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

    # OpenAPI spec route (minimal)
    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>Repair Desk API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
