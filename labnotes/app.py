import logging
import os
import uuid

import click
from flask import Flask, g, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from auth_database import AuthSessionLocal, configure_database
from config import MailConfig, ServerConfig, get_mail_config, get_server_config
from config.logging_config import LogCategory, configure_app_logging, get_smart_logger
from app_extensions import LabNotesServices, close_db, get_db, get_services, limiter, login_manager
from services.account_guard import AccountGuard
from services.auth_service import AuthService
from services.file_storage import LocalFileStore
from services.notification_dispatcher import NotificationDispatcher
from utils.decorators import bearer_token
from utils.errors import APIError, TokenInvalid
from utils.http_responses import error_response
from utils.request_response_logger import setup_flask_request_logging

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = get_smart_logger(__name__, LogCategory.API)

SENTRY_DSN = os.getenv('SENTRY_DSN')
if SENTRY_DSN:
    sentry_logging = LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[FlaskIntegration(), sentry_logging],
        traces_sample_rate=float(os.getenv('SENTRY_TRACES_SAMPLE_RATE', '0')),
        # Request bodies carry passwords and tokens
        send_default_pii=False,
    )


def create_app(server_config: ServerConfig = None, mail_config: MailConfig = None, config_overrides=None):
    """Create and configure the Flask server for the API."""
    server_config = server_config or get_server_config()
    mail_config = mail_config or get_mail_config()
    configure_app_logging(production=server_config.is_production)

    server = Flask(__name__)
    server.secret_key = server_config.secret_key
    server.config['MAX_CONTENT_LENGTH'] = server_config.max_content_length
    server.config['MAX_AVATAR_BYTES'] = server_config.max_avatar_bytes
    server.config['JSON_SORT_KEYS'] = False
    if server_config.force_https:
        server.config['PREFERRED_URL_SCHEME'] = 'https'
    if config_overrides:
        server.config.update(config_overrides)

    configure_database(server.config.get('DATABASE_URL', server_config.database_url))

    server.extensions['labnotes'] = LabNotesServices(
        auth=AuthService(
            session_ttl_seconds=server_config.session_ttl_seconds,
            reset_ttl_seconds=server_config.reset_token_ttl_seconds,
            bcrypt_rounds=int(server.config.get('BCRYPT_ROUNDS', os.getenv('BCRYPT_ROUNDS', 12))),
        ),
        account_guard=AccountGuard(
            max_attempts=server_config.login_max_attempts,
            lockout_seconds=server_config.login_lockout_seconds,
        ),
        mailer=NotificationDispatcher(mail_config, base_url=server_config.public_base_url),
        files=LocalFileStore(server.config.get('UPLOAD_DIR', server_config.upload_dir)),
    )

    # Configure CORS for the React frontend; bearer tokens, so no cookies
    if server_config.allowed_origins:
        origins = [origin.strip() for origin in server_config.allowed_origins.split(',') if origin.strip()]
    else:
        origins = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:5000"]
    CORS(
        server,
        resources={r"/api/*": {"origins": origins}},
        expose_headers=['X-Request-ID'],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]
    )

    limiter.init_app(server)
    login_manager.init_app(server)
    server.teardown_appcontext(close_db)

    @login_manager.request_loader
    def load_user_from_request(req):
        token = bearer_token(req)
        if token is None:
            return None
        try:
            user = get_services().auth.resolve_token(get_db(), token)
        except TokenInvalid as exc:
            g.auth_error = exc.message
            return None
        g.session_token = token
        return user

    @server.errorhandler(APIError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error(f"{error.code}: {error.message}")
        return error_response(error.code, error.message, status_code=error.status_code, meta=error.meta)

    @server.errorhandler(404)
    def not_found(error):
        return error_response('NOT_FOUND', 'The requested URL was not found on the server.', status_code=404)

    @server.errorhandler(405)
    def method_not_allowed(error):
        return error_response('METHOD_NOT_ALLOWED', 'The method is not allowed for the requested URL.', status_code=405)

    @server.errorhandler(413)
    def payload_too_large(error):
        return error_response('PAYLOAD_TOO_LARGE', 'The uploaded file is too large.', status_code=413)

    @server.errorhandler(429)
    def rate_limited(error):
        return error_response('RATE_LIMITED', 'Too many requests. Please slow down.', status_code=429)

    @server.errorhandler(500)
    def internal_server_error(error):
        logger.error(f'Internal Server Error: {error}')
        return error_response('SERVER_ERROR', 'An unexpected error occurred on the server.', status_code=500)

    @server.errorhandler(Exception)
    def unhandled_exception(error):
        if isinstance(error, HTTPException):
            return error
        logger.error(f'Unhandled exception: {error}', exc_info=True)
        return error_response('SERVER_ERROR', 'An unexpected error occurred on the server.', status_code=500)

    # Request correlation IDs for tracing end-to-end
    @server.before_request
    def ensure_request_id():
        g.correlation_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex

    @server.after_request
    def add_security_headers(response):
        correlation_id = getattr(g, 'correlation_id', None)
        if correlation_id:
            response.headers['X-Request-ID'] = correlation_id
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        if request.path.startswith('/api/auth'):
            response.headers['Cache-Control'] = 'no-store'
        if server_config.strict_transport_security:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    setup_flask_request_logging(server)

    from api.auth import auth_bp
    from api.users import users_bp
    from api.admin import admin_bp
    from api.reports import reports_bp

    server.register_blueprint(auth_bp, url_prefix='/api/auth')
    server.register_blueprint(users_bp, url_prefix='/api/users')
    server.register_blueprint(admin_bp, url_prefix='/api/admin')
    server.register_blueprint(reports_bp, url_prefix='/api/reports')

    @server.cli.command('create-admin')
    @click.option('--username', default='admin', show_default=True)
    @click.option('--email', default='admin@example.com', show_default=True)
    @click.option('--password', prompt=True, hide_input=True)
    @click.option('--display-name', default='Administrator', show_default=True)
    def create_admin(username, email, password, display_name):
        """Create (or promote) an administrator account."""
        db = AuthSessionLocal()
        try:
            create_admin_user(db, username, email, password, display_name)
        finally:
            db.close()
        click.echo(f"Administrator '{username}' is ready.")

    mailer = server.extensions['labnotes'].mailer
    logger.info(f"Flask server created ({server_config.environment}); mail transport: {mailer.transport.name}")
    return server


def create_admin_user(db, username, email, password, display_name='Administrator'):
    """Bootstrap helper; skips registration rules so demo passwords are accepted."""
    from services.user_management import user_manager

    auth = AuthService(bcrypt_rounds=int(os.getenv('BCRYPT_ROUNDS', 12)))
    user = user_manager.get_user_by_username(db, username)
    if user is None:
        return user_manager.create_user(
            db,
            username=username,
            email=email,
            hashed_password=auth.get_password_hash(password),
            display_name=display_name,
            role='Administrator',
            is_admin=True,
            is_verified=True,
        )
    user.is_admin = True
    user.role = 'Administrator'
    user.hashed_password = auth.get_password_hash(password)
    db.commit()
    db.refresh(user)
    return user


if __name__ == '__main__':
    app = create_app()
    server_config = get_server_config()

    logger.info(f"Starting Flask API server on port {server_config.port}")
    app.run(debug=server_config.debug, port=server_config.port, host=server_config.host)
