from datetime import datetime

from flask import Blueprint, g, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app_extensions import get_db, get_services, limiter
from config.logging_config import LogCategory, get_smart_logger
from services.user_management import serialize_user
from utils.decorators import bearer_token, token_required
from utils.errors import AccountLocked, APIError, DuplicateUser, InvalidCredentials, ValidationError
from utils.http_responses import json_response, message_response
from utils.request_parsing import json_body, text_field

logger = get_smart_logger(__name__, LogCategory.API)

auth_bp = Blueprint('auth_bp', __name__)

NEUTRAL_RESET_MESSAGE = 'If your email exists in our system, a password reset link has been sent.'


def _client_ip():
    return request.remote_addr or 'unknown'


@auth_bp.route('/login', methods=['POST'])
@limiter.limit('15 per minute')
def login():
    logger.info("Received request for login API.")
    services = get_services()
    data = json_body()
    username = text_field(data, 'username') or ''
    password = text_field(data, 'password', strip=False)

    if not username or not password:
        raise ValidationError('Username and password are required.')

    client_ip = _client_ip()
    retry_after = services.account_guard.retry_after(username, client_ip)
    if retry_after:
        logger.security_event("Locked account login attempt", f"{username} from {client_ip}")
        raise AccountLocked(meta={'retryAfter': int(retry_after) + 1})

    db = get_db()
    try:
        token, user = services.auth.login(db, username, password, client_ip, request.user_agent.string)
    except InvalidCredentials:
        remaining, lock_duration = services.account_guard.register_failure(username, client_ip)
        logger.security_event("Failed login", f"{username} from {client_ip} ({remaining} remaining)")
        if lock_duration:
            raise AccountLocked(meta={'retryAfter': int(lock_duration)})
        raise InvalidCredentials('Invalid username or password', meta={'remainingAttempts': remaining})
    except SQLAlchemyError as db_error:
        db.rollback()
        logger.error(f"Database error in login API: {db_error}", exc_info=True)
        raise APIError('Unable to process login at this time.', code='LOGIN_FAILED')

    services.account_guard.reset(username, client_ip)
    logger.info(f"User {username} authenticated successfully.")
    return json_response({'token': token, 'user': serialize_user(user), 'message': 'Login successful'})


@auth_bp.route('/register', methods=['POST'])
@limiter.limit('10 per hour')
def register():
    logger.info("Received request for register API.")
    services = get_services()
    data = json_body()
    db = get_db()
    try:
        user, token = services.auth.register(
            db,
            username=text_field(data, 'username') or '',
            email=text_field(data, 'email') or '',
            password=text_field(data, 'password', strip=False) or '',
            display_name=text_field(data, 'displayName') or None,
            ip_address=_client_ip(),
            user_agent=request.user_agent.string,
        )
    except IntegrityError:
        # Lost a race with a concurrent registration of the same name
        db.rollback()
        raise DuplicateUser()
    except SQLAlchemyError as db_error:
        db.rollback()
        logger.error(f"Database error in register API: {db_error}", exc_info=True)
        raise APIError('Failed to register user', code='REGISTRATION_FAILED')

    message = ('Registration successful. You have been granted administrator privileges.'
               if user.is_admin else 'Registration successful.')
    return json_response({'user': serialize_user(user), 'token': token, 'message': message}, status_code=201)


@auth_bp.route('/me', methods=['GET'])
@limiter.limit('120 per minute')
@token_required
def me():
    return json_response(serialize_user(current_user))


@auth_bp.route('/logout', methods=['POST'])
@limiter.limit('30 per minute')
def logout():
    token = bearer_token(request)
    try:
        get_services().auth.logout(get_db(), token)
    except SQLAlchemyError as exc:
        # The client drops its token regardless; a stale row only expires later
        get_db().rollback()
        logger.error(f"Error revoking session during logout: {exc}", exc_info=True)
    return message_response('Logout successful')


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit('5 per minute')
def forgot_password():
    services = get_services()
    email = text_field(json_body(), 'email') or ''
    if not email:
        raise ValidationError('Email is required')

    issued = services.auth.create_reset_token(get_db(), email)
    if issued is None:
        logger.info("Password reset requested for unknown email")
        return message_response(NEUTRAL_RESET_MESSAGE)

    user, token = issued
    sent = services.mailer.send_password_reset(user.email, token, user.display_name or user.username)
    if not sent:
        logger.warning("Password reset email was not delivered", context={'user': user.username})
    return message_response(NEUTRAL_RESET_MESSAGE)


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit('10 per minute')
def reset_password():
    data = json_body()
    get_services().auth.reset_password(
        get_db(),
        text_field(data, 'token') or '',
        text_field(data, 'password', strip=False) or '',
    )
    return message_response('Password reset successful. You can now log in with your new password.')


@auth_bp.route('/change-password', methods=['POST'])
@limiter.limit('10 per minute')
@token_required
def change_password():
    data = json_body()
    db = get_db()
    get_services().auth.change_password(
        db,
        current_user._get_current_object(),
        text_field(data, 'currentPassword', strip=False) or '',
        text_field(data, 'newPassword', strip=False) or '',
        keep_token=getattr(g, 'session_token', None),
    )
    return message_response('Password changed successfully')


@auth_bp.route('/health', methods=['GET'])
@limiter.limit('120 per minute')
def health():
    authenticated = bool(getattr(current_user, 'is_authenticated', False))
    return json_response({
        'ok': True,
        'authenticated': authenticated,
        'server_time': datetime.utcnow().isoformat() + 'Z'
    })
