from functools import wraps

from flask import g
from flask_login import current_user

from utils.errors import Forbidden, TokenInvalid


def bearer_token(request):
    """Token from an ``Authorization: Bearer <token>`` header, or None."""
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def token_required(f):
    """Like ``login_required`` but raises so the API error handler renders the 401."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise TokenInvalid(getattr(g, 'auth_error', None) or 'Authentication required')
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    @wraps(f)
    @token_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise Forbidden('Admin privileges required')
        return f(*args, **kwargs)
    return decorated_function


def require_self_or_admin(user_id: int):
    if current_user.id != user_id and not current_user.is_admin:
        raise Forbidden('You can only modify your own account')
