from flask import Blueprint, request
from flask_login import current_user

from app_extensions import get_db
from config.logging_config import LogCategory, get_smart_logger
from services.user_management import serialize_user, user_manager
from utils.decorators import admin_required
from utils.http_responses import json_response

logger = get_smart_logger(__name__, LogCategory.API)

admin_bp = Blueprint('admin_bp', __name__)


@admin_bp.route('/users', methods=['GET'])
@admin_required
def get_user_list():
    logger.info("Received request for user list API.")
    role_filter = request.args.get('role', 'all')
    users = user_manager.list_users(get_db())
    if role_filter != 'all':
        users = [u for u in users if u.role == role_filter]
    logger.info(f"Successfully retrieved {len(users)} users.")
    return json_response([serialize_user(u) for u in users])


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    db = get_db()
    user = user_manager.require_user(db, user_id)
    user = user_manager.update_profile(db, user, request.get_json(silent=True) or {}, as_admin=True)
    logger.info(f"Admin {current_user.username} updated user {user.username}")
    return json_response(serialize_user(user))
