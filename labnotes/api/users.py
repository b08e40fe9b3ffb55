from flask import Blueprint, current_app, request, send_file, url_for
from flask_login import current_user

from app_extensions import get_db, get_services, limiter
from config.logging_config import LogCategory, get_smart_logger
from services.s3_service import ObjectStorageAdapter, get_storage_config
from services.user_management import serialize_user, user_manager
from utils.decorators import require_self_or_admin, token_required
from utils.errors import ValidationError
from utils.http_responses import json_response, message_response

logger = get_smart_logger(__name__, LogCategory.API)

users_bp = Blueprint('users_bp', __name__)

AVATAR_TYPES = {
    'image/jpeg': ('.jpg', '.jpeg'),
    'image/png': ('.png',),
    'image/gif': ('.gif',),
    'image/webp': ('.webp',),
}


def _avatar_namespace(user_id):
    return f'avatars-{user_id}'


def _local_avatar_name(user, avatar_url):
    """Stored file name when ``avatar_url`` points at our local avatar route."""
    prefix = url_for('users_bp.upload_avatar', user_id=user.id) + '/'
    if avatar_url and avatar_url.startswith(prefix):
        return avatar_url[len(prefix):]
    return None


def _read_avatar_upload():
    upload = request.files.get('avatar')
    if upload is None or not upload.filename:
        raise ValidationError('No avatar file provided')

    content_type = (upload.mimetype or '').lower()
    extensions = AVATAR_TYPES.get(content_type)
    if extensions is None or not upload.filename.lower().endswith(extensions):
        raise ValidationError('Please upload a JPEG, PNG, GIF, or WebP image.')

    max_bytes = current_app.config['MAX_AVATAR_BYTES']
    data = upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError('Avatar images must be 2MB or smaller.')
    if not data:
        raise ValidationError('Avatar file is empty')
    return upload.filename, content_type, data


@users_bp.route('/<int:user_id>', methods=['GET'])
@token_required
def get_user(user_id):
    user = user_manager.require_user(get_db(), user_id)
    return json_response(serialize_user(user))


@users_bp.route('/<int:user_id>', methods=['PUT'])
@token_required
def update_user(user_id):
    require_self_or_admin(user_id)
    db = get_db()
    user = user_manager.require_user(db, user_id)
    changes = request.get_json(silent=True) or {}
    user = user_manager.update_profile(db, user, changes, as_admin=bool(current_user.is_admin))
    logger.info(f"Profile updated for user {user.username}")
    return json_response(serialize_user(user))


@users_bp.route('/<int:user_id>/settings', methods=['PUT'])
@token_required
def update_settings(user_id):
    require_self_or_admin(user_id)
    db = get_db()
    user = user_manager.require_user(db, user_id)
    changes = request.get_json(silent=True) or {}
    user = user_manager.update_settings(db, user, changes)
    logger.info(f"Storage/mail settings updated for user {user.username}")
    return json_response(serialize_user(user))


@users_bp.route('/<int:user_id>/storage/test', methods=['POST'])
@limiter.limit('10 per minute')
@token_required
def test_storage(user_id):
    require_self_or_admin(user_id)
    user = user_manager.require_user(get_db(), user_id)
    config = get_storage_config(user)
    if config is None:
        return json_response({'ok': False, 'message': 'Object storage is not enabled for this account.'})
    ok = ObjectStorageAdapter(config).test_connection()
    return json_response({'ok': ok, 'message': 'Connection successful' if ok else 'Could not reach the configured bucket.'})


@users_bp.route('/<int:user_id>/avatar', methods=['POST'])
@limiter.limit('20 per minute')
@token_required
def upload_avatar(user_id):
    require_self_or_admin(user_id)
    db = get_db()
    services = get_services()
    user = user_manager.require_user(db, user_id)
    filename, content_type, data = _read_avatar_upload()
    previous = user.avatar_url

    config = get_storage_config(user)
    if config is not None:
        adapter = ObjectStorageAdapter(config)
        avatar_url = adapter.upload(data, filename, content_type)
        if adapter.owns(previous):
            adapter.delete(previous)
    else:
        stored_name = services.files.save(_avatar_namespace(user.id), data, filename)
        avatar_url = url_for('users_bp.serve_avatar', user_id=user.id, filename=stored_name)
        services.files.delete(_avatar_namespace(user.id), _local_avatar_name(user, previous))

    user_manager.set_avatar(db, user, avatar_url)
    logger.info(f"Avatar updated for user {user.username}")
    return json_response({'avatarUrl': avatar_url})


@users_bp.route('/<int:user_id>/avatar', methods=['DELETE'])
@token_required
def delete_avatar(user_id):
    require_self_or_admin(user_id)
    db = get_db()
    user = user_manager.require_user(db, user_id)
    previous = user.avatar_url

    config = get_storage_config(user)
    adapter = ObjectStorageAdapter(config) if config is not None else None
    if adapter is not None and adapter.owns(previous):
        adapter.delete(previous)
    else:
        get_services().files.delete(_avatar_namespace(user.id), _local_avatar_name(user, previous))

    user_manager.set_avatar(db, user, None)
    return message_response('Avatar removed', avatarUrl=None)


@users_bp.route('/<int:user_id>/avatar/<path:filename>', methods=['GET'])
def serve_avatar(user_id, filename):
    path = get_services().files.path_for(_avatar_namespace(user_id), filename)
    return send_file(path, max_age=86400)
