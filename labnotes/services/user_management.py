"""
User management: lookups, profile/settings updates and public serialization
"""

import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from auth_database import User
from utils.errors import DuplicateUser, NotFound, ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Columns callers may change through the profile and settings endpoints
PROFILE_FIELDS = {
    'displayName': 'display_name',
    'email': 'email',
    'bio': 'bio',
    'avatarUrl': 'avatar_url',
}
SETTINGS_FIELDS = {
    's3Enabled': 's3_enabled',
    's3Endpoint': 's3_endpoint',
    's3Region': 's3_region',
    's3Bucket': 's3_bucket',
    's3AccessKey': 's3_access_key',
    's3SecretKey': 's3_secret_key',
    'smtpHost': 'smtp_host',
    'smtpPort': 'smtp_port',
    'smtpUser': 'smtp_user',
    'smtpPassword': 'smtp_password',
}
ADMIN_FIELDS = {
    'role': 'role',
    'isAdmin': 'is_admin',
    'isVerified': 'is_verified',
}


def serialize_user(user: User) -> Dict[str, Any]:
    """Public representation; never includes secrets or the password hash."""
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'displayName': user.display_name,
        'role': user.role,
        'isAdmin': bool(user.is_admin),
        'isVerified': bool(user.is_verified),
        'avatarUrl': user.avatar_url,
        'bio': user.bio,
        'lastLogin': user.last_login.isoformat() if user.last_login else None,
        's3Enabled': bool(user.s3_enabled),
        's3Endpoint': user.s3_endpoint,
        's3Region': user.s3_region,
        's3Bucket': user.s3_bucket,
        'smtpConfigured': bool(user.smtp_host and user.smtp_user and user.smtp_password),
        'createdAt': user.created_at.isoformat() if user.created_at else None,
    }


def validate_registration(username: str, email: str, password: str, display_name: Optional[str]) -> None:
    errors = []
    if len(username or '') < 3:
        errors.append('Username must be at least 3 characters')
    if not EMAIL_PATTERN.match(email or ''):
        errors.append('Invalid email format')
    if len(password or '') < 8:
        errors.append('Password must be at least 8 characters')
    if display_name is not None and len(display_name) < 2:
        errors.append('Display name must be at least 2 characters')
    if errors:
        raise ValidationError(errors[0], meta={'errors': errors})


class UserManager:
    def get_user_by_username(self, db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(func.lower(User.email) == (email or '').lower()).first()

    def get_user_by_id(self, db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def require_user(self, db: Session, user_id: int) -> User:
        user = self.get_user_by_id(db, user_id)
        if user is None:
            raise NotFound('User not found')
        return user

    def count_users(self, db: Session) -> int:
        return db.query(func.count(User.id)).scalar() or 0

    def list_users(self, db: Session) -> List[User]:
        return db.query(User).order_by(User.id).all()

    def ensure_unique(self, db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
        clauses = []
        if username:
            clauses.append(User.username == username)
        if email:
            clauses.append(func.lower(User.email) == email.lower())
        if not clauses:
            return
        query = db.query(User).filter(or_(*clauses))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        existing = query.first()
        if existing is None:
            return
        if username and existing.username == username:
            raise DuplicateUser('Username already taken')
        raise DuplicateUser('Email already in use')

    def create_user(self, db: Session, *, username: str, email: str, hashed_password: str,
                    display_name: Optional[str] = None, role: str = 'Researcher',
                    is_admin: bool = False, is_verified: bool = True) -> User:
        db_user = User(
            username=username,
            email=email,
            hashed_password=hashed_password,
            display_name=display_name or username,
            role=role,
            is_admin=is_admin,
            is_verified=is_verified,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user

    def _apply(self, user: User, changes: Dict[str, Any], allowed: Dict[str, str]) -> None:
        for key, value in changes.items():
            column = allowed.get(key)
            if column is not None:
                setattr(user, column, value)

    def update_profile(self, db: Session, user: User, changes: Dict[str, Any], *, as_admin: bool = False) -> User:
        if 'email' in changes:
            email = changes['email']
            if not EMAIL_PATTERN.match(email or ''):
                raise ValidationError('Invalid email format')
            self.ensure_unique(db, None, email, exclude_id=user.id)
        if 'displayName' in changes and len(changes['displayName'] or '') < 2:
            raise ValidationError('Display name must be at least 2 characters')

        self._apply(user, changes, PROFILE_FIELDS)
        if as_admin:
            self._apply(user, changes, ADMIN_FIELDS)
        db.commit()
        db.refresh(user)
        return user

    def update_settings(self, db: Session, user: User, changes: Dict[str, Any]) -> User:
        if changes.get('smtpPort') not in (None, ''):
            try:
                changes['smtpPort'] = int(changes['smtpPort'])
            except (TypeError, ValueError):
                raise ValidationError('SMTP port must be a number')
        if changes.get('s3Enabled'):
            merged = {key: changes.get(key, getattr(user, column)) for key, column in SETTINGS_FIELDS.items()}
            missing = [key for key in ('s3Endpoint', 's3Bucket', 's3AccessKey', 's3SecretKey') if not merged.get(key)]
            if missing:
                raise ValidationError('Object storage settings are incomplete', meta={'missing': missing})

        self._apply(user, changes, SETTINGS_FIELDS)
        db.commit()
        db.refresh(user)
        return user

    def set_avatar(self, db: Session, user: User, avatar_url: Optional[str]) -> User:
        user.avatar_url = avatar_url
        db.commit()
        db.refresh(user)
        return user


user_manager = UserManager()
