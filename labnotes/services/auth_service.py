"""
Token issuing and session resolution.

Bearer tokens are opaque ``secrets.token_urlsafe`` strings. Only their SHA-256
digest is persisted (``user_sessions``), together with an explicit expiry, so a
leaked database does not leak usable tokens. Password reset tokens follow the
same scheme and live on the user row.
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from auth_database import User, UserSession
from config.logging_config import LogCategory, get_smart_logger
from services.user_management import UserManager, user_manager as default_user_manager, validate_registration
from utils.errors import InvalidCredentials, TokenInvalid, ValidationError

logger = get_smart_logger(__name__, LogCategory.SECURITY)

TOKEN_BYTES = 48


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class AuthService:
    def __init__(self, session_ttl_seconds: int = 7 * 24 * 3600, reset_ttl_seconds: int = 3600,
                 bcrypt_rounds: int = 12, users: Optional[UserManager] = None):
        self.session_ttl = timedelta(seconds=session_ttl_seconds)
        self.reset_ttl = timedelta(seconds=reset_ttl_seconds)
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)
        self.users = users or default_user_manager

    def verify_password(self, plain_password, hashed_password):
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            # Unknown or malformed hash in the credential store
            return False

    def get_password_hash(self, password):
        return self.pwd_context.hash(password)

    def issue_token(self, db: Session, user: User, ip_address: Optional[str] = None,
                    user_agent: Optional[str] = None) -> str:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        now = datetime.utcnow()
        db.add(UserSession(
            user_id=user.id,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + self.session_ttl,
            ip_address=ip_address,
            user_agent=(user_agent or '')[:255] or None,
        ))
        db.commit()
        return token

    def authenticate_user(self, db: Session, username: str, password: str) -> User:
        user = self.users.get_user_by_username(db, username)
        if user is None or not self.verify_password(password, user.hashed_password):
            raise InvalidCredentials()
        return user

    def login(self, db: Session, username: str, password: str, ip_address: Optional[str] = None,
              user_agent: Optional[str] = None) -> Tuple[str, User]:
        user = self.authenticate_user(db, username, password)
        user.last_login = datetime.utcnow()
        token = self.issue_token(db, user, ip_address, user_agent)
        db.refresh(user)
        logger.info(f"Issued session token for user {user.username}")
        return token, user

    def register(self, db: Session, username: str, email: str, password: str,
                 display_name: Optional[str] = None, ip_address: Optional[str] = None,
                 user_agent: Optional[str] = None) -> Tuple[User, str]:
        username = (username or '').strip()
        email = (email or '').strip()
        validate_registration(username, email, password, display_name)
        self.users.ensure_unique(db, username, email)

        # The first account on a fresh install administers it
        first_user = self.users.count_users(db) == 0
        user = self.users.create_user(
            db,
            username=username,
            email=email,
            hashed_password=self.get_password_hash(password),
            display_name=display_name,
            role='Administrator' if first_user else 'Researcher',
            is_admin=first_user,
        )
        token = self.issue_token(db, user, ip_address, user_agent)
        logger.info(f"Registered user {user.username} (admin={first_user})")
        return user, token

    def logout(self, db: Session, token: Optional[str]) -> None:
        if not token:
            return
        deleted = db.query(UserSession).filter(UserSession.token_hash == hash_token(token)).delete()
        db.commit()
        if deleted:
            logger.info("Session token revoked")

    def resolve_token(self, db: Session, token: Optional[str]) -> User:
        if not token:
            raise TokenInvalid('Authentication required')

        session = db.query(UserSession).filter(UserSession.token_hash == hash_token(token)).first()
        if session is None:
            raise TokenInvalid('Session not found')

        now = datetime.utcnow()
        if session.expires_at <= now:
            db.delete(session)
            db.commit()
            raise TokenInvalid('Session expired')

        user = session.user
        if user is None:
            raise TokenInvalid('User not found')

        session.last_used_at = now
        db.commit()
        return user

    def revoke_sessions(self, db: Session, user: User, keep_token: Optional[str] = None) -> int:
        query = db.query(UserSession).filter(UserSession.user_id == user.id)
        if keep_token:
            query = query.filter(UserSession.token_hash != hash_token(keep_token))
        count = query.delete(synchronize_session=False)
        db.commit()
        return count

    def change_password(self, db: Session, user: User, current_password: str, new_password: str,
                        keep_token: Optional[str] = None) -> None:
        if not self.verify_password(current_password or '', user.hashed_password):
            raise ValidationError('Current password is incorrect')
        if len(new_password or '') < 8:
            raise ValidationError('Password must be at least 8 characters')
        user.hashed_password = self.get_password_hash(new_password)
        db.commit()
        revoked = self.revoke_sessions(db, user, keep_token=keep_token)
        logger.info(f"Password changed for {user.username}; {revoked} other session(s) revoked")

    def create_reset_token(self, db: Session, email: str) -> Optional[Tuple[User, str]]:
        """Store a single-use reset token; ``None`` when no account matches."""
        user = self.users.get_user_by_email(db, email)
        if user is None:
            return None
        token = secrets.token_urlsafe(TOKEN_BYTES)
        user.reset_password_token = hash_token(token)
        user.reset_password_expires = datetime.utcnow() + self.reset_ttl
        db.commit()
        return user, token

    def reset_password(self, db: Session, token: str, new_password: str) -> User:
        if not token:
            raise ValidationError('Invalid or expired reset token')
        user = db.query(User).filter(User.reset_password_token == hash_token(token)).first()
        if user is None:
            raise ValidationError('Invalid or expired reset token')
        if user.reset_password_expires is None or user.reset_password_expires <= datetime.utcnow():
            user.reset_password_token = None
            user.reset_password_expires = None
            db.commit()
            raise ValidationError('Password reset token has expired')
        if len(new_password or '') < 8:
            raise ValidationError('Password must be at least 8 characters')

        user.hashed_password = self.get_password_hash(new_password)
        user.reset_password_token = None
        user.reset_password_expires = None
        db.commit()
        self.revoke_sessions(db, user)
        logger.security_event("Password reset completed", user.username)
        return user
