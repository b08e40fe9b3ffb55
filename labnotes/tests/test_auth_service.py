from datetime import datetime, timedelta

import pytest

from auth_database import AuthSessionLocal, UserSession, configure_database
from services.auth_service import AuthService, hash_token
from utils.errors import DuplicateUser, InvalidCredentials, TokenInvalid, ValidationError


@pytest.fixture
def db():
    configure_database('sqlite://')
    session = AuthSessionLocal()
    yield session
    session.close()


@pytest.fixture
def auth():
    return AuthService(session_ttl_seconds=3600, bcrypt_rounds=4)


def test_first_registered_user_becomes_admin(db, auth):
    first, _ = auth.register(db, 'alice', 'alice@example.com', 'password123')
    second, _ = auth.register(db, 'bob', 'bob@example.com', 'password123', display_name='Bob B')
    assert first.is_admin and first.role == 'Administrator'
    assert not second.is_admin and second.role == 'Researcher'
    assert second.display_name == 'Bob B'


def test_register_trims_and_checks_duplicates(db, auth):
    auth.register(db, '  alice ', 'alice@example.com', 'password123')
    with pytest.raises(DuplicateUser):
        auth.register(db, 'alice', 'other@example.com', 'password123')


def test_register_validation(db, auth):
    with pytest.raises(ValidationError) as excinfo:
        auth.register(db, 'alice', 'alice@example.com', 'password123', display_name='A')
    assert excinfo.value.message == 'Display name must be at least 2 characters'


def test_tokens_are_stored_hashed(db, auth):
    user, token = auth.register(db, 'alice', 'alice@example.com', 'password123')
    row = db.query(UserSession).filter(UserSession.user_id == user.id).one()
    assert row.token_hash == hash_token(token)
    assert token not in row.token_hash
    assert row.expires_at > datetime.utcnow() + timedelta(minutes=59)


def test_login_and_resolve(db, auth):
    auth.register(db, 'alice', 'alice@example.com', 'password123')
    token, user = auth.login(db, 'alice', 'password123', '127.0.0.1', 'pytest')
    assert user.last_login is not None
    assert auth.resolve_token(db, token).id == user.id


def test_login_wrong_password(db, auth):
    auth.register(db, 'alice', 'alice@example.com', 'password123')
    with pytest.raises(InvalidCredentials):
        auth.login(db, 'alice', 'password124')


def test_corrupt_hash_is_a_failed_login(db, auth):
    user, _ = auth.register(db, 'alice', 'alice@example.com', 'password123')
    user.hashed_password = 'not-a-bcrypt-hash'
    db.commit()
    with pytest.raises(InvalidCredentials):
        auth.login(db, 'alice', 'password123')


def test_expired_token_is_rejected_and_deleted(db, auth):
    user, token = auth.register(db, 'alice', 'alice@example.com', 'password123')
    row = db.query(UserSession).filter(UserSession.user_id == user.id).one()
    row.expires_at = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(TokenInvalid) as excinfo:
        auth.resolve_token(db, token)
    assert excinfo.value.message == 'Session expired'
    assert db.query(UserSession).count() == 0


def test_resolve_unknown_and_missing_token(db, auth):
    with pytest.raises(TokenInvalid):
        auth.resolve_token(db, 'nope')
    with pytest.raises(TokenInvalid):
        auth.resolve_token(db, None)


def test_logout_is_idempotent(db, auth):
    _, token = auth.register(db, 'alice', 'alice@example.com', 'password123')
    auth.logout(db, token)
    auth.logout(db, token)
    auth.logout(db, None)
    with pytest.raises(TokenInvalid):
        auth.resolve_token(db, token)


def test_deleting_user_invalidates_tokens(db, auth):
    user, token = auth.register(db, 'alice', 'alice@example.com', 'password123')
    db.delete(user)
    db.commit()
    with pytest.raises(TokenInvalid):
        auth.resolve_token(db, token)


def test_expired_reset_token(db, auth):
    auth.register(db, 'alice', 'alice@example.com', 'password123')
    user, token = auth.create_reset_token(db, 'ALICE@example.com')
    user.reset_password_expires = datetime.utcnow() - timedelta(seconds=1)
    db.commit()
    with pytest.raises(ValidationError) as excinfo:
        auth.reset_password(db, token, 'new-password-1')
    assert excinfo.value.message == 'Password reset token has expired'
    assert user.reset_password_token is None


def test_reset_token_for_unknown_email(db, auth):
    assert auth.create_reset_token(db, 'nobody@example.com') is None
