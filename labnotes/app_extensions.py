"""Shared Flask extensions and per-app service wiring."""

from __future__ import annotations

import os
from dataclasses import dataclass

from flask import current_app, g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager

from auth_database import AuthSessionLocal
from services.account_guard import AccountGuard
from services.auth_service import AuthService
from services.file_storage import LocalFileStore
from services.notification_dispatcher import NotificationDispatcher


def _default_rate_limit_storage() -> str:
    return os.getenv('RATE_LIMIT_STORAGE_URI', 'memory://')


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_default_rate_limit_storage(),
    default_limits=[]  # Prefer explicit per-route limits
)

login_manager = LoginManager()


@dataclass
class LabNotesServices:
    auth: AuthService
    account_guard: AccountGuard
    mailer: NotificationDispatcher
    files: LocalFileStore


def get_services() -> LabNotesServices:
    return current_app.extensions['labnotes']


def get_db():
    """Request-scoped SQLAlchemy session, closed on app context teardown."""
    if 'db' not in g:
        g.db = AuthSessionLocal()
    return g.db


def close_db(exc=None):
    db = g.pop('db', None)
    if db is not None:
        if exc is not None:
            db.rollback()
        db.close()


__all__ = ["limiter", "login_manager", "LabNotesServices", "get_services", "get_db", "close_db"]
