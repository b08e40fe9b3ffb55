import os
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, create_engine, event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool


DATABASE_URL = os.getenv("AUTH_DATABASE_URL", "sqlite:///./labnotes.db")

Base = declarative_base()
AuthSessionLocal = sessionmaker(autocommit=False, autoflush=False)
engine = None


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON;')
    cursor.close()


def configure_database(url: str = DATABASE_URL):
    """(Re)bind the session factory to ``url`` and create missing tables."""
    global engine

    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    kwargs = {"connect_args": connect_args, "pool_pre_ping": True}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    if url.startswith('sqlite'):
        event.listen(engine, 'connect', _set_sqlite_pragma)

    AuthSessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


class User(Base, UserMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="Researcher")
    is_admin = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    reset_password_token = Column(String, index=True)
    reset_password_expires = Column(DateTime)
    last_login = Column(DateTime)
    avatar_url = Column(Text)
    bio = Column(Text)

    # S3 compatible storage settings
    s3_enabled = Column(Boolean, nullable=False, default=False)
    s3_endpoint = Column(String)
    s3_region = Column(String)
    s3_bucket = Column(String)
    s3_access_key = Column(String)
    s3_secret_key = Column(String)

    # Per-user outbound mail settings
    smtp_host = Column(String)
    smtp_port = Column(Integer)
    smtp_user = Column(String)
    smtp_password = Column(String)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    def get_id(self):
        return str(self.id)

    def __repr__(self):
        return f"<User {self.username}>"


class UserSession(Base):
    """Issued bearer token; only the SHA-256 digest of the token is stored."""
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    last_used_at = Column(DateTime)
    ip_address = Column(String)
    user_agent = Column(String)

    user = relationship("User", back_populates="sessions")
