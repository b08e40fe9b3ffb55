"""
Lab Notes Configuration Module
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str, default: str = 'False') -> bool:
    return os.getenv(name, default).lower() == 'true'


def get_environment() -> str:
    """APP_ENV wins over NODE_ENV so the API and the bundler can share one .env"""
    return (os.getenv('APP_ENV') or os.getenv('NODE_ENV') or 'development').lower()


@dataclass
class ServerConfig:
    """Server configuration settings"""
    host: str = 'localhost'
    port: int = 5000
    environment: str = 'development'
    debug: bool = True
    secret_key: str = 'dev-secret-key-change-in-production'
    database_url: str = 'sqlite:///./labnotes.db'

    # Security settings
    # Bearer tokens expire after 7 days unless overridden
    session_ttl_seconds: int = 7 * 24 * 3600
    reset_token_ttl_seconds: int = 3600
    login_max_attempts: int = 5
    login_lockout_seconds: int = 15 * 60
    force_https: bool = False
    strict_transport_security: bool = False
    allowed_origins: Optional[str] = None

    # Upload settings
    upload_dir: str = './uploads'
    max_content_length: int = 16 * 1024 * 1024  # 16MB
    max_avatar_bytes: int = 2 * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def public_base_url(self) -> str:
        """Base URL used in links sent to users (reset emails)."""
        if self.host in ('localhost', '127.0.0.1'):
            return f'http://{self.host}:{self.port}'
        return f'https://{self.host}'


@dataclass
class MailConfig:
    """Outbound SMTP settings"""
    host: Optional[str] = None
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    sender_name: str = 'Kapelczak Notes'
    fallback_sender: str = 'noreply@kapelczak.com'
    strict_tls: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @property
    def from_address(self) -> str:
        if self.user:
            return f'"{self.sender_name}" <{self.user}>'
        return f'{self.sender_name} <{self.fallback_sender}>'


def get_server_config() -> ServerConfig:
    """Get server configuration from environment or defaults"""
    environment = get_environment()
    production = environment == 'production'

    return ServerConfig(
        host=os.getenv('SERVER_HOST', 'localhost'),
        port=int(os.getenv('SERVER_PORT', 5000)),
        environment=environment,
        debug=not production and _env_flag('FLASK_DEBUG', 'True'),
        secret_key=os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production'),
        database_url=os.getenv('AUTH_DATABASE_URL', 'sqlite:///./labnotes.db'),
        session_ttl_seconds=int(os.getenv('SESSION_TTL_SECONDS', 7 * 24 * 3600)),
        reset_token_ttl_seconds=int(os.getenv('RESET_TOKEN_TTL_SECONDS', 3600)),
        login_max_attempts=int(os.getenv('LOGIN_MAX_ATTEMPTS', 5)),
        login_lockout_seconds=int(os.getenv('LOGIN_LOCKOUT_SECONDS', 15 * 60)),
        force_https=_env_flag('FORCE_HTTPS'),
        strict_transport_security=_env_flag('STRICT_TRANSPORT_SECURITY'),
        allowed_origins=os.getenv('ALLOWED_ORIGINS'),
        upload_dir=os.getenv('UPLOAD_DIR', './uploads'),
    )


def get_mail_config() -> MailConfig:
    """SMTP settings; TLS certificate checks are strict only in production"""
    port = os.getenv('SMTP_PORT')
    return MailConfig(
        host=os.getenv('SMTP_HOST') or None,
        port=int(port) if port else 587,
        user=os.getenv('SMTP_USER') or None,
        password=os.getenv('SMTP_PASSWORD') or None,
        strict_tls=get_environment() == 'production',
    )
