"""
Notification Dispatcher

Sends transactional email (password reset, report delivery). ``send`` never
raises: every failure becomes ``False`` plus a logged diagnostic. When SMTP
credentials are missing the dispatcher is built around a ``NullTransport``
which refuses delivery without touching the network and logs what would have
been sent.
"""

import asyncio
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional, Sequence
from urllib.parse import quote

import aiosmtplib

from config import MailConfig
from config.logging_config import LogCategory, get_smart_logger
from utils.errors import MailUnconfigured

logger = get_smart_logger(__name__, LogCategory.MAIL)


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = 'application/octet-stream'


class MailTransport:
    """Delivers a fully built MIME message or raises."""

    name = 'base'

    async def deliver(self, message: MIMEMultipart) -> None:
        raise NotImplementedError


class SMTPTransport(MailTransport):
    name = 'smtp'

    def __init__(self, config: MailConfig):
        self.config = config

    async def deliver(self, message: MIMEMultipart) -> None:
        implicit_tls = self.config.port == 465
        await aiosmtplib.send(
            message,
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.user,
            password=self.config.password,
            use_tls=implicit_tls,
            start_tls=not implicit_tls,
            validate_certs=self.config.strict_tls,
        )


class NullTransport(MailTransport):
    """Selected when mail is not configured; never opens a connection."""

    name = 'null'

    async def deliver(self, message: MIMEMultipart) -> None:
        raise MailUnconfigured()


def select_transport(config: MailConfig) -> MailTransport:
    if config.is_configured:
        return SMTPTransport(config)
    return NullTransport()


class NotificationDispatcher:
    def __init__(self, config: MailConfig, transport: Optional[MailTransport] = None,
                 base_url: str = 'http://localhost:5000'):
        self.config = config
        self.transport = transport or select_transport(config)
        self.base_url = base_url.rstrip('/')
        logger.info(f"Mail transport: {self.transport.name}")

    @property
    def is_configured(self) -> bool:
        return not isinstance(self.transport, NullTransport)

    def _build_message(self, to: str, subject: str, html: str,
                       attachments: Sequence[Attachment]) -> MIMEMultipart:
        message = MIMEMultipart('mixed')
        message['From'] = self.config.from_address
        message['To'] = to
        message['Subject'] = subject
        message.attach(MIMEText(html, 'html', 'utf-8'))
        for attachment in attachments:
            subtype = attachment.content_type.partition('/')[2]
            part = MIMEApplication(attachment.content, _subtype=subtype or 'octet-stream')
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            message.attach(part)
        return message

    async def send_async(self, to: str, subject: str, html: str,
                         attachments: Optional[Sequence[Attachment]] = None) -> bool:
        attachments = list(attachments or [])
        try:
            message = self._build_message(to, subject, html, attachments)
            await self.transport.deliver(message)
        except MailUnconfigured:
            names = ', '.join(a.filename for a in attachments) or 'none'
            logger.warning(
                "Mail not configured, message not sent",
                context={'to': to, 'subject': subject, 'attachments': names},
            )
            logger.info(f"Undelivered message body for {to}:\n{html}")
            return False
        except Exception as exc:
            logger.error(f"Failed to send email to {to}: {exc}", context={'subject': subject})
            return False

        logger.info(f"Email sent successfully to: {to}")
        return True

    def send(self, to: str, subject: str, html: str,
             attachments: Optional[Sequence[Attachment]] = None) -> bool:
        """Blocking wrapper for request handlers; returns True only on acceptance."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.send_async(to, subject, html, attachments))
        # Callers inside an event loop must await send_async
        logger.error(f"Cannot dispatch email to {to} synchronously from a running event loop")
        return False

    def reset_url(self, reset_token: str) -> str:
        return f"{self.base_url}/reset-password?token={quote(reset_token, safe='')}"

    def send_password_reset(self, to: str, reset_token: str, username: str) -> bool:
        reset_url = self.reset_url(reset_token)
        link = escape(reset_url, quote=True)
        subject = 'Kapelczak Notes - Password Reset'
        html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #4a6cf7;">Kapelczak Notes Password Reset</h2>
      <p>Hello {escape(username)},</p>
      <p>You requested to reset your password. Click the button below to set a new password:</p>
      <div style="text-align: center; margin: 30px 0;">
        <a href="{link}" style="background-color: #4a6cf7; color: white; padding: 12px 20px; text-decoration: none; border-radius: 4px; font-weight: bold;">Reset Password</a>
      </div>
      <p>If you did not request a password reset, please ignore this email or contact support if you have concerns.</p>
      <p>This link will expire in 1 hour.</p>
      <p>Alternatively, if the button doesn't work, copy and paste this URL into your browser:</p>
      <p>{link}</p>
      <p>Best regards,<br/>Kapelczak Notes Team</p>
    </div>
"""
        return self.send(to, subject, html)

    def send_report(self, to: str, pdf_bytes: bytes, filename: str, username: str, report_name: str) -> bool:
        subject = f'Kapelczak Notes - {report_name}'
        html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #4a6cf7;">Kapelczak Notes Report</h2>
      <p>Hello {escape(username)},</p>
      <p>Attached is your requested report "{escape(report_name)}".</p>
      <p>Best regards,<br/>Kapelczak Notes Team</p>
    </div>
"""
        attachments: List[Attachment] = [Attachment(filename, pdf_bytes, 'application/pdf')]
        return self.send(to, subject, html, attachments)


def mail_config_for_user(user, default: MailConfig) -> MailConfig:
    """A user's own SMTP settings take precedence over the server-wide ones."""
    if user is not None and user.smtp_host and user.smtp_user and user.smtp_password:
        return MailConfig(
            host=user.smtp_host,
            port=user.smtp_port or 587,
            user=user.smtp_user,
            password=user.smtp_password,
            strict_tls=default.strict_tls,
        )
    return default
