import json

from flask import Blueprint, request
from flask_login import current_user

from app_extensions import get_services, limiter
from config.logging_config import LogCategory, get_smart_logger
from services.notification_dispatcher import NotificationDispatcher, mail_config_for_user
from services.reporting_engine import build_report_pdf, normalize_sections, report_filename
from utils.decorators import token_required
from utils.errors import ValidationError
from utils.request_parsing import json_body, text_field
from utils.http_responses import json_response

logger = get_smart_logger(__name__, LogCategory.API)

reports_bp = Blueprint('reports_bp', __name__)

MAX_REPORT_BYTES = 10 * 1024 * 1024


def _report_request():
    """Returns (report_name, recipient, pdf bytes or None, sections)."""
    if request.files:
        form = request.form
        upload = request.files.get('report')
        if upload is None:
            raise ValidationError('No report file provided')
        if (upload.mimetype or '').lower() != 'application/pdf':
            raise ValidationError('Reports must be PDF documents')
        pdf = upload.read(MAX_REPORT_BYTES + 1)
        if len(pdf) > MAX_REPORT_BYTES:
            raise ValidationError('Report is too large to email')
        return form.get('reportName') or upload.filename, form.get('recipient'), pdf, []

    data = json_body()
    sections = data.get('sections')
    if isinstance(sections, str):
        try:
            sections = json.loads(sections)
        except ValueError:
            raise ValidationError('Sections must be a JSON list')
    return text_field(data, 'reportName'), text_field(data, 'recipient'), None, normalize_sections(sections)


@reports_bp.route('/email', methods=['POST'])
@limiter.limit('10 per hour')
@token_required
def email_report():
    report_name, recipient, pdf, sections = _report_request()
    report_name = (report_name or '').strip()
    if not report_name:
        raise ValidationError('Report name is required')
    if pdf is None and not sections:
        raise ValidationError('Report has no content')

    user = current_user._get_current_object()
    author = user.display_name or user.username
    recipient = (recipient or user.email).strip()
    if pdf is None:
        pdf = build_report_pdf(report_name, author, sections)

    default_mailer = get_services().mailer
    mail_config = mail_config_for_user(user, default_mailer.config)
    mailer = default_mailer if mail_config is default_mailer.config else NotificationDispatcher(
        mail_config, base_url=default_mailer.base_url)

    sent = mailer.send_report(recipient, pdf, report_filename(report_name), author, report_name)
    logger.info(f"Report '{report_name}' for {user.username} sent={sent}")
    return json_response({
        'sent': sent,
        'recipient': recipient,
        'message': 'Report sent successfully' if sent else 'Report could not be emailed; mail delivery is unavailable.',
    })
