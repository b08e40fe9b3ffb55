"""
Reporting engine: renders notebook report sections to PDF for email delivery.
"""

import re
from datetime import datetime
from html import escape
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from config.logging_config import get_smart_logger

logger = get_smart_logger(__name__)

_FILENAME_UNSAFE = re.compile(r'[^A-Za-z0-9_-]+')


def report_filename(report_name: str, generated_at: Optional[datetime] = None) -> str:
    stamp = (generated_at or datetime.now()).strftime('%Y%m%d')
    slug = _FILENAME_UNSAFE.sub('_', report_name or 'report').strip('_').lower() or 'report'
    return f'{slug}_{stamp}.pdf'


def normalize_sections(raw: Any) -> List[Dict[str, str]]:
    """Accept ``[{heading, body}]``; anything else yields no sections."""
    sections = []
    if not isinstance(raw, list):
        return sections
    for item in raw:
        if not isinstance(item, dict):
            continue
        heading = str(item.get('heading') or '').strip()
        body = str(item.get('body') or '').strip()
        if heading or body:
            sections.append({'heading': heading, 'body': body})
    return sections


def build_report_pdf(report_name: str, author: str, sections: Sequence[Dict[str, str]],
                     generated_at: Optional[datetime] = None) -> bytes:
    generated_at = generated_at or datetime.now()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=report_name, author=author)
    styles = getSampleStyleSheet()
    story = []

    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=18,
        spaceAfter=24,
        alignment=1  # Center
    )
    story.append(Paragraph(escape(report_name), title_style))

    meta_table = Table([
        ['Prepared by:', author],
        ['Generated:', generated_at.strftime('%Y-%m-%d %H:%M:%S')],
        ['Sections:', str(len(sections))],
    ])
    meta_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#4a6cf7')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    story.append(meta_table)
    story.append(Spacer(1, 18))

    for section in sections:
        if section.get('heading'):
            story.append(Paragraph(escape(section['heading']), styles['Heading2']))
        for paragraph in (section.get('body') or '').split('\n\n'):
            if paragraph.strip():
                story.append(Paragraph(escape(paragraph).replace('\n', '<br/>'), styles['BodyText']))
        story.append(Spacer(1, 12))

    doc.build(story)
    pdf = buffer.getvalue()
    logger.info(f"Rendered report '{report_name}' ({len(pdf)} bytes)")
    return pdf
