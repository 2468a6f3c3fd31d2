"""Outbound email through fastapi-mail."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from nest.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: str | None = None


def _connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.smtp_user,
        MAIL_PASSWORD=settings.smtp_password,
        MAIL_FROM=settings.email_from,
        MAIL_FROM_NAME=settings.email_from_name,
        MAIL_PORT=settings.smtp_port,
        MAIL_SERVER=settings.smtp_host,
        MAIL_STARTTLS=settings.smtp_use_tls,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=bool(settings.smtp_user),
        VALIDATE_CERTS=True,
    )


def _build_message(email: OutgoingEmail) -> MessageSchema:
    if email.html:
        return MessageSchema(
            subject=email.subject,
            recipients=[email.to],
            body=email.html,
            subtype=MessageType.html,
        )
    return MessageSchema(
        subject=email.subject,
        recipients=[email.to],
        body=email.text,
        subtype=MessageType.plain,
    )


async def send_email(email: OutgoingEmail) -> bool:
    """Send one email. Raises on SMTP failure; returns False when SMTP is not configured."""
    if not settings.smtp_host:
        logger.debug("SMTP not configured, skipping email to %s", email.to)
        return False
    fm = FastMail(_connection_config())
    await fm.send_message(_build_message(email))
    return True


def render_notification_email(to: str, notification_type: str, title: str, message: str) -> OutgoingEmail:
    """Render the N.E.S.T. notification email for one recipient."""
    safe_title = html.escape(title)
    safe_message = html.escape(message)
    subject = "N.E.S.T. Notification"
    if notification_type == "emergency_alert":
        subject = f"EMERGENCY ALERT: {title}"
        content = (
            "<h2>Emergency Alert</h2>"
            f"<p>{safe_message}</p>"
            "<p>Please take appropriate action immediately.</p>"
        )
    elif notification_type == "report_status":
        subject = f"Report Status Update: {title}"
        content = (
            f"<h2>{safe_title}</h2>"
            f"<p>{safe_message}</p>"
            "<p>View more details on the N.E.S.T. platform.</p>"
        )
    else:
        content = f"<h2>{safe_title}</h2><p>{safe_message}</p>"

    body = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<div style="background-color: #f5f5f5; padding: 20px; text-align: center;">'
        '<h1 style="color: #333;">N.E.S.T.</h1>'
        "<p>Neighborhood Emergency &amp; Safety Tool</p>"
        "</div>"
        f'<div style="padding: 20px;">{content}</div>'
        '<div style="background-color: #f5f5f5; padding: 10px; text-align: center; font-size: 12px; color: #666;">'
        "<p>You received this email because you have notifications enabled on N.E.S.T.</p>"
        "<p>To update your notification preferences, visit your profile settings.</p>"
        "</div>"
        "</div>"
    )
    return OutgoingEmail(to=to, subject=subject, text=message, html=body)
