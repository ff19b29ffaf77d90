"""
ISP Project Manager
Email Service: outbound mail for notifications.

Sends a plain HTML rendering of an in-app notification via SMTP. When no
MAIL_SERVER is configured (development, tests) the message is logged and
nothing leaves the process.

Usage:
    from isp_manager.services.email_service import EmailService

    EmailService.send_notification_email(
        to_email="sales@example.com",
        title="P&L Approved",
        message='P&L for project "Acme Fiber" has been approved.',
        type="success",
        link="/projects/7",
    )
"""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)


_TYPE_COLORS = {
    "info": "#2196f3",
    "success": "#4caf50",
    "warning": "#ff9800",
    "error": "#f44336",
}

_NOTIFICATION_HTML = """\
<html><body style="font-family: Arial, sans-serif; color: #333;">
<div style="max-width: 600px; margin: 0 auto;">
  <div style="background: {color}; color: #fff; padding: 16px; text-align: center;">
    <h2 style="margin: 0;">{title}</h2>
  </div>
  <div style="padding: 16px; background: #f9f9f9; border: 1px solid #ddd;">
    <p>{message}</p>
    {button}
  </div>
  <p style="font-size: 12px; color: #777; text-align: center;">
    This is an automated message from ISP Project Manager. Please do not reply to this email.
  </p>
</div>
</body></html>"""


class EmailService:
    """
    Email sending service.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send(cls, *, to_email: str, subject: str, text_body: str, html_body: str) -> bool:
        """
        Send an email.

        Returns:
            True if the message was handed to SMTP (or logged in dev mode),
            False if the SMTP exchange failed.
        """
        if not cls.is_configured():
            logger.info("Email (dev mode): to=%s subject='%s'", to_email, subject)
            return True

        try:
            cls._send_smtp(to_email=to_email, subject=subject,
                           text_body=text_body, html_body=html_body)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email failed: to=%s error=%s", to_email, exc)
            return False
        logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        return True

    @classmethod
    def send_notification_email(cls, *, to_email: str, title: str, message: str,
                                type: str = "info", link: str | None = None) -> bool:
        """Render a notification as HTML and send it."""
        button = ""
        if link:
            url = cls._absolute_link(link)
            button = (
                f'<a href="{html.escape(url)}" style="display: inline-block; '
                f'background: {_TYPE_COLORS.get(type, _TYPE_COLORS["info"])}; color: #fff; '
                f'padding: 10px 20px; text-decoration: none;">View Details</a>'
            )
        html_body = _NOTIFICATION_HTML.format(
            color=_TYPE_COLORS.get(type, _TYPE_COLORS["info"]),
            title=html.escape(title),
            message=html.escape(message),
            button=button,
        )
        return cls.send(to_email=to_email, subject=title, text_body=message, html_body=html_body)

    @staticmethod
    def _absolute_link(link: str) -> str:
        base = (current_app.config.get("FRONTEND_URL") or "").rstrip("/")
        if link.startswith("http") or not base:
            return link
        return f"{base}{link}"

    @staticmethod
    def _send_smtp(*, to_email: str, subject: str, text_body: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{server}"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)
