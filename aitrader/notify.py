"""Error notifications for the cron jobs (SMTP email, or the log when unconfigured)."""

import html
import json
import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Optional

from .config import Config, get_config

logger = logging.getLogger(__name__)


def send_email(
    to: str,
    subject: str,
    html_body: str,
    host: Optional[str],
    port: int,
    user: Optional[str],
    password: Optional[str]
) -> bool:
    """
    Send an HTML email over SMTP with STARTTLS.

    Returns:
        True if the email was sent, False if SMTP is not configured or sending failed
    """
    if not all([host, user, password, to]):
        logger.warning("SMTP is not configured; email not sent")
        return False

    try:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = user
        msg["To"] = to
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")

        with smtplib.SMTP(host, int(port)) as server:
            server.starttls()
            server.login(user, password)
            server.send_message(msg)
        logger.info(f"Email sent to {to}")
        return True
    except Exception as e:
        logger.warning(f"Failed to send email: {e}")
        return False


def describe_error(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error, indent=2, default=str)
    except (TypeError, ValueError):
        return repr(error)


def render_error_html(subject: str, message: str, context: Optional[str] = None) -> str:
    context_html = f"<p><strong>Context:</strong> {html.escape(context)}</p>" if context else ""
    return (
        '<div style="font-family: Arial, sans-serif; padding: 20px;">'
        '<h2 style="color: #b91c1c;">AITrader Cron Job Error</h2>'
        f"<p><strong>Subject:</strong> {html.escape(subject)}</p>"
        f"{context_html}"
        f'<pre style="background:#f8fafc;padding:12px;border-radius:8px;">{html.escape(message)}</pre>'
        "</div>"
    )


class CronErrorNotifier:
    """Report cron failures to the configured address, or to the log."""

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.recipient = config.cron_error_email
        self.host = config.get_secret('email.host')
        self.port = int(config.get('email.port', 587))
        self.user = config.get_secret('email.user')
        self.password = config.get_secret('email.password')

    def notify(self, subject: str, error: Any, context: Optional[str] = None) -> bool:
        """
        Report a failure; never raises.

        Returns:
            True if an email was sent
        """
        message = describe_error(error)

        if not self.recipient:
            logger.error(f"{subject} {context or ''} {message}")
            return False

        logger.warning(f"{subject}: {message}")
        return send_email(
            to=self.recipient,
            subject=subject,
            html_body=render_error_html(subject, message, context),
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
        )
