# app/services/email_service.py

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

from app.core.clock import utcnow
from app.core.config import settings

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

# Submission ports that expect STARTTLS; local catchers (Mailpit on 1025) don't
STARTTLS_PORTS = {587, 2525}

OUTPASS_FIELDS = ("outpass_number", "destination", "from_date", "to_date", "status", "remarks")


def build_message(to_email: str, subject: str, html_content: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_content, "html"))
    return msg


def send_email_via_smtp(to_email: str, subject: str, html_content: str):
    """Blocking send. Failures are logged, never raised."""
    if not settings.SMTP_HOST:
        logger.debug(f"SMTP_HOST not set, skipping email to {to_email}")
        return

    msg = build_message(to_email, subject, html_content)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.ehlo()
            if settings.SMTP_PORT in STARTTLS_PORTS:
                server.starttls()
                server.ehlo()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAILS_FROM_EMAIL, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return

    logger.info(f"Email '{subject}' sent to {to_email}")


def outpass_email_context(name: str, title: str, message: str, data: dict) -> dict:
    context = {field: data.get(field) for field in OUTPASS_FIELDS}
    context.update(
        name=name,
        title=title,
        message=message,
        sent_at=utcnow().strftime("%d-%m-%Y %I:%M %p UTC"),
        dashboard_url=f"{settings.FRONTEND_URL}/dashboard",
    )
    return context


def send_outpass_email(to_email: str, name: str, title: str, message: str, data: dict):
    """Lifecycle notification email for one outpass; `data` is the notification payload."""
    if not to_email:
        return

    html_content = _templates.get_template("outpass_notification.html").render(
        outpass_email_context(name, title, message, data)
    )
    send_email_via_smtp(to_email, f"{title} - Campus Outpass", html_content)
