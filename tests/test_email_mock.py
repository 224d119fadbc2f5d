import pytest
from unittest.mock import patch, MagicMock
from app.services.email_service import send_outpass_email
from app.services.notification_service import render_notification
from app.models.enums import NotificationKind

OUTPASS_DATA = {
    "outpass_id": "7b1f3c2e-0d7a-4a55-9d0e-6c3c8f1e2a10",
    "outpass_number": "OP-20250314-0007",
    "destination": "Varanasi",
    "from_date": "2025-03-15T09:00:00",
    "to_date": "2025-03-16T18:00:00",
    "status": "approved",
}


@pytest.fixture
def smtp_settings():
    with patch("app.services.email_service.settings") as mock_settings:
        mock_settings.SMTP_HOST = "smtp.test.local"
        mock_settings.SMTP_PORT = 587
        mock_settings.SMTP_USER = "mailer"
        mock_settings.SMTP_PASSWORD = "secret"
        mock_settings.EMAILS_FROM_EMAIL = "no-reply@campus.test"
        mock_settings.EMAILS_FROM_NAME = "Campus Outpass"
        mock_settings.FRONTEND_URL = "http://localhost:5173"
        yield mock_settings


@patch("app.services.email_service.smtplib.SMTP")
def test_send_outpass_email(mock_smtp, smtp_settings):
    mock_server_instance = MagicMock()
    mock_smtp.return_value.__enter__.return_value = mock_server_instance

    title, message = render_notification(NotificationKind.Approved, OUTPASS_DATA)
    send_outpass_email("asha@example.com", "Asha Verma", title, message, OUTPASS_DATA)

    # Submission port: TLS + login
    mock_server_instance.starttls.assert_called()
    mock_server_instance.login.assert_called_with("mailer", "secret")
    mock_server_instance.sendmail.assert_called()

    recipient = mock_server_instance.sendmail.call_args[0][1]
    assert recipient == "asha@example.com"


@patch("app.services.email_service.smtplib.SMTP")
def test_email_skipped_without_smtp_host(mock_smtp):
    # Tests run with SMTP_HOST unset
    send_outpass_email("asha@example.com", "Asha", "Outpass Approved", "msg", OUTPASS_DATA)
    mock_smtp.assert_not_called()


@patch("app.services.email_service.smtplib.SMTP")
def test_smtp_failure_is_swallowed(mock_smtp, smtp_settings):
    mock_smtp.side_effect = ConnectionRefusedError("no server")

    # Must not raise
    send_outpass_email("asha@example.com", "Asha", "Outpass Approved", "msg", OUTPASS_DATA)


def test_notification_text_uses_payload():
    title, message = render_notification(NotificationKind.Created, OUTPASS_DATA)

    assert title == "Outpass Requested"
    assert "OP-20250314-0007" in message
    assert "Varanasi" in message


def test_notification_text_tolerates_missing_fields():
    _, message = render_notification(NotificationKind.Created, {})
    assert "Outpass - to -" in message
