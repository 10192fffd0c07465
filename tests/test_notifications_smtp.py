"""Unit tests for the SMTP client and transport.

Tests the SMTP layer for:
- Connection handling (SMTP and SMTP_SSL)
- TLS/STARTTLS negotiation
- Authentication (with and without credentials)
- Error handling and connection cleanup
- MIME message building with calendar attachments
- Sender address building
"""

import smtplib
from email.message import EmailMessage
from unittest.mock import MagicMock, Mock

import pytest

from recruit_notify.config.environment import EnvironmentConfig
from recruit_notify.config.models import EmailConfig
from recruit_notify.notifications.models import CALENDAR_MEDIA_TYPE, Attachment, TransportError
from recruit_notify.notifications.smtp_client import (
    SMTPClient,
    SMTPTransport,
    build_message,
    build_sender_address,
    normalize_address,
)


@pytest.fixture
def env_config_with_auth():
    """Environment config with SMTP authentication."""
    return EnvironmentConfig(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="hr@example.com",
        smtp_pass="secret123",
        smtp_sender_name="Acme Recruiting",
    )


@pytest.fixture
def env_config_without_auth():
    """Environment config without SMTP authentication."""
    return EnvironmentConfig(smtp_host="smtp.example.com", smtp_port=25)


@pytest.fixture
def env_config_implicit_tls():
    """Environment config for implicit TLS (port 465)."""
    return EnvironmentConfig(
        smtp_host="smtp.gmail.com",
        smtp_port=465,
        smtp_user="hr@gmail.com",
        smtp_pass="apppassword",
    )


@pytest.fixture
def sample_message():
    msg = EmailMessage()
    msg["Subject"] = "Interview Scheduled - Backend Engineer"
    msg["From"] = "hr@example.com"
    msg["To"] = "jane.doe@example.com"
    msg.set_content("Test body")
    return msg


def test_smtp_client_send_with_starttls(env_config_with_auth, sample_message):
    """Port 587 connects in plain text, upgrades with STARTTLS and logs in."""
    mock_smtp = MagicMock()
    mock_factory = Mock(return_value=mock_smtp)

    client = SMTPClient(smtp_factory=mock_factory)
    client.send(sample_message, env_config_with_auth, use_tls=True)

    mock_factory.assert_called_once_with("smtp.example.com", 587)
    mock_smtp.starttls.assert_called_once()
    mock_smtp.login.assert_called_once_with("hr@example.com", "secret123")
    mock_smtp.send_message.assert_called_once_with(sample_message)
    mock_smtp.quit.assert_called_once()


def test_smtp_client_send_with_implicit_tls(env_config_implicit_tls, sample_message):
    """Port 465 uses SMTP_SSL and never STARTTLS."""
    mock_smtp_ssl = MagicMock()
    mock_ssl_factory = Mock(return_value=mock_smtp_ssl)
    mock_factory = Mock()

    client = SMTPClient(smtp_factory=mock_factory, smtp_ssl_factory=mock_ssl_factory)
    client.send(sample_message, env_config_implicit_tls, use_tls=True)

    mock_factory.assert_not_called()
    call_args = mock_ssl_factory.call_args
    assert call_args[0] == ("smtp.gmail.com", 465)
    assert "context" in call_args[1]
    mock_smtp_ssl.starttls.assert_not_called()
    mock_smtp_ssl.login.assert_called_once_with("hr@gmail.com", "apppassword")
    mock_smtp_ssl.quit.assert_called_once()


def test_smtp_client_send_without_auth(env_config_without_auth, sample_message):
    """No credentials means no login call."""
    mock_smtp = MagicMock()

    client = SMTPClient(smtp_factory=Mock(return_value=mock_smtp))
    client.send(sample_message, env_config_without_auth, use_tls=False)

    mock_smtp.starttls.assert_not_called()
    mock_smtp.login.assert_not_called()
    mock_smtp.send_message.assert_called_once_with(sample_message)


def test_smtp_client_wraps_smtp_errors(env_config_with_auth, sample_message):
    """SMTP errors surface as TransportError and the connection is still closed."""
    mock_smtp = MagicMock()
    mock_smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused(
        {"jane.doe@example.com": (550, b"mailbox unavailable")}
    )

    client = SMTPClient(smtp_factory=Mock(return_value=mock_smtp))

    with pytest.raises(TransportError, match="SMTP error"):
        client.send(sample_message, env_config_with_auth)

    mock_smtp.quit.assert_called_once()


def test_smtp_client_wraps_authentication_errors(env_config_with_auth, sample_message):
    mock_smtp = MagicMock()
    mock_smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    client = SMTPClient(smtp_factory=Mock(return_value=mock_smtp))

    with pytest.raises(TransportError):
        client.send(sample_message, env_config_with_auth)

    mock_smtp.send_message.assert_not_called()


def test_smtp_client_wraps_network_errors(env_config_with_auth, sample_message):
    """Connection failures become TransportError without a quit call."""
    client = SMTPClient(smtp_factory=Mock(side_effect=ConnectionRefusedError("refused")))

    with pytest.raises(TransportError, match="Network error"):
        client.send(sample_message, env_config_with_auth)


def test_smtp_client_ignores_quit_errors(env_config_with_auth, sample_message):
    mock_smtp = MagicMock()
    mock_smtp.quit.side_effect = smtplib.SMTPServerDisconnected("gone")

    client = SMTPClient(smtp_factory=Mock(return_value=mock_smtp))
    client.send(sample_message, env_config_with_auth)

    mock_smtp.send_message.assert_called_once()


class TestBuildMessage:
    def test_html_message_headers(self):
        message = build_message(
            "Acme Recruiting <hr@example.com>",
            "Jane.Doe@Example.com",
            "Job Offer - Backend Engineer",
            "<p>Hello</p>",
        )

        assert message["From"] == "Acme Recruiting <hr@example.com>"
        assert message["To"] == "Jane.Doe@example.com"
        assert message["Subject"] == "Job Offer - Backend Engineer"
        assert message.get_content_type() == "text/html"

    def test_plain_text_message(self):
        message = build_message("hr@example.com", "jane.doe@example.com", "Hi", "Hello", is_html=False)
        assert message.get_content_type() == "text/plain"

    def test_subject_newlines_are_flattened(self):
        message = build_message("hr@example.com", "jane.doe@example.com", "Hi\r\nBcc: x@evil.test", "Hello")
        assert "\n" not in message["Subject"]

    def test_calendar_attachment_keeps_method_param(self):
        attachment = Attachment(
            filename="interview.ics",
            content=b"BEGIN:VCALENDAR\r\nMETHOD:PUBLISH\r\nEND:VCALENDAR\r\n",
            media_type=CALENDAR_MEDIA_TYPE,
        )

        message = build_message(
            "hr@example.com", "jane.doe@example.com", "Invite", "See attached", False, [attachment]
        )

        parts = list(message.iter_attachments())
        assert len(parts) == 1
        assert parts[0].get_content_type() == "text/calendar"
        assert parts[0].get_param("method") == "PUBLISH"
        assert parts[0].get_filename() == "interview.ics"
        assert "METHOD:PUBLISH" in parts[0].get_content()

    def test_binary_attachment(self):
        attachment = Attachment(filename="offer.pdf", content=b"%PDF-1.4", media_type="application/pdf")

        message = build_message("hr@example.com", "jane.doe@example.com", "Offer", "Body", True, [attachment])

        part = next(message.iter_attachments())
        assert part.get_content_type() == "application/pdf"
        assert part.get_content() == b"%PDF-1.4"

    def test_invalid_recipient(self):
        with pytest.raises(ValueError, match="Invalid recipient"):
            build_message("hr@example.com", "not-an-address", "Hi", "Hello")


def test_normalize_address_strips_whitespace():
    assert normalize_address("  jane.doe@example.com ") == "jane.doe@example.com"


class TestSMTPTransport:
    def test_send_builds_message_and_delegates(self, env_config_with_auth):
        smtp_client = Mock()
        transport = SMTPTransport(env_config_with_auth, EmailConfig(use_tls=False), smtp_client)

        transport.send("jane.doe@example.com", "Job Offer", "<p>Hi</p>")

        message, env_config, use_tls = smtp_client.send.call_args[0]
        assert message["To"] == "jane.doe@example.com"
        assert message["From"] == "Acme Recruiting <hr@example.com>"
        assert env_config is env_config_with_auth
        assert use_tls is False

    def test_invalid_recipient_is_transport_error(self, env_config_with_auth):
        smtp_client = Mock()
        transport = SMTPTransport(env_config_with_auth, smtp_client=smtp_client)

        with pytest.raises(TransportError, match="Failed to build email message"):
            transport.send("nobody", "Hi", "Hello")

        smtp_client.send.assert_not_called()


class TestBuildSenderAddress:
    def test_prefers_configured_sender(self, env_config_with_auth):
        email_config = EmailConfig(sender_address="careers@acme.io")
        assert build_sender_address(env_config_with_auth, email_config) == "Acme Recruiting <careers@acme.io>"

    def test_falls_back_to_smtp_user(self, env_config_with_auth):
        assert build_sender_address(env_config_with_auth) == "Acme Recruiting <hr@example.com>"

    def test_falls_back_to_noreply_at_host(self, env_config_without_auth):
        assert build_sender_address(env_config_without_auth) == "Recruiting Team <noreply@smtp.example.com>"
