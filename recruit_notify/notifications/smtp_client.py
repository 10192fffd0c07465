"""SMTP transport for email delivery.

This module provides a thin wrapper around Python's smtplib with support for
TLS/SSL, authentication and connection lifecycle management, plus the
EmailTransport interface the delivery engine sends through.
"""

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Callable, Optional, Sequence

from email_validator import EmailNotValidError, validate_email

from recruit_notify.config.environment import EnvironmentConfig
from recruit_notify.config.models import EmailConfig

from .models import Attachment, TransportError

logger = logging.getLogger(__name__)


class EmailTransport(ABC):
    """Sends one fully rendered message."""

    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body: str,
        is_html: bool = True,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        """Deliver a message.

        Raises:
            TransportError: If delivery fails
        """


class SMTPClient:
    """Wrapper around smtplib for sending email messages.

    Handles connection lifecycle, TLS/SSL negotiation and authentication.
    Designed to be easily mockable for testing.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """Initialize SMTP client with optional factory injection.

        Args:
            smtp_factory: Factory function for creating SMTP instances (for mocking)
            smtp_ssl_factory: Factory function for creating SMTP_SSL instances (for mocking)
        """
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(
        self,
        message: EmailMessage,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
    ) -> None:
        """Send an email message via SMTP.

        Port 465 uses implicit TLS; any other port uses STARTTLS when ``use_tls``.

        Raises:
            TransportError: If message delivery fails
        """
        smtp = None
        try:
            if env_config.smtp_port == 465:
                logger.debug(
                    f"Connecting to {env_config.smtp_host}:{env_config.smtp_port} with implicit TLS"
                )
                context = ssl.create_default_context()
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host, env_config.smtp_port, context=context
                )
            else:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port}")
                smtp = self.smtp_factory(env_config.smtp_host, env_config.smtp_port)

                if use_tls:
                    logger.debug("Upgrading connection with STARTTLS")
                    context = ssl.create_default_context()
                    smtp.starttls(context=context)

            if env_config.smtp_user and env_config.smtp_pass:
                logger.debug(f"Authenticating as {env_config.smtp_user}")
                smtp.login(env_config.smtp_user, env_config.smtp_pass)
            else:
                logger.debug("No authentication credentials provided, proceeding without auth")

            smtp.send_message(message)
            logger.debug(f"Message sent successfully to {message['To']}")

        except smtplib.SMTPException as e:
            error_msg = f"SMTP error during message delivery: {e}"
            logger.error(error_msg)
            raise TransportError(error_msg) from e
        except OSError as e:
            error_msg = f"Network error during SMTP connection: {e}"
            logger.error(error_msg)
            raise TransportError(error_msg) from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


class SMTPTransport(EmailTransport):
    """EmailTransport that builds MIME messages and sends them through SMTPClient."""

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        smtp_client: Optional[SMTPClient] = None,
    ):
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.smtp_client = smtp_client or SMTPClient()
        self.sender = build_sender_address(env_config, self.email_config)

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        is_html: bool = True,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        try:
            message = build_message(self.sender, to, subject, body, is_html, attachments)
        except ValueError as e:
            raise TransportError(f"Failed to build email message: {e}") from e
        self.smtp_client.send(message, self.env_config, self.email_config.use_tls)


def build_message(
    sender: str,
    to: str,
    subject: str,
    body: str,
    is_html: bool = True,
    attachments: Sequence[Attachment] = (),
) -> EmailMessage:
    """Build a MIME message with an optional set of attachments.

    Media type parameters (e.g. ``method=PUBLISH``) are carried onto the
    attachment's Content-Type header.

    Raises:
        ValueError: If the recipient address is invalid
    """
    recipient = normalize_address(to)

    message = EmailMessage()
    message["Subject"] = subject.replace("\r", " ").replace("\n", " ")
    message["From"] = sender
    message["To"] = recipient

    if is_html:
        message.set_content(body, subtype="html")
    else:
        message.set_content(body)

    for attachment in attachments:
        maintype, subtype, params = _split_media_type(attachment.media_type)
        if maintype == "text":
            message.add_attachment(
                attachment.content.decode("utf-8"),
                subtype=subtype,
                filename=attachment.filename,
                params=params,
            )
        else:
            message.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype,
                filename=attachment.filename,
                params=params,
            )

    return message


def normalize_address(address: str) -> str:
    """Validate a single email address and return its normalized form.

    Raises:
        ValueError: If the address is invalid
    """
    try:
        return validate_email(address.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid recipient address '{address}': {e}") from e


def build_sender_address(env_config: EnvironmentConfig, email_config: Optional[EmailConfig] = None) -> str:
    """Build the 'From' address for outgoing emails.

    Prefers the configured sender address, then SMTP_USER, then a noreply
    address at the SMTP host.

    Returns:
        Formatted sender address (e.g., "Recruiting Team <hr@example.com>")
    """
    sender_name = env_config.smtp_sender_name

    if email_config is not None and email_config.sender_address:
        sender_email = str(email_config.sender_address)
    elif env_config.smtp_user:
        sender_email = env_config.smtp_user
    else:
        sender_email = f"noreply@{env_config.smtp_host}"

    return f"{sender_name} <{sender_email}>"


def _split_media_type(media_type: str) -> tuple:
    main, _, rest = media_type.partition(";")
    maintype, _, subtype = main.strip().partition("/")
    params = {}
    for part in rest.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep:
            params[key.strip()] = value.strip().strip('"')
    return maintype or "application", subtype or "octet-stream", params
