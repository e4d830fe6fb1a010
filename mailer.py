import logging
import smtplib
from email.message import EmailMessage
from socket import gaierror, timeout

from config_models import EmailConfig

logger = logging.getLogger(__name__)


class MailerError(Exception):
    """Exception raised for email sending errors."""

    pass


def _send(config: EmailConfig, recipient: str, subject: str, body: str) -> bool:
    """Deliver a plain-text message over SMTP with STARTTLS.

    When email is disabled in configuration the message is only logged,
    which is what development and test runs rely on.

    Raises:
        MailerError: If email sending fails.
    """
    if not config.enabled:
        logger.info(f"Email disabled, not sending '{subject}' to {recipient}")
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = config.sender
    message["To"] = recipient
    message.set_content(body)

    try:
        logger.info(f"Sending email to {recipient} with subject: {subject}")
        with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30) as server:
            server.starttls()
            if config.smtp_user:
                server.login(config.smtp_user, config.smtp_password)
            server.send_message(message)
        logger.info(f"Email sent successfully to {recipient}")
        return True

    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        raise MailerError(f"Email authentication failed: {e}")

    except smtplib.SMTPRecipientsRefused as e:
        logger.error(f"Recipients refused: {e}")
        raise MailerError(f"Email recipients refused: {e}")

    except smtplib.SMTPException as e:
        logger.error(f"SMTP error: {e}")
        raise MailerError(f"Failed to send email: {e}")

    except (gaierror, timeout) as e:
        logger.error(f"Network error while sending email: {e}")
        raise MailerError(f"Network error: could not connect to mail server: {e}")

    except OSError as e:
        logger.error(f"OS error while sending email: {e}")
        raise MailerError(f"Failed to send email: {e}")


def send_invitation(config: EmailConfig, recipient: str, link: str) -> bool:
    """Invite a tenant to register and claim their lease.

    Args:
        config: Email configuration.
        recipient: Tenant email address.
        link: Registration link carrying the invitation token.
    """
    body = (
        "You have been invited to join a lease.\n\n"
        f"Create your account to accept the invitation:\n{link}\n\n"
        "The link expires in a few days and can be used only once."
    )
    return _send(config, recipient, "Your lease invitation", body)


def send_check_request(config: EmailConfig, recipient: str, link: str) -> bool:
    """Ask a rental candidate to complete a solvency check."""
    body = (
        "A landlord has asked you to complete a solvency check.\n\n"
        f"Start here:\n{link}\n"
    )
    return _send(config, recipient, "Solvency check request", body)
