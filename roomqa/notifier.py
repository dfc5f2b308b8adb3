"""
Outgoing email notifications

One implementation is chosen from settings when the application starts.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Protocol

from roomqa.config import Settings

logger = logging.getLogger(__name__)

# template key -> (subject, body)
TEMPLATES: dict[str, tuple[str, str]] = {
    "welcome": (
        "Welcome to RoomQA, {name}",
        "Hi {name},\n\n"
        "Your lecturer account is ready. Create a room and share its code "
        "with your students to start collecting questions.\n",
    ),
}


class Notifier(Protocol):
    """Sends templated messages to users"""

    def send(self, template_key: str, to: str, params: dict[str, Any]) -> None: ...


def render(template_key: str, params: dict[str, Any]) -> tuple[str, str]:
    """
    Render a template

    Args:
        template_key: Key into TEMPLATES
        params: Values substituted into subject and body

    Returns:
        Tuple of (subject, body)

    Raises:
        KeyError: If the template does not exist
    """
    subject, body = TEMPLATES[template_key]
    return subject.format(**params), body.format(**params)


class LogNotifier:
    """Writes messages to the log instead of sending them"""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send(self, template_key: str, to: str, params: dict[str, Any]) -> None:
        subject, body = render(template_key, params)
        self.sent.append((to, subject, body))
        logger.info("Email to %s: %s", to, subject)


class SmtpNotifier:
    """Sends messages through an SMTP server"""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password

    def send(self, template_key: str, to: str, params: dict[str, Any]) -> None:
        subject, body = render(template_key, params)

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port) as smtp:
            smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

        logger.info("Sent %s email to %s", template_key, to)


def build_notifier(settings: Settings) -> Notifier:
    """Pick the notifier implementation named in settings"""
    if settings.notifier_backend == "smtp":
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
        )
    return LogNotifier()
