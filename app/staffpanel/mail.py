from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str
    html: str | None = None


class Mailer:
    def send(self, message: MailMessage) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class SmtpMailer(Mailer):
    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    sender: str

    def _build(self, message: MailMessage):
        if message.html:
            msg = MIMEMultipart("alternative")
            msg.attach(MIMEText(message.body, "plain"))
            msg.attach(MIMEText(message.html, "html"))
        else:
            msg = MIMEText(message.body, "plain")
        msg["Subject"] = message.subject
        msg["From"] = self.sender
        msg["To"] = message.to
        return msg

    def send(self, message: MailMessage) -> None:
        if not self.host:
            raise MailError("MAIL_HOST is not configured.")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(self._build(message))
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"SMTP delivery to {message.to} failed: {e}") from e
        logger.info("Sent email to %s subject=%r", message.to, message.subject)


@dataclass(frozen=True)
class LogMailer(Mailer):
    """Development backend: writes the message to the log instead of sending it."""

    sender: str

    def send(self, message: MailMessage) -> None:
        logger.info("[mail] from=%s to=%s subject=%r\n%s", self.sender, message.to, message.subject, message.body)


@dataclass
class MemoryMailer(Mailer):
    outbox: list[MailMessage] = field(default_factory=list)

    def send(self, message: MailMessage) -> None:
        self.outbox.append(message)


def mailer_from_config(config: dict[str, Any]) -> Mailer:
    backend = (config.get("MAIL_BACKEND") or "log").strip().lower()
    sender = config.get("MAIL_FROM") or "no-reply@staffpanel.local"
    if backend == "smtp":
        return SmtpMailer(
            host=config.get("MAIL_HOST") or "",
            port=int(config.get("MAIL_PORT") or 587),
            username=config.get("MAIL_USERNAME") or "",
            password=config.get("MAIL_PASSWORD") or "",
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
            sender=sender,
        )
    if backend == "memory":
        return MemoryMailer()
    if backend != "log":
        logger.warning("Unknown MAIL_BACKEND=%r; falling back to log mailer", backend)
    return LogMailer(sender=sender)


def send_mail(message: MailMessage) -> bool:
    """
    Deliver through the app's mailer. Delivery failures are logged and reported as False.
    """
    mailer: Mailer = current_app.extensions["mailer"]
    try:
        mailer.send(message)
    except MailError as e:
        current_app.logger.error("Mail delivery failed: %s", e)
        return False
    return True
