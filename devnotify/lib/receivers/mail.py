from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from devnotify.lib.broker.models import Message
from devnotify.lib.config import AppConfig

from .base import Receiver, ReceiverError, ReceiverNotConfiguredError, is_unset


logger = logging.getLogger("devnotify.receivers.mail")


class MailReceiver(Receiver):
    name = "mail"

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        password: str,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._from_address = from_address
        self._password = password
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: AppConfig) -> "MailReceiver":
        if is_unset(config.mail_smtp_host):
            raise ReceiverNotConfiguredError("missing mail smtp host")
        if is_unset(config.mail_password):
            raise ReceiverNotConfiguredError("missing mail smtp password")
        if is_unset(config.mail_from):
            raise ReceiverNotConfiguredError("missing mail smtp from")
        if is_unset(config.mail_smtp_port):
            raise ReceiverNotConfiguredError("missing mail smtp port")
        try:
            port = int(str(config.mail_smtp_port))
        except ValueError as exc:
            raise ValueError(f"Invalid mail_smtp_port: {config.mail_smtp_port}") from exc
        return cls(config.mail_smtp_host, port, config.mail_from, config.mail_password)

    def send(self, message: Message, additional_info: str) -> None:
        recipient = additional_info.strip()
        if not recipient:
            raise ReceiverError("mail receiver needs a recipient address in additional_receiver_info")
        self._send(recipient, message.title, self.create_payload(message))

    def build_email(self, to: str, subject: str, body: str) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self._from_address
        email["To"] = to
        email["Subject"] = subject
        email.set_content(body)
        return email

    def _send(self, to: str, subject: str, body: str) -> None:
        email = self.build_email(to, subject, body)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
                server.login(self._from_address, self._password)
                server.send_message(email)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery to %s failed: %s", to, exc)
            raise ReceiverError(f"mail delivery to {to} failed: {exc}") from exc

    @staticmethod
    def create_payload(message: Message) -> str:
        lines = [
            f"Sender: {message.sender}",
            f"Title: {message.title}",
        ]
        if message.tags:
            lines.append(f"Tags: {', '.join(message.tags)}")
        lines.extend(["", message.body])
        return "\n".join(lines)
