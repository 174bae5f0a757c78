from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import firebase_admin
from firebase_admin import credentials, messaging

if TYPE_CHECKING:
    from app.config import Settings
    from app.services.employee import EmployeeInfo
    from app.services.notification import NotificationWorkItem

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """A channel failed to deliver a notification."""


@runtime_checkable
class NotificationChannel(Protocol):
    """Delivers one work item to one recipient."""

    name: str

    async def send(self, recipient: EmployeeInfo, item: NotificationWorkItem) -> None: ...


class InMemoryChannel:
    """Records deliveries instead of sending them (unconfigured channels and tests)."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.sent: list[tuple[EmployeeInfo, NotificationWorkItem]] = []

    async def send(self, recipient: EmployeeInfo, item: NotificationWorkItem) -> None:
        self.sent.append((recipient, item))
        logger.debug("%s channel captured %s for %s", self.name, item.event.value, recipient.id)


class SmtpEmailChannel:
    """Email over SMTP. The blocking client runs in a worker thread."""

    name = "email"

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        sender_name: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.sender_name = sender_name
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(self, recipient: EmployeeInfo, item: NotificationWorkItem) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = item.subject
        msg["From"] = formataddr((self.sender_name, self.sender))
        msg["To"] = formataddr((recipient.full_name, recipient.email))
        msg.attach(MIMEText(item.message, "plain", "utf-8"))
        if item.html_body:
            msg.attach(MIMEText(item.html_body, "html", "utf-8"))
        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        try:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except smtplib.SMTPException as e:
            raise ChannelError(f"SMTP error: {e}") from e

    async def send(self, recipient: EmployeeInfo, item: NotificationWorkItem) -> None:
        if not recipient.email:
            raise ChannelError(f"Employee {recipient.id} has no email address")
        await asyncio.to_thread(self._send_sync, self._build_message(recipient, item))
        logger.info("Email sent to %s: %s", recipient.email, item.subject)


class FirebasePushChannel:
    """Push notifications through Firebase Cloud Messaging multicast."""

    name = "push"

    def __init__(self, credentials_path: str) -> None:
        try:
            self._app = firebase_admin.get_app()
        except ValueError:
            self._app = firebase_admin.initialize_app(credentials.Certificate(credentials_path))

    def _send_sync(self, tokens: list[str], item: NotificationWorkItem) -> messaging.BatchResponse:
        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=item.subject, body=item.message),
            data={"event": item.event.value},
        )
        return messaging.send_each_for_multicast(message, app=self._app)

    async def send(self, recipient: EmployeeInfo, item: NotificationWorkItem) -> None:
        if not recipient.device_tokens:
            return
        response = await asyncio.to_thread(self._send_sync, list(recipient.device_tokens), item)
        if response.failure_count:
            logger.warning(
                "Push to %s: %d of %d device(s) failed",
                recipient.id,
                response.failure_count,
                len(recipient.device_tokens),
            )
        if response.success_count == 0:
            raise ChannelError(f"Push delivery failed for every device of {recipient.id}")
        logger.info("Push sent to %s (%d device(s))", recipient.id, response.success_count)


def build_channels(settings: Settings) -> tuple[NotificationChannel, NotificationChannel]:
    """Email and push channels. Unconfigured ones are replaced by in-memory recorders."""
    email: NotificationChannel
    push: NotificationChannel
    if settings.smtp_host:
        email = SmtpEmailChannel(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_sender,
            sender_name=settings.email_sender_name,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    else:
        logger.warning("SMTP host not configured, email notifications are recorded in memory only")
        email = InMemoryChannel("email")

    if settings.firebase_credentials_path:
        push = FirebasePushChannel(settings.firebase_credentials_path)
    else:
        logger.warning("Firebase credentials not configured, push notifications are recorded in memory only")
        push = InMemoryChannel("push")
    return email, push
