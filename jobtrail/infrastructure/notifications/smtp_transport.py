"""SMTP delivery of prepared email messages.

``smtplib`` is blocking, so each send runs in a worker thread to keep the
event loop free while the relay responds.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmtpSettings:
    """Connection settings for the outbound SMTP relay."""
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    sender: str = "no-reply@localhost"
    timeout_seconds: float = 10.0


class SmtpTransport:
    """Sends messages over SMTP, one connection per message."""

    def __init__(self, settings: SmtpSettings, smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None):
        self.settings = settings
        self._smtp_factory = smtp_factory or smtplib.SMTP

    def _send_blocking(self, message: EmailMessage) -> None:
        cfg = self.settings
        with self._smtp_factory(cfg.host, cfg.port, timeout=cfg.timeout_seconds) as smtp:
            if cfg.use_tls:
                smtp.starttls()
            if cfg.username and cfg.password:
                smtp.login(cfg.username, cfg.password)
            smtp.send_message(message)

    async def send(self, message: EmailMessage) -> None:
        """Delivers ``message``; SMTP and socket errors propagate to the caller."""
        if not message.get("From"):
            message["From"] = self.settings.sender
        logger.debug(f"Sending email via {self.settings.host}:{self.settings.port} to {message.get('To')}")
        await asyncio.to_thread(self._send_blocking, message)
