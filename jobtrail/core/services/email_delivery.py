"""Outbound email delivery with retries.

Builds plain-text messages and hands them to a transport under the
outbound-email retry policy. Message content is produced by the caller.
"""

import logging
from email.message import EmailMessage
from typing import Awaitable, Callable, Optional

from jobtrail.infrastructure.resilience.api_retry import RetryExecutor
from jobtrail.infrastructure.resilience.policies import EMAIL_POLICY, RetryPolicy

logger = logging.getLogger(__name__)

SendFunc = Callable[[EmailMessage], Awaitable[None]]


class EmailDeliveryService:
    """Sends notification emails through a transport, retrying transient SMTP failures."""

    def __init__(
        self,
        send: SendFunc,
        sender: str,
        policy: RetryPolicy = EMAIL_POLICY,
        executor: Optional[RetryExecutor] = None,
    ):
        """Initializes the service.

        Args:
            send: Transport coroutine function (e.g. ``SmtpTransport.send``).
            sender: Address placed in the From header.
            policy: Retry policy for each send.
            executor: Executor running the policy (module executor if None).
        """
        self._send = send
        self.sender = sender
        self.policy = policy
        self.executor = executor

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, to: str, subject: str, body: str, operation_name: str = "send-email") -> None:
        """Sends one message. The last transport error propagates if every attempt fails."""
        message = self.build_message(to, subject, body)
        await self.policy.run(lambda: self._send(message), operation_name, self.executor)
        logger.info(f"Email '{operation_name}' delivered")
