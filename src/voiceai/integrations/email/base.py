"""Email gateway interface.

Value objects for outgoing report emails and the abstract gateway every
provider implements, plus the in-memory gateway used in development.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from voiceai_shared import get_logger

log = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class EmailStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class EmailMessage:
    """Outgoing email.

    ``to`` accepts a single address and is normalized to a list. Sender
    fields left empty fall back to the gateway's configured sender.
    """

    to: str | list[str]
    subject: str
    body_text: str | None = None
    body_html: str | None = None
    from_email: str | None = None
    from_name: str | None = None
    reply_to: str | None = None
    attachments: list[EmailAttachment] = field(default_factory=list)
    headers: dict[str, str] | None = None
    reference: str | None = None  # e.g. the report id, for provider-side tracing

    def __post_init__(self):
        if isinstance(self.to, str):
            self.to = [self.to]


@dataclass
class EmailResult:
    """Outcome of one send; rejections are reported here, not raised."""

    success: bool
    message_id: str | None = None
    status: EmailStatus = EmailStatus.UNKNOWN
    provider: str = ""
    error_message: str | None = None
    error_code: str | None = None
    sent_at: datetime | None = None


class EmailGateway(ABC):
    """Abstract base class for email gateways.

    ``send`` reports provider-side rejections through ``EmailResult``;
    it may still raise on unexpected transport errors, so callers that
    must not fail treat both the same way.
    """

    provider: str = "unknown"

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        """Send a single email message."""

    def validate_message(self, message: EmailMessage) -> list[str]:
        """Return the problems that would make the provider reject ``message``."""
        errors = [
            f"Invalid recipient email: {address}"
            for address in message.to
            if not _EMAIL_PATTERN.match(address)
        ]
        if not message.to:
            errors.append("At least one recipient is required")
        if not message.subject:
            errors.append("Subject is required")
        if not (message.body_text or message.body_html):
            errors.append("Either text or HTML body is required")
        return errors

    def _failed(self, message: str, code: str) -> EmailResult:
        return EmailResult(
            success=False,
            status=EmailStatus.FAILED,
            provider=self.provider,
            error_message=message,
            error_code=code,
        )

    def _invalid(self, errors: list[str]) -> EmailResult:
        return self._failed("; ".join(errors), "INVALID_MESSAGE")


class MockEmailGateway(EmailGateway):
    """Keeps sent messages in memory.

    Used when email is disabled or not configured, and in tests. With
    ``fail=True`` every message is rejected.
    """

    provider = "mock"

    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self._sent_messages: list[dict[str, Any]] = []

    async def send(self, message: EmailMessage) -> EmailResult:
        errors = self.validate_message(message)
        if errors:
            return self._invalid(errors)
        if self.fail:
            return self._failed("Simulated delivery failure", "MOCK_FAILURE")

        message_id = str(uuid4())
        sent_at = datetime.now()
        self._sent_messages.append(
            {
                "message_id": message_id,
                "to": message.to,
                "subject": message.subject,
                "body_text": message.body_text,
                "body_html": message.body_html,
                "attachments": [
                    (a.filename, a.content_type, len(a.content))
                    for a in message.attachments
                ],
                "sent_at": sent_at,
            }
        )
        log.info(
            "mock_email_sent",
            message_id=message_id,
            to=message.to,
            subject=message.subject,
            attachments=len(message.attachments),
        )

        return EmailResult(
            success=True,
            message_id=message_id,
            status=EmailStatus.SENT,
            provider=self.provider,
            sent_at=sent_at,
        )

    def get_sent_messages(self) -> list[dict[str, Any]]:
        return self._sent_messages.copy()
