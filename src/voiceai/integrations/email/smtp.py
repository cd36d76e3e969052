"""SMTP Email Gateway Implementation.

Sends report emails through any SMTP relay using aiosmtplib.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from email.message import EmailMessage as MIMEMessage
from email.utils import formataddr, formatdate, make_msgid

import aiosmtplib
from voiceai_shared import get_logger

from voiceai.integrations.email.base import (
    EmailGateway,
    EmailMessage,
    EmailResult,
    EmailStatus,
)

log = get_logger(__name__)


class SMTPEmailGateway(EmailGateway):
    """SMTP email gateway implementation.

    Supports STARTTLS or implicit TLS, optional authentication and
    binary attachments.
    """

    provider = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        from_email: str | None = None,
        from_name: str | None = None,
        reply_to: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize SMTP email gateway.

        Args:
            host: SMTP server hostname
            port: SMTP server port
            username: Authentication username (usually email)
            password: Authentication password
            use_tls: Use STARTTLS (port 587)
            use_ssl: Use implicit TLS (port 465)
            from_email: Default sender email
            from_name: Default sender display name
            reply_to: Default Reply-To address
            timeout: Connection timeout in seconds
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.from_email = from_email
        self.from_name = from_name
        self.reply_to = reply_to
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> EmailResult:
        """Send email via SMTP."""
        errors = self.validate_message(message)
        if errors:
            return self._invalid(errors)

        from_email = message.from_email or self.from_email
        if not from_email:
            return self._invalid(["No sender email configured"])

        mime_message = self.build_mime_message(
            message, from_email, message.from_name or self.from_name
        )

        try:
            async with aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                use_tls=self.use_ssl,
                timeout=self.timeout,
            ) as smtp:
                if self.use_tls and not self.use_ssl:
                    await smtp.starttls()

                if self.username and self.password:
                    await smtp.login(self.username, self.password)

                await smtp.send_message(mime_message)

        except aiosmtplib.SMTPAuthenticationError as e:
            log.error("smtp_auth_failed", host=self.host, error=str(e))
            return self._failed("Authentication failed", "AUTH_FAILED")

        except aiosmtplib.SMTPRecipientsRefused as e:
            log.error("smtp_recipients_refused", to=message.to, error=str(e))
            return self._failed(
                f"Recipients refused: {e.recipients}", "RECIPIENTS_REFUSED"
            )

        except aiosmtplib.SMTPException as e:
            log.error("smtp_error", host=self.host, error=str(e))
            return self._failed(str(e), "SMTP_ERROR")

        except asyncio.TimeoutError:
            log.error("smtp_timeout", host=self.host)
            return self._failed("Connection timeout", "TIMEOUT")

        message_id = mime_message["Message-ID"]
        log.info(
            "email_sent",
            provider=self.provider,
            message_id=message_id,
            to=message.to,
            subject=message.subject,
        )
        return EmailResult(
            success=True,
            message_id=message_id,
            status=EmailStatus.SENT,
            provider=self.provider,
            sent_at=datetime.now(),
        )

    def build_mime_message(
        self,
        message: EmailMessage,
        from_email: str,
        from_name: str | None,
    ) -> MIMEMessage:
        """Build a MIME message: text and HTML alternatives plus attachments."""
        mime_msg = MIMEMessage()
        mime_msg["Subject"] = message.subject
        mime_msg["From"] = formataddr((from_name or "", from_email))
        mime_msg["To"] = ", ".join(message.to)
        mime_msg["Date"] = formatdate(localtime=True)
        mime_msg["Message-ID"] = make_msgid(domain=from_email.split("@")[-1])

        reply_to = message.reply_to or self.reply_to
        if reply_to:
            mime_msg["Reply-To"] = reply_to

        if message.headers:
            for key, value in message.headers.items():
                mime_msg[key] = value

        mime_msg.set_content(message.body_text or "")
        if message.body_html:
            mime_msg.add_alternative(message.body_html, subtype="html")

        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            mime_msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )

        return mime_msg
