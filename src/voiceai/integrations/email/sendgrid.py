"""SendGrid Email Gateway Implementation.

Uses the SendGrid Web API v3 ``/mail/send`` endpoint over httpx.
"""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Any

import httpx
from voiceai_shared import get_logger

from voiceai.integrations.email.base import (
    EmailGateway,
    EmailMessage,
    EmailResult,
    EmailStatus,
)

log = get_logger(__name__)


class SendGridEmailGateway(EmailGateway):
    """SendGrid email gateway implementation.

    API Documentation: https://docs.sendgrid.com/api-reference/mail-send
    """

    API_BASE = "https://api.sendgrid.com/v3"
    provider = "sendgrid"

    def __init__(
        self,
        api_key: str,
        from_email: str | None = None,
        from_name: str | None = None,
        reply_to: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize SendGrid email gateway.

        Args:
            api_key: SendGrid API key
            from_email: Default sender email
            from_name: Default sender display name
            reply_to: Default Reply-To address
            timeout: HTTP request timeout
            client: Preconfigured HTTP client (tests)
        """
        self.from_email = from_email
        self.from_name = from_name
        self.reply_to = reply_to

        self._client = client or httpx.AsyncClient(
            base_url=self.API_BASE,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def send(self, message: EmailMessage) -> EmailResult:
        """Send email via SendGrid API."""
        errors = self.validate_message(message)
        if errors:
            return self._invalid(errors)

        from_email = message.from_email or self.from_email
        if not from_email:
            return self._invalid(["No sender email configured"])

        payload = self.build_payload(
            message, from_email, message.from_name or self.from_name
        )

        try:
            response = await self._client.post("/mail/send", json=payload)
        except httpx.TimeoutException:
            log.error("sendgrid_timeout", to=message.to)
            return self._failed("Request timeout", "TIMEOUT")
        except httpx.HTTPError as e:
            log.error("sendgrid_http_error", error=str(e), to=message.to)
            return self._failed(str(e), "HTTP_ERROR")

        if response.status_code in (200, 202):
            message_id = response.headers.get("X-Message-Id", "")
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

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}
        errors_list = error_data.get("errors", []) if isinstance(error_data, dict) else []
        error_message = (
            "; ".join(e.get("message", "Unknown error") for e in errors_list)
            if errors_list
            else f"HTTP {response.status_code}"
        )

        log.error(
            "sendgrid_send_failed",
            status_code=response.status_code,
            errors=errors_list,
            to=message.to,
        )
        return self._failed(error_message, str(response.status_code))

    def build_payload(
        self,
        message: EmailMessage,
        from_email: str,
        from_name: str | None,
    ) -> dict[str, Any]:
        """Build the ``/mail/send`` JSON body."""
        sender: dict[str, str] = {"email": from_email}
        if from_name:
            sender["name"] = from_name

        content = []
        if message.body_text:
            content.append({"type": "text/plain", "value": message.body_text})
        if message.body_html:
            content.append({"type": "text/html", "value": message.body_html})

        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": email} for email in message.to]}],
            "from": sender,
            "subject": message.subject,
            "content": content,
        }

        reply_to = message.reply_to or self.reply_to
        if reply_to:
            payload["reply_to"] = {"email": reply_to}

        if message.headers:
            payload["headers"] = dict(message.headers)

        if message.reference:
            payload["custom_args"] = {"reference": message.reference}

        if message.attachments:
            payload["attachments"] = [
                {
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                    "filename": attachment.filename,
                    "type": attachment.content_type,
                    "disposition": "attachment",
                }
                for attachment in message.attachments
            ]

        return payload

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
