"""Email Gateway Integration Module.

Delivers the monthly report emails.

Supported providers:
- smtp: Standard SMTP email (works with Gmail, Office 365, etc.)
- sendgrid: SendGrid Web API
- mock: For development and testing
"""

from voiceai.integrations.email.base import (
    EmailAttachment,
    EmailGateway,
    EmailMessage,
    EmailResult,
    EmailStatus,
    MockEmailGateway,
)
from voiceai.integrations.email.factory import (
    create_email_gateway,
    get_email_gateway,
    reset_email_gateway,
)


# Lazy imports for provider-specific gateways
def __getattr__(name: str):
    """Lazy load provider-specific gateways."""
    if name == "SMTPEmailGateway":
        from voiceai.integrations.email.smtp import SMTPEmailGateway

        return SMTPEmailGateway
    if name == "SendGridEmailGateway":
        from voiceai.integrations.email.sendgrid import SendGridEmailGateway

        return SendGridEmailGateway
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "EmailAttachment",
    "EmailGateway",
    "EmailMessage",
    "EmailResult",
    "EmailStatus",
    "MockEmailGateway",
    "SMTPEmailGateway",
    "SendGridEmailGateway",
    "create_email_gateway",
    "get_email_gateway",
    "reset_email_gateway",
]
