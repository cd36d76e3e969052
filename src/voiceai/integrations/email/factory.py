"""Email Gateway Factory.

Creates the appropriate email gateway based on configuration.

Supported providers:
- smtp: Standard SMTP email
- sendgrid: SendGrid Web API
- mock: For development and testing
"""

from __future__ import annotations

from voiceai_shared import get_logger

from voiceai.config import EmailSettings, get_settings
from voiceai.integrations.email.base import EmailGateway, MockEmailGateway

log = get_logger(__name__)


# Singleton instance
_email_gateway: EmailGateway | None = None


def create_email_gateway(email_config: EmailSettings) -> EmailGateway:
    """Build a gateway for the given email settings.

    Falls back to the mock gateway when email is disabled or the chosen
    provider is missing credentials, so report generation never depends on
    email being configured.
    """
    if not email_config.enabled:
        log.info("email_gateway_disabled", fallback="mock")
        return MockEmailGateway()

    provider = email_config.provider.lower()

    if provider == "smtp":
        smtp_config = email_config.smtp
        if not smtp_config.host:
            log.warning("smtp_host_missing", fallback="mock")
            return MockEmailGateway()

        from voiceai.integrations.email.smtp import SMTPEmailGateway

        log.info("email_gateway_initialized", provider=provider, host=smtp_config.host)
        return SMTPEmailGateway(
            host=smtp_config.host,
            port=smtp_config.port,
            username=smtp_config.username or None,
            password=smtp_config.password or None,
            use_tls=smtp_config.use_tls,
            use_ssl=smtp_config.use_ssl,
            from_email=email_config.from_email or None,
            from_name=email_config.from_name or None,
            reply_to=email_config.reply_to or None,
        )

    if provider == "sendgrid":
        if not email_config.sendgrid.api_key:
            log.warning("sendgrid_api_key_missing", fallback="mock")
            return MockEmailGateway()

        from voiceai.integrations.email.sendgrid import SendGridEmailGateway

        log.info("email_gateway_initialized", provider=provider)
        return SendGridEmailGateway(
            api_key=email_config.sendgrid.api_key,
            from_email=email_config.from_email or None,
            from_name=email_config.from_name or None,
            reply_to=email_config.reply_to or None,
        )

    if provider != "mock":
        log.warning("email_provider_unknown", provider=provider, fallback="mock")
    return MockEmailGateway()


def get_email_gateway() -> EmailGateway:
    """Get the process-wide email gateway, creating it on first use."""
    global _email_gateway

    if _email_gateway is None:
        _email_gateway = create_email_gateway(get_settings().email)

    return _email_gateway


def reset_email_gateway() -> None:
    """Reset the email gateway (for testing)."""
    global _email_gateway
    _email_gateway = None
