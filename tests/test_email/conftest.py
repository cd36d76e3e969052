"""Test fixtures for email integration tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture
def mock_smtp_client():
    """Mock aiosmtplib SMTP client."""
    with patch("aiosmtplib.SMTP") as mock:
        smtp = MagicMock()
        smtp.__aenter__ = AsyncMock(return_value=smtp)
        smtp.__aexit__ = AsyncMock(return_value=None)
        smtp.starttls = AsyncMock()
        smtp.login = AsyncMock()
        smtp.send_message = AsyncMock(return_value={})

        mock.return_value = smtp
        yield smtp


@pytest.fixture
def smtp_gateway(mock_smtp_client):
    """Create SMTPEmailGateway with mocked client."""
    from voiceai.integrations.email.smtp import SMTPEmailGateway

    return SMTPEmailGateway(
        host="smtp.example.com",
        port=587,
        username="rapports@voiceai.fr",
        password="testpassword",
        use_tls=True,
        from_email="rapports@voiceai.fr",
        from_name="VoiceAI",
    )


@pytest.fixture
def mock_sendgrid_client():
    """Mock SendGrid HTTP client."""
    client = MagicMock()
    client.post = AsyncMock()
    client.aclose = AsyncMock()

    # Mock successful send response
    mock_response = MagicMock()
    mock_response.status_code = 202
    mock_response.headers = {"X-Message-Id": "sendgrid_msg_123"}
    mock_response.content = b""
    mock_response.json.return_value = {}
    client.post.return_value = mock_response

    return client


@pytest.fixture
def sendgrid_gateway(mock_sendgrid_client):
    """Create SendGridEmailGateway with mocked client."""
    from voiceai.integrations.email.sendgrid import SendGridEmailGateway

    return SendGridEmailGateway(
        api_key="SG.test_api_key",
        from_email="rapports@voiceai.fr",
        from_name="VoiceAI",
        client=mock_sendgrid_client,
    )


@pytest.fixture
def sample_email_message():
    """Create a sample report email message."""
    from voiceai.integrations.email.base import EmailAttachment, EmailMessage

    return EmailMessage(
        to="cabinet@example.fr",
        subject="Votre rapport mensuel - Mars 2025",
        body_text="Votre rapport mensuel d'activité est maintenant disponible.",
        body_html="<p>Votre rapport mensuel d'activité est maintenant disponible.</p>",
        attachments=[
            EmailAttachment(
                filename="Rapport-Mars-2025.pdf",
                content=b"%PDF-1.4 test",
                content_type="application/pdf",
            )
        ],
    )
