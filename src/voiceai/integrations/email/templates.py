"""Email Templates for the monthly report (French locale).

Each template returns a ready-to-send EmailMessage with an HTML body and
a plain-text fallback. All interpolated strings are HTML-escaped.
"""

from __future__ import annotations

from datetime import datetime
from html import escape as html_escape

from voiceai.integrations.email.base import EmailAttachment, EmailMessage
from voiceai.services.report_metrics import MonthlyReportMetrics
from voiceai.services.report_templates import (
    change_parts,
    format_duration,
    format_percent,
)


def _escape(value: str) -> str:
    """Escape HTML special characters."""
    return html_escape(value, quote=True)


def report_subject(month: str) -> str:
    return f"Votre rapport mensuel - {month}"


def report_attachment_name(month: str) -> str:
    """``Mars 2025`` -> ``Rapport-Mars-2025.pdf``."""
    return f"Rapport-{'-'.join(month.split())}.pdf"


def _kpi_cell(label: str, value: str, current: float, previous: float) -> str:
    text, color = change_parts(current, previous)
    return f"""
                  <td width="50%" style="padding: 8px;">
                    <div style="padding: 16px; background-color: #f9fafb; border: 1px solid #e5e7eb; border-radius: 8px;">
                      <p style="margin: 0; font-size: 13px; color: #6b7280;">{label}</p>
                      <p style="margin: 8px 0 4px; font-size: 26px; font-weight: 700; color: #111827;">{value}</p>
                      <p style="margin: 0; font-size: 12px; color: {color};">{text}</p>
                    </div>
                  </td>"""


def _insight_block(title: str, text: str) -> str:
    return f"""
              <div style="padding: 20px; background-color: #eff6ff; border-left: 4px solid #3b82f6; border-radius: 4px; margin-bottom: 12px;">
                <p style="margin: 0; font-size: 14px; font-weight: 600; color: #1e40af;">{title}</p>
                <p style="margin: 12px 0 0; font-size: 14px; color: #1f2937; line-height: 1.6;">{_escape(text)}</p>
              </div>"""


def render_monthly_report_email_html(
    metrics: MonthlyReportMetrics,
    download_url: str | None = None,
    year: int | None = None,
) -> str:
    """HTML body of the report email."""
    year = year or datetime.now().year
    current, previous = metrics.current, metrics.previous

    first_row = _kpi_cell(
        "Total des appels", str(current.total_calls),
        current.total_calls, previous.total_calls,
    ) + _kpi_cell(
        "Appels complétés", str(current.active_calls),
        current.active_calls, previous.active_calls,
    )
    second_row = _kpi_cell(
        "Taux de conversion", format_percent(current.conversion_rate),
        current.conversion_rate, previous.conversion_rate,
    ) + _kpi_cell(
        "Durée moyenne", format_duration(current.average_call_duration),
        current.average_call_duration, previous.average_call_duration,
    )

    insights = (
        _insight_block("Activité", metrics.insights.peak_activity)
        + _insight_block("Performance", metrics.insights.status_distribution)
        + _insight_block("Évolution", metrics.insights.month_comparison)
    )

    button = ""
    if download_url:
        button = f"""
              <p style="text-align: center; margin: 0;">
                <a href="{_escape(download_url)}" style="display: inline-block; padding: 14px 32px; background-color: #3b82f6; color: #ffffff; text-decoration: none; border-radius: 6px; font-weight: 600; font-size: 15px;">
                  Consulter dans le dashboard
                </a>
              </p>"""

    return f"""<!DOCTYPE html>
<html lang="fr">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Votre rapport mensuel est prêt</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: #f3f4f6;">
  <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: #f3f4f6;">
    <tr>
      <td style="padding: 40px 20px;">
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px; overflow: hidden;">
          <tr>
            <td style="padding: 40px; background: linear-gradient(135deg, #3b82f6 0%, #2563eb 100%); text-align: center;">
              <h1 style="margin: 0; font-size: 28px; font-weight: 700; color: #ffffff;">Rapport Mensuel d'Activité</h1>
              <p style="margin: 12px 0 0; font-size: 16px; color: #e0e7ff;">{_escape(metrics.month)}</p>
            </td>
          </tr>
          <tr>
            <td style="padding: 32px 40px 8px;">
              <p style="margin: 0 0 12px; font-size: 16px; color: #111827;">Bonjour,</p>
              <p style="margin: 0; font-size: 15px; color: #374151; line-height: 1.6;">
                Votre rapport mensuel d'activité est maintenant disponible. Voici un aperçu de vos performances.
              </p>
            </td>
          </tr>
          <tr>
            <td style="padding: 16px 32px;">
              <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
                <tr>{first_row}
                </tr>
                <tr>{second_row}
                </tr>
              </table>
            </td>
          </tr>
          <tr>
            <td style="padding: 8px 40px 24px;">
              <h2 style="margin: 0 0 16px; font-size: 18px; color: #111827;">Analyse automatique</h2>{insights}
            </td>
          </tr>
          <tr>
            <td style="padding: 0 40px 32px;">
              <p style="margin: 0 0 20px; font-size: 15px; color: #374151; line-height: 1.6;">
                Le rapport complet avec graphiques détaillés et analyses approfondies est disponible en pièce jointe (PDF).
              </p>{button}
            </td>
          </tr>
          <tr>
            <td style="padding: 32px 40px; background-color: #f9fafb; border-top: 1px solid #e5e7eb; text-align: center;">
              <p style="margin: 0; font-size: 13px; color: #6b7280;">Vous recevez cet email car vous êtes abonné à VoiceAI.</p>
              <p style="margin: 12px 0 0; font-size: 13px; color: #6b7280;">© {year} VoiceAI - Plateforme IA Réceptionniste Vocale</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def render_monthly_report_email_text(
    metrics: MonthlyReportMetrics,
    year: int | None = None,
) -> str:
    """Plain-text fallback of the report email."""
    year = year or datetime.now().year
    current = metrics.current
    insights = metrics.insights

    return f"""RAPPORT MENSUEL D'ACTIVITÉ - {metrics.month}

Bonjour,

Votre rapport mensuel d'activité est maintenant disponible.

VUE D'ENSEMBLE
--------------
Total des appels: {current.total_calls}
Appels complétés: {current.active_calls}
Taux de conversion: {format_percent(current.conversion_rate)}
Durée moyenne: {format_duration(current.average_call_duration)}

ANALYSE AUTOMATIQUE
-------------------
{insights.month_comparison}
{insights.peak_activity}
{insights.status_distribution}

Le rapport complet avec graphiques détaillés est disponible en pièce jointe (PDF).

Vous pouvez également consulter votre dashboard à tout moment pour accéder à vos statistiques en temps réel.

---
VoiceAI - Plateforme IA Réceptionniste Vocale
© {year}

Vous recevez cet email car vous êtes abonné à VoiceAI."""


def create_monthly_report_email(
    to_email: str,
    metrics: MonthlyReportMetrics,
    pdf_bytes: bytes,
    *,
    download_url: str | None = None,
    reference: str | None = None,
) -> EmailMessage:
    """Build the monthly report email with the PDF attached.

    Args:
        to_email: Account email address
        metrics: Metrics of the reported month
        pdf_bytes: Rendered report
        download_url: Optional dashboard link shown as a button
        reference: Internal id carried as provider metadata

    Returns:
        EmailMessage ready for any EmailGateway
    """
    return EmailMessage(
        to=to_email,
        subject=report_subject(metrics.month),
        body_text=render_monthly_report_email_text(metrics),
        body_html=render_monthly_report_email_html(metrics, download_url),
        attachments=[
            EmailAttachment(
                filename=report_attachment_name(metrics.month),
                content=pdf_bytes,
                content_type="application/pdf",
            )
        ],
        reference=reference,
    )
