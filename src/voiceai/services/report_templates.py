"""HTML rendering of the monthly report PDF.

The document is printed by headless Chromium; the two charts are drawn
client-side by Chart.js into ``<canvas>`` elements, which is why the PDF
generator waits for canvases to be sized before printing.
"""

from __future__ import annotations

import json
from datetime import datetime
from html import escape as html_escape

from voiceai.services.report_metrics import (
    FRENCH_MONTHS,
    MonthlyReportMetrics,
    round_half_up,
)

CHART_JS_URL = "https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"

STATUS_LABELS = {
    "completed": "Complétés",
    "failed": "Échoués",
    "canceled": "Annulés",
    "no_answer": "Sans réponse",
    "active": "En cours",
}

STATUS_COLORS = {
    "completed": "#10b981",
    "failed": "#ef4444",
    "canceled": "#f59e0b",
    "no_answer": "#6b7280",
    "active": "#3b82f6",
}

RECOMMENDATION_COLORS = {
    "insight": ("#eff6ff", "#3b82f6"),
    "alert": ("#fef2f2", "#ef4444"),
    "success": ("#ecfdf5", "#10b981"),
}

COLOR_UP = "#10b981"
COLOR_DOWN = "#ef4444"
COLOR_FLAT = "#6b7280"


def _escape(value: str) -> str:
    return html_escape(value, quote=True)


def format_duration(seconds: float) -> str:
    """``245`` -> ``4m 5s``."""
    return f"{int(seconds // 60)}m {int(seconds % 60)}s"


def format_percent(value: float) -> str:
    return f"{round_half_up(value)}%"


def format_date_fr(value: datetime) -> str:
    """``18 octobre 2026``."""
    return f"{value.day} {FRENCH_MONTHS[value.month - 1]} {value.year}"


def change_parts(current: float, previous: float) -> tuple[str, str]:
    """Month-over-month change as (text, color); ``N/A`` without a baseline."""
    if previous == 0:
        return "N/A", COLOR_FLAT
    change = (current - previous) / previous * 100
    if change > 0:
        arrow, color = "↑", COLOR_UP
    elif change < 0:
        arrow, color = "↓", COLOR_DOWN
    else:
        arrow, color = "→", COLOR_FLAT
    return f"{arrow} {abs(round_half_up(change))}%", color


def format_change(current: float, previous: float) -> str:
    """Colored change badge for the KPI cards."""
    text, color = change_parts(current, previous)
    if text == "N/A":
        return text
    return f'<span style="color: {color}">{text}</span>'


def _kpi_card(label: str, value: str, change: str) -> str:
    return f"""
      <div class="kpi-card">
        <div class="kpi-label">{label}</div>
        <div class="kpi-value">{value}</div>
        <div class="kpi-change">vs mois dernier: {change}</div>
      </div>"""


def _status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def render_monthly_report_html(
    metrics: MonthlyReportMetrics,
    user_email: str,
    generated_at: datetime | None = None,
) -> str:
    """Render the report document.

    Output depends only on the arguments; ``generated_at`` (default: now)
    is the date printed in the footer.
    """
    generated_at = generated_at or datetime.now()
    current, previous = metrics.current, metrics.previous

    kpis = "".join([
        _kpi_card(
            "Total des appels",
            str(current.total_calls),
            format_change(current.total_calls, previous.total_calls),
        ),
        _kpi_card(
            "Appels complétés",
            str(current.active_calls),
            format_change(current.active_calls, previous.active_calls),
        ),
        _kpi_card(
            "Taux de conversion",
            format_percent(current.conversion_rate),
            format_change(current.conversion_rate, previous.conversion_rate),
        ),
        _kpi_card(
            "Durée moyenne",
            format_duration(current.average_call_duration),
            format_change(current.average_call_duration, previous.average_call_duration),
        ),
    ])

    advanced = "".join([
        _kpi_card(
            "Rendez-vous pris",
            str(current.appointments_taken),
            format_change(current.appointments_taken, previous.appointments_taken),
        ),
        _kpi_card(
            "Appels hors horaires",
            format_percent(current.after_hours_percentage),
            format_change(current.after_hours_calls, previous.after_hours_calls),
        ),
        _kpi_card(
            "Revenu estimé",
            f"{round_half_up(current.estimated_revenue)} €",
            format_change(current.estimated_revenue, previous.estimated_revenue),
        ),
        _kpi_card(
            "Score de performance",
            f"{current.performance_score}/100",
            format_change(current.performance_score, previous.performance_score),
        ),
    ])

    show_peak_chart = current.total_calls > 0 and bool(metrics.peak_hours)
    show_status_chart = bool(metrics.calls_by_status)

    peak_section = ""
    peak_script = ""
    if show_peak_chart:
        top = metrics.peak_hours[:10]
        peak_section = """
  <div class="section">
    <h2 class="section-title">Heures de pic d'activité</h2>
    <div class="chart-wrapper">
      <canvas id="peakHoursChart"></canvas>
    </div>
  </div>"""
        peak_script = f"""
      new Chart(document.getElementById('peakHoursChart'), {{
        type: 'bar',
        data: {{
          labels: {json.dumps([f"{h.hour}h" for h in top])},
          datasets: [{{
            label: "Nombre d'appels",
            data: {json.dumps([h.call_count for h in top])},
            backgroundColor: 'rgba(59, 130, 246, 0.8)',
            borderColor: 'rgba(59, 130, 246, 1)',
            borderWidth: 1
          }}]
        }},
        options: {{
          animation: false,
          responsive: true,
          maintainAspectRatio: false,
          plugins: {{ legend: {{ display: false }} }},
          scales: {{ y: {{ beginAtZero: true, ticks: {{ precision: 0 }} }} }}
        }}
      }});"""

    status_section = ""
    status_script = ""
    if show_status_chart:
        items = "".join(
            f"""
      <li class="status-item">
        <span class="status-name">{_escape(_status_label(s.label))}</span>
        <span class="status-stats">
          <span class="status-count">{s.count} appels</span>
          <span class="status-percent">{format_percent(s.percentage)}</span>
        </span>
      </li>"""
            for s in metrics.calls_by_status
        )
        status_section = f"""
  <div class="section">
    <h2 class="section-title">Répartition des appels par statut</h2>
    <div class="chart-wrapper">
      <canvas id="statusChart"></canvas>
    </div>
    <ul class="status-list">{items}
    </ul>
  </div>"""
        status_script = f"""
      new Chart(document.getElementById('statusChart'), {{
        type: 'pie',
        data: {{
          labels: {json.dumps([_status_label(s.label) for s in metrics.calls_by_status], ensure_ascii=False)},
          datasets: [{{
            data: {json.dumps([s.count for s in metrics.calls_by_status])},
            backgroundColor: {json.dumps([STATUS_COLORS.get(s.label, COLOR_FLAT) for s in metrics.calls_by_status])},
            borderWidth: 2,
            borderColor: '#ffffff'
          }}]
        }},
        options: {{
          animation: false,
          responsive: true,
          maintainAspectRatio: false,
          plugins: {{ legend: {{ position: 'bottom' }} }}
        }}
      }});"""

    recommendations = ""
    if metrics.recommendations:
        boxes = []
        for rec in metrics.recommendations:
            background, border = RECOMMENDATION_COLORS.get(rec.type, RECOMMENDATION_COLORS["insight"])
            boxes.append(f"""
    <div class="insight-box" style="background: {background}; border-left-color: {border};">
      <div class="insight-title">{_escape(rec.title)}</div>
      <div class="insight-text">{_escape(rec.message)}</div>
    </div>""")
        recommendations = f"""
  <div class="section">
    <h2 class="section-title">Recommandations</h2>{"".join(boxes)}
  </div>"""

    insights = metrics.insights

    return f"""<!DOCTYPE html>
<html lang="fr">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Rapport Mensuel - {_escape(metrics.month)}</title>
  <script src="{CHART_JS_URL}"></script>
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{
      font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      line-height: 1.6;
      color: #1f2937;
      background: #ffffff;
      padding: 40px;
    }}
    .header {{ text-align: center; margin-bottom: 40px; padding-bottom: 20px; border-bottom: 3px solid #3b82f6; }}
    .header h1 {{ font-size: 32px; font-weight: 700; color: #111827; margin-bottom: 8px; }}
    .header .subtitle {{ font-size: 18px; color: #6b7280; }}
    .header .period {{ font-size: 14px; color: #9ca3af; margin-top: 4px; }}
    .section {{ margin-bottom: 40px; page-break-inside: avoid; }}
    .section-title {{
      font-size: 20px; font-weight: 600; color: #111827;
      margin-bottom: 16px; padding-bottom: 8px; border-bottom: 2px solid #e5e7eb;
    }}
    .kpi-grid {{ display: grid; grid-template-columns: repeat(2, 1fr); gap: 20px; margin-bottom: 20px; }}
    .kpi-card {{ background: #f9fafb; border: 1px solid #e5e7eb; border-radius: 8px; padding: 20px; }}
    .kpi-label {{ font-size: 14px; color: #6b7280; margin-bottom: 8px; }}
    .kpi-value {{ font-size: 32px; font-weight: 700; color: #111827; margin-bottom: 4px; }}
    .kpi-change {{ font-size: 14px; color: #6b7280; }}
    .chart-wrapper {{ border: 1px solid #e5e7eb; border-radius: 8px; padding: 20px; margin-bottom: 20px; height: 340px; }}
    canvas {{ max-width: 100%; }}
    .insight-box {{ background: #eff6ff; border-left: 4px solid #3b82f6; border-radius: 4px; padding: 16px; margin-bottom: 16px; }}
    .insight-title {{ font-size: 14px; font-weight: 600; color: #1e40af; margin-bottom: 8px; }}
    .insight-text {{ font-size: 14px; color: #1f2937; line-height: 1.5; }}
    .status-list {{ list-style: none; }}
    .status-item {{
      display: flex; justify-content: space-between; align-items: center;
      padding: 12px; background: #f9fafb; border-radius: 6px; margin-bottom: 8px;
    }}
    .status-name {{ font-size: 14px; color: #374151; font-weight: 500; }}
    .status-stats {{ display: flex; gap: 16px; align-items: center; }}
    .status-count {{ font-size: 14px; font-weight: 600; color: #111827; }}
    .status-percent {{ font-size: 13px; color: #6b7280; }}
    .footer {{
      margin-top: 60px; padding-top: 20px; border-top: 2px solid #e5e7eb;
      text-align: center; font-size: 12px; color: #9ca3af;
    }}
    @media print {{ body {{ padding: 20px; }} }}
  </style>
</head>
<body>
  <div class="header">
    <h1>Rapport Mensuel d'Activité</h1>
    <div class="subtitle">{_escape(user_email)}</div>
    <div class="period">{_escape(metrics.month)}</div>
  </div>

  <div class="section">
    <h2 class="section-title">Vue d'ensemble</h2>
    <div class="kpi-grid">{kpis}
    </div>
  </div>

  <div class="section">
    <h2 class="section-title">Indicateurs avancés</h2>
    <div class="kpi-grid">{advanced}
    </div>
  </div>
{peak_section}
{status_section}
  <div class="section">
    <h2 class="section-title">Analyses automatiques</h2>
    <div class="insight-box">
      <div class="insight-title">Activité</div>
      <div class="insight-text">{_escape(insights.peak_activity)}</div>
    </div>
    <div class="insight-box">
      <div class="insight-title">Performance</div>
      <div class="insight-text">{_escape(insights.status_distribution)}</div>
    </div>
    <div class="insight-box">
      <div class="insight-title">Évolution</div>
      <div class="insight-text">{_escape(insights.month_comparison)}</div>
    </div>
  </div>
{recommendations}
  <div class="footer">
    <p>Rapport généré automatiquement le {format_date_fr(generated_at)}</p>
    <p>VoiceAI - Plateforme IA Réceptionniste Vocale</p>
  </div>

  <script>
    window.addEventListener('DOMContentLoaded', () => {{
      if (typeof Chart === 'undefined') return;{peak_script}{status_script}
    }});
  </script>
</body>
</html>"""
