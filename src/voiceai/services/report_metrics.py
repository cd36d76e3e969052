"""Monthly report metrics aggregation.

Turns a user's call records for one calendar month (plus the preceding
month, for comparison) into the KPIs, distributions, insights and
recommendations rendered in the monthly PDF and email.

Everything except ``ReportDataService.generate_monthly_metrics`` is pure
computation over already-fetched calls, so it can be exercised without a
database:

    metrics = build_metrics(calls, previous_calls, period_start, period_end)

Conventions:
- Percentages are floats in 0..100 and are not rounded here; templates
  round for display.
- A distribution's percentages are relative to the calls that have a
  value for that field, not to all calls, unless stated otherwise.
- Hour-of-day uses the report timezone; naive timestamps are taken as
  already local.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Protocol, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession
from voiceai_shared import get_logger

from voiceai.config import ReportSettings
from voiceai.db.repositories.calls import CallRepository

log = get_logger(__name__)


FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

# Index 0 is Sunday, matching CallModel.appointment_day_of_week
FRENCH_WEEKDAYS = ["Dimanche", "Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi"]

STATUS_ADJECTIVES = {
    "completed": "complétés",
    "failed": "échoués",
    "canceled": "annulés",
    "no_answer": "sans réponse",
    "active": "en cours",
}

MAX_RECOMMENDATIONS = 4
TOP_KEYWORDS = 15


class CallLike(Protocol):
    """Attributes read from a call record (CallModel satisfies this)."""

    status: str
    started_at: datetime | None
    created_at: datetime | None
    duration: int | None
    appointment_date: datetime | None


# =============================================================================
# Value Objects
# =============================================================================


@dataclass
class PeakHour:
    """Number of calls that started during one hour of the day."""

    hour: int
    call_count: int


@dataclass
class DistributionEntry:
    """One value of a categorical field and its share."""

    label: str
    count: int
    percentage: float


@dataclass
class KeywordCount:
    keyword: str
    count: int


@dataclass
class Recommendation:
    """Heuristic advice shown in the report.

    type is one of "insight", "alert", "success".
    """

    type: str
    title: str
    message: str


@dataclass
class ReportInsights:
    """The three generated sentences of the report."""

    peak_activity: str
    status_distribution: str
    month_comparison: str


@dataclass
class PeriodKPIs:
    """KPIs of one period; computed identically for current and previous."""

    total_calls: int = 0
    active_calls: int = 0
    conversion_rate: float = 0.0
    average_call_duration: float = 0.0
    appointments_taken: int = 0
    appointment_conversion_rate: float = 0.0
    after_hours_calls: int = 0
    after_hours_percentage: float = 0.0
    time_saved_hours: float = 0.0
    estimated_revenue: float = 0.0
    roi: float = 0.0
    performance_score: int = 0


@dataclass
class MonthlyReportMetrics:
    """Everything the monthly report shows for one user and period."""

    period_start: datetime
    period_end: datetime
    month: str

    current: PeriodKPIs
    previous: PeriodKPIs

    peak_hours: list[PeakHour]
    calls_by_status: list[DistributionEntry]
    insights: ReportInsights
    recommendations: list[Recommendation]

    conversion_results: list[DistributionEntry] = field(default_factory=list)
    client_moods: list[DistributionEntry] = field(default_factory=list)
    service_types: list[DistributionEntry] = field(default_factory=list)
    event_types: list[DistributionEntry] = field(default_factory=list)
    average_booking_confidence: float = 0.0
    average_booking_delay_days: float = 0.0
    last_minute_bookings: int = 0
    last_minute_percentage: float = 0.0
    returning_clients: int = 0
    returning_client_percentage: float = 0.0
    upsell_accepted: int = 0
    upsell_conversion_rate: float = 0.0
    calls_with_transcript: int = 0
    average_call_quality: str = "N/A"
    top_keywords: list[KeywordCount] = field(default_factory=list)
    appointments_by_day_of_week: list[DistributionEntry] = field(default_factory=list)

    # Shortcuts used by the orchestrator and templates
    @property
    def total_calls(self) -> int:
        return self.current.total_calls

    @property
    def conversion_rate(self) -> float:
        return self.current.conversion_rate

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable representation stored with the report."""
        data = asdict(self)
        data["period_start"] = self.period_start.isoformat()
        data["period_end"] = self.period_end.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthlyReportMetrics:
        """Rebuild metrics from the JSON stored with a report (see ``to_dict``)."""
        distributions = (
            "calls_by_status",
            "conversion_results",
            "client_moods",
            "service_types",
            "event_types",
            "appointments_by_day_of_week",
        )
        nested = {
            "period_start", "period_end", "current", "previous", "peak_hours",
            "insights", "recommendations", "top_keywords", *distributions,
        }
        scalars = {
            f.name: data[f.name]
            for f in fields(cls)
            if f.name not in nested and f.name in data
        }
        return cls(
            period_start=datetime.fromisoformat(data["period_start"]),
            period_end=datetime.fromisoformat(data["period_end"]),
            current=PeriodKPIs(**data["current"]),
            previous=PeriodKPIs(**data.get("previous", {})),
            peak_hours=[PeakHour(**p) for p in data.get("peak_hours", [])],
            insights=ReportInsights(**data["insights"]),
            recommendations=[Recommendation(**r) for r in data.get("recommendations", [])],
            top_keywords=[KeywordCount(**k) for k in data.get("top_keywords", [])],
            **{
                name: [DistributionEntry(**e) for e in data.get(name, [])]
                for name in distributions
            },
            **scalars,
        )


# =============================================================================
# Helpers
# =============================================================================


def round_half_up(value: float) -> int:
    """Round .5 upwards (the built-in round() rounds half to even)."""
    return int(math.floor(value + 0.5))


def month_label(value: datetime) -> str:
    """French month label, e.g. ``Mars 2025``."""
    return f"{FRENCH_MONTHS[value.month - 1].capitalize()} {value.year}"


def previous_month_bounds(period_start: datetime) -> tuple[datetime, datetime]:
    """First and last instant of the month before ``period_start``'s month.

    Works for any month length: the end is one microsecond before the
    first day of ``period_start``'s month.
    """
    month_start = period_start.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    previous_end = month_start - timedelta(microseconds=1)
    previous_start = previous_end.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return previous_start, previous_end


def _percentage(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def _local_hour(call: CallLike, tz: ZoneInfo) -> int:
    timestamp = call.started_at or call.created_at
    if timestamp is None:
        return 0
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(tz)
    return timestamp.hour


def calculate_performance_score(
    conversion_rate: float,
    appointment_conversion_rate: float,
    after_hours_percentage: float,
    average_call_duration: float,
) -> int:
    """Weighted 0-100 score.

    Weights: conversion 35%, appointment conversion 30% (x2, capped),
    after-hours share 20% (x3, capped), duration shape 15%. The duration
    sub-score ramps linearly up to 180 s, stays at 100 until 300 s, then
    loses 10 points per extra minute with a floor of 50.
    """
    conversion_score = min(conversion_rate, 100)
    appointment_score = min(appointment_conversion_rate * 2, 100)
    after_hours_score = min(after_hours_percentage * 3, 100)

    if average_call_duration < 180:
        duration_score = (average_call_duration / 180) * 100
    elif average_call_duration > 300:
        duration_score = max(50, 100 - ((average_call_duration - 300) / 60) * 10)
    else:
        duration_score = 100

    total = (
        conversion_score * 0.35
        + appointment_score * 0.30
        + after_hours_score * 0.20
        + duration_score * 0.15
    )
    return round_half_up(total)


def compute_period_kpis(
    calls: Sequence[CallLike],
    settings: ReportSettings,
) -> PeriodKPIs:
    """Compute the headline KPIs of one period."""
    tz = ZoneInfo(settings.timezone)

    total_calls = len(calls)
    active_calls = sum(1 for c in calls if c.status == "completed")

    durations = [c.duration for c in calls if c.duration is not None and c.duration > 0]
    average_call_duration = sum(durations) / len(durations) if durations else 0.0

    appointments_taken = sum(1 for c in calls if c.appointment_date is not None)

    after_hours_calls = 0
    for call in calls:
        hour = _local_hour(call, tz)
        if hour < settings.business_hours_start or hour >= settings.business_hours_end:
            after_hours_calls += 1

    conversion_rate = _percentage(active_calls, total_calls)
    appointment_conversion_rate = _percentage(appointments_taken, total_calls)
    after_hours_percentage = _percentage(after_hours_calls, total_calls)

    estimated_revenue = appointments_taken * settings.average_client_value
    cost = settings.ai_cost_per_month
    roi = ((estimated_revenue - cost) / cost) * 100 if cost > 0 else 0.0

    return PeriodKPIs(
        total_calls=total_calls,
        active_calls=active_calls,
        conversion_rate=conversion_rate,
        average_call_duration=average_call_duration,
        appointments_taken=appointments_taken,
        appointment_conversion_rate=appointment_conversion_rate,
        after_hours_calls=after_hours_calls,
        after_hours_percentage=after_hours_percentage,
        time_saved_hours=sum(durations) / 3600,
        estimated_revenue=estimated_revenue,
        roi=roi,
        performance_score=calculate_performance_score(
            conversion_rate,
            appointment_conversion_rate,
            after_hours_percentage,
            average_call_duration,
        ),
    )


def calculate_peak_hours(calls: Iterable[CallLike], tz: ZoneInfo) -> list[PeakHour]:
    """24-bucket hour histogram, busiest first, ties by ascending hour."""
    counts = [0] * 24
    for call in calls:
        counts[_local_hour(call, tz)] += 1

    hours = sorted(range(24), key=lambda h: (-counts[h], h))
    return [PeakHour(hour=h, call_count=counts[h]) for h in hours]


def calculate_distribution(
    calls: Iterable[Any],
    extract: Callable[[Any], str | None],
) -> list[DistributionEntry]:
    """Count the distinct non-empty values of a field.

    Percentages are over the calls that have a value. Entries are sorted
    by count descending; equal counts keep first-seen order.
    """
    counter = Counter(value for value in map(extract, calls) if value)
    total = sum(counter.values())
    if total == 0:
        return []

    ordered = sorted(counter.items(), key=lambda item: -item[1])
    return [
        DistributionEntry(label=label, count=count, percentage=_percentage(count, total))
        for label, count in ordered
    ]


def extract_top_keywords(calls: Iterable[Any], limit: int = TOP_KEYWORDS) -> list[KeywordCount]:
    """Most frequent normalized keywords (lowercased, longer than 2 chars)."""
    counter: Counter[str] = Counter()
    for call in calls:
        for keyword in call.keywords or []:
            normalized = keyword.lower().strip()
            if len(normalized) > 2:
                counter[normalized] += 1

    ordered = sorted(counter.items(), key=lambda item: -item[1])[:limit]
    return [KeywordCount(keyword=k, count=c) for k, c in ordered]


def calculate_appointments_by_weekday(calls: Iterable[Any]) -> list[DistributionEntry]:
    """Booked appointments per weekday, Sunday first, all seven days present."""
    counts = [0] * 7
    booked = [c for c in calls if c.appointment_date is not None]

    for call in booked:
        day = call.appointment_day_of_week
        if day is None or not 0 <= day <= 6:
            # datetime.weekday() is Monday=0
            day = (call.appointment_date.weekday() + 1) % 7
        counts[day] += 1

    return [
        DistributionEntry(
            label=FRENCH_WEEKDAYS[i],
            count=counts[i],
            percentage=_percentage(counts[i], len(booked)),
        )
        for i in range(7)
    ]


# =============================================================================
# Insights and Recommendations
# =============================================================================


def generate_insights(
    current: PeriodKPIs,
    previous: PeriodKPIs,
    peak_hours: Sequence[PeakHour],
    calls_by_status: Sequence[DistributionEntry],
) -> ReportInsights:
    """Build the peak activity, status and month comparison sentences."""
    peak_activity = "Aucune donnée d'activité disponible pour ce mois."
    if current.total_calls > 0:
        top_hours = [h for h in peak_hours if h.call_count > 0][:3]
        if len(top_hours) == 1:
            top = top_hours[0]
            peak_activity = (
                f"Vous recevez le plus d'appels à {top.hour}h ({top.call_count} appels)."
            )
        elif top_hours:
            peak_activity = (
                "Vous recevez le plus d'appels entre "
                f"{top_hours[0].hour}h-{top_hours[-1].hour + 1}h."
            )

    status_distribution = "Aucune donnée sur la répartition des appels."
    if calls_by_status:
        completed = next((s for s in calls_by_status if s.label == "completed"), None)
        if completed is not None:
            status_distribution = (
                f"{round_half_up(completed.percentage)}% de vos appels se terminent avec succès."
            )
        else:
            top = calls_by_status[0]
            adjective = STATUS_ADJECTIVES.get(top.label, top.label)
            status_distribution = (
                f"{round_half_up(top.percentage)}% de vos appels sont {adjective}."
            )

    month_comparison = "Pas de données de comparaison disponibles."
    if previous.total_calls > 0:
        change = current.total_calls - previous.total_calls
        change_percent = round_half_up(change / previous.total_calls * 100)
        if change > 0:
            month_comparison = (
                f"Hausse de {change_percent}% par rapport au mois dernier (+{change} appels)."
            )
        elif change < 0:
            month_comparison = (
                f"Baisse de {abs(change_percent)}% par rapport au mois dernier ({change} appels)."
            )
        else:
            month_comparison = "Volume d'appels stable par rapport au mois dernier."
    elif current.total_calls > 0:
        month_comparison = (
            f"Premier mois d'activité avec {current.total_calls} appels enregistrés."
        )

    return ReportInsights(
        peak_activity=peak_activity,
        status_distribution=status_distribution,
        month_comparison=month_comparison,
    )


def generate_recommendations(
    calls: Sequence[CallLike],
    current: PeriodKPIs,
    previous: PeriodKPIs,
    peak_hours: Sequence[PeakHour],
    calls_by_status: Sequence[DistributionEntry],
    tz: ZoneInfo,
) -> list[Recommendation]:
    """Evaluate the advice rules in order and keep the first four that fire."""
    recommendations: list[Recommendation] = []

    # Appointment trend
    if previous.appointments_taken > 0:
        change = (
            (current.appointments_taken - previous.appointments_taken)
            / previous.appointments_taken
            * 100
        )
        if change < -15:
            recommendations.append(Recommendation(
                type="alert",
                title="⚠️ Baisse des rendez-vous pris",
                message=(
                    f"Baisse de {abs(round_half_up(change))}% ce mois-ci. Vérifiez la qualité "
                    "des interactions IA ou les horaires de disponibilité."
                ),
            ))
        elif change > 20:
            recommendations.append(Recommendation(
                type="success",
                title="✨ Excellente performance",
                message=(
                    f"Hausse de {round_half_up(change)}% des rendez-vous pris ! "
                    "Continuez sur cette lancée."
                ),
            ))

    # Missed calls
    missed = next(
        (s for s in calls_by_status if s.label in ("failed", "no_answer")), None
    )
    if missed is not None and missed.percentage > 25:
        recommendations.append(Recommendation(
            type="alert",
            title="📞 Taux d'appels manqués élevé",
            message=(
                f"{round_half_up(missed.percentage)}% de vos appels échouent. Vérifiez la "
                "configuration de votre système téléphonique."
            ),
        ))

    # Best converting hour among the three busiest
    top_hours = [h for h in peak_hours if h.call_count > 0][:3]
    if calls and top_hours and current.conversion_rate > 0:
        appointments_by_hour = Counter(
            _local_hour(c, tz) for c in calls if c.appointment_date is not None
        )
        best_hour, best_conversion = -1, 0.0
        for peak in top_hours:
            conversion = _percentage(appointments_by_hour[peak.hour], peak.call_count)
            if conversion > best_conversion:
                best_hour, best_conversion = peak.hour, conversion

        if best_hour >= 0 and best_conversion > current.conversion_rate:
            improvement = round_half_up(
                (best_conversion - current.conversion_rate) / current.conversion_rate * 100
            )
            recommendations.append(Recommendation(
                type="insight",
                title="💡 Recommandation IA",
                message=(
                    f"Les appels à {best_hour}h convertissent {improvement}% mieux que la "
                    "moyenne. Optimisez votre disponibilité à cette heure."
                ),
            ))

    # After-hours share
    if current.after_hours_percentage > 30:
        recommendations.append(Recommendation(
            type="insight",
            title="🌙 Service 24/7 valorisé",
            message=(
                f"{round_half_up(current.after_hours_percentage)}% de vos appels arrivent hors "
                "horaires (19h-8h). Votre IA génère une vraie valeur ajoutée en dehors des "
                "heures de bureau."
            ),
        ))
    elif current.after_hours_percentage < 10 and len(calls) > 50:
        recommendations.append(Recommendation(
            type="insight",
            title="📈 Opportunité de croissance",
            message=(
                "Peu d'appels en dehors des horaires de bureau. Communiquez davantage sur "
                "votre disponibilité 24/7 pour capter plus de clients."
            ),
        ))

    # Conversion rate trend, in percentage points
    if previous.conversion_rate > 0:
        change = current.conversion_rate - previous.conversion_rate
        if change < -10:
            recommendations.append(Recommendation(
                type="alert",
                title="📉 Baisse du taux de conversion",
                message=(
                    f"Baisse de {abs(round_half_up(change))} points ce mois-ci. Analysez les "
                    "transcriptions récentes pour identifier les points de friction."
                ),
            ))

    if not recommendations and calls:
        recommendations.append(Recommendation(
            type="success",
            title="✅ Performance stable",
            message=(
                "Votre agent IA fonctionne correctement et maintient des performances "
                "constantes."
            ),
        ))

    return recommendations[:MAX_RECOMMENDATIONS]


# =============================================================================
# Aggregation
# =============================================================================


def build_metrics(
    calls: Sequence[Any],
    previous_calls: Sequence[Any],
    period_start: datetime,
    period_end: datetime,
    settings: ReportSettings | None = None,
) -> MonthlyReportMetrics:
    """Aggregate already-fetched calls into report metrics.

    Args:
        calls: Calls of the reported period
        previous_calls: Calls of the preceding calendar month
        period_start: First instant of the reported period
        period_end: Last instant of the reported period
        settings: Business hours, constants and timezone

    Returns:
        Complete metrics for rendering and persistence
    """
    settings = settings or ReportSettings()
    tz = ZoneInfo(settings.timezone)

    current = compute_period_kpis(calls, settings)
    previous = compute_period_kpis(previous_calls, settings)

    peak_hours = calculate_peak_hours(calls, tz)
    calls_by_status = calculate_distribution(calls, lambda c: c.status)

    with_appointment = current.appointments_taken
    last_minute = sum(1 for c in calls if c.is_last_minute is True)
    returning = sum(1 for c in calls if c.is_returning_client is True)
    upsells = sum(1 for c in calls if c.upsell_accepted is True)

    confidences = [c.booking_confidence for c in calls if c.booking_confidence is not None]
    delays = [c.booking_delay_days for c in calls if c.booking_delay_days is not None]

    quality = calculate_distribution(calls, lambda c: c.call_quality)

    return MonthlyReportMetrics(
        period_start=period_start,
        period_end=period_end,
        month=month_label(period_start),
        current=current,
        previous=previous,
        peak_hours=peak_hours,
        calls_by_status=calls_by_status,
        insights=generate_insights(current, previous, peak_hours, calls_by_status),
        recommendations=generate_recommendations(
            calls, current, previous, peak_hours, calls_by_status, tz
        ),
        conversion_results=calculate_distribution(
            calls, lambda c: c.conversion_result or "unknown"
        ),
        client_moods=calculate_distribution(calls, lambda c: c.client_mood),
        service_types=calculate_distribution(calls, lambda c: c.service_type),
        event_types=calculate_distribution(calls, lambda c: c.event_type),
        average_booking_confidence=(
            sum(confidences) / len(confidences) if confidences else 0.0
        ),
        average_booking_delay_days=sum(delays) / len(delays) if delays else 0.0,
        last_minute_bookings=last_minute,
        last_minute_percentage=_percentage(last_minute, with_appointment),
        returning_clients=returning,
        returning_client_percentage=_percentage(returning, current.total_calls),
        upsell_accepted=upsells,
        upsell_conversion_rate=_percentage(upsells, current.total_calls),
        calls_with_transcript=sum(1 for c in calls if c.transcript),
        average_call_quality=quality[0].label if quality else "N/A",
        top_keywords=extract_top_keywords(calls),
        appointments_by_day_of_week=calculate_appointments_by_weekday(calls),
    )


class ReportDataService:
    """Loads a user's calls and aggregates them into report metrics."""

    def __init__(self, session: AsyncSession, settings: ReportSettings | None = None):
        self._calls = CallRepository(session)
        self._settings = settings or ReportSettings()

    async def generate_monthly_metrics(
        self,
        user_id: UUID | str,
        period_start: datetime,
        period_end: datetime,
    ) -> MonthlyReportMetrics:
        """Compute the metrics of ``[period_start, period_end]`` for a user.

        Database errors propagate to the caller.
        """
        previous_start, previous_end = previous_month_bounds(period_start)

        calls = await self._calls.get_for_user_in_range(user_id, period_start, period_end)
        previous_calls = await self._calls.get_for_user_in_range(
            user_id, previous_start, previous_end
        )

        log.debug(
            "report_calls_loaded",
            user_id=str(user_id),
            calls=len(calls),
            previous_calls=len(previous_calls),
        )

        return build_metrics(
            calls, previous_calls, period_start, period_end, self._settings
        )
