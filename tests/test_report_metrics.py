"""Tests for monthly report metrics aggregation."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from voiceai.config import ReportSettings
from voiceai.services.report_metrics import (
    PeriodKPIs,
    ReportDataService,
    build_metrics,
    calculate_distribution,
    calculate_peak_hours,
    calculate_performance_score,
    compute_period_kpis,
    generate_insights,
    month_label,
    previous_month_bounds,
    round_half_up,
)

MARCH_START = datetime(2025, 3, 1)
MARCH_END = datetime(2025, 3, 31, 23, 59, 59, 999999)


def _metrics(calls, previous_calls=(), settings=None):
    return build_metrics(
        list(calls), list(previous_calls), MARCH_START, MARCH_END, settings or ReportSettings()
    )


class TestPeriodKPIs:
    """Headline KPI computation."""

    def test_two_call_scenario(self, call_factory, report_settings):
        calls = [
            call_factory(status="completed", duration=200, started_at=datetime(2025, 3, 5, 10, 0)),
            call_factory(status="failed", duration=None, started_at=datetime(2025, 3, 5, 22, 0)),
        ]

        kpis = compute_period_kpis(calls, report_settings)

        assert kpis.total_calls == 2
        assert kpis.active_calls == 1
        assert kpis.conversion_rate == 50
        assert kpis.after_hours_calls == 1
        assert kpis.after_hours_percentage == 50

    def test_no_calls_has_zero_rates(self, report_settings):
        kpis = compute_period_kpis([], report_settings)

        assert kpis.total_calls == 0
        assert kpis.conversion_rate == 0
        assert kpis.average_call_duration == 0
        assert kpis.after_hours_percentage == 0
        assert kpis.performance_score == 0

    def test_average_duration_ignores_empty_durations(self, call_factory, report_settings):
        calls = [
            call_factory(duration=100),
            call_factory(duration=200),
            call_factory(duration=0),
            call_factory(duration=None),
        ]

        kpis = compute_period_kpis(calls, report_settings)

        assert kpis.average_call_duration == 150
        assert kpis.time_saved_hours == pytest.approx(300 / 3600)

    def test_revenue_and_roi(self, call_factory, report_settings):
        calls = [
            call_factory(appointment_date=datetime(2025, 3, 12, 9, 0)),
            call_factory(appointment_date=datetime(2025, 3, 13, 9, 0)),
            call_factory(),
            call_factory(),
        ]

        kpis = compute_period_kpis(calls, report_settings)

        assert kpis.appointments_taken == 2
        assert kpis.appointment_conversion_rate == 50
        assert kpis.estimated_revenue == 300
        assert kpis.roi == 500

    def test_business_hours_boundaries(self, call_factory, report_settings):
        calls = [
            call_factory(started_at=datetime(2025, 3, 5, 7, 59)),
            call_factory(started_at=datetime(2025, 3, 5, 8, 0)),
            call_factory(started_at=datetime(2025, 3, 5, 18, 59)),
            call_factory(started_at=datetime(2025, 3, 5, 19, 0)),
        ]

        kpis = compute_period_kpis(calls, report_settings)

        assert kpis.after_hours_calls == 2

    def test_aware_timestamps_use_report_timezone(self, call_factory, report_settings):
        # 21:00 UTC is 22:00 in Paris before the March DST switch
        call = call_factory(started_at=datetime(2025, 3, 5, 21, 0, tzinfo=timezone.utc))

        kpis = compute_period_kpis([call], report_settings)
        peak = calculate_peak_hours([call], ZoneInfo(report_settings.timezone))

        assert kpis.after_hours_calls == 1
        assert peak[0].hour == 22

    def test_falls_back_to_created_at(self, call_factory, report_settings):
        call = call_factory(started_at=None, created_at=datetime(2025, 3, 5, 6, 30))

        kpis = compute_period_kpis([call], report_settings)

        assert kpis.after_hours_calls == 1


class TestPerformanceScore:
    """Weighted performance score."""

    def test_zero_inputs(self):
        assert calculate_performance_score(0, 0, 0, 0) == 0

    def test_perfect_score(self):
        assert calculate_performance_score(100, 50, 40, 240) == 100

    def test_duration_plateau(self):
        assert calculate_performance_score(0, 0, 0, 180) == 15
        assert calculate_performance_score(0, 0, 0, 300) == 15

    def test_long_calls_lose_points(self):
        # 420s: 100 - 2 * 10 = 80 -> 80 * 0.15
        assert calculate_performance_score(0, 0, 0, 420) == 12

    def test_duration_floor(self):
        long_call = calculate_performance_score(0, 0, 0, 3000)
        very_long_call = calculate_performance_score(0, 0, 0, 30000)

        assert long_call == very_long_call
        assert long_call in (7, 8)

    def test_sub_scores_are_capped(self):
        assert calculate_performance_score(250, 90, 90, 240) == 100

    def test_is_deterministic(self):
        args = (63.3, 21.7, 12.4, 157.0)

        assert calculate_performance_score(*args) == calculate_performance_score(*args)


class TestRoundHalfUp:

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (-0.4, 0)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestPeakHours:
    """24-bucket hour histogram."""

    def test_always_24_buckets(self, call_factory, report_settings):
        calls = [call_factory(started_at=datetime(2025, 3, 5, 10, 0))]

        peak = calculate_peak_hours(calls, ZoneInfo(report_settings.timezone))

        assert len(peak) == 24
        assert sorted(h.hour for h in peak) == list(range(24))
        assert peak[0].hour == 10
        assert peak[0].call_count == 1

    def test_ties_break_by_ascending_hour(self, call_factory):
        calls = [
            call_factory(started_at=datetime(2025, 3, 5, 15, 0)),
            call_factory(started_at=datetime(2025, 3, 5, 9, 0)),
        ]

        peak = calculate_peak_hours(calls, ZoneInfo("Europe/Paris"))

        assert [h.hour for h in peak[:4]] == [9, 15, 0, 1]

    def test_empty_call_set(self):
        peak = calculate_peak_hours([], ZoneInfo("Europe/Paris"))

        assert len(peak) == 24
        assert all(h.call_count == 0 for h in peak)


class TestDistribution:

    def test_counts_and_percentages_add_up(self, call_factory):
        statuses = ["completed"] * 5 + ["failed"] * 2 + ["no_answer"] * 3
        calls = [call_factory(status=s) for s in statuses]

        distribution = calculate_distribution(calls, lambda c: c.status)

        assert sum(d.count for d in distribution) == len(calls)
        assert sum(d.percentage for d in distribution) == pytest.approx(100)
        assert [d.label for d in distribution] == ["completed", "no_answer", "failed"]

    def test_empty_values_are_ignored(self, call_factory):
        calls = [
            call_factory(client_mood="satisfied"),
            call_factory(client_mood=None),
            call_factory(client_mood=""),
        ]

        distribution = calculate_distribution(calls, lambda c: c.client_mood)

        assert len(distribution) == 1
        assert distribution[0].percentage == 100

    def test_equal_counts_keep_first_seen_order(self, call_factory):
        calls = [call_factory(service_type="plomberie"), call_factory(service_type="chauffage")]

        distribution = calculate_distribution(calls, lambda c: c.service_type)

        assert [d.label for d in distribution] == ["plomberie", "chauffage"]


class TestInsights:
    """Generated French sentences."""

    def test_first_month_of_activity(self, call_factory):
        metrics = _metrics([call_factory() for _ in range(10)])

        assert metrics.insights.month_comparison == (
            "Premier mois d'activité avec 10 appels enregistrés."
        )

    def test_increase(self, sample_metrics):
        assert sample_metrics.insights.month_comparison == (
            "Hausse de 100% par rapport au mois dernier (+2 appels)."
        )

    def test_decrease(self, call_factory):
        metrics = _metrics(
            [call_factory() for _ in range(3)],
            [call_factory(started_at=datetime(2025, 2, 3, 10, 0)) for _ in range(4)],
        )

        assert metrics.insights.month_comparison == (
            "Baisse de 25% par rapport au mois dernier (-1 appels)."
        )

    def test_stable(self, call_factory):
        metrics = _metrics(
            [call_factory() for _ in range(2)],
            [call_factory(started_at=datetime(2025, 2, 3, 10, 0)) for _ in range(2)],
        )

        assert metrics.insights.month_comparison == (
            "Volume d'appels stable par rapport au mois dernier."
        )

    def test_no_data(self):
        metrics = _metrics([])

        assert metrics.insights.month_comparison == "Pas de données de comparaison disponibles."
        assert metrics.insights.peak_activity == "Aucune donnée d'activité disponible pour ce mois."
        assert metrics.insights.status_distribution == (
            "Aucune donnée sur la répartition des appels."
        )

    def test_single_peak_hour(self, call_factory):
        metrics = _metrics([call_factory(), call_factory()])

        assert metrics.insights.peak_activity == "Vous recevez le plus d'appels à 10h (2 appels)."

    def test_peak_hour_range(self, sample_metrics):
        assert sample_metrics.insights.peak_activity == (
            "Vous recevez le plus d'appels entre 9h-23h."
        )

    def test_success_share(self, sample_metrics):
        assert sample_metrics.insights.status_distribution == (
            "75% de vos appels se terminent avec succès."
        )

    def test_without_completed_calls_uses_top_status(self, call_factory):
        metrics = _metrics([call_factory(status="failed"), call_factory(status="failed")])

        assert metrics.insights.status_distribution == "100% de vos appels sont échoués."

    def test_generate_insights_directly(self):
        insights = generate_insights(PeriodKPIs(), PeriodKPIs(total_calls=3), [], [])

        assert insights.month_comparison == (
            "Baisse de 100% par rapport au mois dernier (-3 appels)."
        )


class TestRecommendations:
    """Threshold rules, evaluated in order, first four kept."""

    def _titles(self, metrics):
        return [r.title for r in metrics.recommendations]

    def test_stable_fallback(self, sample_metrics):
        assert self._titles(sample_metrics) == ["✅ Performance stable"]
        assert sample_metrics.recommendations[0].type == "success"

    def test_no_calls_gives_no_advice(self):
        assert _metrics([]).recommendations == []

    def test_missed_calls_alert(self, call_factory):
        metrics = _metrics([call_factory(status="completed"), call_factory(status="failed")])

        assert "📞 Taux d'appels manqués élevé" in self._titles(metrics)

    def test_missed_calls_threshold_is_strict(self, call_factory):
        calls = [call_factory(status="completed") for _ in range(3)]
        calls.append(call_factory(status="no_answer"))

        assert "📞 Taux d'appels manqués élevé" not in self._titles(_metrics(calls))

    def test_after_hours_value(self, call_factory):
        calls = [call_factory(started_at=datetime(2025, 3, 5, 22, 0)) for _ in range(3)]

        recommendations = _metrics(calls).recommendations

        assert recommendations[0].title == "🌙 Service 24/7 valorisé"
        assert recommendations[0].message.startswith("100% de vos appels arrivent hors horaires")

    def test_growth_opportunity(self, call_factory):
        calls = [call_factory(started_at=datetime(2025, 3, 5, 10, 0)) for _ in range(51)]

        assert self._titles(_metrics(calls)) == ["📈 Opportunité de croissance"]

    def test_appointment_drop(self, call_factory):
        booked = {"appointment_date": datetime(2025, 3, 20, 9, 0)}
        previous = [
            call_factory(started_at=datetime(2025, 2, 5, 10, 0), **booked) for _ in range(10)
        ]
        current = [call_factory(**booked) for _ in range(5)]

        recommendations = _metrics(current, previous).recommendations

        assert recommendations[0].type == "alert"
        assert recommendations[0].title == "⚠️ Baisse des rendez-vous pris"
        assert recommendations[0].message.startswith("Baisse de 50% ce mois-ci.")

    def test_appointment_growth(self, call_factory):
        booked = {"appointment_date": datetime(2025, 3, 20, 9, 0)}
        previous = [call_factory(started_at=datetime(2025, 2, 5, 10, 0), **booked)]
        current = [call_factory(**booked), call_factory(**booked)]

        recommendations = _metrics(current, previous).recommendations

        assert recommendations[0].title == "✨ Excellente performance"
        assert "Hausse de 100% des rendez-vous pris" in recommendations[0].message

    def test_conversion_drop(self, call_factory):
        previous = [call_factory(started_at=datetime(2025, 2, 5, 10, 0)) for _ in range(4)]
        current = [call_factory(), call_factory(), call_factory(), call_factory(status="canceled")]

        recommendations = _metrics(current, previous).recommendations

        assert [r.title for r in recommendations] == ["📉 Baisse du taux de conversion"]
        assert "Baisse de 25 points" in recommendations[0].message

    def test_truncated_to_first_four_in_rule_order(self, call_factory):
        booked = {"appointment_date": datetime(2025, 3, 20, 9, 0)}
        previous = [
            call_factory(status="completed", started_at=datetime(2025, 2, 5, 10, 0), **booked)
            for _ in range(10)
        ]
        current = [
            call_factory(status="completed", started_at=datetime(2025, 3, 5, 22, 0), **booked)
            for _ in range(4)
        ] + [
            call_factory(status="failed", started_at=datetime(2025, 3, 5, 23, 0))
            for _ in range(6)
        ]

        recommendations = _metrics(current, previous).recommendations

        assert [r.title for r in recommendations] == [
            "⚠️ Baisse des rendez-vous pris",
            "📞 Taux d'appels manqués élevé",
            "💡 Recommandation IA",
            "🌙 Service 24/7 valorisé",
        ]
        assert "Les appels à 22h convertissent 150% mieux" in recommendations[2].message

    def test_best_hour_skipped_without_conversions(self, call_factory):
        calls = [
            call_factory(status="failed", appointment_date=datetime(2025, 3, 20, 9, 0))
            for _ in range(2)
        ]

        titles = self._titles(_metrics(calls))

        assert "💡 Recommandation IA" not in titles


class TestBuildMetrics:
    """Full aggregation including the enriched analytics."""

    def test_headline_values(self, sample_metrics):
        assert sample_metrics.month == "Mars 2025"
        assert sample_metrics.total_calls == 4
        assert sample_metrics.conversion_rate == 75
        assert sample_metrics.current.average_call_duration == 150
        assert sample_metrics.previous.total_calls == 2
        assert sample_metrics.previous.conversion_rate == 50

    def test_status_distribution_matches_total(self, sample_metrics):
        assert sum(s.count for s in sample_metrics.calls_by_status) == 4
        assert sum(s.percentage for s in sample_metrics.calls_by_status) == pytest.approx(100)

    def test_enriched_analytics(self, call_factory):
        calls = [
            call_factory(
                appointment_date=datetime(2025, 3, 10, 14, 0),
                is_last_minute=True,
                is_returning_client=True,
                booking_confidence=80,
                booking_delay_days=2,
                call_quality="excellent",
                keywords=["Urgence", "urgence ", "ok", "Fuite"],
                transcript="Bonjour, j'ai une fuite.",
                conversion_result="appointment_booked",
            ),
            call_factory(
                upsell_accepted=True,
                booking_confidence=60,
                call_quality="excellent",
                keywords=["fuite"],
            ),
            call_factory(call_quality="good"),
        ]

        metrics = _metrics(calls)

        assert metrics.average_booking_confidence == 70
        assert metrics.average_booking_delay_days == 2
        assert metrics.last_minute_bookings == 1
        assert metrics.last_minute_percentage == 100
        assert metrics.returning_clients == 1
        assert metrics.upsell_accepted == 1
        assert metrics.calls_with_transcript == 1
        assert metrics.average_call_quality == "excellent"
        assert [(k.keyword, k.count) for k in metrics.top_keywords] == [
            ("urgence", 2),
            ("fuite", 2),
        ]
        assert [(c.label, c.count) for c in metrics.conversion_results] == [
            ("unknown", 2),
            ("appointment_booked", 1),
        ]

        weekdays = {d.label: d.count for d in metrics.appointments_by_day_of_week}
        assert len(weekdays) == 7
        assert weekdays["Lundi"] == 1
        assert sum(weekdays.values()) == 1

    def test_stored_weekday_wins_over_appointment_date(self, call_factory):
        call = call_factory(
            appointment_date=datetime(2025, 3, 10, 14, 0),
            appointment_day_of_week=5,
        )

        weekdays = {d.label: d.count for d in _metrics([call]).appointments_by_day_of_week}

        assert weekdays["Vendredi"] == 1

    def test_to_dict_is_json_serializable(self, sample_metrics):
        data = sample_metrics.to_dict()

        assert data["period_start"] == "2025-03-01T00:00:00"
        assert data["current"]["total_calls"] == 4
        assert len(data["peak_hours"]) == 24
        json.dumps(data)


class TestCalendarHelpers:

    def test_month_label(self):
        assert month_label(datetime(2025, 3, 1)) == "Mars 2025"
        assert month_label(datetime(2024, 2, 15)) == "Février 2024"

    def test_previous_month_bounds(self):
        start, end = previous_month_bounds(datetime(2025, 3, 1))

        assert start == datetime(2025, 2, 1)
        assert end == datetime(2025, 2, 28, 23, 59, 59, 999999)

    def test_previous_month_bounds_leap_year(self):
        start, end = previous_month_bounds(datetime(2024, 3, 15, 12, 30))

        assert start == datetime(2024, 2, 1)
        assert end == datetime(2024, 2, 29, 23, 59, 59, 999999)

    def test_previous_month_bounds_across_years(self):
        start, end = previous_month_bounds(datetime(2025, 1, 10))

        assert start == datetime(2024, 12, 1)
        assert end == datetime(2024, 12, 31, 23, 59, 59, 999999)


class TestReportDataService:
    """Metrics loaded from the database."""

    @pytest.mark.asyncio
    async def test_generate_monthly_metrics(self, db_session, sample_user, report_settings):
        from voiceai.db.models import CallModel

        for created_at, status in [
            (datetime(2025, 3, 2, 10, 0), "completed"),
            (datetime(2025, 3, 31, 23, 0), "failed"),
            (datetime(2025, 2, 14, 9, 0), "completed"),
            (datetime(2025, 4, 1, 0, 0), "completed"),
        ]:
            db_session.add(
                CallModel(
                    id=uuid4(),
                    user_id=sample_user.id,
                    status=status,
                    started_at=created_at,
                    created_at=created_at,
                    duration=60,
                )
            )
        await db_session.commit()

        metrics = await ReportDataService(db_session, report_settings).generate_monthly_metrics(
            sample_user.id, MARCH_START, MARCH_END
        )

        assert metrics.total_calls == 2
        assert metrics.current.active_calls == 1
        assert metrics.previous.total_calls == 1
        assert metrics.month == "Mars 2025"

    @pytest.mark.asyncio
    async def test_other_users_calls_are_excluded(self, db_session, sample_user, report_settings):
        from voiceai.db.models import CallModel, UserModel

        other = UserModel(id=uuid4(), email="autre@example.fr")
        db_session.add(other)
        db_session.add(
            CallModel(
                id=uuid4(),
                user_id=other.id,
                status="completed",
                created_at=datetime(2025, 3, 10, 10, 0),
            )
        )
        await db_session.commit()

        metrics = await ReportDataService(db_session, report_settings).generate_monthly_metrics(
            sample_user.id, MARCH_START, MARCH_END
        )

        assert metrics.total_calls == 0
