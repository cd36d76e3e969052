"""Monthly Report Cron Service.

Generates and delivers the monthly activity report of every user whose
subscription renews in about two days:

- Idempotent per (user, period): an existing report is never re-rendered
  or re-sent
- Users without calls in the period get no report
- Email delivery is best effort; undelivered reports are retried by a
  separate pass driven by ``emailed_at IS NULL`` and ``retry_count``
- One user's failure never stops the others

Usage:
    from voiceai.services.monthly_report_cron import (
        create_monthly_report_service,
        start_monthly_report_scheduler,
        stop_monthly_report_scheduler,
    )

    service = create_monthly_report_service()

    # Run daily at the configured hour
    await start_monthly_report_scheduler(service, run_at_hour=2)

    # Or run manually
    summary = await service.run_now()
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from voiceai_shared import get_logger

from voiceai.config import Settings, get_settings
from voiceai.core.exceptions import (
    EmailDeliveryError,
    RecordAlreadyExistsError,
    StorageError,
)
from voiceai.db.models import MonthlyReportModel, NotificationType, UserModel
from voiceai.db.repositories import (
    MonthlyReportRepository,
    NotificationRepository,
    UserRepository,
)
from voiceai.db.session import get_session_factory
from voiceai.integrations.email import (
    EmailGateway,
    EmailMessage,
    EmailResult,
    get_email_gateway,
)
from voiceai.integrations.email.templates import create_monthly_report_email
from voiceai.services.file_storage import FilesystemStorage, calculate_checksum
from voiceai.services.pdf_generator import PDFGeneratorService
from voiceai.services.report_metrics import (
    MonthlyReportMetrics,
    ReportDataService,
    previous_month_bounds,
)

log = get_logger(__name__)

NOTIFICATION_TITLE = "Rapport mensuel disponible"


def previous_month_period(now: datetime) -> tuple[datetime, datetime]:
    """Calendar month before ``now``: first day 00:00 to last day 23:59:59.999999."""
    return previous_month_bounds(now)


def report_filename(user_id: Any, month: str) -> str:
    """``monthly-report-{user_id}-Mars-2025.pdf``."""
    return f"monthly-report-{user_id}-{'-'.join(month.split())}.pdf"


class ReportOutcome(str, Enum):
    """What happened to one eligible user."""
    GENERATED = "generated"
    SKIPPED_EXISTING = "skipped_existing"
    SKIPPED_NO_CALLS = "skipped_no_calls"
    FAILED = "failed"


@dataclass
class UserReportResult:
    """Result of the report pass for one user."""
    user_id: str
    outcome: ReportOutcome
    report_id: str | None = None
    emailed: bool = False
    error: str | None = None


@dataclass
class MonthlyReportRunSummary:
    """Counters of one pipeline run."""
    started_at: datetime
    completed_at: datetime | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    eligible: int = 0
    generated: int = 0
    skipped_existing: int = 0
    skipped_no_calls: int = 0
    failed: int = 0
    emailed: int = 0
    email_retries_sent: int = 0
    email_retries_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, result: UserReportResult) -> None:
        if result.outcome == ReportOutcome.GENERATED:
            self.generated += 1
            if result.emailed:
                self.emailed += 1
        elif result.outcome == ReportOutcome.SKIPPED_EXISTING:
            self.skipped_existing += 1
        elif result.outcome == ReportOutcome.SKIPPED_NO_CALLS:
            self.skipped_no_calls += 1
        else:
            self.failed += 1
            if result.error:
                self.errors.append(f"{result.user_id}: {result.error}")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("started_at", "completed_at", "period_start", "period_end"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class EmailRetrySummary:
    """Counters of one email retry pass."""
    pending: int = 0
    sent: int = 0
    failed: int = 0


class MonthlyReportCronService:
    """Runs the monthly report pipeline.

    Every database step opens its own short session from
    ``session_factory`` so that a failing user leaves no half-open
    transaction behind for the next one.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pdf_generator: PDFGeneratorService,
        storage: FilesystemStorage,
        email_gateway: EmailGateway,
        settings: Settings | None = None,
    ):
        self._session_factory = session_factory
        self._pdf = pdf_generator
        self._storage = storage
        self._email = email_gateway
        self._settings = settings or get_settings()

    @property
    def pdf_generator(self) -> PDFGeneratorService:
        return self._pdf

    @property
    def storage(self) -> FilesystemStorage:
        return self._storage

    # =========================================================================
    # Report pass
    # =========================================================================

    async def process_monthly_reports(
        self,
        now: datetime | None = None,
    ) -> MonthlyReportRunSummary:
        """Generate reports for every user renewing soon.

        Users are processed one after another. Errors loading the
        eligible users propagate; errors for a single user are logged
        and counted as failed.

        Args:
            now: Reference instant (defaults to local now)

        Returns:
            Run summary
        """
        now = now or datetime.now()
        period_start, period_end = previous_month_period(now)
        summary = MonthlyReportRunSummary(
            started_at=datetime.now(),
            period_start=period_start,
            period_end=period_end,
        )

        reports_config = self._settings.reports
        async with self._session_factory() as session:
            users = await UserRepository(session).get_eligible_for_monthly_report(
                now,
                min_days=reports_config.eligibility_window_min_days,
                max_days=reports_config.eligibility_window_max_days,
            )

        summary.eligible = len(users)
        log.info(
            "monthly_reports_started",
            eligible=summary.eligible,
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )

        for user in users:
            try:
                result = await self.generate_report_for_user(user, period_start, period_end)
            except Exception as e:
                log.exception("monthly_report_failed", user_id=str(user.id), error=str(e))
                result = UserReportResult(
                    user_id=str(user.id),
                    outcome=ReportOutcome.FAILED,
                    error=str(e),
                )
            summary.record(result)

        summary.completed_at = datetime.now()
        log.info(
            "monthly_reports_completed",
            generated=summary.generated,
            skipped_existing=summary.skipped_existing,
            skipped_no_calls=summary.skipped_no_calls,
            failed=summary.failed,
            emailed=summary.emailed,
        )
        return summary

    async def generate_report_for_user(
        self,
        user: UserModel,
        period_start: datetime,
        period_end: datetime,
    ) -> UserReportResult:
        """Generate, store, deliver and record one user's report.

        Rendering, storage and database errors propagate. Email errors do
        not: the report is still recorded, with ``emailed_at`` left empty.
        """
        user_id = str(user.id)
        log.info("monthly_report_generating", user_id=user_id)

        async with self._session_factory() as session:
            existing = await MonthlyReportRepository(session).get_by_period(
                user.id, period_start, period_end
            )
            if existing is not None:
                log.info(
                    "monthly_report_exists",
                    user_id=user_id,
                    report_id=str(existing.id),
                )
                return UserReportResult(
                    user_id=user_id,
                    outcome=ReportOutcome.SKIPPED_EXISTING,
                    report_id=str(existing.id),
                )

            metrics = await ReportDataService(
                session, self._settings.reports
            ).generate_monthly_metrics(user.id, period_start, period_end)

        if metrics.total_calls == 0:
            log.info("monthly_report_no_calls", user_id=user_id)
            return UserReportResult(user_id=user_id, outcome=ReportOutcome.SKIPPED_NO_CALLS)

        pdf = await self._pdf.generate_monthly_report_pdf(metrics, user.email)
        checksum = calculate_checksum(pdf)
        pdf_path = await self._storage.save(pdf, report_filename(user.id, metrics.month))

        emailed_at = await self._send_report_email(user.email, metrics, pdf)

        async with self._session_factory() as session:
            reports = MonthlyReportRepository(session)
            try:
                report = await reports.create_report(
                    user_id=user.id,
                    period_start=period_start,
                    period_end=period_end,
                    subscription_renewal_at=user.subscription_current_period_end or datetime.now(),
                    metrics=metrics.to_dict(),
                    pdf_path=pdf_path,
                    pdf_checksum=checksum,
                    emailed_at=emailed_at,
                )
            except RecordAlreadyExistsError:
                # Lost a race with a concurrent run; the winner's row points
                # at the same file name.
                log.warning("monthly_report_created_concurrently", user_id=user_id)
                return UserReportResult(user_id=user_id, outcome=ReportOutcome.SKIPPED_EXISTING)

            notification = await NotificationRepository(session).create_notification(
                user_id=user.id,
                type=NotificationType.MONTHLY_REPORT_READY,
                title=NOTIFICATION_TITLE,
                message=(
                    f"Votre rapport d'activité pour {metrics.month} "
                    "est maintenant disponible."
                ),
                metadata={
                    "reportId": str(report.id),
                    "month": metrics.month,
                    "totalCalls": metrics.total_calls,
                    "conversionRate": metrics.conversion_rate,
                },
            )
            await reports.link_notification(report.id, notification.id)
            await session.commit()

        log.info(
            "monthly_report_generated",
            user_id=user_id,
            report_id=str(report.id),
            emailed=emailed_at is not None,
        )
        return UserReportResult(
            user_id=user_id,
            outcome=ReportOutcome.GENERATED,
            report_id=str(report.id),
            emailed=emailed_at is not None,
        )

    async def _send_report_email(
        self,
        to_email: str,
        metrics: MonthlyReportMetrics,
        pdf: bytes,
        reference: str | None = None,
    ) -> datetime | None:
        """Send the report email; returns the delivery time or None on failure."""
        base_url = self._settings.reports.download_base_url.rstrip("/")
        message = create_monthly_report_email(
            to_email,
            metrics,
            pdf,
            download_url=f"{base_url}/reports" if base_url else None,
            reference=reference,
        )

        try:
            result = await self._deliver(message)
        except EmailDeliveryError as e:
            log.warning("monthly_report_email_failed", to=to_email, error=e.message, **e.details)
            return None
        except Exception as e:
            # Delivery is retried later; never lose the generated report
            log.error("monthly_report_email_error", to=to_email, error=str(e))
            return None

        log.info("monthly_report_email_sent", to=to_email, message_id=result.message_id)
        return result.sent_at or datetime.now()

    async def _deliver(self, message: EmailMessage) -> EmailResult:
        """Send through the gateway.

        Raises:
            EmailDeliveryError: The provider rejected the message
        """
        result = await self._email.send(message)
        if not result.success:
            raise EmailDeliveryError(
                result.error_message or "Email rejected by provider",
                details={"provider": result.provider, "error_code": result.error_code},
            )
        return result

    # =========================================================================
    # Email retry pass
    # =========================================================================

    async def retry_pending_emails(self) -> EmailRetrySummary:
        """Resend reports whose email never went out.

        A report is retried while ``retry_count`` is below the configured
        maximum. Each failed attempt increments ``retry_count``.
        """
        max_retries = self._settings.reports.email_max_retries
        async with self._session_factory() as session:
            pending = await MonthlyReportRepository(session).get_pending_email(max_retries)

        summary = EmailRetrySummary(pending=len(pending))
        if pending:
            log.info("report_email_retry_started", pending=summary.pending)

        for report in pending:
            try:
                delivered = await self._retry_report_email(report)
            except Exception as e:
                log.exception("report_email_retry_error", report_id=str(report.id), error=str(e))
                delivered = False

            async with self._session_factory() as session:
                reports = MonthlyReportRepository(session)
                if delivered:
                    await reports.mark_emailed(report.id)
                    summary.sent += 1
                else:
                    await reports.increment_retry(report.id)
                    summary.failed += 1
                await session.commit()

        if pending:
            log.info("report_email_retry_completed", sent=summary.sent, failed=summary.failed)
        return summary

    async def _retry_report_email(self, report: MonthlyReportModel) -> bool:
        # Same figures as the stored PDF, even if calls changed since
        metrics = MonthlyReportMetrics.from_dict(report.metrics_dict)

        async with self._session_factory() as session:
            user = await UserRepository(session).get(report.user_id)
        if user is None:
            log.warning("report_email_retry_user_missing", report_id=str(report.id))
            return False

        try:
            pdf = await self._storage.read(report.pdf_path)
        except StorageError as e:
            log.warning("report_email_retry_pdf_missing", report_id=str(report.id), error=str(e))
            return False

        emailed_at = await self._send_report_email(
            user.email, metrics, pdf, reference=str(report.id)
        )
        return emailed_at is not None

    # =========================================================================
    # Entry points
    # =========================================================================

    async def run_now(self, now: datetime | None = None) -> MonthlyReportRunSummary:
        """Run the report pass followed by the email retry pass."""
        log.info("monthly_reports_manual_trigger")
        summary = await self.process_monthly_reports(now)
        retries = await self.retry_pending_emails()
        summary.email_retries_sent = retries.sent
        summary.email_retries_failed = retries.failed
        return summary

    async def close(self) -> None:
        """Release the browser held by the PDF generator."""
        await self._pdf.close()


def create_monthly_report_service(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    email_gateway: EmailGateway | None = None,
) -> MonthlyReportCronService:
    """Wire the service from configuration."""
    settings = settings or get_settings()
    return MonthlyReportCronService(
        session_factory=session_factory or get_session_factory(),
        pdf_generator=PDFGeneratorService(settings.pdf),
        storage=FilesystemStorage(settings.reports.storage_dir),
        email_gateway=email_gateway or get_email_gateway(),
        settings=settings,
    )


# =============================================================================
# Scheduler
# =============================================================================

_scheduler_task: asyncio.Task | None = None
_scheduler_running = False


def seconds_until(run_at_hour: int, now: datetime | None = None) -> float:
    """Seconds from ``now`` to the next ``run_at_hour``:00 local time."""
    now = now or datetime.now()
    next_run = now.replace(hour=run_at_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _monthly_report_scheduler_loop(
    service: MonthlyReportCronService,
    run_at_hour: int = 2,
) -> None:
    """Background loop: run the pipeline once a day at ``run_at_hour``."""
    while _scheduler_running:
        try:
            wait_seconds = seconds_until(run_at_hour)
            log.info("monthly_report_scheduler_waiting", wait_seconds=round(wait_seconds))

            await asyncio.sleep(wait_seconds)

            if not _scheduler_running:
                break

            summary = await service.run_now()
            log.info(
                "monthly_report_scheduler_run_completed",
                generated=summary.generated,
                failed=summary.failed,
                emailed=summary.emailed,
            )

        except asyncio.CancelledError:
            break
        except Exception as e:
            log.exception("monthly_report_scheduler_error", error=str(e))
            # Back off for an hour before computing the next run
            await asyncio.sleep(3600)


async def start_monthly_report_scheduler(
    service: MonthlyReportCronService,
    run_at_hour: int = 2,
) -> None:
    """Start the daily monthly report scheduler.

    Args:
        service: Pipeline to run
        run_at_hour: Hour to run (0-23, default: 2 AM)
    """
    global _scheduler_task, _scheduler_running

    if _scheduler_running:
        log.warning("monthly_report_scheduler_already_running")
        return

    _scheduler_running = True
    _scheduler_task = asyncio.create_task(
        _monthly_report_scheduler_loop(service, run_at_hour)
    )
    log.info("monthly_report_scheduler_started", run_at_hour=run_at_hour)


async def stop_monthly_report_scheduler() -> None:
    """Stop the monthly report scheduler."""
    global _scheduler_task, _scheduler_running

    _scheduler_running = False

    if _scheduler_task:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass
        _scheduler_task = None

    log.info("monthly_report_scheduler_stopped")


def is_scheduler_running() -> bool:
    return _scheduler_running
