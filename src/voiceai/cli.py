#!/usr/bin/env python3
"""Operational commands for the VoiceAI report pipeline.

Usage:
    voiceai run-monthly-reports              # Generate and send due reports
    voiceai run-monthly-reports --json       # Same, summary as JSON
    voiceai retry-report-emails              # Resend undelivered report emails
    voiceai cleanup-reports --days 90        # Delete old PDF files
    voiceai init-db                          # Create database tables
    voiceai serve                            # Run the API server
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from voiceai_shared import setup_logging

from voiceai.config import get_settings


async def _run_monthly_reports() -> dict:
    from voiceai.db import close_db, init_db
    from voiceai.services.monthly_report_cron import create_monthly_report_service

    await init_db()
    service = create_monthly_report_service()
    try:
        await service.storage.initialize()
        summary = await service.run_now()
    finally:
        await service.close()
        await close_db()
    return summary.to_dict()


def run_monthly_reports(args: argparse.Namespace) -> int:
    """Run the report pass and the email retry pass once."""
    summary = asyncio.run(_run_monthly_reports())

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print("\n=== Monthly reports ===\n")
        print(f"Period:            {summary['period_start']} -> {summary['period_end']}")
        print(f"Eligible users:    {summary['eligible']}")
        print(f"Generated:         {summary['generated']}")
        print(f"Already existing:  {summary['skipped_existing']}")
        print(f"Without calls:     {summary['skipped_no_calls']}")
        print(f"Failed:            {summary['failed']}")
        print(f"Emailed:           {summary['emailed']}")
        print(f"Email retries:     {summary['email_retries_sent']} sent, "
              f"{summary['email_retries_failed']} failed")
        for error in summary["errors"]:
            print(f"  ! {error}")

    return 1 if summary["failed"] else 0


async def _retry_report_emails():
    from voiceai.db import close_db
    from voiceai.services.monthly_report_cron import create_monthly_report_service

    service = create_monthly_report_service()
    try:
        return await service.retry_pending_emails()
    finally:
        await service.close()
        await close_db()


def retry_report_emails(args: argparse.Namespace) -> int:
    """Resend report emails that were never delivered."""
    result = asyncio.run(_retry_report_emails())
    print(f"Pending: {result.pending}, sent: {result.sent}, failed: {result.failed}")
    return 0


def cleanup_reports(args: argparse.Namespace) -> int:
    """Delete stored PDFs older than --days."""
    from voiceai.services.file_storage import FilesystemStorage

    settings = get_settings()
    storage = FilesystemStorage(settings.reports.storage_dir)
    days = args.days if args.days is not None else settings.reports.retention_days

    deleted = asyncio.run(storage.cleanup_old_reports(days_to_keep=days))
    print(f"Deleted {deleted} report file(s) older than {days} days")
    return 0


def init_database(args: argparse.Namespace) -> int:
    """Create all tables."""
    from voiceai.db import close_db, init_db

    async def _init() -> None:
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(_init())
    print(f"Database initialized: {get_settings().database.url}")
    return 0


def serve(args: argparse.Namespace) -> int:
    """Run the API server."""
    from voiceai.main import run

    run()
    return 0


def main() -> int:
    """Main entry point."""
    settings = get_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json, service="voiceai-cli")

    parser = argparse.ArgumentParser(
        description="VoiceAI report pipeline tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # run-monthly-reports
    run_parser = subparsers.add_parser(
        "run-monthly-reports", help="Generate and deliver due monthly reports"
    )
    run_parser.add_argument("--json", action="store_true", help="Output summary as JSON")

    # retry-report-emails
    subparsers.add_parser("retry-report-emails", help="Resend undelivered report emails")

    # cleanup-reports
    cleanup_parser = subparsers.add_parser("cleanup-reports", help="Delete old report PDFs")
    cleanup_parser.add_argument(
        "--days", type=int, default=None,
        help="Keep files modified within this many days (default: reports.retention_days)"
    )

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # serve
    subparsers.add_parser("serve", help="Run the API server")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "run-monthly-reports": run_monthly_reports,
        "retry-report-emails": retry_report_emails,
        "cleanup-reports": cleanup_reports,
        "init-db": init_database,
        "serve": serve,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
