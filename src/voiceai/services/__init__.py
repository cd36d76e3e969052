"""Business services for VoiceAI.

- report_metrics: Monthly KPI aggregation (ReportDataService)
- report_templates: Printable HTML report
- pdf_generator: Headless Chromium PDF rendering
- file_storage: Local PDF storage
- monthly_report_cron: Report pipeline and daily scheduler

Submodules are imported directly; the email templates depend on the
metrics module, so this package does not import its members eagerly.
"""
