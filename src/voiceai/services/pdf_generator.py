"""PDF rendering of monthly reports with headless Chromium.

One browser process is launched lazily and reused for every report; each
report gets its own page, which is always closed afterwards. The browser
is shut down by ``close()``, called from the application lifespan or the
CLI command that owns the service.
"""

from __future__ import annotations

import asyncio
from typing import Any

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from voiceai_shared import get_logger

from voiceai.config import PDFSettings
from voiceai.core.exceptions import PDFGenerationError
from voiceai.services.report_metrics import MonthlyReportMetrics
from voiceai.services.report_templates import render_monthly_report_html

log = get_logger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

# True once Chart.js has attached a chart to every canvas
CHARTS_READY_JS = """() => {
    const canvases = Array.from(document.querySelectorAll('canvas'));
    return typeof Chart !== 'undefined'
        && canvases.every((c) => Chart.getChart(c) !== undefined);
}"""


class PDFGeneratorService:
    """Owns the shared headless browser and prints report pages to PDF."""

    def __init__(self, settings: PDFSettings | None = None):
        self._settings = settings or PDFSettings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._browser is not None

    async def initialize(self) -> None:
        """Launch the browser if it is not running yet.

        Raises:
            PDFGenerationError: Chromium could not be started. The service
                stays uninitialized so a later call can try again.
        """
        async with self._lock:
            if self._browser is not None:
                return

            launch_options: dict[str, Any] = {"headless": True, "args": CHROMIUM_ARGS}
            if self._settings.chromium_path:
                launch_options["executable_path"] = self._settings.chromium_path

            log.info("pdf_browser_launching", executable=self._settings.chromium_path or "bundled")
            playwright = await async_playwright().start()
            try:
                self._browser = await playwright.chromium.launch(**launch_options)
            except PlaywrightError as e:
                await playwright.stop()
                log.error("pdf_browser_launch_failed", error=str(e))
                raise PDFGenerationError(
                    "Could not launch headless Chromium", cause=e
                ) from e

            self._playwright = playwright
            log.info("pdf_browser_launched")

    async def close(self) -> None:
        """Shut the browser down. Safe to call more than once."""
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
                log.info("pdf_browser_closed")
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    async def generate_monthly_report_pdf(
        self,
        metrics: MonthlyReportMetrics,
        user_email: str,
    ) -> bytes:
        """Render the report for one user and return the PDF bytes.

        A chart that is still blank after the chart timeout is printed
        blank rather than failing the report. Content load timeouts and
        any other browser error propagate.
        """
        await self.initialize()
        if self._browser is None:
            raise PDFGenerationError("Browser not initialized")

        settings = self._settings
        html = render_monthly_report_html(metrics, user_email)

        page = await self._browser.new_page(
            viewport={"width": settings.viewport_width, "height": settings.viewport_height},
            device_scale_factor=settings.device_scale_factor,
        )
        try:
            await page.set_content(
                html,
                wait_until="networkidle",
                timeout=settings.content_timeout_ms,
            )

            try:
                await page.wait_for_function(
                    CHARTS_READY_JS,
                    polling=settings.chart_poll_ms,
                    timeout=settings.chart_timeout_ms,
                )
            except PlaywrightTimeoutError:
                log.warning(
                    "pdf_charts_not_ready",
                    month=metrics.month,
                    timeout_ms=settings.chart_timeout_ms,
                )

            await asyncio.sleep(settings.settle_delay_ms / 1000)

            pdf = await page.pdf(
                format="A4",
                print_background=True,
                margin={
                    "top": settings.margin,
                    "right": settings.margin,
                    "bottom": settings.margin,
                    "left": settings.margin,
                },
            )
        finally:
            await page.close()

        log.info("pdf_generated", month=metrics.month, size=len(pdf))
        return pdf
