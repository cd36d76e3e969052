"""Tests for the headless Chromium PDF generator."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from voiceai.config import PDFSettings
from voiceai.core.exceptions import PDFGenerationError
from voiceai.services.pdf_generator import CHROMIUM_ARGS, PDFGeneratorService


@pytest.fixture
def mock_page():
    page = MagicMock()
    page.set_content = AsyncMock()
    page.wait_for_function = AsyncMock()
    page.pdf = AsyncMock(return_value=b"%PDF-1.4 report")
    page.close = AsyncMock()
    return page


@pytest.fixture
def mock_browser(mock_page):
    browser = MagicMock()
    browser.new_page = AsyncMock(return_value=mock_page)
    browser.close = AsyncMock()
    return browser


@pytest.fixture
def mock_playwright(mock_browser):
    """Patch async_playwright() so no browser is launched."""
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=mock_browser)
    playwright.stop = AsyncMock()

    with patch("voiceai.services.pdf_generator.async_playwright") as factory:
        factory.return_value.start = AsyncMock(return_value=playwright)
        yield playwright


@pytest.fixture
def generator():
    return PDFGeneratorService(PDFSettings(settle_delay_ms=0))


class TestPDFGeneratorService:

    @pytest.mark.asyncio
    async def test_generate_pdf(self, generator, mock_playwright, mock_page, sample_metrics):
        pdf = await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        assert pdf == b"%PDF-1.4 report"
        html = mock_page.set_content.call_args[0][0]
        assert "cabinet@example.fr" in html
        assert mock_page.set_content.call_args[1]["wait_until"] == "networkidle"
        pdf_kwargs = mock_page.pdf.call_args[1]
        assert pdf_kwargs["format"] == "A4"
        assert pdf_kwargs["print_background"] is True
        assert pdf_kwargs["margin"]["top"] == "20px"
        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_setup(self, generator, mock_playwright, mock_browser, mock_page, sample_metrics):
        await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        mock_playwright.chromium.launch.assert_awaited_once_with(headless=True, args=CHROMIUM_ARGS)
        mock_browser.new_page.assert_awaited_once_with(
            viewport={"width": 1200, "height": 1600},
            device_scale_factor=2.0,
        )
        wait_kwargs = mock_page.wait_for_function.call_args[1]
        assert wait_kwargs["polling"] == 100
        assert wait_kwargs["timeout"] == 10_000

    @pytest.mark.asyncio
    async def test_waits_for_chart_instances(self, generator, mock_playwright, mock_page, sample_metrics):
        await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        predicate = mock_page.wait_for_function.call_args[0][0]
        assert "typeof Chart !== 'undefined'" in predicate
        assert "Chart.getChart(c)" in predicate
        assert "c.width" not in predicate

    @pytest.mark.asyncio
    async def test_browser_is_reused(self, generator, mock_playwright, mock_browser, sample_metrics):
        await generator.generate_monthly_report_pdf(sample_metrics, "a@example.fr")
        await generator.generate_monthly_report_pdf(sample_metrics, "b@example.fr")

        mock_playwright.chromium.launch.assert_awaited_once()
        assert mock_browser.new_page.await_count == 2

    @pytest.mark.asyncio
    async def test_blank_charts_still_produce_pdf(self, generator, mock_playwright, mock_page, sample_metrics):
        mock_page.wait_for_function.side_effect = PlaywrightTimeoutError("Timeout 10000ms exceeded")

        pdf = await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        assert pdf == b"%PDF-1.4 report"
        mock_page.pdf.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_closed_on_error(self, generator, mock_playwright, mock_page, sample_metrics):
        mock_page.pdf.side_effect = PlaywrightError("Target closed")

        with pytest.raises(PlaywrightError):
            await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_launch_failure(self, generator, mock_playwright, sample_metrics):
        mock_playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        with pytest.raises(PDFGenerationError):
            await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")

        assert not generator.is_initialized
        mock_playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_custom_executable_path(self, mock_playwright):
        generator = PDFGeneratorService(PDFSettings(chromium_path="/usr/bin/chromium"))

        await generator.initialize()

        launch_kwargs = mock_playwright.chromium.launch.call_args[1]
        assert launch_kwargs["executable_path"] == "/usr/bin/chromium"

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, generator, mock_playwright, mock_browser):
        await generator.initialize()
        assert generator.is_initialized

        await generator.close()
        await generator.close()

        mock_browser.close.assert_awaited_once()
        mock_playwright.stop.assert_awaited_once()
        assert not generator.is_initialized

    @pytest.mark.asyncio
    async def test_browser_missing_after_initialize(self, generator, sample_metrics):
        with patch.object(generator, "initialize", AsyncMock()):
            with pytest.raises(PDFGenerationError, match="Browser not initialized"):
                await generator.generate_monthly_report_pdf(sample_metrics, "cabinet@example.fr")
