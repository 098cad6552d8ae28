# Overview: Service-layer operations for invoice PDF export through headless Chromium.

from __future__ import annotations

import asyncio
import logging

from flask import render_template
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError, async_playwright

from ..errors import DependencyError
from ..models import Invoice
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

PRINT_CSS = """
@page { size: A4; margin: 25mm 18mm 22mm 18mm; }
body {
  background: #ffffff !important;
  -webkit-print-color-adjust: exact !important;
  print-color-adjust: exact !important;
  color: #111 !important;
  font-family: 'Segoe UI', Roboto, Helvetica, Arial, sans-serif !important;
  font-size: 12px;
  line-height: 1.5;
  margin: 0;
  padding: 0;
}
"""

FOOTER_TEMPLATE = (
    '<div style="font-size:10px; color:#999; text-align:center; width:100%; font-family:sans-serif; padding-bottom:4px;">'
    'Page <span class="pageNumber"></span> of <span class="totalPages"></span>'
    "</div>"
)


def pdf_filename(invoice: Invoice) -> str:
    return f"{invoice.invoice_number}.pdf"


def render_invoice_html(invoice: Invoice, *, public_base_url: str) -> str:
    verify_url = f"{public_base_url.rstrip('/')}/verify/{invoice.invoice_number}"
    return render_template("invoice_print.html", invoice=invoice, verify_url=verify_url)


def _header_template(invoice_number: str) -> str:
    return (
        '<div style="font-size:10px; color:#666; text-align:right; width:100%; padding:5px 20px; font-family:sans-serif;">'
        f"{invoice_number} - Generated {utcnow():%Y-%m-%d}"
        "</div>"
    )


async def _render_pdf(html: str, invoice_number: str, timeout_ms: int) -> bytes:
    """The browser is closed on every exit path, cancellation included."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True, args=CHROMIUM_ARGS, timeout=timeout_ms)
        try:
            page = await browser.new_page()
            page.set_default_timeout(timeout_ms)
            await page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
            await page.add_style_tag(content=PRINT_CSS)
            return await page.pdf(
                format="A4",
                print_background=True,
                display_header_footer=True,
                header_template=_header_template(invoice_number),
                footer_template=FOOTER_TEMPLATE,
                margin={"top": "25mm", "bottom": "18mm", "left": "18mm", "right": "18mm"},
                prefer_css_page_size=True,
            )
        finally:
            await browser.close()


def render_invoice_pdf(invoice: Invoice, *, public_base_url: str, timeout_seconds: float = 60) -> bytes:
    """
    Render a stored invoice to PDF bytes.

    The whole render runs under one deadline of timeout_seconds. When it
    expires the render is cancelled and the browser is closed before
    DependencyError reaches the caller.
    """
    html = render_invoice_html(invoice, public_base_url=public_base_url)
    timeout_ms = int(timeout_seconds * 1000)

    try:
        return asyncio.run(
            asyncio.wait_for(_render_pdf(html, invoice.invoice_number, timeout_ms), timeout=timeout_seconds)
        )
    except (asyncio.TimeoutError, PlaywrightTimeoutError) as exc:
        logger.error("PDF render of %s timed out after %ss", invoice.invoice_number, timeout_seconds)
        raise DependencyError("PDF rendering timed out") from exc
    except PlaywrightError as exc:
        logger.error("PDF render of %s failed: %s", invoice.invoice_number, exc)
        raise DependencyError("PDF rendering failed") from exc
