"""
Markdown to PDF conversion through the shared Chromium browser.

Each call renders markdown to HTML, wraps it into a full document, loads it in
a fresh browser context with the admission filter installed, waits for the
network to settle, and prints it to PDF. The context is released whatever
happens; the browser itself stays up for the next call.
"""

import time
from pathlib import Path
from typing import Optional, Union

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .admission import install_admission_filter
from .assembler import assemble
from .config import Config
from .errors import (
    BrowserCrashedError,
    ConversionError,
    InputError,
    NavigationTimeoutError,
    RenderError,
)
from .log import logger
from .markdown import MarkdownRenderer, extract_title
from .options import PAGE_FORMATS, PdfOptions
from .session import RenderSessionManager, looks_like_crash


def validate_markdown(markdown) -> str:
    """Reject anything that is not a non-empty string."""
    if not isinstance(markdown, str):
        raise InputError("markdown field is required and must be a string")
    if not markdown.strip():
        raise InputError("markdown must not be empty")
    return markdown


class MarkdownPdfConverter:
    """Markdown to PDF converter using a shared Playwright browser."""

    def __init__(
        self,
        sessions: RenderSessionManager,
        config: Optional[Config] = None,
        renderer: Optional[MarkdownRenderer] = None,
    ):
        self.sessions = sessions
        self.config = config or sessions.config
        self.renderer = renderer or MarkdownRenderer()

    def build_document(self, markdown: str) -> str:
        """Render markdown and wrap it into the printable HTML document."""
        content_html = self.renderer.process(markdown)
        return assemble(
            content_html,
            title=extract_title(markdown),
            highlight_css=self.renderer.stylesheet(),
        )

    def _failure(self, action: str, error: PlaywrightError, context) -> ConversionError:
        # Judge the browser this conversion used, not whichever one is current now
        browser = context.browser
        if looks_like_crash(error) or (browser is not None and not browser.is_connected()):
            return BrowserCrashedError(f"Browser crashed while trying to {action}: {error}", cause=error)
        return RenderError(f"Failed to {action}: {error}", cause=error)

    async def _load(self, context, page, document: str, timeout_ms: int) -> None:
        try:
            await page.set_content(document, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(
                f"Document did not finish loading within {timeout_ms}ms", timeout_ms, cause=e
            ) from e
        except PlaywrightError as e:
            raise self._failure("load the document", e, context) from e

    async def _print(self, context, page, options: PdfOptions, output_path: Optional[Path]) -> bytes:
        if options.page_format not in PAGE_FORMATS:
            raise RenderError(
                f"Unsupported page format '{options.page_format}'. Use one of: {', '.join(PAGE_FORMATS)}"
            )

        pdf_kwargs = options.pdf_kwargs()
        if output_path is not None:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            pdf_kwargs["path"] = str(output_path)

        try:
            pdf_bytes = await page.pdf(**pdf_kwargs)
        except PlaywrightError as e:
            raise self._failure("generate the PDF", e, context) from e

        if not pdf_bytes:
            raise RenderError("PDF renderer returned empty content")
        return pdf_bytes

    async def convert(
        self,
        markdown: str,
        options: Optional[PdfOptions] = None,
        output_path: Optional[Union[str, Path]] = None,
    ) -> bytes:
        """Convert markdown to PDF bytes, also writing them to ``output_path`` when given."""
        validate_markdown(markdown)
        options = options or PdfOptions()
        target = Path(output_path) if output_path is not None else None

        document = self.build_document(markdown)
        timeout_ms = self.config.get_navigation_timeout_ms()
        start = time.perf_counter()

        async with self.sessions.session() as context:
            try:
                page = await context.new_page()
                stats = await install_admission_filter(page, self.config.get_trusted_font_hosts())
            except PlaywrightError as e:
                raise self._failure("prepare the page", e, context) from e

            await self._load(context, page, document, timeout_ms)
            logger.debug(f"Document settled ({stats.allowed} requests allowed, {stats.aborted} blocked)")
            pdf_bytes = await self._print(context, page, options, target)

        duration_ms = int((time.perf_counter() - start) * 1000)
        if target is not None:
            logger.success(f"PDF generated: {target} ({len(pdf_bytes)} bytes, {duration_ms}ms)")
        else:
            logger.success(f"PDF buffer generated ({len(pdf_bytes)} bytes, {duration_ms}ms)")
        return pdf_bytes

    async def convert_file(
        self,
        md_file: Union[str, Path],
        output_pdf: Union[str, Path],
        options: Optional[PdfOptions] = None,
    ) -> bytes:
        """Convert a markdown file on disk to a PDF file."""
        md_file = Path(md_file)
        try:
            with open(md_file, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise InputError(f"Cannot read {md_file}: {e}", cause=e) from e
        return await self.convert(content, options, output_path=output_pdf)
