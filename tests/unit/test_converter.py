"""Unit tests for the conversion pipeline, run against fake browser objects."""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from markdown_pdf_service.config import Config
from markdown_pdf_service.converter import MarkdownPdfConverter, validate_markdown
from markdown_pdf_service.errors import (
    BrowserCrashedError,
    BrowserLaunchError,
    InputError,
    MarkdownParseError,
    NavigationTimeoutError,
    RenderError,
)
from markdown_pdf_service.options import Margins, PdfOptions
from markdown_pdf_service.session import RenderSessionManager

from fakes import FAKE_PDF, FakeLauncher, FakePage


def make_converter(page_factory=FakePage, fail_launch=False, config=None):
    config = config or Config()
    launcher = FakeLauncher(fail=fail_launch, page_factory=page_factory)
    sessions = RenderSessionManager(config, launcher=launcher)
    return MarkdownPdfConverter(sessions, config), launcher


@pytest.mark.unit
def test_convert_returns_pdf_bytes(converter, launcher, sample_markdown):
    pdf = asyncio.run(converter.convert(sample_markdown))

    assert pdf == FAKE_PDF
    page = launcher.pages[0]
    assert "<title>Sample Document</title>" in page.content
    assert '<body class="markdown-body">' in page.content


@pytest.mark.unit
def test_admission_filter_installed_before_content_loads(converter, launcher, sample_markdown):
    asyncio.run(converter.convert(sample_markdown))

    assert launcher.pages[0].events == ["route", "route_web_socket", "set_content", "pdf"]


@pytest.mark.unit
def test_contexts_block_service_workers(converter, launcher, sample_markdown):
    asyncio.run(converter.convert(sample_markdown))

    assert launcher.contexts[0].options == {"service_workers": "block"}


@pytest.mark.unit
def test_load_waits_for_network_idle_with_timeout(converter, launcher, sample_markdown):
    asyncio.run(converter.convert(sample_markdown))

    assert launcher.pages[0].load_kwargs == {"wait_until": "networkidle", "timeout": 10000}


@pytest.mark.unit
def test_default_pdf_settings(converter, launcher, sample_markdown):
    asyncio.run(converter.convert(sample_markdown))

    kwargs = launcher.pages[0].pdf_kwargs
    assert kwargs["format"] == "A4"
    assert kwargs["margin"] == {"top": "20mm", "right": "15mm", "bottom": "20mm", "left": "15mm"}
    assert kwargs["display_header_footer"] is False
    assert kwargs["header_template"] == ""
    assert kwargs["footer_template"] == ""
    assert kwargs["print_background"] is True
    assert kwargs["prefer_css_page_size"] is False
    assert "path" not in kwargs


@pytest.mark.unit
def test_custom_pdf_settings(converter, launcher, sample_markdown):
    options = PdfOptions(
        page_format="Letter",
        margin=Margins.parse("1in"),
        display_header_footer=True,
        footer_template='<span class="pageNumber"></span>',
    )
    asyncio.run(converter.convert(sample_markdown, options))

    kwargs = launcher.pages[0].pdf_kwargs
    assert kwargs["format"] == "Letter"
    assert kwargs["margin"]["left"] == "1in"
    assert kwargs["display_header_footer"] is True
    assert kwargs["footer_template"] == '<span class="pageNumber"></span>'


@pytest.mark.unit
def test_output_path_writes_file(converter, sample_markdown, tmp_path):
    target = tmp_path / "out" / "doc.pdf"

    pdf = asyncio.run(converter.convert(sample_markdown, output_path=target))

    assert target.read_bytes() == pdf


@pytest.mark.unit
def test_context_released_and_browser_kept_after_success(converter, launcher, sessions, sample_markdown):
    async def scenario():
        await converter.convert(sample_markdown)
        await converter.convert(sample_markdown)

    asyncio.run(scenario())

    assert launcher.calls == 1
    assert all(c.closed for c in launcher.contexts)
    assert len(launcher.contexts) == 2
    assert sessions.open_contexts == 0
    assert sessions.is_running


@pytest.mark.unit
@pytest.mark.parametrize("bad_input", ["", "   \n\t", None, 42, b"# bytes"])
def test_invalid_markdown_rejected_before_browser_launch(converter, launcher, bad_input):
    with pytest.raises(InputError):
        asyncio.run(converter.convert(bad_input))

    assert launcher.calls == 0


@pytest.mark.unit
def test_markdown_failure_raises_parse_error_without_launch(converter, launcher, monkeypatch):
    def broken(markdown):
        raise MarkdownParseError("renderer exploded")

    monkeypatch.setattr(converter.renderer, "process", broken)

    with pytest.raises(MarkdownParseError):
        asyncio.run(converter.convert("# Title"))

    assert launcher.calls == 0


@pytest.mark.unit
def test_launch_failure_propagates(sample_markdown):
    converter, launcher = make_converter(fail_launch=True)

    with pytest.raises(BrowserLaunchError):
        asyncio.run(converter.convert(sample_markdown))

    assert launcher.contexts == []


@pytest.mark.unit
def test_navigation_timeout_reported_and_context_released(sample_markdown):
    converter, launcher = make_converter(
        page_factory=lambda: FakePage(load_error=PlaywrightTimeoutError("Timeout 10000ms exceeded."))
    )

    with pytest.raises(NavigationTimeoutError) as excinfo:
        asyncio.run(converter.convert(sample_markdown))

    assert excinfo.value.timeout_ms == 10000
    assert launcher.contexts[0].closed
    assert converter.sessions.open_contexts == 0
    assert "pdf" not in launcher.pages[0].events


@pytest.mark.unit
def test_configured_timeout_is_used(sample_markdown):
    converter, launcher = make_converter(config=Config({"navigation_timeout_ms": 2500}))

    asyncio.run(converter.convert(sample_markdown))

    assert launcher.pages[0].load_kwargs["timeout"] == 2500


@pytest.mark.unit
def test_pdf_failure_raises_render_error_and_releases_context(sample_markdown):
    converter, launcher = make_converter(
        page_factory=lambda: FakePage(pdf_error=PlaywrightError("Printing failed"))
    )

    with pytest.raises(RenderError) as excinfo:
        asyncio.run(converter.convert(sample_markdown))

    assert not isinstance(excinfo.value, BrowserCrashedError)
    assert launcher.contexts[0].closed
    assert converter.sessions.open_contexts == 0
    assert converter.sessions.is_running


@pytest.mark.unit
def test_invalid_page_format_is_render_error(converter, launcher, sessions, sample_markdown):
    with pytest.raises(RenderError, match="Unsupported page format"):
        asyncio.run(converter.convert(sample_markdown, PdfOptions(page_format="Tabloid")))

    assert launcher.contexts[0].closed
    assert sessions.open_contexts == 0


@pytest.mark.unit
def test_empty_pdf_output_is_render_error(sample_markdown):
    converter, launcher = make_converter(page_factory=lambda: FakePage(pdf_bytes=b""))

    with pytest.raises(RenderError, match="empty content"):
        asyncio.run(converter.convert(sample_markdown))

    assert launcher.contexts[0].closed


@pytest.mark.unit
def test_browser_crash_mid_render_triggers_relaunch(sample_markdown):
    converter, launcher = make_converter(
        page_factory=lambda: FakePage(pdf_error=PlaywrightError("Target closed"))
    )

    async def scenario():
        with pytest.raises(BrowserCrashedError):
            await converter.convert(sample_markdown)
        launcher.browsers[0].connected = False
        launcher.page_factory = FakePage
        return await converter.convert(sample_markdown)

    pdf = asyncio.run(scenario())

    assert pdf == FAKE_PDF
    assert launcher.calls == 2
    assert converter.sessions.open_contexts == 0


@pytest.mark.unit
def test_convert_file(converter, tmp_path, sample_markdown):
    md_file = tmp_path / "notes.md"
    md_file.write_text(sample_markdown, encoding="utf-8")
    output = tmp_path / "notes.pdf"

    asyncio.run(converter.convert_file(md_file, output))

    assert output.read_bytes() == FAKE_PDF


@pytest.mark.unit
def test_convert_missing_file_is_input_error(converter, launcher, tmp_path):
    with pytest.raises(InputError):
        asyncio.run(converter.convert_file(tmp_path / "missing.md", tmp_path / "missing.pdf"))

    assert launcher.calls == 0


@pytest.mark.unit
def test_validate_markdown_passes_text_through():
    assert validate_markdown("# ok") == "# ok"


@pytest.mark.unit
def test_crash_judged_on_the_browser_the_conversion_used(sample_markdown):
    holder = {}

    class DyingPage(FakePage):
        async def pdf(self, **kwargs):
            launcher = holder["launcher"]
            launcher.browsers[0].connected = False
            # Another conversion notices the dead browser and relaunches first
            await holder["converter"].sessions.acquire_process()
            raise PlaywrightError("Printing failed")

    converter, launcher = make_converter(page_factory=DyingPage)
    holder.update(converter=converter, launcher=launcher)

    with pytest.raises(BrowserCrashedError):
        asyncio.run(converter.convert(sample_markdown))

    assert launcher.calls == 2
    assert converter.sessions.is_running
