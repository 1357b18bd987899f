"""
Markdown to PDF conversion through a shared headless Chromium (Playwright).
"""

from .converter import MarkdownPdfConverter
from .errors import (
    BrowserCrashedError,
    BrowserLaunchError,
    ConversionError,
    InputError,
    MarkdownParseError,
    NavigationTimeoutError,
    RenderError,
)
from .options import Margins, PdfOptions
from .session import RenderSessionManager

__version__ = "1.0.0"
